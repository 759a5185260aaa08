"""Tests for the HID connection's command exchange."""

from unittest.mock import MagicMock

import pytest

from ledger_manager_mcp.errors import TransportError
from ledger_manager_mcp.protocol.commands import GET_VERSION, Command
from ledger_manager_mcp.protocol.framing import build_reports, parse_reports
from ledger_manager_mcp.transport.hid_connection import HIDConnection


def _hidapi_connection(response_bytes: bytes):
    """A connection whose hidapi device answers with ``response_bytes``."""
    device = MagicMock()
    device.read.side_effect = [list(r) for r in build_reports(response_bytes)]
    device.write.side_effect = lambda data: len(data)
    conn = HIDConnection()
    conn._device = device
    conn._backend = "hidapi"
    conn._connected = True
    return conn, device


def test_exchange_round_trip():
    conn, device = _hidapi_connection(b"\x01\x02\x90\x00")
    resp = conn.exchange(GET_VERSION)
    assert resp.ok
    assert resp.data == b"\x01\x02"

    written = [call.args[0] for call in device.write.call_args_list]
    assert all(w[0] == 0x00 for w in written)  # report id prefix
    assert parse_reports([w[1:] for w in written]) == GET_VERSION.encode()


def test_exchange_multi_report_response():
    payload = bytes(range(150))
    conn, device = _hidapi_connection(payload + b"\x90\x00")
    cmd = Command(0xE0, 0xD8, payload=b"A" * 200)
    resp = conn.exchange(cmd)
    assert resp.data == payload
    assert device.write.call_count == len(build_reports(cmd.encode()))


def test_exchange_not_connected():
    with pytest.raises(TransportError):
        HIDConnection().exchange(GET_VERSION)


def test_exchange_read_timeout():
    conn, device = _hidapi_connection(b"\x90\x00")
    device.read.side_effect = [[]]
    with pytest.raises(TransportError):
        conn.exchange(GET_VERSION)


def test_exchange_io_error():
    conn, device = _hidapi_connection(b"\x90\x00")
    device.write.side_effect = OSError("device disconnected")
    with pytest.raises(TransportError):
        conn.exchange(GET_VERSION)


def test_exchange_response_without_status():
    conn, _ = _hidapi_connection(b"\x90")
    with pytest.raises(TransportError):
        conn.exchange(GET_VERSION)


def test_close_releases_device():
    conn, device = _hidapi_connection(b"\x90\x00")
    conn.close()
    device.close.assert_called_once()
    assert not conn.connected
