"""Tests for the MCP tool layer."""

from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import pytest

from ledger_manager_mcp.errors import RemoteAuthorityError, TransportError
from ledger_manager_mcp.models.device import DeviceIdentity, InstalledApp


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
        # Remove cached server module so it re-imports with our mock
        sys.modules.pop("ledger_manager_mcp.server", None)
        import ledger_manager_mcp.server as server_mod

    return server_mod


IDENTITY = DeviceIdentity(
    target_id=0x33000004,
    version="2.2.3",
    flags=b"\x00",
    is_bootloader=False,
    se_version="2.2.3",
    se_target_id=0x33000004,
    mcu_version="2.30",
)


@pytest.fixture
def server():
    server_mod = _get_server_module()
    yield server_mod
    sys.modules.pop("ledger_manager_mcp.server", None)


def _connected(server, manager):
    conn = MagicMock()
    conn.connected = True
    server._connection = conn
    server._manager = manager
    return conn


def test_tools_require_connection(server):
    with pytest.raises(RuntimeError):
        server.get_device_info()


def test_connect_reads_identity(server):
    conn = MagicMock()
    conn.connected = False
    conn.open.return_value = MagicMock(product="Nano X", manufacturer="Ledger")
    manager = MagicMock()
    manager.get_device_identity.return_value = IDENTITY

    with patch.object(server, "HIDConnection", return_value=conn), \
            patch.object(server, "DeviceManager", return_value=manager):
        result = server.connect()

    assert result["connected"] is True
    assert result["device"]["target_id"] == "0x33000004"
    assert server._manager is manager


def test_connect_failure(server):
    conn = MagicMock()
    conn.open.side_effect = TransportError("no device")
    with patch.object(server, "HIDConnection", return_value=conn):
        result = server.connect()
    assert result == {"connected": False, "error": "no device"}
    assert server._connection is None


def test_list_apps(server):
    manager = MagicMock()
    manager.list_installed_apps.return_value = [
        InstalledApp(name="Bitcoin", hash=b"\x01" * 32, hash_code_data=b"\x02" * 32, blocks=5, flags=0)
    ]
    _connected(server, manager)
    result = server.list_apps()
    assert result["count"] == 1
    assert result["apps"][0]["name"] == "Bitcoin"


def test_genuine_check_reports_failure(server):
    manager = MagicMock()
    manager.genuine_check.side_effect = RemoteAuthorityError('{"query": "error"}')
    _connected(server, manager)
    result = server.genuine_check()
    assert result["genuine"] is False
    assert "error" in result


def test_genuine_check_success(server):
    manager = MagicMock()
    manager.genuine_check.return_value = IDENTITY
    _connected(server, manager)
    assert server.genuine_check() == {"genuine": True, "target_id": "0x33000004"}


def test_open_app(server):
    manager = MagicMock()
    _connected(server, manager)
    assert server.open_app("Bitcoin") == {"opened": True, "app_name": "Bitcoin"}
    manager.open_app.assert_called_once_with("Bitcoin")


def test_disconnect(server):
    conn = _connected(server, MagicMock())
    assert server.disconnect() == {"disconnected": True}
    conn.close.assert_called_once()
    assert server._connection is None
