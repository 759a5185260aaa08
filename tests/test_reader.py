"""Tests for the bounds-checked byte reader."""

import pytest

from ledger_manager_mcp.errors import EncodingError, TruncatedData
from ledger_manager_mcp.protocol.reader import ByteReader


def test_sequential_reads():
    reader = ByteReader(b"\x01\x02\x03\x04\x05\x06\x07\x08\x09")
    assert reader.read_u8() == 0x01
    assert reader.read_u16() == 0x0203
    assert reader.read_u32() == 0x04050607
    assert reader.remaining == 2
    assert reader.read(2) == b"\x08\x09"
    assert reader.at_end()


def test_underflow_does_not_advance():
    reader = ByteReader(b"\x01\x02")
    with pytest.raises(TruncatedData):
        reader.read_u32()
    assert reader.position == 0
    assert reader.read_u16() == 0x0102


def test_length_prefixed():
    reader = ByteReader(b"\x03abc\x00")
    assert reader.read_lv_text() == "abc"
    assert reader.read_lv() == b""
    assert reader.at_end()


def test_length_prefixed_overrun():
    with pytest.raises(TruncatedData):
        ByteReader(b"\x05ab").read_lv()


def test_length_prefixed_invalid_utf8():
    with pytest.raises(EncodingError):
        ByteReader(b"\x01\xff").read_lv_text()


def test_error_names_field():
    with pytest.raises(TruncatedData, match="target id"):
        ByteReader(b"").read_u32("target id")
