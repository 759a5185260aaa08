"""Decoders for get-version and list-apps response payloads."""

from __future__ import annotations

from typing import Iterable

from ..errors import InvalidRecord
from ..models.device import DeviceIdentity, InstalledApp, is_bootloader_target
from .reader import ByteReader, decode_text

APP_LIST_FORMAT = 0x01
APP_RECORD_FIXED_SIZE = 70  # blocks(2) + flags(2) + 2 hashes(64) + name_len(1) + len(1)
HASH_SIZE = 32
SE_VERSION_MIN_LEN = 5


def _target_id(raw: bytes, what: str) -> int:
    if len(raw) != 4:
        raise InvalidRecord(f"{what} must be 4 bytes, got {len(raw)}")
    return int.from_bytes(raw, "big")


def parse_device_identity(payload: bytes) -> DeviceIdentity:
    """Decode a get-version response payload.

    Layout: 4-byte target id, length-prefixed version string,
    length-prefixed flags, then a mode-specific tail. In bootloader mode the
    tail holds either the secure element version followed by its target id,
    or just the 4-byte target id. In application mode it holds the MCU
    version, possibly NUL-terminated.

    Raises:
        TruncatedData: If any field runs past the end of the payload.
        EncodingError: If a version string is not valid UTF-8.
        InvalidRecord: If a target id field is not 4 bytes.
    """
    reader = ByteReader(payload)
    target_id = reader.read_u32("target id")
    version = reader.read_lv_text("firmware version")
    flags = reader.read_lv("flags")
    is_bootloader = is_bootloader_target(target_id)

    if is_bootloader:
        part1 = reader.read_lv("secure element info")
        if len(part1) >= SE_VERSION_MIN_LEN:
            se_version = decode_text(part1, "secure element version")
            se_target_id = _target_id(
                reader.read_lv("secure element target id"),
                "secure element target id",
            )
        else:
            se_version = None
            se_target_id = _target_id(part1, "secure element target id")
        mcu_version = None
    else:
        mcu = reader.read_lv("MCU version")
        if mcu.endswith(b"\x00"):
            mcu = mcu[:-1]
        mcu_version = decode_text(mcu, "MCU version")
        se_version = version
        se_target_id = target_id

    return DeviceIdentity(
        target_id=target_id,
        version=version,
        flags=flags,
        is_bootloader=is_bootloader,
        se_version=se_version,
        se_target_id=se_target_id,
        mcu_version=mcu_version,
    )


def _parse_app_record(reader: ByteReader) -> InstalledApp:
    record_len = reader.read_u8("record length")
    blocks = reader.read_u16("block count")
    flags = reader.read_u16("app flags")
    hash_code_data = reader.read(HASH_SIZE, "code-data hash")
    app_hash = reader.read(HASH_SIZE, "app hash")
    name_len = reader.read_u8("name length")
    if record_len != name_len + APP_RECORD_FIXED_SIZE:
        raise InvalidRecord(
            f"App record length {record_len} does not match name length "
            f"{name_len} + {APP_RECORD_FIXED_SIZE}"
        )
    name = decode_text(reader.read(name_len, "app name"), "app name")
    return InstalledApp(
        name=name,
        hash=app_hash,
        hash_code_data=hash_code_data,
        blocks=blocks,
        flags=flags,
    )


def parse_app_page(payload: bytes) -> list[InstalledApp]:
    """Decode one list-apps response payload.

    An empty payload marks the end of the listing and yields no apps.
    """
    if not payload:
        return []

    reader = ByteReader(payload)
    marker = reader.read_u8("format marker")
    if marker != APP_LIST_FORMAT:
        raise InvalidRecord(
            f"Unknown app list format 0x{marker:02X}, expected 0x{APP_LIST_FORMAT:02X}"
        )

    apps = []
    while not reader.at_end():
        apps.append(_parse_app_record(reader))
    return apps


def parse_app_pages(pages: Iterable[bytes]) -> list[InstalledApp]:
    """Decode successive list-apps payloads until an empty one.

    Pages are consumed lazily so a generator issuing continue commands on
    demand stops as soon as the device reports the end of the listing.
    """
    apps: list[InstalledApp] = []
    for payload in pages:
        if not payload:
            break
        apps.extend(parse_app_page(payload))
    return apps
