"""Command (APDU) codec, status words, and fixed instruction templates.

Command layout::

    +-----+-----+----+----+-----+------------------+
    | CLA | INS | P1 | P2 | Lc  |     Payload      |
    | 1 B | 1 B | 1B | 1B | 1 B |  Lc bytes (<256) |
    +-----+-----+----+----+-----+------------------+

A response is the payload followed by a 2-byte big-endian status word.
``0x9000`` is the only success status.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from ..errors import InvalidCommand, MalformedCommand, TruncatedData

HEADER_SIZE = 5
MAX_PAYLOAD = 255
MANAGER_CLA = 0xE0


class StatusCode(IntEnum):
    """Status words returned by the device."""

    UNRECOGNIZED = -1
    OK = 0x9000
    ACCESS_CONDITION_NOT_FULFILLED = 0x9804
    ALGORITHM_NOT_SUPPORTED = 0x9484
    CLA_NOT_SUPPORTED = 0x6E00
    CODE_BLOCKED = 0x9840
    CODE_NOT_INITIALIZED = 0x9802
    COMMAND_INCOMPATIBLE_FILE_STRUCTURE = 0x6981
    CONDITIONS_OF_USE_NOT_SATISFIED = 0x6985
    CONTRADICTION_INVALIDATION = 0x9810
    CONTRADICTION_SECRET_CODE_STATUS = 0x9808
    CUSTOM_IMAGE_BOOTLOADER = 0x662F
    CUSTOM_IMAGE_EMPTY = 0x662E
    FILE_ALREADY_EXISTS = 0x6A89
    FILE_NOT_FOUND = 0x9404
    GP_AUTH_FAILED = 0x6300
    HALTED = 0x6FAA
    INCONSISTENT_FILE = 0x9408
    INCORRECT_DATA = 0x6A80
    INCORRECT_LENGTH = 0x6700
    INCORRECT_P1_P2 = 0x6B00
    INS_NOT_SUPPORTED = 0x6D00
    DEVICE_NOT_ONBOARDED = 0x6D07
    DEVICE_NOT_ONBOARDED_2 = 0x6611
    INVALID_KCV = 0x9485
    INVALID_OFFSET = 0x9402
    LICENSING = 0x6F42
    LOCKED_DEVICE = 0x5515
    MAX_VALUE_REACHED = 0x9850
    MEMORY_PROBLEM = 0x9240
    MISSING_CRITICAL_PARAMETER = 0x6800
    NO_EF_SELECTED = 0x9400
    NOT_ENOUGH_MEMORY_SPACE = 0x6A84
    PIN_REMAINING_ATTEMPTS = 0x63C0
    REFERENCED_DATA_NOT_FOUND = 0x6A88
    SECURITY_STATUS_NOT_SATISFIED = 0x6982
    TECHNICAL_PROBLEM = 0x6F00
    UNKNOWN_APDU = 0x6D02
    USER_REFUSED_ON_DEVICE = 0x5501
    NOT_ENOUGH_SPACE = 0x5102

    @classmethod
    def lookup(cls, status: int) -> StatusCode:
        """Map a raw status word to a member, or ``UNRECOGNIZED``."""
        try:
            return cls(status)
        except ValueError:
            return cls.UNRECOGNIZED


class Instruction(IntEnum):
    """Manager instruction bytes (class ``0xE0``)."""

    GET_VERSION = 0x01
    OPEN_APP = 0xD8
    LIST_APPS = 0xDE
    CONTINUE_LIST_APPS = 0xDF


@dataclass(frozen=True)
class Command:
    """A single device command."""

    cla: int
    ins: int
    p1: int = 0
    p2: int = 0
    payload: bytes = b""

    def encode(self) -> bytes:
        return encode_command(self.cla, self.ins, self.p1, self.p2, self.payload)

    @classmethod
    def from_hex(cls, hex_str: str) -> Command:
        return decode_command(hex_str)

    def __repr__(self) -> str:
        return (
            f"Command(cla=0x{self.cla:02X}, ins=0x{self.ins:02X}, "
            f"p1=0x{self.p1:02X}, p2=0x{self.p2:02X}, "
            f"payload={self.payload.hex() if self.payload else '(empty)'})"
        )


@dataclass(frozen=True)
class Response:
    """A device response: payload plus status word."""

    status: int
    data: bytes = b""

    @property
    def ok(self) -> bool:
        return self.status == StatusCode.OK

    @property
    def status_code(self) -> StatusCode:
        return StatusCode.lookup(self.status)

    @classmethod
    def from_bytes(cls, raw: bytes) -> Response:
        """Split raw device bytes into payload and trailing status word."""
        if len(raw) < 2:
            raise TruncatedData(
                f"Response must carry a 2-byte status word, got {len(raw)} byte(s)"
            )
        return cls(status=int.from_bytes(raw[-2:], "big"), data=bytes(raw[:-2]))

    def __repr__(self) -> str:
        return (
            f"Response(status=0x{self.status:04X} {self.status_code.name}, "
            f"data={self.data.hex() if self.data else '(empty)'})"
        )


def encode_command(
    cla: int, ins: int, p1: int = 0, p2: int = 0, payload: bytes = b""
) -> bytes:
    """Build the wire bytes for a command.

    Raises:
        InvalidCommand: If a header byte is out of range or the payload
            exceeds 255 bytes.
    """
    for name, value in (("cla", cla), ("ins", ins), ("p1", p1), ("p2", p2)):
        if not 0 <= value <= 0xFF:
            raise InvalidCommand(f"{name} must be 0-255, got {value}")
    if len(payload) > MAX_PAYLOAD:
        raise InvalidCommand(
            f"Command payload must be at most {MAX_PAYLOAD} bytes, got {len(payload)}"
        )
    return bytes([cla, ins, p1, p2, len(payload)]) + bytes(payload)


def decode_command(hex_str: str) -> Command:
    """Parse a hex-encoded command as sent by the remote authority.

    Raises:
        MalformedCommand: On invalid hex, a short header, or a declared
            payload length that does not match the actual length.
    """
    try:
        raw = bytes.fromhex(hex_str)
    except (ValueError, TypeError) as e:
        raise MalformedCommand(f"Command is not valid hex: {e}") from e

    if len(raw) < HEADER_SIZE:
        raise MalformedCommand(
            f"Command must be at least {HEADER_SIZE} bytes, got {len(raw)}"
        )
    declared = raw[4]
    if len(raw) != HEADER_SIZE + declared:
        raise MalformedCommand(
            f"Command declares {declared} payload byte(s) but carries "
            f"{len(raw) - HEADER_SIZE}"
        )
    return Command(cla=raw[0], ins=raw[1], p1=raw[2], p2=raw[3], payload=raw[5:])


# Fixed templates
GET_VERSION = Command(MANAGER_CLA, Instruction.GET_VERSION)
LIST_APPS = Command(MANAGER_CLA, Instruction.LIST_APPS)
CONTINUE_LIST_APPS = Command(MANAGER_CLA, Instruction.CONTINUE_LIST_APPS)


def build_open_app(name: str) -> Command:
    """Build the command that launches an installed app by name."""
    payload = name.encode("utf-8")
    if len(payload) > MAX_PAYLOAD:
        raise InvalidCommand(f"App name too long: {len(payload)} bytes")
    return Command(MANAGER_CLA, Instruction.OPEN_APP, payload=payload)
