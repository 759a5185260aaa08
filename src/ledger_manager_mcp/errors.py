"""Exception hierarchy for device, decoding, and relay failures.

Every error raised by this package derives from :class:`LedgerManagerError`
so callers (the MCP tools) can report failures with a single ``except``.
"""

from __future__ import annotations


class LedgerManagerError(Exception):
    """Base class for all errors raised by this package."""


class TruncatedData(LedgerManagerError):
    """A binary payload ended before a field could be read."""


class EncodingError(LedgerManagerError):
    """A text field was not valid UTF-8."""


class InvalidRecord(LedgerManagerError):
    """A binary record is structurally inconsistent."""


class InvalidCommand(LedgerManagerError):
    """A command could not be encoded (header byte or payload out of range)."""


class MalformedCommand(LedgerManagerError):
    """A hex-encoded command received from the remote authority is invalid."""


class ProtocolViolation(LedgerManagerError):
    """A relay envelope does not match the expected shape."""


class UnsupportedQuery(LedgerManagerError):
    """The remote authority sent a query kind this client does not handle."""


class UnsupportedFrame(LedgerManagerError):
    """The relay channel delivered a non-text frame."""


class TransportError(LedgerManagerError):
    """The device link failed to complete a request/response round trip."""


class ChannelError(LedgerManagerError):
    """The relay channel could not be opened, read, or written."""


class RemoteAuthorityError(LedgerManagerError):
    """The remote authority ended the relay session with an ``error`` query."""

    def __init__(self, raw_message: str) -> None:
        super().__init__(f"Remote authority reported an error: {raw_message}")
        self.raw_message = raw_message


class DeviceStatusError(LedgerManagerError):
    """The device answered a direct command with a non-success status word."""

    def __init__(self, status: int, context: str = "") -> None:
        from .protocol.commands import StatusCode

        self.status = status
        self.status_code = StatusCode.lookup(status)
        prefix = f"{context}: " if context else ""
        super().__init__(
            f"{prefix}device returned status 0x{status:04X} "
            f"({self.status_code.name})"
        )


class MetadataError(LedgerManagerError):
    """The metadata service failed or did not describe the requested item."""
