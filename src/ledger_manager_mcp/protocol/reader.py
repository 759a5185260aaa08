"""Bounds-checked cursor over a device response payload."""

from __future__ import annotations

from ..errors import EncodingError, TruncatedData


class ByteReader:
    """Sequential reader that raises :class:`TruncatedData` on underflow.

    Usage::

        reader = ByteReader(payload)
        target_id = reader.read_u32()
        version = reader.read_lv_text()
    """

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def position(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def read(self, count: int, what: str = "field") -> bytes:
        """Return the next ``count`` bytes and advance past them."""
        if count > self.remaining:
            raise TruncatedData(
                f"Not enough data for {what}: need {count} byte(s) at offset "
                f"{self._pos}, {self.remaining} left"
            )
        chunk = self._data[self._pos : self._pos + count]
        self._pos += count
        return chunk

    def read_u8(self, what: str = "u8") -> int:
        return self.read(1, what)[0]

    def read_u16(self, what: str = "u16") -> int:
        return int.from_bytes(self.read(2, what), "big")

    def read_u32(self, what: str = "u32") -> int:
        return int.from_bytes(self.read(4, what), "big")

    def read_lv(self, what: str = "length-prefixed field") -> bytes:
        """Read a 1-byte length followed by that many bytes."""
        length = self.read_u8(f"{what} length")
        return self.read(length, what)

    def read_lv_text(self, what: str = "string") -> str:
        return decode_text(self.read_lv(what), what)


def decode_text(raw: bytes, what: str = "string") -> str:
    """Decode UTF-8, mapping failures to :class:`EncodingError`."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise EncodingError(f"Invalid UTF-8 in {what}: {e}") from e
