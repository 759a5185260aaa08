"""HID report framing for commands sent over USB.

Each encoded command (or response) is split across 64-byte HID reports::

    +---------+------+----------+-----------------+------------------+---------+
    | Channel | Tag  | Sequence | Length          |       Data       | Padding |
    | 2 bytes | 1 B  | 2 bytes  | 2 bytes (seq 0) |  up to 57/59 B   | to 64 B |
    +---------+------+----------+-----------------+------------------+---------+

- Channel: 0x0101, big-endian
- Tag: 0x05 (APDU)
- Sequence: big-endian report index, starting at 0
- Length: big-endian total message length, present only in the first report
- Padding: zero bytes to fill the 64-byte report
"""

from __future__ import annotations

from ..errors import TransportError

HID_REPORT_SIZE = 64
CHANNEL = 0x0101
TAG_APDU = 0x05
FIRST_HEADER_SIZE = 7   # channel(2) + tag(1) + seq(2) + length(2)
HEADER_SIZE = 5         # channel(2) + tag(1) + seq(2)


def build_reports(message: bytes, channel: int = CHANNEL) -> list[bytes]:
    """Split an encoded message into 64-byte HID reports.

    An empty message still produces one report carrying a zero length.
    """
    reports: list[bytes] = []
    remaining = len(message).to_bytes(2, "big") + message
    seq = 0
    while True:
        header = channel.to_bytes(2, "big") + bytes([TAG_APDU]) + seq.to_bytes(2, "big")
        room = HID_REPORT_SIZE - len(header)
        chunk, remaining = remaining[:room], remaining[room:]
        report = header + chunk
        reports.append(report + b"\x00" * (HID_REPORT_SIZE - len(report)))
        seq += 1
        if not remaining:
            return reports


class ReportAssembler:
    """Reassemble a message from a stream of HID reports.

    Usage::

        assembler = ReportAssembler()
        while not assembler.complete:
            assembler.feed(conn.read())
        message = assembler.message
    """

    def __init__(self, channel: int = CHANNEL) -> None:
        self._channel = channel
        self._expected_seq = 0
        self._length: int | None = None
        self._buffer = bytearray()

    @property
    def complete(self) -> bool:
        return self._length is not None and len(self._buffer) >= self._length

    @property
    def message(self) -> bytes:
        if not self.complete:
            raise TransportError("Response message is incomplete")
        return bytes(self._buffer[: self._length])

    def feed(self, report: bytes) -> None:
        """Consume one report.

        Raises:
            TransportError: On a channel, tag, or sequence mismatch.
        """
        if len(report) < HEADER_SIZE:
            raise TransportError(f"HID report too short: {len(report)} byte(s)")

        channel = int.from_bytes(report[0:2], "big")
        if channel != self._channel:
            raise TransportError(
                f"Unexpected HID channel 0x{channel:04X}, expected 0x{self._channel:04X}"
            )
        if report[2] != TAG_APDU:
            raise TransportError(f"Unexpected HID tag 0x{report[2]:02X}")

        seq = int.from_bytes(report[3:5], "big")
        if seq != self._expected_seq:
            raise TransportError(
                f"Out-of-order HID report: got sequence {seq}, expected {self._expected_seq}"
            )

        if seq == 0:
            if len(report) < FIRST_HEADER_SIZE:
                raise TransportError("First HID report is missing the length field")
            self._length = int.from_bytes(report[5:7], "big")
            data = report[FIRST_HEADER_SIZE:]
        else:
            data = report[HEADER_SIZE:]

        self._buffer += data
        self._expected_seq += 1


def parse_reports(reports: list[bytes], channel: int = CHANNEL) -> bytes | None:
    """Reassemble a complete message from a list of reports.

    Returns:
        The message bytes, or ``None`` if the reports do not add up to a
        complete message.
    """
    assembler = ReportAssembler(channel)
    for report in reports:
        assembler.feed(report)
        if assembler.complete:
            return assembler.message
    return None
