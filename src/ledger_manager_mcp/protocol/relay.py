"""Relay engine for remote-authority provisioning sessions.

The remote authority (genuine check, app install) drives the session over a
duplex text channel. Each inbound message is a JSON envelope::

    {"query": "exchange", "nonce": 7, "data": "e0d8000007..."}
    {"query": "bulk", "nonce": 8, "data": ["e0...", "e0...", ""]}
    {"query": "success", "nonce": 9}

``exchange`` and ``bulk`` carry hex-encoded device commands that are relayed
to the device without interpretation. Replies have the shape::

    {"nonce": 7, "response": "success", "data": "<hex payload>"}

A device status other than 0x9000 on a single ``exchange`` is reported back
as ``"error"`` and the session continues. Within ``bulk`` a transport failure
ends the session immediately.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

from ..errors import (
    ProtocolViolation,
    RemoteAuthorityError,
    UnsupportedFrame,
    UnsupportedQuery,
)
from .commands import Command, Response, decode_command

logger = logging.getLogger(__name__)

MAX_NONCE = 0xFFFFFFFF


class DeviceTransport(Protocol):
    def exchange(self, command: Command) -> Response: ...


class RelayChannel(Protocol):
    def recv(self) -> str | bytes: ...

    def send(self, message: str) -> None: ...


class QueryKind(str, Enum):
    """Query kinds a remote authority may send."""

    EXCHANGE = "exchange"
    BULK = "bulk"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str) -> QueryKind:
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class RelayEnvelope:
    """A decoded inbound message."""

    kind: QueryKind
    query: str
    nonce: int
    data: str | list[str] | None
    raw: str


@dataclass(frozen=True)
class RelayOutcome:
    """An outbound reply to an ``exchange`` or ``bulk`` query."""

    nonce: int
    response: str
    data: str = ""

    def to_json(self) -> str:
        return json.dumps(
            {"nonce": self.nonce, "response": self.response, "data": self.data}
        )


def parse_envelope(text: str) -> RelayEnvelope:
    """Decode and validate one inbound JSON envelope.

    Raises:
        ProtocolViolation: If the text is not a JSON object with a string
            ``query``, a u32 ``nonce``, and an optional string or list of
            strings as ``data``.
    """
    try:
        message = json.loads(text)
    except ValueError as e:
        raise ProtocolViolation(f"Relay message is not valid JSON: {e}") from e
    if not isinstance(message, dict):
        raise ProtocolViolation(f"Relay message must be a JSON object: {text}")

    query = message.get("query")
    if not isinstance(query, str):
        raise ProtocolViolation(f"Relay message has no string 'query': {text}")

    nonce = message.get("nonce")
    if isinstance(nonce, bool) or not isinstance(nonce, int) or not 0 <= nonce <= MAX_NONCE:
        raise ProtocolViolation(f"Relay message has an invalid 'nonce': {text}")

    data = message.get("data")
    if isinstance(data, list):
        if not all(isinstance(item, str) for item in data):
            raise ProtocolViolation(f"Relay 'data' list must hold strings: {text}")
    elif data is not None and not isinstance(data, str):
        raise ProtocolViolation(f"Relay 'data' has an unsupported type: {text}")

    return RelayEnvelope(
        kind=QueryKind.parse(query),
        query=query,
        nonce=nonce,
        data=data,
        raw=text,
    )


class RelaySession:
    """Drive one relay session until the remote authority ends it.

    Usage::

        with WebSocketChannel.connect(url) as channel:
            RelaySession(conn, channel).run()

    ``run`` returns normally on a ``success`` query and raises otherwise.
    """

    def __init__(self, transport: DeviceTransport, channel: RelayChannel) -> None:
        self._transport = transport
        self._channel = channel
        self._handlers: dict[QueryKind, Callable[[RelayEnvelope], bool]] = {
            QueryKind.EXCHANGE: self._handle_exchange,
            QueryKind.BULK: self._handle_bulk,
            QueryKind.SUCCESS: self._handle_success,
            QueryKind.ERROR: self._handle_error,
            QueryKind.WARNING: self._handle_warning,
            QueryKind.OTHER: self._handle_other,
        }

    def run(self) -> None:
        """Process messages until a terminal query.

        Raises:
            RemoteAuthorityError: On an ``error`` query.
            UnsupportedQuery: On an unknown query kind.
            UnsupportedFrame: On a non-text frame.
            ProtocolViolation: On a malformed envelope.
            MalformedCommand: On an undecodable relayed command.
            TransportError: If the device link fails.
            ChannelError: If the channel fails.
        """
        while True:
            frame = self._channel.recv()
            if not isinstance(frame, str):
                raise UnsupportedFrame(
                    f"Relay channel delivered a non-text frame ({len(frame)} bytes)"
                )
            envelope = parse_envelope(frame)
            logger.debug("Relay query %r nonce=%d", envelope.query, envelope.nonce)
            if self._handlers[envelope.kind](envelope):
                return

    def _reply(self, outcome: RelayOutcome) -> None:
        self._channel.send(outcome.to_json())

    def _handle_exchange(self, envelope: RelayEnvelope) -> bool:
        if not isinstance(envelope.data, str):
            raise ProtocolViolation("A single command is expected in 'exchange' mode")

        command = decode_command(envelope.data)
        response = self._transport.exchange(command)
        if response.ok:
            status = "success"
        else:
            logger.warning(
                "Device rejected relayed command: status 0x%04X (%s), %r",
                response.status,
                response.status_code.name,
                response,
            )
            status = "error"

        self._reply(RelayOutcome(envelope.nonce, status, response.data.hex()))
        return False

    def _handle_bulk(self, envelope: RelayEnvelope) -> bool:
        if not isinstance(envelope.data, list):
            raise ProtocolViolation("A list of commands is expected in 'bulk' mode")

        commands = [decode_command(item) for item in envelope.data if item]
        logger.info("Relaying %d bulk command(s)", len(commands))
        for command in commands:
            response = self._transport.exchange(command)
            if not response.ok:
                logger.warning(
                    "Bulk command returned status 0x%04X (%s)",
                    response.status,
                    response.status_code.name,
                )

        self._reply(RelayOutcome(envelope.nonce, "success", ""))
        return False

    def _handle_success(self, envelope: RelayEnvelope) -> bool:
        logger.info("Relay session completed successfully")
        return True

    def _handle_error(self, envelope: RelayEnvelope) -> bool:
        raise RemoteAuthorityError(envelope.raw)

    def _handle_warning(self, envelope: RelayEnvelope) -> bool:
        logger.warning("Remote authority warning: %s", envelope.raw)
        return False

    def _handle_other(self, envelope: RelayEnvelope) -> bool:
        raise UnsupportedQuery(f"Unsupported relay query {envelope.query!r}: {envelope.raw}")


def run_relay_session(transport: DeviceTransport, channel: RelayChannel) -> None:
    """Convenience wrapper around :class:`RelaySession`."""
    RelaySession(transport, channel).run()
