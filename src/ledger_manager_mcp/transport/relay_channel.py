"""Websocket channel to the remote authority."""

from __future__ import annotations

import logging
from urllib.parse import urlencode

from websockets.exceptions import WebSocketException
from websockets.sync.client import connect

from ..errors import ChannelError

logger = logging.getLogger(__name__)


def build_relay_url(base_url: str, endpoint: str, params: dict[str, str]) -> str:
    """Build a relay URL with escaped query parameters.

    >>> build_relay_url("wss://host/update", "genuine", {"targetId": "1", "perso": "a b"})
    'wss://host/update/genuine?targetId=1&perso=a+b'
    """
    return f"{base_url.rstrip('/')}/{endpoint}?{urlencode(params)}"


class WebSocketChannel:
    """Blocking text channel over a websocket.

    Usage::

        with WebSocketChannel.connect(url) as channel:
            message = channel.recv()
            channel.send('{"nonce": 1, "response": "success", "data": ""}')
    """

    def __init__(self, connection) -> None:
        self._connection = connection

    @classmethod
    def connect(cls, url: str, open_timeout: float | None = 30.0) -> WebSocketChannel:
        """Open a websocket to ``url``.

        Raises:
            ChannelError: If the connection cannot be established.
        """
        logger.info("Opening relay channel to %s", url.split("?", 1)[0])
        try:
            connection = connect(url, open_timeout=open_timeout, max_size=None)
        except (WebSocketException, OSError, TimeoutError) as e:
            raise ChannelError(f"Could not open relay channel: {e}") from e
        return cls(connection)

    def recv(self) -> str | bytes:
        """Block until the next frame arrives."""
        try:
            return self._connection.recv()
        except (WebSocketException, OSError) as e:
            raise ChannelError(f"Relay channel read failed: {e}") from e

    def send(self, message: str) -> None:
        try:
            self._connection.send(message)
        except (WebSocketException, OSError) as e:
            raise ChannelError(f"Relay channel write failed: {e}") from e

    def close(self) -> None:
        try:
            self._connection.close()
        except (WebSocketException, OSError) as e:
            logger.warning("Error closing relay channel: %s", e)

    def __enter__(self) -> WebSocketChannel:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
