"""Runtime settings: service endpoints, provider, and USB identifiers.

Defaults are module constants; each can be overridden through an
environment variable read by :meth:`Settings.from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_API_URL = "https://manager.api.live.ledger.com/api"
DEFAULT_API_V2_URL = "https://manager.api.live.ledger.com/api/v2"
DEFAULT_SOCKET_URL = "wss://scriptrunner.api.live.ledger.com/update"
DEFAULT_PROVIDER = 1
DEFAULT_LIVE_COMMON_VERSION = "34.0.0"
DEFAULT_HTTP_TIMEOUT = 30.0

ENV_PREFIX = "LEDGER_MANAGER_"


@dataclass(frozen=True)
class Settings:
    """Endpoints and identifiers used outside the device protocol."""

    api_url: str = DEFAULT_API_URL
    api_v2_url: str = DEFAULT_API_V2_URL
    socket_url: str = DEFAULT_SOCKET_URL
    provider: int = DEFAULT_PROVIDER
    live_common_version: str = DEFAULT_LIVE_COMMON_VERSION
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        """Build settings from ``LEDGER_MANAGER_*`` environment variables.

        Raises:
            ValueError: If a numeric variable cannot be parsed.
        """
        env = os.environ if environ is None else environ

        def get(name: str, default):
            return env.get(ENV_PREFIX + name, default)

        return cls(
            api_url=get("API_URL", DEFAULT_API_URL).rstrip("/"),
            api_v2_url=get("API_V2_URL", DEFAULT_API_V2_URL).rstrip("/"),
            socket_url=get("SOCKET_URL", DEFAULT_SOCKET_URL).rstrip("/"),
            provider=int(get("PROVIDER", DEFAULT_PROVIDER)),
            live_common_version=get("LIVE_COMMON_VERSION", DEFAULT_LIVE_COMMON_VERSION),
            http_timeout=float(get("HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT)),
        )
