"""Client for the device manager metadata service.

Resolves a device's target id to its device version, fetches the firmware
personalization needed for a genuine check, and lists the app versions that
can be installed on a given target.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from .config import Settings
from .errors import MetadataError
from .models.catalog import AppDescriptor, FirmwareInfo

logger = logging.getLogger(__name__)


class ManagerAPI:
    """Synchronous metadata-service client backed by a ``requests.Session``."""

    def __init__(
        self,
        settings: Settings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.session = session or requests.Session()
        self.session.headers.setdefault("Content-Type", "application/json")

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        params = {"livecommonversion": self.settings.live_common_version}
        params.update(kwargs.pop("params", {}))
        logger.debug("%s %s params=%s", method, url, params)
        try:
            response = self.session.request(
                method, url, params=params, timeout=self.settings.http_timeout, **kwargs
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise MetadataError(f"{method} {url} failed: {e}") from e
        except ValueError as e:
            raise MetadataError(f"{method} {url} returned invalid JSON: {e}") from e

    def get_device_version(self, target_id: int) -> int:
        """Return the device version id for a target id."""
        data = self._request(
            "POST",
            f"{self.settings.api_url}/get_device_version",
            json={"provider": self.settings.provider, "target_id": target_id},
        )
        try:
            return int(data["id"])
        except (KeyError, TypeError, ValueError) as e:
            raise MetadataError(f"Device version response has no id: {data!r}") from e

    def get_firmware_info(self, device_version: int, version_name: str) -> FirmwareInfo:
        """Return firmware metadata for a device version and firmware name."""
        data = self._request(
            "POST",
            f"{self.settings.api_url}/get_firmware_version",
            json={
                "provider": self.settings.provider,
                "device_version": device_version,
                "version_name": version_name,
            },
        )
        if not isinstance(data, dict):
            raise MetadataError(f"Unexpected firmware response: {data!r}")
        return FirmwareInfo.from_dict(data)

    def firmware_for_target(self, target_id: int, version_name: str) -> FirmwareInfo:
        """Resolve the device version, then its firmware metadata."""
        device_version = self.get_device_version(target_id)
        return self.get_firmware_info(device_version, version_name)

    def apps_by_target(self, target_id: int, firmware_version_name: str) -> list[AppDescriptor]:
        """List installable app versions for a target and firmware."""
        data = self._request(
            "GET",
            f"{self.settings.api_v2_url}/apps/by-target",
            params={
                "provider": str(self.settings.provider),
                "target_id": str(target_id),
                "firmware_version_name": firmware_version_name,
            },
        )
        if not isinstance(data, list):
            raise MetadataError(f"Expected a list of apps, got: {type(data).__name__}")
        return [AppDescriptor.from_dict(entry) for entry in data]

    def find_app(
        self, target_id: int, firmware_version_name: str, app_name: str
    ) -> AppDescriptor:
        """Find an installable app by case-insensitive version name."""
        wanted = app_name.lower()
        for app in self.apps_by_target(target_id, firmware_version_name):
            if app.version_name.lower() == wanted:
                return app
        raise MetadataError(f"No installable app named {app_name!r} for this device")
