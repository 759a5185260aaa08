"""High-level device operations: info, app inventory, genuine check, install, open."""

from __future__ import annotations

import logging
from typing import Callable, Iterator

from .config import Settings
from .errors import DeviceStatusError
from .manager_api import ManagerAPI
from .models.catalog import AppDescriptor
from .models.device import DeviceIdentity, InstalledApp
from .protocol.commands import (
    CONTINUE_LIST_APPS,
    GET_VERSION,
    LIST_APPS,
    build_open_app,
)
from .protocol.parser import parse_app_pages, parse_device_identity
from .protocol.relay import DeviceTransport, RelaySession
from .transport.relay_channel import WebSocketChannel, build_relay_url

logger = logging.getLogger(__name__)

GENUINE_ENDPOINT = "genuine"
INSTALL_ENDPOINT = "install"


class DeviceManager:
    """Runs manager operations against one connected device.

    Args:
        transport: Anything with ``exchange(Command) -> Response``.
        api: Metadata-service client.
        settings: Endpoints; defaults to ``api.settings``.
        channel_factory: Opens a relay channel for a URL.
    """

    def __init__(
        self,
        transport: DeviceTransport,
        api: ManagerAPI | None = None,
        settings: Settings | None = None,
        channel_factory: Callable[[str], WebSocketChannel] = WebSocketChannel.connect,
    ) -> None:
        self.transport = transport
        self.api = api or ManagerAPI(settings)
        self.settings = settings or self.api.settings
        self._channel_factory = channel_factory

    def get_device_identity(self) -> DeviceIdentity:
        response = self.transport.exchange(GET_VERSION)
        if not response.ok:
            raise DeviceStatusError(response.status, "get version")
        identity = parse_device_identity(response.data)
        logger.info(
            "Device target 0x%08X firmware %s (bootloader=%s)",
            identity.target_id,
            identity.version,
            identity.is_bootloader,
        )
        return identity

    def _app_pages(self) -> Iterator[bytes]:
        command = LIST_APPS
        while True:
            response = self.transport.exchange(command)
            if not response.ok:
                raise DeviceStatusError(response.status, "list apps")
            yield response.data
            command = CONTINUE_LIST_APPS

    def list_installed_apps(self) -> list[InstalledApp]:
        """Page through the installed app inventory.

        The device may ask the user to confirm the listing.
        """
        logger.info("Querying installed applications; confirm on the device if asked")
        apps = parse_app_pages(self._app_pages())
        logger.info("Found %d installed app(s)", len(apps))
        return apps

    def run_relay(self, endpoint: str, params: dict[str, str]) -> None:
        """Open a relay channel and let the remote authority drive the device."""
        url = build_relay_url(self.settings.socket_url, endpoint, params)
        with self._channel_factory(url) as channel:
            RelaySession(self.transport, channel).run()

    def genuine_check(self, identity: DeviceIdentity | None = None) -> DeviceIdentity:
        """Prove the device is genuine through the remote authority.

        Returns the identity that was checked; raises on any failure.
        """
        identity = identity or self.get_device_identity()
        firmware = self.api.firmware_for_target(identity.target_id, identity.version)
        logger.info("Running genuine check; confirm on the device if asked")
        self.run_relay(
            GENUINE_ENDPOINT,
            {"targetId": str(identity.target_id), "perso": firmware.perso},
        )
        logger.info("Device is genuine")
        return identity

    def install_app(self, app_name: str) -> AppDescriptor:
        """Install ``app_name`` through the remote authority."""
        installed = self.list_installed_apps()
        if any(app.name.lower() == app_name.lower() for app in installed):
            logger.info("%s is already installed; reinstalling", app_name)

        identity = self.get_device_identity()
        app = self.api.find_app(identity.target_id, identity.version, app_name)
        logger.info("Installing %s; confirm on the device if asked", app.version_name)
        self.run_relay(INSTALL_ENDPOINT, app.install_params(identity.target_id))
        logger.info("Installed %s", app.version_name)
        return app

    def open_app(self, app_name: str) -> None:
        """Launch an installed app by name."""
        logger.info("Opening %s; confirm on the device if asked", app_name)
        response = self.transport.exchange(build_open_app(app_name))
        if not response.ok:
            raise DeviceStatusError(response.status, f"open app {app_name!r}")
