"""MCP server entry point for hardware wallet management.

Exposes tools and resources via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import Settings
from .errors import LedgerManagerError
from .manager import DeviceManager
from .manager_api import ManagerAPI
from .transport.hid_connection import HIDConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "ledger-manager",
    instructions="MCP server for hardware wallet identity, apps, and provisioning",
)

# Global connection state
_connection: HIDConnection | None = None
_manager: DeviceManager | None = None


def _get_manager() -> DeviceManager:
    """Get the manager for the active connection, raising if not connected."""
    if _connection is None or not _connection.connected or _manager is None:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _manager


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect() -> dict[str, Any]:
    """Establish a USB connection to the hardware wallet.

    Auto-discovers the device by USB vendor ID, then reads its identity.
    The device must be unlocked.
    """
    global _connection, _manager
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "product": _connection.device_info.product,
        }

    conn = HIDConnection()
    try:
        info = conn.open()
    except LedgerManagerError as e:
        return {"connected": False, "error": str(e)}

    settings = Settings.from_env()
    _connection = conn
    _manager = DeviceManager(conn, ManagerAPI(settings), settings)

    result: dict[str, Any] = {
        "connected": True,
        "product": info.product,
        "manufacturer": info.manufacturer,
    }
    try:
        result["device"] = _manager.get_device_identity().to_dict()
    except LedgerManagerError as e:
        result["warning"] = f"Connected, but reading identity failed: {e}. Is the device unlocked?"
    return result


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the USB connection to the device."""
    global _connection, _manager
    if _connection is None:
        return {"disconnected": True}
    _connection.close()
    _connection = None
    _manager = None
    return {"disconnected": True}


@mcp.tool()
def get_device_info() -> dict[str, Any]:
    """Retrieve device identity (target id, firmware, secure element, MCU).

    Sends the get-version command and decodes the response.
    """
    manager = _get_manager()
    try:
        return manager.get_device_identity().to_dict()
    except LedgerManagerError as e:
        return {"error": str(e)}


# ─── APP MANAGEMENT TOOLS ────────────────────────────────────────────

@mcp.tool()
def list_apps() -> dict[str, Any]:
    """List applications installed on the device.

    The device may ask for confirmation before answering.
    """
    manager = _get_manager()
    try:
        apps = manager.list_installed_apps()
    except LedgerManagerError as e:
        return {"error": str(e)}
    return {"apps": [app.to_dict() for app in apps], "count": len(apps)}


@mcp.tool()
def genuine_check() -> dict[str, Any]:
    """Verify the device is genuine with the manufacturer's remote authority.

    Confirm the operation on the device when prompted.
    """
    manager = _get_manager()
    try:
        identity = manager.genuine_check()
    except LedgerManagerError as e:
        return {"genuine": False, "error": str(e)}
    return {"genuine": True, "target_id": f"0x{identity.target_id:08X}"}


@mcp.tool()
def install_app(app_name: str) -> dict[str, Any]:
    """Install an application through the remote authority.

    Args:
        app_name: App version name as listed by the metadata service
                  (case-insensitive).
    """
    manager = _get_manager()
    try:
        app = manager.install_app(app_name)
    except LedgerManagerError as e:
        return {"installed": False, "error": str(e)}
    return {"installed": True, "app": app.to_dict()}


@mcp.tool()
def open_app(app_name: str) -> dict[str, Any]:
    """Launch an installed application on the device.

    Args:
        app_name: Exact app name as shown on the device.
    """
    manager = _get_manager()
    try:
        manager.open_app(app_name)
    except LedgerManagerError as e:
        return {"opened": False, "error": str(e)}
    return {"opened": True, "app_name": app_name}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("ledger://device/info")
def resource_device_info() -> str:
    """Identity of the connected device."""
    if _connection is None or not _connection.connected:
        return json.dumps({"connected": False})
    return json.dumps(get_device_info())


@mcp.resource("ledger://device/status")
def resource_device_status() -> str:
    """Connection status."""
    connected = _connection is not None and _connection.connected
    return json.dumps({"connected": connected})


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
