"""USB HID connection to the hardware wallet.

Supports both ``hidapi`` (preferred) and ``pyusb`` backends.
The device exposes its command interface as a vendor-defined HID
interface (usage page 0xFFA0, interface 0) exchanging 64-byte reports.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import TransportError, TruncatedData
from ..protocol.commands import Command, Response
from ..protocol.framing import HID_REPORT_SIZE, ReportAssembler, build_reports

logger = logging.getLogger(__name__)

VENDOR_ID = 0x2C97
USAGE_PAGE = 0xFFA0
HID_INTERFACE = 0
WRITE_TIMEOUT_MS = 1000
# 0 blocks until the device answers; confirmations on the device can take a while.
READ_TIMEOUT_MS = 0


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int = VENDOR_ID
    product_id: int = 0
    manufacturer: str = ""
    product: str = ""
    path: str = ""


class HIDConnection:
    """Manages the USB HID connection to the device.

    Usage::

        conn = HIDConnection()
        conn.open()
        response = conn.exchange(GET_VERSION)
        conn.close()
    """

    def __init__(self, vendor_id: int = VENDOR_ID) -> None:
        self._vendor_id = vendor_id
        self._device = None
        self._ep_in = None
        self._ep_out = None
        self._backend: str = ""
        self._connected = False
        self._device_info = DeviceInfo(vendor_id=vendor_id)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    def open(self) -> DeviceInfo:
        """Open a connection to the device, trying hidapi first, then pyusb.

        Returns:
            DeviceInfo with USB descriptor information.

        Raises:
            TransportError: If the device cannot be found or opened.
        """
        try:
            return self._open_hidapi()
        except Exception as e:
            logger.debug("hidapi backend failed: %s, trying pyusb", e)

        try:
            return self._open_pyusb()
        except Exception as e:
            raise TransportError(
                f"Could not connect to a device with vendor id "
                f"{self._vendor_id:#06x}. Ensure the device is connected, "
                f"unlocked, and you have permissions. Last error: {e}"
            ) from e

    def _open_hidapi(self) -> DeviceInfo:
        """Open using the hidapi library."""
        import hid

        candidates = [
            d
            for d in hid.enumerate(self._vendor_id, 0)
            if d.get("usage_page") == USAGE_PAGE
            or d.get("interface_number") == HID_INTERFACE
        ]
        if not candidates:
            raise TransportError("Device not found via hidapi")
        entry = candidates[0]

        device = hid.device()
        device.open_path(entry["path"])
        device.set_nonblocking(False)

        self._device = device
        self._backend = "hidapi"
        self._connected = True
        path = entry["path"]
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=entry.get("product_id", 0),
            manufacturer=entry.get("manufacturer_string") or "",
            product=entry.get("product_string") or "",
            path=path.decode(errors="replace") if isinstance(path, bytes) else str(path),
        )

        logger.info(
            "Connected via hidapi: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def _open_pyusb(self) -> DeviceInfo:
        """Open using pyusb + libusb."""
        import usb.core
        import usb.util

        dev = usb.core.find(idVendor=self._vendor_id)
        if dev is None:
            raise TransportError("Device not found via pyusb")

        if dev.is_kernel_driver_active(HID_INTERFACE):
            dev.detach_kernel_driver(HID_INTERFACE)

        usb.util.claim_interface(dev, HID_INTERFACE)
        intf = dev.get_active_configuration()[(HID_INTERFACE, 0)]
        self._ep_in = usb.util.find_descriptor(
            intf,
            custom_match=lambda ep: usb.util.endpoint_direction(ep.bEndpointAddress)
            == usb.util.ENDPOINT_IN,
        )
        self._ep_out = usb.util.find_descriptor(
            intf,
            custom_match=lambda ep: usb.util.endpoint_direction(ep.bEndpointAddress)
            == usb.util.ENDPOINT_OUT,
        )
        if self._ep_in is None or self._ep_out is None:
            usb.util.release_interface(dev, HID_INTERFACE)
            raise TransportError("HID interface has no interrupt endpoints")

        self._device = dev
        self._backend = "pyusb"
        self._connected = True
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=dev.idProduct,
            manufacturer=usb.util.get_string(dev, dev.iManufacturer) or "",
            product=usb.util.get_string(dev, dev.iProduct) or "",
        )

        logger.info(
            "Connected via pyusb: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def close(self) -> None:
        """Close the USB connection."""
        if not self._connected:
            return

        try:
            if self._backend == "hidapi":
                self._device.close()
            elif self._backend == "pyusb":
                import usb.util
                usb.util.release_interface(self._device, HID_INTERFACE)
        except Exception as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._device = None
            self._ep_in = None
            self._ep_out = None
            self._connected = False
            logger.info("Disconnected")

    def write(self, report: bytes) -> int:
        """Write a 64-byte HID report to the device.

        Raises:
            TransportError: If not connected or the write fails.
        """
        if not self._connected:
            raise TransportError("Not connected to device")

        if len(report) != HID_REPORT_SIZE:
            raise ValueError(
                f"HID report must be {HID_REPORT_SIZE} bytes, got {len(report)}"
            )

        try:
            if self._backend == "hidapi":
                # hidapi expects a leading report id byte
                written = self._device.write(b"\x00" + report)
            elif self._backend == "pyusb":
                written = self._ep_out.write(report, timeout=WRITE_TIMEOUT_MS)
            else:
                raise RuntimeError(f"Unknown backend: {self._backend}")
        except (OSError, ValueError) as e:
            raise TransportError(f"HID write failed: {e}") from e

        if written is not None and written < 0:
            raise TransportError("HID write failed")
        return written

    def read(self, timeout_ms: int = READ_TIMEOUT_MS) -> bytes:
        """Read a 64-byte HID report from the device.

        Raises:
            TransportError: If not connected, the read fails, or times out.
        """
        if not self._connected:
            raise TransportError("Not connected to device")

        try:
            if self._backend == "hidapi":
                data = self._device.read(HID_REPORT_SIZE, timeout_ms)
            elif self._backend == "pyusb":
                data = self._ep_in.read(HID_REPORT_SIZE, timeout=timeout_ms)
            else:
                raise RuntimeError(f"Unknown backend: {self._backend}")
        except (OSError, ValueError) as e:
            raise TransportError(f"HID read failed: {e}") from e

        if not data:
            raise TransportError("Timed out waiting for the device")
        return bytes(data)

    def exchange(self, command: Command) -> Response:
        """Send a command and block until the full response arrives.

        Raises:
            TransportError: On any link failure or framing error.
            InvalidCommand: If the command cannot be encoded.
        """
        apdu = command.encode()
        logger.debug("=> %s", apdu.hex())
        for report in build_reports(apdu):
            self.write(report)

        assembler = ReportAssembler()
        while not assembler.complete:
            assembler.feed(self.read())

        raw = assembler.message
        logger.debug("<= %s", raw.hex())
        try:
            return Response.from_bytes(raw)
        except TruncatedData as e:
            raise TransportError(f"Invalid response from device: {e}") from e
