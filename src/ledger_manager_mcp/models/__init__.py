"""Data models for device identity, installed apps, and catalog metadata."""

from .device import DeviceIdentity, InstalledApp
from .catalog import AppDescriptor, FirmwareInfo
