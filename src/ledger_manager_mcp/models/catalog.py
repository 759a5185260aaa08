"""Records returned by the metadata service."""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import MetadataError


@dataclass(frozen=True)
class FirmwareInfo:
    """Firmware metadata needed to open a genuine-check session."""

    perso: str

    @classmethod
    def from_dict(cls, data: dict) -> FirmwareInfo:
        try:
            return cls(perso=str(data["perso"]))
        except (KeyError, TypeError) as e:
            raise MetadataError(f"Firmware info is missing 'perso': {data!r}") from e


@dataclass(frozen=True)
class AppDescriptor:
    """An installable app version for a given device target."""

    version_name: str
    perso: str
    delete_key: str
    firmware: str
    firmware_key: str
    hash: str

    @classmethod
    def from_dict(cls, data: dict) -> AppDescriptor:
        try:
            return cls(
                version_name=str(data["versionName"]),
                perso=str(data["perso"]),
                delete_key=str(data["deleteKey"]),
                firmware=str(data["firmware"]),
                firmware_key=str(data["firmwareKey"]),
                hash=str(data["hash"]),
            )
        except (KeyError, TypeError) as e:
            raise MetadataError(f"Incomplete app descriptor: {e}") from e

    def install_params(self, target_id: int) -> dict[str, str]:
        """Relay URL parameters for installing this app."""
        return {
            "targetId": str(target_id),
            "perso": self.perso,
            "deleteKey": self.delete_key,
            "firmware": self.firmware,
            "firmwareKey": self.firmware_key,
            "hash": self.hash,
        }

    def to_dict(self) -> dict:
        return {
            "version_name": self.version_name,
            "firmware": self.firmware,
            "hash": self.hash,
        }
