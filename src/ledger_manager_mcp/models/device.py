"""Device identity and installed application records."""

from __future__ import annotations

from dataclasses import dataclass

BOOTLOADER_MASK = 0xF0000000
APPLICATION_PATTERN = 0x30000000


def is_bootloader_target(target_id: int) -> bool:
    """Return True if the target id's high nibble marks bootloader mode."""
    return (target_id & BOOTLOADER_MASK) != APPLICATION_PATTERN


@dataclass(frozen=True)
class DeviceIdentity:
    """Decoded answer to the get-version command."""

    target_id: int
    version: str
    flags: bytes
    is_bootloader: bool
    se_version: str | None
    se_target_id: int
    mcu_version: str | None

    def to_dict(self) -> dict:
        return {
            "target_id": f"0x{self.target_id:08X}",
            "version": self.version,
            "flags": self.flags.hex(),
            "is_bootloader": self.is_bootloader,
            "se_version": self.se_version,
            "se_target_id": f"0x{self.se_target_id:08X}",
            "mcu_version": self.mcu_version,
        }


@dataclass(frozen=True)
class InstalledApp:
    """One entry of the installed application inventory."""

    name: str
    hash: bytes
    hash_code_data: bytes
    blocks: int
    flags: int

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "hash": self.hash.hex(),
            "hash_code_data": self.hash_code_data.hex(),
            "blocks": self.blocks,
            "flags": self.flags,
        }

    def __repr__(self) -> str:
        return (
            f"InstalledApp(name={self.name!r}, blocks={self.blocks}, "
            f"flags=0x{self.flags:04X}, hash={self.hash.hex()[:16]}...)"
        )
