"""
InstalledApp — what the device reports about the target package.

Built by the startup probe, replaced on every reload, dropped on reset.
Only the probe and the patching pipeline write to it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from modpatcher.core.domain.version import SemVer, parse_version


@dataclass
class InstalledApp:
    """The target package currently installed on the device."""

    package_id: str
    version: str                    # raw version name, e.g. "1.28.0_4124311467"
    is_modded: bool = False
    is_32bit: bool = False
    tampered: bool = False

    @property
    def semver(self) -> SemVer:
        """Parsed version.

        Raises:
            VersionParseFailure: If the device reported an unparsable version.
        """
        return parse_version(self.version)

    def to_dict(self) -> dict[str, Any]:
        return {
            "package_id": self.package_id,
            "version": self.version,
            "is_modded": self.is_modded,
            "is_32bit": self.is_32bit,
            "tampered": self.tampered,
        }
