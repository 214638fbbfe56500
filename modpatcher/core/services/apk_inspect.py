"""
APK inspection — read what the startup probe needs from a pulled APK.

Only the archive's entry names are looked at:
    modded    any configured modded tag is present
    32-bit    native libs for armeabi-v7a but none for arm64-v8a
    tampered  any configured tamper marker is present
"""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

LIB_32 = "lib/armeabi-v7a/"
LIB_64 = "lib/arm64-v8a/"


class ApkInspectionError(Exception):
    """The APK could not be read as an archive."""


@dataclass
class ApkInfo:
    is_modded: bool = False
    is_32bit: bool = False
    tampered: bool = False


def inspect_apk(
    path: Path,
    modded_tags: list[str],
    tamper_markers: list[str] | None = None,
) -> ApkInfo:
    try:
        with zipfile.ZipFile(path) as zf:
            names = zf.namelist()
    except (zipfile.BadZipFile, OSError) as e:
        raise ApkInspectionError(f"Cannot read {path.name}: {e}") from e

    entries = set(names)
    has_32 = any(n.startswith(LIB_32) for n in names)
    has_64 = any(n.startswith(LIB_64) for n in names)

    info = ApkInfo(
        is_modded=any(tag in entries for tag in modded_tags),
        is_32bit=has_32 and not has_64,
        tampered=any(marker in entries for marker in (tamper_markers or [])),
    )
    logger.debug("Inspected %s: %s", path.name, info)
    return info
