"""
File copy destinations — where non-mod files (songs, sabers, hats ...) go.

A destination is a plain record: the extensions it accepts and the
function that performs the copy. The table is built from the
``file_copies`` section of the config; tests register their own.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from modpatcher.core.models.config import FileCopySpec
from modpatcher.core.services.device import DeviceBridge

logger = logging.getLogger(__name__)


def _extension(path: Path) -> str:
    return path.suffix.lower().lstrip(".")


@dataclass(frozen=True)
class FileCopyDestination:
    """One registered copy target."""

    name: str
    extensions: frozenset[str]
    perform_copy: Callable[[Path], None] = field(compare=False)
    name_plural: str = ""

    def matches(self, path: Path) -> bool:
        return _extension(path) in self.extensions


class FileCopyTable:
    """Registered destinations, looked up by file extension."""

    def __init__(self, destinations: Iterable[FileCopyDestination] = ()):
        self._destinations: list[FileCopyDestination] = list(destinations)

    @property
    def destinations(self) -> list[FileCopyDestination]:
        return list(self._destinations)

    def register(self, destination: FileCopyDestination) -> None:
        self._destinations.append(destination)

    def get(self, name: str) -> FileCopyDestination | None:
        for dest in self._destinations:
            if dest.name == name:
                return dest
        return None

    def matching(self, path: Path) -> list[FileCopyDestination]:
        """Destinations that accept this file's extension, in table order."""
        return [d for d in self._destinations if d.matches(path)]

    @classmethod
    def from_config(
        cls,
        specs: Iterable[FileCopySpec],
        device: DeviceBridge,
        app_id: str,
    ) -> FileCopyTable:
        """Build device-push destinations from config records."""
        table = cls()
        for spec in specs:
            remote_dir = spec.destination.format(app_id=app_id)
            table.register(
                FileCopyDestination(
                    name=spec.name,
                    name_plural=spec.name_plural or f"{spec.name}s",
                    extensions=frozenset(spec.extensions),
                    perform_copy=_device_push(device, remote_dir),
                )
            )
        return table


def _device_push(device: DeviceBridge, remote_dir: str) -> Callable[[Path], None]:
    def copy(path: Path) -> None:
        device.make_dir(remote_dir)
        device.push_file(path, f"{remote_dir}/{path.name}")
        logger.info("Copied %s to %s", path.name, remote_dir)
    return copy
