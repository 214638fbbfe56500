"""
Device bridge — typed operations on top of the ``adb`` adapter.

The adapter runs commands and captures output; this module decides
what that output means. Only a handful of failure signatures are
recognized (no device, offline, unauthorized, several devices, and
``pm``'s ``Failure [...]`` lines). Everything else is reported as a
plain ``DeviceError`` carrying the captured output.
"""

from __future__ import annotations

import logging
import re
from enum import StrEnum
from pathlib import Path

from modpatcher.adapters.registry import AdapterRegistry, new_action
from modpatcher.core.models.action import Receipt

logger = logging.getLogger(__name__)


class DisconnectionType(StrEnum):
    """Why the device could not be reached."""

    NO_DEVICE = "no_device"
    DEVICE_OFFLINE = "device_offline"
    MULTIPLE_DEVICES = "multiple_devices"
    UNAUTHORIZED = "unauthorized"


class DeviceError(Exception):
    """A device command failed.

    ``disconnection`` is set when the failure matched a known
    connectivity signature, so callers can offer a specific fix.
    """

    def __init__(
        self,
        message: str,
        output: str = "",
        disconnection: DisconnectionType | None = None,
    ):
        super().__init__(message)
        self.output = output
        self.disconnection = disconnection


# Substring → disconnection kind, checked in order.
_DISCONNECTION_SIGNATURES: list[tuple[str, DisconnectionType]] = [
    ("no devices/emulators found", DisconnectionType.NO_DEVICE),
    ("more than one device/emulator", DisconnectionType.MULTIPLE_DEVICES),
    ("unauthorized", DisconnectionType.UNAUTHORIZED),
    ("device offline", DisconnectionType.DEVICE_OFFLINE),
]

_PM_FAILURE = re.compile(r"Failure \[([^\]]*)\]")
_VERSION_NAME = re.compile(r"versionName=(\S+)")


def classify_disconnection(output: str) -> DisconnectionType | None:
    """Map command output to a disconnection kind, if it matches one."""
    lowered = output.lower()
    for signature, kind in _DISCONNECTION_SIGNATURES:
        if signature in lowered:
            return kind
    return None


class DeviceBridge:
    """Install, uninstall, push and query through the device bridge."""

    ADAPTER = "adb"

    def __init__(self, registry: AdapterRegistry):
        self._registry = registry

    def run(self, *args: str, name: str = "shell") -> str:
        """Run one adb command and return its stdout.

        Raises:
            DeviceError: On a failed receipt or a ``Failure [...]`` line.
        """
        action = new_action(self.ADAPTER, name, args=list(args))
        receipt = self._registry.execute_action(action)
        self._check(receipt, name)
        return receipt.output

    def _check(self, receipt: Receipt, name: str) -> None:
        combined = receipt.combined_output
        if receipt.failed:
            kind = classify_disconnection(combined)
            message = receipt.error or f"adb {name} failed"
            if kind is not None:
                message = f"Device unavailable ({kind.value}): {message}"
            raise DeviceError(message, output=combined, disconnection=kind)

        match = _PM_FAILURE.search(combined)
        if match:
            raise DeviceError(f"adb {name} failed: {match.group(1)}", output=combined)

    # ── Packages ────────────────────────────────────────────────

    def is_installed(self, package_id: str) -> bool:
        output = self.run("shell", "pm", "list", "packages", package_id, name="list-packages")
        return any(line.strip() == f"package:{package_id}" for line in output.splitlines())

    def get_package_version(self, package_id: str) -> str | None:
        """The installed version name, or None if the package is absent."""
        output = self.run("shell", "dumpsys", "package", package_id, name="dumpsys")
        match = _VERSION_NAME.search(output)
        return match.group(1) if match else None

    def get_apk_path(self, package_id: str) -> str:
        output = self.run("shell", "pm", "path", package_id, name="apk-path")
        for line in output.splitlines():
            line = line.strip()
            if line.startswith("package:"):
                return line[len("package:"):]
        raise DeviceError(f"No APK path reported for {package_id}", output=output)

    def pull_apk(self, package_id: str, destination: Path) -> Path:
        """Copy the installed APK of a package to a local path."""
        remote = self.get_apk_path(package_id)
        destination.parent.mkdir(parents=True, exist_ok=True)
        self.run("pull", remote, str(destination), name="pull")
        return destination

    def install_apk(self, apk_path: Path) -> None:
        logger.info("Installing %s", apk_path.name)
        self.run("install", str(apk_path), name="install")

    def uninstall_package(self, package_id: str) -> None:
        logger.info("Uninstalling %s", package_id)
        self.run("uninstall", package_id, name="uninstall")

    # ── Files ───────────────────────────────────────────────────

    def make_dir(self, remote_dir: str) -> None:
        self.run("shell", "mkdir", "-p", remote_dir, name="mkdir")

    def push_file(self, local: Path, remote: str) -> None:
        self.run("push", str(local), remote, name="push")

    def remove_file(self, remote: str) -> None:
        self.run("shell", "rm", "-f", remote, name="remove")

    # ── Server ──────────────────────────────────────────────────

    def kill_server(self) -> None:
        """Stop the adb server. The next command restarts it."""
        self.run("kill-server", name="kill-server")
