"""
Mod registry — the authoritative set of known mods and libraries.

Responsibilities:
    - Parse archives into Mod entries (``parse_mod``)
    - Push and remove payload files on the device (``install``/``uninstall``)
    - Keep exactly one entry per mod id
    - Persist to .state/mods-<app_id>.json (``save_mods``/``load_mods``)

The in-memory list is the source of truth while the process runs.
A failed save is logged and reported, never rolled back.

Accepted archives are copied into .state/archives/ so an entry can be
installed again later (self-heal, re-enable) without the original file.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import uuid
import zipfile
from collections.abc import Callable
from pathlib import Path

from modpatcher.core.models.app import InstalledApp
from modpatcher.core.models.config import AppConfig
from modpatcher.core.models.mod import Mod, ModManifest
from modpatcher.core.models.state import RegistryState
from modpatcher.core.persistence.state_file import load_registry, registry_path, save_registry
from modpatcher.core.services.device import DeviceBridge, DeviceError

logger = logging.getLogger(__name__)

MANIFEST_ENTRY = "mod.json"
MOD_EXTENSION = ".qmod"
SUPPORTED_SCHEMA_MAJORS = frozenset({0, 1})

AppProvider = Callable[[], InstalledApp | None]


# ═══════════════════════════════════════════════════════════════════
#  Errors
# ═══════════════════════════════════════════════════════════════════


class ModError(Exception):
    """Base for mod-related failures."""


class ModParseError(ModError):
    """The file is a mod archive but cannot be used."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"{path.name}: {reason}")
        self.path = path
        self.reason = reason


class InstallationError(ModError):
    """An expected, user-explainable install/uninstall failure."""


class RegistryConsistencyError(ModError):
    """A caller broke a registry invariant (programming error)."""


# ═══════════════════════════════════════════════════════════════════
#  Registry
# ═══════════════════════════════════════════════════════════════════


def _schema_major(raw: str) -> int | None:
    head = raw.strip().split(".", 1)[0]
    return int(head) if head.isdigit() else None


class ModRegistry:
    """Known mods and libraries for the configured app, in load order."""

    def __init__(
        self,
        device: DeviceBridge,
        config: AppConfig,
        state_dir: Path,
        app_provider: AppProvider | None = None,
    ):
        self._device = device
        self._config = config
        self._state_dir = state_dir
        self._app_provider = app_provider
        self._entries: list[Mod] = []
        self._created_at: str | None = None

    # ── Queries ─────────────────────────────────────────────────

    @property
    def path(self) -> Path:
        return registry_path(self._state_dir, self._config.app_id)

    @property
    def archive_dir(self) -> Path:
        return self._state_dir / "archives"

    @property
    def all_mods(self) -> list[Mod]:
        return list(self._entries)

    @property
    def mods(self) -> list[Mod]:
        return [m for m in self._entries if not m.is_library]

    @property
    def libraries(self) -> list[Mod]:
        return [m for m in self._entries if m.is_library]

    def get(self, mod_id: str) -> Mod | None:
        for mod in self._entries:
            if mod.id == mod_id:
                return mod
        return None

    # ── Parsing ─────────────────────────────────────────────────

    def parse_mod(self, path: Path) -> Mod | None:
        """Read an archive's manifest.

        Returns:
            A Mod (not yet added to the registry), or None when the file
            is not a mod archive at all.

        Raises:
            ModParseError: For a ``.qmod`` that is not a valid archive, or
                any archive whose ``mod.json`` is unusable.
        """
        qmod_shaped = path.suffix.lower() == MOD_EXTENSION

        if not path.is_file() or not zipfile.is_zipfile(path):
            if qmod_shaped:
                raise ModParseError(path, "not a valid archive")
            return None

        try:
            with zipfile.ZipFile(path) as zf:
                names = set(zf.namelist())
                if MANIFEST_ENTRY not in names:
                    if qmod_shaped:
                        raise ModParseError(path, f"archive has no {MANIFEST_ENTRY}")
                    return None
                raw = zf.read(MANIFEST_ENTRY)
        except (zipfile.BadZipFile, OSError) as e:
            raise ModParseError(path, f"unreadable archive: {e}") from e

        try:
            manifest = ModManifest.model_validate(json.loads(raw))
        except ValueError as e:
            # ValidationError is a ValueError, as is JSONDecodeError
            raise ModParseError(path, f"invalid {MANIFEST_ENTRY}: {e}") from e

        major = _schema_major(manifest.schema_version)
        if major not in SUPPORTED_SCHEMA_MAJORS:
            raise ModParseError(path, f"unsupported schema version {manifest.schema_version}")

        if manifest.package_id and manifest.package_id != self._config.app_id:
            raise ModParseError(
                path, f"mod is for {manifest.package_id}, not {self._config.app_id}"
            )

        missing = [f for f in (*manifest.mod_files, *manifest.library_files) if f not in names]
        if missing:
            raise ModParseError(path, f"listed files missing from archive: {', '.join(missing)}")

        cached = self._cache_archive(path, manifest.id)
        logger.info("Parsed mod %s v%s from %s", manifest.id, manifest.version, path.name)
        return Mod.from_manifest(manifest, archive=str(cached), position=len(self._entries))

    def _cache_archive(self, path: Path, mod_id: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9._-]", "_", mod_id)
        self.archive_dir.mkdir(parents=True, exist_ok=True)
        target = self.archive_dir / f"{safe}-{uuid.uuid4().hex[:8]}{MOD_EXTENSION}"
        shutil.copyfile(path, target)
        return target

    # ── Membership ──────────────────────────────────────────────

    def add(self, mod: Mod) -> None:
        """Accept a parsed mod into the registry.

        Raises:
            RegistryConsistencyError: If an entry with that id exists.
        """
        if self.get(mod.id) is not None:
            raise RegistryConsistencyError(f"Mod '{mod.id}' is already registered")
        mod.position = len(self._entries)
        self._entries.append(mod)

    def delete_mod(self, mod: Mod) -> None:
        """Remove an uninstalled mod and its cached archive.

        Raises:
            RegistryConsistencyError: If the mod is still installed or unknown.
        """
        if mod.is_installed:
            raise RegistryConsistencyError(
                f"Cannot delete '{mod.id}' while it is installed; uninstall it first"
            )
        if self.get(mod.id) is not mod:
            raise RegistryConsistencyError(f"Mod '{mod.id}' is not registered")

        self._entries = [e for e in self._entries if e is not mod]
        for index, entry in enumerate(self._entries):
            entry.position = index
        if mod.archive:
            Path(mod.archive).unlink(missing_ok=True)
        logger.info("Deleted mod %s", mod.id)

    def discard(self, mod: Mod) -> None:
        """Drop the cached archive of a parsed mod that was never added."""
        if self.get(mod.id) is mod:
            raise RegistryConsistencyError(f"Mod '{mod.id}' is registered; use delete_mod")
        if mod.archive:
            Path(mod.archive).unlink(missing_ok=True)

    # ── Device payload ──────────────────────────────────────────

    def _require_modded_app(self) -> None:
        if self._app_provider is None:
            return
        app = self._app_provider()
        if app is None:
            raise InstallationError(f"{self._config.app_id} is not installed")
        if not app.is_modded:
            raise InstallationError(f"{self._config.app_id} must be patched before installing mods")

    def _targets(self, mod: Mod) -> list[tuple[str, str]]:
        """(archive entry, device path) for every payload file."""
        mods_dir = self._config.mods_dir()
        libs_dir = self._config.libs_dir()
        return [
            *((f, f"{mods_dir}/{Path(f).name}") for f in mod.mod_files),
            *((f, f"{libs_dir}/{Path(f).name}") for f in mod.library_files),
        ]

    def install(self, mod: Mod) -> None:
        """Push a mod's payload. No-op if already installed.

        Either every file lands and ``is_installed`` becomes True, or the
        files pushed so far are removed and the entry is left unchanged.

        Raises:
            InstallationError: If the app is not patched, the archive is
                gone, or the device rejected a file.
        """
        if mod.is_installed:
            return
        self._require_modded_app()

        archive = Path(mod.archive)
        if not archive.is_file():
            raise InstallationError(f"Archive for '{mod.id}' is missing: {archive}")

        staging = self._state_dir / "temp" / f"install-{uuid.uuid4().hex[:8]}"
        pushed: list[str] = []
        try:
            with zipfile.ZipFile(archive) as zf:
                if mod.mod_files:
                    self._device.make_dir(self._config.mods_dir())
                if mod.library_files:
                    self._device.make_dir(self._config.libs_dir())
                for entry, remote in self._targets(mod):
                    local = Path(zf.extract(entry, staging))
                    self._device.push_file(local, remote)
                    pushed.append(remote)
        except (DeviceError, zipfile.BadZipFile, KeyError, OSError) as e:
            self._remove_files(pushed)
            raise InstallationError(f"Failed to install '{mod.id}': {e}") from e
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        mod.is_installed = True
        logger.info("Installed %s v%s (%d files)", mod.id, mod.version, len(pushed))

    def uninstall(self, mod: Mod) -> None:
        """Remove a mod's payload. No-op if not installed.

        Raises:
            InstallationError: If the device refused to remove a file.
        """
        if not mod.is_installed:
            return
        try:
            for _, remote in self._targets(mod):
                self._device.remove_file(remote)
        except DeviceError as e:
            raise InstallationError(f"Failed to uninstall '{mod.id}': {e}") from e

        mod.is_installed = False
        logger.info("Uninstalled %s", mod.id)

    def _remove_files(self, remotes: list[str]) -> None:
        for remote in remotes:
            try:
                self._device.remove_file(remote)
            except DeviceError as e:
                logger.warning("Could not clean up %s: %s", remote, e)

    # ── Persistence ─────────────────────────────────────────────

    def load_mods(self) -> None:
        """Replace the in-memory registry with the persisted one."""
        state = load_registry(self.path)
        if state.app_id and state.app_id != self._config.app_id:
            logger.warning(
                "Registry file %s belongs to %s, ignoring", self.path, state.app_id
            )
            state = RegistryState()
        self._created_at = state.created_at
        self._entries = sorted(state.mods, key=lambda m: m.position)

    def save_mods(self) -> bool:
        """Persist the registry. Returns False (and logs) on failure."""
        state = RegistryState(app_id=self._config.app_id, mods=self._entries)
        if self._created_at:
            state.created_at = self._created_at
        try:
            save_registry(state, self.path)
        except OSError as e:
            logger.error("Mods could not be saved: %s", e)
            return False
        self._created_at = state.created_at
        return True

    def reset(self) -> None:
        """Forget all entries. Device payload is untouched."""
        self._entries = []
        self._created_at = None
