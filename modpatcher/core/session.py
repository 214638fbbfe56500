"""
Session — one running instance of the tool, wired together.

Owns the operation lock, the installed-app snapshot, the mod registry,
the remote manifest and mirror table, the reconciler and the import
queue. Front-ends build exactly one Session and call use cases with it.

Startup probe:
    load()    probe the device and read the registry (refused while busy)
    reload()  forget registry and installed app, then load again
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from modpatcher.adapters.registry import AdapterRegistry
from modpatcher.core.engine.operation_lock import OperationLock
from modpatcher.core.models.app import InstalledApp
from modpatcher.core.models.config import AppConfig
from modpatcher.core.persistence.audit import AuditWriter
from modpatcher.core.prompter import AutoPrompter, Prompter
from modpatcher.core.services.apk_inspect import ApkInspectionError, inspect_apk
from modpatcher.core.services.core_mods import CoreModManifest, FetchJson, MirrorResolver
from modpatcher.core.services.device import DeviceBridge, DeviceError
from modpatcher.core.services.file_copy import FileCopyTable
from modpatcher.core.services.http import download_file
from modpatcher.core.services.import_queue import ImportQueue
from modpatcher.core.services.mod_registry import ModRegistry
from modpatcher.core.services.reconciler import Downloader, Reconciler
from modpatcher.core.services.toolchain import Toolchain

logger = logging.getLogger(__name__)


class Session:
    def __init__(
        self,
        config: AppConfig,
        adapters: AdapterRegistry,
        state_dir: Path,
        prompter: Prompter | None = None,
        fetch_json: FetchJson | None = None,
        download: Downloader | None = None,
    ):
        self.config = config
        self.adapters = adapters
        self.state_dir = state_dir
        self.prompter = prompter or AutoPrompter()

        self.lock = OperationLock()
        self.device = DeviceBridge(adapters)
        self.toolchain = Toolchain(adapters, config.toolchain)
        self.audit = AuditWriter(state_dir=state_dir)
        self.installed_app: InstalledApp | None = None
        self.loaded = False

        timeout = config.http_timeout
        self.download: Downloader = download or (
            lambda url, dest: download_file(url, dest, timeout=timeout)
        )

        self.mods = ModRegistry(
            self.device, config, state_dir, app_provider=lambda: self.installed_app
        )
        self.manifest = CoreModManifest(
            config.core_mod_manifests, config.app_id, fetch_json=fetch_json, timeout=timeout
        )
        self.mirror = MirrorResolver(
            config.mirror_url,
            refresh_interval=config.mirror_refresh_interval,
            fetch_json=fetch_json,
            timeout=timeout,
        )
        self.reconciler = Reconciler(
            self.mods, self.manifest, self.mirror, self.temp_dir, download=self.download
        )
        self.file_copies = FileCopyTable.from_config(config.file_copies, self.device, config.app_id)
        self.imports = ImportQueue(
            self.lock,
            self.mods,
            self.reconciler,
            self.file_copies,
            self.prompter,
            app_provider=lambda: self.installed_app,
        )

    # ── Scratch folders ─────────────────────────────────────────

    @property
    def temp_dir(self) -> Path:
        return self.state_dir / "temp"

    @property
    def patching_dir(self) -> Path:
        return self.state_dir / "patching"

    def clear_scratch(self) -> None:
        for folder in (self.temp_dir, self.patching_dir):
            shutil.rmtree(folder, ignore_errors=True)

    # ── Target ──────────────────────────────────────────────────

    @property
    def app_id(self) -> str:
        return self.config.app_id

    def set_app_id(self, app_id: str) -> None:
        """Switch target package. Drops everything tied to the old one."""
        with self.lock.operation("retarget"):
            self.config.app_id = app_id
            self.manifest.app_id = app_id
            self.mods.reset()
            self.installed_app = None
            self.loaded = False

    # ── Probe ───────────────────────────────────────────────────

    def probe(self) -> InstalledApp | None:
        """Ask the device about the target package.

        Raises:
            DeviceError: If the device cannot be queried or the APK read.
        """
        app_id = self.config.app_id
        if not self.device.is_installed(app_id):
            logger.info("%s is not installed", app_id)
            return None

        version = self.device.get_package_version(app_id)
        if version is None:
            raise DeviceError(f"Could not read the version of {app_id}")

        apk = self.device.pull_apk(app_id, self.temp_dir / "probe.apk")
        try:
            info = inspect_apk(apk, self.config.modded_tags, self.config.tamper_markers)
        except ApkInspectionError as e:
            raise DeviceError(str(e)) from e
        finally:
            apk.unlink(missing_ok=True)

        app = InstalledApp(
            package_id=app_id,
            version=version,
            is_modded=info.is_modded,
            is_32bit=info.is_32bit,
            tampered=info.tampered,
        )
        logger.info(
            "Found %s %s (modded=%s, 32-bit=%s)", app_id, version, app.is_modded, app.is_32bit
        )
        return app

    def load(self) -> InstalledApp | None:
        """Startup load: probe the device and read the registry.

        Raises:
            OperationBusyError: If something else (e.g. an earlier load) runs.
        """
        with self.lock.operation("load"):
            self.installed_app = self.probe()
            self.mods.load_mods()
            self.loaded = True
        return self.installed_app

    def ensure_loaded(self) -> InstalledApp | None:
        """Run the startup load once."""
        if not self.loaded:
            self.load()
        return self.installed_app

    def reload(self) -> InstalledApp | None:
        """Forget the registry and installed app, then load again."""
        with self.lock.operation("reload"):
            self.mods.reset()
            self.installed_app = None
            self.loaded = False
            self.installed_app = self.probe()
            self.mods.load_mods()
            self.loaded = True
        return self.installed_app
