"""
Shared test fixtures and configuration.

The device is simulated with ``MockAdapter`` handlers keyed on action
name; ``FakeDevice`` keeps just enough state (installed package, pushed
files) for the services to behave as against a real headset.
"""

import json
import shutil
import zipfile
from pathlib import Path

import pytest

from modpatcher.adapters.base import ExecutionContext
from modpatcher.adapters.mock import MockAdapter
from modpatcher.adapters.registry import AdapterRegistry
from modpatcher.core.models.action import Receipt
from modpatcher.core.models.config import AppConfig
from modpatcher.core.prompter import AutoPrompter
from modpatcher.core.services.http import FetchError
from modpatcher.core.session import Session

APP_ID = "com.beatgames.beatsaber"
MANIFEST_URL = "https://coremods.test/core_mods.json"
MIRROR_URL = "https://coremods.test/mirrors.json"


# ── Archives ────────────────────────────────────────────────────


def build_qmod(
    path: Path,
    mod_id: str,
    version: str = "1.0.0",
    *,
    package_id: str | None = APP_ID,
    package_version: str | None = None,
    mod_files: tuple[str, ...] | None = None,
    library_files: tuple[str, ...] = (),
    is_library: bool = False,
    schema: str = "1.0.0",
    omit_files: tuple[str, ...] = (),
) -> Path:
    """Write a mod archive. Files in ``omit_files`` are listed but left out."""
    if mod_files is None:
        mod_files = (f"lib{mod_id.lower()}.so",)
    manifest = {
        "_QPVersion": schema,
        "id": mod_id,
        "name": mod_id,
        "author": "tester",
        "version": version,
        "isLibrary": is_library,
        "modFiles": list(mod_files),
        "libraryFiles": list(library_files),
    }
    if package_id is not None:
        manifest["packageId"] = package_id
    if package_version is not None:
        manifest["packageVersion"] = package_version

    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("mod.json", json.dumps(manifest))
        for name in (*mod_files, *library_files):
            if name not in omit_files:
                zf.writestr(name, b"\x7fELF" + name.encode())
    return path


def build_apk(
    path: Path,
    *,
    modded: bool = False,
    lib32: bool = False,
    lib64: bool = True,
    extra: tuple[str, ...] = (),
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("AndroidManifest.xml", b"<manifest/>")
        zf.writestr("classes.dex", b"dex")
        if lib64:
            zf.writestr("lib/arm64-v8a/libunity.so", b"so")
        if lib32:
            zf.writestr("lib/armeabi-v7a/libunity.so", b"so")
        if modded:
            zf.writestr("modded.json", b"{}")
        for name in extra:
            zf.writestr(name, b"")
    return path


@pytest.fixture
def make_qmod(tmp_path: Path):
    """Factory: ``make_qmod("SongLoader", "1.2.0", package_version=...)``."""
    def factory(mod_id: str, version: str = "1.0.0", filename: str | None = None, **kwargs) -> Path:
        target = tmp_path / "incoming" / (filename or f"{mod_id}-{version}.qmod")
        return build_qmod(target, mod_id, version, **kwargs)
    return factory


# ── Device ──────────────────────────────────────────────────────


class FakeDevice:
    """Device state behind a MockAdapter."""

    def __init__(
        self,
        mock: MockAdapter,
        *,
        installed: bool = True,
        version: str = "1.28.0",
        modded: bool = True,
        lib32: bool = False,
    ):
        self.mock = mock
        self.installed = installed
        self.version = version
        self.modded = modded
        self.lib32 = lib32
        self.files: set[str] = set()

        mock.set_handler("list-packages", self._list_packages)
        mock.set_handler("dumpsys", self._dumpsys)
        mock.set_handler("apk-path", self._apk_path)
        mock.set_handler("pull", self._pull)
        mock.set_handler("install", self._install)
        mock.set_handler("uninstall", self._uninstall)
        mock.set_handler("push", self._push)
        mock.set_handler("remove", self._remove)

    @staticmethod
    def _ok(ctx: ExecutionContext, output: str = "") -> Receipt:
        return Receipt.success(adapter="mock", action_id=ctx.action.id, output=output)

    def _list_packages(self, ctx: ExecutionContext) -> Receipt:
        return self._ok(ctx, f"package:{APP_ID}" if self.installed else "")

    def _dumpsys(self, ctx: ExecutionContext) -> Receipt:
        if not self.installed:
            return self._ok(ctx, "Unable to find package")
        return self._ok(ctx, f"Packages:\n    versionCode=1\n    versionName={self.version}\n")

    def _apk_path(self, ctx: ExecutionContext) -> Receipt:
        return self._ok(ctx, "package:/data/app/base.apk")

    def _pull(self, ctx: ExecutionContext) -> Receipt:
        destination = Path(ctx.action.params["args"][2])
        build_apk(destination, modded=self.modded, lib32=self.lib32, lib64=not self.lib32)
        return self._ok(ctx, "1 file pulled")

    def _install(self, ctx: ExecutionContext) -> Receipt:
        apk = Path(ctx.action.params["args"][1])
        with zipfile.ZipFile(apk) as zf:
            self.modded = "modded.json" in zf.namelist()
        self.installed = True
        return self._ok(ctx, "Success")

    def _uninstall(self, ctx: ExecutionContext) -> Receipt:
        self.installed = False
        return self._ok(ctx, "Success")

    def _push(self, ctx: ExecutionContext) -> Receipt:
        self.files.add(ctx.action.params["args"][2])
        return self._ok(ctx, "1 file pushed")

    def _remove(self, ctx: ExecutionContext) -> Receipt:
        self.files.discard(ctx.action.params["args"][-1])
        return self._ok(ctx)

    def file_names(self) -> set[str]:
        return {Path(f).name for f in self.files}


# ── Remote documents ────────────────────────────────────────────


class FakeRemote:
    """Stands in for HTTP: JSON documents and downloadable files by URL."""

    def __init__(self) -> None:
        self.documents: dict = {}
        self.files: dict[str, Path] = {}
        self.fetched: list[str] = []
        self.downloaded: list[str] = []

    def fetch_json(self, url: str, cancel=None):
        self.fetched.append(url)
        if url not in self.documents:
            raise FetchError(f"GET {url} returned HTTP 404")
        return json.loads(json.dumps(self.documents[url]))

    def download(self, url: str, destination: Path) -> Path:
        self.downloaded.append(url)
        if url not in self.files:
            raise FetchError(f"GET {url} returned HTTP 404")
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.files[url], destination)
        return destination

    def set_core_mods(self, version: str, *entries: tuple[str, str, str | None]) -> None:
        """Publish ``(id, version, downloadLink)`` entries for an app version."""
        manifest = self.documents.setdefault(MANIFEST_URL, {})
        manifest[version] = {
            "lastUpdated": "2023-01-01T00:00:00Z",
            "mods": [
                {"id": mod_id, "version": ver, "downloadLink": link}
                for mod_id, ver, link in entries
            ],
        }


# ── Session ─────────────────────────────────────────────────────


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    path = tmp_path / ".state"
    path.mkdir()
    return path


@pytest.fixture
def mock_adapter() -> MockAdapter:
    return MockAdapter()


@pytest.fixture
def adapters(mock_adapter: MockAdapter) -> AdapterRegistry:
    return AdapterRegistry(mock_adapter=mock_adapter)


@pytest.fixture
def device(mock_adapter: MockAdapter) -> FakeDevice:
    return FakeDevice(mock_adapter)


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def prompter() -> AutoPrompter:
    return AutoPrompter(answer=True)


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        app_id=APP_ID,
        core_mod_manifests={APP_ID: MANIFEST_URL},
        file_copies=[
            {
                "name": "song",
                "extensions": ["zip"],
                "destination": "/sdcard/ModData/{app_id}/Songs",
            },
            {
                "name": "saber",
                "extensions": [".saber"],
                "destination": "/sdcard/ModData/{app_id}/Sabers",
            },
        ],
    )


@pytest.fixture
def session(
    config: AppConfig,
    adapters: AdapterRegistry,
    state_dir: Path,
    prompter: AutoPrompter,
    remote: FakeRemote,
    device: FakeDevice,
) -> Session:
    """A session against a patched 1.28.0 install, not yet loaded."""
    return Session(
        config,
        adapters,
        state_dir,
        prompter=prompter,
        fetch_json=remote.fetch_json,
        download=remote.download,
    )
