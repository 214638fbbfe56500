"""
Tests for the mod registry — parsing, install/uninstall, persistence.
"""

import zipfile
from pathlib import Path

import pytest

from modpatcher.core.models.action import Receipt
from modpatcher.core.models.app import InstalledApp
from modpatcher.core.models.mod import Mod
from modpatcher.core.models.state import RegistryState
from modpatcher.core.persistence.state_file import save_registry
from modpatcher.core.services.device import DeviceBridge
from modpatcher.core.services.mod_registry import (
    InstallationError,
    ModParseError,
    ModRegistry,
    RegistryConsistencyError,
)

from conftest import APP_ID


@pytest.fixture
def app() -> InstalledApp:
    return InstalledApp(package_id=APP_ID, version="1.28.0", is_modded=True)


@pytest.fixture
def registry(adapters, config, state_dir, device, app) -> ModRegistry:
    return ModRegistry(DeviceBridge(adapters), config, state_dir, app_provider=lambda: app)


class TestParseMod:
    def test_valid(self, registry, make_qmod):
        mod = registry.parse_mod(make_qmod("SongLoader", "1.2.0", package_version="1.28.0"))
        assert mod.id == "SongLoader"
        assert mod.version == "1.2.0"
        assert mod.package_version == "1.28.0"
        assert not mod.is_installed
        assert Path(mod.archive).is_file()
        assert Path(mod.archive).parent == registry.archive_dir
        # Parsing does not register
        assert registry.get("SongLoader") is None

    def test_not_an_archive_returns_none(self, registry, tmp_path):
        path = tmp_path / "cover.png"
        path.write_bytes(b"\x89PNG")
        assert registry.parse_mod(path) is None

    def test_zip_without_manifest_returns_none(self, registry, tmp_path):
        path = tmp_path / "song.zip"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("info.dat", "{}")
        assert registry.parse_mod(path) is None

    def test_qmod_without_manifest_raises(self, registry, tmp_path):
        path = tmp_path / "broken.qmod"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("libx.so", b"")
        with pytest.raises(ModParseError, match="mod.json"):
            registry.parse_mod(path)

    def test_qmod_not_a_zip_raises(self, registry, tmp_path):
        path = tmp_path / "broken.qmod"
        path.write_text("nope")
        with pytest.raises(ModParseError, match="not a valid archive"):
            registry.parse_mod(path)

    def test_invalid_json(self, registry, tmp_path):
        path = tmp_path / "bad.qmod"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("mod.json", "{not json")
        with pytest.raises(ModParseError, match="invalid mod.json"):
            registry.parse_mod(path)

    def test_missing_required_field(self, registry, tmp_path):
        path = tmp_path / "bad.qmod"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("mod.json", '{"_QPVersion": "1.0.0", "id": "x"}')
        with pytest.raises(ModParseError, match="invalid mod.json"):
            registry.parse_mod(path)

    def test_unsupported_schema(self, registry, make_qmod):
        with pytest.raises(ModParseError, match="schema"):
            registry.parse_mod(make_qmod("Future", schema="2.0.0"))

    def test_wrong_package(self, registry, make_qmod):
        with pytest.raises(ModParseError, match="com.other.game"):
            registry.parse_mod(make_qmod("Other", package_id="com.other.game"))

    def test_listed_file_missing(self, registry, make_qmod):
        path = make_qmod("Hollow", mod_files=("libhollow.so",), omit_files=("libhollow.so",))
        with pytest.raises(ModParseError, match="libhollow.so"):
            registry.parse_mod(path)

    def test_no_archive_cached_on_failure(self, registry, make_qmod):
        with pytest.raises(ModParseError):
            registry.parse_mod(make_qmod("Other", package_id="com.other.game"))
        assert not registry.archive_dir.exists() or not any(registry.archive_dir.iterdir())


class TestMembership:
    def test_add_rejects_duplicate_id(self, registry, make_qmod):
        registry.add(registry.parse_mod(make_qmod("A", "1.0.0")))
        with pytest.raises(RegistryConsistencyError):
            registry.add(registry.parse_mod(make_qmod("A", "2.0.0")))

    def test_mods_and_libraries_split(self, registry, make_qmod):
        registry.add(registry.parse_mod(make_qmod("A")))
        registry.add(registry.parse_mod(make_qmod("hook", is_library=True)))
        assert [m.id for m in registry.mods] == ["A"]
        assert [m.id for m in registry.libraries] == ["hook"]

    def test_delete_installed_rejected(self, registry, make_qmod):
        mod = registry.parse_mod(make_qmod("A"))
        registry.add(mod)
        registry.install(mod)
        with pytest.raises(RegistryConsistencyError, match="uninstall"):
            registry.delete_mod(mod)
        assert registry.get("A") is mod

    def test_delete_removes_archive_and_renumbers(self, registry, make_qmod):
        a = registry.parse_mod(make_qmod("A"))
        registry.add(a)
        b = registry.parse_mod(make_qmod("B"))
        registry.add(b)
        registry.delete_mod(a)
        assert registry.get("A") is None
        assert not Path(a.archive).exists()
        assert b.position == 0

    def test_delete_unknown_rejected(self, registry, make_qmod):
        mod = registry.parse_mod(make_qmod("A"))
        with pytest.raises(RegistryConsistencyError, match="not registered"):
            registry.delete_mod(mod)

    def test_discard(self, registry, make_qmod):
        mod = registry.parse_mod(make_qmod("A"))
        registry.discard(mod)
        assert not Path(mod.archive).exists()


class TestInstall:
    def test_pushes_files_to_mod_and_lib_dirs(self, registry, device, make_qmod, config):
        mod = registry.parse_mod(
            make_qmod("A", mod_files=("liba.so",), library_files=("libhook.so",))
        )
        registry.add(mod)
        registry.install(mod)
        assert mod.is_installed
        assert device.files == {
            f"{config.mods_dir()}/liba.so",
            f"{config.libs_dir()}/libhook.so",
        }

    def test_install_is_idempotent(self, registry, device, make_qmod):
        mod = registry.parse_mod(make_qmod("A"))
        registry.add(mod)
        registry.install(mod)
        pushes = len(device.mock.calls("push"))
        registry.install(mod)
        assert len(device.mock.calls("push")) == pushes

    def test_failed_push_cleans_up(self, registry, device, make_qmod):
        mod = registry.parse_mod(make_qmod("A", mod_files=("one.so", "two.so")))
        registry.add(mod)

        original = device._push
        calls = []

        def flaky(ctx):
            calls.append(ctx)
            if len(calls) == 2:
                return Receipt.failure(adapter="mock", action_id=ctx.action.id, error="No space left")
            return original(ctx)

        device.mock.set_handler("push", flaky)
        with pytest.raises(InstallationError, match="No space left"):
            registry.install(mod)
        assert not mod.is_installed
        assert device.files == set()

    def test_requires_patched_app(self, registry, app, make_qmod):
        app.is_modded = False
        mod = registry.parse_mod(make_qmod("A"))
        registry.add(mod)
        with pytest.raises(InstallationError, match="patched"):
            registry.install(mod)

    def test_requires_installed_app(self, adapters, config, state_dir, device, make_qmod):
        registry = ModRegistry(DeviceBridge(adapters), config, state_dir, app_provider=lambda: None)
        mod = registry.parse_mod(make_qmod("A"))
        registry.add(mod)
        with pytest.raises(InstallationError, match="not installed"):
            registry.install(mod)

    def test_missing_archive(self, registry, make_qmod):
        mod = registry.parse_mod(make_qmod("A"))
        registry.add(mod)
        Path(mod.archive).unlink()
        with pytest.raises(InstallationError, match="missing"):
            registry.install(mod)

    def test_uninstall_removes_files(self, registry, device, make_qmod):
        mod = registry.parse_mod(make_qmod("A"))
        registry.add(mod)
        registry.install(mod)
        registry.uninstall(mod)
        assert not mod.is_installed
        assert device.files == set()
        # Uninstalling again is a no-op
        removes = len(device.mock.calls("remove"))
        registry.uninstall(mod)
        assert len(device.mock.calls("remove")) == removes


class TestPersistence:
    def test_save_and_load(self, registry, adapters, config, state_dir, make_qmod):
        mod = registry.parse_mod(make_qmod("A", "1.2.0"))
        registry.add(mod)
        registry.install(mod)
        assert registry.save_mods()

        fresh = ModRegistry(DeviceBridge(adapters), config, state_dir)
        fresh.load_mods()
        loaded = fresh.get("A")
        assert loaded.version == "1.2.0"
        assert loaded.is_installed
        assert loaded.archive == mod.archive

    def test_load_ignores_other_app(self, registry, make_qmod):
        stray = RegistryState(app_id="com.other", mods=[Mod(id="A", version="1.0.0")])
        save_registry(stray, registry.path)
        registry.load_mods()
        assert registry.all_mods == []

    def test_save_failure_returns_false(self, registry, make_qmod, monkeypatch):
        registry.add(registry.parse_mod(make_qmod("A")))

        def fail(state, path):
            raise OSError("read-only file system")

        monkeypatch.setattr("modpatcher.core.services.mod_registry.save_registry", fail)
        assert registry.save_mods() is False
        # In-memory state is kept
        assert registry.get("A") is not None

    def test_reset(self, registry, make_qmod):
        registry.add(registry.parse_mod(make_qmod("A")))
        registry.reset()
        assert registry.all_mods == []
