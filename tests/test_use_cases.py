"""
Tests for use cases — the operations front-ends call with a Session.
"""

from pathlib import Path

import pytest

from modpatcher.adapters.mock import MockAdapter
from modpatcher.core.services.reconciler import ReconcileOutcome
from modpatcher.core.session import Session
from modpatcher.core.use_cases.app_ops import (
    check_update,
    install_app,
    quick_fix,
    uninstall_app,
)
from modpatcher.core.use_cases.core_mods import check_core_mods
from modpatcher.core.use_cases.mods import import_files, list_mods, remove_mod, set_mod_installed
from modpatcher.core.use_cases.patch import patch_app
from modpatcher.core.use_cases.status import get_status, reload_session

from conftest import build_apk, build_qmod


def _publish_core(remote, tmp_path: Path, version: str = "1.28.0") -> None:
    url = "https://dl.test/core-1.0.0.qmod"
    remote.files[url] = build_qmod(tmp_path / "served" / "core.qmod", "core", "1.0.0")
    remote.set_core_mods(version, ("core", "1.0.0", url))


# ── Status ──────────────────────────────────────────────────────


class TestStatus:
    def test_probe_and_summary(self, session):
        result = get_status(session)
        assert result.error is None
        assert result.app.version == "1.28.0"
        assert result.app.is_modded
        assert result.lock["state"] == "idle"
        assert result.to_dict()["installed"] is True

    def test_probe_file_removed(self, session):
        get_status(session)
        assert not (session.temp_dir / "probe.apk").exists()

    def test_not_installed(self, session, device):
        device.installed = False
        result = get_status(session)
        assert result.app is None
        assert result.to_dict()["installed"] is False

    def test_disconnection_reported(self, session, mock_adapter):
        mock_adapter.set_failure("list-packages", error="adb: no devices/emulators found")
        result = get_status(session)
        assert result.disconnection == "no_device"
        assert result.to_dict()["disconnection"] == "no_device"

    def test_loads_once(self, session, mock_adapter):
        get_status(session)
        get_status(session)
        assert len(mock_adapter.calls("list-packages")) == 1

    def test_reload_probes_again(self, session, mock_adapter, device):
        get_status(session)
        device.version = "1.29.0"
        result = reload_session(session)
        assert result.app.version == "1.29.0"
        assert len(mock_adapter.calls("list-packages")) == 2

    def test_reports_tool_availability(self, session):
        session.adapters.register(MockAdapter(adapter_name="adb", available=False))
        result = get_status(session)
        assert result.tools["adb"]["available"] is False
        assert result.to_dict()["tools"]["adb"]["type"] == "MockAdapter"

    def test_load_refused_while_busy(self, session):
        with session.lock.operation("patch"):
            result = get_status(session)
        assert "patch" in result.error


# ── Patch ───────────────────────────────────────────────────────


class TestPatch:
    @pytest.fixture(autouse=True)
    def _stock_app(self, device):
        device.modded = False

    def test_patch_then_core_mods(self, session, remote, tmp_path, device):
        _publish_core(remote, tmp_path)
        seen = []

        result = patch_app(session, on_stage=seen.append)

        assert result.ok
        assert result.app.is_modded
        assert result.stages[-1] == "succeeded"
        assert len(seen) == len(result.stages)
        assert result.core_mods.outcome == ReconcileOutcome.REMEDIATED
        assert session.mods.get("core").is_installed
        assert "libcore.so" in device.file_names()

        entry = session.audit.read_all()[-1]
        assert entry.operation_type == "patch"
        assert entry.status == "ok"
        assert entry.context["core_mods"] == "remediated"

    def test_skip_core_mods(self, session, remote, tmp_path):
        _publish_core(remote, tmp_path)
        result = patch_app(session, install_core_mods=False)
        assert result.ok
        assert result.core_mods is None
        assert remote.fetched == []

    def test_already_patched(self, session, device, mock_adapter):
        device.modded = True
        result = patch_app(session)
        assert result.error_kind == "already_patched"
        assert "patch" not in mock_adapter.called_names()
        assert session.audit.read_all() == []

    def test_not_installed(self, session, device):
        device.installed = False
        result = patch_app(session)
        assert result.error_kind == "not_installed"
        assert session.audit.read_all()[-1].status == "failed"

    def test_too_old(self, session, device):
        device.version = "1.10.0"
        assert patch_app(session).error_kind == "too_old"

    def test_32bit_declined(self, session, device, prompter, mock_adapter):
        device.lib32 = True
        prompter.answer = False
        result = patch_app(session)
        assert result.declined
        assert not result.ok
        assert prompter.asked == ["32bit_patch"]
        assert "patch" not in mock_adapter.called_names()
        assert session.audit.read_all()[-1].status == "declined"

    def test_stage_failure(self, session, mock_adapter):
        mock_adapter.set_failure("sign", error="jarsigner failed")
        result = patch_app(session)
        assert result.error_kind == "stage"
        assert result.failed_stage == "signing"
        assert not session.installed_app.is_modded
        assert session.lock.is_free()
        assert session.audit.read_all()[-1].context["failed_stage"] == "signing"

    def test_busy(self, session):
        session.ensure_loaded()
        with session.lock.operation("import"):
            result = patch_app(session)
        assert result.error_kind == "busy"
        assert session.audit.read_all() == []


# ── Mods ────────────────────────────────────────────────────────


class TestModUseCases:
    def test_import_and_audit(self, session, make_qmod, tmp_path):
        notes = tmp_path / "notes.txt"
        notes.write_text("hi")
        result = import_files(session, [make_qmod("A"), notes])

        assert result.summary.total == 2
        assert result.summary.failure_count == 1
        entry = session.audit.read_all()[-1]
        assert entry.operation_type == "import"
        assert entry.status == "partial"
        assert entry.items_failed == 1
        assert entry.errors[0].startswith("notes.txt:")

    def test_import_installs_missing_core_mods(self, session, remote, prompter, make_qmod, tmp_path):
        _publish_core(remote, tmp_path)

        result = import_files(session, [make_qmod("A")])

        assert result.summary.failure_count == 0
        assert prompter.asked == ["install_core_mods"]
        assert session.mods.get("core").is_installed
        assert session.mods.get("A").is_installed

    def test_import_unknown_preferred_type(self, session, make_qmod):
        result = import_files(session, [make_qmod("A")], preferred_type="hat")
        assert result.error == "Unknown file type: hat"

    def test_import_preferred_type(self, session, device, tmp_path):
        path = tmp_path / "favourites.zip"
        path.write_bytes(b"not really a zip")
        result = import_files(session, [path], preferred_type="song")
        assert result.summary.copied == [str(path)]
        assert any(f.endswith("Songs/favourites.zip") for f in device.files)

    def test_disable_enable(self, session, make_qmod, device):
        import_files(session, [make_qmod("A")])

        disabled = set_mod_installed(session, "A", False)
        assert disabled.error is None
        assert not disabled.mod.is_installed
        assert device.files == set()

        enabled = set_mod_installed(session, "A", True)
        assert enabled.mod.is_installed
        assert enabled.saved
        assert "liba.so" in device.file_names()

    def test_unknown_mod(self, session):
        assert set_mod_installed(session, "nope", True).error == "Unknown mod: nope"
        assert remove_mod(session, "nope").error == "Unknown mod: nope"

    def test_enable_on_unpatched_app(self, session, make_qmod, device):
        import_files(session, [make_qmod("A")])
        set_mod_installed(session, "A", False)
        session.installed_app.is_modded = False
        result = set_mod_installed(session, "A", True)
        assert "patched" in result.error

    def test_remove(self, session, make_qmod, device):
        import_files(session, [make_qmod("A")])
        result = remove_mod(session, "A")
        assert result.error is None
        assert session.mods.get("A") is None
        assert device.files == set()

    def test_list_reads_registry_without_device(self, session, make_qmod, config, adapters, state_dir, mock_adapter):
        import_files(session, [make_qmod("A"), make_qmod("hook", is_library=True)])

        fresh = Session(config, adapters, state_dir)
        calls = mock_adapter.call_count
        result = list_mods(fresh)
        assert [m.id for m in result.mods] == ["A"]
        assert [m.id for m in result.libraries] == ["hook"]
        assert mock_adapter.call_count == calls

    def test_failed_replacement_is_persisted(self, session, make_qmod, device, mock_adapter, config, adapters, state_dir):
        import_files(session, [make_qmod("A", "1.0.0")])
        mock_adapter.set_failure("push", error="adb: error: failed to copy")

        result = import_files(session, [make_qmod("A", "2.0.0")])

        assert result.summary.failure_count == 1
        assert device.files == set()
        saved = list_mods(Session(config, adapters, state_dir))
        assert [(m.id, m.version, m.is_installed) for m in saved.mods] == [("A", "2.0.0", False)]
        assert Path(saved.mods[0].archive).is_file()


# ── Core mods ───────────────────────────────────────────────────


class TestCoreModsUseCase:
    def test_remediates(self, session, remote, tmp_path):
        _publish_core(remote, tmp_path)
        result = check_core_mods(session)
        assert result.manifest_refreshed
        assert result.outcome == ReconcileOutcome.REMEDIATED
        assert session.audit.read_all()[-1].status == "remediated"

    def test_compliant_second_time(self, session, remote, tmp_path):
        _publish_core(remote, tmp_path)
        check_core_mods(session)
        assert check_core_mods(session).outcome == ReconcileOutcome.COMPLIANT

    def test_unsupported(self, session, remote):
        remote.set_core_mods("1.27.0")
        assert check_core_mods(session).outcome == ReconcileOutcome.UNSUPPORTED

    def test_manifest_unreachable_uses_cached(self, session):
        result = check_core_mods(session)
        assert not result.manifest_refreshed
        assert result.outcome == ReconcileOutcome.UNSUPPORTED

    def test_requires_patched_app(self, session, device):
        device.modded = False
        assert "not patched" in check_core_mods(session).error

    def test_requires_installed_app(self, session, device):
        device.installed = False
        assert "not installed" in check_core_mods(session).error


# ── App operations ──────────────────────────────────────────────


class TestAppOps:
    def test_install_from_file(self, session, device, tmp_path):
        device.installed = False
        apk = build_apk(tmp_path / "game.apk")

        result = install_app(session, str(apk))

        assert result.ok
        assert session.installed_app is not None
        assert not session.installed_app.is_modded
        assert "1.28.0" in result.detail
        assert session.audit.read_all()[-1].operation_type == "app-install"

    def test_install_replaces_existing(self, session, mock_adapter, tmp_path):
        apk = build_apk(tmp_path / "game.apk")
        assert install_app(session, str(apk)).ok
        names = mock_adapter.called_names()
        assert names.index("uninstall") < names.index("install")

    def test_install_from_url(self, session, device, remote, tmp_path):
        device.installed = False
        url = "https://apks.test/game.apk"
        remote.files[url] = build_apk(tmp_path / "served.apk", modded=True)

        result = install_app(session, url)

        assert result.ok
        assert remote.downloaded == [url]
        assert session.installed_app.is_modded
        assert not (session.temp_dir / "download.apk").exists()

    def test_install_from_url_failure_removes_download(self, session, device, remote, mock_adapter, tmp_path):
        device.installed = False
        url = "https://apks.test/game.apk"
        remote.files[url] = build_apk(tmp_path / "served.apk")
        mock_adapter.set_failure("install", error="Failure [INSTALL_FAILED_INSUFFICIENT_STORAGE]")

        result = install_app(session, url)

        assert not result.ok
        assert not (session.temp_dir / "download.apk").exists()

    def test_install_missing_file(self, session, tmp_path):
        result = install_app(session, str(tmp_path / "nope.apk"))
        assert not result.ok
        assert "No such file" in result.error

    def test_install_device_failure(self, session, mock_adapter, device, tmp_path):
        device.installed = False
        mock_adapter.set_failure("install", error="error: device unauthorized")
        result = install_app(session, str(build_apk(tmp_path / "game.apk")))
        assert not result.ok
        assert result.disconnection == "unauthorized"

    def test_uninstall(self, session, device):
        result = uninstall_app(session)
        assert result.ok
        assert session.installed_app is None
        assert not device.installed

    def test_uninstall_not_installed(self, session, device):
        device.installed = False
        assert "not installed" in uninstall_app(session).error

    def test_quick_fix(self, session, mock_adapter):
        flags = []
        mock_adapter.set_handler("kill-server", lambda ctx: flags.append(session.lock.device_unavailable))
        session.temp_dir.mkdir(parents=True)
        (session.temp_dir / "junk.apk").write_bytes(b"x")

        result = quick_fix(session)

        assert result.ok
        assert flags == [True]
        assert not session.temp_dir.exists()
        assert session.lock.is_free()

    def test_quick_fix_refused_while_busy(self, session):
        with session.lock.operation("patch"):
            assert not quick_fix(session).ok


class TestCheckUpdate:
    def _fetch(self, document):
        def fetch(url, cancel):
            return document
        return fetch

    def test_update_available(self):
        result = check_update(
            "0.1.0",
            "https://releases.test/latest",
            fetch_json=self._fetch({"tag_name": "v0.2.0", "html_url": "https://releases.test/v0.2.0"}),
        )
        assert result.update_available
        assert result.latest == "v0.2.0"
        assert result.url == "https://releases.test/v0.2.0"

    def test_up_to_date(self):
        result = check_update("0.2.0", "https://x", fetch_json=self._fetch({"tag_name": "0.2.0"}))
        assert not result.update_available
        assert result.error is None

    def test_no_url(self):
        assert check_update("0.1.0", None).error == "No update URL configured"

    def test_unparsable_tag(self):
        result = check_update("0.1.0", "https://x", fetch_json=self._fetch({"tag_name": "nightly"}))
        assert not result.update_available
        assert "Cannot compare" in result.error

    def test_fetch_failure_is_soft(self, remote):
        result = check_update("0.1.0", "https://missing.test", fetch_json=remote.fetch_json)
        assert "404" in result.error
