"""
Tests for the device bridge — output interpretation and disconnections.
"""

from pathlib import Path

import pytest

from modpatcher.adapters.mock import MockAdapter
from modpatcher.adapters.registry import AdapterRegistry
from modpatcher.core.models.action import Receipt
from modpatcher.core.services.device import (
    DeviceBridge,
    DeviceError,
    DisconnectionType,
    classify_disconnection,
)


def _bridge() -> tuple[DeviceBridge, MockAdapter]:
    mock = MockAdapter()
    return DeviceBridge(AdapterRegistry(mock_adapter=mock)), mock


def _reply(mock: MockAdapter, name: str, output: str) -> None:
    mock.set_handler(
        name, lambda ctx: Receipt.success(adapter="mock", action_id=ctx.action.id, output=output)
    )


class TestClassifyDisconnection:
    @pytest.mark.parametrize(
        "output, kind",
        [
            ("adb: no devices/emulators found", DisconnectionType.NO_DEVICE),
            ("adb: error: more than one device/emulator", DisconnectionType.MULTIPLE_DEVICES),
            ("error: device unauthorized.\nThis adb server's $ADB_VENDOR_KEYS",
             DisconnectionType.UNAUTHORIZED),
            ("error: device offline", DisconnectionType.DEVICE_OFFLINE),
        ],
    )
    def test_signatures(self, output, kind):
        assert classify_disconnection(output) == kind

    def test_unrelated_output(self):
        assert classify_disconnection("Permission denied") is None


class TestRun:
    def test_failed_receipt_raises_with_disconnection(self):
        bridge, mock = _bridge()
        mock.set_failure("install", error="adb: no devices/emulators found")
        with pytest.raises(DeviceError) as exc:
            bridge.install_apk(Path("app.apk"))
        assert exc.value.disconnection == DisconnectionType.NO_DEVICE
        assert "no devices" in exc.value.output

    def test_plain_failure_has_no_disconnection(self):
        bridge, mock = _bridge()
        mock.set_failure("push", error="remote couldn't create file: Permission denied")
        with pytest.raises(DeviceError) as exc:
            bridge.push_file(Path("a.so"), "/sdcard/a.so")
        assert exc.value.disconnection is None

    def test_pm_failure_line_raises(self):
        bridge, mock = _bridge()
        _reply(mock, "install", "Performing Streamed Install\nFailure [INSTALL_FAILED_VERSION_DOWNGRADE]")
        with pytest.raises(DeviceError, match="INSTALL_FAILED_VERSION_DOWNGRADE"):
            bridge.install_apk(Path("app.apk"))


class TestQueries:
    def test_is_installed_exact_match(self):
        bridge, mock = _bridge()
        _reply(mock, "list-packages", "package:com.beatgames.beatsaber.demo\npackage:com.beatgames.beatsaber")
        assert bridge.is_installed("com.beatgames.beatsaber")

    def test_is_installed_prefix_only(self):
        bridge, mock = _bridge()
        _reply(mock, "list-packages", "package:com.beatgames.beatsaber.demo")
        assert not bridge.is_installed("com.beatgames.beatsaber")

    def test_package_version(self):
        bridge, mock = _bridge()
        _reply(mock, "dumpsys", "    versionCode=1130 minSdk=29\n    versionName=1.28.0_4124311467\n")
        assert bridge.get_package_version("com.a") == "1.28.0_4124311467"

    def test_package_version_absent(self):
        bridge, mock = _bridge()
        _reply(mock, "dumpsys", "Unable to find package: com.a")
        assert bridge.get_package_version("com.a") is None

    def test_apk_path(self):
        bridge, mock = _bridge()
        _reply(mock, "apk-path", "package:/data/app/~~x==/com.a-1/base.apk")
        assert bridge.get_apk_path("com.a") == "/data/app/~~x==/com.a-1/base.apk"

    def test_apk_path_missing(self):
        bridge, mock = _bridge()
        with pytest.raises(DeviceError, match="No APK path"):
            bridge.get_apk_path("com.a")

    def test_pull_passes_remote_and_destination(self, tmp_path: Path):
        bridge, mock = _bridge()
        _reply(mock, "apk-path", "package:/data/app/base.apk")
        dest = tmp_path / "sub" / "app.apk"
        assert bridge.pull_apk("com.a", dest) == dest
        assert dest.parent.is_dir()
        assert mock.calls("pull")[0].action.params["args"] == ["pull", "/data/app/base.apk", str(dest)]

    def test_file_commands(self):
        bridge, mock = _bridge()
        bridge.make_dir("/sdcard/mods")
        bridge.remove_file("/sdcard/mods/a.so")
        bridge.kill_server()
        assert mock.called_names() == ["mkdir", "remove", "kill-server"]
        assert mock.calls("remove")[0].action.params["args"][-1] == "/sdcard/mods/a.so"
