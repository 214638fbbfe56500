"""
App use cases — install or remove the stock app, quick fix, update check.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from modpatcher.core.domain.version import compare_versions
from modpatcher.core.engine.operation_lock import OperationBusyError
from modpatcher.core.services.core_mods import FetchJson
from modpatcher.core.services.device import DeviceError
from modpatcher.core.services.http import FetchError, get_json
from modpatcher.core.session import Session
from modpatcher.core.use_cases.audit_helpers import record_operation

logger = logging.getLogger(__name__)


@dataclass
class AppOpResult:
    operation: str
    ok: bool = False
    detail: str = ""
    error: str | None = None
    disconnection: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"operation": self.operation, "ok": self.ok}
        if self.detail:
            data["detail"] = self.detail
        if self.error:
            data["error"] = self.error
        if self.disconnection:
            data["disconnection"] = self.disconnection
        return data


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _fail(result: AppOpResult, e: Exception) -> None:
    result.error = str(e)
    if isinstance(e, DeviceError) and e.disconnection:
        result.disconnection = e.disconnection.value


def install_app(session: Session, source: str) -> AppOpResult:
    """Install an APK from a local file or a URL, replacing any installed copy."""
    result = AppOpResult(operation="app-install")
    started = time.monotonic()
    try:
        session.ensure_loaded()
        with session.lock.operation("app-install"):
            if _is_url(source):
                apk = session.download(source, session.temp_dir / "download.apk")
                downloaded = apk
            else:
                apk = Path(source)
                downloaded = None
                if not apk.is_file():
                    raise FileNotFoundError(f"No such file: {source}")

            try:
                if session.installed_app is not None:
                    session.device.uninstall_package(session.app_id)
                    session.installed_app = None
                session.device.install_apk(apk)
                session.installed_app = session.probe()
            finally:
                if downloaded is not None:
                    downloaded.unlink(missing_ok=True)
    except OperationBusyError as e:
        result.error = str(e)
        return result
    except (DeviceError, FetchError, FileNotFoundError) as e:
        _fail(result, e)
    else:
        result.ok = True
        app = session.installed_app
        result.detail = f"{app.package_id} {app.version}" if app else ""

    record_operation(
        session, "app-install", "ok" if result.ok else "failed", started,
        errors=[result.error] if result.error else [],
        context={"source": source},
    )
    return result


def uninstall_app(session: Session) -> AppOpResult:
    """Uninstall the target app from the device."""
    result = AppOpResult(operation="app-uninstall")
    started = time.monotonic()
    try:
        app = session.ensure_loaded()
        if app is None:
            result.error = f"{session.app_id} is not installed"
            return result
        with session.lock.operation("app-uninstall"):
            session.device.uninstall_package(session.app_id)
            session.installed_app = None
    except OperationBusyError as e:
        result.error = str(e)
        return result
    except DeviceError as e:
        _fail(result, e)
    else:
        result.ok = True

    record_operation(
        session, "app-uninstall", "ok" if result.ok else "failed", started,
        errors=[result.error] if result.error else [],
    )
    return result


def quick_fix(session: Session) -> AppOpResult:
    """Restart the device bridge and clear scratch folders."""
    result = AppOpResult(operation="quick-fix")
    started = time.monotonic()
    try:
        with session.lock.operation("quick-fix", device_unavailable=True):
            session.device.kill_server()
            session.clear_scratch()
    except OperationBusyError as e:
        result.error = str(e)
        return result
    except DeviceError as e:
        _fail(result, e)
    else:
        result.ok = True
        result.detail = "Device bridge restarted, temporary files cleared"

    record_operation(
        session, "quick-fix", "ok" if result.ok else "failed", started,
        errors=[result.error] if result.error else [],
    )
    return result


# ── Update check ────────────────────────────────────────────────


@dataclass
class UpdateCheckResult:
    current: str
    latest: str | None = None
    url: str | None = None
    update_available: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current,
            "latest": self.latest,
            "url": self.url,
            "update_available": self.update_available,
            "error": self.error,
        }


def check_update(
    current_version: str,
    release_url: str | None,
    fetch_json: FetchJson | None = None,
    timeout: float | None = None,
) -> UpdateCheckResult:
    """Compare the latest published release with the running version.

    ``release_url`` returns a release document with ``tag_name`` (and
    optionally ``html_url``). Network errors are reported, not raised.
    """
    result = UpdateCheckResult(current=current_version)
    if not release_url:
        result.error = "No update URL configured"
        return result

    try:
        if fetch_json is not None:
            data = fetch_json(release_url, None)
        else:
            data = get_json(release_url, timeout=timeout)
    except FetchError as e:
        logger.warning("Update check failed: %s", e)
        result.error = str(e)
        return result

    if not isinstance(data, dict) or not data.get("tag_name"):
        result.error = "Release information has no tag_name"
        return result

    result.latest = str(data["tag_name"])
    result.url = data.get("html_url")
    order = compare_versions(result.latest, current_version)
    if order is None:
        result.error = f"Cannot compare versions {result.latest!r} and {current_version!r}"
        return result
    result.update_available = order > 0
    return result
