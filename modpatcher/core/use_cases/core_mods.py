"""
Core-mods use case — check (and optionally remediate) required mods.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from modpatcher.core.engine.operation_lock import OperationBusyError
from modpatcher.core.services.device import DeviceError
from modpatcher.core.services.reconciler import ReconcileOutcome, ReconcileResult
from modpatcher.core.session import Session
from modpatcher.core.use_cases.audit_helpers import record_operation


@dataclass
class CoreModsResult:
    app_version: str = ""
    manifest_refreshed: bool = False
    result: ReconcileResult | None = None
    error: str | None = None

    @property
    def outcome(self) -> ReconcileOutcome | None:
        return self.result.outcome if self.result else None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        data: dict = {
            "app_version": self.app_version,
            "manifest_refreshed": self.manifest_refreshed,
        }
        if self.result:
            data.update(self.result.to_dict())
        return data


def check_core_mods(session: Session) -> CoreModsResult:
    """Refresh the manifest and reconcile the registry against it."""
    result = CoreModsResult()
    started = time.monotonic()

    try:
        app = session.ensure_loaded()
    except (OperationBusyError, DeviceError) as e:
        result.error = str(e)
        return result

    if app is None:
        result.error = f"{session.app_id} is not installed"
        return result
    if not app.is_modded:
        result.error = f"{session.app_id} is not patched yet"
        return result

    result.app_version = app.version
    result.manifest_refreshed = session.manifest.refresh()

    try:
        with session.lock.operation("coremods"):
            result.result = session.reconciler.reconcile(app.version, session.prompter)
    except OperationBusyError as e:
        result.error = str(e)
        return result

    reconcile = result.result
    remediation = reconcile.remediation
    errors = list(reconcile.check.errors.values())
    if remediation:
        errors += [f"{mod_id}: {msg}" for mod_id, msg in remediation.failed.items()]
    record_operation(
        session,
        "coremods",
        reconcile.outcome.value,
        started,
        items_total=len(reconcile.check.missing),
        items_succeeded=len(remediation.installed) if remediation else 0,
        items_failed=len(remediation.failed) if remediation else 0,
        errors=errors,
        context={
            "removed_outdated": reconcile.check.removed_outdated,
            "healed": reconcile.check.healed,
        },
    )
    return result
