"""
Patch use case — preflight, the patching pipeline, then core mods.

This is the top-level orchestrator for making the app moddable:
it takes the operation lock, checks the app, asks about 32-bit builds,
runs every pipeline stage, and finally offers the core mods for the
freshly patched version. The whole run is recorded in the audit ledger.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from modpatcher.core.engine.operation_lock import OperationBusyError
from modpatcher.core.models.app import InstalledApp
from modpatcher.core.services.device import DeviceError
from modpatcher.core.services.patching import (
    AppNotInstalledError,
    AppTamperedError,
    AppTooOldError,
    AppVersionParseError,
    PatchingPipeline,
    PatchingStage,
    PatchingStageError,
    PreflightError,
    preflight,
)
from modpatcher.core.services.reconciler import ReconcileResult
from modpatcher.core.session import Session
from modpatcher.core.use_cases.audit_helpers import record_operation

logger = logging.getLogger(__name__)

# Preflight error → kind shown to front-ends, one per remediation path
PREFLIGHT_KINDS: dict[type[PreflightError], str] = {
    AppNotInstalledError: "not_installed",
    AppTooOldError: "too_old",
    AppTamperedError: "tampered",
    AppVersionParseError: "version_unparsable",
}


@dataclass
class PatchResult:
    app: InstalledApp | None = None
    stages: list[str] = field(default_factory=list)
    failed_stage: str | None = None
    declined: bool = False
    core_mods: ReconcileResult | None = None
    error: str | None = None
    error_kind: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.declined

    def to_dict(self) -> dict:
        result: dict = {"ok": self.ok, "stages": self.stages}
        if self.error:
            result["error"] = self.error
            result["error_kind"] = self.error_kind
        if self.failed_stage:
            result["failed_stage"] = self.failed_stage
        if self.declined:
            result["declined"] = True
        if self.app:
            result["app"] = self.app.to_dict()
        if self.core_mods:
            result["core_mods"] = self.core_mods.to_dict()
        return result


def patch_app(
    session: Session,
    on_stage: Callable[[PatchingStage], None] | None = None,
    install_core_mods: bool = True,
) -> PatchResult:
    """Patch the installed app.

    Args:
        session: A loaded session.
        on_stage: Called on every stage transition.
        install_core_mods: Offer core mods after a successful patch.
    """
    result = PatchResult()
    started = time.monotonic()

    def stage_changed(stage: PatchingStage) -> None:
        result.stages.append(stage.value)
        if on_stage is not None:
            on_stage(stage)

    try:
        session.ensure_loaded()
        with session.lock.operation("patch"):
            _patch_locked(session, result, stage_changed, install_core_mods)
    except OperationBusyError as e:
        result.error = str(e)
        result.error_kind = "busy"
    except PreflightError as e:
        result.error = str(e)
        result.error_kind = PREFLIGHT_KINDS.get(type(e), "preflight")
    except PatchingStageError as e:
        result.error = str(e)
        result.error_kind = "stage"
        result.failed_stage = e.stage.value
    except DeviceError as e:
        result.error = str(e)
        result.error_kind = "device"

    if result.error_kind not in (None, "busy", "already_patched"):
        logger.error("Patch failed: %s", result.error)

    if result.error_kind not in ("busy", "already_patched"):
        record_operation(
            session,
            "patch",
            "declined" if result.declined else ("ok" if result.ok else "failed"),
            started,
            errors=[result.error] if result.error else [],
            context={
                "stages": result.stages,
                "failed_stage": result.failed_stage,
                "error_kind": result.error_kind,
                "core_mods": result.core_mods.outcome.value if result.core_mods else None,
            },
        )
    return result


def _patch_locked(
    session: Session,
    result: PatchResult,
    on_stage: Callable[[PatchingStage], None],
    install_core_mods: bool,
) -> None:
    app = preflight(session.installed_app, session.config.min_app_version)
    result.app = app

    if app.is_modded:
        result.error = f"{app.package_id} is already patched"
        result.error_kind = "already_patched"
        return

    if app.is_32bit and not session.prompter.confirm_32bit_patch():
        logger.info("Patching a 32-bit build was declined")
        result.declined = True
        return

    pipeline = PatchingPipeline(
        app,
        session.device,
        session.toolchain,
        session.patching_dir,
        on_stage=on_stage,
    )
    pipeline.run()

    if install_core_mods:
        session.manifest.refresh()
        result.core_mods = session.reconciler.reconcile(app.version, session.prompter)
