"""
Mod use cases — import files, enable/disable and remove mods.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from modpatcher.core.engine.operation_lock import OperationBusyError
from modpatcher.core.models.mod import Mod
from modpatcher.core.services.device import DeviceError
from modpatcher.core.services.import_queue import ImportSummary
from modpatcher.core.services.mod_registry import ModError
from modpatcher.core.session import Session
from modpatcher.core.use_cases.audit_helpers import record_operation

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    summary: ImportSummary | None = None
    merged: bool = False            # handed to a drain already running
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        if self.merged:
            return {"merged": True}
        return self.summary.to_dict() if self.summary else {}


@dataclass
class ModActionResult:
    mod_id: str
    action: str
    mod: Mod | None = None
    saved: bool = True
    error: str | None = None

    def to_dict(self) -> dict:
        result: dict = {"mod_id": self.mod_id, "action": self.action}
        if self.error:
            result["error"] = self.error
            return result
        result["saved"] = self.saved
        if self.mod:
            result["mod"] = self.mod.model_dump(mode="json")
        return result


@dataclass
class ModListResult:
    mods: list[Mod] = field(default_factory=list)
    libraries: list[Mod] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "mods": [m.model_dump(mode="json") for m in self.mods],
            "libraries": [m.model_dump(mode="json") for m in self.libraries],
        }


def list_mods(session: Session) -> ModListResult:
    """Registry contents. Reads the registry file; does not touch the device."""
    if not session.loaded:
        session.mods.load_mods()
    return ModListResult(mods=session.mods.mods, libraries=session.mods.libraries)


def import_files(
    session: Session,
    paths: list[Path],
    preferred_type: str | None = None,
) -> ImportResult:
    """Import a batch of files (mods or file-copy targets)."""
    result = ImportResult()

    destination = None
    if preferred_type:
        destination = session.file_copies.get(preferred_type)
        if destination is None:
            result.error = f"Unknown file type: {preferred_type}"
            return result

    started = time.monotonic()
    try:
        session.ensure_loaded()
        summary = session.imports.enqueue(paths, preferred_type=destination)
    except (OperationBusyError, DeviceError) as e:
        result.error = str(e)
        return result

    if summary is None:
        result.merged = True
        return result

    result.summary = summary
    if summary.failure_count == 0:
        status = "ok"
    elif summary.succeeded == 0:
        status = "failed"
    else:
        status = "partial"
    record_operation(
        session,
        "import",
        status,
        started,
        items_total=summary.total,
        items_succeeded=summary.succeeded,
        items_failed=summary.failure_count,
        errors=[f"{Path(p).name}: {f.message}" for p, f in summary.failed.items()],
        context={"mods": summary.mods, "copied": summary.copied, "skipped": summary.skipped},
    )
    return result


def set_mod_installed(session: Session, mod_id: str, installed: bool) -> ModActionResult:
    """Install (enable) or uninstall (disable) a registered mod."""
    action = "install" if installed else "uninstall"
    result = ModActionResult(mod_id=mod_id, action=action)
    try:
        session.ensure_loaded()
        with session.lock.operation(f"mod-{action}"):
            mod = session.mods.get(mod_id)
            if mod is None:
                result.error = f"Unknown mod: {mod_id}"
                return result
            if installed:
                session.mods.install(mod)
            else:
                session.mods.uninstall(mod)
            result.mod = mod
            result.saved = session.mods.save_mods()
    except (OperationBusyError, DeviceError, ModError) as e:
        result.error = str(e)
    return result


def remove_mod(session: Session, mod_id: str) -> ModActionResult:
    """Uninstall, then delete a mod from the registry."""
    result = ModActionResult(mod_id=mod_id, action="remove")
    try:
        session.ensure_loaded()
        with session.lock.operation("mod-remove"):
            mod = session.mods.get(mod_id)
            if mod is None:
                result.error = f"Unknown mod: {mod_id}"
                return result
            session.mods.uninstall(mod)
            session.mods.delete_mod(mod)
            result.saved = session.mods.save_mods()
    except (OperationBusyError, DeviceError, ModError) as e:
        result.error = str(e)
    return result
