"""
Reconciler — bring installed core mods in line with the manifest.

For the installed app version, every required entry is compared with
the registry entry of the same id:

    no local entry             → missing
    local version  < required  → uninstall + delete local, missing
    local version >= required  → install in place if disabled, else nothing
    versions not comparable    → leave local untouched, warn

Missing entries are only installed after the caller agrees
(``install_missing``). A newer local core mod is never replaced by an
older one on this path.

The caller must hold the operation lock for ``check``, ``install_missing``
and ``reconcile``; this module does not take it.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from modpatcher.core.domain.version import compare_versions
from modpatcher.core.models.mod import CoreModEntry
from modpatcher.core.prompter import Prompter
from modpatcher.core.services.core_mods import CoreModManifest, MirrorResolver
from modpatcher.core.services.http import FetchError, download_file
from modpatcher.core.services.mod_registry import ModError, ModParseError, ModRegistry

logger = logging.getLogger(__name__)

Downloader = Callable[[str, Path], Path]


class ReconcileOutcome(StrEnum):
    COMPLIANT = "compliant"
    REMEDIATED = "remediated"
    DECLINED = "declined"
    UNSUPPORTED = "unsupported"


@dataclass
class CheckResult:
    """What ``check`` found and already fixed in place."""

    app_version: str
    supported: bool = True
    missing: list[CoreModEntry] = field(default_factory=list)
    removed_outdated: list[str] = field(default_factory=list)
    healed: list[str] = field(default_factory=list)
    incomparable: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def compliant(self) -> bool:
        return self.supported and not self.missing and not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "app_version": self.app_version,
            "supported": self.supported,
            "missing": [e.model_dump(by_alias=True) for e in self.missing],
            "removed_outdated": self.removed_outdated,
            "healed": self.healed,
            "incomparable": self.incomparable,
            "errors": self.errors,
        }


@dataclass
class RemediationResult:
    installed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    saved: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"installed": self.installed, "failed": self.failed, "saved": self.saved}


@dataclass
class ReconcileResult:
    outcome: ReconcileOutcome
    check: CheckResult
    remediation: RemediationResult | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "check": self.check.to_dict(),
            "remediation": self.remediation.to_dict() if self.remediation else None,
        }


class Reconciler:
    def __init__(
        self,
        registry: ModRegistry,
        manifest: CoreModManifest,
        mirror: MirrorResolver,
        temp_dir: Path,
        download: Downloader | None = None,
    ):
        self._registry = registry
        self._manifest = manifest
        self._mirror = mirror
        self._temp_dir = temp_dir
        self._download = download or download_file

    def check(self, app_version: str) -> CheckResult:
        """Diff the manifest against the registry and apply in-place fixes."""
        result = CheckResult(app_version=app_version)
        required = self._manifest.get_required(app_version)
        if not required:
            logger.warning("No core mods are known for version %s", app_version)
            result.supported = False
            return result

        for entry in required:
            local = self._registry.get(entry.id)
            if local is None:
                result.missing.append(entry)
                continue

            order = compare_versions(local.version, entry.version)
            if order is None:
                logger.warning(
                    "Cannot compare %s versions %r and %r, leaving it alone",
                    entry.id, local.version, entry.version,
                )
                result.incomparable.append(entry.id)
                continue

            try:
                if order < 0:
                    logger.info("Core mod %s %s is outdated (need %s)", entry.id, local.version, entry.version)
                    self._registry.uninstall(local)
                    self._registry.delete_mod(local)
                    self._registry.save_mods()
                    result.removed_outdated.append(entry.id)
                    result.missing.append(entry)
                elif not local.is_installed:
                    self._registry.install(local)
                    self._registry.save_mods()
                    result.healed.append(entry.id)
            except ModError as e:
                logger.error("Core mod %s could not be fixed: %s", entry.id, e)
                result.errors[entry.id] = str(e)

        return result

    def install_missing(self, entries: list[CoreModEntry]) -> RemediationResult:
        """Download, register and install each entry. Failures are per item."""
        result = RemediationResult()
        for entry in entries:
            if not entry.download_link:
                logger.error("Core mod %s has no download link, skipping", entry.id)
                result.failed[entry.id] = "No download link"
                continue

            url = self._mirror.resolve(entry.download_link)
            safe = re.sub(r"[^A-Za-z0-9._-]", "_", entry.id)
            tmp = self._temp_dir / f"coremod-{safe}-{uuid.uuid4().hex[:6]}.qmod"
            mod = None
            added = False
            try:
                self._download(url, tmp)
                mod = self._registry.parse_mod(tmp)
                if mod is None:
                    raise ModParseError(tmp, "download is not a mod archive")
                if mod.id != entry.id:
                    raise ModParseError(tmp, f"download is {mod.id}, expected {entry.id}")
                if mod.version != entry.version:
                    logger.warning(
                        "Core mod %s: manifest lists %s, download is %s",
                        entry.id, entry.version, mod.version,
                    )

                existing = self._registry.get(mod.id)
                if existing is not None:
                    self._registry.uninstall(existing)
                    self._registry.delete_mod(existing)
                self._registry.add(mod)
                added = True
                self._registry.install(mod)
                result.installed.append(mod.id)
            except (FetchError, ModError) as e:
                logger.error("Failed to install core mod %s: %s", entry.id, e)
                result.failed[entry.id] = str(e)
                if mod is not None and not added:
                    self._registry.discard(mod)
            finally:
                tmp.unlink(missing_ok=True)

        result.saved = self._registry.save_mods()
        return result

    def reconcile(self, app_version: str, prompter: Prompter) -> ReconcileResult:
        """Check, then remediate if the prompter agrees."""
        check = self.check(app_version)
        if not check.supported:
            return ReconcileResult(ReconcileOutcome.UNSUPPORTED, check)
        if not check.missing:
            return ReconcileResult(ReconcileOutcome.COMPLIANT, check)
        if not prompter.confirm_install_core_mods(check.missing):
            logger.info("Core mod installation declined")
            return ReconcileResult(ReconcileOutcome.DECLINED, check)
        return ReconcileResult(
            ReconcileOutcome.REMEDIATED, check, self.install_missing(check.missing)
        )

    def refresh_manifest(self) -> bool:
        """Reload the core mod manifest. A failed fetch keeps the previous data."""
        return self._manifest.refresh()

    def gate(self, app_version: str, prompter: Prompter) -> bool:
        """Run before importing mods. False means the import must not go ahead.

        Only an unsupported app version can stop the import, and only if
        the user declines to continue without core mods.
        """
        result = self.reconcile(app_version, prompter)
        if result.outcome == ReconcileOutcome.UNSUPPORTED:
            return prompter.confirm_unsupported_version(app_version)
        return True
