"""
Import queue — single-flight batch import of arbitrary files.

``enqueue`` either starts a drain or, if one is already running, adds
its files to the running drain and returns at once. There is never more
than one drain per queue. The drain holds the operation lock for the
whole batch and processes files one at a time, in enqueue order.
The core mod manifest is refreshed once per drain, before the first mod.

Each file is tried as a mod first; failing that it goes to the file
copy destination matching its extension. A file that raises is
recorded and the drain moves on.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from modpatcher.core.engine.operation_lock import OperationBusyError, OperationLock
from modpatcher.core.models.app import InstalledApp
from modpatcher.core.models.mod import Mod
from modpatcher.core.prompter import Prompter
from modpatcher.core.services.file_copy import FileCopyDestination, FileCopyTable
from modpatcher.core.services.mod_registry import InstallationError, ModError, ModRegistry
from modpatcher.core.services.reconciler import Reconciler

logger = logging.getLogger(__name__)


class ImportKind(StrEnum):
    MOD = "mod"
    COPIED = "copied"
    SKIPPED = "skipped"


@dataclass
class ImportItem:
    path: Path
    preferred_type: FileCopyDestination | None = None


@dataclass
class ImportFailure:
    message: str
    expected: bool              # ModError subclasses; anything else is a bug


@dataclass
class ImportSummary:
    """Outcome of one drain, covering every file it processed."""

    processed: list[str] = field(default_factory=list)
    mods: list[str] = field(default_factory=list)
    copied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, ImportFailure] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.processed)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def succeeded(self) -> int:
        return self.total - self.failure_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "mods": self.mods,
            "copied": self.copied,
            "skipped": self.skipped,
            "failed": {
                path: {"message": f.message, "expected": f.expected}
                for path, f in self.failed.items()
            },
        }


class _Drain:
    """Per-batch state: the core-mod gate runs at most once per drain."""

    def __init__(self) -> None:
        self.summary = ImportSummary()
        self.gate_passed: bool | None = None


class ImportQueue:
    """Coalescing, sequential file importer."""

    def __init__(
        self,
        lock: OperationLock,
        registry: ModRegistry,
        reconciler: Reconciler,
        file_copies: FileCopyTable,
        prompter: Prompter,
        app_provider: Callable[[], InstalledApp | None],
    ):
        self._lock = lock
        self._registry = registry
        self._reconciler = reconciler
        self._file_copies = file_copies
        self._prompter = prompter
        self._app_provider = app_provider

        self._guard = threading.Lock()
        self._pending: deque[ImportItem] | None = None

    @property
    def is_draining(self) -> bool:
        with self._guard:
            return self._pending is not None

    def enqueue(
        self,
        paths: Iterable[Path | str],
        preferred_type: FileCopyDestination | None = None,
    ) -> ImportSummary | None:
        """Import files.

        Returns:
            The batch summary when this call ran the drain, or None when
            the files were handed to a drain already in progress.

        Raises:
            OperationBusyError: If another operation holds the lock.
        """
        items = [ImportItem(Path(p), preferred_type) for p in paths]

        with self._guard:
            if self._pending is not None:
                self._pending.extend(items)
                logger.debug("Added %d files to the running import", len(items))
                return None
            if not self._lock.try_start_operation(name="import"):
                raise OperationBusyError(
                    f"Cannot import while '{self._lock.current_operation}' is in progress"
                )
            pending = self._pending = deque(items)

        try:
            return self._drain()
        finally:
            with self._guard:
                if self._pending is pending:
                    # The drain stopped before emptying the queue
                    self._pending = None
                    self._lock.finish_operation()

    def _next(self) -> ImportItem | None:
        with self._guard:
            if self._pending:
                return self._pending.popleft()
            # Ending the drain and releasing the lock happen together, so a
            # later enqueue either joins this drain or finds the lock free
            self._pending = None
            self._lock.finish_operation()
            return None

    def _drain(self) -> ImportSummary:
        drain = _Drain()
        while (item := self._next()) is not None:
            key = str(item.path)
            drain.summary.processed.append(key)
            logger.info("Importing %s", item.path.name)
            try:
                kind = self._import_file(item, drain)
            except ModError as e:
                logger.error("Failed to import %s: %s", item.path.name, e)
                drain.summary.failed[key] = ImportFailure(str(e), expected=True)
                continue
            except Exception as e:
                logger.exception("Unexpected error importing %s", item.path.name)
                drain.summary.failed[key] = ImportFailure(f"{type(e).__name__}: {e}", expected=False)
                continue

            {
                ImportKind.MOD: drain.summary.mods,
                ImportKind.COPIED: drain.summary.copied,
                ImportKind.SKIPPED: drain.summary.skipped,
            }[kind].append(key)

        summary = drain.summary
        logger.info("%d/%d files imported successfully", summary.succeeded, summary.total)
        return summary

    # ── Per file ────────────────────────────────────────────────

    def _import_file(self, item: ImportItem, drain: _Drain) -> ImportKind:
        mod = self._registry.parse_mod(item.path)
        if mod is not None:
            return self._import_mod(mod, drain)

        preferred = item.preferred_type
        if preferred is not None and preferred.matches(item.path):
            candidates = [preferred]
        else:
            candidates = self._file_copies.matching(item.path)

        if not candidates:
            raise InstallationError(f"Unrecognised file type {item.path.suffix.lower() or '(none)'}")

        if len(candidates) == 1:
            destination = candidates[0]
        else:
            destination = self._prompter.choose_file_copy(item.path, candidates)
            if destination is None:
                logger.info("Cancelled import of %s", item.path.name)
                return ImportKind.SKIPPED

        destination.perform_copy(item.path)
        return ImportKind.COPIED

    def _import_mod(self, mod: Mod, drain: _Drain) -> ImportKind:
        app = self._app_provider()
        if app is None or not app.is_modded:
            self._registry.discard(mod)
            raise InstallationError("The app must be installed and patched before importing mods")

        if drain.gate_passed is None:
            self._reconciler.refresh_manifest()
            drain.gate_passed = self._reconciler.gate(app.version, self._prompter)
        if not drain.gate_passed:
            logger.info("Skipping %s: no core mods for %s", mod.id, app.version)
            self._registry.discard(mod)
            return ImportKind.SKIPPED

        existing = self._registry.get(mod.id)
        if existing is not None:
            logger.info("Replacing %s %s with %s", mod.id, existing.version, mod.version)
            try:
                self._registry.uninstall(existing)
            except ModError:
                self._registry.discard(mod)
                raise
            self._registry.delete_mod(existing)
        self._registry.add(mod)

        if mod.package_version is not None and mod.package_version != app.version:
            if not self._prompter.confirm_version_mismatch(mod, app.version):
                logger.info("Left %s uninstalled (built for %s)", mod.id, mod.package_version)
                self._registry.save_mods()
                return ImportKind.SKIPPED

        try:
            self._registry.install(mod)
        finally:
            # The old entry is already gone; persist even if the install failed
            self._registry.save_mods()
        return ImportKind.MOD
