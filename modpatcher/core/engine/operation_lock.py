"""
Operation lock — the single system-wide gate for destructive operations.

States:
    IDLE    → No destructive operation running. Anyone may start one.
    LOCKED  → One operation (patch, import, install, uninstall, ...) owns
              the registry, the installed app and the device.

Transitions:
    IDLE → LOCKED:  start_operation()
    LOCKED → IDLE:  finish_operation()

There is no waiting and no timeout. A caller that finds the lock held
stops; it does not queue. ``operation()`` refuses with
``OperationBusyError``; calling ``start_operation()`` while LOCKED is a
caller bug and raises ``LockViolation``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class LockState(StrEnum):
    """Operation lock states."""

    IDLE = "idle"
    LOCKED = "locked"


class OperationBusyError(Exception):
    """Raised when an operation is refused because another one is running."""


class LockViolation(RuntimeError):
    """Raised on misuse of the lock (double start, finish while idle)."""


class OperationLock:
    """Non-reentrant, non-queueing mutual exclusion for destructive work.

    ``device_unavailable`` is a sub-flag of the LOCKED state: it marks
    operations during which the device bridge itself is being torn down
    (quick fix), so front-ends can grey out anything that talks to the
    device, not just destructive actions.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._state = LockState.IDLE
        self._device_unavailable = False
        self._operation: str = ""

    # ── Queries ─────────────────────────────────────────────────

    @property
    def state(self) -> LockState:
        return self._state

    @property
    def device_unavailable(self) -> bool:
        return self._device_unavailable

    @property
    def current_operation(self) -> str:
        """Label of the running operation, empty when idle."""
        return self._operation

    def is_free(self) -> bool:
        """Whether a new operation may start."""
        return self._state == LockState.IDLE

    # ── Transitions ─────────────────────────────────────────────

    def start_operation(self, device_unavailable: bool = False, name: str = "") -> None:
        """Move IDLE → LOCKED.

        Raises:
            LockViolation: If an operation is already running.
        """
        if not self.try_start_operation(device_unavailable=device_unavailable, name=name):
            raise LockViolation(
                f"Cannot start '{name or 'operation'}': "
                f"'{self._operation or 'operation'}' is already running"
            )

    def try_start_operation(self, device_unavailable: bool = False, name: str = "") -> bool:
        """Atomically check ``is_free`` and start. Returns False if busy."""
        with self._guard:
            if self._state != LockState.IDLE:
                return False
            self._state = LockState.LOCKED
            self._device_unavailable = device_unavailable
            self._operation = name
        logger.debug("Operation started: %s (device_unavailable=%s)", name or "-", device_unavailable)
        return True

    def finish_operation(self) -> None:
        """Move LOCKED → IDLE.

        Raises:
            LockViolation: If no operation is running.
        """
        with self._guard:
            if self._state != LockState.LOCKED:
                raise LockViolation("finish_operation() called while no operation is running")
            name = self._operation
            self._state = LockState.IDLE
            self._device_unavailable = False
            self._operation = ""
        logger.debug("Operation finished: %s", name or "-")

    @contextmanager
    def operation(self, name: str = "", device_unavailable: bool = False) -> Iterator[None]:
        """Hold the lock for the duration of a block.

        Raises:
            OperationBusyError: If the lock is held. The block does not run.
        """
        if not self.try_start_operation(device_unavailable=device_unavailable, name=name):
            raise OperationBusyError(
                f"Cannot run '{name or 'operation'}' while "
                f"'{self._operation or 'another operation'}' is in progress"
            )
        try:
            yield
        finally:
            self.finish_operation()

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "operation": self._operation,
            "device_unavailable": self._device_unavailable,
        }
