"""
Shared audit helper — one call per finished operation.

Usage::

    started = time.monotonic()
    ...
    record_operation(session, "patch", "ok", started, context={"stage": ...})

Never raises: the ledger writer already swallows I/O errors.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from modpatcher.core.persistence.audit import AuditEntry

if TYPE_CHECKING:
    from modpatcher.core.session import Session


def record_operation(
    session: Session,
    operation_type: str,
    status: str,
    started: float,
    *,
    items_total: int = 0,
    items_succeeded: int = 0,
    items_failed: int = 0,
    errors: list[str] | None = None,
    context: dict[str, Any] | None = None,
) -> AuditEntry:
    app = session.installed_app
    entry = AuditEntry(
        operation_type=operation_type,
        app_id=session.app_id,
        app_version=app.version if app else "",
        status=status,
        items_total=items_total,
        items_succeeded=items_succeeded,
        items_failed=items_failed,
        duration_ms=int((time.monotonic() - started) * 1000),
        errors=errors or [],
        context=context or {},
    )
    session.audit.write(entry)
    return entry
