"""
RegistryState — the persisted mod registry for one target app.

Serialized to .state/mods-<app_id>.json. The in-memory registry is the
source of truth for a running session; this document is what survives
a restart. Losing it only loses bookkeeping: mods already pushed to the
device stay there until uninstalled.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from modpatcher.core.models.mod import Mod


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class RegistryState(BaseModel):
    """Root of the persisted registry document."""

    # ── Schema ───────────────────────────────────────────────────
    schema_version: int = 1

    # ── Identity ─────────────────────────────────────────────────
    app_id: str = ""

    # ── Timestamps ───────────────────────────────────────────────
    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)

    # ── Entries (mods and libraries, in load order) ──────────────
    mods: list[Mod] = Field(default_factory=list)

    # ── Extensible metadata ──────────────────────────────────────
    metadata: dict[str, Any] = Field(default_factory=dict)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()
