"""
Action and Receipt models — the contract with external tools.

The core never shells out itself. It builds an Action ("install this
APK", "push this file", "sign this package") and hands it to an adapter
through the registry. The adapter answers with a Receipt. Adapters
never raise: a dead device, a missing binary or a non-zero exit code
all come back as a failed Receipt with the captured output attached.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Action(BaseModel):
    """A single command for an external tool.

    ``name`` is the verb (``install``, ``uninstall``, ``push``, ``patch``,
    ``sign`` ...). Test doubles key their canned responses on it.
    """

    id: str                         # unique per dispatch
    name: str                       # verb understood by the adapter
    adapter: str                    # "adb", "toolchain", ...
    params: dict[str, Any] = Field(default_factory=dict)


class Receipt(BaseModel):
    """Outcome of one Action.

    ``output`` holds captured stdout; ``error`` holds stderr (or a
    synthesized message) for failures. Anything tool-specific the caller
    may need, such as a produced file path, goes into ``metadata``.
    """

    adapter: str
    action_id: str
    status: Literal["ok", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def combined_output(self) -> str:
        """stdout and stderr joined, for failure-signature matching."""
        parts = [self.output, self.error or "", str(self.metadata.get("stderr", ""))]
        return "\n".join(p for p in parts if p)

    @classmethod
    def success(
        cls,
        adapter: str,
        action_id: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(adapter=adapter, action_id=action_id, status="ok", output=output, **kwargs)

    @classmethod
    def failure(
        cls,
        adapter: str,
        action_id: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **kwargs)
