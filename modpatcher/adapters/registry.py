"""
Adapter registry — central dispatch for tool invocations.

Services never hold an adapter directly; they build an Action and ask
the registry to run it. Mock mode swaps every adapter for one test
double, which is how ``--mock`` runs the whole CLI without a device.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from modpatcher.adapters.base import Adapter, ExecutionContext
from modpatcher.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


def new_action(adapter: str, name: str, **params: Any) -> Action:
    """Build an Action with a fresh id."""
    return Action(
        id=f"{adapter}:{name}:{uuid.uuid4().hex[:8]}",
        name=name,
        adapter=adapter,
        params=params,
    )


class AdapterRegistry:
    """Registry and dispatcher for adapters."""

    def __init__(self, mock_adapter: Adapter | None = None):
        self._adapters: dict[str, Adapter] = {}
        self._mock_adapter = mock_adapter

    @property
    def mock_mode(self) -> bool:
        return self._mock_adapter is not None

    def set_mock_adapter(self, mock_adapter: Adapter | None) -> None:
        """Route every action to ``mock_adapter`` (None disables mock mode)."""
        self._mock_adapter = mock_adapter

    def register(self, adapter: Adapter) -> None:
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def list_adapters(self) -> list[str]:
        return list(self._adapters.keys())

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Availability of all registered adapters."""
        status = {}
        for name, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[name] = {
                "name": name,
                "available": available,
                "type": adapter.__class__.__name__,
            }
        return status

    def execute_action(
        self,
        action: Action,
        work_dir: str | None = None,
    ) -> Receipt:
        """Resolve the adapter, validate, execute. Never raises."""
        start_time = time.monotonic()

        context = ExecutionContext(
            action=action,
            work_dir=work_dir,
            params=action.params,
        )

        adapter = self._mock_adapter or self._adapters.get(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        try:
            is_valid, error_msg = adapter.validate(context)
        except Exception as e:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation error: {e}",
            )
        if not is_valid:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation failed: {error_msg}",
            )

        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised during %s: %s", action.adapter, action.name, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        receipt.duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.debug(
            "%s %s:%s (%dms)",
            "✓" if receipt.ok else "✗",
            action.adapter,
            action.name,
            receipt.duration_ms,
        )
        return receipt
