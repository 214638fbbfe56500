"""
Mock adapter — test double for the device bridge and the toolchain.

Used by ``--mock`` and by the test-suite. Succeeds by default; canned
failures and side-effect handlers are keyed by action *name*
(``install``, ``push``, ``sign`` ...), since action ids are random.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable
from pathlib import Path

from modpatcher.adapters.base import Adapter, ExecutionContext
from modpatcher.core.models.action import Receipt

Handler = Callable[[ExecutionContext], Receipt | None]


class MockAdapter(Adapter):
    """Universal mock adapter.

    Toolchain-style actions that carry an ``output`` param get a
    ``metadata["output"]`` echo; if they also carry ``input`` and the
    input exists, it is copied to the output so the next stage has a
    real file to work on.
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "",
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._failures: dict[str, str] = {}
        self._handlers: dict[str, Handler] = {}
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def calls(self, action_name: str) -> list[ExecutionContext]:
        """Calls for one action name, in order."""
        return [c for c in self._call_log if c.action.name == action_name]

    def called_names(self) -> list[str]:
        return [c.action.name for c in self._call_log]

    def is_available(self) -> bool:
        return self._available

    def set_failure(self, action_name: str, error: str = "Mock failure") -> None:
        """Make every action with this name fail."""
        self._failures[action_name] = error

    def clear_failure(self, action_name: str) -> None:
        self._failures.pop(action_name, None)

    def set_handler(self, action_name: str, handler: Handler) -> None:
        """Run ``handler`` for this action name. A returned Receipt wins."""
        self._handlers[action_name] = handler

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)
        action = context.action

        if action.name in self._failures:
            return Receipt.failure(
                adapter=self._name,
                action_id=action.id,
                error=self._failures[action.name],
            )

        handler = self._handlers.get(action.name)
        if handler is not None:
            receipt = handler(context)
            if receipt is not None:
                return receipt

        metadata: dict = {"mock": True}
        output = action.params.get("output")
        if output:
            source = action.params.get("input")
            if source and Path(source).is_file() and not Path(output).exists():
                Path(output).parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(source, output)
            metadata["output"] = output

        return Receipt.success(
            adapter=self._name,
            action_id=action.id,
            output=self._default_output,
            metadata=metadata,
        )

    def reset(self) -> None:
        """Clear call log, failures and handlers."""
        self._call_log.clear()
        self._failures.clear()
        self._handlers.clear()
