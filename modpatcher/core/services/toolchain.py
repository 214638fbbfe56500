"""
Toolchain — the patch and sign steps, as typed calls.
"""

from __future__ import annotations

import logging
from pathlib import Path

from modpatcher.adapters.registry import AdapterRegistry, new_action
from modpatcher.adapters.toolchain.command import render_command
from modpatcher.core.models.config import ToolchainSpec

logger = logging.getLogger(__name__)


class ToolchainError(Exception):
    """A toolchain step failed or produced nothing."""

    def __init__(self, step: str, message: str, output: str = ""):
        super().__init__(f"{step} failed: {message}")
        self.step = step
        self.output = output


class Toolchain:
    def __init__(self, registry: AdapterRegistry, spec: ToolchainSpec):
        self._registry = registry
        self._spec = spec

    def patch(self, source: Path, output: Path, package_id: str = "") -> Path:
        """Inject the mod loader into ``source``, writing ``output``."""
        return self._run("patch", self._spec.patch_command, source, output, package_id)

    def sign(self, source: Path, output: Path, package_id: str = "") -> Path:
        """Sign ``source``, writing ``output``."""
        return self._run("sign", self._spec.sign_command, source, output, package_id)

    def _run(
        self, step: str, template: list[str], source: Path, output: Path, package_id: str
    ) -> Path:
        try:
            command = render_command(
                template, input=str(source), output=str(output), package_id=package_id
            )
        except (KeyError, IndexError, ValueError) as e:
            raise ToolchainError(step, f"bad command template {template!r}: {e!r}") from e
        action = new_action(
            "toolchain", step,
            command=command, input=str(source), output=str(output),
        )
        receipt = self._registry.execute_action(action)
        if not receipt.ok:
            raise ToolchainError(step, receipt.error or "unknown error", receipt.output)

        produced = Path(receipt.metadata.get("output", output))
        logger.debug("%s produced %s", step, produced)
        return produced
