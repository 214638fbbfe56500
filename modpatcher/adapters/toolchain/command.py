"""
Toolchain adapter — drive the external APK patcher and signer.

The archive work itself (injecting the mod loader, rewriting the
manifest, signing) belongs to external tools. This adapter fills the
configured argument template, runs it, and checks that the tool left
an output package behind.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from modpatcher.adapters.base import Adapter, ExecutionContext
from modpatcher.core.models.action import Receipt

logger = logging.getLogger(__name__)


def render_command(template: list[str], **values: str) -> list[str]:
    """Substitute ``{placeholders}`` in each argument of a template."""
    return [part.format(**values) for part in template]


class ToolchainAdapter(Adapter):
    """Run one toolchain step.

    Action params:
        command (list[str]): Fully rendered command line.
        output (str): Path the tool is expected to produce.
    """

    @property
    def name(self) -> str:
        return "toolchain"

    def is_available(self) -> bool:
        return shutil.which("java") is not None or shutil.which("apksigner") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        if not params.get("command"):
            return False, "Missing required param: 'command'"
        if not params.get("output"):
            return False, "Missing required param: 'output'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        command: list[str] = context.action.params["command"]
        output = Path(context.action.params["output"])
        command_str = " ".join(command)

        logger.debug("Executing: %s", command_str)
        try:
            result = subprocess.run(
                command,
                cwd=context.work_dir,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Tool not found: {command[0]}",
                metadata={"command": command_str},
            )
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Toolchain execution error: {e}",
                metadata={"command": command_str},
            )

        stdout = result.stdout.strip()
        stderr = result.stderr.strip()
        if result.returncode != 0:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=stderr or f"{command[0]} exited with code {result.returncode}",
                output=stdout,
                metadata={"command": command_str, "return_code": result.returncode},
            )

        if not output.is_file():
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"{command[0]} succeeded but produced no file at {output}",
                output=stdout,
                metadata={"command": command_str},
            )

        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=stdout,
            metadata={"command": command_str, "output": str(output), "stderr": stderr},
        )
