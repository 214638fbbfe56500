"""
ADB adapter — run Android Debug Bridge commands against the device.

This adapter only executes and captures. Interpreting the output (is
the device unauthorized? did ``pm install`` print ``Failure [...]``?)
is the job of ``core.services.device.DeviceBridge``.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time

from modpatcher.adapters.base import Adapter, ExecutionContext
from modpatcher.core.models.action import Receipt

logger = logging.getLogger(__name__)


class AdbAdapter(Adapter):
    """Execute ``adb`` with the given arguments.

    Action params:
        args (list[str]): Arguments after the adb executable.
        timeout (float | None): Seconds before giving up (default: none).
    """

    def __init__(self, adb_path: str = "adb"):
        self._adb_path = adb_path

    @property
    def name(self) -> str:
        return "adb"

    def is_available(self) -> bool:
        return shutil.which(self._adb_path) is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        args = context.action.params.get("args")
        if not args:
            return False, "Missing required param: 'args'"
        if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
            return False, "'args' must be a list of strings"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        args: list[str] = context.action.params["args"]
        timeout = context.action.params.get("timeout")
        command = [self._adb_path, *args]
        command_str = " ".join(command)

        logger.debug("Executing: %s", command_str)
        start = time.monotonic()

        try:
            result = subprocess.run(
                command,
                cwd=context.work_dir,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"adb executable not found: {self._adb_path}",
                metadata={"command": command_str},
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"adb timed out after {timeout}s",
                metadata={"command": command_str, "timeout": timeout},
            )
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"adb execution error: {e}",
                metadata={"command": command_str},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = result.stdout.strip()
        stderr = result.stderr.strip()
        metadata = {"command": command_str, "return_code": result.returncode, "stderr": stderr}

        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=output,
                duration_ms=elapsed_ms,
                metadata=metadata,
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=stderr or output or f"adb exited with code {result.returncode}",
            output=output,
            duration_ms=elapsed_ms,
            metadata=metadata,
        )
