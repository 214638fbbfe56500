"""
Status use case — what is installed on the device and in the registry.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from modpatcher.core.engine.operation_lock import OperationBusyError
from modpatcher.core.models.app import InstalledApp
from modpatcher.core.models.mod import Mod
from modpatcher.core.services.device import DeviceError
from modpatcher.core.session import Session


@dataclass
class StatusResult:
    """Installed app, known mods and lock state."""

    app_id: str = ""
    app: InstalledApp | None = None
    mods: list[Mod] = field(default_factory=list)
    libraries: list[Mod] = field(default_factory=list)
    lock: dict = field(default_factory=dict)
    tools: dict = field(default_factory=dict)
    error: str | None = None
    disconnection: str | None = None

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        result: dict = {"app_id": self.app_id}
        if self.tools:
            result["tools"] = self.tools
        if self.error:
            result["error"] = self.error
            if self.disconnection:
                result["disconnection"] = self.disconnection
            return result

        result["installed"] = self.app is not None
        if self.app:
            result["app"] = self.app.to_dict()
        result["mods"] = [m.model_dump(mode="json") for m in self.mods]
        result["libraries"] = [m.model_dump(mode="json") for m in self.libraries]
        result["lock"] = self.lock
        return result


def get_status(session: Session) -> StatusResult:
    """Load (once) and summarize the session."""
    result = StatusResult(app_id=session.app_id)
    result.tools = session.adapters.adapter_status()
    try:
        session.ensure_loaded()
    except DeviceError as e:
        result.error = str(e)
        result.disconnection = e.disconnection.value if e.disconnection else None
        return result
    except OperationBusyError as e:
        result.error = str(e)
        return result

    result.app = session.installed_app
    result.mods = session.mods.mods
    result.libraries = session.mods.libraries
    result.lock = session.lock.to_dict()
    return result


def reload_session(session: Session) -> StatusResult:
    """Forget everything, probe the device again, then summarize."""
    result = StatusResult(app_id=session.app_id)
    result.tools = session.adapters.adapter_status()
    try:
        session.reload()
    except DeviceError as e:
        result.error = str(e)
        result.disconnection = e.disconnection.value if e.disconnection else None
        return result
    except OperationBusyError as e:
        result.error = str(e)
        return result
    return get_status(session)
