"""
Registry file persistence — atomic read/write for RegistryState.

One JSON file per target app in .state/mods-<app_id>.json. Writes are
atomic (write to temp file, then rename) so a crash mid-write leaves the
previous file intact.
"""

from __future__ import annotations

import json
import logging
import re
import tempfile
from pathlib import Path

from modpatcher.core.models.state import RegistryState

logger = logging.getLogger(__name__)

REGISTRY_FILE_PREFIX = "mods-"


def registry_path(state_dir: Path, app_id: str) -> Path:
    """Registry file for an app inside a state directory."""
    safe = re.sub(r"[^A-Za-z0-9._-]", "_", app_id) or "default"
    return state_dir / f"{REGISTRY_FILE_PREFIX}{safe}.json"


def load_registry(path: Path) -> RegistryState:
    """Load a registry document.

    Returns:
        RegistryState. Missing or unreadable files give a fresh state.
    """
    if not path.is_file():
        logger.info("No registry file at %s — starting fresh", path)
        return RegistryState()

    try:
        raw = path.read_text(encoding="utf-8")
        data = json.loads(raw)
        state = RegistryState.model_validate(data)
        logger.debug("Loaded %d registry entries from %s", len(state.mods), path)
        return state
    except json.JSONDecodeError as e:
        logger.warning("Corrupt registry file %s: %s — starting fresh", path, e)
        return RegistryState()
    except Exception as e:
        logger.warning("Cannot load registry from %s: %s — starting fresh", path, e)
        return RegistryState()


def save_registry(state: RegistryState, path: Path) -> None:
    """Save a registry document (atomic write).

    Raises:
        OSError: If the file cannot be written. The previous file is kept.
    """
    state.touch()

    path.parent.mkdir(parents=True, exist_ok=True)

    data = state.model_dump(mode="json")
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    try:
        _fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".mods_",
            suffix=".tmp",
        )
        tmp = Path(tmp_path)
        try:
            with open(_fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            tmp.replace(path)
            logger.debug("Registry saved to %s", path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except Exception as e:
        logger.error("Failed to save registry to %s: %s", path, e)
        raise
