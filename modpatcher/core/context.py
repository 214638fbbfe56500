"""
Process context — where this process keeps its state.

The state directory is set ONCE at startup by whichever entry point
launches the tool:

    - CLI:    main.py   → context.set_state_dir(<config dir>/.state)
    - Tests:  fixtures  → context.set_state_dir(tmp_path / ".state")

Module-level singleton, not a class. ``get_state_dir()`` returns None
when unset; ``Session`` then falls back to ``./.state``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


_state_dir: Optional[Path] = None


def set_state_dir(path: Path | None) -> None:
    """Register the state directory for the current process."""
    global _state_dir
    _state_dir = path


def get_state_dir() -> Optional[Path]:
    """Return the current state directory, or None if not yet set."""
    return _state_dir
