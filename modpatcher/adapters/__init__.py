"""Adapters — bindings for the device bridge and the APK toolchain.

Public re-exports for convenient access.
"""

from modpatcher.adapters.base import Adapter, ExecutionContext
from modpatcher.adapters.mock import MockAdapter
from modpatcher.adapters.registry import AdapterRegistry, new_action

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "new_action",
]
