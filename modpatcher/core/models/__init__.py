"""
Domain models — Pydantic types for mods, config and persisted state.

All models are re-exported here for convenient access:

    from modpatcher.core.models import Mod, AppConfig, InstalledApp, Receipt
"""

from modpatcher.core.models.action import Action, Receipt
from modpatcher.core.models.app import InstalledApp
from modpatcher.core.models.config import AppConfig, FileCopySpec, ToolchainSpec
from modpatcher.core.models.mod import CoreModEntry, Mod, ModManifest
from modpatcher.core.models.state import RegistryState

__all__ = [
    # action.py
    "Action",
    # config.py
    "AppConfig",
    # mod.py
    "CoreModEntry",
    "FileCopySpec",
    # app.py
    "InstalledApp",
    "Mod",
    "ModManifest",
    "Receipt",
    # state.py
    "RegistryState",
    "ToolchainSpec",
]
