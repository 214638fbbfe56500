"""
Interactive prompter for the CLI, and the per-invocation Session.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from modpatcher.core.models.mod import CoreModEntry, Mod
from modpatcher.core.prompter import Prompter
from modpatcher.core.services.file_copy import FileCopyDestination
from modpatcher.core.session import Session


class ClickPrompter(Prompter):
    """Asks on the terminal. With ``assume_yes`` every confirmation is yes."""

    def __init__(self, assume_yes: bool = False):
        self.assume_yes = assume_yes

    def _confirm(self, message: str, default: bool = True) -> bool:
        if self.assume_yes:
            return True
        return click.confirm(message, default=default)

    def confirm_install_core_mods(self, missing: list[CoreModEntry]) -> bool:
        click.secho("⚠️  Missing core mods:", fg="yellow")
        for entry in missing:
            click.echo(f"   • {entry.id} {entry.version}")
        return self._confirm("Install them now?")

    def confirm_unsupported_version(self, app_version: str) -> bool:
        click.secho(
            f"⚠️  No core mods exist for version {app_version} yet. "
            "Most mods will not work until they do.",
            fg="yellow",
        )
        return self._confirm("Continue anyway?", default=False)

    def confirm_version_mismatch(self, mod: Mod, app_version: str) -> bool:
        click.secho(
            f"⚠️  {mod.display_name} was built for version {mod.package_version}, "
            f"but {app_version} is installed. It may crash or not work.",
            fg="yellow",
        )
        return self._confirm("Install it anyway?", default=False)

    def confirm_32bit_patch(self) -> bool:
        click.secho(
            "⚠️  The app is a 32-bit (armeabi-v7a) build. "
            "Most libraries do not support 32-bit builds.",
            fg="yellow",
        )
        return self._confirm("Patch it anyway?", default=False)

    def choose_file_copy(
        self, path: Path, candidates: list[FileCopyDestination]
    ) -> FileCopyDestination | None:
        names = [c.name for c in candidates]
        if self.assume_yes:
            return None
        choice = click.prompt(
            f"{path.name} can be imported as several types",
            type=click.Choice([*names, "skip"]),
            default="skip",
        )
        if choice == "skip":
            return None
        return candidates[names.index(choice)]


def get_session(ctx: click.Context) -> Session:
    """Build the Session once per invocation and keep it on the context."""
    session = ctx.obj.get("session")
    if session is not None:
        return session

    from modpatcher.adapters.device.adb import AdbAdapter
    from modpatcher.adapters.mock import MockAdapter
    from modpatcher.adapters.registry import AdapterRegistry
    from modpatcher.adapters.toolchain.command import ToolchainAdapter
    from modpatcher.core.config.loader import ConfigError, load_config
    from modpatcher.core.context import get_state_dir

    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    adapters = AdapterRegistry()
    if ctx.obj.get("mock"):
        adapters.set_mock_adapter(MockAdapter())
    else:
        adapters.register(AdbAdapter(config.adb_path))
        adapters.register(ToolchainAdapter())

    session = Session(
        config,
        adapters,
        get_state_dir() or Path.cwd() / ".state",
        prompter=ClickPrompter(assume_yes=ctx.obj.get("yes", False)),
    )
    ctx.obj["session"] = session
    return session
