"""
CLI commands for the mod registry.

Thin wrappers over ``modpatcher.core.use_cases.mods``.

Usage::

    modpatcher mods list
    modpatcher mods import SongLoader.qmod cool-saber.saber
    modpatcher mods disable SongLoader
    modpatcher mods remove SongLoader --json
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from modpatcher.ui.cli.prompts import get_session


@click.group()
def mods() -> None:
    """Mods — import, enable, disable and remove."""


def _print_mod(mod) -> None:
    marker, color = ("✓", "green") if mod.is_installed else ("○", "white")
    click.secho(f"   {marker} {mod.display_name} ", fg=color, nl=False)
    click.echo(f"v{mod.version}  ({mod.id})", nl=False)
    if mod.package_version:
        click.echo(f"  [for {mod.package_version}]", nl=False)
    click.echo()


@mods.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, as_json: bool) -> None:
    """List known mods and libraries."""
    from modpatcher.core.use_cases.mods import list_mods

    result = list_mods(get_session(ctx))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.secho(f"\n🧩 Mods: {len(result.mods)}", fg="cyan", bold=True)
    for mod in result.mods:
        _print_mod(mod)
    if result.libraries:
        click.secho(f"\n📚 Libraries: {len(result.libraries)}", fg="cyan", bold=True)
        for mod in result.libraries:
            _print_mod(mod)
    click.echo()


@mods.command("import")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--as", "preferred_type", default=None, help="File copy type to use for non-mod files.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def import_cmd(
    ctx: click.Context,
    files: tuple[str, ...],
    preferred_type: str | None,
    as_json: bool,
) -> None:
    """Import mod archives or other files."""
    from modpatcher.core.use_cases.mods import import_files

    result = import_files(get_session(ctx), [Path(f) for f in files], preferred_type)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error or (result.summary and result.summary.failure_count):
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    summary = result.summary
    assert summary is not None  # a CLI invocation always runs its own drain

    for path in summary.processed:
        name = Path(path).name
        if path in summary.failed:
            failure = summary.failed[path]
            click.secho(f"   ✗ {name}", fg="red", nl=False)
            click.echo(f"  {failure.message}")
        elif path in summary.skipped:
            click.secho(f"   ⊘ {name} ", fg="yellow", nl=False)
            click.echo("(skipped)")
        else:
            kind = "mod" if path in summary.mods else "copied"
            click.secho(f"   ✓ {name} ", fg="green", nl=False)
            click.echo(f"({kind})")

    click.echo()
    color = "green" if summary.failure_count == 0 else "red"
    click.secho(f"   {summary.succeeded}/{summary.total} files imported", fg=color, bold=True)
    if summary.failure_count:
        sys.exit(1)


def _set_installed(ctx: click.Context, mod_id: str, installed: bool, as_json: bool) -> None:
    from modpatcher.core.use_cases.mods import set_mod_installed

    result = set_mod_installed(get_session(ctx), mod_id, installed)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    verb = "Enabled" if installed else "Disabled"
    click.secho(f"✅ {verb} {mod_id}", fg="green")
    if not result.saved:
        click.secho("⚠️  The mod list could not be saved", fg="yellow")


@mods.command()
@click.argument("mod_id")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def enable(ctx: click.Context, mod_id: str, as_json: bool) -> None:
    """Install a registered mod on the device."""
    _set_installed(ctx, mod_id, True, as_json)


@mods.command()
@click.argument("mod_id")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def disable(ctx: click.Context, mod_id: str, as_json: bool) -> None:
    """Uninstall a mod from the device but keep it registered."""
    _set_installed(ctx, mod_id, False, as_json)


@mods.command()
@click.argument("mod_id")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def remove(ctx: click.Context, mod_id: str, as_json: bool) -> None:
    """Uninstall a mod and delete it from the registry."""
    from modpatcher.core.use_cases.mods import remove_mod

    result = remove_mod(get_session(ctx), mod_id)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.secho(f"🗑️  Removed {mod_id}", fg="green")
