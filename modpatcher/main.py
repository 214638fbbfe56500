"""
modpatcher — CLI entrypoint.

Usage:
    python -m modpatcher.main --help
    python -m modpatcher.main status
    python -m modpatcher.main patch
    python -m modpatcher.main mods import SongLoader.qmod
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from modpatcher.core.observability.logging_config import setup_logging

from modpatcher import __version__


@click.group()
@click.version_option(version=__version__, prog_name="modpatcher")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to modpatcher.yml (default: auto-detect).",
)
@click.option("--mock", is_flag=True, help="Use the mock adapter (no device, no toolchain).")
@click.option("--yes", "-y", is_flag=True, help="Answer yes to every confirmation.")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    mock: bool,
    yes: bool,
) -> None:
    """modpatcher — patch an Android app for mods and manage them."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["mock"] = mock
    ctx.obj["yes"] = yes
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # Register the state directory in core context (registry, audit, scratch)
    from modpatcher.core.config.loader import find_config_file, state_dir
    from modpatcher.core.context import set_state_dir

    _cfg = ctx.obj["config_path"] or find_config_file()
    set_state_dir(state_dir(_cfg))

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("MODPATCHER_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("MODPATCHER_LOG_FILE"),
        log_file_level=os.environ.get("MODPATCHER_LOG_FILE_LEVEL"),
    )


def _print_status(result, quiet: bool) -> None:
    for name, tool in result.tools.items():
        if not tool["available"]:
            click.secho(f"⚠️  {name}: executable not found", fg="yellow")

    app = result.app
    if app is None:
        click.secho(f"\n📱 {result.app_id}: not installed", fg="yellow", bold=True)
    else:
        label = "patched" if app.is_modded else "not patched"
        color = "green" if app.is_modded else "yellow"
        click.secho(f"\n📱 {app.package_id} {app.version} ", fg="cyan", bold=True, nl=False)
        click.secho(f"({label})", fg=color)
        if app.is_32bit:
            click.secho("   ⚠️  32-bit build", fg="yellow")
        if app.tampered:
            click.secho("   ⚠️  Package appears to be a modified copy", fg="red")

    if not quiet:
        installed = sum(1 for m in result.mods if m.is_installed)
        click.echo(f"   Mods: {installed}/{len(result.mods)} installed")
        click.echo(f"   Libraries: {len(result.libraries)}")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show the installed app and mod summary."""
    from modpatcher.core.use_cases.status import get_status
    from modpatcher.ui.cli.prompts import get_session

    result = get_status(get_session(ctx))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        missing = [n for n, t in result.tools.items() if not t["available"]]
        if missing:
            click.echo(f"   Not found: {', '.join(missing)}")
        elif result.disconnection:
            click.echo("   Try: modpatcher quick-fix")
        sys.exit(1)

    _print_status(result, ctx.obj.get("quiet", False))


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def reload(ctx: click.Context, as_json: bool) -> None:
    """Forget cached state and probe the device again."""
    from modpatcher.core.use_cases.status import reload_session
    from modpatcher.ui.cli.prompts import get_session

    result = reload_session(get_session(ctx))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    _print_status(result, ctx.obj.get("quiet", False))


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--no-core-mods", is_flag=True, help="Don't offer core mods after patching.")
@click.pass_context
def patch(ctx: click.Context, as_json: bool, no_core_mods: bool) -> None:
    """Patch the installed app so it can load mods."""
    from modpatcher.core.services.patching import stage_progress
    from modpatcher.core.use_cases.patch import patch_app
    from modpatcher.ui.cli.prompts import get_session

    def on_stage(stage) -> None:
        progress = stage_progress(stage)
        if progress and not as_json:
            click.echo(f"   ({progress}) {stage.value.replace('_', ' ')}")

    if not as_json:
        click.secho("\n🔧 Patching", fg="cyan", bold=True)

    result = patch_app(
        get_session(ctx), on_stage=on_stage, install_core_mods=not no_core_mods
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok or result.declined else 1)

    if result.declined:
        click.secho("⊘ Patching cancelled", fg="yellow")
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        hints = {
            "not_installed": "Install the app first: modpatcher app install <apk>",
            "too_old": "Update the app to a supported version",
            "tampered": "Uninstall this copy and install an official one",
            "already_patched": "Nothing to do",
        }
        hint = hints.get(result.error_kind or "")
        if hint:
            click.echo(f"   {hint}")
        sys.exit(1)

    click.secho("✅ Patched successfully", fg="green", bold=True)
    if result.core_mods:
        click.echo(f"   Core mods: {result.core_mods.outcome.value}")
    click.echo()


@cli.command("quick-fix")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def quick_fix_cmd(ctx: click.Context, as_json: bool) -> None:
    """Restart the device bridge and clear temporary files."""
    from modpatcher.core.use_cases.app_ops import quick_fix
    from modpatcher.ui.cli.app import render_app_result
    from modpatcher.ui.cli.prompts import get_session

    render_app_result(quick_fix(get_session(ctx)), as_json)


@cli.command("check-update")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check_update_cmd(ctx: click.Context, as_json: bool) -> None:
    """Check whether a newer release is available."""
    from modpatcher.core.config.loader import ConfigError, load_config
    from modpatcher.core.use_cases.app_ops import check_update

    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    result = check_update(
        __version__,
        config.update_url,
        timeout=config.http_timeout,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if result.error:
        click.secho(f"⚠️  Update check failed: {result.error}", fg="yellow")
        return

    if result.update_available:
        click.secho(f"⬆️  {result.latest} is available (running {result.current})", fg="cyan")
        if result.url:
            click.echo(f"   {result.url}")
    else:
        click.secho(f"✅ Up to date ({result.current})", fg="green")


from modpatcher.ui.cli.app import app
from modpatcher.ui.cli.coremods import coremods
from modpatcher.ui.cli.mods import mods

cli.add_command(app)
cli.add_command(coremods)
cli.add_command(mods)


if __name__ == "__main__":
    cli()
