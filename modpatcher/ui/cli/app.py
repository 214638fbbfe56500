"""
CLI commands for the target app itself.

Usage::

    modpatcher app install ./beatsaber-1.28.0.apk
    modpatcher app install https://example.com/app.apk
    modpatcher app uninstall
"""

from __future__ import annotations

import json
import sys

import click

from modpatcher.ui.cli.prompts import get_session


def render_app_result(result, as_json: bool) -> None:
    """Shared output for AppOpResult."""
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if not result.ok:
        click.secho(f"❌ {result.error}", fg="red")
        if result.disconnection:
            click.echo("   Try: modpatcher quick-fix")
        sys.exit(1)

    click.secho(f"✅ {result.operation} done", fg="green", nl=False)
    click.echo(f"  {result.detail}" if result.detail else "")


@click.group()
def app() -> None:
    """App — install or uninstall the stock package."""


@app.command()
@click.argument("source")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(ctx: click.Context, source: str, as_json: bool) -> None:
    """Install an APK from a file path or URL (replaces the installed app)."""
    from modpatcher.core.use_cases.app_ops import install_app

    render_app_result(install_app(get_session(ctx), source), as_json)


@app.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.confirmation_option(prompt="Uninstall the app? Unpatched saves may be lost.")
@click.pass_context
def uninstall(ctx: click.Context, as_json: bool) -> None:
    """Uninstall the target app from the device."""
    from modpatcher.core.use_cases.app_ops import uninstall_app

    render_app_result(uninstall_app(get_session(ctx)), as_json)
