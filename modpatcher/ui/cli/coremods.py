"""
CLI commands for core mods.

Usage::

    modpatcher coremods check
    modpatcher --yes coremods check --json
"""

from __future__ import annotations

import json
import sys

import click

from modpatcher.ui.cli.prompts import get_session


@click.group()
def coremods() -> None:
    """Core mods — the mods every app version requires."""


@coremods.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check(ctx: click.Context, as_json: bool) -> None:
    """Check core mods for the installed version and offer to fix them."""
    from modpatcher.core.services.reconciler import ReconcileOutcome
    from modpatcher.core.use_cases.core_mods import check_core_mods

    result = check_core_mods(get_session(ctx))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    reconcile = result.result
    assert reconcile is not None

    if not result.manifest_refreshed:
        click.secho("⚠️  Could not refresh the core mod list, using cached data", fg="yellow")

    check_result = reconcile.check
    for mod_id in check_result.removed_outdated:
        click.echo(f"   ↻ {mod_id} was outdated and has been removed")
    for mod_id in check_result.healed:
        click.echo(f"   ✓ {mod_id} re-enabled")
    for mod_id in check_result.incomparable:
        click.secho(f"   ? {mod_id}: version could not be compared, left alone", fg="yellow")
    for mod_id, error in check_result.errors.items():
        click.secho(f"   ✗ {mod_id}: {error}", fg="red")

    outcome = reconcile.outcome
    if outcome == ReconcileOutcome.UNSUPPORTED:
        click.secho(f"⚠️  No core mods are available for {result.app_version}", fg="yellow")
    elif outcome == ReconcileOutcome.COMPLIANT:
        click.secho("✅ Core mods are installed correctly", fg="green", bold=True)
    elif outcome == ReconcileOutcome.DECLINED:
        click.secho(f"⊘ {len(check_result.missing)} core mods left missing", fg="yellow")
    else:
        remediation = reconcile.remediation
        assert remediation is not None
        for mod_id in remediation.installed:
            click.secho(f"   ✓ {mod_id} installed", fg="green")
        for mod_id, error in remediation.failed.items():
            click.secho(f"   ✗ {mod_id}: {error}", fg="red")
        if remediation.failed:
            sys.exit(1)
