"""CLI commands for the outbox worker and its operators.

Usage:
    flask outbox-worker                   # Run the sync worker until interrupted
    flask outbox-worker --once            # Process a single batch and exit
    flask outbox-stats                    # Show per-status counts and alerts
    flask outbox-reclaim --older-than-minutes 30
    flask seed-form-engines               # Upsert installed engines, pick default
"""

from __future__ import annotations

import sys
from datetime import timedelta

import click
from flask import current_app
from flask.cli import with_appcontext


@click.command("outbox-worker")
@click.option("--once", is_flag=True, help="Process one batch and exit")
@with_appcontext
def outbox_worker_command(once: bool):
    """Run the outbox sync worker."""
    from soba.platform.worker.config import WorkerConfig
    from soba.platform.worker.dispatcher import StoreUnavailableError, ping_store, run_worker
    from soba.platform.worker.run import build_sync_engine

    config = WorkerConfig.from_env()
    try:
        ping_store()
        result = run_worker(build_sync_engine(config), config, iterations=1 if once else None)
    except StoreUnavailableError as exc:
        click.echo(f"  ✗ {exc}", err=True)
        sys.exit(1)
    click.echo(
        f"  ✓ Claimed: {result.claimed}, Succeeded: {result.succeeded}, Failed: {result.failed}"
    )


@click.command("outbox-stats")
@with_appcontext
def outbox_stats_command():
    """Show outbox counts, long-retrying records and stale leases."""
    from soba.platform.outbox.services import outbox_stats

    stats = outbox_stats(
        retry_alert_attempts=current_app.config["OUTBOX_RETRY_ALERT_ATTEMPTS"],
        stale_after=timedelta(minutes=current_app.config["OUTBOX_STALE_LEASE_MINUTES"]),
    )
    for status, count in sorted(stats.by_status.items()):
        click.echo(f"{status:<12}{count}")
    click.echo(f"{'retrying':<12}{stats.retrying}")
    click.echo(f"{'stale':<12}{stats.stale_leases}")
    if not stats.healthy:
        sys.exit(2)


@click.command("outbox-reclaim")
@click.option(
    "--older-than-minutes",
    type=click.IntRange(min=1),
    required=True,
    help="Return processing records leased longer ago than this to pending",
)
@with_appcontext
def outbox_reclaim_command(older_than_minutes: int):
    """Release stale processing leases after a worker crash."""
    from soba.platform.outbox.services import reclaim_stale_leases

    count = reclaim_stale_leases(
        timedelta(minutes=older_than_minutes),
        actor_id=current_app.config["SYSTEM_ACTOR_ID"],
    )
    click.echo(f"  ✓ Reclaimed {count} record(s)")


@click.command("seed-form-engines")
@click.option("--default", "default_code", default="formio-v5", show_default=True, help="Default engine code")
@with_appcontext
def seed_form_engines_command(default_code: str):
    """Insert or refresh platform form engine rows from the installed registry."""
    from soba.core.errors import ValidationError
    from soba.core.forms.services.form_service import seed_form_engines
    from soba.platform.engines.registry import build_default_registry

    try:
        engines = seed_form_engines(build_default_registry().catalog(), default_code)
    except (ValidationError, ValueError) as exc:
        click.echo(f"  ✗ {exc}", err=True)
        sys.exit(1)
    for engine in engines:
        marker = " (default)" if engine.is_default else ""
        click.echo(f"  ✓ {engine.code}{marker}")


def register_commands(app):
    """Register CLI commands with the app."""
    app.cli.add_command(outbox_worker_command)
    app.cli.add_command(outbox_stats_command)
    app.cli.add_command(outbox_reclaim_command)
    app.cli.add_command(seed_form_engines_command)
