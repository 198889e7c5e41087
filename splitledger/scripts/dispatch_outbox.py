"""CLI command for draining the ledger notification outbox.

Usage:
    flask dispatch-outbox               # Run until interrupted
    flask dispatch-outbox --once        # Process a single batch and exit
"""

from __future__ import annotations

import click
from flask import current_app
from flask.cli import with_appcontext


@click.command("dispatch-outbox")
@click.option("--once", is_flag=True, help="Process one batch and exit")
@click.option("--batch-size", type=int, default=None, help="Override OUTBOX_BATCH_SIZE")
@with_appcontext
def dispatch_outbox_command(once: bool, batch_size: int | None):
    """Publish staged ledger events to the event bus."""
    from splitledger.platform.worker import DispatchConfig, run_dispatcher

    config = DispatchConfig.from_mapping(current_app.config)
    if batch_size:
        config.batch_size = batch_size
    processed = run_dispatcher(config, max_batches=1 if once else None)
    click.echo(f"Processed {processed} outbox message(s)")


def register_commands(app) -> None:
    app.cli.add_command(dispatch_outbox_command)
