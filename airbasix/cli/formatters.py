"""CLI output formatting functions.

This module contains functions for displaying sync results and the
effective settings on the command line.
"""

from typing import TYPE_CHECKING, Any

import click

if TYPE_CHECKING:
    from airbasix.sync.engine import SyncResult

# Maximum failed records listed before truncating
MAX_ERRORS_SHOWN = 10


def show_sync_result(result: "SyncResult", verbose: bool = False) -> None:
    """
    Display the outcome of a sync run.

    Args:
        result: The SyncResult to display
        verbose: If True, list every failed record
    """
    click.echo("\n" + "=" * 50)
    click.echo(result.summary())
    click.echo("=" * 50)

    if result.errors:
        click.echo(click.style(f"\n{len(result.errors)} records failed:", fg="yellow"))
        shown = result.errors if verbose else result.errors[:MAX_ERRORS_SHOWN]
        for error in shown:
            click.echo(f"  ! {error.record_id}: {error.message} [{error.code}]")
        if len(result.errors) > len(shown):
            click.echo(f"  ... and {len(result.errors) - len(shown)} more")

    if result.orphan_cleanup_skipped:
        click.echo(
            click.style(
                "\nOrphan cleanup was skipped because some records failed.",
                fg="yellow",
            )
        )

    if result.orphan_error:
        click.echo(
            click.style(f"\nOrphan cleanup failed: {result.orphan_error}", fg="red"),
            err=True,
        )

    if result.dry_run:
        click.echo(click.style("\nDry run complete. No changes were made.", fg="yellow"))
        click.echo("Run without --dry-run to apply these changes.")
    elif result.succeeded:
        click.echo(click.style("\nSync completed successfully!", fg="green"))


def show_settings(settings: dict[str, Any]) -> None:
    """Display settings as aligned key/value lines."""
    width = max((len(key) for key in settings), default=0)
    for key, value in settings.items():
        click.echo(f"  {key.ljust(width)} : {value}")
