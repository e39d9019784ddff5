"""
Command-line interface for airbasix.

Provides CLI commands for running the Airtable to Wix sync and managing
its configuration.

Usage:
    # Show help
    airbasix --help

    # Create a configuration file
    airbasix init-config

    # Check the effective settings
    airbasix show-config

    # Run synchronization
    airbasix sync
    airbasix sync --dry-run
"""

import sys
from pathlib import Path

import click

from airbasix import __version__
from airbasix.cli.formatters import show_settings, show_sync_result
from airbasix.config.generator import save_config_file
from airbasix.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader
from airbasix.config.settings import SettingsError, SyncSettings
from airbasix.exceptions import AirbasixError, describe_error
from airbasix.utils import resolve_config_dir
from airbasix.utils.logging import cleanup_old_logs, get_logger, setup_logging

# Default lock file name inside the configuration directory
DEFAULT_LOCK_FILE_NAME = "sync.lock"


def get_config_dir(config_dir: str | None) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_file: str | None, config_dir: Path) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file).expanduser()
    return config_dir / DEFAULT_CONFIG_FILE


def load_settings(ctx: click.Context) -> SyncSettings:
    """
    Build SyncSettings from the loaded configuration, exiting on failure.
    """
    if ctx.obj.get("config_error"):
        click.echo(
            click.style(f"Error: {ctx.obj['config_error']}", fg="red"), err=True
        )
        sys.exit(1)

    try:
        return SyncSettings.from_dict(ctx.obj.get("config", {}))
    except SettingsError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        click.echo(f"Configuration file: {ctx.obj['config_file']}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="airbasix")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="AIRBASIX_CONFIG_DIR",
    help="Configuration directory path (default: ~/.airbasix).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="AIRBASIX_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
) -> None:
    """
    One-way Airtable to Wix Data Sync.

    Mirrors the records of an Airtable view into a Wix Data collection:
    new records are inserted, changed records updated, and items whose
    Airtable record is gone are deleted.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    resolved_config_file = get_config_file(config_file, resolved_config_dir)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file
    ctx.obj["config_error"] = None

    config = {}
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Commands that need settings fail later; the rest keep working
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        ctx.obj["config_error"] = str(e)
        config = {}

    ctx.obj["config"] = config

    # CLI flag wins over the config file
    effective_verbose = verbose or config.get("verbose", False)
    ctx.obj["verbose"] = effective_verbose

    log_dir = None
    if config.get("log_dir"):
        log_dir = Path(config["log_dir"]).expanduser()

    setup_logging(verbose=effective_verbose, log_dir=log_dir, enable_file_logging=True)

    log_retention = config.get("log_retention_count", 10)
    if log_retention > 0:
        cleanup_old_logs(log_dir=log_dir, keep_count=log_retention)


# =============================================================================
# Init Config Command
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Examples:

        # Create config file (fails if already exists)
        airbasix init-config

        # Overwrite existing config file
        airbasix init-config --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if success:
        click.echo(click.style("Configuration file created successfully!", fg="green"))
        click.echo(f"\nLocation: {config_file}")
        click.echo("\nNext steps:")
        click.echo("1. Fill in the Airtable base/table and the Wix collection")
        click.echo("2. Export AIRTABLE_API_KEY, WIX_API_KEY and WIX_SITE_ID")
        click.echo("3. Run 'airbasix sync --dry-run' to preview the first sync")
    else:
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)
        logger.error(f"Failed to create configuration file: {error}")
        sys.exit(1)


# =============================================================================
# Show Config Command
# =============================================================================


@cli.command("show-config")
@click.pass_context
def show_config_command(ctx: click.Context) -> None:
    """
    Validate the configuration and print the effective settings.

    API keys are masked.
    """
    settings = load_settings(ctx)

    click.echo(f"Configuration file: {ctx.obj['config_file']}")
    show_settings(settings.to_dict(mask_secrets=True))
    click.echo(click.style("\nConfiguration is valid.", fg="green"))


# =============================================================================
# Sync Command
# =============================================================================


@cli.command("sync")
@click.option(
    "--dry-run", "-n", is_flag=True, help="Preview changes without applying them."
)
@click.pass_context
def sync_command(ctx: click.Context, dry_run: bool) -> None:
    """
    Mirror the Airtable view into the Wix collection.

    Every Airtable record is inserted or updated in Wix. When all records
    synced without errors, Wix items whose Airtable record no longer
    exists are deleted (at most 1000 per run).

    Exits with status 1 if any record failed or the run was aborted.

    Examples:

        # Preview changes without applying
        airbasix sync --dry-run

        # Run the sync
        airbasix sync
    """
    from airbasix.sync.engine import SyncEngine

    logger = get_logger(__name__)
    config = ctx.obj.get("config", {})
    settings = load_settings(ctx)

    effective_dry_run = dry_run or config.get("dry_run", False)

    lock_file_config = config.get("lock_file")
    lock_file = (
        Path(lock_file_config).expanduser()
        if lock_file_config
        else ctx.obj["config_dir"] / DEFAULT_LOCK_FILE_NAME
    )

    if ctx.obj["verbose"]:
        click.echo("\nSync configuration:")
        click.echo(f"  Source: {settings.airtable_base_id}/{settings.airtable_table}")
        click.echo(f"  View: {settings.airtable_view or '(whole table)'}")
        click.echo(f"  Target collection: {settings.wix_collection}")
        click.echo(f"  Workers: {settings.max_workers}")
        click.echo(f"  Dry run: {effective_dry_run}")
        click.echo()

    mode = "Analyzing" if effective_dry_run else "Synchronizing"
    click.echo(f"{mode} {settings.airtable_table} -> {settings.wix_collection}...")

    try:
        engine = SyncEngine.from_settings(settings, lock_file=lock_file)
        result = engine.run_sync(dry_run=effective_dry_run)
    except AirbasixError as e:
        logger.error(f"Sync failed: {describe_error(e)}")
        click.echo(click.style(f"\nSync failed: {e}", fg="red"), err=True)
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Sync failed: {e}")
        click.echo(click.style(f"\nSync failed: {e}", fg="red"), err=True)
        sys.exit(1)

    show_sync_result(result, verbose=ctx.obj["verbose"])

    if not result.succeeded:
        sys.exit(1)
