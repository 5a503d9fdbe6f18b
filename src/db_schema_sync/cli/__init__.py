"""CLI module for declarative schema synchronization.

Provides commands to list profiles, preview the DDL a synchronization
would run, and apply it.

Usage:
    DB_PROFILE=local db-schema-sync plan
    db-schema-sync profiles
    db-schema-sync plan --profile local --models myapp.schema:entities
    db-schema-sync sync --profile local --confirm

Commands:
    profiles  - List available profiles
    plan      - Show the operations and SQL the next sync would run
    sync      - Apply the model to the database (requires --confirm)
"""

import argparse
import asyncio
import logging
import os
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from db_schema_sync.config.loader import load_db_config
from db_schema_sync.errors import PartialSyncError, SchemaSyncError
from db_schema_sync.factory import ProfileNotFoundError, create_synchronizer
from db_schema_sync.schema.operations import SyncPlan
from db_schema_sync.schema.synchronizer import SchemaSynchronizer

console = Console()


# ============================================================================
# Output helpers
# ============================================================================


def _print_plan(plan: SyncPlan) -> None:
    """Print the plan as a table of phase, table and operation."""
    table = Table(title="Schema Plan", show_header=True, header_style="bold")
    table.add_column("Phase", style="dim")
    table.add_column("Table")
    table.add_column("Operation")

    for phase, steps in plan.phases():
        for step in steps:
            for operation in step.operations:
                table.add_row(phase.label, step.table, operation.describe())

    console.print(table)


def _print_sql(statements: list[str]) -> None:
    console.print(f"\n[bold]SQL ({len(statements)} statements):[/bold]")
    for statement in statements:
        console.print(f"  {statement};", highlight=False)


def _build(args: argparse.Namespace) -> SchemaSynchronizer:
    """Create a synchronizer from the parsed arguments."""
    return create_synchronizer(
        profile_name=args.profile,
        env_prefix=getattr(args, "env_prefix", ""),
        config_path=getattr(args, "config", None),
        models=args.models,
    )


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_plan(args: argparse.Namespace) -> int:
    """Async implementation for plan command.

    Args:
        args: Parsed arguments with profile, models, config and env_prefix.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        synchronizer = _build(args)
    except (FileNotFoundError, ProfileNotFoundError, ValueError, SchemaSyncError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    console.print("Loading live schema...", style="dim")

    try:
        statements = await synchronizer.preview()
    except (SchemaSyncError, SQLAlchemyError) as e:
        console.print(f"\n[bold red]x[/bold red] {e}")
        return 1

    plan = synchronizer.last_plan
    if plan is None or not plan.has_changes:
        console.print()
        console.print("[bold green]v[/bold green] Schema is up to date - nothing to do")
        return 0

    console.print()
    _print_plan(plan)
    _print_sql(statements)
    console.print(f"\n[bold]{plan.operation_count}[/bold] operation(s) planned")
    return 0


async def _async_sync(args: argparse.Namespace) -> int:
    """Async implementation for sync command.

    Without ``--confirm`` this is the plan command.

    Args:
        args: Parsed arguments with profile, models, config, confirm and
            env_prefix.

    Returns:
        0 on success, 1 on failure.
    """
    if not args.confirm:
        code = await _async_plan(args)
        if code == 0:
            console.print("\n[yellow]Dry run.[/yellow] Re-run with [cyan]--confirm[/cyan] to apply.")
        return code

    try:
        synchronizer = _build(args)
    except (FileNotFoundError, ProfileNotFoundError, ValueError, SchemaSyncError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    console.print("Synchronizing schema...", style="dim")

    try:
        result = await synchronizer.synchronize()
    except PartialSyncError as e:
        console.print(f"\n[bold red]x[/bold red] {e}")
        console.print("\n[bold]Applied before the failure:[/bold]")
        for operation in e.completed:
            console.print(f"  - {operation.describe()}")
        return 1
    except (SchemaSyncError, SQLAlchemyError) as e:
        console.print(f"\n[bold red]x[/bold red] Synchronization failed, changes rolled back: {e}")
        return 1

    console.print()
    if result.operation_count == 0:
        console.print("[bold green]v[/bold green] Schema is up to date - nothing to do")
        return 0

    for line in result.operations:
        console.print(f"  {line}")
    console.print(
        f"\n[bold green]v[/bold green] Applied {result.operation_count} operation(s) "
        f"with {len(result.executed_sql)} statement(s)"
    )
    return 0


# ============================================================================
# Sync command wrappers
# ============================================================================


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Reads only local TOML config -- no database calls.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 if db.toml is missing or invalid.
    """
    try:
        config = load_db_config(getattr(args, "config", None))
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    current = os.environ.get(f"{getattr(args, 'env_prefix', '')}DB_PROFILE")

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Dialect")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        name_style = "bold cyan" if name == current else ""
        table.add_row(
            marker,
            f"[{name_style}]{name}[/{name_style}]" if name_style else name,
            profile.dialect,
            profile.description or "",
        )

    console.print(table)

    if current in config.profiles:
        console.print("\n[bold green]*[/bold green] = active profile")

    return 0


def cmd_plan(args: argparse.Namespace) -> int:
    """Show what the next sync would do.

    Wraps the async implementation with ``asyncio.run()``.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure.
    """
    return asyncio.run(_async_plan(args))


def cmd_sync(args: argparse.Namespace) -> int:
    """Apply the model to the database.

    Wraps the async implementation with ``asyncio.run()``.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure.
    """
    return asyncio.run(_async_sync(args))


# ============================================================================
# Main entry point
# ============================================================================


def _add_target_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--profile",
        "-p",
        default=None,
        help="Profile from db.toml (default: the DB_PROFILE env var)",
    )
    parser.add_argument(
        "--models",
        "-m",
        default=None,
        help="Declarations as module:attribute (default: [sync] models in db.toml)",
    )


def main() -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="db-schema-sync",
        description="Declarative database schema synchronization",
    )

    # Global options
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="Path to db.toml (default: ./db.toml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log every phase, operation and statement",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # profiles command
    p_profiles = subparsers.add_parser(
        "profiles",
        help="List available profiles",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    # plan command
    p_plan = subparsers.add_parser(
        "plan",
        help="Show the operations and SQL the next sync would run",
    )
    _add_target_arguments(p_plan)
    p_plan.set_defaults(func=cmd_plan)

    # sync command
    p_sync = subparsers.add_parser(
        "sync",
        help="Apply the model to the database",
    )
    _add_target_arguments(p_sync)
    p_sync.add_argument(
        "--confirm",
        action="store_true",
        help="Actually apply the changes (otherwise behaves like plan)",
    )
    p_sync.set_defaults(func=cmd_sync)

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
