"""CLI for database migrations.

Usage:
    python -m schemaledger.db.migrations migrate
    python -m schemaledger.db.migrations migrate --revert-on-error
    python -m schemaledger.db.migrations migrate --dry-run
    python -m schemaledger.db.migrations revert --times 2
    python -m schemaledger.db.migrations revert --name 20240101120000_create_users
    python -m schemaledger.db.migrations reset
    python -m schemaledger.db.migrations list --status executed
    python -m schemaledger.db.migrations create add_new_feature
"""

import argparse
import asyncio
import logging
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from textwrap import dedent

from ..config import SurrealConfig
from ..connection import ConnectionError, QueryError
from .base import InvalidArgumentError, MigrationError
from .plan import ListStatus
from .reporter import ConsoleReporter
from .runner import MigrationRunner, open_runner

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_config(args: argparse.Namespace) -> SurrealConfig:
    """Environment configuration with command-line overrides applied."""
    config = SurrealConfig()
    if args.path:
        config.migrations_path = args.path
    return config


async def _runner(
    args: argparse.Namespace,
    config: SurrealConfig,
    dry_run: bool = False,
) -> MigrationRunner:
    return await open_runner(
        config.migrations_path,
        config=config,
        database=args.database,
        reporter=ConsoleReporter(),
        dry_run=dry_run,
    )


async def cmd_migrate(args: argparse.Namespace, config: SurrealConfig) -> int:
    """Apply pending migrations."""
    runner = await _runner(args, config, dry_run=args.dry_run)

    if args.dry_run:
        print("[DRY-RUN] Simulating migration...")

    result = await runner.apply(revert_on_error=args.revert_on_error)

    if result.failure:
        failure = result.failure
        print(f"\nFailed: {failure.first_broken_name}")
        print(f"  Error: {failure.error}")
        if failure.broken_recorded:
            print(f"  Ledger still records {failure.first_broken_name} as applied")
        if failure.committed_before_failure:
            print(f"  Committed before failure: {', '.join(failure.committed_before_failure)}")
        if failure.reverted:
            print(f"  Reverted: {', '.join(failure.reverted)}")
        if failure.revert_error:
            print(f"  Revert stopped: {failure.revert_error}")
        return 1

    return 0


async def cmd_revert(args: argparse.Namespace, config: SurrealConfig) -> int:
    """Revert applied migrations."""
    # Checked before migrations are loaded or the database is reached
    if args.name is None and args.times < 1:
        raise InvalidArgumentError("--times must be greater than 0")

    runner = await _runner(args, config)
    await runner.revert(times=args.times, name=args.name)
    return 0


async def cmd_reset(args: argparse.Namespace, config: SurrealConfig) -> int:
    """Revert all applied migrations."""
    runner = await _runner(args, config)
    await runner.reset()
    return 0


async def cmd_list(args: argparse.Namespace, config: SurrealConfig) -> int:
    """List pending or executed migrations."""
    runner = await _runner(args, config)
    await runner.list_migrations(status=args.status)
    return 0


def cmd_create(args: argparse.Namespace, config: SurrealConfig) -> int:
    """Create a new migration file."""
    name = re.sub(r"[^a-z0-9_]", "", args.name.lower().replace("-", "_").replace(" ", "_"))
    if not name:
        print(f"Error: Invalid migration name: {args.name!r}")
        return 1

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    migration_name = f"{stamp}_{name}"

    migrations_dir = Path(config.migrations_path)
    migrations_dir.mkdir(parents=True, exist_ok=True)

    filepath = migrations_dir / f"{migration_name}.py"
    if filepath.exists():
        print(f"Error: Migration file already exists: {filepath}")
        return 1

    class_name = "".join(word.capitalize() for word in name.split("_"))
    template = dedent(f'''
        """Migration {migration_name}: {name.replace("_", " ").capitalize()}."""

        from schemaledger.db.migrations import BaseMigration, MigrationContext


        class Migration{class_name}(BaseMigration):
            name = "{migration_name}"

            async def up(self, ctx: MigrationContext) -> None:
                """Apply the migration."""
                # await ctx.execute("DEFINE TABLE IF NOT EXISTS new_table SCHEMAFULL;")
                pass

            async def down(self, ctx: MigrationContext) -> None:
                """Revert the migration."""
                # await ctx.execute("REMOVE TABLE IF EXISTS new_table")
                raise NotImplementedError("Rollback not implemented")
    ''').strip()

    filepath.write_text(template + "\n")
    print(f"Created migration: {filepath}")
    print(f"  Name: {migration_name}")

    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="schemaledger",
        description="SurrealDB schema migrations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=dedent("""
            Examples:
              # Apply all pending migrations, undoing this run's work on failure
              schemaledger migrate --revert-on-error

              # Revert the last 3 migrations
              schemaledger revert --times 3

              # Show what has been applied
              schemaledger list --status executed
        """),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--path",
        help="Migrations directory (default: $MIGRATIONS_PATH or ./migrations)",
    )
    parser.add_argument(
        "--database", "-d",
        help="Target database (default: $SURREAL_DATABASE)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    migrate_parser = subparsers.add_parser(
        "migrate",
        help="Apply pending migrations",
    )
    migrate_parser.add_argument(
        "--revert-on-error",
        action="store_true",
        help="Revert the migrations applied by this run if one fails",
    )
    migrate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview changes without applying",
    )

    revert_parser = subparsers.add_parser(
        "revert",
        help="Revert applied migrations",
    )
    revert_parser.add_argument(
        "--times", "-t",
        type=int,
        default=1,
        help="Number of migrations to revert (default: 1)",
    )
    revert_parser.add_argument(
        "--name", "-n",
        help="Revert this migration only",
    )

    subparsers.add_parser(
        "reset",
        help="Revert all applied migrations",
    )

    list_parser = subparsers.add_parser(
        "list",
        help="List migrations",
    )
    list_parser.add_argument(
        "--status", "-s",
        choices=[s.value for s in ListStatus],
        default=ListStatus.PENDING.value,
        help="Which migrations to list (default: pending)",
    )

    create_parser_cmd = subparsers.add_parser(
        "create",
        help="Create a new migration file",
    )
    create_parser_cmd.add_argument(
        "name",
        help="Migration name (e.g., add_user_preferences)",
    )

    return parser


COMMANDS = {
    "migrate": cmd_migrate,
    "revert": cmd_revert,
    "reset": cmd_reset,
    "list": cmd_list,
}


async def async_main(args: argparse.Namespace) -> int:
    """Async main entry point."""
    config = build_config(args)

    if args.command == "create":
        return cmd_create(args, config)

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Error: {error}")
        return 1

    command = COMMANDS.get(args.command)
    if command is None:
        print(f"Unknown command: {args.command}")
        return 1

    try:
        return await command(args, config)
    except (MigrationError, ConnectionError, QueryError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}")
        return 1


def main() -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    setup_logging(args.verbose)

    exit_code = asyncio.run(async_main(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
