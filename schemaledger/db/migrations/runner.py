"""Migration runner for applying and reverting migrations.

Provides:
- Apply pending migrations, with partial-failure diagnosis and
  optional auto-revert of what the failed run committed
- Revert by name or by count, and reset
- Listing of pending and executed migrations

Every public operation releases the runner's connection on the way
out, whether it succeeds or raises.
"""

import logging
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Union

from ..config import SurrealConfig
from ..connection import Connection, open_connection
from .base import (
    BaseMigration,
    InvalidArgumentError,
    LedgerInconsistencyError,
    MigrationContext,
    MigrationError,
    MigrationOperationError,
)
from .ledger import Ledger, MemoryLedger, SurrealLedger
from .plan import (
    ApplyResult,
    FailureReport,
    ListStatus,
    RunPlan,
    build_plan,
    committed_subset,
    find_first_broken,
    revert_selection,
)
from .registry import MigrationRegistry, discover_migrations
from .reporter import MigrationReporter

logger = logging.getLogger(__name__)


class MigrationRunner:
    """Runner for executing migrations against a ledger."""

    def __init__(
        self,
        migrations: Union[MigrationRegistry, Sequence[BaseMigration]],
        ledger: Ledger,
        connection: Optional[Connection] = None,
        reporter: Optional[MigrationReporter] = None,
        dry_run: bool = False,
    ):
        """Initialize the runner.

        Args:
            migrations: Registry or ordered sequence of migration units
            ledger: Ledger of applied migrations
            connection: Connection the units run against; released after each operation
            reporter: Receiver of lifecycle events
            dry_run: Log statements instead of executing them
        """
        if isinstance(migrations, MigrationRegistry):
            units = migrations.get_all()
        else:
            units = list(migrations)

        self.migrations: list[BaseMigration] = units
        self._by_name = {m.name: m for m in units}
        self.ledger = ledger
        self.connection = connection
        self.reporter = reporter or MigrationReporter()
        self.dry_run = dry_run

    def _context(self) -> MigrationContext:
        return MigrationContext(
            conn=self.connection,
            database=self.connection.database if self.connection else "",
            dry_run=self.dry_run,
        )

    async def release(self) -> None:
        """Close the runner's connection."""
        if self.connection is not None:
            await self.connection.disconnect()

    @asynccontextmanager
    async def _scoped(self) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await self.release()

    async def plan(self) -> RunPlan:
        """Compute the pending set from the ledger."""
        await self.ledger.ensure()
        applied = await self.ledger.applied_names()
        return build_plan(self.migrations, applied)

    async def _apply_one(self, migration: BaseMigration, ctx: MigrationContext) -> None:
        """Run up() then record the unit; the pair is the unit's commit step."""
        prefix = "[DRY-RUN] " if self.dry_run else ""
        logger.debug(f"{prefix}Applying migration {migration.full_name}...")

        start_time = time.time()
        try:
            await migration.up(ctx)
        except Exception as e:
            raise MigrationOperationError(migration.name, "up", str(e)) from e
        execution_time_ms = int((time.time() - start_time) * 1000)

        await self.ledger.append(
            migration.name,
            execution_time_ms=execution_time_ms,
            checksum=migration.get_checksum(),
        )
        logger.debug(f"{prefix}Applied {migration.full_name} in {execution_time_ms}ms")

    async def _revert_one(self, migration: BaseMigration, ctx: MigrationContext) -> None:
        """Run down() then remove the unit's record."""
        prefix = "[DRY-RUN] " if self.dry_run else ""
        logger.debug(f"{prefix}Reverting migration {migration.full_name}...")

        start_time = time.time()
        try:
            await migration.down(ctx)
        except NotImplementedError as e:
            raise MigrationOperationError(migration.name, "down", "rollback not supported") from e
        except Exception as e:
            raise MigrationOperationError(migration.name, "down", str(e)) from e
        execution_time_ms = int((time.time() - start_time) * 1000)

        await self.ledger.remove(migration.name)
        logger.debug(f"{prefix}Reverted {migration.full_name} in {execution_time_ms}ms")

    def _resolve(self, names: Sequence[str]) -> list[BaseMigration]:
        missing = [n for n in names if n not in self._by_name]
        if missing:
            raise MigrationError(
                f"Applied migration(s) not found in migrations: {', '.join(missing)}"
            )
        return [self._by_name[n] for n in names]

    async def _revert_names(self, names: Sequence[str]) -> list[str]:
        """Revert the given names in order, reporting each. Errors propagate."""
        ctx = self._context()
        reverted: list[str] = []
        for migration in self._resolve(names):
            await self._revert_one(migration, ctx)
            reverted.append(migration.name)
            self.reporter.reverted_name(migration.name)
        return reverted

    async def _diagnose(self, plan: RunPlan, error: MigrationError) -> FailureReport:
        """Work out from the ledger what the failed run actually committed."""
        applied_after = await self.ledger.applied_names()
        committed = committed_subset(plan.pending_names, applied_after)
        first_broken = find_first_broken(plan.pending_names, committed)
        failed_name = getattr(error, "migration_name", None)
        broken_recorded = False

        if first_broken is None:
            # Every pending name is in the ledger; blame the step that raised
            first_broken = failed_name or plan.pending_names[-1]
            committed = [n for n in committed if n != first_broken]
            broken_recorded = True
            logger.warning(
                f"Migration {first_broken} raised but the ledger records it as applied; "
                "it is left recorded and excluded from auto-revert"
            )
        elif failed_name and failed_name != first_broken:
            logger.warning(
                f"Migration {failed_name} raised but the ledger is missing {first_broken}; "
                "the ledger and the database may disagree"
            )

        return FailureReport(
            committed_before_failure=committed,
            first_broken_name=first_broken,
            failed_name=failed_name,
            error=str(error),
            broken_recorded=broken_recorded,
        )

    async def _auto_revert(self, report: FailureReport) -> None:
        """Undo exactly what the failed run committed, newest first.

        A failure here is recorded on the report and stops the auto-revert.
        """
        self.reporter.reverting()
        ctx = self._context()
        for migration in self._resolve(list(reversed(report.committed_before_failure))):
            try:
                await self._revert_one(migration, ctx)
            except (MigrationOperationError, LedgerInconsistencyError) as e:
                logger.error(f"Auto-revert stopped at {migration.name}: {e}")
                report.revert_error = str(e)
                break
            report.reverted.append(migration.name)
            self.reporter.reverted_name(migration.name)

    async def apply(self, revert_on_error: bool = False) -> ApplyResult:
        """Apply pending migrations in order.

        A failing unit does not raise: the result carries a FailureReport
        naming what committed and what broke.

        Args:
            revert_on_error: Revert the units this run committed if one fails

        Returns:
            Apply result
        """
        async with self._scoped():
            self.reporter.looking_for_pending()
            plan = await self.plan()

            if not plan.pending_names:
                self.reporter.no_pending()
                return ApplyResult(success=True, applied=[], dry_run=self.dry_run)

            self.reporter.applying_pending(len(plan.pending_names))

            ctx = self._context()
            applied: list[str] = []
            try:
                for migration in plan.pending:
                    await self._apply_one(migration, ctx)
                    applied.append(migration.name)
            except (MigrationOperationError, LedgerInconsistencyError) as e:
                logger.debug(f"Apply stopped after {len(applied)} migration(s)", exc_info=True)
                self.reporter.error_applying(e)

                report = await self._diagnose(plan, e)
                self.reporter.broken_migration(report.first_broken_name)

                if revert_on_error and report.committed_before_failure:
                    await self._auto_revert(report)

                still_applied = [
                    n for n in report.committed_before_failure if n not in report.reverted
                ]
                return ApplyResult(
                    success=False,
                    applied=still_applied,
                    failure=report,
                    dry_run=self.dry_run,
                )

            self.reporter.applied_count(len(applied))
            for name in applied:
                self.reporter.applied_name(name)

            return ApplyResult(success=True, applied=applied, dry_run=self.dry_run)

    async def revert(self, times: int = 1, name: Optional[str] = None) -> list[str]:
        """Revert applied migrations.

        Args:
            times: Number of most recent migrations to revert (ignored with name)
            name: Revert exactly this applied migration

        Returns:
            Reverted names in execution order

        Raises:
            InvalidArgumentError: If times < 1 without a name, or name is not applied
            MigrationOperationError: If a down() fails
        """
        async with self._scoped():
            if name is None and times < 1:
                raise InvalidArgumentError("--times must be greater than 0")

            await self.ledger.ensure()
            applied = await self.ledger.applied_names()

            if name is not None:
                self.reporter.reverting(name)
                if name not in applied:
                    raise InvalidArgumentError(f"Migration {name} has not been applied")
                targets = [name]
            else:
                targets = revert_selection(applied, times)
                if not targets:
                    self.reporter.nothing_to_revert()
                    return []
                self.reporter.reverting(
                    "the last migration" if times == 1 else f"the last {times} migrations"
                )

            reverted = await self._revert_names(targets)
            self.reporter.reverted_count(len(reverted))
            return reverted

    async def reset(self) -> list[str]:
        """Revert every applied migration, newest first.

        Returns:
            Reverted names in execution order
        """
        async with self._scoped():
            await self.ledger.ensure()
            targets = revert_selection(await self.ledger.applied_names())
            if not targets:
                self.reporter.nothing_to_revert()
                return []

            self.reporter.reverting("all migrations")
            reverted = await self._revert_names(targets)
            self.reporter.reverted_count(len(reverted))
            return reverted

    async def list_migrations(
        self,
        status: Union[ListStatus, str] = ListStatus.PENDING,
    ) -> list[str]:
        """List pending (definition order) or executed (ledger order) migrations."""
        async with self._scoped():
            try:
                status = ListStatus(status)
            except ValueError as e:
                raise InvalidArgumentError(f"Unknown status: {status}") from e

            self.reporter.searching(status.value)

            if status == ListStatus.EXECUTED:
                await self.ledger.ensure()
                names = await self.ledger.applied_names()
            else:
                names = (await self.plan()).pending_names

            self.reporter.found_count(status.value, len(names))
            for name in names:
                self.reporter.found_name(name)
            return names


async def open_runner(
    path: Optional[Union[str, Path]] = None,
    config: Optional[SurrealConfig] = None,
    database: Optional[str] = None,
    reporter: Optional[MigrationReporter] = None,
    dry_run: bool = False,
) -> MigrationRunner:
    """Connect to the target database and build a runner.

    In dry-run mode the runner works on an in-memory copy of the
    ledger, so nothing is recorded.

    Args:
        path: Migrations directory (defaults to config.migrations_path)
        config: SurrealDB configuration (defaults from environment)
        database: Database name override
        reporter: Receiver of lifecycle events
        dry_run: Log statements instead of executing them

    Returns:
        Runner bound to an open connection

    Raises:
        ConnectionError: If the database cannot be reached
        MigrationError: If migrations cannot be loaded
    """
    cfg = config or SurrealConfig()
    registry = discover_migrations(path or cfg.migrations_path)

    conn = await open_connection(cfg, database)
    ledger: Ledger = SurrealLedger(conn, cfg.migrations_table)

    if dry_run:
        try:
            ledger = MemoryLedger(await ledger.applied())
        except Exception:
            await conn.disconnect()
            raise

    return MigrationRunner(registry, ledger, connection=conn, reporter=reporter, dry_run=dry_run)
