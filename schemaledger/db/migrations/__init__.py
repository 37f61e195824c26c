"""Database migration system for SurrealDB schema management.

Provides a migration orchestrator with:
- Migration units with up/down support, ordered by name
- A ledger of applied migrations stored in the target database
- Apply with partial-failure diagnosis and optional auto-revert
- Revert by count or name, reset, and status listing
- Dry-run mode for previewing changes

Usage:
    from schemaledger.db.migrations import open_runner

    runner = await open_runner("./migrations")
    result = await runner.apply(revert_on_error=True)
    if not result.success:
        print(result.failure.first_broken_name)

CLI Usage:
    python -m schemaledger.db.migrations migrate --revert-on-error
    python -m schemaledger.db.migrations revert --times 2
    python -m schemaledger.db.migrations reset
    python -m schemaledger.db.migrations list --status executed
    python -m schemaledger.db.migrations create add_new_feature
"""

from .base import (
    BaseMigration,
    FunctionMigration,
    InvalidArgumentError,
    LedgerInconsistencyError,
    MigrationContext,
    MigrationError,
    MigrationOperationError,
)

from .ledger import (
    AppliedRecord,
    Ledger,
    MemoryLedger,
    SurrealLedger,
)

from .plan import (
    ApplyResult,
    FailureReport,
    ListStatus,
    RunPlan,
)

from .registry import (
    MigrationRegistry,
    discover_migrations,
)

from .reporter import (
    ConsoleReporter,
    MigrationReporter,
)

from .runner import (
    MigrationRunner,
    open_runner,
)

__all__ = [
    # Base classes
    "BaseMigration",
    "FunctionMigration",
    "MigrationContext",
    "MigrationError",
    "InvalidArgumentError",
    "MigrationOperationError",
    "LedgerInconsistencyError",
    # Ledger
    "AppliedRecord",
    "Ledger",
    "MemoryLedger",
    "SurrealLedger",
    # Plans and results
    "ApplyResult",
    "FailureReport",
    "ListStatus",
    "RunPlan",
    # Registry
    "MigrationRegistry",
    "discover_migrations",
    # Reporting
    "ConsoleReporter",
    "MigrationReporter",
    # Runner
    "MigrationRunner",
    "open_runner",
]
