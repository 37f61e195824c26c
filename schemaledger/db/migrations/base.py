"""Base classes for the migration system.

Defines the core abstractions:
- BaseMigration: Abstract base class for all migration units
- FunctionMigration: Unit built from plain up/down coroutine functions
- MigrationContext: Context passed to migration up/down methods
- Error taxonomy shared by the registry, ledger and runner
"""

import hashlib
import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from ..connection import Connection

logger = logging.getLogger(__name__)


class MigrationError(Exception):
    """Base exception for migration errors."""

    pass


class InvalidArgumentError(MigrationError, ValueError):
    """Raised when an operation is called with arguments it cannot honour."""

    pass


class MigrationOperationError(MigrationError):
    """A unit's up() or down() raised.

    Attributes:
        migration_name: Name of the unit that failed
        direction: "up" or "down"
    """

    def __init__(self, migration_name: str, direction: str, message: str):
        super().__init__(f"Migration {migration_name} failed during {direction}(): {message}")
        self.migration_name = migration_name
        self.direction = direction


class LedgerInconsistencyError(MigrationError):
    """The ledger could not record or remove a unit.

    The unit's own effect on the database may already have happened.
    """

    def __init__(self, migration_name: str, message: str):
        super().__init__(f"Ledger update for {migration_name} failed: {message}")
        self.migration_name = migration_name


@dataclass
class MigrationContext:
    """Context passed to migration up/down methods.

    Provides access to the database connection and utilities
    for executing migrations safely.
    """

    conn: Optional["Connection"]
    database: str = ""
    dry_run: bool = False
    _executed_statements: list[str] = field(default_factory=list)

    async def execute(self, sql: str, params: Optional[dict[str, Any]] = None) -> Any:
        """Execute a SurrealQL statement.

        In dry-run mode, logs the statement without executing.

        Args:
            sql: SurrealQL statement
            params: Optional parameters

        Returns:
            Query result (empty list in dry-run mode)
        """
        self._executed_statements.append(sql)

        if self.dry_run:
            logger.info(f"[DRY-RUN] Would execute: {sql.strip()[:200]}")
            return []

        if self.conn is None:
            raise MigrationError("No database connection available to execute statements")

        return await self.conn.query(sql, params)

    async def execute_batch(self, statements: list[str]) -> list[Any]:
        """Execute multiple statements in order.

        Args:
            statements: List of SurrealQL statements

        Returns:
            List of results
        """
        results = []
        for stmt in statements:
            result = await self.execute(stmt)
            results.append(result)
        return results

    async def table_exists(self, table: str) -> bool:
        """Check if a table exists.

        Args:
            table: Table name

        Returns:
            True if table exists
        """
        if self.dry_run:
            return True
        if self.conn is None:
            return False

        result = await self.conn.query("INFO FOR DB")
        if result and isinstance(result[0], dict):
            return table in result[0].get("tables", {})
        return False

    @property
    def executed_statements(self) -> list[str]:
        """Get list of executed statements."""
        return self._executed_statements.copy()


class BaseMigration(ABC):
    """Abstract base class for migration units.

    Each migration must implement:
    - up(): Apply the migration
    - down(): Revert the migration (optional, can raise NotImplementedError)

    Attributes:
        name: Unique, sortable name (e.g., "20240101120000_create_users").
            Units are applied in lexical order of their names.
    """

    name: str

    def __init_subclass__(cls, **kwargs):
        """Validate subclass attributes."""
        super().__init_subclass__(**kwargs)

        if getattr(cls, "_name_from_init", False):
            return
        if not getattr(cls, "name", None):
            raise TypeError(f"Migration {cls.__name__} must define 'name'")

    @abstractmethod
    async def up(self, ctx: MigrationContext) -> None:
        """Apply the migration.

        Args:
            ctx: Migration context with database connection
        """
        pass

    async def down(self, ctx: MigrationContext) -> None:
        """Revert the migration.

        Default implementation raises NotImplementedError.
        Override to support rollback.

        Raises:
            NotImplementedError: If rollback is not supported
        """
        raise NotImplementedError(f"Migration {self.name} does not support rollback")

    @property
    def full_name(self) -> str:
        """Get full migration name."""
        return self.name

    def get_checksum(self) -> str:
        """Calculate checksum of migration code.

        Used to detect if a migration has been modified after being applied.

        Returns:
            First 16 hex chars of the SHA256 of the migration source
        """
        try:
            source = inspect.getsource(self._source_object())
        except (OSError, TypeError):
            return ""
        return hashlib.sha256(source.encode()).hexdigest()[:16]

    def _source_object(self) -> Any:
        return self.__class__

    def __repr__(self) -> str:
        return f"<Migration {self.full_name}>"


MigrationFunc = Callable[[MigrationContext], Awaitable[None]]


class FunctionMigration(BaseMigration):
    """Migration unit assembled from standalone coroutine functions.

    Used for migration modules that expose module-level ``up``/``down``
    instead of a BaseMigration subclass.
    """

    _name_from_init = True

    def __init__(
        self,
        name: str,
        up: MigrationFunc,
        down: Optional[MigrationFunc] = None,
    ):
        if not name:
            raise TypeError("FunctionMigration requires a name")
        self.name = name
        self._up = up
        self._down = down

    async def up(self, ctx: MigrationContext) -> None:
        await self._up(ctx)

    async def down(self, ctx: MigrationContext) -> None:
        if self._down is None:
            await super().down(ctx)
            return
        await self._down(ctx)

    def _source_object(self) -> Any:
        return self._up
