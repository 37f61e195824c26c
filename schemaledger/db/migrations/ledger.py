"""Ledger of applied migrations.

The ledger is the single source of truth for which units have been
applied. Two implementations:
- SurrealLedger: rows in a SCHEMAFULL SurrealDB table
- MemoryLedger: in-process list, used for dry runs and tests
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from ..connection import Connection, QueryError
from .base import LedgerInconsistencyError

logger = logging.getLogger(__name__)


# SQL for the migrations tracking table. {table} is a validated identifier.
LEDGER_TABLE_SQL = """
DEFINE TABLE IF NOT EXISTS {table} SCHEMAFULL;
DEFINE FIELD IF NOT EXISTS name ON TABLE {table} TYPE string;
DEFINE FIELD IF NOT EXISTS applied_at ON TABLE {table} TYPE datetime;
DEFINE FIELD IF NOT EXISTS execution_time_ms ON TABLE {table} TYPE option<int>;
DEFINE FIELD IF NOT EXISTS checksum ON TABLE {table} TYPE option<string>;
DEFINE INDEX IF NOT EXISTS idx_{table}_name ON TABLE {table} COLUMNS name UNIQUE;
"""


@dataclass
class AppliedRecord:
    """Record of an applied migration."""

    name: str
    applied_at: Optional[datetime] = None
    execution_time_ms: Optional[int] = None
    checksum: Optional[str] = None


class Ledger(ABC):
    """Durable record of applied migration names, oldest first."""

    async def ensure(self) -> None:
        """Create backing storage if needed."""
        return None

    @abstractmethod
    async def applied(self) -> list[AppliedRecord]:
        """Return applied records in the order they were applied."""

    @abstractmethod
    async def append(
        self,
        name: str,
        execution_time_ms: Optional[int] = None,
        checksum: Optional[str] = None,
    ) -> AppliedRecord:
        """Record a migration as applied.

        Raises:
            LedgerInconsistencyError: If the record could not be written
        """

    @abstractmethod
    async def remove(self, name: str) -> None:
        """Remove a migration's record.

        Raises:
            LedgerInconsistencyError: If no record exists or removal failed
        """

    async def applied_names(self) -> list[str]:
        """Return applied names in the order they were applied."""
        return [r.name for r in await self.applied()]


class MemoryLedger(Ledger):
    """Ledger held in memory.

    Seeded from another ledger's records, it lets a dry run compute
    exactly what a real run would do without writing anything.
    """

    def __init__(self, records: Optional[list[AppliedRecord]] = None):
        self._records: list[AppliedRecord] = list(records or [])

    async def applied(self) -> list[AppliedRecord]:
        return list(self._records)

    async def append(
        self,
        name: str,
        execution_time_ms: Optional[int] = None,
        checksum: Optional[str] = None,
    ) -> AppliedRecord:
        if any(r.name == name for r in self._records):
            raise LedgerInconsistencyError(name, "already recorded as applied")

        record = AppliedRecord(
            name=name,
            applied_at=datetime.now(timezone.utc),
            execution_time_ms=execution_time_ms,
            checksum=checksum,
        )
        self._records.append(record)
        return record

    async def remove(self, name: str) -> None:
        for i, record in enumerate(self._records):
            if record.name == name:
                del self._records[i]
                return
        raise LedgerInconsistencyError(name, "no applied record to remove")


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparseable applied_at value: {value}")
            return None
    # SDK datetime wrappers expose the stdlib value as .dt
    return getattr(value, "dt", None)


class SurrealLedger(Ledger):
    """Ledger stored in a SurrealDB table on the migration connection."""

    def __init__(self, conn: Connection, table: str = "_migrations"):
        """Initialize the ledger.

        Args:
            conn: Open connection to the migration target
            table: Ledger table name (plain identifier)
        """
        self.conn = conn
        self.table = table

    async def ensure(self) -> None:
        """Ensure the migrations tracking table exists."""
        await self.conn.query(LEDGER_TABLE_SQL.format(table=self.table))

    async def applied(self) -> list[AppliedRecord]:
        result = await self.conn.query(
            f"SELECT * FROM {self.table} ORDER BY applied_at ASC, name ASC"
        )
        return [
            AppliedRecord(
                name=r["name"],
                applied_at=_parse_timestamp(r.get("applied_at")),
                execution_time_ms=r.get("execution_time_ms"),
                checksum=r.get("checksum"),
            )
            for r in result
            if r.get("name")
        ]

    async def append(
        self,
        name: str,
        execution_time_ms: Optional[int] = None,
        checksum: Optional[str] = None,
    ) -> AppliedRecord:
        assignments = ["name = $name", "applied_at = time::now()"]
        params: dict[str, Any] = {"name": name}
        # Unset option<> fields are omitted rather than sent as null
        if execution_time_ms is not None:
            assignments.append("execution_time_ms = $execution_time_ms")
            params["execution_time_ms"] = execution_time_ms
        if checksum:
            assignments.append("checksum = $checksum")
            params["checksum"] = checksum

        try:
            await self.conn.query(
                f"CREATE {self.table} SET {', '.join(assignments)}",
                params,
            )
        except QueryError as e:
            raise LedgerInconsistencyError(name, str(e)) from e

        logger.debug(f"Recorded {name} in {self.table}")
        return AppliedRecord(
            name=name,
            applied_at=datetime.now(timezone.utc),
            execution_time_ms=execution_time_ms,
            checksum=checksum,
        )

    async def remove(self, name: str) -> None:
        try:
            removed = await self.conn.query(
                f"DELETE {self.table} WHERE name = $name RETURN BEFORE",
                {"name": name},
            )
        except QueryError as e:
            raise LedgerInconsistencyError(name, str(e)) from e

        if not removed:
            raise LedgerInconsistencyError(name, "no applied record to remove")

        logger.debug(f"Removed {name} from {self.table}")
