"""DB-specific pytest fixtures.

Provides fixtures for testing the connection, ledger and migration
runner with mocked SurrealDB clients and in-memory ledgers.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from schemaledger.db.config import SurrealConfig
from schemaledger.db.connection import Connection
from schemaledger.db.migrations.base import BaseMigration, MigrationContext
from schemaledger.db.migrations.ledger import AppliedRecord, MemoryLedger
from schemaledger.db.migrations.reporter import MigrationReporter


class RecordingMigration(BaseMigration):
    """Migration that logs its up/down calls and can be told to fail."""

    _name_from_init = True

    def __init__(
        self,
        name: str,
        calls: list,
        fail_up: bool = False,
        fail_down: bool = False,
        reversible: bool = True,
    ):
        self.name = name
        self.calls = calls
        self.fail_up = fail_up
        self.fail_down = fail_down
        self.reversible = reversible

    async def up(self, ctx: MigrationContext) -> None:
        self.calls.append(("up", self.name))
        if self.fail_up:
            raise RuntimeError(f"{self.name} up failed")

    async def down(self, ctx: MigrationContext) -> None:
        if not self.reversible:
            await super().down(ctx)
        self.calls.append(("down", self.name))
        if self.fail_down:
            raise RuntimeError(f"{self.name} down failed")


@pytest.fixture
def calls():
    """Shared log of (direction, name) tuples for recording migrations."""
    return []


@pytest.fixture
def make_units(calls):
    """Factory for recording migrations sharing the calls log."""

    def _make(names, fail_up=(), fail_down=(), irreversible=()):
        return [
            RecordingMigration(
                name,
                calls,
                fail_up=name in fail_up,
                fail_down=name in fail_down,
                reversible=name not in irreversible,
            )
            for name in names
        ]

    return _make


@pytest.fixture
def make_ledger():
    """Factory for in-memory ledgers pre-seeded with applied names."""

    def _make(names=()):
        return MemoryLedger([AppliedRecord(name=name) for name in names])

    return _make


@pytest.fixture
def reporter():
    """Mock reporter recording every lifecycle event in order."""
    return MagicMock(spec=MigrationReporter)


@pytest.fixture
def mock_surreal_client():
    """Create a mock SurrealDB client."""
    client = MagicMock()
    client.connect = AsyncMock()
    client.signin = AsyncMock()
    client.authenticate = AsyncMock()
    client.use = AsyncMock()
    client.close = AsyncMock()
    client.query = AsyncMock(return_value=[{"result": []}])
    return client


@pytest.fixture
def mock_surreal_config(tmp_path):
    """Create a SurrealDB configuration for tests."""
    return SurrealConfig(
        url="ws://localhost:8000/rpc",
        namespace="test",
        user="root",
        password="root",
        database="test_db",
        connect_timeout=5.0,
        query_timeout=30.0,
        migrations_path=str(tmp_path / "migrations"),
        migrations_table="_migrations",
    )


@pytest.fixture
def mock_connection(mock_surreal_client, mock_surreal_config):
    """Create a connected Connection backed by the mock client."""
    conn = Connection(mock_surreal_config, "test_db")
    conn._client = mock_surreal_client
    conn._connected = True
    return conn
