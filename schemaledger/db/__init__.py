"""SurrealDB integration for schemaledger.

Provides:
- Environment-based configuration
- Connection management for a single migration run
- The migration orchestrator (see schemaledger.db.migrations)

Environment Variables:
    SURREAL_URL: WebSocket URL (ws:// or wss://)
    SURREAL_NAMESPACE: Namespace
    SURREAL_USER: Authentication username
    SURREAL_PASS: Authentication password
    SURREAL_DATABASE: Target database name
    MIGRATIONS_PATH: Directory holding migration files
    MIGRATIONS_TABLE: Ledger table name
"""

from .config import (
    Environment,
    SurrealConfig,
    get_database_name,
)

from .connection import (
    Connection,
    ConnectionError,
    QueryError,
    open_connection,
)

__all__ = [
    # Config
    "Environment",
    "SurrealConfig",
    "get_database_name",
    # Connection
    "Connection",
    "ConnectionError",
    "QueryError",
    "open_connection",
]
