"""SurrealDB and migration configuration.

Environment-based configuration for connecting to SurrealDB and for
locating migration files and the ledger table.
"""

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass
class SurrealConfig:
    """SurrealDB connection and migration configuration.

    Attributes:
        url: SurrealDB WebSocket URL (ws:// or wss://)
        namespace: SurrealDB namespace
        user: Authentication username
        password: Authentication password
        database: Database the migrations are applied to
        connect_timeout: Connection timeout in seconds
        query_timeout: Query timeout in seconds
        migrations_path: Directory holding migration files
        migrations_table: Ledger table name
    """

    url: str = field(default_factory=lambda: os.getenv("SURREAL_URL", "ws://localhost:8000/rpc"))
    namespace: str = field(default_factory=lambda: os.getenv("SURREAL_NAMESPACE", "schemaledger"))
    user: str = field(default_factory=lambda: os.getenv("SURREAL_USER", "root"))
    password: str = field(
        default_factory=lambda: os.getenv("SURREAL_PASS", "root")  # Default for local development
    )
    database: str = field(default_factory=lambda: os.getenv("SURREAL_DATABASE", "default"))
    connect_timeout: float = field(
        default_factory=lambda: float(os.getenv("SURREAL_CONNECT_TIMEOUT", "10.0"))
    )
    query_timeout: float = field(
        default_factory=lambda: float(os.getenv("SURREAL_QUERY_TIMEOUT", "300.0"))
    )
    migrations_path: str = field(
        default_factory=lambda: os.getenv("MIGRATIONS_PATH", "./migrations")
    )
    migrations_table: str = field(
        default_factory=lambda: os.getenv("MIGRATIONS_TABLE", "_migrations")
    )

    @property
    def is_secure(self) -> bool:
        """Check if using secure WebSocket connection."""
        return self.url.startswith("wss://")

    @property
    def environment(self) -> Environment:
        """Detect environment from URL."""
        if "localhost" in self.url or "127.0.0.1" in self.url:
            return Environment.DEVELOPMENT
        elif "staging" in self.url:
            return Environment.STAGING
        return Environment.PRODUCTION

    def validate(self) -> list[str]:
        """Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.url:
            errors.append("SURREAL_URL is required")
        elif not self.url.startswith(("ws://", "wss://")):
            errors.append("SURREAL_URL must start with ws:// or wss://")

        if not self.namespace:
            errors.append("SURREAL_NAMESPACE is required")

        if not self.user:
            errors.append("SURREAL_USER is required")

        if not _IDENTIFIER_RE.match(self.migrations_table or ""):
            errors.append("MIGRATIONS_TABLE must be a plain identifier")

        if self.environment == Environment.PRODUCTION:
            if not self.password:
                errors.append("SURREAL_PASS is required in production")
            if not self.is_secure:
                errors.append("Production should use wss:// (secure WebSocket)")

        return errors


def get_database_name(name: Optional[str], default: str = "default") -> str:
    """Sanitize a database name for SurrealDB.

    Args:
        name: Raw database name (uses default if None)
        default: Fallback when the name is empty after sanitization

    Returns:
        Sanitized database name

    Examples:
        >>> get_database_name("my-app")
        'my_app'
        >>> get_database_name("My Project")
        'my_project'
        >>> get_database_name(None)
        'default'
    """
    if name is None:
        return default

    safe_name = name.replace("-", "_").replace(" ", "_")
    safe_name = re.sub(r"[^a-zA-Z0-9_]", "", safe_name).lower()
    if safe_name and safe_name[0].isdigit():
        safe_name = f"p_{safe_name}"

    return safe_name or default
