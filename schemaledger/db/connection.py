"""SurrealDB connection management.

Provides the single connection a migration run works through, plus
the provider function that opens it.
"""

import asyncio
import logging
from typing import Any, Optional

import requests
from surrealdb import AsyncSurreal

from .config import SurrealConfig, get_database_name

logger = logging.getLogger(__name__)


class ConnectionError(Exception):
    """Database connection error."""

    pass


class QueryError(Exception):
    """Database query error."""

    pass


class Connection:
    """A single SurrealDB connection wrapper.

    Handles connection lifecycle, authentication, and namespace/database selection.
    """

    def __init__(
        self,
        config: SurrealConfig,
        database: str,
    ):
        """Initialize connection.

        Args:
            config: SurrealDB configuration
            database: Database name to use
        """
        self.config = config
        self.database = database
        self._client: Optional[AsyncSurreal] = None
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        """Check if connection is active."""
        return self._connected and self._client is not None

    def _get_http_url(self) -> str:
        """Convert WebSocket URL to HTTP URL for token auth."""
        url: str = self.config.url
        if url.endswith("/rpc"):
            url = url[: -len("/rpc")]
        if url.startswith("wss://"):
            return url.replace("wss://", "https://", 1)
        elif url.startswith("ws://"):
            return url.replace("ws://", "http://", 1)
        return url

    def _get_auth_token(self) -> str:
        """Get authentication token via HTTP signin."""
        signin_url = f"{self._get_http_url()}/signin"

        try:
            resp = requests.post(
                signin_url,
                json={"user": self.config.user, "pass": self.config.password},
                headers={"Accept": "application/json"},
                timeout=self.config.connect_timeout,
            )
            resp.raise_for_status()
            data = resp.json()

            if data.get("code") != 200:
                raise ConnectionError(f"HTTP signin failed: {data}")

            token: Optional[str] = data.get("token")
            if not token:
                raise ConnectionError("No token in signin response")

            return token
        except requests.RequestException as e:
            raise ConnectionError(f"HTTP signin request failed: {e}") from e

    async def connect(self) -> None:
        """Establish connection to SurrealDB.

        Uses direct WebSocket signin for local development (ws://)
        and HTTP token auth for remote/production (wss://).
        """
        async with self._lock:
            if self._connected:
                return

            try:
                self._client = AsyncSurreal(self.config.url)

                await asyncio.wait_for(
                    self._client.connect(),
                    timeout=self.config.connect_timeout,
                )

                if self.config.is_secure:
                    token = self._get_auth_token()
                    logger.debug("Got auth token via HTTP signin")
                    await self._client.authenticate(token)
                else:
                    await self._client.signin(
                        {
                            "username": self.config.user,
                            "password": self.config.password,
                        }
                    )
                    logger.debug("Signed in via WebSocket")

                await self._client.use(self.config.namespace, self.database)

                self._connected = True
                logger.debug(f"Connected to SurrealDB: {self.config.namespace}/{self.database}")

            except asyncio.TimeoutError as e:
                await self._close_client()
                raise ConnectionError(
                    f"Connection timeout after {self.config.connect_timeout}s"
                ) from e
            except ConnectionError:
                await self._close_client()
                raise
            except Exception as e:
                await self._close_client()
                raise ConnectionError(f"Failed to connect: {e}") from e

    async def _close_client(self) -> None:
        """Close and drop the client. Caller holds the lock."""
        if self._client:
            try:
                await self._client.close()
            except Exception as e:
                logger.warning(f"Error closing connection: {e}")
            finally:
                self._client = None
                self._connected = False

    async def disconnect(self) -> None:
        """Close connection. Safe to call more than once."""
        async with self._lock:
            if self._client:
                await self._close_client()
                logger.debug(f"Disconnected from SurrealDB: {self.database}")

    async def query(
        self,
        sql: str,
        params: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        """Execute a SurrealQL query.

        Args:
            sql: SurrealQL query string
            params: Query parameters

        Returns:
            List of result records
        """
        if not self.is_connected:
            await self.connect()
        assert self._client is not None

        try:
            result = await asyncio.wait_for(
                self._client.query(sql, params or {}),
                timeout=self.config.query_timeout,
            )
        except asyncio.TimeoutError as e:
            raise QueryError(f"Query timeout after {self.config.query_timeout}s") from e
        except Exception as e:
            raise QueryError(f"Query failed: {e}") from e

        return _flatten_result(result)


def _flatten_result(result: Any) -> list[dict[str, Any]]:
    """Flatten the per-statement results SurrealDB returns."""
    if not isinstance(result, list):
        if isinstance(result, dict):
            return [result]
        return []

    records: list[dict[str, Any]] = []
    for stmt_result in result:
        if isinstance(stmt_result, dict):
            if "result" in stmt_result:
                # Standard format: {"result": [...], "status": "OK"}
                if stmt_result.get("status", "OK") != "OK":
                    raise QueryError(f"Statement failed: {stmt_result.get('result')}")
                inner = stmt_result["result"]
                if isinstance(inner, list):
                    records.extend(inner)
                elif isinstance(inner, dict):
                    records.append(inner)
            else:
                records.append(stmt_result)
        elif isinstance(stmt_result, list):
            records.extend(stmt_result)
    return records


async def open_connection(
    config: SurrealConfig,
    database: Optional[str] = None,
) -> Connection:
    """Open an authenticated connection to the migration target.

    Args:
        config: SurrealDB configuration
        database: Database name (overrides config.database)

    Returns:
        Connected Connection

    Raises:
        ConnectionError: If the database cannot be reached or sign-in fails
    """
    db_name = get_database_name(database or config.database)
    conn = Connection(config, db_name)
    await conn.connect()
    logger.info(f"Connected to {config.namespace}/{db_name}")
    return conn
