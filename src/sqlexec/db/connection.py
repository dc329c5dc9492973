"""Connection sources: unpooled, pooled and SQLite.

A connection source hands out live connections and can be shut down to
release whatever it owns. The executor and transaction scope only ever
call ``acquire()``; concurrency limits are the source's business.
"""

import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

import aiosqlite
import asyncpg

from sqlexec.config import get_sqlite_path, load_database_config, load_pool_config
from sqlexec.db.backend import Connection
from sqlexec.db.postgres_backend import PostgresConnection
from sqlexec.db.sqlite_backend import SQLiteConnection
from sqlexec.errors import DatabaseConnectionError
from sqlexec.models.config import DatabaseConfig, PoolConfig

logger = logging.getLogger(__name__)

_PG_CONNECT_ERRORS = (OSError, TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError)


@runtime_checkable
class ConnectionSource(Protocol):
    """Anything that can hand out connections and be shut down."""

    async def acquire(self) -> Connection:
        """Return a live connection. Raises DatabaseConnectionError."""
        ...

    async def shutdown(self) -> None:
        """Release resources owned by the source. Idempotent."""
        ...


class UnpooledConnectionSource:
    """Opens a brand-new PostgreSQL connection for every acquire()."""

    def __init__(self, config: DatabaseConfig, properties: dict[str, str] | None = None) -> None:
        """Initialize with connection settings and call-site property overrides."""
        self._config = config
        self._url = config.connection_url(properties)

    @property
    def url(self) -> str:
        """Connection URL used for every new session."""
        return self._url

    async def acquire(self) -> PostgresConnection:
        """Open a new physical connection."""
        try:
            conn = await asyncpg.connect(
                self._url, user=self._config.username, password=self._config.password
            )
        except _PG_CONNECT_ERRORS as e:
            logger.warning("Could not connect to %s: %s", self._url, e)
            raise DatabaseConnectionError(f"Could not connect to {self._url}: {e}") from e
        logger.debug("Opened connection to %s", self._url)
        return PostgresConnection(conn)

    async def shutdown(self) -> None:
        """No-op. An unpooled source owns nothing between calls."""


class PooledConnectionSource:
    """Hands out connections from an asyncpg pool.

    Build with ``await PooledConnectionSource.create(config, pool_config)``.
    Closing a connection obtained here returns it to the pool.
    """

    def __init__(self, pool: asyncpg.Pool, pool_config: PoolConfig) -> None:
        """Initialize with a ready asyncpg pool and the settings it was built from."""
        self._pool = pool
        self._pool_config = pool_config
        self._closed = False

    @classmethod
    async def create(cls, config: DatabaseConfig, pool_config: PoolConfig) -> "PooledConnectionSource":
        """Create the pool. Pool-config properties override database-config ones."""
        url = config.connection_url(pool_config.properties)
        try:
            pool = await asyncpg.create_pool(
                url,
                user=config.username,
                password=config.password,
                min_size=pool_config.effective_min_idle,
                max_size=pool_config.max_size,
                max_inactive_connection_lifetime=pool_config.idle_timeout,
            )
        except _PG_CONNECT_ERRORS as e:
            logger.warning("Could not create pool %s for %s: %s", pool_config.name, url, e)
            raise DatabaseConnectionError(f"Could not create pool {pool_config.name}: {e}") from e
        logger.info(
            "Pool %s ready (min_idle=%d, max_size=%d)",
            pool_config.name,
            pool_config.effective_min_idle,
            pool_config.max_size,
        )
        return cls(pool, pool_config)

    @property
    def name(self) -> str:
        """Pool name, used in log and error messages."""
        return self._pool_config.name

    async def acquire(self) -> PostgresConnection:
        """Wait up to the acquisition timeout for a pooled connection."""
        if self._closed:
            raise DatabaseConnectionError(f"Pool {self.name} has been shut down")
        # A zero timeout means wait indefinitely
        timeout = self._pool_config.acquire_timeout or None
        try:
            conn = await self._pool.acquire(timeout=timeout)
        except TimeoutError as e:
            logger.warning("Pool %s exhausted after %s s", self.name, timeout)
            raise DatabaseConnectionError(
                f"Timed out after {self._pool_config.acquire_timeout_ms} ms "
                f"waiting for a connection from pool {self.name}"
            ) from e
        except _PG_CONNECT_ERRORS as e:
            logger.warning("Pool %s could not provide a connection: %s", self.name, e)
            raise DatabaseConnectionError(f"Pool {self.name} could not connect: {e}") from e
        return PostgresConnection(conn, release=self._pool.release)

    async def shutdown(self) -> None:
        """Close the pool once; later calls do nothing."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._pool.close()
        except _PG_CONNECT_ERRORS as e:
            raise DatabaseConnectionError(f"Failed to shut down pool {self.name}: {e}") from e
        logger.info("Pool %s shut down", self.name)


class SQLiteConnectionSource:
    """Opens a fresh SQLite connection to one database file per acquire().

    Each ``":memory:"`` connection is a separate empty database, so use a
    file path when statements must see each other's writes.
    """

    def __init__(self, path: Path | str) -> None:
        """Initialize with the database file path."""
        self._path = str(path)

    @property
    def path(self) -> str:
        """Database file path."""
        return self._path

    async def acquire(self) -> SQLiteConnection:
        """Open a new connection to the database file."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            return await SQLiteConnection.open(self._path)
        except (aiosqlite.Error, OSError) as e:
            logger.warning("Could not open SQLite database %s: %s", self._path, e)
            raise DatabaseConnectionError(f"Could not open {self._path}: {e}") from e

    async def shutdown(self) -> None:
        """No-op. Connections are closed by whoever acquired them."""


async def create_source(
    config: DatabaseConfig | None = None,
    pool_config: PoolConfig | None = None,
    *,
    sqlite_path: Path | str | None = None,
) -> ConnectionSource:
    """Create a connection source.

    An explicit ``sqlite_path`` wins. With no arguments at all the source is
    built from the environment (SQLEXEC_SQLITE_PATH, then the SQLEXEC_HOST/
    SQLEXEC_POOL_* settings). A pool config selects the pooled source.
    """
    if sqlite_path is None and config is None:
        sqlite_path = get_sqlite_path()
    if sqlite_path is not None:
        return SQLiteConnectionSource(sqlite_path)

    if config is None:
        config = load_database_config()
        pool_config = pool_config or load_pool_config()
    if pool_config is not None:
        return await PooledConnectionSource.create(config, pool_config)
    return UnpooledConnectionSource(config)
