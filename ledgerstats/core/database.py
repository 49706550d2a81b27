"""
ledgerstats: Database Connection Management

This module provides connection pooling and convenience helpers for
connecting to the ledger and stats PostgreSQL databases. It uses
psycopg2's ``ThreadedConnectionPool`` with a thin wrapper that exposes
context managers for acquiring connections.

Key responsibilities:
- Maintain connection pools for ledger_db and stats_db
- Provide context managers to acquire/release connections safely
- Encapsulate connection string construction from configuration

External dependencies:
- psycopg2-binary: PostgreSQL client and connection pooling

Database tables accessed:
- None directly (this module is infrastructure only)

Thread safety: Thread-safe. Pools are created lazily under a lock and
``ThreadedConnectionPool`` may be shared by the update daemon's worker
threads.
"""

# ============================================================================
# Imports
# ============================================================================

from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Generator, Optional

from psycopg2 import pool
from psycopg2.extensions import connection as PsycopgConnection

from ledgerstats.core.config import DatabaseConfig, LedgerStatsConfig, get_config
from ledgerstats.core.logging import get_logger

# ============================================================================
# Module Setup
# ============================================================================

logger = get_logger(__name__)


class DatabaseError(Exception):
    """Raised when a database connection cannot be created or acquired."""


class DatabaseManager:
    """Manage connection pools for the ledger and stats databases.

    The ledger database is the primary blockchain index and is only ever
    read from. The stats database holds persisted chart series.

    Typical usage::

        from ledgerstats.core.database import get_db_manager

        db = get_db_manager()
        with db.get_stats_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            result = cursor.fetchone()
            cursor.close()

    Attributes:
        config: Global ledgerstats configuration instance.
        _ledger_pool: Connection pool for the ledger DB.
        _stats_pool: Connection pool for the stats DB.
    """

    def __init__(self, config: LedgerStatsConfig) -> None:
        """Initialise the database manager with configuration.

        Args:
            config: Loaded ledgerstats configuration.
        """

        self.config = config
        self._ledger_pool: Optional[pool.ThreadedConnectionPool] = None
        self._stats_pool: Optional[pool.ThreadedConnectionPool] = None
        self._pool_lock = Lock()
        logger.info("DatabaseManager initialised")

    # ======================================================================
    # Internal helpers
    # ======================================================================

    @staticmethod
    def _create_connection_string(db_config: DatabaseConfig) -> str:
        """Build a PostgreSQL connection string from configuration.

        Args:
            db_config: Database configuration.

        Returns:
            A DSN string suitable for psycopg2.
        """

        return (
            f"host={db_config.host} "
            f"port={db_config.port} "
            f"dbname={db_config.name} "
            f"user={db_config.user} "
            f"password={db_config.password}"
        )

    def _get_or_create_pool(
        self,
        attr_name: str,
        db_config: DatabaseConfig,
    ) -> pool.ThreadedConnectionPool:
        """Return an existing pool or create a new one.

        Args:
            attr_name: Attribute name for the pool ("_ledger_pool" or
                "_stats_pool").
            db_config: Database configuration for the target database.

        Returns:
            A :class:`psycopg2.pool.ThreadedConnectionPool` instance.

        Raises:
            DatabaseError: If the pool cannot be created.
        """

        with self._pool_lock:
            existing = getattr(self, attr_name)
            if existing is not None:
                return existing

            dsn = self._create_connection_string(db_config)
            try:
                new_pool = pool.ThreadedConnectionPool(
                    minconn=1,
                    maxconn=db_config.pool_size,
                    dsn=dsn,
                )
            except Exception as exc:  # pragma: no cover - connection errors
                logger.error("Failed to create connection pool for '%s': %s", db_config.name, exc)
                raise DatabaseError("Failed to create database connection pool") from exc

            setattr(self, attr_name, new_pool)
            logger.info("Created connection pool for database '%s'", db_config.name)
            return new_pool

    @contextmanager
    def _connection(
        self,
        attr_name: str,
        db_config: DatabaseConfig,
        label: str,
    ) -> Generator[PsycopgConnection, None, None]:
        pool_obj = self._get_or_create_pool(attr_name, db_config)
        try:
            conn = pool_obj.getconn()
        except Exception as exc:  # pragma: no cover - connection errors
            logger.error("Failed to acquire %s connection: %s", label, exc)
            raise DatabaseError(f"Failed to acquire {label} connection") from exc

        try:
            yield conn
        finally:
            pool_obj.putconn(conn)

    # ======================================================================
    # Public context managers
    # ======================================================================

    @contextmanager
    def get_ledger_connection(self) -> Generator[PsycopgConnection, None, None]:
        """Yield a connection to the read-only ledger database.

        Yields:
            A psycopg2 connection object. The connection is returned to the
            pool when the context manager exits.

        Raises:
            DatabaseError: If a connection cannot be acquired.
        """

        with self._connection("_ledger_pool", self.config.ledger_db, "ledger_db") as conn:
            yield conn

    @contextmanager
    def get_stats_connection(self) -> Generator[PsycopgConnection, None, None]:
        """Yield a connection to the stats database.

        Yields:
            A psycopg2 connection object. The connection is returned to the
            pool when the context manager exits.

        Raises:
            DatabaseError: If a connection cannot be acquired.
        """

        with self._connection("_stats_pool", self.config.stats_db, "stats_db") as conn:
            yield conn

    # ======================================================================
    # Lifecycle
    # ======================================================================

    def close_all(self) -> None:
        """Close all connection pools.

        Should be called during graceful shutdown so that all connections
        are closed cleanly.
        """

        with self._pool_lock:
            if self._ledger_pool is not None:
                self._ledger_pool.closeall()
                self._ledger_pool = None
                logger.info("Closed ledger_db connection pool")

            if self._stats_pool is not None:
                self._stats_pool.closeall()
                self._stats_pool = None
                logger.info("Closed stats_db connection pool")


# ============================================================================
# Global Accessor
# ============================================================================

_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """Return the global :class:`DatabaseManager` singleton.

    The manager is created on first access using the global configuration
    from :func:`ledgerstats.core.config.get_config`. Library code receives
    the manager explicitly; only entrypoints call this accessor.

    Returns:
        A :class:`DatabaseManager` instance.
    """

    global _db_manager
    if _db_manager is None:
        config = get_config()
        _db_manager = DatabaseManager(config)
    return _db_manager
