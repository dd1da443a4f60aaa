"""
PostgreSQL client with connection pooling and scoped transactions.

Uses psycopg2 with ThreadedConnectionPool. Outside a transaction every call
checks out a pooled connection and commits on its own. Inside
``transaction()`` all calls from the same context share one connection and
commit (or roll back) together.
"""

import logging
import os
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

# Global JSONB registration flag
_jsonb_registered = False

# (database_url, connection) of the transaction open in this context
_active_transaction: ContextVar[Tuple[str, Any] | None] = ContextVar(
    "active_transaction", default=None
)


def get_database_url() -> str:
    """
    Database URL from the DATABASE_URL environment variable.

    Raises ValueError when unset. The ledger cannot run without storage.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise ValueError("DATABASE_URL environment variable is required")
    return url


class PostgresClient:
    """
    PostgreSQL client.

    Usage:
        db = PostgresClient(database_url)

        rows = db.execute("SELECT data FROM documents WHERE collection = %s", ("jobs",))

        with db.transaction():
            db.execute("UPDATE ...")
            db.execute("INSERT ...")   # same connection, one commit
    """

    # Class-level connection pools shared across instances
    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(self, database_url: str):
        self._database_url = database_url
        self._ensure_connection_pool()

    def _ensure_connection_pool(self) -> None:
        """Create connection pool if it doesn't exist."""
        with self._pools_lock:
            if self._database_url not in self._connection_pools:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=2,
                    maxconn=20,
                    dsn=self._database_url,
                    connect_timeout=30,
                )

                global _jsonb_registered
                if not _jsonb_registered:
                    psycopg2.extras.register_default_jsonb(globally=True)
                    _jsonb_registered = True

                self._connection_pools[self._database_url] = pool
                logger.info("Connection pool created")

    @contextmanager
    def get_connection(self):
        """Check out a pooled connection."""
        if self._database_url not in self._connection_pools:
            self._ensure_connection_pool()

        pool = self._connection_pools[self._database_url]
        conn = None

        try:
            conn = pool.getconn()
            if conn is None:
                raise RuntimeError("Could not get connection from pool")
            yield conn
        finally:
            if conn:
                pool.putconn(conn)

    def _transaction_connection(self):
        active = _active_transaction.get()
        if active is not None and active[0] == self._database_url:
            return active[1]
        return None

    @property
    def in_transaction(self) -> bool:
        """Whether the current context has an open transaction on this database."""
        return self._transaction_connection() is not None

    @contextmanager
    def transaction(self):
        """
        Run the enclosed calls on one connection and commit once.

        Nested use joins the outer transaction. Any exception rolls back
        everything written since the outermost transaction() began.
        """
        existing = self._transaction_connection()
        if existing is not None:
            yield existing
            return

        with self.get_connection() as conn:
            token = _active_transaction.set((self._database_url, conn))
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                _active_transaction.reset(token)

    @contextmanager
    def _connection(self):
        """Yield (connection, owned). Owned connections commit per statement."""
        existing = self._transaction_connection()
        if existing is not None:
            yield existing, False
            return
        with self.get_connection() as conn:
            yield conn, True

    def _convert_params(self, params: Tuple | Dict | None) -> Tuple | Dict | None:
        """Convert UUID objects to strings."""
        if params is None:
            return None

        def convert(value: Any) -> Any:
            if isinstance(value, UUID):
                return str(value)
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, tuple):
                return tuple(convert(v) for v in value)
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(params)

    def execute(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts. Empty list if no results."""
        params = self._convert_params(params)
        with self._connection() as (conn, owned):
            try:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                    cur.execute(query, params)
                    rows = [dict(row) for row in cur.fetchall()] if cur.description else []
                if owned:
                    conn.commit()
                return rows
            except Exception:
                if owned:
                    conn.rollback()
                raise

    def execute_single(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params)
        return results[0] if results else None

    def execute_scalar(self, query: str, params: Tuple | Dict | None = None) -> Any:
        """Execute query, return first value of first row or None."""
        params = self._convert_params(params)
        with self._connection() as (conn, owned):
            with conn.cursor() as cur:
                cur.execute(query, params)
                result = cur.fetchone()
            if owned:
                conn.commit()
            return result[0] if result else None

    def close(self) -> None:
        """Close connection pool."""
        with self._pools_lock:
            if self._database_url in self._connection_pools:
                self._connection_pools[self._database_url].closeall()
                del self._connection_pools[self._database_url]

    @classmethod
    def close_all_pools(cls) -> None:
        """Close all connection pools."""
        with cls._pools_lock:
            for pool in cls._connection_pools.values():
                pool.closeall()
            cls._connection_pools.clear()
