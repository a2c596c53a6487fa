"""
PostgreSQL connection pool management using psycopg3

One pool serves every tenant's cycle and the front end at once; psycopg_pool
hands each caller its own connection, so concurrent calls never share a
cursor.
"""
import time
from contextlib import contextmanager
from typing import Iterator

import psycopg
from psycopg import OperationalError
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from src.observability.logger import get_logger
from src.utils.validation import mask_dsn

logger = get_logger(__name__)


class DatabaseConnectionPool:
    """
    Lazily opened psycopg3 pool built from a libpq DSN.

    Rows are returned as dictionaries. Connections are recycled after
    max_lifetime seconds so that server-side restarts heal on their own.
    """

    def __init__(
        self,
        dsn: str,
        min_size: int = 2,
        max_size: int = 25,
        timeout: float = 30.0,
        max_lifetime: float = 300.0,
    ) -> None:
        """
        Initialize the pool (no connection is made until open()).

        Args:
            dsn: libpq key=value string or postgresql:// URL (DB_PATH)
            min_size: Connections kept open
            max_size: Upper bound on concurrent connections
            timeout: Seconds to wait for a connection
            max_lifetime: Seconds before a pooled connection is recycled

        Raises:
            ValueError: If no DSN is given
        """
        if not dsn or not dsn.strip():
            raise ValueError("PostgreSQL DSN is required (set DB_PATH)")

        self.dsn = dsn.strip()
        self.min_size = min_size
        self.max_size = max(max_size, min_size)
        self.timeout = timeout
        self.max_lifetime = max_lifetime
        self._pool: ConnectionPool | None = None

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    def open(self, attempts: int = 3, backoff: float = 2.0) -> None:
        """
        Open the pool, retrying while the server is still starting.

        Args:
            attempts: Connection attempts before giving up
            backoff: Seconds between attempts

        Raises:
            OperationalError: If the database stays unreachable
        """
        if self._pool is not None:
            return

        pool = ConnectionPool(
            conninfo=self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            timeout=self.timeout,
            max_lifetime=self.max_lifetime,
            kwargs={"row_factory": dict_row},
            open=False,
        )

        attempt = 0
        while True:
            attempt += 1
            try:
                pool.open(wait=True, timeout=self.timeout)
                break
            except (OperationalError, TimeoutError) as e:
                logger.warning(
                    "database not reachable",
                    extra={"dsn": mask_dsn(self.dsn), "attempt": attempt, "error": str(e)},
                )
                if attempt >= attempts:
                    pool.close()
                    raise OperationalError(f"database unreachable after {attempts} attempts: {e}") from e
                time.sleep(backoff)

        self._pool = pool

    def close(self) -> None:
        pool, self._pool = self._pool, None
        if pool is not None:
            pool.close()

    @contextmanager
    def get_connection(self) -> Iterator[psycopg.Connection]:
        """
        Borrow a connection; committed on clean exit, rolled back on error.

        Raises:
            RuntimeError: If the pool is not open
        """
        if self._pool is None:
            raise RuntimeError("connection pool is not open, call open() first")
        with self._pool.connection() as conn:
            yield conn

    def execute_query(self, query: str, params: tuple | None = None) -> list[dict]:
        """Run a SELECT and return every row as a dict."""
        with self.get_connection() as conn:
            return conn.execute(query, params).fetchall()

    def execute_command(self, command: str, params: tuple | None = None) -> int:
        """Run an INSERT/UPDATE/DELETE and return the affected row count."""
        with self.get_connection() as conn:
            return conn.execute(command, params).rowcount

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
