"""
SQLite implementation of the processed-review and tenant config stores.

A lightweight embedded backend: one connection in WAL mode, serialized by a
lock so that concurrent tenant cycles never interleave statements.
"""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from src.core.models import ProcessedMark, TenantConfig
from src.observability.logger import get_logger

from .store import Store, StoreError, StoreStats

logger = get_logger(__name__)

# Milliseconds SQLite waits on a locked database before failing
BUSY_TIMEOUT_MS = 5000

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS processed (
    user_id INTEGER NOT NULL,
    id TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (user_id, id)
);
CREATE INDEX IF NOT EXISTS idx_processed_created_at ON processed(created_at);

CREATE TABLE IF NOT EXISTS user_configs (
    user_id INTEGER PRIMARY KEY,
    wb_token TEXT NOT NULL DEFAULT '',
    template_good TEXT NOT NULL DEFAULT '',
    template_bad TEXT NOT NULL DEFAULT '',
    updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""


class SQLiteStore(Store):
    """
    Store backed by a single SQLite database file.

    Use ":memory:" as the path for a throwaway database.
    """

    def __init__(self, path: str | Path):
        """
        Open (or create) the database.

        Args:
            path: Database file path; parent directories are created
        """
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = sqlite3.connect(
            self.path,
            timeout=BUSY_TIMEOUT_MS / 1000,
            check_same_thread=False,
            isolation_level=None,  # explicit transactions only
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")
        if self.path != ":memory:":
            self._conn.execute("PRAGMA journal_mode = WAL")

    @contextmanager
    def _cursor(self, operation: str, transaction: bool = False):
        with self._lock:
            if self._conn is None:
                raise StoreError(operation, "store is closed")
            cur = self._conn.cursor()
            try:
                if transaction:
                    cur.execute("BEGIN IMMEDIATE")
                yield cur
                if transaction:
                    cur.execute("COMMIT")
            except sqlite3.Error as e:
                if transaction and self._conn.in_transaction:
                    self._conn.rollback()
                raise StoreError(operation, str(e)) from e
            except Exception:
                if transaction and self._conn.in_transaction:
                    self._conn.rollback()
                raise
            finally:
                cur.close()

    def migrate(self) -> None:
        with self._lock:
            if self._conn is None:
                raise StoreError("migrate", "store is closed")
            try:
                self._conn.executescript(SCHEMA_SQL)
            except sqlite3.Error as e:
                raise StoreError("migrate", str(e)) from e

    # --- processed marks ---

    def exists(self, tenant_id: int, review_id: str) -> bool:
        with self._cursor("exists") as cur:
            cur.execute(
                "SELECT 1 FROM processed WHERE user_id = ? AND id = ? LIMIT 1",
                (tenant_id, review_id),
            )
            return cur.fetchone() is not None

    def save(self, tenant_id: int, review_id: str) -> None:
        with self._cursor("save") as cur:
            cur.execute(
                "INSERT OR IGNORE INTO processed (user_id, id, created_at) VALUES (?, ?, ?)",
                (tenant_id, review_id, _utcnow()),
            )

    def list_processed(self, tenant_id: int, limit: int = 100) -> list[ProcessedMark]:
        with self._cursor("list_processed") as cur:
            cur.execute(
                """
                SELECT user_id, id, created_at FROM processed
                WHERE user_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (tenant_id, limit),
            )
            rows = cur.fetchall()
        return [
            ProcessedMark(tenant_id=row["user_id"], review_id=row["id"], created_at=row["created_at"])
            for row in rows
        ]

    # --- tenant configs ---

    def save_config(self, config: TenantConfig) -> None:
        with self._cursor("save_config") as cur:
            cur.execute(
                """
                INSERT INTO user_configs (user_id, wb_token, template_good, template_bad, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    wb_token = excluded.wb_token,
                    template_good = excluded.template_good,
                    template_bad = excluded.template_bad,
                    updated_at = excluded.updated_at
                """,
                (config.tenant_id, config.token, config.template_good, config.template_bad, _utcnow()),
            )

    def get_config(self, tenant_id: int) -> TenantConfig | None:
        with self._cursor("get_config") as cur:
            cur.execute(
                """
                SELECT user_id, wb_token, template_good, template_bad, updated_at
                FROM user_configs WHERE user_id = ? LIMIT 1
                """,
                (tenant_id,),
            )
            row = cur.fetchone()
        return _config_from_row(row) if row is not None else None

    def list_configs(self) -> list[TenantConfig]:
        with self._cursor("list_configs") as cur:
            cur.execute(
                """
                SELECT user_id, wb_token, template_good, template_bad, updated_at
                FROM user_configs ORDER BY user_id
                """
            )
            rows = cur.fetchall()
        return [_config_from_row(row) for row in rows]

    def delete_config(self, tenant_id: int) -> None:
        with self._cursor("delete_config", transaction=True) as cur:
            cur.execute("DELETE FROM processed WHERE user_id = ?", (tenant_id,))
            cur.execute("DELETE FROM user_configs WHERE user_id = ?", (tenant_id,))
        logger.info("tenant data deleted", extra={"tenant_id": tenant_id})

    def get_stats(self) -> StoreStats:
        with self._cursor("get_stats") as cur:
            cur.execute("SELECT COUNT(DISTINCT user_id) FROM user_configs")
            total_users = cur.fetchone()[0]
            cur.execute("SELECT COUNT(*) FROM processed")
            total_processed = cur.fetchone()[0]
        return StoreStats(total_users=total_users, total_processed=total_processed)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


def _utcnow() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")


def _config_from_row(row: sqlite3.Row) -> TenantConfig:
    return TenantConfig(
        tenant_id=row["user_id"],
        token=row["wb_token"],
        template_good=row["template_good"],
        template_bad=row["template_bad"],
        updated_at=row["updated_at"],
    )
