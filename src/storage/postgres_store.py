"""
PostgreSQL implementation of the processed-review and tenant config stores.

Idempotency is enforced by the database: the processed table has a
composite primary key and inserts use ON CONFLICT DO NOTHING.
"""

from datetime import datetime, timezone

from psycopg import Error as PsycopgError

from src.core.models import ProcessedMark, TenantConfig
from src.observability.logger import get_logger

from .connection import DatabaseConnectionPool
from .store import Store, StoreError, StoreStats

logger = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS processed (
    user_id BIGINT NOT NULL,
    id TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (user_id, id)
);
CREATE INDEX IF NOT EXISTS idx_processed_user_id ON processed(user_id);
CREATE INDEX IF NOT EXISTS idx_processed_created_at ON processed(created_at);

CREATE TABLE IF NOT EXISTS user_configs (
    user_id BIGINT PRIMARY KEY,
    wb_token TEXT NOT NULL DEFAULT '',
    template_good TEXT NOT NULL DEFAULT '',
    template_bad TEXT NOT NULL DEFAULT '',
    updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_user_configs_updated_at ON user_configs(updated_at);
"""


class PostgresStore(Store):
    """
    Store backed by a psycopg3 connection pool.

    Each call checks out its own pooled connection, so the store is safe
    for concurrent use from many threads.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize the store.

        Args:
            pool: Database connection pool (opened here if still closed)
        """
        self.pool = pool
        if not self.pool.is_open:
            self.pool.open()

    def migrate(self) -> None:
        try:
            with self.pool.get_connection() as conn:
                conn.execute(SCHEMA_SQL)
        except PsycopgError as e:
            raise StoreError("migrate", str(e)) from e

    # --- processed marks ---

    def exists(self, tenant_id: int, review_id: str) -> bool:
        try:
            rows = self.pool.execute_query(
                "SELECT 1 AS found FROM processed WHERE user_id = %s AND id = %s LIMIT 1",
                (tenant_id, review_id),
            )
        except PsycopgError as e:
            raise StoreError("exists", str(e)) from e
        return bool(rows)

    def save(self, tenant_id: int, review_id: str) -> None:
        try:
            self.pool.execute_command(
                """
                INSERT INTO processed (user_id, id, created_at)
                VALUES (%s, %s, %s)
                ON CONFLICT (user_id, id) DO NOTHING
                """,
                (tenant_id, review_id, _utcnow()),
            )
        except PsycopgError as e:
            raise StoreError("save", str(e)) from e

    def list_processed(self, tenant_id: int, limit: int = 100) -> list[ProcessedMark]:
        try:
            rows = self.pool.execute_query(
                """
                SELECT user_id, id, created_at FROM processed
                WHERE user_id = %s
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (tenant_id, limit),
            )
        except PsycopgError as e:
            raise StoreError("list_processed", str(e)) from e
        return [
            ProcessedMark(tenant_id=row["user_id"], review_id=row["id"], created_at=row["created_at"])
            for row in rows
        ]

    # --- tenant configs ---

    def save_config(self, config: TenantConfig) -> None:
        try:
            self.pool.execute_command(
                """
                INSERT INTO user_configs (user_id, wb_token, template_good, template_bad, updated_at)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (user_id) DO UPDATE SET
                    wb_token = EXCLUDED.wb_token,
                    template_good = EXCLUDED.template_good,
                    template_bad = EXCLUDED.template_bad,
                    updated_at = EXCLUDED.updated_at
                """,
                (config.tenant_id, config.token, config.template_good, config.template_bad, _utcnow()),
            )
        except PsycopgError as e:
            raise StoreError("save_config", str(e)) from e

    def get_config(self, tenant_id: int) -> TenantConfig | None:
        try:
            rows = self.pool.execute_query(
                """
                SELECT user_id, wb_token, template_good, template_bad, updated_at
                FROM user_configs WHERE user_id = %s LIMIT 1
                """,
                (tenant_id,),
            )
        except PsycopgError as e:
            raise StoreError("get_config", str(e)) from e
        return _config_from_row(rows[0]) if rows else None

    def list_configs(self) -> list[TenantConfig]:
        try:
            rows = self.pool.execute_query(
                """
                SELECT user_id, wb_token, template_good, template_bad, updated_at
                FROM user_configs ORDER BY user_id
                """
            )
        except PsycopgError as e:
            raise StoreError("list_configs", str(e)) from e
        return [_config_from_row(row) for row in rows]

    def delete_config(self, tenant_id: int) -> None:
        try:
            with self.pool.get_connection() as conn:
                with conn.transaction():
                    conn.execute("DELETE FROM processed WHERE user_id = %s", (tenant_id,))
                    conn.execute("DELETE FROM user_configs WHERE user_id = %s", (tenant_id,))
        except PsycopgError as e:
            raise StoreError("delete_config", str(e)) from e
        logger.info("tenant data deleted", extra={"tenant_id": tenant_id})

    def get_stats(self) -> StoreStats:
        try:
            rows = self.pool.execute_query(
                """
                SELECT
                    (SELECT COUNT(DISTINCT user_id) FROM user_configs) AS total_users,
                    (SELECT COUNT(*) FROM processed) AS total_processed
                """
            )
        except PsycopgError as e:
            raise StoreError("get_stats", str(e)) from e
        row = rows[0]
        return StoreStats(total_users=row["total_users"], total_processed=row["total_processed"])

    def close(self) -> None:
        self.pool.close()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _config_from_row(row: dict) -> TenantConfig:
    return TenantConfig(
        tenant_id=row["user_id"],
        token=row["wb_token"],
        template_good=row["template_good"],
        template_bad=row["template_bad"],
        updated_at=row["updated_at"],
    )
