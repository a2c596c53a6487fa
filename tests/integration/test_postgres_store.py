"""
Integration tests for the PostgreSQL store

Tests run against a PostgreSQL container started with testcontainers.
"""
import threading

import pytest

from src.core.models import TenantConfig
from src.storage.connection import DatabaseConnectionPool
from src.storage.postgres_store import PostgresStore


@pytest.fixture
def pg_store(postgres_dsn):
    """Migrated store with empty tables"""
    pool = DatabaseConnectionPool(dsn=postgres_dsn, min_size=1, max_size=5)
    store = PostgresStore(pool)
    store.migrate()
    pool.execute_command("TRUNCATE TABLE processed, user_configs")
    yield store
    store.close()


@pytest.fixture
def config():
    return TenantConfig(
        tenant_id=-1001234567890,
        token="abcdefghijklmnopqrstuvwxyz0123456789",
        template_good="Thanks!",
        template_bad="Sorry!",
    )


@pytest.mark.integration
def test_migrate_is_idempotent(pg_store):
    pg_store.migrate()
    pg_store.migrate()


@pytest.mark.integration
def test_save_and_exists(pg_store):
    assert not pg_store.exists(1, "r1")
    pg_store.save(1, "r1")
    pg_store.save(1, "r1")

    assert pg_store.exists(1, "r1")
    assert not pg_store.exists(2, "r1")
    assert pg_store.get_stats().total_processed == 1


@pytest.mark.integration
def test_concurrent_saves_collapse(pg_store):
    """Test that racing inserts of one pair leave a single row"""
    barrier = threading.Barrier(5)

    def save():
        barrier.wait()
        pg_store.save(1, "race")

    threads = [threading.Thread(target=save) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10.0)

    assert len(pg_store.list_processed(1)) == 1


@pytest.mark.integration
def test_list_processed(pg_store):
    for review_id in ["a", "b", "c"]:
        pg_store.save(7, review_id)

    marks = pg_store.list_processed(7, limit=2)

    assert len(marks) == 2
    assert all(m.tenant_id == 7 for m in marks)


@pytest.mark.integration
def test_config_roundtrip(pg_store, config):
    pg_store.save_config(config)
    pg_store.save_config(config.model_copy(update={"template_bad": "We are sorry"}))

    loaded = pg_store.get_config(config.tenant_id)

    assert loaded.token == config.token
    assert loaded.template_good == "Thanks!"
    assert loaded.template_bad == "We are sorry"
    assert pg_store.get_config(404) is None
    assert [c.tenant_id for c in pg_store.list_configs()] == [config.tenant_id]


@pytest.mark.integration
def test_delete_config_removes_marks(pg_store, config):
    pg_store.save_config(config)
    pg_store.save(config.tenant_id, "r1")
    pg_store.save(99, "r1")

    pg_store.delete_config(config.tenant_id)

    assert pg_store.get_config(config.tenant_id) is None
    assert not pg_store.exists(config.tenant_id, "r1")
    assert pg_store.exists(99, "r1")

    stats = pg_store.get_stats()
    assert stats.total_users == 0
    assert stats.total_processed == 1
