"""
Pytest configuration and fixtures for feedback-bot tests

This module provides shared fixtures and in-memory fakes for unit and
integration tests.
"""
import threading
from typing import Generator, List, Optional

import pytest

from src.config.settings import Settings
from src.core.models import ProcessedMark, Review, TenantConfig
from src.feedback_api import RequestCancelled
from src.observability.metrics import FeedbackMetrics
from src.storage import SQLiteStore, Store, StoreError, StoreStats


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# FAKES
# =======================

class FakeClient:
    """
    In-memory stand-in for FeedbackAPIClient.

    Reviews listed in `reviews` are returned by fetch_unanswered(); answered
    reviews disappear from the listing, as they do on the vendor side.
    """

    def __init__(self, reviews: Optional[List[Review]] = None):
        self.reviews = list(reviews or [])
        self.answers: List[tuple] = []
        self.fetch_calls = 0
        self.fetch_error: Optional[Exception] = None
        self.answer_errors: dict = {}
        self.on_answer = None
        self.closed = False

    def fetch_unanswered(self, take, skip=0, cancel=None):
        self.fetch_calls += 1
        if cancel is not None and cancel.is_set():
            raise RequestCancelled("request cancelled")
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.reviews[skip:skip + take])

    def answer_feedback(self, feedback_id, text, cancel=None):
        if cancel is not None and cancel.is_set():
            raise RequestCancelled("request cancelled")
        if feedback_id in self.answer_errors:
            raise self.answer_errors[feedback_id]
        self.answers.append((feedback_id, text))
        self.reviews = [r for r in self.reviews if r.id != feedback_id]
        if self.on_answer is not None:
            self.on_answer(feedback_id)

    def close(self):
        self.closed = True


class MemoryStore(Store):
    """Dict-backed Store with switchable failures."""

    def __init__(self):
        self.processed: dict = {}
        self.configs: dict = {}
        self.fail_exists = False
        self.fail_save = False
        self._lock = threading.Lock()

    def migrate(self):
        pass

    def exists(self, tenant_id, review_id):
        if self.fail_exists:
            raise StoreError("exists", "database is locked")
        with self._lock:
            return (tenant_id, review_id) in self.processed

    def save(self, tenant_id, review_id):
        if self.fail_save:
            raise StoreError("save", "disk I/O error")
        with self._lock:
            self.processed.setdefault((tenant_id, review_id), ProcessedMark(tenant_id=tenant_id, review_id=review_id))

    def list_processed(self, tenant_id, limit=100):
        with self._lock:
            marks = [m for (t, _), m in self.processed.items() if t == tenant_id]
        return sorted(marks, key=lambda m: m.created_at, reverse=True)[:limit]

    def save_config(self, config):
        with self._lock:
            self.configs[config.tenant_id] = config

    def get_config(self, tenant_id):
        return self.configs.get(tenant_id)

    def list_configs(self):
        return [self.configs[k] for k in sorted(self.configs)]

    def delete_config(self, tenant_id):
        with self._lock:
            self.configs.pop(tenant_id, None)
            self.processed = {k: v for k, v in self.processed.items() if k[0] != tenant_id}

    def get_stats(self):
        return StoreStats(total_users=len(self.configs), total_processed=len(self.processed))

    def close(self):
        pass


def make_review(review_id: str, rating: int, text: str = "") -> Review:
    """Build a Review the way the vendor API would return it."""
    return Review.model_validate({"id": review_id, "productValuation": rating, "text": text})


# =======================
# FIXTURES
# =======================

@pytest.fixture
def metrics() -> FeedbackMetrics:
    """Fresh metrics handle with its own registry"""
    return FeedbackMetrics()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def fake_client_cls():
    """FakeClient class, for tests that build one client per tenant"""
    return FakeClient


@pytest.fixture
def review():
    """Factory fixture: review("id", rating, text="")"""
    return make_review


@pytest.fixture
def sqlite_store(tmp_path) -> Generator[SQLiteStore, None, None]:
    """
    Migrated SQLite store in a temporary directory

    Yields:
        SQLiteStore instance, closed after the test
    """
    store = SQLiteStore(tmp_path / "db" / "feedbacks.db")
    store.migrate()
    yield store
    store.close()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a temporary SQLite database"""
    return Settings(db_type="sqlite", db_path=str(tmp_path / "feedbacks.db"), metrics_port=0)


@pytest.fixture
def tenant_config() -> TenantConfig:
    return TenantConfig(
        tenant_id=42,
        token="abcdefghijklmnopqrstuvwxyz0123456789",
        template_good="Thanks!",
        template_bad="Sorry!",
    )


@pytest.fixture
def cancel() -> Generator[threading.Event, None, None]:
    """Cancellation event, set on teardown so no scheduler outlives a test"""
    event = threading.Event()
    yield event
    event.set()


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container():
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance
    """
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_bot",
        password="test_password",
        dbname="test_feedbacks",
        driver=None,
    ) as postgres:
        postgres.get_connection_url()
        yield postgres


@pytest.fixture
def postgres_dsn(postgres_container) -> str:
    """libpq URL of the test database"""
    return postgres_container.get_connection_url()
