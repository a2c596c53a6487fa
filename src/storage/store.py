"""
Storage interfaces for processed-review marks and tenant configuration.

Implementations must be safe for concurrent use by every tenant's cycle
and by the front end at the same time.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from src.core.models import ProcessedMark, TenantConfig


class StoreError(Exception):
    """
    Raised when the storage backend fails.

    Attributes:
        operation: Store operation that failed (exists, save, get_config, ...)
    """

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class StoreStats(BaseModel):
    """Aggregate numbers for the admin view."""

    total_users: int = 0
    total_processed: int = 0


class ProcessedStore(ABC):
    """
    Persistent set of (tenant, review id) pairs.

    exists() is true iff the pair was saved. save() is insert-if-absent:
    saving an existing pair is a no-op and racing inserts collapse into one
    record. After close() the store must not be used.
    """

    @abstractmethod
    def exists(self, tenant_id: int, review_id: str) -> bool:
        """Check whether the review was already answered for the tenant."""

    @abstractmethod
    def save(self, tenant_id: int, review_id: str) -> None:
        """Record the review as answered for the tenant (idempotent)."""

    @abstractmethod
    def list_processed(self, tenant_id: int, limit: int = 100) -> list[ProcessedMark]:
        """Most recent marks for the tenant, newest first."""

    @abstractmethod
    def close(self) -> None:
        """Release backend resources."""


class ConfigStore(ABC):
    """CRUD over tenant configurations."""

    @abstractmethod
    def save_config(self, config: TenantConfig) -> None:
        """Insert or replace the tenant's configuration."""

    @abstractmethod
    def get_config(self, tenant_id: int) -> TenantConfig | None:
        """Tenant configuration, or None if the tenant never configured."""

    @abstractmethod
    def list_configs(self) -> list[TenantConfig]:
        """Every stored configuration."""

    @abstractmethod
    def delete_config(self, tenant_id: int) -> None:
        """Delete the configuration and all processed marks of the tenant."""

    @abstractmethod
    def get_stats(self) -> StoreStats:
        """Aggregate statistics."""


class Store(ProcessedStore, ConfigStore):
    """A backend that implements both interfaces over one database."""

    @abstractmethod
    def migrate(self) -> None:
        """Create tables and indexes if they do not exist."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
