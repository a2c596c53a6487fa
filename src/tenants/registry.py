"""
Registry of running per-tenant services.

A tenant gets exactly one scheduler. Creation and lookup happen under a
single lock, so two interactions racing to start the same tenant end up
with one running service.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from src.config.settings import Settings
from src.core.models import CycleResult, TenantConfig
from src.core.templates import TemplateSelector
from src.feedback_api import FeedbackAPIClient
from src.observability.logger import get_logger, tenant_logger
from src.observability.metrics import FeedbackMetrics
from src.scheduler.scheduler import Scheduler
from src.service.cycle import ProcessingCycle
from src.storage.store import ConfigStore, ProcessedStore

from .dispatcher import InteractionDispatcher

ClientFactory = Callable[[TenantConfig], FeedbackAPIClient]


def _same_service_config(a: TenantConfig, b: TenantConfig) -> bool:
    return (a.token, a.template_good, a.template_bad) == (b.token, b.template_good, b.template_bad)


@dataclass
class TenantService:
    """Everything that runs on behalf of one tenant."""

    tenant_id: int
    config: TenantConfig
    client: FeedbackAPIClient
    cycle: ProcessingCycle
    scheduler: Scheduler
    thread: Optional[threading.Thread] = None


class TenantRegistry:
    """
    Owns the per-tenant services of one process.

    All schedulers share the process-wide cancel event; setting it stops
    every tenant at its next checkpoint.
    """

    def __init__(
        self,
        store: ProcessedStore,
        cancel: threading.Event,
        settings: Settings,
        logger: Optional[logging.Logger] = None,
        metrics: Optional[FeedbackMetrics] = None,
        client_factory: Optional[ClientFactory] = None,
        dispatcher: Optional[InteractionDispatcher] = None,
    ):
        """
        Initialize the registry.

        Args:
            store: Dedup store shared by all tenants
            cancel: Process-wide cancellation event
            settings: Runtime settings (interval, rate limit, page size)
            logger: Logger instance
            metrics: Metrics handle shared by all tenants
            client_factory: Builds the vendor client for a config (tests)
            dispatcher: Pool for manual runs (created from settings if None)
        """
        self.store = store
        self.cancel = cancel
        self.settings = settings
        self.log = logger or get_logger(__name__)
        self.metrics = metrics or FeedbackMetrics()
        self.client_factory = client_factory or self._default_client
        self.dispatcher = dispatcher or InteractionDispatcher(settings.max_interactions, logger=self.log)

        self._lock = threading.Lock()
        self._services: Dict[int, TenantService] = {}

    def _default_client(self, config: TenantConfig) -> FeedbackAPIClient:
        return FeedbackAPIClient(
            config.token,
            base_url=self.settings.wb_base_url,
            rate_limit=self.settings.wb_rate_limit,
            burst=self.settings.wb_burst,
            timeout=self.settings.request_timeout,
            logger=self.log,
            metrics=self.metrics,
            tenant_id=config.tenant_id,
        )

    def ensure_started(self, config: TenantConfig) -> bool:
        """
        Start the tenant's scheduler unless one is already running.

        Args:
            config: Snapshot of the tenant's configuration

        Returns:
            True if a new scheduler was started, False if one already runs

        Raises:
            ValueError: If the config is incomplete or the client rejects it
            TemplateError: If a template is empty
        """
        with self._lock:
            if config.tenant_id in self._services:
                return False

            missing = config.missing_fields()
            if missing:
                raise ValueError(f"tenant {config.tenant_id} config incomplete: missing {', '.join(missing)}")

            selector = TemplateSelector(config.template_good, config.template_bad)
            client = self.client_factory(config)
            cycle = ProcessingCycle(
                tenant_id=config.tenant_id,
                client=client,
                store=self.store,
                selector=selector,
                take=self.settings.fetch_take,
                logger=self.log,
                metrics=self.metrics,
            )
            scheduler = Scheduler(
                self.settings.poll_interval,
                cycle.run,
                logger=tenant_logger(self.log, config.tenant_id),
                name=f"tenant-{config.tenant_id}",
            )
            service = TenantService(config.tenant_id, config, client, cycle, scheduler)
            self._services[config.tenant_id] = service
            service.thread = scheduler.start(self.cancel)
            self.metrics.set_active_users(len(self._services))

        self.log.info(
            "tenant service started",
            extra={"tenant_id": config.tenant_id, "interval_seconds": scheduler.interval},
        )
        return True

    def is_active(self, tenant_id: int) -> bool:
        with self._lock:
            return tenant_id in self._services

    def active_tenants(self) -> List[int]:
        with self._lock:
            return sorted(self._services)

    def stop(self, tenant_id: int) -> bool:
        """
        Stop a tenant's scheduler and drop it from the registry.

        Returns:
            True if the tenant was active
        """
        with self._lock:
            service = self._services.pop(tenant_id, None)
            self.metrics.set_active_users(len(self._services))

        if service is None:
            return False

        service.scheduler.shutdown()
        service.client.close()
        self.log.info("tenant service stopped", extra={"tenant_id": tenant_id})
        return True

    def restart(self, config: TenantConfig) -> bool:
        """
        Replace the tenant's running service with one built from config.

        Returns:
            True if a new scheduler was started

        Raises:
            ValueError: If the config is incomplete
        """
        self.stop(config.tenant_id)
        return self.ensure_started(config)

    def run_now(self, tenant_id: int) -> Optional[CycleResult]:
        """
        Run one cycle synchronously, outside the schedule.

        Returns:
            The cycle result, or None if the tenant is not active
        """
        with self._lock:
            service = self._services.get(tenant_id)

        if service is None:
            return None
        return service.cycle.run(self.cancel)

    def trigger(self, tenant_id: int, on_done: Optional[Callable[[Optional[CycleResult]], None]] = None) -> bool:
        """
        Queue a manual run on the interaction dispatcher.

        Args:
            tenant_id: Tenant to run
            on_done: Called with the result when the run finishes

        Returns:
            False if the tenant is inactive or the dispatcher is saturated
        """
        if not self.is_active(tenant_id):
            return False

        def task():
            result = self.run_now(tenant_id)
            if on_done is not None:
                on_done(result)

        return self.dispatcher.submit(task)

    def trigger_all(self, on_done: Optional[Callable[[Optional[CycleResult]], None]] = None) -> int:
        """
        Queue a manual run for every active tenant.

        Returns:
            Number of runs the dispatcher accepted
        """
        return sum(1 for tenant_id in self.active_tenants() if self.trigger(tenant_id, on_done))

    def restore(self, config_store: ConfigStore) -> int:
        """
        Start services for every complete stored configuration.

        Returns:
            Number of services started
        """
        started = 0
        for config in config_store.list_configs():
            if not config.is_complete():
                self.log.debug(
                    "skipping incomplete tenant config",
                    extra={"tenant_id": config.tenant_id, "missing": config.missing_fields()},
                )
                continue
            try:
                if self.ensure_started(config):
                    started += 1
            except ValueError as e:
                self.log.error("tenant service not started", extra={"tenant_id": config.tenant_id, "error": str(e)})

        self.log.info("tenant services restored", extra={"started": started})
        return started

    def reconcile(self, config_store: ConfigStore) -> Dict[str, int]:
        """
        Bring running services in line with the stored configurations.

        A deleted or incomplete config stops its tenant; a changed token or
        template restarts it.

        Returns:
            Counts keyed by "started", "restarted" and "stopped"
        """
        configs = {config.tenant_id: config for config in config_store.list_configs()}
        with self._lock:
            running = {tenant_id: service.config for tenant_id, service in self._services.items()}

        counts = {"started": 0, "restarted": 0, "stopped": 0}
        for tenant_id, current in running.items():
            latest = configs.get(tenant_id)
            if latest is None or not latest.is_complete():
                if self.stop(tenant_id):
                    counts["stopped"] += 1
            elif not _same_service_config(current, latest):
                try:
                    if self.restart(latest):
                        counts["restarted"] += 1
                except ValueError as e:
                    self.log.error("tenant service not restarted", extra={"tenant_id": tenant_id, "error": str(e)})

        for tenant_id, config in configs.items():
            if tenant_id in running or not config.is_complete():
                continue
            try:
                if self.ensure_started(config):
                    counts["started"] += 1
            except ValueError as e:
                self.log.error("tenant service not started", extra={"tenant_id": tenant_id, "error": str(e)})

        if any(counts.values()):
            self.log.info("tenant configs reconciled", extra=counts)
        return counts

    def shutdown_all(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """
        Stop every scheduler and the dispatcher.

        Args:
            wait: Join scheduler threads and pending interactions
            timeout: Per-thread join timeout
        """
        with self._lock:
            services = list(self._services.values())
            self._services.clear()
            self.metrics.set_active_users(0)

        for service in services:
            service.scheduler.shutdown()
        for service in services:
            if wait:
                service.scheduler.join(timeout)
            service.client.close()

        self.dispatcher.shutdown(wait=wait)
        self.log.info("all tenant services stopped", extra={"count": len(services)})
