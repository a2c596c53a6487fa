"""
CLI for running and administering the review auto-responder.

Usage:
    python -m src.cli.bot_cli serve
    python -m src.cli.bot_cli configure --tenant <id> [--token T] [--good TEXT] [--bad TEXT]
    python -m src.cli.bot_cli run-now --tenant <id>
    python -m src.cli.bot_cli delete --tenant <id>
    python -m src.cli.bot_cli show --tenant <id>
    python -m src.cli.bot_cli stats

Settings (database, vendor endpoint, interval) come from environment
variables or a .env file; see src/config/settings.py.
"""

import argparse
import signal
import sys
import threading
import time
from typing import List, Optional

from src.config.settings import ConfigError, Settings, load_settings
from src.core.models import PLACEHOLDER_TEMPLATE, UNSET_TOKEN, TenantConfig
from src.core.templates import TemplateSelector
from src.feedback_api import FeedbackAPIClient
from src.observability.logger import get_logger, log_operation, setup_logger
from src.observability.metrics import FeedbackMetrics, start_metrics_server
from src.service.cycle import ProcessingCycle
from src.storage import StoreError, open_store
from src.tenants import TenantRegistry
from src.utils.validation import ValidationError, validate_template, validate_tenant_id, validate_token

logger = get_logger(__name__)


def _log_manual_result(result):
    if result is not None:
        logger.info(
            "manual run finished",
            extra={"tenant_id": result.tenant_id, "answered": result.answered, "failed": result.failed},
        )


def service_loop(
    registry: TenantRegistry,
    config_store,
    cancel: threading.Event,
    reload_interval: float,
    reload_requested: Optional[threading.Event] = None,
    run_requested: Optional[threading.Event] = None,
    tick: float = 1.0,
):
    """
    Keep running services in sync with stored configs until cancel is set.

    Configs are re-read every reload_interval seconds, or at once when
    reload_requested is set. Setting run_requested queues a manual run
    for every active tenant.
    """
    reload_requested = reload_requested or threading.Event()
    run_requested = run_requested or threading.Event()
    next_reload = time.monotonic() + reload_interval

    while not cancel.wait(tick):
        if reload_requested.is_set() or time.monotonic() >= next_reload:
            reload_requested.clear()
            try:
                registry.reconcile(config_store)
            except StoreError as e:
                logger.error("config reload failed", extra={"error": str(e)})
            next_reload = time.monotonic() + reload_interval

        if run_requested.is_set():
            run_requested.clear()
            queued = registry.trigger_all(on_done=_log_manual_result)
            logger.info("manual run requested", extra={"queued": queued})


def serve_command(args, settings: Settings):
    """
    Run every configured tenant on its schedule until SIGINT/SIGTERM.

    SIGHUP re-reads tenant configs at once; SIGUSR1 runs every tenant now.

    Args:
        args: Command line arguments
        settings: Runtime settings
    """
    cancel = threading.Event()

    def handle_signal(signum, frame):
        logger.info("shutdown signal received", extra={"signal": signal.Signals(signum).name})
        cancel.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    reload_requested = threading.Event()
    run_requested = threading.Event()
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, lambda signum, frame: reload_requested.set())
    if hasattr(signal, "SIGUSR1"):
        signal.signal(signal.SIGUSR1, lambda signum, frame: run_requested.set())

    metrics = FeedbackMetrics()

    with log_operation("Opening store", logger=logger, db_type=settings.db_type):
        store = open_store(settings)

    server = None
    try:
        if settings.metrics_port:
            server, _ = start_metrics_server(metrics, settings.metrics_port)
            logger.info("metrics server started", extra={"port": settings.metrics_port})

        registry = TenantRegistry(store, cancel, settings, metrics=metrics)
        registry.restore(store)

        logger.info(
            "service started",
            extra={"version": settings.version, "active_tenants": len(registry.active_tenants())},
        )

        service_loop(
            registry,
            store,
            cancel,
            settings.config_reload_interval,
            reload_requested=reload_requested,
            run_requested=run_requested,
        )

        registry.shutdown_all(wait=True, timeout=settings.request_timeout * 2)

    finally:
        if server is not None:
            server.shutdown()
        store.close()
        logger.info("service stopped")


def configure_command(args, settings: Settings):
    """
    Create or update a tenant configuration.

    Fields not given on the command line keep their stored value.

    Args:
        args: Command line arguments
        settings: Runtime settings
    """
    tenant_id = validate_tenant_id(args.tenant)

    with open_store(settings) as store:
        config = store.get_config(tenant_id) or TenantConfig(
            tenant_id=tenant_id,
            token=UNSET_TOKEN,
            template_good=PLACEHOLDER_TEMPLATE,
            template_bad=PLACEHOLDER_TEMPLATE,
        )

        updates = {}
        if args.token is not None:
            updates["token"] = validate_token(args.token)
        if args.good is not None:
            updates["template_good"] = validate_template(args.good, "good template")
        if args.bad is not None:
            updates["template_bad"] = validate_template(args.bad, "bad template")

        config = config.model_copy(update=updates)
        store.save_config(config)

    logger.info("tenant configured", extra={"tenant_id": tenant_id, "fields": sorted(updates)})
    print(f"\nConfiguration saved for tenant {tenant_id}")

    missing = config.missing_fields()
    if missing:
        print(f"Still missing: {', '.join(missing)}")
    else:
        print(f"Configuration complete; a running service picks it up within {settings.config_reload_interval:g}s.")


def run_now_command(args, settings: Settings):
    """
    Run one processing cycle for a tenant and print the counts.

    Args:
        args: Command line arguments
        settings: Runtime settings
    """
    tenant_id = validate_tenant_id(args.tenant)

    with open_store(settings) as store:
        config = store.get_config(tenant_id)
        if config is None:
            print(f"\nTenant {tenant_id} is not configured")
            sys.exit(1)

        missing = config.missing_fields()
        if missing:
            print(f"\nTenant {tenant_id} configuration incomplete: missing {', '.join(missing)}")
            sys.exit(1)

        metrics = FeedbackMetrics()
        with FeedbackAPIClient(
            config.token,
            base_url=settings.wb_base_url,
            rate_limit=settings.wb_rate_limit,
            burst=settings.wb_burst,
            timeout=settings.request_timeout,
            metrics=metrics,
            tenant_id=tenant_id,
        ) as client:
            cycle = ProcessingCycle(
                tenant_id=tenant_id,
                client=client,
                store=store,
                selector=TemplateSelector(config.template_good, config.template_bad),
                take=settings.fetch_take,
                metrics=metrics,
            )
            result = cycle.run(threading.Event())

    print()
    print(result.summary())
    if result.fetch_failed:
        sys.exit(1)


def delete_command(args, settings: Settings):
    """Delete a tenant's configuration and processed marks."""
    tenant_id = validate_tenant_id(args.tenant)

    with open_store(settings) as store:
        store.delete_config(tenant_id)

    print(f"\nTenant {tenant_id} deleted")
    print(f"A running service stops it within {settings.config_reload_interval:g}s.")


def show_command(args, settings: Settings):
    """Print a tenant's configuration with the token masked."""
    tenant_id = validate_tenant_id(args.tenant)

    with open_store(settings) as store:
        config = store.get_config(tenant_id)
        marks = store.list_processed(tenant_id, limit=args.limit) if config is not None else []

    if config is None:
        print(f"\nTenant {tenant_id} is not configured")
        return

    print(f"\n{'=' * 60}")
    print(f"TENANT {tenant_id}")
    print(f"{'=' * 60}\n")
    print(f"Token:         {config.masked_token()}")
    print(f"Good template: {config.template_good}")
    print(f"Bad template:  {config.template_bad}")
    print(f"Updated at:    {config.updated_at:%Y-%m-%d %H:%M:%S}")
    missing = config.missing_fields()
    print(f"Status:        {'complete' if not missing else 'missing ' + ', '.join(missing)}")

    if marks:
        print(f"\nRecently answered ({len(marks)}):")
        for mark in marks:
            print(f"  {mark.created_at:%Y-%m-%d %H:%M:%S}  {mark.review_id}")
    print()


def stats_command(args, settings: Settings):
    """Print the number of configured tenants and answered reviews."""
    with open_store(settings) as store:
        stats = store.get_stats()

    print(f"\nConfigured tenants: {stats.total_users}")
    print(f"Answered reviews:   {stats.total_processed}\n")


COMMANDS = {
    "serve": serve_command,
    "configure": configure_command,
    "run-now": run_now_command,
    "delete": delete_command,
    "show": show_command,
    "stats": stats_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Marketplace review auto-responder",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--env-file",
        help="Path to a .env file (default: .env in the working directory)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "serve",
        help="Run all configured tenants until interrupted"
    )

    configure_parser = subparsers.add_parser(
        "configure",
        help="Create or update a tenant configuration"
    )
    configure_parser.add_argument("--tenant", type=int, required=True, help="Tenant (chat) ID")
    configure_parser.add_argument("--token", help="Vendor API token")
    configure_parser.add_argument("--good", help="Reply for 4-5 star reviews")
    configure_parser.add_argument("--bad", help="Reply for 1-3 star reviews")

    run_parser = subparsers.add_parser(
        "run-now",
        help="Run one processing cycle for a tenant"
    )
    run_parser.add_argument("--tenant", type=int, required=True, help="Tenant (chat) ID")

    delete_parser = subparsers.add_parser(
        "delete",
        help="Delete a tenant's configuration and history"
    )
    delete_parser.add_argument("--tenant", type=int, required=True, help="Tenant (chat) ID")

    show_parser = subparsers.add_parser(
        "show",
        help="Show a tenant's configuration"
    )
    show_parser.add_argument("--tenant", type=int, required=True, help="Tenant (chat) ID")
    show_parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Recently answered reviews to list (default: 10)"
    )

    subparsers.add_parser(
        "stats",
        help="Show tenant and review counts"
    )

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for the bot CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        settings = load_settings(args.env_file)
    except ConfigError as e:
        print(f"\nConfiguration error: {e}")
        sys.exit(2)

    setup_logger(level=settings.log_level, format_type=settings.log_format)

    try:
        COMMANDS[args.command](args, settings)

    except ValidationError as e:
        print(f"\nInvalid input: {e}")
        sys.exit(2)

    except StoreError as e:
        logger.error(f"Storage error: {e}", exc_info=True)
        print(f"\nError: {e}")
        sys.exit(1)

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
