"""
Structured JSON logging for the feedback auto-responder

Every module logs through a child of the "feedback-bot" logger, so one
setup_logger() call at startup decides level and format for the whole
service. Per-tenant code logs through tenant_logger(), which stamps
tenant_id on each record.
"""
import logging
import os
import sys
import time
from typing import Any, MutableMapping

from pythonjsonlogger import jsonlogger

ROOT_LOGGER_NAME = "feedback-bot"

JSON_FORMAT = "%(timestamp)s %(level)s %(logger)s %(message)s"
TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(threadName)s] %(name)s: %(message)s"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter adding timestamp, level, logger, source location,
    thread name and the app version.
    """

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["source"] = f"{record.module}:{record.funcName}:{record.lineno}"
        # One scheduler thread per tenant
        log_record["thread_name"] = record.threadName
        log_record.setdefault("version", os.getenv("APP_VERSION", "dev"))


def _resolve_level(level: str | None) -> int:
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    if name == "WARN":
        name = "WARNING"
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    Configure the service logger with a single stdout handler.

    Args:
        name: Logger name
        level: DEBUG, INFO, WARN/WARNING, ERROR (defaults to env var LOG_LEVEL)
        format_type: "json" or "text" (defaults to env var LOG_FORMAT or "json")

    Returns:
        Configured logger instance
    """
    log_level = _resolve_level(level)
    format_type = (format_type or os.getenv("LOG_FORMAT") or "json").lower()

    if format_type == "text":
        formatter: logging.Formatter = logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    else:
        formatter = CustomJsonFormatter(JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Get a child of the service logger, configuring the root on first use.

    Args:
        name: Module name, usually __name__

    Returns:
        Logger instance
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        setup_logger(ROOT_LOGGER_NAME)

    if name == ROOT_LOGGER_NAME:
        return root
    if not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


class TenantLoggerAdapter(logging.LoggerAdapter):
    """Merges the tenant id into the extra fields of every record."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def tenant_logger(logger: logging.Logger | logging.LoggerAdapter, tenant_id: int) -> TenantLoggerAdapter:
    """
    Wrap a logger so that its records carry tenant_id.

    Example:
        log = tenant_logger(get_logger(__name__), 42)
        log.info("cycle complete", extra={"answered": 3})
    """
    if isinstance(logger, logging.LoggerAdapter):
        logger = logger.logger
    return TenantLoggerAdapter(logger, {"tenant_id": tenant_id})


class log_operation:
    """
    Context manager logging start, end and duration of a startup step.

    Usage:
        with log_operation("Opening store", logger=logger, db_type="sqlite"):
            store = open_store(settings)
    """

    def __init__(self, operation_name: str, logger: logging.Logger | None = None, **extra_fields):
        self.operation_name = operation_name
        self.logger = logger or get_logger()
        self.extra_fields = {"operation": operation_name, **extra_fields}
        self.start_time = 0.0

    def __enter__(self):
        self.start_time = time.monotonic()
        self.logger.info(f"{self.operation_name}...", extra=self.extra_fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        fields = {**self.extra_fields, "duration_seconds": round(time.monotonic() - self.start_time, 3)}

        if exc_type is None:
            self.logger.info(f"{self.operation_name}: done", extra={**fields, "status": "success"})
        else:
            self.logger.error(
                f"{self.operation_name}: failed",
                extra={**fields, "status": "error", "error": str(exc_val)},
                exc_info=(exc_type, exc_val, exc_tb),
            )
        return False
