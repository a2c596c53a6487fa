"""
Runtime settings loaded from environment variables.

Defaults let the service start locally with minimal configuration; a
.env file in the working directory is read first when present.

Example:
    LOG_LEVEL=debug DB_TYPE=sqlite python -m src.cli.bot_cli serve
"""

import os
import re
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from src.utils import validation

DB_TYPE_SQLITE = "sqlite"
DB_TYPE_POSTGRES = "postgres"

DEFAULT_POLL_INTERVAL = 600.0
MIN_POLL_INTERVAL = 60.0
DEFAULT_RELOAD_INTERVAL = 10.0

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


class ConfigError(ValueError):
    """Raised when runtime configuration is invalid."""
    pass


class Settings(BaseModel):
    """
    All runtime settings; immutable once loaded.

    Attributes:
        version: App semantic version or git SHA
        log_level: DEBUG, INFO, WARNING, ERROR
        log_format: "json" or "text"
        wb_base_url: Vendor API endpoint (production or sandbox)
        poll_interval: Seconds between cycles of one tenant
        db_type: "sqlite" or "postgres"
        db_path: SQLite file path or PostgreSQL DSN
        metrics_port: Port of the Prometheus endpoint (0 disables it)
        wb_rate_limit: Vendor requests per second per tenant
        wb_burst: Token bucket size per tenant
        request_timeout: Seconds per vendor request
        fetch_take: Reviews fetched per cycle (<= 5000)
        max_interactions: Concurrent front-end interactions before dropping
        config_reload_interval: Seconds between re-reads of stored tenant configs
    """

    version: str = "dev"
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"
    wb_base_url: str = "https://feedbacks-api.wildberries.ru"
    poll_interval: float = Field(DEFAULT_POLL_INTERVAL, ge=MIN_POLL_INTERVAL)
    db_type: Literal["sqlite", "postgres"] = DB_TYPE_SQLITE
    db_path: str = "data/feedbacks.db"
    metrics_port: int = Field(8080, ge=0, le=65535)
    wb_rate_limit: float = Field(3.0, ge=0.0)
    wb_burst: int = Field(6, ge=1)
    request_timeout: float = Field(15.0, gt=0.0)
    fetch_take: int = Field(5000, ge=1, le=5000)
    max_interactions: int = Field(100, ge=1)
    config_reload_interval: float = Field(DEFAULT_RELOAD_INTERVAL, ge=1.0)

    @field_validator("log_level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        level = v.upper()
        if level == "WARN":
            level = "WARNING"
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level

    class Config:
        frozen = True


def parse_duration(value: str) -> float:
    """
    Parse a duration into seconds.

    Accepts plain seconds ("600") or unit strings ("10m", "30s", "1h30m").

    Raises:
        ConfigError: If the value cannot be parsed
    """
    value = value.strip()
    try:
        return float(value)
    except ValueError:
        pass

    pos = 0
    total = 0.0
    for match in _DURATION_RE.finditer(value):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(value):
        raise ConfigError(f"invalid duration: {value!r}")
    return total


def _parse_take(raw: str) -> int:
    try:
        take = int(raw.strip())
    except ValueError:
        raise ConfigError(f"FETCH_TAKE must be an integer, got {raw!r}") from None
    try:
        return validation.validate_take(take, field_name="FETCH_TAKE")
    except validation.ValidationError as e:
        raise ConfigError(str(e)) from e

# Environment variable -> Settings field
ENV_FIELDS = {
    "APP_VERSION": "version",
    "LOG_LEVEL": "log_level",
    "LOG_FORMAT": "log_format",
    "WB_BASE_URL": "wb_base_url",
    "POLL_INTERVAL": "poll_interval",
    "DB_TYPE": "db_type",
    "DB_PATH": "db_path",
    "METRICS_PORT": "metrics_port",
    "WB_RATE_LIMIT": "wb_rate_limit",
    "WB_BURST": "wb_burst",
    "REQUEST_TIMEOUT": "request_timeout",
    "FETCH_TAKE": "fetch_take",
    "MAX_INTERACTIONS": "max_interactions",
    "CONFIG_RELOAD_INTERVAL": "config_reload_interval",
}


def load_settings(env_file: Optional[str | Path] = None, environ: Optional[dict] = None) -> Settings:
    """
    Read environment variables, apply defaults and validate.

    Args:
        env_file: .env file to load first (".env" in the working dir if None)
        environ: Mapping to read instead of os.environ (tests)

    Returns:
        Validated Settings

    Raises:
        ConfigError: On any invalid value
    """
    if environ is None:
        load_dotenv(env_file or Path.cwd() / ".env", override=False)
        environ = dict(os.environ)

    values = {}
    for env_name, field_name in ENV_FIELDS.items():
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue
        if field_name in ("poll_interval", "config_reload_interval"):
            values[field_name] = parse_duration(raw)
        elif field_name == "fetch_take":
            values[field_name] = _parse_take(raw)
        else:
            values[field_name] = raw.strip()

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e
