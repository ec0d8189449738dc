"""Configuration: frozen dataclasses loaded from YAML and environment variables."""

import dataclasses
import logging
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)

PLACEHOLDER_DNS = "http://domain.com:80"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    """Ingestion server settings."""

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "INFO"
    log_dir: str = "./logs"
    app_log_filename: str = "app_errors.log"
    error_log_filename: str = "server_errors.log"
    db_log_filename: str = "database_errors.log"
    max_file_size_bytes: int = 10 * 1024 * 1024  # 10 MiB
    rate_limit_enabled: bool = True
    rate_limit_max_requests: int = 10
    rate_limit_window_seconds: int = 60
    log_rate_limit_denials: bool = False


@dataclass(frozen=True)
class AgentConfig:
    """Capture agent settings, the client-side mirror of the player config."""

    enabled: bool = True
    debug_mode: bool = False
    endpoint_url: str = "http://localhost:5000/logger"
    dns: str = PLACEHOLDER_DNS
    cors: bool = False
    https: bool = False
    page_url: str = "Unknown"
    user_agent: str = "webplayer-telemetry"
    timeout_seconds: float = 5.0
    queue_size: int = 1000


def _load_yaml_section(path: str | None, section: str) -> dict:
    """Return one top-level mapping from a YAML file, or {} if unavailable."""
    if path is None:
        return {}
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    except yaml.YAMLError:
        logger.warning("Invalid YAML in %s, using defaults", path)
        return {}

    if not isinstance(data, dict):
        return {}
    values = data.get(section)
    return values if isinstance(values, dict) else {}


def _overlay(cls, values: dict) -> dict:
    """Keep only keys that are fields of cls, warning about the rest."""
    names = {f.name for f in dataclasses.fields(cls)}
    kwargs = {}
    for key, value in values.items():
        if key in names:
            kwargs[key] = value
        else:
            logger.warning("Ignoring unknown %s setting: %s", cls.__name__, key)
    return kwargs


def _env(kwargs: dict, field: str, name: str, convert=str):
    raw = os.environ.get(name)
    if raw is not None:
        kwargs[field] = convert(raw)


def load_config(path: str | None = None) -> Config:
    """Build Config from defaults <- YAML ``server`` section <- env vars."""
    if path is None:
        path = os.environ.get("CONFIG_PATH")
    kwargs = _overlay(Config, _load_yaml_section(path, "server"))

    _env(kwargs, "enabled", "TELEMETRY_ENABLED", _parse_bool)
    _env(kwargs, "host", "SERVER_HOST")
    _env(kwargs, "port", "SERVER_PORT", int)
    _env(kwargs, "log_level", "LOG_LEVEL", str.upper)
    _env(kwargs, "log_dir", "LOG_DIR")
    _env(kwargs, "app_log_filename", "APP_LOG_FILENAME")
    _env(kwargs, "error_log_filename", "ERROR_LOG_FILENAME")
    _env(kwargs, "db_log_filename", "DB_LOG_FILENAME")
    _env(kwargs, "rate_limit_enabled", "RATE_LIMIT_ENABLED", _parse_bool)
    _env(kwargs, "rate_limit_max_requests", "RATE_LIMIT_MAX_REQUESTS", int)
    _env(kwargs, "rate_limit_window_seconds", "RATE_LIMIT_WINDOW_SECONDS", int)
    _env(kwargs, "log_rate_limit_denials", "LOG_RATE_LIMIT_DENIALS", _parse_bool)

    # MAX_LOG_FILE_SIZE (bytes) takes precedence over MAX_LOG_FILE_SIZE_MB
    raw_bytes = os.environ.get("MAX_LOG_FILE_SIZE")
    raw_mb = os.environ.get("MAX_LOG_FILE_SIZE_MB")
    if raw_bytes is not None:
        kwargs["max_file_size_bytes"] = int(raw_bytes)
    elif raw_mb is not None:
        kwargs["max_file_size_bytes"] = int(float(raw_mb) * 1024 * 1024)

    return Config(**kwargs)


def load_agent_config(path: str | None = None) -> AgentConfig:
    """Build AgentConfig from defaults <- YAML ``agent`` section <- env vars."""
    if path is None:
        path = os.environ.get("CONFIG_PATH")
    kwargs = _overlay(AgentConfig, _load_yaml_section(path, "agent"))

    _env(kwargs, "enabled", "ENABLE_ERROR_LOGGING", _parse_bool)
    _env(kwargs, "debug_mode", "DEBUG_MODE", _parse_bool)
    _env(kwargs, "endpoint_url", "TELEMETRY_ENDPOINT")
    _env(kwargs, "dns", "PLAYER_DNS")
    _env(kwargs, "cors", "PLAYER_CORS", _parse_bool)
    _env(kwargs, "https", "PLAYER_HTTPS", _parse_bool)
    _env(kwargs, "page_url", "PAGE_URL")
    _env(kwargs, "user_agent", "USER_AGENT")
    _env(kwargs, "timeout_seconds", "REPORT_TIMEOUT_SECONDS", float)
    _env(kwargs, "queue_size", "REPORT_QUEUE_SIZE", int)

    return AgentConfig(**kwargs)
