"""Configuration loading for the world_news reader."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
from xml.etree import ElementTree as ET

from .categories import DEFAULT_CATEGORY
from .fetcher import DEFAULT_CLIENT_ID_HEADER, DEFAULT_CLIENT_SECRET_HEADER, DEFAULT_ENDPOINT

logger = logging.getLogger(__name__)


@dataclass
class ApiConfig:
    endpoint: str = DEFAULT_ENDPOINT
    client_id_header: str = DEFAULT_CLIENT_ID_HEADER
    client_secret_header: str = DEFAULT_CLIENT_SECRET_HEADER
    timeout: float = 10.0


@dataclass
class RetryConfig:
    initial_delay: float = 0.5
    backoff: float = 1.5
    max_delay: float = 5.0
    max_attempts: int = 20


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class DatabaseConfig:
    connection_string: str = "sqlite:///world_news.db"


@dataclass
class AppConfig:
    env_file: Optional[str] = None
    api: ApiConfig = field(default_factory=ApiConfig)
    page_size: int = 10
    default_query: str = DEFAULT_CATEGORY.query
    display_timezone: Optional[str] = None
    credential_retry: RetryConfig = field(default_factory=RetryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the base config file if it's not absolute."""
    target = Path(target_path)
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def _resolve_sqlite_url(base_path: Path, url: str) -> str:
    """Make relative SQLite file paths relative to the config file."""
    prefix = "sqlite:///"
    if not url.startswith(prefix) or url == "sqlite:///:memory:":
        return url
    db_path = url[len(prefix):]
    if not db_path or Path(db_path).is_absolute():
        return url
    return prefix + _resolve_path(base_path, db_path)


def parse_env_config(path: str) -> Dict[str, str]:
    """Parse environment variables from XML."""
    env_vars = {}
    if not path:
        return env_vars

    logger.info("Loading environment configuration from %s", path)
    try:
        tree = ET.parse(path)
        root = tree.getroot()
        for var in root.findall("variable"):
            name = var.attrib.get("name")
            value = var.text
            if name and value:
                env_vars[name] = value.strip()
    except Exception as exc:
        logger.warning("Failed to load environment config: %s", exc)
        raise

    return env_vars


def parse_app_config(path: str) -> AppConfig:
    """Parse the main application configuration XML."""
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    logger.info("Loading application configuration from %s", config_path)
    tree = ET.parse(config_path)
    root = tree.getroot()

    # Env
    env_node = root.find("env")
    env_file = (
        _resolve_path(config_path, env_node.text.strip())
        if env_node is not None and env_node.text
        else None
    )

    # API
    api_node = root.find("api")
    api = ApiConfig()
    if api_node is not None:
        api.endpoint = api_node.findtext("endpoint", DEFAULT_ENDPOINT).strip()
        api.client_id_header = api_node.findtext(
            "client-id-header", DEFAULT_CLIENT_ID_HEADER
        ).strip()
        api.client_secret_header = api_node.findtext(
            "client-secret-header", DEFAULT_CLIENT_SECRET_HEADER
        ).strip()
        api.timeout = float(api_node.findtext("timeout", "10"))

    # Simple values
    page_size = int(root.findtext("page-size", "10"))
    if page_size <= 0:
        raise ValueError("<page-size> must be positive")

    default_query = (root.findtext("default-query") or "").strip() or DEFAULT_CATEGORY.query
    display_timezone = (root.findtext("display-timezone") or "").strip() or None

    # Credential retry
    retry_node = root.find("credential-retry")
    retry = RetryConfig()
    if retry_node is not None:
        retry.initial_delay = float(retry_node.findtext("initial-delay", "0.5"))
        retry.backoff = float(retry_node.findtext("backoff", "1.5"))
        retry.max_delay = float(retry_node.findtext("max-delay", "5"))
        retry.max_attempts = int(retry_node.findtext("max-attempts", "20"))

    # Logging
    log_node = root.find("logging")
    logging_config = LoggingConfig()
    if log_node is not None:
        logging_config.level = log_node.findtext("level", "INFO")
        log_file = log_node.findtext("file")
        if log_file:
            logging_config.file = _resolve_path(config_path, log_file)

    # Database
    db_node = root.find("database")
    db_config = DatabaseConfig()
    if db_node is not None:
        connection_string = db_node.findtext("connection-string")
        if connection_string:
            db_config.connection_string = _resolve_sqlite_url(
                config_path, connection_string.strip()
            )

    return AppConfig(
        env_file=env_file,
        api=api,
        page_size=page_size,
        default_query=default_query,
        display_timezone=display_timezone,
        credential_retry=retry,
        logging=logging_config,
        database=db_config,
    )
