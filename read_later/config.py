"""Configuration loading for read_later."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
from xml.etree import ElementTree as ET

from .articles import EXTRACTORS
from .fetching import DEFAULT_TIMEOUT
from .store import DeletePolicy
from .summaries import DEFAULT_TIMEOUT as SUMMARY_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_CONNECTION_STRING = "sqlite:///read_later.db"


@dataclass
class DatabaseConfig:
    connection_string: str = DEFAULT_CONNECTION_STRING
    delete_policy: DeletePolicy = DeletePolicy.ORPHAN


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class SummaryConfig:
    timeout: float = SUMMARY_TIMEOUT
    model: Optional[str] = None


@dataclass
class AppConfig:
    env_file: Optional[str] = None
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    summaries: SummaryConfig = field(default_factory=SummaryConfig)
    http_timeout: float = DEFAULT_TIMEOUT
    extractor: str = "builtin"
    concurrency: int = 4


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the base config file if it's not absolute."""
    target = Path(target_path)
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def parse_env_config(path: str) -> Dict[str, str]:
    """Parse environment variables from XML."""
    env_vars: Dict[str, str] = {}
    if not path:
        return env_vars

    logger.info("Loading environment configuration from %s", path)
    try:
        tree = ET.parse(path)
    except (OSError, ET.ParseError) as exc:
        logger.warning("Failed to load environment config: %s", exc)
        raise

    for var in tree.getroot().findall("variable"):
        name = var.attrib.get("name")
        value = var.text
        if name and value:
            env_vars[name] = value.strip()
    return env_vars


def _positive_float(text: Optional[str], default: float, name: str) -> float:
    if text is None or not text.strip():
        return default
    value = float(text)
    if value <= 0:
        raise ValueError(f"<{name}> must be positive.")
    return value


def parse_app_config(path: str) -> AppConfig:
    """Parse the main application configuration XML."""
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    logger.info("Loading application configuration from %s", config_path)
    root = ET.parse(config_path).getroot()
    config = AppConfig()

    env_node = root.find("env")
    if env_node is not None and env_node.text:
        config.env_file = _resolve_path(config_path, env_node.text.strip())

    # Database
    db_node = root.find("database")
    if db_node is not None:
        connection_string = db_node.findtext("connection-string")
        if connection_string:
            config.database.connection_string = connection_string.strip()
        policy = db_node.findtext("delete-policy")
        if policy:
            try:
                config.database.delete_policy = DeletePolicy(policy.strip().lower())
            except ValueError:
                raise ValueError(f"Unsupported delete policy: {policy}") from None

    # Logging
    log_node = root.find("logging")
    if log_node is not None:
        config.logging.level = log_node.findtext("level", "INFO")
        log_file = log_node.findtext("file")
        if log_file:
            config.logging.file = _resolve_path(config_path, log_file)

    # HTTP
    http_node = root.find("http")
    if http_node is not None:
        config.http_timeout = _positive_float(
            http_node.findtext("timeout"), DEFAULT_TIMEOUT, "timeout"
        )

    # Summaries
    summary_node = root.find("summaries")
    if summary_node is not None:
        config.summaries.timeout = _positive_float(
            summary_node.findtext("timeout"), SUMMARY_TIMEOUT, "timeout"
        )
        config.summaries.model = summary_node.findtext("model") or None

    extractor = root.findtext("extractor", "builtin").strip()
    if extractor not in EXTRACTORS:
        raise ValueError(f"Unsupported extractor: {extractor}")
    config.extractor = extractor
    config.concurrency = int(root.findtext("concurrency", "4"))

    return config
