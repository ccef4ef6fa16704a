"""ics_ingest.config

Lightweight config loader for ics_ingest.

- Reads YAML (PyYAML) or, for ``.json`` files, JSON.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override (default from ``ICS_INGEST_CONFIG``).
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

# Size validation defaults
MAX_ICS_SIZE_BYTES = 50 * 1024 * 1024  # 50MB limit
MAX_ICS_SIZE_WARNING = 10 * 1024 * 1024  # 10MB warning threshold

CONFIG_ENV_VAR = "ICS_INGEST_CONFIG"


@dataclass
class Config:
    """Typed configuration for ics_ingest.

    Fields:
        log_level: logging level name used by the CLI
        max_ics_size_bytes: feeds larger than this are rejected
        ics_size_warning_bytes: feeds larger than this emit a warning diagnostic
        preprocess: run the VALUE=DATE preprocessor before parsing
    """

    log_level: str = "INFO"
    max_ics_size_bytes: int = MAX_ICS_SIZE_BYTES
    ics_size_warning_bytes: int = MAX_ICS_SIZE_WARNING
    preprocess: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced to int; invalid values are logged and
        replaced by their defaults.
        """
        if data is None:
            data = {}

        def _coerce_int(key: str, default: int) -> int:
            raw = data.get(key, default)
            try:
                value = int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default
            if value <= 0:
                logger.warning("Config %s=%d must be positive; using default %d", key, value, default)
                return default
            return value

        max_size = _coerce_int("max_ics_size_bytes", MAX_ICS_SIZE_BYTES)
        warning_size = _coerce_int("ics_size_warning_bytes", MAX_ICS_SIZE_WARNING)
        if warning_size > max_size:
            logger.warning(
                "ics_size_warning_bytes %d above max_ics_size_bytes %d; coercing", warning_size, max_size
            )
            warning_size = max_size

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"
        if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            logger.warning("Config log_level=%r is not a known level; using INFO", log_level)
            log_level = "INFO"

        preprocess = data.get("preprocess", True)
        if isinstance(preprocess, str):
            preprocess = preprocess.strip().lower() in ("1", "true", "yes", "on")
        else:
            preprocess = bool(preprocess)

        return cls(
            log_level=log_level,
            max_ics_size_bytes=max_size,
            ics_size_warning_bytes=warning_size,
            preprocess=preprocess,
        )


def _load_yaml_or_json(path: Path) -> Any:
    """Load a mapping from a YAML or JSON file."""
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            return json.loads(text)
        loaded = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to parse config file {path}: {exc}") from exc
    # safe_load returns None for empty files
    return {} if loaded is None else loaded


def load_config(path: str | None = None) -> Config:
    """Load configuration from a YAML/JSON file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to ``$ICS_INGEST_CONFIG``.

    Returns:
        Config dataclass instance with values from file (or defaults).

    Raises:
        ConfigError: If the file cannot be parsed or its top level is not a mapping
    """
    path = path or os.environ.get(CONFIG_ENV_VAR)
    if not path:
        logger.debug("No config file given; using defaults")
        return Config()

    p = Path(path)
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        return Config()

    raw = _load_yaml_or_json(p)
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ConfigError("Config file must contain a mapping at top level")
    cfg = Config.from_dict(raw)
    logger.info("Loaded configuration from %s", p)
    logger.debug("Configuration values: %s", cfg)
    return cfg
