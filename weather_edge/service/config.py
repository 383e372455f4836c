"""
Configuration loader.

Reads an optional YAML config over built-in defaults and injects secrets
and overrides from environment variables (``.env`` supported).  The result
is a plain dict threaded explicitly into every service; nothing reads the
environment after startup.
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "model": {
        "base_url": "https://api.venice.ai/api/v1",
        "model": "llama-3.3-70b",
        "temperature": 0.3,
        "basic_max_tokens": 1000,
        "basic_timeout": 30.0,
        "deep_max_tokens": 2000,
        "deep_timeout": 120.0,
    },
    "catalog": {
        "ttl_seconds": 1800,
        "volume_floor": 50000,
        "fetch_timeout": 20.0,
        "page_size": 100,
        "max_pages": 5,
        "max_days_out": 60,
    },
    "analysis": {
        "cache_ttl_seconds": 1200,
        "cache_max_entries": 1000,
        "rate_limit": 10,
        "rate_window_seconds": 3600,
    },
    "scoring": {
        "high_threshold": 8.0,
        "medium_threshold": 4.0,
    },
    "database": {
        "path": "data/signals.db",
    },
    "logging": {
        "level": "INFO",
    },
}

# env var -> (section, key, type)
ENV_OVERRIDES: dict[str, tuple[str, str, type]] = {
    "MODEL_BASE_URL": ("model", "base_url", str),
    "MODEL_NAME": ("model", "model", str),
    "CATALOG_TTL_SECONDS": ("catalog", "ttl_seconds", float),
    "DEFAULT_MIN_VOLUME": ("catalog", "volume_floor", float),
    "ANALYSIS_CACHE_TTL_SECONDS": ("analysis", "cache_ttl_seconds", float),
    "DATABASE_PATH": ("database", "path", str),
    "LOG_LEVEL": ("logging", "level", str),
}


def _merge(base: dict, override: Mapping) -> dict:
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(
    config_path: str = "config.yaml",
    env: Mapping[str, str] | None = None,
) -> dict:
    """
    Load configuration from YAML file + environment.

    Injects MODEL_API_KEY (falling back to VENICE_API_KEY) into
    ``model.api_key``.  A missing key is allowed: analysis then fails with
    ModelUnavailable while discovery keeps working.

    Raises:
        ValueError: a numeric override is not a number, or the YAML root
                    is not a mapping.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    config = copy.deepcopy(DEFAULT_CONFIG)
    path = Path(config_path)
    if path.exists():
        with open(path, "r") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"{config_path}: expected a mapping at the top level")
        _merge(config, loaded)
    else:
        logger.info("No config file at %s, using defaults", config_path)

    for var, (section, key, cast) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw:
            try:
                config[section][key] = cast(raw)
            except ValueError as e:
                raise ValueError(f"{var} must be a {cast.__name__}, got {raw!r}") from e

    api_key = env.get("MODEL_API_KEY") or env.get("VENICE_API_KEY")
    if api_key:
        config["model"]["api_key"] = api_key
    elif not config["model"].get("api_key"):
        logger.warning("MODEL_API_KEY / VENICE_API_KEY not set; analysis disabled")

    return config
