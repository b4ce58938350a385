"""Configuration loading: config.yaml merged over defaults, then .env overrides."""

from __future__ import annotations

import copy
import logging
import os

import yaml
from dotenv import load_dotenv

load_dotenv(override=True)

log = logging.getLogger(__name__)

DEFAULTS = {
    "store": {
        "path": "data/bia_state.yaml",
        "registry": "default",
    },
    "wordpress": {
        "read_timeout": 10,
        "write_timeout": 30,
        "media_timeout": 60,
        "test_timeout": 15,
        "inaccessible_backoff_minutes": 30,
        "stale_after_hours": 48,
    },
    "plan": {
        "name": "Free",
    },
    "generator": {
        "model": "claude-sonnet-4-5-20250929",
        "max_tokens": 8000,
        "temperature": 0.9,
        "language": "Português",
    },
}

# env var -> (section, key, cast)
ENV_OVERRIDES = {
    "BIA_STORE_PATH": ("store", "path", str),
    "BIA_PLAN": ("plan", "name", str),
    "BIA_READ_TIMEOUT": ("wordpress", "read_timeout", float),
    "BIA_WRITE_TIMEOUT": ("wordpress", "write_timeout", float),
    "BIA_MEDIA_TIMEOUT": ("wordpress", "media_timeout", float),
}


def _merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: str = "config.yaml") -> dict:
    file_config = {}
    if path and os.path.exists(path):
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
    else:
        log.warning(f"Config file not found: {path}, using defaults")

    config = _merge(DEFAULTS, file_config)

    for env_var, (section, key, cast) in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            config[section][key] = cast(value)

    return config


def client_timeouts(config: dict) -> dict:
    """Timeout kwargs for WordPressClient from the wordpress section."""
    wp = config.get("wordpress", {})
    return {
        "read_timeout": wp.get("read_timeout", 10),
        "write_timeout": wp.get("write_timeout", 30),
        "media_timeout": wp.get("media_timeout", 60),
        "test_timeout": wp.get("test_timeout", 15),
    }
