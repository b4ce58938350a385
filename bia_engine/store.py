"""YAML-backed key/value store for the engine's persisted state."""

from __future__ import annotations

import copy
import logging
import os

import yaml

log = logging.getLogger(__name__)

SITES_KEY = "wordpress:sites"
SCHEDULED_POSTS_KEY = "wordpress:scheduled-posts"
INACCESSIBLE_SITES_KEY = "wordpress:inaccessible-sites"
IDEAS_KEY = "content:ideas"
ARTICLES_KEY = "content:articles"


def registry_key(name: str) -> str:
    return f"sites:{name}"


class YamlStore:
    """Persists every key into a single YAML document.

    One writer per file is assumed; concurrent writers overwrite each
    other (last write wins).
    """

    def __init__(self, path="data/bia_state.yaml"):
        self.path = path
        self.state = self._load()

    def _load(self) -> dict:
        if os.path.exists(self.path):
            with open(self.path, encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        return {}

    def _save(self):
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.state, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    def get(self, key: str, default=None):
        """Return a deep copy so callers can't mutate stored state in place."""
        if key not in self.state:
            return default
        return copy.deepcopy(self.state[key])

    def set(self, key: str, value):
        self.state[key] = copy.deepcopy(value)
        self._save()
        log.debug(f"Stored {key}")

    def delete(self, key: str) -> bool:
        if key not in self.state:
            return False
        del self.state[key]
        self._save()
        return True

    def keys(self, prefix: str = "") -> list[str]:
        return [k for k in self.state if k.startswith(prefix)]

    def reload(self):
        """Re-read the file, dropping in-memory state."""
        self.state = self._load()
