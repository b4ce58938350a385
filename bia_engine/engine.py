"""Composition root: builds every BIA service from one config file."""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from functools import partial

from bia_engine.config import client_timeouts, load_config
from bia_engine.content_pipeline import ContentPipeline
from bia_engine.generator import ClaudeArticleGenerator
from bia_engine.plans import get_plan_limits
from bia_engine.publisher import PublishOrchestrator
from bia_engine.store import YamlStore
from bia_engine.taxonomy_cache import SiteRegistry, TaxonomyCache
from bia_engine.wp_gateway import WordPressClient

log = logging.getLogger(__name__)

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class BiaEngine:
    """Store, site registry, taxonomy cache, content pipeline and publisher, wired together."""

    def __init__(self, config_path="config.yaml", generator=None, clock=None):
        self.config = load_config(config_path)

        store_path = self.config["store"]["path"]
        if not os.path.isabs(store_path):
            store_path = os.path.join(PROJECT_ROOT, store_path)
        self.store = YamlStore(store_path)

        wp_cfg = self.config["wordpress"]
        client_factory = partial(WordPressClient.for_site, **client_timeouts(self.config))

        self.registry = SiteRegistry(self.store, self.config["store"].get("registry", "default"))
        self.cache = TaxonomyCache(
            self.store,
            registry=self.registry,
            client_factory=client_factory,
            clock=clock,
            inaccessible_backoff=timedelta(minutes=wp_cfg["inaccessible_backoff_minutes"]),
            stale_after=timedelta(hours=wp_cfg["stale_after_hours"]),
        )

        self.plan_limits = get_plan_limits(self.config["plan"]["name"])
        self.pipeline = ContentPipeline(
            self.store,
            self.plan_limits,
            generator=generator or ClaudeArticleGenerator(self.config["generator"]),
            clock=clock,
        )
        self.publisher = PublishOrchestrator(
            self.cache, self.pipeline, self.store, client_factory=client_factory, clock=clock,
        )

        log.info(f"BIA engine ready: plan {self.plan_limits.name}, store {store_path}")
