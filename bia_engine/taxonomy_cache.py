"""Taxonomy Cache: per-site snapshot of WordPress categories, authors and tags.

The host application owns the list of sites (``sites:<registry>``); this
module keeps its own persisted copy (``wordpress:sites``) enriched with the
taxonomy fetched from each site, and reconciles the two on every ``sync()``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from slugify import slugify

from bia_engine.errors import (
    ErrorKind,
    SiteNotConfiguredError,
    WordPressError,
)
from bia_engine.models import (
    PROVISIONAL_TAG_THRESHOLD,
    SITE_CONNECTED,
    SITE_DISCONNECTED,
    SITE_ERROR,
    HostSite,
    Site,
    Tag,
    format_datetime,
    normalize_id,
    parse_datetime,
)
from bia_engine.store import INACCESSIBLE_SITES_KEY, SITES_KEY, YamlStore, registry_key
from bia_engine.wp_gateway import (
    DEFAULT_AUTHORS,
    DEFAULT_CATEGORIES,
    WordPressClient,
    normalize_url,
)

log = logging.getLogger(__name__)


@dataclass
class RegistrySnapshot:
    sites: list[HostSite] = field(default_factory=list)


@dataclass
class ConnectivityStatus:
    status: str
    message: str
    can_retry: bool


@dataclass
class TagPushResult:
    created: list[Tag] = field(default_factory=list)
    failed: list[tuple[str, WordPressError]] = field(default_factory=list)


class SiteRegistry:
    """The host application's own site list, persisted at ``sites:<name>``."""

    def __init__(self, store: YamlStore, name: str = "default"):
        self.store = store
        self.key = registry_key(name)

    def snapshot(self) -> RegistrySnapshot:
        return RegistrySnapshot(
            sites=[HostSite.from_dict(s) for s in self.store.get(self.key, [])]
        )

    def save(self, sites: list[HostSite]):
        self.store.set(self.key, [s.to_dict() for s in sites])

    def upsert(self, site: HostSite):
        sites = self.snapshot().sites
        for i, existing in enumerate(sites):
            if existing.id == site.id:
                sites[i] = site
                break
        else:
            sites.append(site)
        self.save(sites)


class TaxonomyCache:
    """Per-site WordPress taxonomy, reconciled against the host site registry."""

    def __init__(self, store: YamlStore, registry: SiteRegistry | None = None,
                 client_factory=None, clock=None,
                 inaccessible_backoff=timedelta(minutes=30),
                 stale_after=timedelta(hours=48)):
        self.store = store
        self.registry = registry
        self.client_factory = client_factory or WordPressClient.for_site
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.inaccessible_backoff = inaccessible_backoff
        self.stale_after = stale_after
        self._inflight: dict[tuple[str, str], asyncio.Task] = {}

    # Persistence

    def get_sites(self) -> list[Site]:
        return [Site.from_dict(s) for s in self.store.get(SITES_KEY, [])]

    def save_sites(self, sites: list[Site]):
        self.store.set(SITES_KEY, [s.to_dict() for s in sites])
        log.debug(f"Saved {len(sites)} cached sites")

    def get_site(self, site_id) -> Site | None:
        wanted = normalize_id(site_id)
        for site in self.get_sites():
            if site.id == wanted:
                return site
        return None

    def _replace_site(self, updated: Site):
        sites = self.get_sites()
        self.save_sites([updated if s.id == updated.id else s for s in sites])

    # Registry sync

    def sync(self, snapshot: RegistrySnapshot | None = None) -> list[Site]:
        """Merge the host registry into the cache without losing fetched taxonomy."""
        if snapshot is None:
            if self.registry is None:
                log.debug("No site registry attached, nothing to sync")
                return self.get_sites()
            snapshot = self.registry.snapshot()

        existing = {s.id: s for s in self.get_sites()}
        merged: list[Site] = []

        for host in snapshot.sites:
            host_id = normalize_id(host.id)
            cached = existing.get(host_id)

            if not host.has_wordpress_credentials:
                if cached is None:
                    log.debug(f"Site {host.name} ({host_id}) has no WordPress credentials, skipping")
                    continue
                # Credentials were removed upstream: keep taxonomy, drop access
                cached.name = host.name
                cached.url = normalize_url(host.wordpress_url)
                cached.username = host.wordpress_username
                cached.application_password = host.wordpress_password
                cached.is_active = host.status == "ativo"
                cached.status = SITE_DISCONNECTED
                merged.append(cached)
                continue

            site = Site(
                id=host_id,
                name=host.name,
                url=normalize_url(host.wordpress_url),
                username=host.wordpress_username,
                application_password=host.wordpress_password,
                is_active=host.status == "ativo",
            )
            if cached is not None:
                site.categories = cached.categories
                site.authors = cached.authors
                site.tags = cached.tags
                site.last_sync = cached.last_sync
                site.status = cached.status
            else:
                log.info(f"New WordPress site cached: {site.name} ({site.id})", extra={"site_id": site.id})
            merged.append(site)

        if not merged:
            log.warning("No sites with WordPress credentials in the registry, cache left untouched")
            return list(existing.values())

        self.save_sites(merged)
        log.info(f"Registry sync complete: {len(merged)} WordPress sites")
        return merged

    # Reload

    async def reload_site(self, site_id, snapshot: RegistrySnapshot | None = None) -> bool:
        """Fetch fresh taxonomy for one site. Concurrent calls for a site share one fetch."""
        self.sync(snapshot)
        site = self.get_site(site_id)

        if site is None:
            log.warning(f"Site not found for reload: {site_id}", extra={"site_id": normalize_id(site_id)})
            return False
        if not site.has_credentials:
            log.warning(f"Site {site.id} has no complete WordPress credentials", extra={"site_id": site.id})
            return False

        key = (site.id, site.url)
        inflight = self._inflight.get(key)
        if inflight is not None:
            log.info(f"Reload already running for site {site.id}, joining it", extra={"site_id": site.id})
            return await asyncio.shield(inflight)

        task = asyncio.create_task(self._reload(site))
        self._inflight[key] = task
        try:
            return await task
        finally:
            self._inflight.pop(key, None)

    async def _reload(self, site: Site) -> bool:
        if self.is_inaccessible(site.url):
            log.warning(f"Site {site.url} recently unreachable, skipping reload", extra={"site_id": site.id})
            return False

        try:
            client = self.client_factory(site)
        except SiteNotConfiguredError as e:
            log.warning(f"Cannot reload site {site.id}: {e}", extra={"site_id": site.id})
            return False

        results = await asyncio.gather(
            asyncio.to_thread(client.fetch_categories),
            asyncio.to_thread(client.fetch_authors),
            asyncio.to_thread(client.fetch_tags),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, WordPressError):
                raise result

        failures = [r for r in results if isinstance(r, WordPressError)]
        if len(failures) == len(results):
            kinds = {f.kind for f in failures}
            if kinds <= {ErrorKind.CONNECTIVITY, ErrorKind.TIMEOUT}:
                self.mark_inaccessible(site.url)
            log.warning(
                f"Reload failed for site {site.id}: {', '.join(sorted(kinds))}",
                extra={"site_id": site.id, "error_kind": failures[0].kind},
            )
            return False

        categories, authors, tags = results
        if isinstance(categories, WordPressError):
            categories = list(DEFAULT_CATEGORIES)
        if isinstance(authors, WordPressError):
            authors = list(DEFAULT_AUTHORS)
        if isinstance(tags, WordPressError):
            tags = []

        # Re-read: a sync may have run while the fetches were in flight
        current = self.get_site(site.id) or site
        current.categories = categories
        current.authors = authors
        current.tags = tags
        current.status = SITE_CONNECTED
        current.last_sync = self.clock()
        self._replace_site(current)
        self.clear_inaccessible(site.url)

        log.info(
            f"Reloaded site {site.id}: {len(categories)} categories, "
            f"{len(authors)} authors, {len(tags)} tags",
            extra={"site_id": site.id},
        )
        return True

    # Connectivity

    def get_site_connectivity_status(self, site_id) -> ConnectivityStatus:
        site = self.get_site(site_id)
        if site is None:
            return ConnectivityStatus("not_found", "Site not found", can_retry=False)

        if site.status == SITE_CONNECTED:
            if site.last_sync is None or self.clock() - site.last_sync >= self.stale_after:
                return ConnectivityStatus(
                    "outdated", "Cached data is outdated. A resync is recommended.", can_retry=True
                )
            return ConnectivityStatus("connected", "Site connected", can_retry=False)

        if site.status == SITE_ERROR:
            return ConnectivityStatus(
                "error", "Site has connectivity problems. Using cached data.", can_retry=True
            )

        return ConnectivityStatus(
            "disconnected", "Site not tested or disconnected.", can_retry=True
        )

    # Inaccessible-site backoff

    def _inaccessible(self) -> dict:
        return self.store.get(INACCESSIBLE_SITES_KEY, {}) or {}

    def is_inaccessible(self, url: str) -> bool:
        marked = parse_datetime(self._inaccessible().get(normalize_url(url)))
        return marked is not None and self.clock() - marked < self.inaccessible_backoff

    def mark_inaccessible(self, url: str):
        entries = self._inaccessible()
        entries[normalize_url(url)] = format_datetime(self.clock())
        self.store.set(INACCESSIBLE_SITES_KEY, entries)

    def clear_inaccessible(self, url: str):
        entries = self._inaccessible()
        if entries.pop(normalize_url(url), None) is not None:
            self.store.set(INACCESSIBLE_SITES_KEY, entries)

    # Provisional tags

    def add_provisional_tag(self, site_id, name: str) -> Tag:
        """Add a locally created tag with a synthetic id until WordPress assigns one."""
        site = self.get_site(site_id)
        if site is None:
            raise KeyError(f"Site not cached: {site_id}")

        slug = slugify(name)
        existing = site.find_tag(slug)
        if existing is not None:
            return existing

        tag_id = int(self.clock().timestamp() * 1000)
        taken = {t.id for t in site.tags}
        while tag_id in taken or tag_id <= PROVISIONAL_TAG_THRESHOLD:
            tag_id += 1

        tag = Tag(id=tag_id, name=name.strip(), slug=slug, count=0)
        site.tags.append(tag)
        self._replace_site(site)
        log.info(f"Provisional tag '{slug}' added to site {site.id}", extra={"site_id": site.id})
        return tag

    async def push_provisional_tags(self, site_id) -> TagPushResult:
        """Create every provisional tag upstream and swap in the server ids."""
        site = self.get_site(site_id)
        if site is None or not site.has_credentials:
            raise SiteNotConfiguredError(f"Site {site_id} has no complete WordPress credentials")

        client = self.client_factory(site)
        result = TagPushResult()

        for tag in [t for t in site.tags if t.is_provisional]:
            try:
                created = await asyncio.to_thread(client.create_tag, tag.name, tag.slug)
            except WordPressError as e:
                log.warning(f"Could not create tag '{tag.slug}': {e.message}",
                            extra={"site_id": site.id, "error_kind": e.kind})
                result.failed.append((tag.slug, e))
                continue
            self._reconcile_tag(site.id, tag.slug, created)
            result.created.append(created)

        if result.created:
            # Best effort: the ids are already reconciled above
            await self.reload_site(site.id)
        return result

    def _reconcile_tag(self, site_id: str, slug: str, created: Tag):
        site = self.get_site(site_id)
        if site is None:
            return
        site.tags = [created if t.slug == slug else t for t in site.tags]
        self._replace_site(site)

    def resolve_tag_ids(self, site_id, slugs: list[str], ids: list[int]) -> list[int]:
        """Current server ids for the given slugs and ids, provisional ids dropped."""
        site = self.get_site(site_id)
        resolved: list[int] = []
        for slug in slugs:
            tag = site.find_tag(slug) if site else None
            if tag is not None and not tag.is_provisional and tag.id not in resolved:
                resolved.append(tag.id)
        for tag_id in ids:
            if tag_id <= PROVISIONAL_TAG_THRESHOLD and tag_id not in resolved:
                resolved.append(tag_id)
        return resolved
