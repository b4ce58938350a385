"""Publish Orchestrator: sends produced Articles to WordPress now or on a schedule."""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

import markdown as md_lib
from bs4 import BeautifulSoup

from bia_engine.content_pipeline import ContentPipeline
from bia_engine.errors import ErrorKind, SiteNotConfiguredError, WordPressError
from bia_engine.models import Article, ScheduledPost, normalize_id
from bia_engine.store import SCHEDULED_POSTS_KEY, YamlStore
from bia_engine.taxonomy_cache import TaxonomyCache
from bia_engine.wp_gateway import WordPressClient

log = logging.getLogger(__name__)

EXCERPT_LENGTH = 150

BLOCK_TAGS = [
    "p", "h1", "h2", "h3", "h4", "h5", "h6", "div", "ul", "ol", "li",
    "table", "blockquote", "pre", "section", "article", "figure",
]


@dataclass
class PublishResult:
    success: bool
    post_id: int | None = None
    url: str | None = None
    error_kind: str | None = None
    message: str = ""

    @property
    def retryable(self) -> bool:
        return ErrorKind.is_retryable(self.error_kind)

    @classmethod
    def rejected(cls, kind: str, message: str = "") -> PublishResult:
        return cls(success=False, error_kind=kind, message=message or ErrorKind.default_message(kind))

    @classmethod
    def from_error(cls, error: WordPressError) -> PublishResult:
        return cls(success=False, error_kind=error.kind, message=error.message)


def has_block_html(content: str) -> bool:
    return BeautifulSoup(content, "html.parser").find(BLOCK_TAGS) is not None


def prepare_content_html(content: str) -> str:
    """HTML passes through; plain markdown-ish text is converted first."""
    if not content:
        return ""
    if has_block_html(content):
        return content
    return md_lib.markdown(content, extensions=["nl2br"])


def build_excerpt(content: str, length: int = EXCERPT_LENGTH) -> str:
    text = BeautifulSoup(content or "", "html.parser").get_text(" ", strip=True)
    text = re.sub(r"\s+", " ", text)
    if len(text) <= length:
        return text
    return text[:length].rstrip() + "..."


class PublishOrchestrator:
    """Drives publish and schedule for Articles, one operation per Article at a time."""

    def __init__(self, cache: TaxonomyCache, pipeline: ContentPipeline, store: YamlStore,
                 client_factory=None, clock=None):
        self.cache = cache
        self.pipeline = pipeline
        self.store = store
        self.client_factory = client_factory or WordPressClient.for_site
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._inflight: set[str] = set()

    def is_in_flight(self, article_id) -> bool:
        return normalize_id(article_id) in self._inflight

    async def publish(self, article_id) -> PublishResult:
        """Publish an Article immediately."""
        return await self._run(article_id, "publish")

    async def schedule(self, article_id, when_utc: datetime) -> PublishResult:
        """Schedule an Article for ``when_utc``, a timezone-aware datetime in the future."""
        return await self._run(article_id, "future", when_utc)

    async def _run(self, article_id, status: str, when: datetime | None = None) -> PublishResult:
        key = normalize_id(article_id)
        if key in self._inflight:
            log.warning(f"Operation already running for article {key}", extra={"article_id": key})
            return PublishResult.rejected(ErrorKind.IN_PROGRESS)

        self._inflight.add(key)
        try:
            result = await self._submit(key, status, when)
        finally:
            self._inflight.discard(key)

        if not result.success:
            log.error(
                f"{'Publish' if status == 'publish' else 'Schedule'} failed for article {key}: {result.message}",
                extra={"article_id": key, "error_kind": result.error_kind},
            )
        return result

    async def _submit(self, article_id: str, status: str, when: datetime | None) -> PublishResult:
        article = self.pipeline.get_article(article_id)
        if article is None:
            return PublishResult.rejected(ErrorKind.NOT_FOUND)
        if article.is_published or article.is_scheduled:
            return PublishResult.rejected(ErrorKind.INVALID_STATE)

        site = self.cache.get_site(article.site_id)
        if site is None or not site.has_credentials:
            return PublishResult.rejected(
                ErrorKind.NOT_CONFIGURED,
                "Configure the WordPress credentials for this site before publishing.",
            )

        if status == "future":
            if when is None or when.tzinfo is None:
                return PublishResult.rejected(ErrorKind.INVALID_DATE, "The scheduled date needs a timezone.")
            when = when.astimezone(timezone.utc)
            if when <= self.clock():
                return PublishResult.rejected(ErrorKind.INVALID_DATE)

        try:
            client = self.client_factory(site)
        except SiteNotConfiguredError as e:
            return PublishResult.from_error(e)

        media_id = await self._upload_featured_image(client, article)
        payload = self.build_post_payload(article, status, date=when, featured_media=media_id)

        try:
            post = await asyncio.to_thread(client.create_post, payload)
        except WordPressError as e:
            return PublishResult.from_error(e)

        if status == "future":
            self.pipeline.update_article(
                article.id,
                scheduled_date=when,
                scheduled_url=post.get("link"),
                wordpress_post_id=post.get("id"),
            )
            self._record_scheduled(article, site.name, when, post.get("id"))
            log.info(f"Article {article.id} scheduled for {when.isoformat()}", extra={"article_id": article.id})
        else:
            self.pipeline.update_article(
                article.id,
                published_url=post.get("link"),
                published_date=self.clock(),
                wordpress_post_id=post.get("id"),
            )
            log.info(f"Article {article.id} published: {post.get('link')}", extra={"article_id": article.id})

        return PublishResult(success=True, post_id=post.get("id"), url=post.get("link"))

    async def _upload_featured_image(self, client: WordPressClient, article: Article) -> int | None:
        """Upload the Article image; any failure means publishing without one."""
        if not article.image_url or not article.image_url.startswith("http"):
            return None
        try:
            data, content_type, extension = await asyncio.to_thread(client.fetch_image, article.image_url)
            filename = f"bia-article-{int(self.clock().timestamp() * 1000)}.{extension}"
            return await asyncio.to_thread(client.upload_media, data, filename, content_type)
        except WordPressError as e:
            log.warning(
                f"Featured image upload failed for article {article.id}, continuing without it: {e.message}",
                extra={"article_id": article.id, "error_kind": e.kind},
            )
            return None

    def build_post_payload(self, article: Article, status: str, date: datetime | None = None,
                           featured_media: int | None = None) -> dict:
        wp_data = article.wordpress_data
        html = prepare_content_html(article.content)
        payload = {
            "title": article.title,
            "content": html,
            "status": status,
            "excerpt": build_excerpt(html),
            "categories": list(wp_data.category_ids),
            "tags": self.cache.resolve_tag_ids(article.site_id, wp_data.tag_slugs, wp_data.tag_ids),
        }
        if wp_data.author_id:
            payload["author"] = wp_data.author_id
        if date is not None:
            payload["date"] = date.isoformat()
        if featured_media:
            payload["featured_media"] = featured_media
        return payload

    # Scheduled posts

    def list_scheduled_posts(self) -> list[ScheduledPost]:
        return [ScheduledPost.from_dict(p) for p in self.store.get(SCHEDULED_POSTS_KEY, [])]

    def _record_scheduled(self, article: Article, site_name: str, when: datetime, post_id):
        entry = ScheduledPost(
            id=uuid.uuid4().hex,
            site_id=article.site_id,
            site_name=site_name,
            article_id=article.id,
            title=article.title,
            scheduled_date=when,
            wp_post_id=post_id,
            created_at=self.clock(),
        )
        posts = self.store.get(SCHEDULED_POSTS_KEY, [])
        posts.append(entry.to_dict())
        self.store.set(SCHEDULED_POSTS_KEY, posts)
