"""Content Pipeline: the Idea and Article lifecycle.

    Idea:    pendente --produce--> produzido
             pendente | produzido --delete--> excluido (terminal, soft delete)
    Article: created once per produced Idea; publish/schedule fields are
             written later by the PublishOrchestrator.

Quotas are checked against the plan limits at the moment of each creation.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone

from bia_engine.errors import GenerationError, InvalidTransitionError
from bia_engine.models import (
    ARTICLE_DONE,
    IDEA_DELETED,
    IDEA_PENDING,
    IDEA_PRODUCED,
    Article,
    CallToAction,
    Idea,
    WordPressData,
    normalize_id,
)
from bia_engine.plans import PlanLimits, QuotaStatus, within_limit
from bia_engine.store import ARTICLES_KEY, IDEAS_KEY, YamlStore

log = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


class ContentPipeline:
    """Owns the Idea and Article lists; every mutation goes through here."""

    def __init__(self, store: YamlStore, plan_limits: PlanLimits, generator=None, clock=None):
        self.store = store
        self.plan_limits = plan_limits
        self.generator = generator
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # Persistence

    @property
    def ideas(self) -> list[Idea]:
        return [Idea.from_dict(i) for i in self.store.get(IDEAS_KEY, [])]

    @property
    def articles(self) -> list[Article]:
        return [Article.from_dict(a) for a in self.store.get(ARTICLES_KEY, [])]

    def _save_ideas(self, ideas: list[Idea]):
        self.store.set(IDEAS_KEY, [i.to_dict() for i in ideas])

    def _save_articles(self, articles: list[Article]):
        self.store.set(ARTICLES_KEY, [a.to_dict() for a in articles])

    def get_idea(self, idea_id) -> Idea | None:
        wanted = normalize_id(idea_id)
        return next((i for i in self.ideas if i.id == wanted), None)

    def get_article(self, article_id) -> Article | None:
        wanted = normalize_id(article_id)
        return next((a for a in self.articles if a.id == wanted), None)

    def get_article_for_idea(self, idea_id) -> Article | None:
        wanted = normalize_id(idea_id)
        return next((a for a in self.articles if a.idea_id == wanted), None)

    def _update_idea(self, idea: Idea):
        idea.updated_at = self.clock()
        self._save_ideas([idea if i.id == idea.id else i for i in self.ideas])

    def update_article(self, article_id, **fields) -> Article:
        article = self.get_article(article_id)
        if article is None:
            raise KeyError(f"Article not found: {article_id}")
        for name, value in fields.items():
            if not hasattr(article, name):
                raise AttributeError(f"Article has no field '{name}'")
            setattr(article, name, value)
        article.updated_at = self.clock()
        self._save_articles([article if a.id == article.id else a for a in self.articles])
        return article

    # Quotas

    def check_plan_limits(self) -> QuotaStatus:
        active_ideas = sum(1 for i in self.ideas if i.status != IDEA_DELETED)
        return QuotaStatus(
            ideas=within_limit(active_ideas, self.plan_limits.ideas),
            articles=within_limit(len(self.articles), self.plan_limits.articles),
        )

    # Lifecycle

    def create_idea(self, data: dict) -> bool:
        """Append a pending Idea. Returns False, without changes, when the quota is used up."""
        if not self.check_plan_limits().ideas:
            log.warning(f"Idea quota reached for plan {self.plan_limits.name} ({self.plan_limits.ideas})")
            return False

        now = self.clock()
        idea = Idea(
            id=normalize_id(data.get("id")) or _new_id(),
            title=data["title"],
            content=data.get("content", ""),
            category=data.get("category", ""),
            tags=list(data.get("tags") or []),
            site_id=normalize_id(data.get("site_id")),
            status=IDEA_PENDING,
            wordpress_data=WordPressData.from_dict(data.get("wordpress_data")),
            cta=CallToAction.from_dict(data.get("cta")),
            generation_params=dict(data.get("generation_params") or {}),
            created_at=now,
            updated_at=now,
        )
        self._save_ideas(self.ideas + [idea])
        log.info(f"Idea created: {idea.title}")
        return True

    async def produce_article(self, idea_id) -> Article | None:
        """Generate the Article for an Idea and mark the Idea produced."""
        if not self.check_plan_limits().articles:
            log.warning(f"Article quota reached for plan {self.plan_limits.name} ({self.plan_limits.articles})")
            return None

        idea = self.get_idea(idea_id)
        if idea is None:
            log.warning(f"Idea not found: {idea_id}")
            return None
        if idea.status == IDEA_DELETED:
            raise InvalidTransitionError(f"Idea {idea.id} is deleted")
        if idea.status == IDEA_PRODUCED:
            log.warning(f"Idea {idea.id} already produced; creating another article")
        if self.generator is None:
            log.error("No article generator configured")
            return None

        try:
            generated = await asyncio.to_thread(self.generator, idea)
        except GenerationError as e:
            log.error(f"Article generation failed for idea {idea.id}: {e}")
            return None
        if not generated or not generated.content:
            log.error(f"Article generation returned no content for idea {idea.id}")
            return None

        now = self.clock()
        article = Article(
            id=_new_id(),
            title=idea.title,
            content=generated.content,
            site_id=idea.site_id,
            idea_id=idea.id,
            status=ARTICLE_DONE,
            image_url=generated.image_url,
            wordpress_data=idea.wordpress_data,
            generation_params=idea.generation_params,
            created_at=now,
            updated_at=now,
        )
        self._save_articles(self.articles + [article])

        # Re-read: the idea may have changed while the generator ran
        idea = self.get_idea(idea.id) or idea
        idea.status = IDEA_PRODUCED
        idea.article_id = article.id
        self._update_idea(idea)

        log.info(f"Article produced from idea {idea.id}: {article.title}", extra={"article_id": article.id})
        return article

    def delete_idea(self, idea_id) -> bool:
        """Soft-delete an Idea. Its Article, if any, is left alone."""
        idea = self.get_idea(idea_id)
        if idea is None:
            log.warning(f"Idea not found: {idea_id}")
            return False
        if idea.status == IDEA_DELETED:
            raise InvalidTransitionError(f"Idea {idea.id} is already deleted")

        idea.status = IDEA_DELETED
        idea.deleted_date = self.clock()
        self._update_idea(idea)
        log.info(f"Idea deleted: {idea.id}")
        return True

    def stats(self) -> dict:
        articles = self.articles
        return {
            "total_ideas": sum(1 for i in self.ideas if i.status != IDEA_DELETED),
            "total_articles": len(articles),
            "published_articles": sum(1 for a in articles if a.is_published),
            "scheduled_articles": sum(1 for a in articles if a.is_scheduled),
        }
