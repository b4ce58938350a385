"""Subscription tiers and the quota limits they grant."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PlanLimits:
    """Per-tier caps. ``None`` means unlimited."""
    name: str
    sites: int | None
    ideas: int | None
    articles: int | None

    @property
    def is_unlimited(self) -> bool:
        return self.ideas is None and self.articles is None


@dataclass
class QuotaStatus:
    ideas: bool
    articles: bool


PLAN_DATA = [
    {"name": "Básico", "sites": 5, "articles": 100},
    {"name": "Intermediário", "sites": 10, "articles": 200},
    {"name": "Avançado", "sites": 50, "articles": 500},
    {"name": "BIA", "sites": None, "articles": 1000},
]

FREE_PLAN_NAMES = {"", "free", "gratuito"}

FREE_PLAN_LIMITS = PlanLimits(name="Free", sites=1, ideas=5, articles=3)


def is_free_plan(plan_name: str | None) -> bool:
    return (plan_name or "").strip().lower() in FREE_PLAN_NAMES


def get_plan_limits(plan_name: str | None) -> PlanLimits:
    """Resolve a plan name to its limits; unknown names get the free tier."""
    if is_free_plan(plan_name):
        return FREE_PLAN_LIMITS

    normalized = plan_name.strip().lower()
    for plan in PLAN_DATA:
        if plan["name"].lower() == normalized:
            # Monthly article allowances are billing-side; the pipeline only
            # gates the free tier.
            return PlanLimits(name=plan["name"], sites=plan["sites"], ideas=None, articles=None)

    return FREE_PLAN_LIMITS


def within_limit(count: int, limit: int | None) -> bool:
    return limit is None or count < limit
