"""Article generation: turns an Idea into full HTML content with Claude."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import anthropic
from jinja2 import Environment, FileSystemLoader

from bia_engine.errors import GenerationError
from bia_engine.models import CallToAction, Idea

log = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

SYSTEM_PROMPT = """You are an SEO copywriter who writes long-form blog articles.
Write in the active voice, use transition words and keep each section under 300 words.
Answer with the article body only, as clean HTML (<h2>, <h3>, <p>, <ul>, <li>, <table>, <a>).
Never include the article title, code fences, placeholders or remarks about the task."""


@dataclass
class GeneratedArticle:
    content: str
    image_url: str | None = None


_env = Environment(loader=FileSystemLoader(str(TEMPLATES_DIR)), autoescape=True)


def render_cta_html(cta: CallToAction | None) -> str:
    if cta is None or cta.is_empty:
        return ""
    return _env.get_template("cta.html.j2").render(cta=cta)


def insert_cta(content: str, cta: CallToAction | None) -> str:
    """Place the CTA block at the start, middle or end of the content."""
    block = render_cta_html(cta)
    if not block:
        return content
    if cta.position == "inicio":
        return block + "\n\n" + content
    if cta.position == "meio":
        paragraphs = content.split("\n\n")
        paragraphs.insert(len(paragraphs) // 2, block)
        return "\n\n".join(paragraphs)
    return content + "\n\n" + block


class ClaudeArticleGenerator:
    """Default generator: callable as ``generator(idea) -> GeneratedArticle``."""

    def __init__(self, config: dict | None = None, client=None):
        self.config = config or {}
        self._client = client

    @property
    def client(self):
        if self._client is None:
            api_key = os.getenv("ANTHROPIC_API_KEY", "")
            if not api_key:
                raise GenerationError("ANTHROPIC_API_KEY is not configured")
            self._client = anthropic.Anthropic(api_key=api_key)
        return self._client

    def build_prompt(self, idea: Idea) -> str:
        params = idea.generation_params or {}
        niche = params.get("niche") or idea.category or "General"
        keywords = params.get("keywords") or ", ".join(idea.tags)
        language = params.get("language") or self.config.get("language", "Português")
        context = params.get("context") or ""

        prompt = (
            f"Write the complete article in {language}.\n\n"
            f'Topic: "{idea.title}"\n'
            f'Blog niche: "{niche}"\n'
            f'Focus keywords: "{keywords}"\n\n'
            "Requirements:\n"
            "- 2,500 to 5,000 words across 5 to 10 sections with <h2>/<h3> headings\n"
            "- At least one checklist (<ul>) and one table (<table>)\n"
            "- Real internal and external links, no placeholders\n"
            "- An FAQ section with 5 to 7 questions\n"
            "- A natural call to action in the closing paragraph\n"
        )
        if context:
            prompt += f"\nAdditional context:\n{context}\n"
        return prompt

    def __call__(self, idea: Idea) -> GeneratedArticle:
        try:
            response = self.client.messages.create(
                model=self.config.get("model", "claude-sonnet-4-5-20250929"),
                max_tokens=self.config.get("max_tokens", 8000),
                temperature=self.config.get("temperature", 0.9),
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": self.build_prompt(idea)}],
            )
        except anthropic.APIError as e:
            log.error(f"Claude API error: {e}")
            raise GenerationError(f"Content generation failed: {e}") from e

        content = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        ).strip()
        if not content:
            raise GenerationError("Content generation returned an empty article")

        log.info(f"Generated article for idea {idea.id} ({len(content.split())} words)")
        return GeneratedArticle(content=insert_cta(content, idea.cta))
