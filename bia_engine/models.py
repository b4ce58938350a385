"""Data model shared by the taxonomy cache, content pipeline and publisher."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime

# Tags created locally get a millisecond timestamp as id until WordPress
# assigns the real one. Real server ids never get anywhere near this.
PROVISIONAL_TAG_THRESHOLD = 1_000_000_000

IDEA_PENDING = "pendente"
IDEA_PRODUCED = "produzido"
IDEA_DELETED = "excluido"

ARTICLE_DONE = "Concluído"

SITE_CONNECTED = "connected"
SITE_DISCONNECTED = "disconnected"
SITE_ERROR = "error"


def normalize_id(value) -> str:
    """Return the canonical string form of an id (``12``, ``12.0``, ``"012"`` -> ``"12"``)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    if text.isdigit():
        return str(int(text))
    return text


def parse_datetime(value) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class HostSite:
    """A site as the host application stores it."""
    id: str
    name: str
    url: str = ""
    status: str = "ativo"
    wordpress_url: str = ""
    wordpress_username: str = ""
    wordpress_password: str = ""

    @property
    def has_wordpress_credentials(self) -> bool:
        return bool(self.wordpress_url and self.wordpress_username and self.wordpress_password)

    @classmethod
    def from_dict(cls, data: dict) -> HostSite:
        return cls(
            id=normalize_id(data.get("id")),
            name=data.get("name") or data.get("nome") or "Untitled site",
            url=data.get("url", "") or "",
            status=data.get("status", "ativo"),
            wordpress_url=data.get("wordpress_url", "") or "",
            wordpress_username=data.get("wordpress_username", "") or "",
            wordpress_password=data.get("wordpress_password", "") or "",
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Category:
    id: int
    name: str
    slug: str
    parent: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> Category:
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            slug=data.get("slug", ""),
            parent=int(data.get("parent") or 0),
        )


@dataclass
class Author:
    id: int
    name: str
    slug: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> Author:
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            slug=data.get("slug", ""),
            description=data.get("description") or "",
        )


@dataclass
class Tag:
    id: int
    name: str
    slug: str
    count: int = 0

    @property
    def is_provisional(self) -> bool:
        return self.id > PROVISIONAL_TAG_THRESHOLD

    @classmethod
    def from_dict(cls, data: dict) -> Tag:
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            slug=data.get("slug", ""),
            count=int(data.get("count") or 0),
        )


@dataclass
class Site:
    """Cached view of a WordPress site: credentials plus its taxonomy snapshot."""
    id: str
    name: str
    url: str
    username: str = ""
    application_password: str = ""
    status: str = SITE_DISCONNECTED
    last_sync: datetime | None = None
    is_active: bool = True
    categories: list[Category] = field(default_factory=list)
    authors: list[Author] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)

    @property
    def has_credentials(self) -> bool:
        return bool(self.url and self.username and self.application_password)

    def find_tag(self, slug: str) -> Tag | None:
        for tag in self.tags:
            if tag.slug == slug:
                return tag
        return None

    @classmethod
    def from_dict(cls, data: dict) -> Site:
        return cls(
            id=normalize_id(data.get("id")),
            name=data.get("name", ""),
            url=data.get("url", ""),
            username=data.get("username", ""),
            application_password=data.get("application_password", ""),
            status=data.get("status", SITE_DISCONNECTED),
            last_sync=parse_datetime(data.get("last_sync")),
            is_active=bool(data.get("is_active", True)),
            categories=[Category.from_dict(c) for c in data.get("categories") or []],
            authors=[Author.from_dict(a) for a in data.get("authors") or []],
            tags=[Tag.from_dict(t) for t in data.get("tags") or []],
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["last_sync"] = format_datetime(self.last_sync)
        return data


@dataclass
class WordPressData:
    author_id: int | None = None
    category_ids: list[int] = field(default_factory=list)
    tag_slugs: list[str] = field(default_factory=list)
    tag_ids: list[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict | None) -> WordPressData:
        data = data or {}
        author = data.get("author_id")
        return cls(
            author_id=int(author) if author not in (None, "") else None,
            category_ids=[int(c) for c in data.get("category_ids") or []],
            tag_slugs=list(data.get("tag_slugs") or []),
            tag_ids=[int(t) for t in data.get("tag_ids") or []],
        )


@dataclass
class CallToAction:
    title: str = ""
    description: str = ""
    button: str = ""
    link: str = ""
    image: str = ""
    position: str = "final"  # inicio | meio | final

    @property
    def is_empty(self) -> bool:
        return not (self.title or self.description or self.button or self.link or self.image)

    @classmethod
    def from_dict(cls, data: dict | None) -> CallToAction | None:
        if not data:
            return None
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class Idea:
    id: str
    title: str
    content: str = ""
    category: str = ""
    tags: list[str] = field(default_factory=list)
    site_id: str = ""
    status: str = IDEA_PENDING
    wordpress_data: WordPressData = field(default_factory=WordPressData)
    cta: CallToAction | None = None
    generation_params: dict = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_date: datetime | None = None
    article_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> Idea:
        return cls(
            id=normalize_id(data.get("id")),
            title=data.get("title", ""),
            content=data.get("content", ""),
            category=data.get("category", ""),
            tags=list(data.get("tags") or []),
            site_id=normalize_id(data.get("site_id")),
            status=data.get("status", IDEA_PENDING),
            wordpress_data=WordPressData.from_dict(data.get("wordpress_data")),
            cta=CallToAction.from_dict(data.get("cta")),
            generation_params=dict(data.get("generation_params") or {}),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
            deleted_date=parse_datetime(data.get("deleted_date")),
            article_id=data.get("article_id"),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("created_at", "updated_at", "deleted_date"):
            data[key] = format_datetime(getattr(self, key))
        return data


@dataclass
class Article:
    id: str
    title: str
    content: str
    site_id: str
    idea_id: str | None = None
    status: str = ARTICLE_DONE
    image_url: str | None = None
    wordpress_data: WordPressData = field(default_factory=WordPressData)
    generation_params: dict = field(default_factory=dict)
    published_url: str | None = None
    published_date: datetime | None = None
    wordpress_post_id: int | None = None
    scheduled_date: datetime | None = None
    scheduled_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_published(self) -> bool:
        return bool(self.published_url)

    @property
    def is_scheduled(self) -> bool:
        return self.scheduled_date is not None

    @classmethod
    def from_dict(cls, data: dict) -> Article:
        post_id = data.get("wordpress_post_id")
        return cls(
            id=normalize_id(data.get("id")),
            title=data.get("title", ""),
            content=data.get("content", ""),
            site_id=normalize_id(data.get("site_id")),
            idea_id=normalize_id(data["idea_id"]) if data.get("idea_id") is not None else None,
            status=data.get("status", ARTICLE_DONE),
            image_url=data.get("image_url"),
            wordpress_data=WordPressData.from_dict(data.get("wordpress_data")),
            generation_params=dict(data.get("generation_params") or {}),
            published_url=data.get("published_url"),
            published_date=parse_datetime(data.get("published_date")),
            wordpress_post_id=int(post_id) if post_id is not None else None,
            scheduled_date=parse_datetime(data.get("scheduled_date")),
            scheduled_url=data.get("scheduled_url"),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("published_date", "scheduled_date", "created_at", "updated_at"):
            data[key] = format_datetime(getattr(self, key))
        return data


@dataclass
class ScheduledPost:
    id: str
    site_id: str
    site_name: str
    article_id: str
    title: str
    scheduled_date: datetime
    status: str = "pending"  # pending | published | failed
    wp_post_id: int | None = None
    error: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ScheduledPost:
        return cls(
            id=normalize_id(data.get("id")),
            site_id=normalize_id(data.get("site_id")),
            site_name=data.get("site_name", ""),
            article_id=normalize_id(data.get("article_id")),
            title=data.get("title", ""),
            scheduled_date=parse_datetime(data.get("scheduled_date")),
            status=data.get("status", "pending"),
            wp_post_id=data.get("wp_post_id"),
            error=data.get("error"),
            created_at=parse_datetime(data.get("created_at")),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["scheduled_date"] = format_datetime(self.scheduled_date)
        data["created_at"] = format_datetime(self.created_at)
        return data
