"""WordPress REST API gateway for the BIA Blog Engine."""

from __future__ import annotations

import base64
import io
import logging
import time
from dataclasses import dataclass, field
from urllib.parse import urlparse

import requests
from PIL import Image, UnidentifiedImageError

from bia_engine.errors import (
    AuthenticationError,
    BadRequestError,
    BlockedError,
    ConnectivityError,
    PermissionDeniedError,
    RequestTimeoutError,
    ServerError,
    SiteNotConfiguredError,
    WordPressError,
)
from bia_engine.models import Author, Category, Site, Tag

log = logging.getLogger(__name__)

USER_AGENT = "BIA-WordPress-Client/1.0"

DEFAULT_CATEGORIES = [Category(id=1, name="Uncategorized", slug="uncategorized", parent=0)]
DEFAULT_AUTHORS = [Author(id=1, name="Admin", slug="admin", description="Administrator")]

IMAGE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


def normalize_url(url: str) -> str:
    """Strip trailing slashes and make sure the URL carries a scheme."""
    if not url:
        return ""
    normalized = url.strip().rstrip("/")
    if not normalized.startswith(("http://", "https://")):
        normalized = "https://" + normalized
    return normalized


def is_valid_wordpress_url(url: str) -> bool:
    try:
        parsed = urlparse(normalize_url(url))
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and "." in (parsed.hostname or "")


@dataclass
class ConnectionTestResult:
    url: str
    username: str
    categories: list[Category] = field(default_factory=list)
    authors: list[Author] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)


class WordPressClient:
    """Authenticated calls against one site's /wp-json/wp/v2 API.

    Reads come in two flavours: ``fetch_*`` raise a categorized
    WordPressError, ``list_*`` log it and return a documented default.
    Writes always raise. Nothing is retried here.
    """

    def __init__(self, base_url, username, app_password, read_timeout=10,
                 write_timeout=30, media_timeout=60, test_timeout=15):
        if not (base_url and username and app_password):
            raise SiteNotConfiguredError("Site has no complete WordPress credentials")
        if not is_valid_wordpress_url(base_url):
            raise SiteNotConfiguredError(f"Invalid WordPress URL: {base_url}")

        self.base_url = normalize_url(base_url)
        self.username = username
        self.api_base = f"{self.base_url}/wp-json/wp/v2"
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.media_timeout = media_timeout
        self.test_timeout = test_timeout

        credentials = f"{username}:{app_password}"
        token = base64.b64encode(credentials.encode()).decode()
        self.headers = {
            "Authorization": f"Basic {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }

    @classmethod
    def for_site(cls, site: Site, **timeouts) -> WordPressClient:
        return cls(site.url, site.username, site.application_password, **timeouts)

    def _request(self, method, url, timeout, headers=None, **kwargs):
        """Perform one HTTP call and translate failures into WordPressError subclasses."""
        start = time.time()
        try:
            resp = requests.request(
                method, url, headers=headers or self.headers, timeout=timeout, **kwargs
            )
        except requests.exceptions.Timeout as e:
            log.warning(f"Timeout on {method} {url}", extra={"endpoint": url, "method": method})
            raise RequestTimeoutError(f"Timeout after {timeout}s: {url}") from e
        except requests.exceptions.RequestException as e:
            log.warning(f"Connection error on {method} {url}: {e}", extra={"endpoint": url, "method": method})
            raise ConnectivityError(f"Cannot reach WordPress at {self.base_url}: {e}") from e
        elapsed = time.time() - start

        log.info(
            f"{method} {url} -> {resp.status_code}",
            extra={
                "endpoint": url,
                "method": method,
                "status_code": resp.status_code,
                "response_time": round(elapsed, 3),
            },
        )

        if resp.status_code < 400:
            return resp

        body = self._json_or_none(resp)
        message = body.get("message", "") if isinstance(body, dict) else ""

        if resp.status_code == 401:
            raise AuthenticationError(message, status_code=401, details=body)
        if resp.status_code == 403:
            # Firewalls and security plugins answer with an HTML page, WordPress with JSON
            if body is None:
                raise BlockedError(status_code=403, details=resp.text[:500])
            raise PermissionDeniedError(message, status_code=403, details=body)
        if resp.status_code >= 500:
            raise ServerError(message, status_code=resp.status_code, details=body)
        raise BadRequestError(
            message or f"HTTP {resp.status_code}: {resp.reason}",
            status_code=resp.status_code,
            details=body,
        )

    @staticmethod
    def _json_or_none(resp):
        try:
            return resp.json()
        except ValueError:
            return None

    def _get_json_list(self, path: str, timeout=None) -> list[dict]:
        resp = self._request("GET", f"{self.api_base}/{path}", timeout or self.read_timeout)
        data = self._json_or_none(resp)
        if data is None:
            raise BlockedError("REST API did not answer with JSON", status_code=resp.status_code)
        if not isinstance(data, list):
            raise BadRequestError(f"Unexpected response shape from {path}", details=data)
        return data

    def _json_body(self, resp, what: str) -> dict:
        """JSON object of a successful write; it must carry the new ``id``."""
        data = self._json_or_none(resp)
        if data is None:
            raise BlockedError(f"{what} answered without JSON", status_code=resp.status_code)
        if not isinstance(data, dict) or data.get("id") in (None, ""):
            raise BadRequestError(
                f"Unexpected response shape from {what}", status_code=resp.status_code, details=data
            )
        return data

    def _parse_list(self, path: str, model) -> list:
        items = self._get_json_list(path)
        try:
            return [model.from_dict(item) for item in items]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise BadRequestError(f"Unexpected response shape from {path}: {e!r}", details=items) from e

    # Raising reads

    def fetch_categories(self) -> list[Category]:
        return self._parse_list("categories?per_page=100", Category)

    def fetch_authors(self) -> list[Author]:
        return self._parse_list("users?per_page=100&context=edit", Author)

    def fetch_tags(self) -> list[Tag]:
        return self._parse_list("tags?per_page=100", Tag)

    # Degrading reads

    def list_categories(self) -> list[Category]:
        try:
            return self.fetch_categories()
        except WordPressError as e:
            log.warning(f"Categories unavailable ({e.kind}), using placeholder", extra={"error_kind": e.kind})
            return list(DEFAULT_CATEGORIES)

    def list_authors(self) -> list[Author]:
        try:
            return self.fetch_authors()
        except WordPressError as e:
            log.warning(f"Authors unavailable ({e.kind}), using placeholder", extra={"error_kind": e.kind})
            return list(DEFAULT_AUTHORS)

    def list_tags(self) -> list[Tag]:
        try:
            return self.fetch_tags()
        except WordPressError as e:
            log.warning(f"Tags unavailable ({e.kind}), using empty list", extra={"error_kind": e.kind})
            return []

    # Writes

    def create_tag(self, name: str, slug: str) -> Tag:
        resp = self._request(
            "POST", f"{self.api_base}/tags", self.write_timeout,
            json={"name": name, "slug": slug},
        )
        body = self._json_body(resp, "tags")
        try:
            tag = Tag.from_dict(body)
        except (TypeError, ValueError) as e:
            raise BadRequestError(f"Unexpected response shape from tags: {e!r}", details=body) from e
        log.info(f"Created tag: {slug} -> {tag.id}")
        return tag

    def upload_media(self, data: bytes, filename: str, content_type: str) -> int:
        """Upload raw image bytes to the media library and return the media id."""
        headers = dict(self.headers)
        headers["Content-Type"] = content_type
        headers["Content-Disposition"] = f'attachment; filename="{filename}"'

        resp = self._request(
            "POST", f"{self.api_base}/media", self.media_timeout,
            headers=headers, data=data,
        )
        body = self._json_body(resp, "media")
        try:
            media_id = int(body["id"])
        except (TypeError, ValueError) as e:
            raise BadRequestError(f"Unexpected media id: {body['id']!r}", details=body) from e
        log.info(f"Uploaded media: {media_id} - {filename} ({len(data):,} bytes)")
        return media_id

    def create_post(self, payload: dict) -> dict:
        resp = self._request("POST", f"{self.api_base}/posts", self.write_timeout, json=payload)
        post = self._json_body(resp, "posts")
        log.info(f"Created post {post.get('id')} with status {post.get('status')}")
        return {"id": post.get("id"), "link": post.get("link"), "status": post.get("status")}

    # Helpers

    def test_connection(self) -> ConnectionTestResult:
        """Check the credentials against users/me, then pull the taxonomy."""
        self._request("GET", f"{self.api_base}/users/me", self.test_timeout)
        return ConnectionTestResult(
            url=self.base_url,
            username=self.username,
            categories=self.list_categories(),
            authors=self.list_authors(),
            tags=self.list_tags(),
        )

    def fetch_image(self, url: str) -> tuple[bytes, str, str]:
        """Download a remote image. Returns (data, content_type, extension)."""
        resp = self._request(
            "GET", url, self.media_timeout, headers={"User-Agent": USER_AGENT}
        )
        data = resp.content
        content_type = resp.headers.get("Content-Type", "").split(";")[0].strip().lower()
        if content_type not in IMAGE_EXTENSIONS:
            content_type = sniff_image_type(data)
        return data, content_type, IMAGE_EXTENSIONS.get(content_type, "jpg")


def sniff_image_type(data: bytes) -> str:
    """Guess an image MIME type from its bytes, defaulting to JPEG."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = (img.format or "").upper()
    except (UnidentifiedImageError, OSError):
        return "image/jpeg"
    return {
        "PNG": "image/png",
        "GIF": "image/gif",
        "WEBP": "image/webp",
    }.get(fmt, "image/jpeg")
