"""Tests for the WordPress gateway using mocked HTTP responses."""

import base64
import io
import json

import pytest
import requests
import responses
from PIL import Image as PILImage

from bia_engine.errors import (
    AuthenticationError,
    BadRequestError,
    BlockedError,
    ConnectivityError,
    ErrorKind,
    PermissionDeniedError,
    RequestTimeoutError,
    ServerError,
    SiteNotConfiguredError,
)
from bia_engine.models import Site
from bia_engine.wp_gateway import (
    DEFAULT_AUTHORS,
    DEFAULT_CATEGORIES,
    USER_AGENT,
    WordPressClient,
    is_valid_wordpress_url,
    normalize_url,
    sniff_image_type,
)


BASE_URL = "https://blog.example.com"
API_BASE = f"{BASE_URL}/wp-json/wp/v2"


def _client():
    return WordPressClient(BASE_URL, "editor", "abcd efgh ijkl")


def _png_bytes():
    buf = io.BytesIO()
    PILImage.new("RGB", (20, 20), (200, 30, 30)).save(buf, "PNG")
    return buf.getvalue()


class TestUrls:
    def test_normalize_url_adds_scheme_and_strips_slash(self):
        assert normalize_url("blog.example.com/") == "https://blog.example.com"
        assert normalize_url("http://blog.example.com//") == "http://blog.example.com"
        assert normalize_url("") == ""

    def test_is_valid_wordpress_url(self):
        assert is_valid_wordpress_url("https://blog.example.com")
        assert is_valid_wordpress_url("blog.example.com")
        assert not is_valid_wordpress_url("localhost")
        assert not is_valid_wordpress_url("")


class TestClientSetup:
    def test_basic_auth_header(self):
        client = _client()
        token = base64.b64encode(b"editor:abcd efgh ijkl").decode()
        assert client.headers["Authorization"] == f"Basic {token}"
        assert client.headers["User-Agent"] == USER_AGENT
        assert client.api_base == API_BASE

    def test_missing_credentials_raise_not_configured(self):
        with pytest.raises(SiteNotConfiguredError) as exc:
            WordPressClient(BASE_URL, "editor", "")
        assert exc.value.kind == ErrorKind.NOT_CONFIGURED
        assert not exc.value.retryable

    def test_invalid_url_raises_not_configured(self):
        with pytest.raises(SiteNotConfiguredError):
            WordPressClient("not a url", "editor", "pw")

    def test_for_site_passes_timeouts(self):
        site = Site(id="1", name="Blog", url=BASE_URL, username="editor", application_password="pw")
        client = WordPressClient.for_site(site, read_timeout=3)
        assert client.base_url == BASE_URL
        assert client.read_timeout == 3


class TestReads:
    @responses.activate
    def test_fetch_categories(self):
        responses.add(
            responses.GET, f"{API_BASE}/categories",
            json=[{"id": 4, "name": "Vendas", "slug": "vendas", "parent": 0}],
            status=200,
        )
        categories = _client().fetch_categories()
        assert [c.slug for c in categories] == ["vendas"]
        assert "per_page=100" in responses.calls[0].request.url

    @responses.activate
    def test_fetch_authors_uses_edit_context(self):
        responses.add(
            responses.GET, f"{API_BASE}/users",
            json=[{"id": 2, "name": "Ana", "slug": "ana"}],
            status=200,
        )
        authors = _client().fetch_authors()
        assert authors[0].name == "Ana"
        assert "context=edit" in responses.calls[0].request.url

    @responses.activate
    def test_fetch_tags_html_body_is_blocked(self):
        responses.add(
            responses.GET, f"{API_BASE}/tags",
            body="<html>Checking your browser</html>", status=200,
            content_type="text/html",
        )
        with pytest.raises(BlockedError):
            _client().fetch_tags()

    @responses.activate
    def test_list_categories_degrades_to_default(self):
        responses.add(responses.GET, f"{API_BASE}/categories", json={"message": "boom"}, status=500)
        assert _client().list_categories() == DEFAULT_CATEGORIES

    @responses.activate
    def test_list_authors_degrades_to_default(self):
        responses.add(responses.GET, f"{API_BASE}/users", json={"message": "nope"}, status=403)
        assert _client().list_authors() == DEFAULT_AUTHORS

    @responses.activate
    def test_list_tags_degrades_to_empty(self):
        responses.add(responses.GET, f"{API_BASE}/tags", body=requests.exceptions.ConnectionError("down"))
        assert _client().list_tags() == []

    @responses.activate
    def test_item_without_id_degrades_to_default(self):
        responses.add(responses.GET, f"{API_BASE}/categories", json=[{"name": "no id"}], status=200)
        assert _client().list_categories() == DEFAULT_CATEGORIES

    @responses.activate
    def test_malformed_items_raise_bad_request(self):
        responses.add(responses.GET, f"{API_BASE}/tags", json=["leads", 7], status=200)
        with pytest.raises(BadRequestError) as exc:
            _client().fetch_tags()
        assert exc.value.kind == ErrorKind.BAD_REQUEST


class TestErrorMapping:
    @responses.activate
    def test_401_is_credentials(self):
        responses.add(
            responses.GET, f"{API_BASE}/categories",
            json={"code": "rest_not_logged_in", "message": "You are not currently logged in."},
            status=401,
        )
        with pytest.raises(AuthenticationError) as exc:
            _client().fetch_categories()
        assert exc.value.kind == ErrorKind.CREDENTIALS
        assert exc.value.status_code == 401
        assert not exc.value.retryable

    @responses.activate
    def test_403_json_is_permissions(self):
        responses.add(
            responses.GET, f"{API_BASE}/users",
            json={"code": "rest_forbidden", "message": "Sorry, you are not allowed."},
            status=403,
        )
        with pytest.raises(PermissionDeniedError) as exc:
            _client().fetch_authors()
        assert exc.value.message == "Sorry, you are not allowed."

    @responses.activate
    def test_403_html_is_blocked(self):
        responses.add(
            responses.GET, f"{API_BASE}/tags",
            body="<html>Access denied by firewall</html>", status=403,
            content_type="text/html",
        )
        with pytest.raises(BlockedError) as exc:
            _client().fetch_tags()
        assert exc.value.kind == ErrorKind.CORS

    @responses.activate
    def test_500_is_retryable_server_error(self):
        responses.add(responses.POST, f"{API_BASE}/posts", json={"message": "db error"}, status=502)
        with pytest.raises(ServerError) as exc:
            _client().create_post({"title": "x"})
        assert exc.value.retryable

    @responses.activate
    def test_400_carries_server_message(self):
        responses.add(
            responses.POST, f"{API_BASE}/posts",
            json={"code": "rest_invalid_param", "message": "Invalid parameter(s): date"},
            status=400,
        )
        with pytest.raises(BadRequestError) as exc:
            _client().create_post({"title": "x"})
        assert "date" in exc.value.message
        assert not exc.value.retryable

    @responses.activate
    def test_connection_error_is_connectivity(self):
        responses.add(
            responses.GET, f"{API_BASE}/categories",
            body=requests.exceptions.ConnectionError("refused"),
        )
        with pytest.raises(ConnectivityError) as exc:
            _client().fetch_categories()
        assert exc.value.retryable

    @responses.activate
    def test_timeout_is_timeout(self):
        responses.add(
            responses.GET, f"{API_BASE}/categories",
            body=requests.exceptions.ReadTimeout("slow"),
        )
        with pytest.raises(RequestTimeoutError) as exc:
            _client().fetch_categories()
        assert exc.value.kind == ErrorKind.TIMEOUT


class TestWrites:
    @responses.activate
    def test_create_post(self):
        responses.add(
            responses.POST, f"{API_BASE}/posts",
            json={"id": 42, "status": "publish", "link": f"{BASE_URL}/?p=42"},
            status=201,
        )
        post = _client().create_post({"title": "Hello", "content": "<p>Hi</p>", "status": "publish"})
        assert post == {"id": 42, "link": f"{BASE_URL}/?p=42", "status": "publish"}

        body = json.loads(responses.calls[0].request.body)
        assert body["title"] == "Hello"

    @responses.activate
    def test_create_tag(self):
        responses.add(
            responses.POST, f"{API_BASE}/tags",
            json={"id": 77, "name": "Growth", "slug": "growth", "count": 0},
            status=201,
        )
        tag = _client().create_tag("Growth", "growth")
        assert tag.id == 77
        assert not tag.is_provisional

    @responses.activate
    def test_upload_media_sends_disposition(self):
        responses.add(responses.POST, f"{API_BASE}/media", json={"id": 101}, status=201)
        media_id = _client().upload_media(b"\x89PNG...", "bia-article-1.png", "image/png")
        assert media_id == 101

        request = responses.calls[0].request
        assert request.headers["Content-Type"] == "image/png"
        assert request.headers["Content-Disposition"] == 'attachment; filename="bia-article-1.png"'


    @responses.activate
    def test_create_post_html_body_is_blocked(self):
        responses.add(
            responses.POST, f"{API_BASE}/posts",
            body="<html>Cached page</html>", status=200, content_type="text/html",
        )
        with pytest.raises(BlockedError):
            _client().create_post({"title": "x"})

    @responses.activate
    def test_upload_media_without_id(self):
        responses.add(responses.POST, f"{API_BASE}/media", json={"source_url": "x"}, status=201)
        with pytest.raises(BadRequestError):
            _client().upload_media(b"data", "a.png", "image/png")

    @responses.activate
    def test_create_tag_empty_body(self):
        responses.add(responses.POST, f"{API_BASE}/tags", body="", status=201)
        with pytest.raises(BlockedError):
            _client().create_tag("Growth", "growth")


class TestHelpers:
    @responses.activate
    def test_test_connection(self):
        responses.add(responses.GET, f"{API_BASE}/users/me", json={"id": 1, "name": "editor"}, status=200)
        responses.add(responses.GET, f"{API_BASE}/categories", json=[{"id": 1, "name": "Geral", "slug": "geral"}])
        responses.add(responses.GET, f"{API_BASE}/users", json=[{"id": 1, "name": "Editor", "slug": "editor"}])
        responses.add(responses.GET, f"{API_BASE}/tags", json=[])

        result = _client().test_connection()
        assert result.url == BASE_URL
        assert [c.slug for c in result.categories] == ["geral"]
        assert len(result.authors) == 1
        assert result.tags == []

    @responses.activate
    def test_test_connection_bad_credentials(self):
        responses.add(responses.GET, f"{API_BASE}/users/me", json={"message": "bad"}, status=401)
        with pytest.raises(AuthenticationError):
            _client().test_connection()
        assert len(responses.calls) == 1

    @responses.activate
    def test_fetch_image_sniffs_missing_content_type(self):
        responses.add(
            responses.GET, "https://cdn.example.com/img",
            body=_png_bytes(), status=200, content_type="application/octet-stream",
        )
        data, content_type, ext = _client().fetch_image("https://cdn.example.com/img")
        assert data.startswith(b"\x89PNG")
        assert content_type == "image/png"
        assert ext == "png"

    def test_sniff_unknown_bytes_defaults_to_jpeg(self):
        assert sniff_image_type(b"not an image") == "image/jpeg"
