"""
Unit tests for the per-kind resource clients.
"""

import httpx
import pytest

from shared.errors import ValidationError
from content_access.app.adapters.resources import (
    ApiClient,
    get_api_client,
    initialize_api_client,
    reset_api_client,
)
from content_access.app.domain.models import Create, ListParams, Update, UploadFile

from .helpers import envelope, json_body


PAGE = {
    "page": 1,
    "pageSize": 10,
    "totalCount": 3,
    "totalPages": 1,
    "hasNextPage": False,
    "hasPreviousPage": False,
}


class TestContentClients:

    @pytest.mark.asyncio
    async def test_list_sends_camel_case_params(self, api_client, handler):
        handler.queue(envelope([]))

        await api_client.blog_posts.list(ListParams(page=2, page_size=5, author_slug="jane-doe", include_media=True))

        request = handler.requests[0]
        assert request.url.path == "/posts"
        assert request.url.params["pageSize"] == "5"
        assert request.url.params["authorSlug"] == "jane-doe"
        assert request.url.params["includeMedia"] == "true"

    @pytest.mark.asyncio
    async def test_list_repeats_list_params(self, api_client, handler):
        handler.queue(envelope([]))

        await api_client.portfolio.list({"tags": ["python", "async"]})

        assert handler.requests[0].url.params.get_list("tags") == ["python", "async"]

    @pytest.mark.asyncio
    async def test_get_with_media(self, api_client, handler):
        handler.queue(envelope({"slug": "hello"}))

        await api_client.blog_posts.get("hello", include_media=True)

        request = handler.requests[0]
        assert request.url.path == "/posts/hello"
        assert request.url.params["includeMedia"] == "true"

    @pytest.mark.asyncio
    async def test_update_posts_to_collection(self, api_client, handler):
        handler.queue(envelope({"slug": "hello", "title": "New"}))

        await api_client.press_releases.upsert(Update({"slug": "hello", "title": "New"}))

        request = handler.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/press-releases"

    @pytest.mark.asyncio
    async def test_invalid_create_never_reaches_network(self, api_client, handler):
        handler.queue(envelope({}))

        with pytest.raises(ValidationError):
            await api_client.blog_posts.upsert(Create({"title": "Missing everything"}))

        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_delete(self, api_client, handler):
        handler.queue(httpx.Response(204))

        await api_client.authors.delete("jane-doe")

        assert handler.requests[0].method == "DELETE"
        assert handler.requests[0].url.path == "/authors/jane-doe"

    @pytest.mark.asyncio
    async def test_upload_to_item_media(self, api_client, handler):
        handler.queue(envelope({"id": "media-1"}))
        file = UploadFile(filename="me.jpg", content=b"jpeg", content_type="image/jpeg")

        await api_client.authors.upload("jane-doe", file)

        request = handler.requests[0]
        assert request.url.path == "/authors/jane-doe/media"
        assert b"profile" in request.content
        assert b"image" in request.content


class TestBooksClient:

    @pytest.mark.asyncio
    async def test_create_derives_slug_from_title(self, api_client, handler):
        handler.queue(envelope({"slug": "the-long-road"}))

        await api_client.books.create({
            "title": "The Long Road",
            "authorSlug": "jane-doe",
            "content": "Text",
            "category": "fiction",
            "tagsList": ["novel"],
        })

        request = handler.requests[0]
        assert request.url.path == "/books/the-long-road"
        assert json_body(request)["slug"] == "the-long-road"

    @pytest.mark.asyncio
    async def test_update_posts_to_item(self, api_client, handler):
        handler.queue(envelope({"slug": "the-long-road"}))

        await api_client.books.upsert(Update({"slug": "the-long-road", "title": "Renamed"}))

        assert handler.requests[0].method == "POST"
        assert handler.requests[0].url.path == "/books/the-long-road"

    @pytest.mark.asyncio
    async def test_update_requires_slug(self, api_client, handler):
        with pytest.raises(ValidationError):
            await api_client.books.update({"title": "No slug"})

        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_set_featured(self, api_client, handler):
        handler.queue(envelope({"slug": "the-long-road"}))

        await api_client.books.set_featured("the-long-road", "image", "media-9")

        request = handler.requests[0]
        assert request.url.path == "/books/the-long-road/featured-image"
        assert json_body(request) == {"mediaId": "media-9"}

        with pytest.raises(ValidationError):
            await api_client.books.set_featured("the-long-road", "audio", "media-9")

    @pytest.mark.asyncio
    async def test_remove_media_reference(self, api_client, handler):
        handler.queue(httpx.Response(204))

        await api_client.books.remove_media_reference("the-long-road", "media-9")

        assert handler.requests[0].method == "DELETE"
        assert handler.requests[0].url.path == "/books/the-long-road/media/media-9"


class TestMediaClient:

    @pytest.mark.asyncio
    async def test_update_is_patch_without_id(self, api_client, handler):
        handler.queue(envelope({"id": "m1", "altText": "A cat"}))

        await api_client.media.update({"id": "m1", "altText": "A cat"})

        request = handler.requests[0]
        assert request.method == "PATCH"
        assert request.url.path == "/media/m1"
        assert json_body(request) == {"altText": "A cat"}

    def test_create_is_rejected(self, api_client):
        with pytest.raises(ValidationError, match="uploads"):
            api_client.media.validate_create({"id": "m1"})

    @pytest.mark.asyncio
    async def test_upload_form_fields(self, api_client, handler):
        handler.queue(envelope({"mediaItem": {"id": "m2"}}))
        file = UploadFile(filename="clip.mp4", content=b"video", content_type="video/mp4")

        await api_client.media.upload("author-1", file, {"purpose": "gallery", "altText": "Clip"})

        request = handler.requests[0]
        assert request.url.path == "/media/upload"
        assert b'name="authorId"' in request.content
        assert b'name="altText"' in request.content
        assert b'name="description"' not in request.content

    @pytest.mark.asyncio
    async def test_bulk(self, api_client, handler):
        handler.queue(envelope({"processedIds": ["m1"]}))

        await api_client.media.bulk(["m1"], "archive", target_content_id="post-1")

        assert json_body(handler.requests[0]) == {
            "mediaIds": ["m1"],
            "operation": "archive",
            "targetContentId": "post-1",
        }


class TestRepositoryClient:

    @pytest.fixture
    def repos(self):
        return [
            {"id": 1, "name": "fast-cache", "description": "LRU caching", "topics": ["python"]},
            {"id": 2, "name": "site", "description": "Personal site", "topics": ["web"]},
            {"id": 3, "name": "tools", "description": None, "topics": ["caching", "cli"]},
        ]

    @pytest.mark.asyncio
    async def test_search_filters_client_side(self, api_client, handler, repos):
        handler.queue(envelope(repos, pagination=PAGE))

        response = await api_client.github.list({"searchTerm": "cach", "pageSize": 10})

        assert [repo["id"] for repo in response.data] == [1, 3]
        assert response.pagination.total_count == 2
        assert response.pagination.total_pages == 1
        assert "searchTerm" not in handler.requests[0].url.params

    @pytest.mark.asyncio
    async def test_read_only(self, api_client):
        with pytest.raises(ValidationError):
            await api_client.github.delete("1")
        with pytest.raises(ValidationError):
            api_client.github.validate_create({"id": 4})

    @pytest.mark.asyncio
    async def test_activity_validates_year(self, api_client, handler):
        handler.queue(envelope({"totalContributions": 10, "weeks": []}))

        with pytest.raises(ValidationError):
            await api_client.github.get_activity(2001)

        await api_client.github.get_activity(2020, "octocat")

        request = handler.requests[0]
        assert request.url.path == "/github/activity"
        assert request.url.params["year"] == "2020"
        assert request.url.params["username"] == "octocat"


class TestContactClient:

    @pytest.mark.asyncio
    async def test_submit_trims_fields(self, api_client, handler):
        handler.queue(envelope({"received": True}))

        await api_client.contact.submit({"name": " Jane ", "email": "jane@example.com ", "message": "Hello from the test"})

        assert json_body(handler.requests[0]) == {
            "name": "Jane",
            "email": "jane@example.com",
            "message": "Hello from the test",
        }


class TestApiClient:

    @pytest.mark.asyncio
    async def test_connection_all_healthy(self, api_client, handler):
        handler.queue(envelope([], pagination=PAGE))

        result = await api_client.test_connection()

        assert result["status"] == "success"
        assert result["message"] == "8/8 endpoints accessible"
        probe = handler.requests[0]
        assert probe.url.params["pageSize"] == "1"

    @pytest.mark.asyncio
    async def test_connection_reports_failures_without_retry(self, api_client, handler, sleep_recorder):
        def respond(request):
            if request.url.path == "/media":
                return httpx.Response(503)
            return envelope([], pagination=PAGE)

        handler.queue(respond)

        result = await api_client.test_connection()

        assert result["status"] == "error"
        assert result["endpoints"]["media"] is False
        assert result["endpoints"]["contact"] is True
        assert result["message"] == "7/8 endpoints accessible"
        assert sleep_recorder.delays == []

    def test_config_updates_reach_every_client(self, api_client):
        api_client.update_config(timeout=5.0)

        assert api_client.books.executor.get_config().timeout == 5.0
        assert api_client.media.executor is api_client.executor

    def test_ambient_registry(self, config):
        reset_api_client()
        try:
            client = initialize_api_client(config)
            assert get_api_client() is client
        finally:
            reset_api_client()

    def test_create_layers_environment_defaults(self):
        client = ApiClient.create(api_key="abcdefghijkl", environment="staging")

        assert client.get_config().base_url == "https://mock-tst-api.terencewaters.com"
