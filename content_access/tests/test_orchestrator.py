"""
Unit tests for the cross-store orchestrator, driven through the HTTP layer.
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from content_access.app.caching.orchestrator import ContentOrchestrator, HealthReport
from content_access.app.caching.snapshot import MemorySnapshotStorage
from content_access.app.caching.stores import build_stores
from content_access.app.domain.models import UploadFile

from .helpers import envelope, make_post


PAGE = {
    "page": 1,
    "pageSize": 10,
    "totalCount": 1,
    "totalPages": 1,
    "hasNextPage": False,
    "hasPreviousPage": False,
}

COLLECTIONS = {
    "/authors": [{"authorSlug": "jane-doe", "displayName": "Jane Doe"}],
    "/posts": [make_post("hello-world")],
    "/books": [{"book": make_post("first-book", category="fiction")}],
    "/portfolio": [make_post("case-study", category="design")],
    "/press-releases": [make_post("launch", category="news")],
    "/media": [{"id": "m1", "mediaType": "image", "purpose": "gallery"}],
    "/github/repos": [{"id": 7, "name": "tools", "language": "Python", "topics": []}],
}

GRID = {"weeks": [], "totalContributions": 12, "startDate": "2024-01-01", "endDate": "2024-12-31"}


def api_router(failing=None, status_code=503):
    failing = set(failing or ())

    def respond(request):
        path = request.url.path
        if path in failing:
            return httpx.Response(status_code, json={"message": f"{path} unavailable"})
        if path == "/github/activity":
            return envelope(GRID)
        if path not in COLLECTIONS:
            return httpx.Response(404, json={"message": "Not found"})
        return envelope(COLLECTIONS[path], pagination=PAGE)

    return respond


@pytest.fixture
def stores(api_client, clock):
    return build_stores(api_client, clock=clock)


@pytest.fixture
def orchestrator(stores, clock):
    return ContentOrchestrator(stores, clock=clock)


class TestSyncAll:

    @pytest.mark.asyncio
    async def test_populates_every_store(self, orchestrator, stores, handler, clock):
        loading_seen = []

        def respond(request):
            loading_seen.append(orchestrator.get_global_loading_state())
            return api_router()(request)

        handler.queue(respond)

        summary = await orchestrator.sync_all()

        assert summary["failed"] == []
        assert len(summary["synced"]) == 8
        assert all(loading_seen)
        assert orchestrator.is_global_loading is False
        assert orchestrator.get_global_loading_state() is False
        assert orchestrator.last_global_sync == clock.now

        assert stores.books.order == ["first-book"]
        assert stores.repositories.order == ["7"]
        assert stores.repositories.get_total_contributions() == 12
        for store in stores.entity_stores().values():
            assert store.is_cache_valid() is True

    @pytest.mark.asyncio
    async def test_store_failures_stay_local(self, orchestrator, stores, handler):
        handler.queue(api_router(failing={"/posts"}, status_code=404))

        summary = await orchestrator.sync_all()

        assert summary["failed"] == ["blog_posts"]
        assert orchestrator.global_error is None
        assert stores.blog_posts.error == "/posts unavailable"
        assert stores.authors.error is None
        assert orchestrator.get_global_error_state() == "/posts unavailable"

    @pytest.mark.asyncio
    async def test_unexpected_task_exception_is_reported(self, orchestrator, stores, handler):
        handler.queue(api_router())
        stores.media.fetch_list = AsyncMock(side_effect=RuntimeError("index corrupted"))

        summary = await orchestrator.sync_all()

        assert summary["failed"] == ["media"]
        assert "index corrupted" in summary["errors"]
        assert orchestrator.global_error is None
        assert orchestrator.last_global_sync is not None

    @pytest.mark.asyncio
    async def test_second_sync_served_from_cache(self, orchestrator, handler):
        handler.queue(api_router())

        await orchestrator.sync_all()
        first = len(handler.requests)
        await orchestrator.sync_all()

        assert first == 8
        assert len(handler.requests) == first


class TestGlobalOperations:

    @pytest.mark.asyncio
    async def test_invalidate_all(self, orchestrator, stores, handler):
        handler.queue(api_router())
        await orchestrator.sync_all()

        orchestrator.invalidate_all()

        assert orchestrator.last_global_sync is None
        assert stores.repositories.is_activity_cache_valid() is False
        for store in stores.entity_stores().values():
            assert store.is_cache_valid() is False
            assert store.get_all() != []

        await orchestrator.sync_all()
        assert len(handler.requests) == 16

    @pytest.mark.asyncio
    async def test_clear_all_errors(self, orchestrator, stores, handler):
        handler.queue(api_router(failing={"/authors", "/github/activity"}, status_code=400))
        await orchestrator.sync_all()
        await stores.books.fetch_one("missing-book")
        stores.contact.error = "Mailer down"

        assert orchestrator.get_global_error_state() is not None

        orchestrator.clear_all_errors()

        assert orchestrator.get_global_error_state() is None
        assert stores.repositories.activity_error is None
        assert stores.contact.error is None

    @pytest.mark.asyncio
    async def test_error_state_reports_failed_uploads(self, orchestrator, stores, handler):
        handler.queue(api_router(failing={"/posts/hello-world/media"}, status_code=400))
        file = UploadFile(filename="cover.png", content=b"png", content_type="image/png")

        assert await stores.blog_posts.upload("hello-world", file) is None

        assert orchestrator.get_global_error_state() == "/posts/hello-world/media unavailable"

        orchestrator.clear_all_errors()

        assert stores.blog_posts.upload_tickets == {}
        assert orchestrator.get_global_error_state() is None

    def test_error_state_reports_key_errors(self, orchestrator, stores):
        stores.press_releases._key_state("launch").error = "Press release not found"

        assert orchestrator.get_global_error_state() == "Press release not found"

    def test_idle_state(self, orchestrator):
        assert orchestrator.get_global_loading_state() is False
        assert orchestrator.get_global_error_state() is None


class TestHealthCheck:

    @pytest.mark.asyncio
    async def test_all_healthy(self, orchestrator, stores, handler):
        handler.queue(api_router())

        report = await orchestrator.health_check()

        assert isinstance(report, HealthReport)
        assert report.overall is True
        assert report.stores["contact"] is True
        assert set(report.stores) == set(stores.entity_stores()) | {"contact"}
        for store in stores.entity_stores().values():
            assert store.order == []

    @pytest.mark.asyncio
    async def test_single_failure(self, orchestrator, handler, sleep_recorder):
        handler.queue(api_router(failing={"/media"}))

        report = await orchestrator.health_check()

        assert report.overall is False
        assert report.failing == ["media"]
        assert report.to_dict()["overall"] is False
        assert sleep_recorder.delays == []


class TestSnapshots:

    @pytest.mark.asyncio
    async def test_save_and_restore_all(self, api_client, handler, clock):
        storage = MemorySnapshotStorage()
        handler.queue(api_router())
        orchestrator = ContentOrchestrator(build_stores(api_client, clock=clock, snapshot_storage=storage), clock=clock)
        await orchestrator.sync_all()

        fresh = ContentOrchestrator(build_stores(api_client, clock=clock, snapshot_storage=storage), clock=clock)
        restored = fresh.restore_all()

        assert all(restored.values())
        assert fresh.stores.press_releases.order == ["launch"]
        assert fresh.save_all()["media"] is True
