"""
Kind-specific store extensions and the factory wiring every store to one
API client.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from shared.errors import ApiError, ValidationError, format_api_error
from shared.logging import get_logger

from ..adapters.resources import ApiClient, BooksClient, ContactClient, MediaClient, RepositoryClient
from ..cdn import DEFAULT_BREAKPOINTS, CdnUrlBuilder
from ..domain.models import Record, utc_now_iso
from ..domain.validation import validate_bulk_request, validate_contact
from . import schema as schemas
from .snapshot import SnapshotStorage
from .store import EntityStore


class BookStore(EntityStore):
    """Books, plus featured-media and media-reference associations."""

    def __init__(self, client: BooksClient, **kwargs: Any):
        super().__init__(schemas.BOOKS, client, **kwargs)

    async def _associate(self, slug: str, action: str, call) -> bool:
        state = self._key_state(slug)
        state.loading = True
        state.error = None

        try:
            response = await call
        except ApiError as exc:
            state.error = self._record_error(action, exc, slug)
            return False
        finally:
            state.loading = False

        if isinstance(response.data, dict):
            self._put(self.schema.key_of(response.data) or slug, response.data)
        self.last_fetched = None
        self._commit()
        return True

    async def set_featured(self, slug: str, kind: str, media_id: str) -> bool:
        """Set the featured ``image``, ``video`` or ``media`` of a book."""
        return await self._associate(slug, "Set featured media", self.client.set_featured(slug, kind, media_id))

    async def add_media_reference(self, slug: str, media_id: str) -> bool:
        return await self._associate(slug, "Add media reference", self.client.add_media_reference(slug, media_id))

    async def remove_media_reference(self, slug: str, media_id: str) -> bool:
        return await self._associate(slug, "Remove media reference", self.client.remove_media_reference(slug, media_id))


class MediaStore(EntityStore):
    """Media items with CDN-derived URLs and bulk operations."""

    def __init__(self, client: MediaClient, cdn: CdnUrlBuilder, **kwargs: Any):
        super().__init__(schemas.MEDIA, client, **kwargs)
        self.cdn = cdn

    def media_url(self, media_id: str, transform: Optional[Mapping[str, Any]] = None) -> str:
        return self.cdn.media_url(media_id, transform)

    def thumbnail_url(self, media_id: str, width: int = 150, height: int = 150) -> str:
        return self.cdn.thumbnail_url(media_id, width, height)

    def responsive_urls(self, media_id: str, breakpoints: Sequence[int] = DEFAULT_BREAKPOINTS) -> Dict[int, str]:
        return self.cdn.responsive_urls(media_id, breakpoints)

    def srcset(self, media_id: str, breakpoints: Sequence[int] = DEFAULT_BREAKPOINTS) -> str:
        return self.cdn.srcset(media_id, breakpoints)

    def get_by_type(self, media_type: str) -> List[Record]:
        return self.get_by_index("media_type", media_type)

    def get_by_purpose(self, purpose: str) -> List[Record]:
        return self.get_by_index("purpose", purpose)

    def get_by_content(self, content_id: str) -> List[Record]:
        return self.get_by_index("content", content_id)

    async def bulk_operation(self, media_ids: List[str], operation: str, target_content_id: Optional[str] = None) -> bool:
        """
        Apply ``delete``, ``archive`` or ``restore`` to up to 100 items.

        Deleted ids reported as processed leave the cache; any other outcome
        only marks the list stale.
        """
        validate_bulk_request(media_ids, operation)

        self.is_loading = True
        self.error = None

        try:
            response = await self.client.bulk(media_ids, operation, target_content_id)
        except ApiError as exc:
            self.error = self._record_error("Bulk operation", exc)
            return False
        finally:
            self.is_loading = False

        if operation == "delete":
            result = response.data if isinstance(response.data, dict) else {}
            for media_id in result.get("processedIds", media_ids):
                self._drop(media_id)

        self.last_fetched = None
        self._commit()

        self.logger.info("Bulk operation completed", operation=operation, count=len(media_ids))
        return True


class RepositoryStore(EntityStore):
    """Repositories plus the contribution activity grid, cached separately."""

    def __init__(self, client: RepositoryClient, *, activity_ttl: Optional[float] = None, **kwargs: Any):
        super().__init__(schemas.REPOSITORIES, client, **kwargs)
        self.activity_ttl = self.ttl if activity_ttl is None else activity_ttl
        self.activity_grid: Optional[Record] = None
        self.activity_last_fetched: Optional[float] = None
        self.activity_params: Dict[str, Any] = {}
        self.is_loading_activity = False
        self.activity_error: Optional[str] = None

    @property
    def is_any_loading(self) -> bool:
        return super().is_any_loading or self.is_loading_activity

    def is_activity_cache_valid(self) -> bool:
        return (
            self.activity_last_fetched is not None
            and self._clock() - self.activity_last_fetched < self.activity_ttl
        )

    def invalidate_activity_cache(self) -> None:
        self.activity_last_fetched = None

    async def fetch_activity(self, year: Optional[int] = None, username: Optional[str] = None) -> bool:
        params = {"year": year, "username": username}
        if self.activity_grid is not None and self.is_activity_cache_valid() and params == self.activity_params:
            return True

        self.is_loading_activity = True
        self.activity_error = None

        try:
            response = await self.client.get_activity(year, username)
        except ApiError as exc:
            self.activity_error = self._record_error("Activity fetch", exc)
            return False
        finally:
            self.is_loading_activity = False

        if isinstance(response.data, dict):
            self.activity_grid = response.data
            self.activity_params = params
            self.activity_last_fetched = self._clock()
            if self.snapshot_storage is not None:
                self.save_snapshot()
        return True

    async def fetch_current_year_activity(self, username: Optional[str] = None) -> bool:
        return await self.fetch_activity(datetime.now(timezone.utc).year, username)

    def get_activity_grid(self) -> Optional[Record]:
        return self.activity_grid

    def get_total_contributions(self) -> int:
        if not self.activity_grid:
            return 0
        return self.activity_grid.get("totalContributions") or 0

    def get_by_language(self, language: str) -> List[Record]:
        return self.get_by_index("language", language)

    def get_by_topic(self, topic: str) -> List[Record]:
        return self.get_by_index("topic", topic)

    def get_public(self) -> List[Record]:
        return self.get_by_index("visibility", "public")

    def get_private(self) -> List[Record]:
        return self.get_by_index("visibility", "private")

    def get_original(self) -> List[Record]:
        return self.get_by_index("fork", "original")

    def get_forks(self) -> List[Record]:
        return self.get_by_index("fork", "fork")

    def get_active(self) -> List[Record]:
        return self.get_by_index("archived", "active")

    def get_archived(self) -> List[Record]:
        return self.get_by_index("archived", "archived")

    def clear_errors(self) -> None:
        super().clear_errors()
        self.activity_error = None

    def snapshot_state(self) -> Dict[str, Any]:
        return {
            **super().snapshot_state(),
            "activity_grid": self.activity_grid,
            "activity_last_fetched": self.activity_last_fetched,
            "activity_params": self.activity_params,
        }

    def _restore_extra(self, state: Dict[str, Any]) -> None:
        grid = state.get("activity_grid")
        if not isinstance(grid, dict):
            return
        last_fetched = state.get("activity_last_fetched")
        params = state.get("activity_params")
        self.activity_grid = grid
        self.activity_last_fetched = (
            last_fetched if isinstance(last_fetched, (int, float)) and not isinstance(last_fetched, bool) else None
        )
        self.activity_params = params if isinstance(params, dict) else {}


@dataclass
class ContactForm:
    name: str = ""
    email: str = ""
    message: str = ""


@dataclass
class ContactSubmission:
    data: Dict[str, str]
    timestamp: str
    success: bool


class ContactStore:
    """Contact form state and submission. Not a cache: nothing is listed."""

    def __init__(self, client: ContactClient):
        self.client = client
        self.form_data = ContactForm()
        self.is_submitting = False
        self.submit_success = False
        self.error: Optional[str] = None
        self.last_submission: Optional[ContactSubmission] = None
        self.logger = get_logger("content_access.store.contact")

    @property
    def name(self) -> str:
        return "contact"

    @property
    def is_any_loading(self) -> bool:
        return self.is_submitting

    def set_form_data(self, **changes: str) -> None:
        unknown = set(changes) - {"name", "email", "message"}
        if unknown:
            raise ValidationError(f"Unknown contact fields: {', '.join(sorted(unknown))}")
        for name, value in changes.items():
            setattr(self.form_data, name, value)

    def reset_form(self) -> None:
        self.form_data = ContactForm()
        self.submit_success = False
        self.error = None

    async def submit(self, data: Optional[Mapping[str, str]] = None) -> bool:
        """
        Submit ``data`` (or the current form). Invalid input raises
        ``ValidationError`` before any request; the form is reset on success.
        """
        payload = dict(data) if data is not None else {
            "name": self.form_data.name,
            "email": self.form_data.email,
            "message": self.form_data.message,
        }
        validate_contact(payload)

        self.is_submitting = True
        self.submit_success = False
        self.error = None

        try:
            await self.client.submit(payload)
        except ApiError as exc:
            self.error = format_api_error(exc)
            self.last_submission = ContactSubmission(data=payload, timestamp=utc_now_iso(), success=False)
            self.logger.warning("Contact submission failed", error=self.error, status_code=exc.status_code)
            return False
        finally:
            self.is_submitting = False

        self.submit_success = True
        self.last_submission = ContactSubmission(data=payload, timestamp=utc_now_iso(), success=True)
        self.form_data = ContactForm()
        self.logger.info("Contact form submitted")
        return True

    def clear_errors(self) -> None:
        self.error = None

    def clear_submission_status(self) -> None:
        self.submit_success = False
        self.last_submission = None


@dataclass
class StoreSet:
    """Every store of one application, sharing a single API client."""

    authors: EntityStore
    blog_posts: EntityStore
    books: BookStore
    portfolio_pieces: EntityStore
    press_releases: EntityStore
    media: MediaStore
    repositories: RepositoryStore
    contact: ContactStore

    def entity_stores(self) -> Dict[str, EntityStore]:
        return {
            "authors": self.authors,
            "blog_posts": self.blog_posts,
            "books": self.books,
            "portfolio_pieces": self.portfolio_pieces,
            "press_releases": self.press_releases,
            "media": self.media,
            "repositories": self.repositories,
        }


def build_stores(
    api_client: ApiClient,
    *,
    snapshot_storage: Optional[SnapshotStorage] = None,
    clock: Callable[[], float] = time.time,
    ttl: Optional[float] = None,
    upload_cleanup_delay: float = 3.0,
) -> StoreSet:
    """Instantiate every store over one injected client."""
    common = {
        "snapshot_storage": snapshot_storage,
        "clock": clock,
        "ttl": ttl,
        "upload_cleanup_delay": upload_cleanup_delay,
    }
    cdn = CdnUrlBuilder(lambda: api_client.executor.config.cdn_base_url)

    return StoreSet(
        authors=EntityStore(schemas.AUTHORS, api_client.authors, **common),
        blog_posts=EntityStore(schemas.BLOG_POSTS, api_client.blog_posts, **common),
        books=BookStore(api_client.books, **common),
        portfolio_pieces=EntityStore(schemas.PORTFOLIO_PIECES, api_client.portfolio, **common),
        press_releases=EntityStore(schemas.PRESS_RELEASES, api_client.press_releases, **common),
        media=MediaStore(api_client.media, cdn, **common),
        repositories=RepositoryStore(api_client.github, **common),
        contact=ContactStore(api_client.contact),
    )
