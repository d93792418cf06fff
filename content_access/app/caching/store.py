"""
Generic entity cache store.

One engine serves every content kind. An ``EntitySchema`` supplies the key
field, the secondary index extractors and the TTL; the store owns the record
map, display order, derived indices, pagination, per-key state and freshness.

Indices are never patched by hand: after every accepted change they are
rebuilt from ``order`` and ``records``, so they cannot drift from the
authoritative data.
"""

import asyncio
import time
from dataclasses import asdict, dataclass, fields as dataclass_fields
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from shared.errors import ApiError, SnapshotError, ValidationError, format_api_error
from shared.logging import get_logger, store_context

from ..domain.models import Create, ListParams, Record, Update, UploadFile, UploadProgress
from ..domain.validation import validate_key
from .schema import EntitySchema
from .snapshot import CURRENT_SNAPSHOT_VERSION, SnapshotStorage, migrate_snapshot


ParamsLike = Union[ListParams, Mapping[str, Any], None]


class StoreStatus(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    POPULATED = "populated"
    ERRORED = "errored"
    STALE = "stale"


@dataclass
class KeyState:
    loading: bool = False
    error: Optional[str] = None


@dataclass
class PageState:
    """Pagination envelope of the latest successful list fetch."""

    page: int = 1
    page_size: int = 0
    total_pages: int = 0
    total_count: int = 0
    has_next_page: bool = False
    has_previous_page: bool = False


@dataclass
class UploadTicket:
    key: str
    owner_key: str
    loading: bool = True
    progress: UploadProgress = UploadProgress(loaded=0, total=0, percentage=0)
    error: Optional[str] = None
    record_key: Optional[str] = None


def _coerce_params(params: ParamsLike) -> ListParams:
    if params is None:
        return ListParams()
    if isinstance(params, ListParams):
        return params
    return ListParams(**params)


class EntityStore:
    """Cache store for one content kind."""

    def __init__(
        self,
        schema: EntitySchema,
        client: Any,
        *,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        snapshot_storage: Optional[SnapshotStorage] = None,
        upload_cleanup_delay: float = 3.0,
    ):
        self.schema = schema
        self.client = client
        self.ttl = schema.ttl if ttl is None else ttl
        self.snapshot_storage = snapshot_storage
        self.upload_cleanup_delay = upload_cleanup_delay
        self._clock = clock
        self.logger = get_logger(f"content_access.store.{schema.name}")

        self.records: Dict[str, Record] = {}
        self.order: List[str] = []
        self.indexes: Dict[str, Dict[str, List[str]]] = {index.name: {} for index in schema.indexes}
        self.key_states: Dict[str, KeyState] = {}
        self.fetched_at: Dict[str, float] = {}
        self.pagination = PageState()
        self.last_fetched: Optional[float] = None

        self.current_filters = ListParams()
        self.search_results: List[str] = []
        self.upload_tickets: Dict[str, UploadTicket] = {}

        self.is_loading = False
        self.is_loading_list = False
        self.error: Optional[str] = None
        self._list_outcome: Optional[StoreStatus] = None

    @property
    def name(self) -> str:
        return self.schema.name

    # Freshness

    def is_cache_valid(self) -> bool:
        return self.last_fetched is not None and self._clock() - self.last_fetched < self.ttl

    def _is_record_fresh(self, key: str) -> bool:
        stamp = self.fetched_at.get(key)
        return stamp is not None and self._clock() - stamp < self.ttl

    def invalidate_cache(self) -> None:
        """Force the next list and single-record reads to reach the network."""
        self.last_fetched = None
        self.fetched_at.clear()
        self.logger.debug("Cache invalidated")

    @property
    def status(self) -> StoreStatus:
        if self.is_loading_list:
            return StoreStatus.FETCHING
        if self._list_outcome is None:
            return StoreStatus.IDLE
        if self._list_outcome is StoreStatus.ERRORED:
            return StoreStatus.ERRORED
        return StoreStatus.POPULATED if self.is_cache_valid() else StoreStatus.STALE

    @property
    def is_any_loading(self) -> bool:
        return (
            self.is_loading
            or self.is_loading_list
            or any(state.loading for state in self.key_states.values())
            or any(ticket.loading for ticket in self.upload_tickets.values())
        )

    # Internal state changes

    def _key_state(self, key: str) -> KeyState:
        state = self.key_states.get(key)
        if state is None:
            state = self.key_states[key] = KeyState()
        return state

    def _rebuild_indexes(self) -> None:
        indexes: Dict[str, Dict[str, List[str]]] = {index.name: {} for index in self.schema.indexes}
        for key in self.order:
            record = self.records.get(key)
            if record is None:
                continue
            for name, values in self.schema.index_values(record).items():
                for index_value in values:
                    indexes[name].setdefault(index_value, []).append(key)
        self.indexes = indexes

    def _commit(self) -> None:
        """Re-derive indices and persist after an accepted change."""
        self._rebuild_indexes()
        if self.snapshot_storage is not None:
            self.save_snapshot()

    def _put(self, key: str, record: Record, prepend: bool = False) -> None:
        self.records[key] = record
        self.fetched_at[key] = self._clock()
        if prepend:
            if key in self.order:
                self.order.remove(key)
            self.order.insert(0, key)

    def _drop(self, key: str) -> None:
        self.records.pop(key, None)
        self.fetched_at.pop(key, None)
        self.key_states.pop(key, None)
        if key in self.order:
            self.order.remove(key)
        if key in self.search_results:
            self.search_results.remove(key)

    def _record_error(self, action: str, exc: ApiError, key: Optional[str] = None) -> str:
        message = format_api_error(exc)
        self.logger.warning(
            f"{action} failed",
            key=key,
            error=message,
            error_code=exc.code,
            status_code=exc.status_code,
        )
        return message

    # List actions

    async def fetch_list(self, params: ParamsLike = None, force: bool = False) -> bool:
        """
        Fetch one page of the collection.

        A first-page request is served from cache while the cache is valid
        and populated, unless it carries a search term or ``force`` is set.
        Page 1 replaces the cached list; later pages merge into it.
        """
        params = _coerce_params(params)
        page = params.effective_page

        if page == 1 and not force and not params.search_term and self.order and self.is_cache_valid():
            self.logger.debug("List served from cache", count=len(self.order))
            return True

        self.is_loading_list = True
        self.error = None
        self.current_filters = params

        try:
            with store_context(self.name):
                response = await self.client.list(params)
        except ApiError as exc:
            self.error = self._record_error("List fetch", exc)
            self._list_outcome = StoreStatus.ERRORED
            return False
        finally:
            self.is_loading_list = False

        items = response.data if isinstance(response.data, list) else []
        keys: List[str] = []
        page_records: Dict[str, Record] = {}
        for record in items:
            key = self.schema.key_of(record)
            if key is None:
                self.logger.warning("Skipping record without key", key_field=self.schema.key_field)
                continue
            page_records[key] = record
            keys.append(key)
        keys = list(dict.fromkeys(keys))

        now = self._clock()
        if page == 1:
            self.records = page_records
            self.order = keys
            self.fetched_at = {key: now for key in keys}
        else:
            self.records.update(page_records)
            self.order.extend(key for key in keys if key not in self.order)
            self.fetched_at.update({key: now for key in keys})

        pagination = response.pagination
        if pagination is not None:
            self.pagination = PageState(
                page=pagination.page,
                page_size=pagination.page_size,
                total_pages=pagination.total_pages,
                total_count=pagination.total_count,
                has_next_page=pagination.has_next_page,
                has_previous_page=pagination.has_previous_page,
            )
        else:
            self.pagination = PageState(page=page)

        if params.search_term:
            self.search_results = keys

        self.last_fetched = now
        self._list_outcome = StoreStatus.POPULATED
        self._commit()

        self.logger.debug("List fetched", page=page, count=len(keys), total=len(self.order))
        return True

    async def fetch_next_page(self) -> bool:
        if not self.pagination.has_next_page:
            return False
        return await self.fetch_list(self.current_filters.with_filters(page=self.pagination.page + 1))

    async def search(self, term: str, params: ParamsLike = None) -> bool:
        if not term or not isinstance(term, str):
            raise ValidationError("Search term is required", details={"field": "searchTerm"})
        return await self.fetch_list(_coerce_params(params).with_filters(search_term=term))

    async def fetch_by(self, index_name: str, value: str, params: ParamsLike = None) -> bool:
        """Fetch the collection filtered server-side to one index value."""
        try:
            index = self.schema.index(index_name)
        except KeyError as exc:
            raise ValidationError(str(exc), details={"index": index_name}) from exc
        if index.param is None:
            raise ValidationError(
                f"Index {index_name!r} cannot be used as a list filter",
                details={"index": index_name}
            )
        if not value:
            raise ValidationError(f"{index_name} value is required", details={"index": index_name})

        filter_value: Any = [value] if index.multi else value
        return await self.fetch_list(_coerce_params(params).with_filters(**{index.param: filter_value}), force=True)

    def set_current_filters(self, params: ParamsLike) -> None:
        self.current_filters = _coerce_params(params)

    # Single-record actions

    async def fetch_one(self, key: str, include_media: bool = False) -> Optional[Record]:
        """
        Read one record, served from cache while its freshness stamp is
        within TTL. Keys first seen here are cached but not added to the
        display order.
        """
        validate_key(key)
        cached = self.records.get(key)
        if cached is not None and not include_media and self._is_record_fresh(key):
            return cached

        state = self._key_state(key)
        state.loading = True
        state.error = None

        try:
            response = await self.client.get(key, include_media=include_media)
        except ApiError as exc:
            state.error = self._record_error("Record fetch", exc, key)
            return None
        finally:
            state.loading = False

        record = response.data
        if not isinstance(record, dict):
            return None

        self._put(self.schema.key_of(record) or key, record)
        self.last_fetched = self._clock()
        self._commit()
        return record

    async def create(self, payload: Record) -> Optional[Record]:
        self.client.validate_create(payload)

        self.is_loading = True
        self.error = None

        try:
            response = await self.client.create(payload)
        except ApiError as exc:
            self.error = self._record_error("Create", exc)
            return None
        finally:
            self.is_loading = False

        record = response.data if isinstance(response.data, dict) else dict(payload)
        key = self.schema.key_of(record)
        if key is None:
            self.logger.warning("Created record has no key; not cached", key_field=self.schema.key_field)
            return record

        self._put(key, record, prepend=True)
        self.last_fetched = None
        self._commit()

        self.logger.info("Record created", key=key)
        return record

    async def update(self, payload: Record) -> Optional[Record]:
        self.client.validate_update(payload)
        key = self.schema.key_of(payload)
        if key is None:
            raise ValidationError(
                f"{self.schema.key_field} is required for updates",
                details={"field": self.schema.key_field}
            )

        state = self._key_state(key)
        state.loading = True
        state.error = None

        try:
            response = await self.client.update(payload)
        except ApiError as exc:
            state.error = self._record_error("Update", exc, key)
            return None
        finally:
            state.loading = False

        if isinstance(response.data, dict):
            record = response.data
        else:
            record = {**self.records.get(key, {}), **payload}

        self._put(self.schema.key_of(record) or key, record)
        self.last_fetched = None
        self._commit()

        self.logger.info("Record updated", key=key)
        return record

    async def upsert(self, mutation: Union[Create, Update]) -> Optional[Record]:
        if isinstance(mutation, Create):
            return await self.create(mutation.payload)
        if isinstance(mutation, Update):
            return await self.update(mutation.payload)
        raise ValidationError(
            f"Unsupported mutation type: {type(mutation).__name__}",
            details={"expected": ["Create", "Update"]}
        )

    async def delete(self, key: str) -> bool:
        validate_key(key)
        state = self._key_state(key)
        state.loading = True
        state.error = None

        try:
            await self.client.delete(key)
        except ApiError as exc:
            state.error = self._record_error("Delete", exc, key)
            return False
        finally:
            state.loading = False

        self._drop(key)
        self.last_fetched = None
        self._commit()

        self.logger.info("Record deleted", key=key)
        return True

    async def upload(
        self,
        owner_key: str,
        file: UploadFile,
        *,
        fields: Optional[Mapping[str, Any]] = None,
        on_progress: Optional[Callable[[UploadProgress], None]] = None,
    ) -> Optional[Record]:
        """
        Upload a file for ``owner_key`` and track it with an upload ticket.

        The ticket is removed ``upload_cleanup_delay`` seconds after success;
        a failed ticket stays until errors are cleared.
        """
        ticket_key = f"{owner_key}-{int(self._clock() * 1000)}"
        ticket = UploadTicket(key=ticket_key, owner_key=owner_key)
        self.upload_tickets[ticket_key] = ticket

        def track(progress: UploadProgress) -> None:
            ticket.progress = progress
            if on_progress is not None:
                on_progress(progress)

        try:
            response = await self.client.upload(owner_key, file, fields, track)
        except ApiError as exc:
            ticket.error = self._record_error("Upload", exc, owner_key)
            return None
        except ValidationError:
            del self.upload_tickets[ticket_key]
            raise
        finally:
            ticket.loading = False

        record = self.schema.upload_record(response.data)
        if isinstance(record, dict):
            key = self.schema.key_of(record)
            if key is not None:
                self._put(key, record, prepend=key not in self.order)
                ticket.record_key = key
                self.last_fetched = None
                self._commit()

        asyncio.get_running_loop().call_later(
            self.upload_cleanup_delay, self.upload_tickets.pop, ticket_key, None
        )
        self.logger.info("Upload completed", owner=owner_key, ticket=ticket_key, size=file.size)
        return record if isinstance(record, dict) else None

    # Error state

    def clear_errors(self) -> None:
        self.error = None
        for state in self.key_states.values():
            state.error = None
        for ticket_key in [key for key, ticket in self.upload_tickets.items() if ticket.error]:
            del self.upload_tickets[ticket_key]

    def clear_key_error(self, key: str) -> None:
        state = self.key_states.get(key)
        if state is not None:
            state.error = None

    # Health

    async def probe(self) -> bool:
        """One-item first-page request; never touches the store's state."""
        try:
            await self.client.probe()
        except ApiError as exc:
            self.logger.warning("Health probe failed", error=format_api_error(exc), status_code=exc.status_code)
            return False
        return True

    # Selectors

    def get(self, key: str) -> Optional[Record]:
        return self.records.get(key)

    def get_all(self) -> List[Record]:
        return [self.records[key] for key in self.order if key in self.records]

    def get_by_index(self, name: str, value: str) -> List[Record]:
        keys = self.indexes.get(name, {}).get(value, [])
        return [self.records[key] for key in keys if key in self.records]

    def index_values(self, name: str) -> List[str]:
        return list(self.indexes.get(name, {}))

    def get_by_category(self, category: str) -> List[Record]:
        return self.get_by_index("category", category)

    def get_by_tag(self, tag: str) -> List[Record]:
        return self.get_by_index("tag", tag)

    def get_by_author(self, author: str) -> List[Record]:
        return self.get_by_index("author", author)

    def get_by_status(self, status: str) -> List[Record]:
        return self.get_by_index("status", status)

    def get_published(self) -> List[Record]:
        return self.get_by_status("Published")

    def get_drafts(self) -> List[Record]:
        return self.get_by_status("Draft")

    def get_with_media(self, key: str) -> Optional[Record]:
        record = self.records.get(key)
        if record is not None and "mediaItems" in record:
            return record
        return None

    def get_search_results(self) -> List[Record]:
        return [self.records[key] for key in self.search_results if key in self.records]

    def is_key_loading(self, key: str) -> bool:
        state = self.key_states.get(key)
        return state is not None and state.loading

    def get_key_error(self, key: str) -> Optional[str]:
        state = self.key_states.get(key)
        return state.error if state is not None else None

    def get_upload_ticket(self, ticket_key: str) -> Optional[UploadTicket]:
        return self.upload_tickets.get(ticket_key)

    # Snapshots

    def snapshot_state(self) -> Dict[str, Any]:
        return {
            "records": self.records,
            "order": self.order,
            "indexes": self.indexes,
            "last_fetched": self.last_fetched,
            "fetched_at": self.fetched_at,
            "pagination": asdict(self.pagination),
        }

    def save_snapshot(self) -> bool:
        """Persist the current state. Failures are logged, never raised."""
        if self.snapshot_storage is None:
            return False
        try:
            self.snapshot_storage.save(self.name, {
                "version": CURRENT_SNAPSHOT_VERSION,
                "state": self.snapshot_state(),
            })
        except (OSError, TypeError, ValueError) as exc:
            self.logger.warning("Snapshot save failed", error=str(exc), error_type=type(exc).__name__)
            return False
        return True

    def _restore_extra(self, state: Dict[str, Any]) -> None:
        """Hook for subclasses that persist more than the record cache."""

    def restore_snapshot(self) -> bool:
        """
        Load the persisted snapshot, if any. Restored stores judge their own
        staleness from the persisted ``last_fetched``.
        """
        if self.snapshot_storage is None:
            return False

        try:
            payload = self.snapshot_storage.load(self.name)
            if payload is None:
                return False
            state = migrate_snapshot(payload)
        except SnapshotError as exc:
            self.logger.warning("Ignoring unusable snapshot", error=exc.message, details=exc.details)
            return False

        self.records = dict(state["records"])
        self.order = [key for key in dict.fromkeys(state["order"]) if key in self.records]
        self.fetched_at = {key: stamp for key, stamp in state["fetched_at"].items() if key in self.records}
        self.last_fetched = state["last_fetched"]
        self.pagination = PageState(**{
            field.name: state["pagination"][field.name] for field in dataclass_fields(PageState)
        })
        self._list_outcome = StoreStatus.POPULATED if self.order else None
        self._rebuild_indexes()
        self._restore_extra(state)

        self.logger.info("Snapshot restored", count=len(self.order), last_fetched=self.last_fetched)
        return True
