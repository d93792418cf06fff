"""
Wire models shared by the transport executor, resource clients and stores.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


Record = Dict[str, Any]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PaginationMetadata(BaseModel):
    """Pagination block attached to list responses."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    page: int = 1
    page_size: int = 0
    total_count: int = 0
    total_pages: int = 0
    has_next_page: bool = False
    has_previous_page: bool = False


class ApiResponse(BaseModel):
    """Uniform success envelope returned by the transport executor."""

    data: Any = None
    success: bool = True
    message: Optional[str] = None
    timestamp: str = Field(default_factory=utc_now_iso)
    pagination: Optional[PaginationMetadata] = None


class ListParams(BaseModel):
    """
    Query parameters for list endpoints.

    Common filters are declared; kind-specific filters (``author_id``,
    ``media_type``, ``language`` ...) are accepted as extra fields. Every
    parameter is sent with its camelCase wire name.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    page: Optional[int] = None
    page_size: Optional[int] = None
    category: Optional[str] = None
    status: Optional[str] = None
    author_slug: Optional[str] = None
    tags: Optional[List[str]] = None
    search_term: Optional[str] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None
    include_media: Optional[bool] = None

    @property
    def effective_page(self) -> int:
        return self.page or 1

    def with_filters(self, **filters: Any) -> "ListParams":
        """Copy with additional or replaced filters, given by field or wire name."""
        values = self.model_dump(by_alias=True, exclude_none=True)
        for name, value in filters.items():
            declared = type(self).model_fields.get(name)
            values[declared.alias if declared is not None and declared.alias else name] = value
        return ListParams(**values)

    def to_query(self) -> Dict[str, Any]:
        extra = self.model_extra or {}
        query = self.model_dump(by_alias=True, exclude_none=True, exclude=set(extra))
        for name, value in extra.items():
            if value is None:
                continue
            query[to_camel(name) if "_" in name else name] = value
        return query


@dataclass(frozen=True)
class UploadProgress:
    """One progress tick of a multipart upload."""

    loaded: int
    total: int
    percentage: int

    @classmethod
    def of(cls, loaded: int, total: int) -> "UploadProgress":
        percentage = round(loaded * 100 / total) if total else 0
        return cls(loaded=loaded, total=total, percentage=percentage)


@dataclass
class UploadFile:
    """In-memory file submitted through a multipart upload."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def media_type(self) -> str:
        """Coarse media type derived from the MIME prefix."""
        for prefix in ("image", "video", "audio"):
            if self.content_type.startswith(f"{prefix}/"):
                return prefix
        return "document"


@dataclass(frozen=True)
class Create:
    """Mutation variant: create a new record from ``payload``."""

    payload: Record = field(default_factory=dict)


@dataclass(frozen=True)
class Update:
    """Mutation variant: update the record identified by the payload's key."""

    payload: Record = field(default_factory=dict)
