"""
Schema descriptors for the entity cache engine.

A schema tells the generic store how to key a record, which secondary
indices to derive from it, how long its list cache stays fresh, and which
list filter parameter narrows a fetch to one index value.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..domain.models import Record


CONTENT_TTL = 5 * 60.0
REPOSITORY_TTL = 10 * 60.0


def _identity(record: Any) -> Any:
    return record


@dataclass(frozen=True)
class IndexSpec:
    """One secondary index: ``extract`` yields the values a record is filed under."""

    name: str
    extract: Callable[[Record], Iterable[str]]
    param: Optional[str] = None
    multi: bool = False


@dataclass(frozen=True)
class EntitySchema:
    name: str
    key_field: str
    indexes: Tuple[IndexSpec, ...] = ()
    ttl: float = CONTENT_TTL
    entity_of: Callable[[Record], Record] = _identity
    upload_record: Callable[[Any], Any] = _identity

    def key_of(self, record: Record) -> Optional[str]:
        """Natural key of ``record``; numeric ids are stringified."""
        entity = self.entity_of(record)
        if not isinstance(entity, dict):
            return None
        value = entity.get(self.key_field)
        if value is None or value == "":
            return None
        return str(value)

    def index_values(self, record: Record) -> Dict[str, List[str]]:
        entity = self.entity_of(record)
        return {index.name: list(dict.fromkeys(index.extract(entity))) for index in self.indexes}

    def index(self, name: str) -> IndexSpec:
        for index in self.indexes:
            if index.name == name:
                return index
        raise KeyError(f"{self.name} has no index named {name!r}")


def value(field_name: str) -> Callable[[Record], List[str]]:
    """File a record under the scalar value of ``field_name``."""
    def extract(entity: Record) -> List[str]:
        found = entity.get(field_name)
        if found is None or found == "":
            return []
        return [str(found)]
    return extract


def each(field_name: str) -> Callable[[Record], List[str]]:
    """File a record under every entry of the list ``field_name``."""
    def extract(entity: Record) -> List[str]:
        return [str(item) for item in entity.get(field_name) or [] if item not in (None, "")]
    return extract


def flag(field_name: str, when_true: str, when_false: str) -> Callable[[Record], List[str]]:
    def extract(entity: Record) -> List[str]:
        return [when_true if entity.get(field_name) else when_false]
    return extract


def _unwrap_book(record: Record) -> Record:
    nested = record.get("book") if isinstance(record, dict) else None
    return nested if isinstance(nested, dict) else record


def _unwrap_media_upload(data: Any) -> Any:
    if isinstance(data, dict) and isinstance(data.get("mediaItem"), dict):
        return data["mediaItem"]
    return data


CONTENT_INDEXES = (
    IndexSpec("status", value("status"), "status"),
    IndexSpec("category", value("category"), "category"),
    IndexSpec("tag", each("tagsList"), "tags", multi=True),
    IndexSpec("author", value("authorSlug"), "authorSlug"),
)


AUTHORS = EntitySchema(name="authors", key_field="authorSlug")

BLOG_POSTS = EntitySchema(name="blog_posts", key_field="slug", indexes=CONTENT_INDEXES)

BOOKS = EntitySchema(name="books", key_field="slug", indexes=CONTENT_INDEXES, entity_of=_unwrap_book)

PORTFOLIO_PIECES = EntitySchema(name="portfolio_pieces", key_field="slug", indexes=CONTENT_INDEXES)

PRESS_RELEASES = EntitySchema(name="press_releases", key_field="slug", indexes=CONTENT_INDEXES)

MEDIA = EntitySchema(
    name="media",
    key_field="id",
    indexes=(
        IndexSpec("media_type", value("mediaType"), "mediaType"),
        IndexSpec("purpose", value("purpose"), "purpose"),
        IndexSpec("author", value("authorId"), "authorId"),
        IndexSpec("content", value("contentId"), "contentId"),
    ),
    upload_record=_unwrap_media_upload,
)

REPOSITORIES = EntitySchema(
    name="repositories",
    key_field="id",
    indexes=(
        IndexSpec("language", value("language"), "language"),
        IndexSpec("topic", each("topics"), "topic"),
        IndexSpec("visibility", flag("isPrivate", "private", "public"), "type"),
        IndexSpec("fork", flag("isFork", "fork", "original")),
        IndexSpec("archived", flag("isArchived", "archived", "active")),
    ),
    ttl=REPOSITORY_TTL,
)

ALL_SCHEMAS: Dict[str, EntitySchema] = {
    schema.name: schema
    for schema in (AUTHORS, BLOG_POSTS, BOOKS, PORTFOLIO_PIECES, PRESS_RELEASES, MEDIA, REPOSITORIES)
}
