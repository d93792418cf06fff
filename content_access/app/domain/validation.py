"""
Local payload validation.

Every validator raises ``ValidationError`` before any network call is made.
"""

import re
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlparse

from shared.errors import ValidationError


SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

CONTENT_STATUSES = ("Draft", "Published", "Archived")
MEDIA_PURPOSES = ("profile", "cover", "gallery", "featured", "content", "thumbnail")
BULK_OPERATIONS = ("delete", "archive", "restore")

MAX_UPLOAD_BYTES = 100 * 1024 * 1024
MAX_BULK_ITEMS = 100

Validator = Callable[[Mapping[str, Any]], None]


def is_valid_slug(slug: Any) -> bool:
    return (
        isinstance(slug, str)
        and bool(SLUG_PATTERN.match(slug))
        and not slug.startswith("-")
        and not slug.endswith("-")
    )


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and bool(EMAIL_PATTERN.match(email.strip()))


def is_valid_url(url: Any) -> bool:
    if not isinstance(url, str):
        return False
    parsed = urlparse(url)
    return bool(parsed.scheme and parsed.netloc)


def is_valid_date(value: Any) -> bool:
    """Accept ISO-8601 dates and datetimes, including a trailing ``Z``."""
    if not isinstance(value, str) or not value:
        return False
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


def generate_slug(title: str) -> str:
    """Derive a URL slug from a title."""
    slug = re.sub(r"[^\w\s-]", "", title.lower().strip())
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")


def _require(data: Mapping[str, Any], fields: Iterable[str]) -> None:
    for name in fields:
        value = data.get(name)
        if value is None or value == "" or value == []:
            raise ValidationError(f"{name} is required", details={"field": name})


def _require_strings(data: Mapping[str, Any], fields: Iterable[str]) -> None:
    for name in fields:
        value = data.get(name)
        if not isinstance(value, str) or not value:
            raise ValidationError(
                f"{name} is required and must be a non-empty string",
                details={"field": name}
            )


def _check_slug(data: Mapping[str, Any], field: str = "slug") -> None:
    if data.get(field) and not is_valid_slug(data[field]):
        raise ValidationError(
            "Slug must contain only lowercase letters, numbers, and hyphens",
            details={"field": field, "value": data[field]}
        )


def _check_status(data: Mapping[str, Any]) -> None:
    if data.get("status") and data["status"] not in CONTENT_STATUSES:
        raise ValidationError(
            "Status must be Draft, Published, or Archived",
            details={"field": "status", "value": data["status"]}
        )


def _check_publish_date(data: Mapping[str, Any]) -> None:
    if data.get("publishDate") and not is_valid_date(data["publishDate"]):
        raise ValidationError("Invalid publish date format", details={"field": "publishDate"})


def _check_tags(data: Mapping[str, Any]) -> None:
    tags = data.get("tagsList")
    if tags is None:
        return
    if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
        raise ValidationError("tagsList must be an array of strings", details={"field": "tagsList"})


def _check_content_fields(data: Mapping[str, Any]) -> None:
    _check_slug(data)
    _check_status(data)
    _check_publish_date(data)
    _check_tags(data)


# Authors

AUTHOR_REQUIRED = ("authorSlug", "firstName", "lastName", "email", "username", "displayName")


def _check_author_contacts(data: Mapping[str, Any]) -> None:
    if data.get("email") and not is_valid_email(data["email"]):
        raise ValidationError("Invalid email format", details={"field": "email"})
    if data.get("website") and not is_valid_url(data["website"]):
        raise ValidationError("Invalid website URL format", details={"field": "website"})
    if data.get("linkedInHandle") and not is_valid_url(data["linkedInHandle"]):
        raise ValidationError("Invalid LinkedIn URL format", details={"field": "linkedInHandle"})


def validate_create_author(data: Mapping[str, Any]) -> None:
    _require_strings(data, AUTHOR_REQUIRED)
    _check_slug(data, "authorSlug")
    _check_author_contacts(data)


def validate_update_author(data: Mapping[str, Any]) -> None:
    if not isinstance(data.get("authorSlug"), str) or not data.get("authorSlug"):
        raise ValidationError("authorSlug is required for updates", details={"field": "authorSlug"})
    _check_slug(data, "authorSlug")
    _check_author_contacts(data)


# Blog posts, portfolio pieces and press releases share the base content shape

CONTENT_REQUIRED = ("title", "authorSlug", "description", "content", "slug", "category", "publishDate")


def validate_create_content(data: Mapping[str, Any]) -> None:
    _require(data, CONTENT_REQUIRED)
    if data.get("status") not in CONTENT_STATUSES:
        raise ValidationError(
            "Status must be Draft, Published, or Archived",
            details={"field": "status", "value": data.get("status")}
        )
    _check_content_fields(data)


def validate_update_content(data: Mapping[str, Any]) -> None:
    if not isinstance(data.get("slug"), str) or not data.get("slug"):
        raise ValidationError("slug is required for updates", details={"field": "slug"})
    _check_content_fields(data)


def validate_create_press_release(data: Mapping[str, Any]) -> None:
    """Collect every problem before raising, as press release forms expect."""
    problems: List[str] = []

    for name in ("title", "authorSlug", "description", "content", "slug", "category"):
        if not isinstance(data.get(name), str) or not data.get(name):
            problems.append(f"{name} is required and must be a string")
    if data.get("status") not in CONTENT_STATUSES:
        problems.append("status is required and must be Draft, Published, or Archived")
    if not is_valid_date(data.get("publishDate")):
        problems.append("publishDate is required and must be an ISO string")
    if not isinstance(data.get("tagsList"), list):
        problems.append("tagsList must be an array")
    if data.get("slug") and isinstance(data.get("slug"), str) and not is_valid_slug(data["slug"]):
        problems.append("slug must contain only lowercase letters, numbers, and hyphens")

    if problems:
        raise ValidationError(
            f"Invalid press release data: {', '.join(problems)}",
            details={"errors": problems}
        )


# Books

BOOK_REQUIRED = ("title", "authorSlug", "content", "category", "tagsList")


def validate_create_book(data: Mapping[str, Any]) -> None:
    _require(data, BOOK_REQUIRED)
    _check_content_fields(data)


def validate_update_book(data: Mapping[str, Any]) -> None:
    _check_content_fields(data)


# Media

def validate_media_upload(owner_id: Any, file: Any, fields: Optional[Mapping[str, Any]] = None) -> None:
    if file is None or not getattr(file, "filename", None):
        raise ValidationError("File is required for upload", details={"field": "file"})
    if not isinstance(owner_id, str) or not owner_id:
        raise ValidationError("Author ID is required and must be a string", details={"field": "authorId"})

    purpose = (fields or {}).get("purpose")
    if not isinstance(purpose, str) or not purpose:
        raise ValidationError("Purpose is required and must be a string", details={"field": "purpose"})
    if purpose not in MEDIA_PURPOSES:
        raise ValidationError(
            f"Purpose must be one of: {', '.join(MEDIA_PURPOSES)}",
            details={"field": "purpose", "value": purpose}
        )
    if file.size > MAX_UPLOAD_BYTES:
        raise ValidationError("File size must be less than 100MB", details={"size": file.size})


def validate_media_update(data: Mapping[str, Any]) -> None:
    if not isinstance(data.get("id"), str) or not data.get("id"):
        raise ValidationError("Media ID is required and must be a string", details={"field": "id"})
    if data.get("purpose") and data["purpose"] not in MEDIA_PURPOSES:
        raise ValidationError(
            f"Purpose must be one of: {', '.join(MEDIA_PURPOSES)}",
            details={"field": "purpose", "value": data["purpose"]}
        )


def validate_bulk_request(media_ids: Any, operation: Any) -> None:
    if not isinstance(media_ids, list) or not media_ids:
        raise ValidationError("mediaIds is required and must be a non-empty array", details={"field": "mediaIds"})
    if any(not isinstance(media_id, str) or not media_id for media_id in media_ids):
        raise ValidationError("All media IDs must be non-empty strings", details={"field": "mediaIds"})
    if operation not in BULK_OPERATIONS:
        raise ValidationError(
            f"Operation must be one of: {', '.join(BULK_OPERATIONS)}",
            details={"field": "operation", "value": operation}
        )
    if len(media_ids) > MAX_BULK_ITEMS:
        raise ValidationError(
            "Bulk operations are limited to 100 items at a time",
            details={"count": len(media_ids)}
        )


# Repositories

def validate_activity_year(year: Any, current_year: int) -> None:
    if not isinstance(year, int) or isinstance(year, bool) or year < 2008 or year > current_year:
        raise ValidationError(
            "Year must be a valid number between 2008 and current year",
            details={"field": "year", "value": year}
        )


# Contact

def validate_contact(data: Mapping[str, Any]) -> None:
    for name in ("name", "email", "message"):
        if not data.get(name):
            raise ValidationError(f"{name.capitalize()} is required", details={"field": name})

    if len(str(data["name"]).strip()) < 2:
        raise ValidationError("Name must be at least 2 characters", details={"field": "name"})
    if not is_valid_email(data["email"]):
        raise ValidationError("Please provide a valid email address", details={"field": "email"})
    if len(str(data["message"]).strip()) < 10:
        raise ValidationError("Message must be at least 10 characters", details={"field": "message"})


def validate_key(key: Any, label: str = "Key") -> None:
    if not isinstance(key, str) or not key:
        raise ValidationError(f"{label} is required and must be a string", details={"value": key})


VALIDATORS: Dict[str, Dict[str, Validator]] = {
    "authors": {"create": validate_create_author, "update": validate_update_author},
    "blog_posts": {"create": validate_create_content, "update": validate_update_content},
    "portfolio_pieces": {"create": validate_create_content, "update": validate_update_content},
    "press_releases": {"create": validate_create_press_release, "update": validate_update_content},
    "books": {"create": validate_create_book, "update": validate_update_book},
    "media": {"update": validate_media_update},
}
