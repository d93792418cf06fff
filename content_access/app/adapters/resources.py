"""
Per-kind resource clients over the shared transport executor.
"""

import asyncio
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import quote

import httpx

from shared.config import ApiClientConfig, get_environment_config, merge_with_environment_defaults
from shared.errors import ValidationError
from shared.logging import get_logger

from ..domain.models import ApiResponse, Create, ListParams, Record, Update, UploadFile
from ..domain.validation import (
    VALIDATORS,
    Validator,
    generate_slug,
    validate_activity_year,
    validate_bulk_request,
    validate_contact,
    validate_key,
    validate_media_upload,
)
from .transport import ProgressCallback, RequestOptions, TransportExecutor


ParamsLike = Union[ListParams, Mapping[str, Any], None]


def _query(params: ParamsLike) -> Dict[str, Any]:
    if params is None:
        return {}
    if isinstance(params, ListParams):
        return params.to_query()
    return ListParams(**params).to_query()


def _merge_options(options: Optional[RequestOptions], params: Dict[str, Any]) -> RequestOptions:
    """Caller-supplied option params win over the typed list params."""
    options = options or RequestOptions()
    return RequestOptions(
        headers=options.headers,
        params={**params, **(options.params or {})},
        timeout=options.timeout,
        retry_attempts=options.retry_attempts,
        signal=options.signal,
    )


class ResourceClient:
    """
    Endpoint mapping for one content collection.

    Updates are POST upserts against the collection; deletes and reads
    address ``{collection}/{key}``; media uploads go to
    ``{collection}/{key}/media``.
    """

    label = "Record"

    def __init__(
        self,
        executor: TransportExecutor,
        collection: str,
        key_field: str,
        create_validator: Optional[Validator] = None,
        update_validator: Optional[Validator] = None,
        upload_purpose: str = "content",
    ):
        self.executor = executor
        self.collection = collection
        self.key_field = key_field
        self.create_validator = create_validator
        self.update_validator = update_validator
        self.upload_purpose = upload_purpose
        self.logger = get_logger(f"content_access.resources.{collection.strip('/')}")

    def item_path(self, key: str) -> str:
        return f"{self.collection}/{quote(key, safe='')}"

    async def list(self, params: ParamsLike = None, options: Optional[RequestOptions] = None) -> ApiResponse:
        return await self.executor.get(self.collection, _merge_options(options, _query(params)))

    async def get(
        self,
        key: str,
        include_media: bool = False,
        options: Optional[RequestOptions] = None,
    ) -> ApiResponse:
        validate_key(key, f"{self.label} key")
        params = {"includeMedia": True} if include_media else {}
        return await self.executor.get(self.item_path(key), _merge_options(options, params))

    def validate_create(self, payload: Record) -> None:
        if self.create_validator is not None:
            self.create_validator(payload)

    def validate_update(self, payload: Record) -> None:
        if self.update_validator is not None:
            self.update_validator(payload)

    async def create(self, payload: Record, options: Optional[RequestOptions] = None) -> ApiResponse:
        self.validate_create(payload)
        return await self.executor.post(self.collection, payload, options)

    async def update(self, payload: Record, options: Optional[RequestOptions] = None) -> ApiResponse:
        self.validate_update(payload)
        return await self.executor.post(self.collection, payload, options)

    async def upsert(self, mutation: Union[Create, Update], options: Optional[RequestOptions] = None) -> ApiResponse:
        """Dispatch on the mutation variant, never on payload shape."""
        if isinstance(mutation, Create):
            return await self.create(mutation.payload, options)
        if isinstance(mutation, Update):
            return await self.update(mutation.payload, options)
        raise ValidationError(
            f"Unsupported mutation type: {type(mutation).__name__}",
            details={"expected": ["Create", "Update"]}
        )

    async def delete(self, key: str, options: Optional[RequestOptions] = None) -> ApiResponse:
        validate_key(key, f"{self.label} key")
        return await self.executor.delete(self.item_path(key), options)

    async def upload(
        self,
        key: str,
        file: UploadFile,
        fields: Optional[Mapping[str, Any]] = None,
        on_progress: Optional[ProgressCallback] = None,
        options: Optional[RequestOptions] = None,
    ) -> ApiResponse:
        validate_key(key, f"{self.label} key")
        if file is None:
            raise ValidationError("File is required for upload", details={"field": "file"})
        form = {"purpose": self.upload_purpose, "mediaType": file.media_type, **(fields or {})}
        return await self.executor.upload_file(
            f"{self.item_path(key)}/media", file, form, on_progress, options
        )

    async def search(self, term: str, params: ParamsLike = None, options: Optional[RequestOptions] = None) -> ApiResponse:
        if not term:
            raise ValidationError("Search term is required", details={"field": "searchTerm"})
        return await self.list({**_query(params), "searchTerm": term}, options)

    async def probe(self) -> ApiResponse:
        """Minimal first-page request used for connectivity checks."""
        return await self.list({"page": 1, "pageSize": 1}, RequestOptions(retry_attempts=1))


class AuthorsClient(ResourceClient):
    label = "Author"

    def __init__(self, executor: TransportExecutor):
        super().__init__(
            executor,
            "/authors",
            "authorSlug",
            VALIDATORS["authors"]["create"],
            VALIDATORS["authors"]["update"],
            upload_purpose="profile",
        )


class BlogPostsClient(ResourceClient):
    label = "Blog post"

    def __init__(self, executor: TransportExecutor):
        super().__init__(executor, "/posts", "slug", **_validators("blog_posts"))


class PortfolioClient(ResourceClient):
    label = "Portfolio piece"

    def __init__(self, executor: TransportExecutor):
        super().__init__(executor, "/portfolio", "slug", **_validators("portfolio_pieces"))


class PressReleasesClient(ResourceClient):
    label = "Press release"

    def __init__(self, executor: TransportExecutor):
        super().__init__(executor, "/press-releases", "slug", **_validators("press_releases"))


def _validators(kind: str) -> Dict[str, Validator]:
    return {
        "create_validator": VALIDATORS[kind]["create"],
        "update_validator": VALIDATORS[kind]["update"],
    }


FEATURED_KINDS = ("image", "video", "media")


class BooksClient(ResourceClient):
    """Books upsert against ``/books/{slug}`` rather than the collection."""

    label = "Book"

    def __init__(self, executor: TransportExecutor):
        super().__init__(executor, "/books", "slug", **_validators("books"))

    def _slug_for(self, payload: Record) -> str:
        slug = payload.get("slug") or generate_slug(payload.get("title") or "")
        validate_key(slug, "Book slug")
        return slug

    async def create(self, payload: Record, options: Optional[RequestOptions] = None) -> ApiResponse:
        self.validate_create(payload)
        slug = self._slug_for(payload)
        return await self.executor.post(self.item_path(slug), {**payload, "slug": slug}, options)

    def validate_update(self, payload: Record) -> None:
        super().validate_update(payload)
        validate_key(payload.get("slug"), "Book slug")

    async def update(self, payload: Record, options: Optional[RequestOptions] = None) -> ApiResponse:
        self.validate_update(payload)
        slug = payload["slug"]
        return await self.executor.post(self.item_path(slug), payload, options)

    async def set_featured(
        self,
        slug: str,
        kind: str,
        media_id: str,
        options: Optional[RequestOptions] = None,
    ) -> ApiResponse:
        """Point the book's featured image, video or media slot at ``media_id``."""
        validate_key(slug, "Book slug")
        validate_key(media_id, "Media ID")
        if kind not in FEATURED_KINDS:
            raise ValidationError(
                f"Featured kind must be one of: {', '.join(FEATURED_KINDS)}",
                details={"value": kind}
            )
        return await self.executor.post(f"{self.item_path(slug)}/featured-{kind}", {"mediaId": media_id}, options)

    async def add_media_reference(self, slug: str, media_id: str, options: Optional[RequestOptions] = None) -> ApiResponse:
        validate_key(slug, "Book slug")
        validate_key(media_id, "Media ID")
        return await self.executor.post(f"{self.item_path(slug)}/media", {"mediaId": media_id}, options)

    async def remove_media_reference(self, slug: str, media_id: str, options: Optional[RequestOptions] = None) -> ApiResponse:
        validate_key(slug, "Book slug")
        validate_key(media_id, "Media ID")
        return await self.executor.delete(
            f"{self.item_path(slug)}/media/{quote(media_id, safe='')}", options
        )


class MediaClient(ResourceClient):
    """Media items are created by uploads and updated with PATCH."""

    label = "Media"

    def __init__(self, executor: TransportExecutor):
        super().__init__(executor, "/media", "id", update_validator=VALIDATORS["media"]["update"])

    def validate_create(self, payload: Record) -> None:
        raise ValidationError("Media items are created through uploads", details={"collection": self.collection})

    async def update(self, payload: Record, options: Optional[RequestOptions] = None) -> ApiResponse:
        self.validate_update(payload)
        body = {name: value for name, value in payload.items() if name != "id"}
        return await self.executor.patch(self.item_path(payload["id"]), body, options)

    async def upload(
        self,
        key: str,
        file: UploadFile,
        fields: Optional[Mapping[str, Any]] = None,
        on_progress: Optional[ProgressCallback] = None,
        options: Optional[RequestOptions] = None,
    ) -> ApiResponse:
        """Upload a new media item owned by author ``key``."""
        fields = dict(fields or {})
        validate_media_upload(key, file, fields)
        form = {
            "authorId": key,
            "purpose": fields.pop("purpose"),
            "description": fields.pop("description", None),
            "altText": fields.pop("altText", None),
            "contentId": fields.pop("contentId", None),
            "relatedContentType": fields.pop("relatedContentType", None),
            **fields,
        }
        return await self.executor.upload_file("/media/upload", file, form, on_progress, options)

    async def bulk(
        self,
        media_ids: List[str],
        operation: str,
        target_content_id: Optional[str] = None,
        options: Optional[RequestOptions] = None,
    ) -> ApiResponse:
        validate_bulk_request(media_ids, operation)
        body: Dict[str, Any] = {"mediaIds": media_ids, "operation": operation}
        if target_content_id is not None:
            body["targetContentId"] = target_content_id
        return await self.executor.post("/media/bulk", body, options)


class RepositoryClient(ResourceClient):
    """
    Read-only repository listing plus the contribution activity grid.

    The repository endpoint has no server-side search, so a search term is
    applied to the fetched page on the client.
    """

    label = "Repository"

    def __init__(self, executor: TransportExecutor):
        super().__init__(executor, "/github/repos", "id")

    async def list(self, params: ParamsLike = None, options: Optional[RequestOptions] = None) -> ApiResponse:
        query = _query(params)
        term = query.pop("searchTerm", None)
        response = await super().list(query, options)
        if not term or not isinstance(response.data, list):
            return response
        return self._filter(response, term, query.get("pageSize") or 10)

    @staticmethod
    def _filter(response: ApiResponse, term: str, page_size: int) -> ApiResponse:
        needle = term.lower()
        matches = [
            repo for repo in response.data
            if needle in str(repo.get("name") or "").lower()
            or needle in str(repo.get("description") or "").lower()
            or any(needle in str(topic).lower() for topic in repo.get("topics") or [])
        ]
        pagination = None
        if response.pagination is not None:
            pagination = response.pagination.model_copy(update={
                "total_count": len(matches),
                "total_pages": math.ceil(len(matches) / page_size),
            })
        return response.model_copy(update={"data": matches, "pagination": pagination})

    async def get(self, key: str, include_media: bool = False, options: Optional[RequestOptions] = None) -> ApiResponse:
        raise ValidationError("Repositories are only available through list requests", details={"key": key})

    def validate_create(self, payload: Record) -> None:
        raise ValidationError("Repositories are read-only")

    def validate_update(self, payload: Record) -> None:
        raise ValidationError("Repositories are read-only")

    async def delete(self, key: str, options: Optional[RequestOptions] = None) -> ApiResponse:
        raise ValidationError("Repositories are read-only")

    async def upload(self, key: str, file: UploadFile, fields=None, on_progress=None, options=None) -> ApiResponse:
        raise ValidationError("Repositories are read-only")

    async def get_activity(
        self,
        year: Optional[int] = None,
        username: Optional[str] = None,
        options: Optional[RequestOptions] = None,
    ) -> ApiResponse:
        if year is not None:
            validate_activity_year(year, datetime.now(timezone.utc).year)
        params = {"year": year, "username": username}
        return await self.executor.get("/github/activity", _merge_options(options, params))

    async def get_current_year_activity(
        self,
        username: Optional[str] = None,
        options: Optional[RequestOptions] = None,
    ) -> ApiResponse:
        return await self.get_activity(datetime.now(timezone.utc).year, username, options)


class ContactClient:
    """Contact form submission. There is no list endpoint."""

    def __init__(self, executor: TransportExecutor):
        self.executor = executor
        self.logger = get_logger("content_access.resources.contact")

    async def submit(self, data: Mapping[str, Any], options: Optional[RequestOptions] = None) -> ApiResponse:
        validate_contact(data)
        body = {name: str(data[name]).strip() for name in ("name", "email", "message")}
        return await self.executor.post("/contact", body, options)


class ApiClient:
    """
    Aggregate of every resource client over one shared executor.

    Config updates go through the shared executor, so every sub-client sees
    them before its next request.
    """

    def __init__(
        self,
        config: ApiClientConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        executor: Optional[TransportExecutor] = None,
    ):
        self.executor = executor or TransportExecutor(config, transport=transport)
        self.logger = get_logger("content_access.api_client")

        self.authors = AuthorsClient(self.executor)
        self.blog_posts = BlogPostsClient(self.executor)
        self.books = BooksClient(self.executor)
        self.portfolio = PortfolioClient(self.executor)
        self.press_releases = PressReleasesClient(self.executor)
        self.media = MediaClient(self.executor)
        self.github = RepositoryClient(self.executor)
        self.contact = ContactClient(self.executor)

    @classmethod
    def create(cls, **overrides: Any) -> "ApiClient":
        """Build a client from explicit settings layered over environment defaults."""
        return cls(merge_with_environment_defaults(overrides))

    @classmethod
    def for_environment(cls, environment: str, api_key: str, **kwargs: Any) -> "ApiClient":
        settings = {**get_environment_config(environment), "api_key": api_key}
        return cls(ApiClientConfig(**settings), **kwargs)

    @property
    def resources(self) -> Dict[str, ResourceClient]:
        return {
            "authors": self.authors,
            "blog_posts": self.blog_posts,
            "books": self.books,
            "portfolio": self.portfolio,
            "press_releases": self.press_releases,
            "media": self.media,
            "github": self.github,
        }

    def get_config(self) -> ApiClientConfig:
        return self.executor.get_config()

    def update_config(self, **changes: Any) -> None:
        self.executor.update_config(**changes)

    def build_cdn_url(self, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
        return self.executor.build_cdn_url(path, params)

    async def test_connection(self) -> Dict[str, Any]:
        """Probe every list endpoint with a one-item page."""
        names = list(self.resources)
        results = await asyncio.gather(
            *(self.resources[name].probe() for name in names),
            return_exceptions=True
        )

        endpoints = {name: not isinstance(result, BaseException) for name, result in zip(names, results)}
        # No side-effect-free request exists for contact
        endpoints["contact"] = True

        success_count = sum(endpoints.values())
        status = "success" if success_count == len(endpoints) else "error"
        self.logger.info("Connection test completed", status=status, endpoints=endpoints)

        return {
            "status": status,
            "message": f"{success_count}/{len(endpoints)} endpoints accessible",
            "endpoints": endpoints,
        }

    async def aclose(self) -> None:
        await self.executor.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


_api_client: Optional[ApiClient] = None


def initialize_api_client(config: ApiClientConfig, **kwargs: Any) -> ApiClient:
    """Install the ambient client for hosts that cannot pass one explicitly."""
    global _api_client
    _api_client = ApiClient(config, **kwargs)
    return _api_client


def get_api_client() -> ApiClient:
    """Get the ambient client, building it from the environment on first use."""
    global _api_client
    if _api_client is None:
        from shared.config import create_api_config

        _api_client = ApiClient(create_api_config())
    return _api_client


def reset_api_client() -> None:
    global _api_client
    _api_client = None
