"""
Transport executor shared by every resource client.
"""

import asyncio
import contextlib
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

import httpx

from shared.config import ApiClientConfig
from shared.errors import (
    ApiError,
    ConfigurationError,
    NetworkError,
    RequestCancelledError,
    classify_http_error,
)
from shared.logging import get_logger, set_request_id
from shared.retry import RetryConfig, retry_async

from ..cdn import build_cdn_url
from ..domain.models import ApiResponse, PaginationMetadata, UploadFile, UploadProgress


ProgressCallback = Callable[[UploadProgress], None]

UPLOAD_CHUNK_SIZE = 64 * 1024


@dataclass
class RequestOptions:
    """Per-call overrides for a single logical request."""

    headers: Optional[Dict[str, str]] = None
    params: Optional[Dict[str, Any]] = None
    timeout: Optional[float] = None
    retry_attempts: Optional[int] = None
    signal: Optional[asyncio.Event] = None


def _wire_params(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop unset params and render booleans the way the API expects."""
    query: Dict[str, Any] = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            query[key] = "true" if value else "false"
        else:
            query[key] = value
    return query


def flatten_form_fields(fields: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Flatten upload metadata into multipart form fields."""
    form: Dict[str, str] = {}
    for key, value in (fields or {}).items():
        if value is None:
            continue
        if isinstance(value, (dict, list)):
            form[key] = json.dumps(value)
        elif isinstance(value, bool):
            form[key] = "true" if value else "false"
        else:
            form[key] = str(value)
    return form


class TransportExecutor:
    """Issues HTTP operations with timeouts, error classification and retries."""

    def __init__(
        self,
        config: ApiClientConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._config = config
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None
        self._retired: List[httpx.AsyncClient] = []
        self.logger = get_logger("content_access.transport")

    @property
    def config(self) -> ApiClientConfig:
        return self._config

    def get_config(self) -> ApiClientConfig:
        """Get a copy of the current configuration."""
        return self._config.model_copy()

    def update_config(self, **changes: Any) -> None:
        """Apply configuration changes; the next request uses a fresh client."""
        unknown = set(changes) - set(ApiClientConfig.model_fields)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration fields: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)}
            )
        self._config = self._config.model_copy(update=changes)
        if self._client is not None:
            self._retired.append(self._client)
            self._client = None
        self.logger.info("Transport configuration updated", fields=sorted(changes))

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                timeout=self._config.timeout,
                headers={
                    "Accept": "application/json",
                    "x-api-key": self._config.api_key,
                },
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the active client and any clients replaced by config updates."""
        clients = self._retired + ([self._client] if self._client is not None else [])
        self._retired = []
        self._client = None
        for client in clients:
            await client.aclose()

    async def __aenter__(self) -> "TransportExecutor":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def build_cdn_url(self, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Build a CDN URL against the configured CDN base."""
        return build_cdn_url(self._config.cdn_base_url, path, params)

    def _log(self, message: str, **fields: Any) -> None:
        if self._config.logging_active:
            self.logger.info(message, **fields)

    async def execute(
        self,
        method: str,
        path: str,
        body: Any = None,
        options: Optional[RequestOptions] = None,
    ) -> ApiResponse:
        """
        Execute one logical request, retrying transient failures.

        Client errors (4xx) and cancellations are raised immediately; server
        and network failures are retried with a 1s, 2s, 4s ... backoff until
        the attempt budget is spent, then the last classified error is raised.
        """
        options = options or RequestOptions()
        attempts = options.retry_attempts
        if attempts is None:
            attempts = self._config.retry_attempts
        retry_config = RetryConfig(max_attempts=attempts, base_delay=1.0)
        request_id = set_request_id()

        async def _attempt(attempt: int) -> ApiResponse:
            return await self._send_once(method, path, body, options, attempt, request_id)

        return await retry_async(
            _attempt,
            retry_config,
            should_retry=lambda exc: isinstance(exc, ApiError) and exc.retryable,
            sleep=lambda delay: self._backoff(delay, options.signal),
            name=f"{method.upper()} {path}",
        )

    async def get(self, path: str, options: Optional[RequestOptions] = None) -> ApiResponse:
        return await self.execute("GET", path, options=options)

    async def post(self, path: str, body: Any = None, options: Optional[RequestOptions] = None) -> ApiResponse:
        return await self.execute("POST", path, body, options)

    async def put(self, path: str, body: Any = None, options: Optional[RequestOptions] = None) -> ApiResponse:
        return await self.execute("PUT", path, body, options)

    async def patch(self, path: str, body: Any = None, options: Optional[RequestOptions] = None) -> ApiResponse:
        return await self.execute("PATCH", path, body, options)

    async def delete(self, path: str, options: Optional[RequestOptions] = None) -> ApiResponse:
        return await self.execute("DELETE", path, options=options)

    async def _backoff(self, delay: float, signal: Optional[asyncio.Event]) -> None:
        self._log("Retrying request after backoff", delay=delay)
        await self._with_signal(self._sleep(delay), signal)

    async def _send_once(
        self,
        method: str,
        path: str,
        body: Any,
        options: RequestOptions,
        attempt: int,
        request_id: str,
    ) -> ApiResponse:
        client = self._get_client()
        request = client.build_request(
            method.upper(),
            path,
            params=_wire_params(options.params),
            headers=options.headers,
            json=body,
            timeout=options.timeout or self._config.timeout,
        )
        self._log(
            "API request",
            method=request.method,
            url=str(request.url),
            attempt=attempt,
            request_id=request_id,
        )

        try:
            response = await self._with_signal(client.send(request), options.signal)
        except httpx.RequestError as exc:
            self._log("API request failed without response", error=str(exc), attempt=attempt)
            raise NetworkError(details=str(exc)) from exc

        self._log("API response", status_code=response.status_code, url=str(request.url))
        if response.status_code >= 400:
            raise self._classify_response(response)

        return self._wrap_response(response)

    async def _with_signal(self, awaitable: Awaitable[Any], signal: Optional[asyncio.Event]) -> Any:
        """Await ``awaitable`` unless the caller's cancellation signal fires first."""
        if signal is None:
            return await awaitable
        if signal.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise RequestCancelledError()

        work = asyncio.ensure_future(awaitable)
        cancelled = asyncio.ensure_future(signal.wait())
        done, _ = await asyncio.wait({work, cancelled}, return_when=asyncio.FIRST_COMPLETED)

        if work in done:
            cancelled.cancel()
            return work.result()

        work.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await work
        raise RequestCancelledError()

    def _classify_response(self, response: httpx.Response) -> ApiError:
        payload: Any = None
        try:
            payload = response.json()
        except ValueError:
            payload = None

        message = payload.get("message") if isinstance(payload, dict) else None
        details = payload.get("details") if isinstance(payload, dict) else None
        error = classify_http_error(
            response.status_code,
            message=message,
            details=str(details) if details is not None else response.reason_phrase,
        )

        if response.status_code == 401:
            self._log("Authentication error - check API key")
        elif response.status_code == 403:
            self._log("Authorization error - insufficient permissions")
        elif response.status_code >= 500:
            self._log("Server error - please try again later", status_code=response.status_code)

        return error

    @staticmethod
    def _wrap_response(response: httpx.Response) -> ApiResponse:
        if not response.content:
            return ApiResponse(data=None, success=True)

        try:
            payload = response.json()
        except ValueError:
            return ApiResponse(data=response.text, success=True)

        if isinstance(payload, dict) and "data" in payload:
            pagination = payload.get("pagination")
            return ApiResponse(
                data=payload.get("data"),
                success=payload.get("success", True),
                message=payload.get("message"),
                timestamp=payload.get("timestamp") or ApiResponse().timestamp,
                pagination=PaginationMetadata.model_validate(pagination) if pagination else None,
            )

        return ApiResponse(data=payload, success=True)

    async def upload_file(
        self,
        path: str,
        file: UploadFile,
        fields: Optional[Mapping[str, Any]] = None,
        on_progress: Optional[ProgressCallback] = None,
        options: Optional[RequestOptions] = None,
    ) -> ApiResponse:
        """
        Submit a multipart upload, reporting progress as the body streams.

        Uploads are never retried.
        """
        options = options or RequestOptions()
        client = self._get_client()

        encoded = client.build_request(
            "POST",
            path,
            data=flatten_form_fields(fields),
            files={"file": (file.filename, file.content, file.content_type)},
        )
        body = encoded.read()
        total = len(body)

        async def _stream():
            loaded = 0
            for start in range(0, total, UPLOAD_CHUNK_SIZE):
                chunk = body[start:start + UPLOAD_CHUNK_SIZE]
                yield chunk
                loaded += len(chunk)
                if on_progress is not None:
                    on_progress(UploadProgress.of(loaded, total))

        request = client.build_request(
            "POST",
            path,
            content=_stream(),
            headers={
                **(options.headers or {}),
                "Content-Type": encoded.headers["Content-Type"],
                "Content-Length": str(total),
            },
            timeout=options.timeout or self._config.timeout,
        )
        self._log("API upload", url=str(request.url), size=total, filename=file.filename)

        try:
            response = await self._with_signal(client.send(request), options.signal)
        except httpx.RequestError as exc:
            raise NetworkError(details=str(exc)) from exc

        if response.status_code >= 400:
            raise self._classify_response(response)
        return self._wrap_response(response)
