"""
Test doubles and payload builders shared across test modules.
"""

import json
from typing import Any, Dict, List, Optional

import httpx

from content_access.app.domain.models import ApiResponse, PaginationMetadata


class FakeClock:
    """Manually advanced clock in epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingHandler:
    """
    ``httpx.MockTransport`` handler replaying queued outcomes.

    The last queued outcome repeats once the queue is down to it. An outcome
    is a response, an exception to raise, or a callable taking the request.
    """

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.requests: List[httpx.Request] = []

    def queue(self, *responses: Any) -> None:
        self.responses.extend(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(request)
        # A response object is bound to the request it answers
        return httpx.Response(outcome.status_code, headers=outcome.headers, content=outcome.content)


def envelope(data: Any, pagination: Optional[Dict[str, Any]] = None, status_code: int = 200) -> httpx.Response:
    body: Dict[str, Any] = {"data": data, "success": True, "timestamp": "2024-01-01T00:00:00+00:00"}
    if pagination is not None:
        body["pagination"] = pagination
    return httpx.Response(status_code, json=body)


def page_of(items: List[Dict[str, Any]], page: int = 1, total_pages: int = 1, page_size: int = 10) -> ApiResponse:
    return ApiResponse(
        data=items,
        pagination=PaginationMetadata(
            page=page,
            page_size=page_size,
            total_count=len(items) * total_pages,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_previous_page=page > 1,
        ),
    )


def json_body(request: httpx.Request) -> Any:
    return json.loads(request.content.decode("utf-8"))


def make_post(slug: str, status: str = "Published", category: str = "tech", tags: Optional[List[str]] = None) -> Dict[str, Any]:
    return {
        "slug": slug,
        "title": slug.replace("-", " ").title(),
        "status": status,
        "category": category,
        "tagsList": ["python"] if tags is None else tags,
        "authorSlug": "jane-doe",
    }
