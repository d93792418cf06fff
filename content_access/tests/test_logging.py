"""
Unit tests for structured logging context.
"""

import pytest

from shared.errors import ConfigurationError
from shared.logging import (
    add_correlation_context,
    add_service_context,
    clear_context,
    configure_logging,
    get_logger,
    set_attempt,
    set_request_id,
    set_store_context,
    store_context,
)


@pytest.fixture(autouse=True)
def reset_context():
    clear_context()
    yield
    clear_context()


class TestProcessors:

    def test_component_from_logger_name(self):
        event = add_service_context(None, "info", {"logger": "content_access.store.books"})

        assert event["component"] == "store.books"

    def test_top_level_logger_has_no_component(self):
        event = add_service_context(None, "info", {"logger": "content_access"})

        assert "component" not in event

    def test_correlation_context(self):
        request_id = set_request_id()
        set_store_context("media")

        event = add_correlation_context(None, "info", {})

        assert event == {"request_id": request_id, "store": "media"}

    def test_explicit_request_id(self):
        assert set_request_id("req-123") == "req-123"
        assert add_correlation_context(None, "info", {})["request_id"] == "req-123"

    def test_cleared_context_adds_nothing(self):
        set_store_context("books")
        clear_context()

        assert add_correlation_context(None, "info", {}) == {}


def test_get_logger_binds_structured_fields():
    logger = get_logger("content_access.tests")

    logger.info("Structured event", store="books", count=3)


class TestContext:

    def test_attempt_is_reported(self):
        set_attempt(2)

        assert add_correlation_context(None, "debug", {}) == {"attempt": 2}

    def test_explicit_attempt_field_wins(self):
        set_attempt(2)

        assert add_correlation_context(None, "debug", {"attempt": 3})["attempt"] == 3

    def test_store_context_is_scoped(self):
        set_store_context("books")

        with store_context("media"):
            assert add_correlation_context(None, "info", {})["store"] == "media"

        assert add_correlation_context(None, "info", {})["store"] == "books"


def test_unknown_log_level_rejected():
    with pytest.raises(ConfigurationError):
        configure_logging(log_level="verbose")
