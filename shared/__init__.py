"""
Shared utilities for the content access layer.

This package aggregates common building blocks consumed by the client and
cache packages:

- config: Client configuration via pydantic-settings
- logging: Structured logging with correlation context
- errors: Canonical error types, classification helpers and responses
- retry: Exponential backoff retry primitives

Any cross-package logic should live here to avoid import cycles. Do not
import from content_access into shared/.
"""
