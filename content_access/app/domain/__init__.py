"""
Domain models and validation for the content access layer.

Holds wire envelopes, list parameters, upload types, tagged mutation
variants and the local payload validators that run before any network call.
"""

from .models import (
    ApiResponse,
    Create,
    ListParams,
    PaginationMetadata,
    Update,
    UploadFile,
    UploadProgress,
)

__all__ = [
    "ApiResponse",
    "Create",
    "ListParams",
    "PaginationMetadata",
    "Update",
    "UploadFile",
    "UploadProgress",
]
