"""
HTTP adapters: the transport executor and the per-kind resource clients.
"""

from .transport import RequestOptions, TransportExecutor
from .resources import (
    ApiClient,
    AuthorsClient,
    BlogPostsClient,
    BooksClient,
    ContactClient,
    MediaClient,
    PortfolioClient,
    PressReleasesClient,
    RepositoryClient,
    ResourceClient,
    get_api_client,
    initialize_api_client,
    reset_api_client,
)

__all__ = [
    "ApiClient",
    "AuthorsClient",
    "BlogPostsClient",
    "BooksClient",
    "ContactClient",
    "MediaClient",
    "PortfolioClient",
    "PressReleasesClient",
    "RepositoryClient",
    "RequestOptions",
    "ResourceClient",
    "TransportExecutor",
    "get_api_client",
    "initialize_api_client",
    "reset_api_client",
]
