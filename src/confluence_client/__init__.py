"""Confluence client library for the publisher.

This package wraps the Confluence REST API behind a small, typed interface:
credential loading, REST root discovery, retry on throttling and the page,
label and attachment calls used while publishing.
"""

from .errors import (
    SyncError,
    ConfluenceError,
    ConfigurationError,
    InvalidCredentialsError,
    PageNotFoundError,
    APIUnreachableError,
    APIAccessError,
    DiscoveryError,
    ConversionError,
)

__all__ = [
    "SyncError",
    "ConfluenceError",
    "ConfigurationError",
    "InvalidCredentialsError",
    "PageNotFoundError",
    "APIUnreachableError",
    "APIAccessError",
    "DiscoveryError",
    "ConversionError",
]
