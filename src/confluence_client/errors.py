"""Typed exception hierarchy for Confluence-related errors.

This module defines all custom exceptions used by the Confluence client library.
All exceptions inherit from ConfluenceError base class for easy catching and
include descriptive messages with context to help with debugging.
"""

from typing import List, Optional


class SyncError(Exception):
    """Base exception for all confluence-publish errors.

    Use this to catch any application-level error from the publisher.
    """
    pass


class ConfluenceError(SyncError):
    """Base exception for all Confluence-related errors."""
    pass


class ConfigurationError(ConfluenceError):
    """Raised when required connection settings are missing.

    Detected before any network call is made.
    """

    def __init__(self, missing: List[str]):
        super().__init__(
            f"Missing Confluence configuration: {', '.join(missing)}"
        )
        self.missing = missing


class InvalidCredentialsError(ConfluenceError):
    """Raised when API credentials are invalid or authentication fails."""

    def __init__(self, user: str, endpoint: str):
        super().__init__(
            f"API key is invalid (user: {user}, endpoint: {endpoint})"
        )
        self.user = user
        self.endpoint = endpoint


class PageNotFoundError(ConfluenceError):
    """Raised when a requested page does not exist."""

    def __init__(self, page_id: str):
        super().__init__(f"Page {page_id} not found")
        self.page_id = page_id


class APIUnreachableError(ConfluenceError):
    """Raised when the Confluence API is not available or unreachable."""

    def __init__(self, endpoint: str):
        super().__init__(f"API is not available at {endpoint}")
        self.endpoint = endpoint


class APIAccessError(ConfluenceError):
    """Raised when a request fails with a non-2xx response or after retries."""

    def __init__(self, message: str = "Confluence API failure (after 3 retries)"):
        super().__init__(message)


class DiscoveryError(ConfluenceError):
    """Raised when no REST API root answered among the tried candidates."""

    def __init__(self, attempts: List[str]):
        super().__init__(
            "Could not detect Confluence REST API root. Tried: "
            + " | ".join(attempts)
        )
        self.attempts = attempts


class ConversionError(ConfluenceError):
    """Raised when Markdown cannot be converted to storage format."""

    def __init__(self, message: str, path: Optional[str] = None):
        if path:
            message = f"{path}: {message}"
        super().__init__(message)
        self.path = path
