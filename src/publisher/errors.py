"""Typed exception hierarchy for publishing errors.

All exceptions inherit from PublishError, which derives from SyncError.
"""

from typing import Optional

from src.confluence_client.errors import SyncError


class PublishError(SyncError):
    """Base exception for all publisher errors."""
    pass


class IdentityMapError(PublishError):
    """Raised when the identity map cannot be persisted."""

    def __init__(self, file_path: str, operation: str, reason: Optional[str] = None):
        message = f"Identity map operation '{operation}' failed for {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.operation = operation
        self.reason = reason


class MissingPageIdError(PublishError):
    """Raised when Confluence did not return an id for a created or adopted page."""

    def __init__(self, path: str):
        super().__init__(f"No Confluence page id available for {path}")
        self.path = path


class PageOwnershipError(PublishError):
    """Raised when a page found by title is already mapped to another note."""

    def __init__(self, path: str, page_id: str, owner: str):
        super().__init__(f"{path}: page {page_id} is already published from {owner}")
        self.path = path
        self.page_id = page_id
        self.owner = owner


class RunLockError(PublishError):
    """Raised when another publish run holds the state directory lock."""

    def __init__(self, lock_path: str, timeout: float):
        super().__init__(
            f"Another publish run is in progress (lock {lock_path} not released within {timeout}s)"
        )
        self.lock_path = lock_path
        self.timeout = timeout
