"""Typed exception hierarchy for vault (local document store) errors.

All exceptions inherit from VaultError, which itself derives from the
application-wide SyncError.
"""

from typing import Optional

from src.confluence_client.errors import SyncError


class VaultError(SyncError):
    """Base exception for all vault errors."""
    pass


class FilesystemError(VaultError):
    """Raised when filesystem operations fail (read, write, permissions, etc)."""

    def __init__(self, file_path: str, operation: str, reason: Optional[str] = None):
        message = f"Filesystem operation '{operation}' failed for {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.operation = operation
        self.reason = reason


class FrontmatterError(VaultError):
    """Raised when YAML frontmatter parsing or validation fails."""

    def __init__(self, file_path: str, message: str):
        super().__init__(
            f"Frontmatter error in {file_path}: {message}"
        )
        self.file_path = file_path
        self.message = message


class DocumentNotFoundError(VaultError):
    """Raised when a document path is not part of the vault."""

    def __init__(self, path: str):
        super().__init__(f"Document not found in vault: {path}")
        self.path = path
