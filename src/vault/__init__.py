"""Local document store over an Obsidian-style Markdown vault.

This package reads notes, resolves wikilinks and exposes the link, tag and
parent metadata the publisher needs.
"""

from .errors import DocumentNotFoundError, FilesystemError, FrontmatterError, VaultError
from .frontmatter_handler import FrontmatterHandler
from .vault_store import VaultDocumentStore

__all__ = [
    'DocumentNotFoundError',
    'FilesystemError',
    'FrontmatterError',
    'FrontmatterHandler',
    'VaultDocumentStore',
    'VaultError',
]
