"""Filesystem-backed document store over an Obsidian-style vault.

Documents are Markdown files addressed by their vault-relative POSIX path
(``projects/alpha.md``). The store reads text and bytes, resolves
``[[wikilinks]]`` and relative Markdown links the way Obsidian does, and
exposes the link, tag and parent metadata the publisher consumes.
"""

import logging
import os
import posixpath
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.content_converter.markdown_prep import extract_inline_tags, extract_link_targets
from .errors import DocumentNotFoundError, FilesystemError, FrontmatterError
from .frontmatter_handler import FrontmatterHandler

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = '.confluence-publish'
MARKDOWN_EXTENSION = '.md'


class VaultDocumentStore:
    """Reads notes and their metadata from a vault directory.

    Hidden directories (``.obsidian``, ``.git``, the publisher state
    directory) are never part of the vault listing.

    Example:
        >>> store = VaultDocumentStore("/home/me/vault")
        >>> store.get_links("index.md")
        ['guides/setup.md', 'guides/faq.md']
    """

    def __init__(self, root_dir: str, state_dir: str = DEFAULT_STATE_DIR):
        self.root = Path(root_dir).resolve()
        self.state_dir = state_dir
        self._files: Optional[List[str]] = None
        self._text_cache: Dict[str, str] = {}
        self._links_cache: Dict[str, List[str]] = {}

    def refresh(self) -> None:
        """Forget cached listings and file contents."""
        self._files = None
        self._text_cache.clear()
        self._links_cache.clear()

    def _all_files(self) -> List[str]:
        if self._files is None:
            if not self.root.is_dir():
                raise FilesystemError(str(self.root), 'list', 'Vault directory does not exist')
            files = []
            for directory, dirnames, filenames in os.walk(self.root):
                dirnames[:] = sorted(
                    d for d in dirnames if not d.startswith('.') and d != self.state_dir
                )
                relative_dir = Path(directory).relative_to(self.root).as_posix()
                for filename in filenames:
                    if filename.startswith('.'):
                        continue
                    relative = filename if relative_dir == '.' else f"{relative_dir}/{filename}"
                    files.append(relative)
            self._files = sorted(files)
        return self._files

    def list_documents(self) -> List[str]:
        """Return every Markdown note in the vault, sorted by path."""
        return [path for path in self._all_files() if path.lower().endswith(MARKDOWN_EXTENSION)]

    def _full_path(self, path: str) -> Path:
        full = (self.root / path).resolve()
        if full != self.root and self.root not in full.parents:
            raise FilesystemError(path, 'resolve', 'Path escapes the vault directory')
        return full

    def read_text(self, path: str) -> str:
        """Read a note as UTF-8 text.

        Raises:
            DocumentNotFoundError: If the file does not exist
            FilesystemError: If the file cannot be read
        """
        if path in self._text_cache:
            return self._text_cache[path]
        full = self._full_path(path)
        try:
            text = full.read_text(encoding='utf-8')
        except FileNotFoundError:
            raise DocumentNotFoundError(path)
        except (OSError, UnicodeDecodeError) as e:
            raise FilesystemError(path, 'read', str(e))
        self._text_cache[path] = text
        return text

    def read_binary(self, path: str) -> bytes:
        full = self._full_path(path)
        try:
            return full.read_bytes()
        except FileNotFoundError:
            raise DocumentNotFoundError(path)
        except OSError as e:
            raise FilesystemError(path, 'read', str(e))

    def _frontmatter(self, path: str) -> Dict[str, Any]:
        try:
            frontmatter, _ = FrontmatterHandler.split(path, self.read_text(path))
        except FrontmatterError as e:
            logger.warning(f"Ignoring frontmatter: {e}")
            return {}
        return frontmatter

    def get_links(self, path: str) -> List[str]:
        """Return the notes a note links to, resolved, in link order, without duplicates."""
        if path not in self._links_cache:
            links: List[str] = []
            for target in extract_link_targets(self.read_text(path)):
                resolved = self.resolve_link(target, path)
                if (
                    resolved
                    and resolved != path
                    and resolved.lower().endswith(MARKDOWN_EXTENSION)
                    and resolved not in links
                ):
                    links.append(resolved)
            self._links_cache[path] = links
        return list(self._links_cache[path])

    def get_backlinks(self, path: str) -> List[str]:
        """Return the notes that link to path, sorted by path."""
        return [doc for doc in self.list_documents() if doc != path and path in self.get_links(doc)]

    def get_tags(self, path: str) -> List[str]:
        """Return frontmatter tags followed by inline tags, without duplicates."""
        tags = FrontmatterHandler.tags(self._frontmatter(path))
        for tag in extract_inline_tags(self.read_text(path)):
            if tag not in tags:
                tags.append(tag)
        return tags

    def get_parent_declaration(self, path: str) -> Optional[str]:
        return FrontmatterHandler.parent_declaration(self._frontmatter(path))

    def resolve_link(self, target: str, from_path: Optional[str] = None) -> Optional[str]:
        """Resolve a link target to a vault path, Obsidian style.

        Tried in order: relative to the linking note's folder, relative to the
        vault root, then by file name anywhere in the vault (shortest path
        wins, then alphabetical). Targets without an extension also match
        ``.md`` notes. Matching is case-insensitive.

        Args:
            target: Link target without alias or anchor
            from_path: Path of the linking note

        Returns:
            Vault-relative path, or None if nothing matches
        """
        target = (target or '').strip().replace('\\', '/')
        if not target:
            return None

        names = [target]
        if not posixpath.splitext(target)[1] or not self._lookup(target):
            names.append(target + MARKDOWN_EXTENSION)

        for name in names:
            if from_path:
                relative = posixpath.normpath(posixpath.join(posixpath.dirname(from_path), name))
                found = self._lookup(relative)
                if found:
                    return found
            found = self._lookup(posixpath.normpath(name.lstrip('/')))
            if found:
                return found

        for name in names:
            suffix = name.lower().lstrip('./')
            basename = posixpath.basename(suffix)
            matches = [
                path for path in self._all_files()
                if posixpath.basename(path.lower()) == basename
                and (path.lower() == suffix or path.lower().endswith('/' + suffix))
            ]
            if matches:
                return sorted(matches, key=lambda p: (len(p), p))[0]
        return None

    def _lookup(self, path: str) -> Optional[str]:
        if path.startswith('..'):
            return None
        files = self._all_files()
        if path in files:
            return path
        lowered = path.lower()
        for candidate in files:
            if candidate.lower() == lowered:
                return candidate
        return None
