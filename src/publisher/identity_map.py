"""Persistent association between note paths and Confluence pages.

The identity map is what lets a note keep publishing to the same page over
time, including across renames. Persistence is delegated to a small
load/save object so the map itself stays storage-agnostic; the default
YamlMappingFile keeps it in the vault's state directory.
"""

import logging
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

import yaml

from .errors import IdentityMapError
from .models import IdentityEntry, document_title

logger = logging.getLogger(__name__)

MAPPING_VERSION = 1


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


class MappingPersistence(Protocol):
    def load(self) -> Optional[Dict[str, Any]]:
        ...

    def save(self, data: Dict[str, Any]) -> None:
        ...


class YamlMappingFile:
    """Stores the identity map as YAML, written atomically.

    File structure:
        version: 1
        entries:
          notes/a.md:
            page_id: "123456"
            title: a
            web_link: https://example.atlassian.net/wiki/spaces/DOCS/pages/123456
            updated_at: "2024-01-15T10:30:00Z"
    """

    def __init__(self, file_path: str):
        self.file_path = file_path

    def load(self) -> Optional[Dict[str, Any]]:
        """Read the raw mapping; None when the file is missing or unreadable."""
        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Could not read identity map {self.file_path}: {e}")
            return None

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            logger.warning(f"Identity map {self.file_path} is corrupted, starting empty: {e}")
            return None
        return data if isinstance(data, dict) else None

    def save(self, data: Dict[str, Any]) -> None:
        """Write the mapping via a temp file and os.replace.

        Raises:
            IdentityMapError: If the file cannot be written
        """
        directory = os.path.dirname(self.file_path) or '.'
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    yaml.safe_dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=True)
                os.replace(tmp_path, self.file_path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise IdentityMapError(self.file_path, 'write', str(e))


class IdentityMap:
    """Path-keyed map of IdentityEntry, at most one entry per path.

    Example:
        >>> identity = IdentityMap(YamlMappingFile(".confluence-publish/mapping.yaml"))
        >>> identity.load()
        >>> identity.set(IdentityEntry("a.md", "123", "a"))
        >>> identity.save()
    """

    def __init__(self, persistence: Optional[MappingPersistence] = None):
        self._persistence = persistence
        self._entries: Dict[str, IdentityEntry] = {}
        self._dirty = False

    @property
    def dirty(self) -> bool:
        return self._dirty

    def load(self) -> None:
        """Replace the in-memory entries with the persisted ones."""
        self._entries = {}
        self._dirty = False
        if self._persistence is None:
            return

        data = self._persistence.load() or {}
        entries = data.get('entries') or {}
        if not isinstance(entries, dict):
            logger.warning("Identity map has no valid 'entries' table, starting empty")
            return

        for path, raw in entries.items():
            if not isinstance(raw, dict) or not raw.get('page_id'):
                logger.warning(f"Skipping malformed identity entry for {path}")
                continue
            self._entries[str(path)] = IdentityEntry(
                document_path=str(path),
                remote_page_id=str(raw['page_id']),
                title=str(raw.get('title') or document_title(str(path))),
                web_link=raw.get('web_link'),
                updated_at=raw.get('updated_at'),
            )
        logger.debug(f"Loaded {len(self._entries)} identity entries")

    def save(self) -> None:
        """Persist all entries.

        Raises:
            IdentityMapError: If persistence fails
        """
        if self._persistence is None:
            return
        self._persistence.save({
            'version': MAPPING_VERSION,
            'entries': {
                path: {
                    'page_id': entry.remote_page_id,
                    'title': entry.title,
                    'web_link': entry.web_link,
                    'updated_at': entry.updated_at,
                }
                for path, entry in sorted(self._entries.items())
            },
        })
        self._dirty = False

    def get(self, path: str) -> Optional[IdentityEntry]:
        return self._entries.get(path)

    def set(self, entry: IdentityEntry) -> None:
        self._entries[entry.document_path] = entry
        self._dirty = True

    def remove(self, path: str) -> Optional[IdentityEntry]:
        removed = self._entries.pop(path, None)
        if removed is not None:
            self._dirty = True
        return removed

    def reset(self) -> None:
        self._entries = {}
        self._dirty = True

    def list(self) -> List[IdentityEntry]:
        return [self._entries[path] for path in sorted(self._entries)]

    def find_by_page_id(self, page_id: str) -> Optional[IdentityEntry]:
        for entry in self._entries.values():
            if entry.remote_page_id == page_id:
                return entry
        return None

    def rename(self, old_path: str, new_path: str) -> Optional[IdentityEntry]:
        """Move an entry to a new path, keeping its page id.

        The title is refreshed from the new file name. Nothing happens when
        old_path has no entry.

        Returns:
            The migrated entry, or None if there was nothing to migrate
        """
        old_entry = self._entries.pop(old_path, None)
        if old_entry is None:
            return None

        migrated = IdentityEntry(
            document_path=new_path,
            remote_page_id=old_entry.remote_page_id,
            title=document_title(new_path),
            web_link=old_entry.web_link,
            updated_at=utc_now(),
        )
        self._entries[new_path] = migrated
        self._dirty = True
        logger.info(f"Identity entry moved from {old_path} to {new_path}")
        return migrated
