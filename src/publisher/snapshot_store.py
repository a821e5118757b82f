"""Last-published snapshots used as the diff baseline.

For every published note two files are kept:

* ``snapshots/<name>.md``: the Markdown that was published
* ``storage-snapshots/<name>.html``: the normalized storage that was published

Confluence reformats stored pages, so comparing fresh output with the
remote body would report changes that never happened. Comparing with what
was last sent does not. Snapshots are never a copy of the remote state.

File names are derived from a case-folded hash of the path, so a note
keeps the same snapshot file when only the case of its path changes, and
case-insensitive filesystems never hold two files for one note.
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

SOURCE_DIR = 'snapshots'
STORAGE_DIR = 'storage-snapshots'
MAX_SLUG_LENGTH = 60

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193


def fnv1a_32(text: str) -> str:
    """32-bit FNV-1a hash of text as 8 lowercase hex digits."""
    value = _FNV_OFFSET
    for char in text:
        value ^= ord(char)
        value = (value * _FNV_PRIME) & 0xFFFFFFFF
    return f"{value:08x}"


def _normalize_path(path: str) -> str:
    return (path or '').replace('\\', '/').lstrip('/')


def slugify(path: str) -> str:
    slug = _normalize_path(path).lower()
    slug = re.sub(r'[^a-z0-9/_ .-]', '', slug)
    slug = re.sub(r'[/\s]+', '-', slug)
    slug = re.sub(r'-{2,}', '-', slug).strip('-')
    return slug[:MAX_SLUG_LENGTH].strip('-') or 'note'


def snapshot_name(path: str) -> str:
    """Stable file stem for a note path: ``<slug>-<fnv1a32(lowercased path)>``."""
    return f"{slugify(path)}-{fnv1a_32(_normalize_path(path).lower())}"


class SnapshotStore:
    """Reads and writes per-note snapshots under a state directory.

    Reads return None when a snapshot does not exist or cannot be read;
    writes replace the whole file atomically.
    """

    def __init__(self, state_dir: str):
        self.state_dir = Path(state_dir)

    def _path(self, folder: str, path: str, extension: str) -> Path:
        return self.state_dir / folder / f"{snapshot_name(path)}{extension}"

    def _read(self, file_path: Path) -> Optional[str]:
        try:
            return file_path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Could not read snapshot {file_path}: {e}")
            return None

    def _write(self, file_path: Path, content: str) -> None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(file_path.parent), suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(content)
            os.replace(tmp_path, file_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def read_snapshot(self, path: str) -> Optional[str]:
        return self._read(self._path(SOURCE_DIR, path, '.md'))

    def write_snapshot(self, path: str, source: str) -> None:
        self._write(self._path(SOURCE_DIR, path, '.md'), source)

    def read_storage_snapshot(self, path: str) -> Optional[str]:
        return self._read(self._path(STORAGE_DIR, path, '.html'))

    def write_storage_snapshot(self, path: str, storage: str) -> None:
        self._write(self._path(STORAGE_DIR, path, '.html'), storage)

    def write_published(self, path: str, source: str, storage: str) -> None:
        """Replace both snapshots of a note, or neither.

        The storage snapshot is written after the source snapshot; if that
        fails, the previous source snapshot is put back before the error
        propagates.

        Raises:
            OSError: If either snapshot cannot be written
        """
        source_file = self._path(SOURCE_DIR, path, '.md')
        previous = self._read(source_file)
        self.write_snapshot(path, source)
        try:
            self.write_storage_snapshot(path, storage)
        except BaseException:
            if previous is None:
                source_file.unlink(missing_ok=True)
            else:
                self._write(source_file, previous)
            raise

    def rename(self, old_path: str, new_path: str) -> None:
        """Move both snapshots of a note to its new path, if they exist."""
        for folder, extension in ((SOURCE_DIR, '.md'), (STORAGE_DIR, '.html')):
            source = self._path(folder, old_path, extension)
            if source.exists():
                target = self._path(folder, new_path, extension)
                target.parent.mkdir(parents=True, exist_ok=True)
                os.replace(source, target)
