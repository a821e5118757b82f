"""Upload of images embedded in a note to its Confluence page."""

import hashlib
import logging
import mimetypes
import posixpath
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.content_converter.markdown_prep import extract_embeds
from src.content_converter.storage_converter import is_image

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = 'application/octet-stream'


@dataclass
class AttachmentResult:
    """Outcome of syncing the attachments of one note."""
    uploaded: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


def _sha256(data: bytes) -> str:
    return hashlib.sha256(data or b'').hexdigest()


def _remote_size(attachment: Dict[str, Any]) -> Optional[int]:
    size = (attachment.get('extensions') or {}).get('fileSize')
    try:
        return int(size) if size is not None else None
    except (TypeError, ValueError):
        return None


class AttachmentSync:
    """Uploads embedded images whose content differs from the page's copy.

    Args:
        store: Document store the files are read from
        remote: Remote content service
    """

    def __init__(self, store, remote):
        self.store = store
        self.remote = remote

    def sync(self, page_id: str, doc_path: str, markdown: str) -> AttachmentResult:
        """Upload the images embedded in markdown to page_id.

        A failure for one file is recorded in the result and does not stop
        the others.

        Args:
            page_id: Page the note was published to
            doc_path: Note path, for resolving relative embeds
            markdown: Published Markdown of the note

        Returns:
            AttachmentResult listing uploaded, unchanged, missing and failed files
        """
        result = AttachmentResult()
        for target in extract_embeds(markdown):
            resolved = self.store.resolve_link(target, doc_path)
            if not resolved:
                logger.warning(f"{doc_path}: embedded file '{target}' not found in vault")
                result.missing.append(target)
                continue

            filename = posixpath.basename(resolved)
            if not is_image(filename):
                continue

            try:
                data = self.store.read_binary(resolved)
                if self._matches_remote(page_id, filename, data):
                    logger.debug(f"Attachment {filename} on page {page_id} is up to date")
                    result.unchanged.append(filename)
                    continue
                content_type = mimetypes.guess_type(filename)[0] or DEFAULT_CONTENT_TYPE
                self.remote.upload_attachment(page_id, filename, data, content_type)
                logger.info(f"Uploaded {filename} to page {page_id}")
                result.uploaded.append(filename)
            except Exception as e:
                logger.warning(f"Attachment {filename} for {doc_path} failed: {e}")
                result.failed[filename] = str(e)
        return result

    def _matches_remote(self, page_id: str, filename: str, data: bytes) -> bool:
        existing = self.remote.get_attachment(page_id, filename)
        if not existing:
            return False
        try:
            remote_data = self.remote.download_attachment(existing)
        except Exception as e:
            size = _remote_size(existing)
            logger.debug(f"Download of {filename} failed ({e}); comparing sizes")
            return size is not None and size == len(data)
        return _sha256(remote_data) == _sha256(data)
