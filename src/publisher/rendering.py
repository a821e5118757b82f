"""Rendering of notes to storage format with vault-aware link resolution."""

import logging
import posixpath
from typing import Iterable, Optional

from src.content_converter.markdown_prep import prepare_markdown
from src.content_converter.storage_converter import ConversionContext, ResolvedLink, StorageConverter

from .models import document_title

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSION = '.md'


class DocumentRenderer:
    """Turns a note into the Markdown and storage body that get published.

    Links to other notes become page links when the target note already has
    a page (it is in the identity map) or will get one in this run (it is
    in ``publishable``). Links to other files become attachment references.
    Everything else is rendered as plain text.

    Args:
        store: Document store the notes are read from
        converter: Markdown to storage converter
        identity_map: Current note to page associations
        space_key: Space that page links point into
        publishable: Notes that count as linkable besides mapped ones
    """

    def __init__(
        self,
        store,
        converter: StorageConverter,
        identity_map,
        space_key: str,
        publishable: Iterable[str] = (),
    ):
        self.store = store
        self.converter = converter
        self.identity_map = identity_map
        self.space_key = space_key
        self.publishable = set(publishable)

    def publish_markdown(self, path: str) -> str:
        return prepare_markdown(self.store.read_text(path))

    def render(self, path: str, markdown: Optional[str] = None) -> str:
        if markdown is None:
            markdown = self.publish_markdown(path)
        context = ConversionContext(
            space_key=self.space_key,
            from_path=path,
            resolve_link=self.resolve_link,
        )
        return self.converter.convert(markdown, context)

    def resolve_link(self, target: str, from_path: Optional[str] = None) -> Optional[ResolvedLink]:
        resolved = self.store.resolve_link(target, from_path)
        if not resolved:
            return None
        if not resolved.lower().endswith(MARKDOWN_EXTENSION):
            return ResolvedLink(title=posixpath.basename(resolved), kind='attachment')
        if resolved in self.publishable or self.identity_map.get(resolved) is not None:
            return ResolvedLink(title=document_title(resolved))
        logger.debug(f"Link from {from_path} to unpublished note {resolved} left as text")
        return None
