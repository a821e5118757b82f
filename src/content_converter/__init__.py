"""Content conversion from vault Markdown to Confluence storage format.

This package provides the StorageConverter (Markdown to storage XHTML), the
storage normalizer used as the "unchanged" oracle, the callout and task
list pattern matchers, and the Markdown preparation helpers.
"""

from .markdown_prep import (
    extract_embeds,
    extract_inline_tags,
    extract_link_targets,
    prepare_markdown,
    strip_frontmatter,
)
from .storage_converter import ConversionContext, ResolvedLink, StorageConverter
from .storage_normalizer import normalize_storage, normalize_text_for_diff

__all__ = [
    'ConversionContext',
    'ResolvedLink',
    'StorageConverter',
    'extract_embeds',
    'extract_inline_tags',
    'extract_link_targets',
    'normalize_storage',
    'normalize_text_for_diff',
    'prepare_markdown',
    'strip_frontmatter',
]
