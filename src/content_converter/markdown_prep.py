"""Preparation of vault Markdown before it is published.

Obsidian notes carry things Confluence should not show: YAML frontmatter
and inline ``#tags`` (which become page labels instead). This module strips
them while leaving fenced and inline code untouched, and extracts embeds and
link targets from the raw text.
"""

import re
from typing import List, Tuple
from urllib.parse import unquote

FRONTMATTER_PATTERN = re.compile(r'^\ufeff?---[ \t]*\r?\n.*?\r?\n(?:---|\.\.\.)[ \t]*(?:\r?\n|$)', re.DOTALL)
FENCE_PATTERN = re.compile(r'(^|\n)(```|~~~)[^\n]*\n.*?\n\2[^\n]*(?=\n|$)', re.DOTALL)
INLINE_CODE_PATTERN = re.compile(r'`[^`\n]*`')
INLINE_TAG_PATTERN = re.compile(r'(^|\s|(?<!\])\()#([A-Za-z0-9/_-]+)\b')
WIKI_EMBED_PATTERN = re.compile(r'!\[\[([^\[\]\n]+?)\]\]')
WIKILINK_PATTERN = re.compile(r'(?<!!)\[\[([^\[\]\n]+?)\]\]')
MARKDOWN_IMAGE_PATTERN = re.compile(r'!\[[^\]]*\]\(([^)\s]+)(?:\s+"[^"]*")?\)')
MARKDOWN_LINK_PATTERN = re.compile(r'(?<!!)\[[^\]]*\]\(([^)\s]+)(?:\s+"[^"]*")?\)')
_SCHEME_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*:')

_PLACEHOLDER = '\u0000{}\u0000'


def strip_frontmatter(text: str) -> str:
    return FRONTMATTER_PATTERN.sub('', text or '', count=1)


def _protect_code(text: str) -> Tuple[str, List[str]]:
    protected: List[str] = []

    def _stash(match: re.Match) -> str:
        protected.append(match.group(0))
        return _PLACEHOLDER.format(len(protected) - 1)

    text = FENCE_PATTERN.sub(_stash, text)
    text = INLINE_CODE_PATTERN.sub(_stash, text)
    return text, protected


def _restore_code(text: str, protected: List[str]) -> str:
    for index in range(len(protected) - 1, -1, -1):
        text = text.replace(_PLACEHOLDER.format(index), protected[index])
    return text


def prepare_markdown(text: str) -> str:
    """Return the Markdown that gets published for a note.

    Args:
        text: Raw note text, possibly with frontmatter

    Returns:
        Text without frontmatter and inline tags, with LF line endings,
        no trailing whitespace and no leading/trailing blank lines
    """
    body = strip_frontmatter(text)
    body, protected = _protect_code(body)
    body = INLINE_TAG_PATTERN.sub(lambda m: m.group(0) if m.group(2).isdigit() else m.group(1), body)
    body = _restore_code(body, protected)
    body = body.replace('\r\n', '\n').replace('\r', '\n')
    body = '\n'.join(line.rstrip() for line in body.split('\n'))
    return body.strip()


def extract_inline_tags(text: str) -> List[str]:
    """Return inline #tags outside code, without the hash, in order."""
    body, _ = _protect_code(strip_frontmatter(text))
    tags: List[str] = []
    for match in INLINE_TAG_PATTERN.finditer(body):
        tag = match.group(2)
        # Pure numbers are issue references or headings, not tags.
        if tag.isdigit() or tag in tags:
            continue
        tags.append(tag)
    return tags


def _clean_target(raw: str) -> str:
    target = raw.split('|', 1)[0].split('#', 1)[0]
    return target.strip()


def _is_local(url: str) -> bool:
    return not _SCHEME_PATTERN.match(url) and not url.startswith(('#', '//'))


def extract_embeds(text: str) -> List[str]:
    """Return embedded file targets (``![[x]]`` and local ``![](x)``), unique, in order."""
    body, _ = _protect_code(strip_frontmatter(text))
    targets: List[str] = []
    for match in WIKI_EMBED_PATTERN.finditer(body):
        target = _clean_target(match.group(1))
        if target and target not in targets:
            targets.append(target)
    for match in MARKDOWN_IMAGE_PATTERN.finditer(body):
        url = match.group(1)
        if not _is_local(url):
            continue
        target = _clean_target(unquote(url))
        if target and target not in targets:
            targets.append(target)
    return targets


def extract_link_targets(text: str) -> List[str]:
    """Return wikilink and local Markdown link targets, unique, in order."""
    body, _ = _protect_code(strip_frontmatter(text))
    found = []
    for match in WIKILINK_PATTERN.finditer(body):
        found.append((match.start(), _clean_target(match.group(1))))
    for match in MARKDOWN_LINK_PATTERN.finditer(body):
        url = match.group(1)
        if _is_local(url):
            found.append((match.start(), _clean_target(unquote(url))))

    targets: List[str] = []
    for _, target in sorted(found, key=lambda pair: pair[0]):
        if target and target not in targets:
            targets.append(target)
    return targets
