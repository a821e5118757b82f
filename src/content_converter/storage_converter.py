"""Markdown to Confluence storage format conversion.

Conversion runs in two phases:

1. mistune parses the Markdown into an AST (tables, task lists, footnotes,
   strikethrough, bare URLs and Obsidian ``[[wikilinks]]``).
2. A recursive renderer walks the blocks, asks the matchers in
   ``patterns`` about callouts and task lists, and emits storage XHTML.

Cross-document links go through a caller-supplied resolver so the converter
itself stays pure: the same input and resolver always give the same output.
"""

import logging
import posixpath
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Union
from urllib.parse import unquote

import mistune

from src.confluence_client.errors import ConversionError

from .patterns import (
    Callout,
    PlainRun,
    TaskRun,
    Token,
    has_task_items,
    inline_text,
    match_callout,
    panel_theme,
    split_list_runs,
)

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.gif', '.webp', '.svg')

WIKILINK_PATTERN = r'!?\[\[(?P<wiki_inner>[^\[\]\n]+?)\]\]'
_EMBED_SIZE_RE = re.compile(r'^\d+(x\d+)?$')
_SCHEME_RE = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*:')
SAFE_URL_SCHEMES = ('http', 'https', 'mailto')


class ResolvedLink(NamedTuple):
    """Outcome of resolving a link target.

    Attributes:
        title: Page title, or file name for attachments
        kind: "page" or "attachment"
    """
    title: str
    kind: str = 'page'


LinkResolver = Callable[[str, Optional[str]], Optional[Union[ResolvedLink, Mapping[str, Any]]]]


@dataclass(frozen=True)
class ConversionContext:
    """Inputs that stay fixed while one document is converted.

    Attributes:
        space_key: Space the page links point into
        from_path: Path of the document being converted
        resolve_link: Callback mapping (target, from_path) to a ResolvedLink or None
    """
    space_key: str = ''
    from_path: Optional[str] = None
    resolve_link: Optional[LinkResolver] = None


def escape_xml(text: str) -> str:
    return (
        (text or '')
        .replace('&', '&amp;')
        .replace('<', '&lt;')
        .replace('>', '&gt;')
        .replace('"', '&quot;')
        .replace("'", '&apos;')
    )


def cdata(text: str) -> str:
    return '<![CDATA[' + (text or '').replace(']]>', ']]]]><![CDATA[>') + ']]>'


def is_image(filename: str) -> bool:
    return posixpath.splitext((filename or '').lower())[1] in IMAGE_EXTENSIONS


def _parse_wikilink(inline, m, state):
    inner = m.group('wiki_inner')
    target_part, _, alias = inner.partition('|')
    target, _, anchor = target_part.partition('#')
    state.append_token({
        'type': 'wikilink',
        'raw': m.group(0),
        'attrs': {
            'target': target.strip(),
            'anchor': anchor.strip(),
            'alias': alias.strip(),
            'embed': m.group(0).startswith('!'),
        },
    })
    return m.end()


def wikilinks(md):
    """mistune plugin adding ``[[target#anchor|alias]]`` and ``![[embed]]``."""
    md.inline.register('wikilink', WIKILINK_PATTERN, _parse_wikilink, before='link')


def create_parser():
    return mistune.create_markdown(
        renderer='ast',
        plugins=['table', 'task_lists', 'strikethrough', 'footnotes', 'url', wikilinks],
    )


def coerce_resolved(value: Any) -> Optional[ResolvedLink]:
    """Accept a ResolvedLink, a mapping with a title, or None."""
    if value is None:
        return None
    if isinstance(value, ResolvedLink):
        return value if value.title else None
    if isinstance(value, Mapping):
        title = value.get('title')
        kind = value.get('kind', 'page')
    else:
        title = getattr(value, 'title', None)
        kind = getattr(value, 'kind', 'page')
    if not title:
        return None
    return ResolvedLink(title=str(title), kind=kind or 'page')


class StorageConverter:
    """Converts Markdown source to Confluence storage XHTML.

    Example:
        >>> converter = StorageConverter()
        >>> converter.convert("# Hello", ConversionContext(space_key="DOCS"))
        '<h1>Hello</h1>'
    """

    def __init__(self):
        self._parse = create_parser()

    def parse(self, source_text: str) -> List[Token]:
        """Phase 1: parse Markdown into mistune AST tokens."""
        return self._parse(source_text or '')

    def convert(self, source_text: str, context: Optional[ConversionContext] = None) -> str:
        """Render Markdown as storage format.

        Never raises for unresolved or malformed links. If the document cannot
        be parsed at all, its text is returned as one escaped paragraph.

        Args:
            source_text: Markdown to convert (frontmatter already stripped)
            context: Space key, document path and link resolver

        Returns:
            Storage-format XHTML
        """
        try:
            return self.render(source_text, context)
        except ConversionError as e:
            logger.warning(f"Falling back to plain paragraph: {e}")
            return f"<p>{escape_xml(source_text)}</p>"

    def render(self, source_text: str, context: Optional[ConversionContext] = None) -> str:
        """Strict variant of convert().

        Raises:
            ConversionError: If parsing fails or a node cannot be rendered
        """
        context = context or ConversionContext()
        try:
            tokens = self.parse(source_text)
        except Exception as e:
            raise ConversionError(f"Markdown parsing failed: {e}", context.from_path) from e

        try:
            return _Renderer(context).blocks(tokens)
        except ConversionError:
            raise
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ConversionError(f"Rendering failed: {e}", context.from_path) from e


class _Renderer:
    """Phase 2: storage XHTML from AST tokens."""

    def __init__(self, context: ConversionContext):
        self.context = context

    def resolve(self, target: str) -> Optional[ResolvedLink]:
        if not target or self.context.resolve_link is None:
            return None
        try:
            return coerce_resolved(self.context.resolve_link(target, self.context.from_path))
        except Exception as e:
            logger.warning(f"Link resolution failed for '{target}': {e}")
            return None

    # blocks

    def blocks(self, tokens: List[Token]) -> str:
        return ''.join(self.block(token) for token in tokens or [])

    def block(self, token: Token) -> str:
        if not isinstance(token, Mapping) or not token.get('type'):
            raise ConversionError(f"Unrenderable node {str(token)[:60]!r}", self.context.from_path)
        token_type = token.get('type')
        method = getattr(self, f'block_{token_type}', None)
        if method is not None:
            return method(token)
        if 'children' in token:
            return self.blocks(token['children'])
        if token.get('raw'):
            return f"<p>{escape_xml(token['raw'])}</p>"
        return ''

    def block_blank_line(self, token: Token) -> str:
        return ''

    def block_paragraph(self, token: Token) -> str:
        content = self.inlines(token.get('children', []))
        return f"<p>{content}</p>" if content.strip() else ''

    def block_block_text(self, token: Token) -> str:
        return self.inlines(token.get('children', []))

    def block_heading(self, token: Token) -> str:
        level = min(max(int((token.get('attrs') or {}).get('level', 1)), 1), 6)
        return f"<h{level}>{self.inlines(token.get('children', []))}</h{level}>"

    def block_thematic_break(self, token: Token) -> str:
        return '<hr />'

    def block_block_code(self, token: Token) -> str:
        info = ((token.get('attrs') or {}).get('info') or '').strip()
        language = info.split()[0].lower() if info else 'text'
        code = (token.get('raw') or '').rstrip('\n')
        return (
            '<ac:structured-macro ac:name="code">'
            f'<ac:parameter ac:name="language">{escape_xml(language)}</ac:parameter>'
            f'<ac:plain-text-body>{cdata(code)}</ac:plain-text-body>'
            '</ac:structured-macro>'
        )

    def block_block_html(self, token: Token) -> str:
        raw = (token.get('raw') or '').strip()
        return f"<p>{escape_xml(raw)}</p>" if raw else ''

    def block_block_quote(self, token: Token) -> str:
        callout = match_callout(token)
        if callout is not None:
            return self.callout(callout)
        return f"<blockquote>{self.blocks(token.get('children', []))}</blockquote>"

    def callout(self, callout: Callout) -> str:
        theme = panel_theme(callout.kind)
        parameters = (
            ('title', callout.title),
            ('borderStyle', 'solid'),
            ('borderWidth', '1'),
            ('borderColor', theme.border_color),
            ('bgColor', theme.background_color),
            ('titleBGColor', theme.title_background_color),
            ('titleColor', theme.title_color),
        )
        rendered = ''.join(
            f'<ac:parameter ac:name="{name}">{escape_xml(value)}</ac:parameter>'
            for name, value in parameters
        )
        return (
            f'<ac:structured-macro ac:name="panel">{rendered}'
            f'<ac:rich-text-body>{self.blocks(callout.body)}</ac:rich-text-body>'
            '</ac:structured-macro>'
        )

    def block_list(self, token: Token) -> str:
        ordered = bool((token.get('attrs') or {}).get('ordered'))
        if not has_task_items(token):
            start = (token.get('attrs') or {}).get('start', 1) or 1
            return self.plain_list(token.get('children', []), ordered, start)

        parts = []
        for run in split_list_runs(token):
            if isinstance(run, TaskRun):
                parts.append(self.task_list(run))
            elif isinstance(run, PlainRun):
                parts.append(self.plain_list(run.items, ordered, run.start))
        return ''.join(parts)

    def plain_list(self, items: List[Token], ordered: bool, start: int = 1) -> str:
        tag = 'ol' if ordered else 'ul'
        start_attr = f' start="{start}"' if ordered and start != 1 else ''
        body = ''.join(
            f"<li>{self.blocks(item.get('children', []))}</li>"
            for item in items
            if item.get('type') != 'blank_line'
        )
        return f"<{tag}{start_attr}>{body}</{tag}>"

    def task_list(self, run: TaskRun) -> str:
        tasks = ''.join(
            '<ac:task>'
            f"<ac:task-status>{'complete' if item.checked else 'incomplete'}</ac:task-status>"
            f'<ac:task-body>{self.blocks(item.children)}</ac:task-body>'
            '</ac:task>'
            for item in run.items
        )
        return f'<ac:task-list>{tasks}</ac:task-list>'

    def block_table(self, token: Token) -> str:
        rows = []
        for section in token.get('children', []):
            if section.get('type') == 'table_head':
                rows.append(self.table_row(section.get('children', []), header=True))
            else:
                for row in section.get('children', []):
                    rows.append(self.table_row(row.get('children', []), header=False))
        return f"<table><tbody>{''.join(rows)}</tbody></table>"

    def table_row(self, cells: List[Token], header: bool) -> str:
        rendered = []
        for cell in cells:
            attrs = cell.get('attrs') or {}
            tag = 'th' if header or attrs.get('head') else 'td'
            align = attrs.get('align')
            style = f' style="text-align: {align};"' if align else ''
            rendered.append(f"<{tag}{style}>{self.inlines(cell.get('children', []))}</{tag}>")
        return f"<tr>{''.join(rendered)}</tr>"

    def block_footnotes(self, token: Token) -> str:
        items = ''.join(
            f"<li>{self.blocks(item.get('children', []))}</li>"
            for item in token.get('children', [])
        )
        return f'<hr /><ol>{items}</ol>'

    # inlines

    def inlines(self, tokens: List[Token]) -> str:
        return ''.join(self.inline(token) for token in tokens or [])

    def inline(self, token: Token) -> str:
        if not isinstance(token, Mapping) or not token.get('type'):
            raise ConversionError(f"Unrenderable node {str(token)[:60]!r}", self.context.from_path)
        token_type = token.get('type')
        method = getattr(self, f'inline_{token_type}', None)
        if method is not None:
            return method(token)
        if 'children' in token:
            return self.inlines(token['children'])
        return escape_xml(token.get('raw', ''))

    def inline_text(self, token: Token) -> str:
        return escape_xml(token.get('raw', ''))

    def inline_emphasis(self, token: Token) -> str:
        return f"<em>{self.inlines(token.get('children', []))}</em>"

    def inline_strong(self, token: Token) -> str:
        return f"<strong>{self.inlines(token.get('children', []))}</strong>"

    def inline_strikethrough(self, token: Token) -> str:
        return f"<del>{self.inlines(token.get('children', []))}</del>"

    def inline_codespan(self, token: Token) -> str:
        return f"<code>{escape_xml(token.get('raw', ''))}</code>"

    def inline_softbreak(self, token: Token) -> str:
        return '<br />'

    def inline_linebreak(self, token: Token) -> str:
        return '<br />'

    def inline_inline_html(self, token: Token) -> str:
        return escape_xml(token.get('raw', ''))

    def inline_footnote_ref(self, token: Token) -> str:
        index = (token.get('attrs') or {}).get('index', '')
        return f'<sup>[{index}]</sup>'

    def inline_wikilink(self, token: Token) -> str:
        attrs = token.get('attrs') or {}
        target = attrs.get('target', '')
        alias = attrs.get('alias', '')
        embed = attrs.get('embed', False)
        if embed and _EMBED_SIZE_RE.match(alias):
            alias = ''
        display = alias or target or token.get('raw', '')

        resolved = self.resolve(target)
        if resolved is None:
            return escape_xml(display)
        if embed and (resolved.kind == 'attachment' or is_image(resolved.title)):
            if is_image(resolved.title):
                return self.attachment_image(resolved.title)
            return self.attachment_link(resolved.title, display)
        if resolved.kind == 'attachment':
            return self.attachment_link(resolved.title, display)
        return self.page_link(resolved.title, alias or resolved.title)

    def inline_link(self, token: Token) -> str:
        url = (token.get('attrs') or {}).get('url', '')
        children = token.get('children', [])
        if _is_external(url):
            if not _is_safe_url(url):
                return self.inlines(children)
            return f'<a href="{escape_xml(url)}">{self.inlines(children)}</a>'

        text = inline_text(children)
        resolved = self.resolve(_local_target(url))
        if resolved is None:
            return escape_xml(text)
        if resolved.kind == 'attachment':
            return self.attachment_link(resolved.title, text)
        return self.page_link(resolved.title, text or resolved.title)

    def inline_image(self, token: Token) -> str:
        url = (token.get('attrs') or {}).get('url', '')
        alt = inline_text(token.get('children', []))
        if _is_external(url):
            if not _is_safe_url(url):
                return escape_xml(alt)
            return f'<ac:image><ri:url ri:value="{escape_xml(url)}" /></ac:image>'

        resolved = self.resolve(_local_target(url))
        if resolved is None:
            return escape_xml(alt)
        return self.attachment_image(resolved.title)

    # Confluence elements

    def page_link(self, title: str, alias: str) -> str:
        space = self.context.space_key
        space_attr = f' ri:space-key="{escape_xml(space)}"' if space else ''
        return (
            f'<ac:link><ri:page{space_attr} ri:content-title="{escape_xml(title)}" />'
            f'<ac:plain-text-link-body>{cdata(alias)}</ac:plain-text-link-body></ac:link>'
        )

    def attachment_link(self, filename: str, alias: str) -> str:
        return (
            f'<ac:link><ri:attachment ri:filename="{escape_xml(filename)}" />'
            f'<ac:plain-text-link-body>{cdata(alias or filename)}</ac:plain-text-link-body></ac:link>'
        )

    def attachment_image(self, filename: str) -> str:
        return f'<ac:image><ri:attachment ri:filename="{escape_xml(filename)}" /></ac:image>'


def _is_external(url: str) -> bool:
    return bool(_SCHEME_RE.match(url or '')) or (url or '').startswith(('#', '//'))


def _is_safe_url(url: str) -> bool:
    """Anchors, protocol-relative URLs and http, https or mailto links."""
    match = _SCHEME_RE.match(url or '')
    return match is None or match.group(0)[:-1].lower() in SAFE_URL_SCHEMES


def _local_target(url: str) -> str:
    path = unquote((url or '').split('#', 1)[0].split('?', 1)[0])
    return path.strip()
