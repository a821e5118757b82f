"""Canonical form of Confluence storage XHTML for change detection.

Confluence and its editor rewrite stored pages in ways that carry no meaning:
attribute order, whitespace, entity spelling, editor bookkeeping attributes,
``<p>`` wrappers inside list items, CDATA versus escaped link bodies. Two
bodies are considered unchanged when their normalized forms are equal, so
this module decides whether a page gets rewritten at all.

The transformation is a fixed point: ``normalize_storage`` is applied until
the text stops changing, which makes it idempotent.
"""

import re
from xml.sax.saxutils import escape

VOLATILE_ATTRIBUTES = (
    'data-mce-style',
    'data-mce-bogus',
    'data-mce-selected',
    'data-mce-href',
    'contenteditable',
    'spellcheck',
    'ri:version-at-save',
    'ac:macro-id',
    'ac:local-id',
    'ac:schema-version',
)

SORTED_ATTRIBUTE_TAGS = (
    'ac:structured-macro',
    'ac:parameter',
    'ac:link',
    'ac:image',
    'ri:page',
    'ri:attachment',
    'ri:url',
)

ENTITY_REPLACEMENTS = (
    (re.compile(r'&(?:rsquo|#8217|#x2019);', re.IGNORECASE), '\u2019'),
    (re.compile(r'&(?:lsquo|#8216|#x2018);', re.IGNORECASE), '\u2018'),
    (re.compile(r'&(?:ldquo|#8220|#x201c);', re.IGNORECASE), '\u201c'),
    (re.compile(r'&(?:rdquo|#8221|#x201d);', re.IGNORECASE), '\u201d'),
    (re.compile(r'&(?:ndash|#8211|#x2013);', re.IGNORECASE), '\u2013'),
    (re.compile(r'&(?:mdash|#8212|#x2014);', re.IGNORECASE), '\u2014'),
    (re.compile(r'&(?:bull|#8226|#x2022);', re.IGNORECASE), '\u2022'),
    (re.compile(r'&(?:nbsp|#160|#xa0);|\u00a0', re.IGNORECASE), ' '),
)

_VOLATILE_RE = re.compile(
    r'\s(?:' + '|'.join(re.escape(name) for name in VOLATILE_ATTRIBUTES) + r')'
    r'=(?:"[^"]*"|\'[^\']*\'|[^\s>]+)',
    re.IGNORECASE,
)
_BR_RE = re.compile(r'<br\s*/?\s*>', re.IGNORECASE)
_HR_RE = re.compile(r'<hr\s*/?\s*>', re.IGNORECASE)
_EMPTY_PARAGRAPH_RE = re.compile(r'<p>(?:\s|<br/>)*</p>')
_LI_OPEN_P_RE = re.compile(r'<li>\s*<p>')
_LI_CLOSE_P_RE = re.compile(r'</p>\s*</li>')
_CDATA_LINK_BODY_RE = re.compile(
    r'<ac:plain-text-link-body>\s*<!\[CDATA\[(.*?)\]\]>\s*</ac:plain-text-link-body>',
    re.DOTALL,
)
_MACRO_OPEN_RE = re.compile(r'<ac:structured-macro\b[^>]*>')
_PARAMETER_RE = re.compile(r'\s*<ac:parameter\b([^>]*)>(.*?)</ac:parameter>', re.DOTALL)
_PARAMETER_NAME_RE = re.compile(r'ac:name\s*=\s*(?:"([^"]*)"|\'([^\']*)\')')
_ATTRIBUTE_RE = re.compile(r'([A-Za-z_:][A-Za-z0-9:._-]*)\s*=\s*("[^"]*"|\'[^\']*\'|[^\s"\'>/]+)')
_TAG_WITH_ATTRIBUTES_RE = re.compile(
    r'<(' + '|'.join(re.escape(tag) for tag in SORTED_ATTRIBUTE_TAGS) + r')'
    r'(?=[\s/>])([^>]*?)(\s*/)?>'
)


def normalize_storage(storage_text: str) -> str:
    """Return the canonical form of a storage-format body.

    Args:
        storage_text: XHTML in Confluence storage format

    Returns:
        Canonical text; equal inputs modulo editor noise give equal outputs
    """
    # Passes only shrink or reorder the text, so this terminates.
    current = storage_text or ''
    while True:
        normalized = _normalize_once(current)
        if normalized == current:
            return normalized
        current = normalized


def normalize_text_for_diff(text: str) -> str:
    """Unify line endings and drop trailing whitespace on every line."""
    unified = (text or '').replace('\r\n', '\n').replace('\r', '\n')
    return '\n'.join(line.rstrip() for line in unified.split('\n'))


def _normalize_once(text: str) -> str:
    text = text.replace('\r\n', '\n').replace('\r', '\n').strip()

    for pattern, replacement in ENTITY_REPLACEMENTS:
        text = pattern.sub(replacement, text)

    text = _VOLATILE_RE.sub('', text)
    text = _BR_RE.sub('<br/>', text)
    text = _HR_RE.sub('<hr/>', text)

    text = re.sub(r'[ \t]+', ' ', text)
    text = re.sub(r'\n{2,}', '\n', text)
    text = re.sub(r'>\s+<', '><', text)

    text = _EMPTY_PARAGRAPH_RE.sub('', text)
    text = _LI_OPEN_P_RE.sub('<li>', text)
    text = _LI_CLOSE_P_RE.sub('</li>', text)

    text = _CDATA_LINK_BODY_RE.sub(_unwrap_link_body, text)
    text = _sort_macro_parameters(text)
    text = _TAG_WITH_ATTRIBUTES_RE.sub(_sort_attributes, text)

    text = re.sub(r'>\s+<', '><', text)
    return text.strip()


def _unwrap_link_body(match: re.Match) -> str:
    body = re.sub(r'\s+', ' ', match.group(1)).strip()
    return f'<ac:plain-text-link-body>{escape(body)}</ac:plain-text-link-body>'


def _parameter_name(attributes: str) -> str:
    match = _PARAMETER_NAME_RE.search(attributes)
    if not match:
        return ''
    return (match.group(1) if match.group(1) is not None else match.group(2)).lower()


def _sort_macro_parameters(text: str) -> str:
    """Sort the leading run of ac:parameter children of every macro by name."""
    pieces = []
    position = 0
    for open_tag in _MACRO_OPEN_RE.finditer(text):
        if open_tag.start() < position:
            continue
        pieces.append(text[position:open_tag.end()])
        position = open_tag.end()

        parameters = []
        while True:
            match = _PARAMETER_RE.match(text, position)
            if not match:
                break
            parameters.append(match)
            position = match.end()

        ordered = sorted(parameters, key=lambda m: _parameter_name(m.group(1)))
        pieces.extend(m.group(0).strip() for m in ordered)

    pieces.append(text[position:])
    return ''.join(pieces)


def _sort_attributes(match: re.Match) -> str:
    tag, attribute_text, self_closing = match.group(1), match.group(2), match.group(3)
    attributes = _ATTRIBUTE_RE.findall(attribute_text)
    attributes.sort(key=lambda pair: pair[0].lower())
    rendered = ''.join(f' {name}={value}' for name, value in attributes)
    return f"<{tag}{rendered}{'/' if self_closing else ''}>"
