"""Composite pattern matchers over the parsed Markdown block tree.

Markdown is first parsed into mistune's AST (a list of block tokens with
nested inline children). Obsidian callouts and task lists are not native
Markdown constructs, so they are recognised afterwards by the matchers in
this module. Each matcher inspects one block or a run of sibling blocks and
returns a small tagged value the renderer dispatches on.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

Token = Dict[str, Any]

CALLOUT_HEADER_PATTERN = re.compile(r'^\s*\[!([A-Za-z][\w-]*)\][+-]?\s*(.*?)\s*$')

_BREAK_TYPES = ('softbreak', 'linebreak')


@dataclass(frozen=True)
class PanelTheme:
    """Colors of a Confluence panel macro."""
    border_color: str
    background_color: str
    title_background_color: str
    title_color: str


PANEL_THEMES: Dict[str, PanelTheme] = {
    'info': PanelTheme('#4C9AFF', '#DEEBFF', '#4C9AFF', '#FFFFFF'),
    'warning': PanelTheme('#FFAB00', '#FFFAE6', '#FFAB00', '#172B4D'),
    'danger': PanelTheme('#DE350B', '#FFEBE6', '#DE350B', '#FFFFFF'),
    'success': PanelTheme('#36B37E', '#E3FCEF', '#36B37E', '#FFFFFF'),
    'tip': PanelTheme('#00B8D9', '#E6FCFF', '#00B8D9', '#172B4D'),
    'question': PanelTheme('#6554C0', '#EAE6FF', '#6554C0', '#FFFFFF'),
}

CALLOUT_THEME_ALIASES: Dict[str, str] = {
    'default': 'info',
    'info': 'info',
    'note': 'info',
    'abstract': 'info',
    'summary': 'info',
    'warning': 'warning',
    'caution': 'warning',
    'attention': 'warning',
    'danger': 'danger',
    'error': 'danger',
    'fail': 'danger',
    'failure': 'danger',
    'bug': 'danger',
    'success': 'success',
    'done': 'success',
    'check': 'success',
    'tip': 'tip',
    'hint': 'tip',
    'important': 'tip',
    'question': 'question',
    'help': 'question',
    'faq': 'question',
}


def panel_theme(kind: str) -> PanelTheme:
    """Return the panel colors for a callout type; unknown types use info."""
    return PANEL_THEMES[CALLOUT_THEME_ALIASES.get((kind or '').lower(), 'info')]


@dataclass
class Callout:
    """A block quote recognised as ``> [!type] title``.

    Attributes:
        kind: Lowercased callout type
        title: Header title, or the upper-cased type when none was given
        body: Block tokens that make up the panel body
    """
    kind: str
    title: str
    body: List[Token] = field(default_factory=list)


@dataclass
class TaskItem:
    checked: bool
    children: List[Token] = field(default_factory=list)


@dataclass
class TaskRun:
    """Consecutive list items that carry a checkbox."""
    items: List[TaskItem] = field(default_factory=list)


@dataclass
class PlainRun:
    """Consecutive ordinary list items; start is the first item's ordinal."""
    items: List[Token] = field(default_factory=list)
    start: int = 1


ListRun = Union[TaskRun, PlainRun]


def inline_text(tokens: List[Token]) -> str:
    """Flatten inline tokens to their plain text."""
    parts = []
    for token in tokens or []:
        token_type = token.get('type')
        if token_type in _BREAK_TYPES:
            parts.append('\n')
        elif 'children' in token:
            parts.append(inline_text(token['children']))
        elif token_type == 'wikilink':
            attrs = token.get('attrs', {})
            parts.append(attrs.get('alias') or attrs.get('target', ''))
        else:
            parts.append(token.get('raw', ''))
    return ''.join(parts)


def _significant(blocks: List[Token]) -> List[Token]:
    return [block for block in blocks or [] if block.get('type') != 'blank_line']


def match_callout(block: Token) -> Optional[Callout]:
    """Recognise an Obsidian callout.

    The header is the first line of the quote's first paragraph, up to the
    first soft or hard break. Whatever follows that break stays in the body
    as a paragraph, followed by the quote's remaining blocks.

    Args:
        block: A block token

    Returns:
        Callout if the block is a callout quote, else None
    """
    if block.get('type') != 'block_quote':
        return None

    children = _significant(block.get('children', []))
    if not children or children[0].get('type') != 'paragraph':
        return None

    inlines = children[0].get('children', [])
    split = next(
        (index for index, token in enumerate(inlines) if token.get('type') in _BREAK_TYPES),
        len(inlines),
    )
    match = CALLOUT_HEADER_PATTERN.match(inline_text(inlines[:split]))
    if not match:
        return None

    kind = match.group(1).lower()
    title = match.group(2) or kind.upper()

    body: List[Token] = []
    remainder = inlines[split + 1:]
    if remainder:
        body.append({'type': 'paragraph', 'children': remainder})
    body.extend(children[1:])
    return Callout(kind=kind, title=title, body=body)


def is_task_item(item: Token) -> bool:
    return item.get('type') == 'task_list_item'


def has_task_items(list_block: Token) -> bool:
    return any(is_task_item(item) for item in list_block.get('children', []))


def split_list_runs(list_block: Token) -> List[ListRun]:
    """Partition a list's items into task runs and plain runs, in order.

    Plain items in a list that also holds tasks keep their place between the
    task runs instead of being dropped.

    Args:
        list_block: A ``list`` token

    Returns:
        Runs in source order
    """
    start = (list_block.get('attrs') or {}).get('start', 1) or 1
    runs: List[ListRun] = []
    for position, item in enumerate(_significant(list_block.get('children', []))):
        if is_task_item(item):
            checked = bool((item.get('attrs') or {}).get('checked'))
            task = TaskItem(checked=checked, children=item.get('children', []))
            if runs and isinstance(runs[-1], TaskRun):
                runs[-1].items.append(task)
            else:
                runs.append(TaskRun(items=[task]))
        else:
            if runs and isinstance(runs[-1], PlainRun):
                runs[-1].items.append(item)
            else:
                runs.append(PlainRun(items=[item], start=start + position))
    return runs
