"""Conversion of note tags to Confluence labels."""

import re
from typing import Iterable, List, Optional, Tuple

_INVALID_LABEL_CHARS = re.compile(r'[^a-z0-9-]')
_DASH_RUNS = re.compile(r'-{2,}')


def to_confluence_label(tag: str) -> str:
    """Turn a tag such as ``#Project/Alpha`` into a label (``project-alpha``)."""
    label = (tag or '').strip().lower().lstrip('#')
    label = label.replace('/', '-')
    label = _INVALID_LABEL_CHARS.sub('-', label)
    label = _DASH_RUNS.sub('-', label)
    return label.strip('-')


def desired_labels(tags: Iterable[str]) -> List[str]:
    """Labels for a note's tags, without empties or duplicates, in tag order."""
    labels: List[str] = []
    for tag in tags or []:
        label = to_confluence_label(tag)
        if label and label not in labels:
            labels.append(label)
    return labels


def label_delta(desired: Iterable[str], existing: Optional[Iterable[str]]) -> Tuple[List[str], List[str]]:
    """Labels to add and to remove so a page carries exactly the desired set.

    Returns:
        Tuple of (to_add, to_remove); to_add keeps desired order, to_remove is sorted
    """
    desired = list(desired or [])
    existing = set(existing or [])
    to_add = [label for label in desired if label not in existing]
    to_remove = sorted(existing - set(desired))
    return to_add, to_remove
