"""Selection of the notes that take part in a publish run."""

import logging
from collections import deque
from typing import Dict, List

from .models import ExportMode

logger = logging.getLogger(__name__)


def _backlinks(store, path: str) -> List[str]:
    get_backlinks = getattr(store, 'get_backlinks', None)
    if get_backlinks is not None:
        return list(get_backlinks(path))
    return [doc for doc in store.list_documents() if doc != path and path in store.get_links(doc)]


def build_export_set(root: str, mode: ExportMode, store, graph_depth: int = 1) -> List[str]:
    """Collect the notes to publish around a root note.

    Args:
        root: Vault-relative path of the root note
        mode: BACKLINKS (notes linking to root), OUTLINKS (notes root links
            to) or GRAPH (both directions, breadth first)
        store: Document store
        graph_depth: Maximum link distance from root in GRAPH mode

    Returns:
        Paths with root first and no duplicates, in traversal order
    """
    mode = ExportMode(mode)
    members: List[str] = [root]

    if mode == ExportMode.BACKLINKS:
        members.extend(sorted(_backlinks(store, root)))
    elif mode == ExportMode.OUTLINKS:
        members.extend(store.get_links(root))
    else:
        distance: Dict[str, int] = {root: 0}
        queue = deque([root])
        while queue:
            current = queue.popleft()
            if distance[current] >= graph_depth:
                continue
            neighbours = list(store.get_links(current)) + sorted(_backlinks(store, current))
            for neighbour in neighbours:
                if neighbour not in distance:
                    distance[neighbour] = distance[current] + 1
                    members.append(neighbour)
                    queue.append(neighbour)

    export_set = list(dict.fromkeys(doc for doc in members if doc))
    logger.info(f"Export set for {root} ({mode.value}): {len(export_set)} note(s)")
    return export_set
