"""Parent/child placement of the notes in an export set.

Every note except the root gets exactly one parent inside the export set
(or the root). How that parent is chosen depends on the HierarchyMode:

    FLAT         root
    LINKS        a note in the set that links to it from closer to the root;
                 for notes the root cannot reach, an outbound link target
                 in the set; failing that, root
    FOLDER       nearest folder note upwards (index.md, then <folder>.md)
    FRONTMATTER  the note named by the ``parent`` frontmatter field
    HYBRID       FOLDER candidate, else LINKS candidate

When LINKS yields several candidates, the TieBreakPolicy picks one. The
result is then repaired: self edges and outside parents go to root, and
cycles are cut by re-parenting the note where the walk closed the loop.
"""

import logging
import posixpath
from collections import deque
from typing import Callable, Dict, List, Optional, Sequence

from .models import HierarchyMode, HierarchyResult, TieBreakPolicy, document_title

logger = logging.getLogger(__name__)


def is_folder_note(path: str) -> bool:
    """True for ``<dir>/index.md`` and eponymous ``<dir>/<dir>.md`` notes."""
    stem = document_title(path)
    folder = posixpath.basename(posixpath.dirname(path))
    return stem.lower() == 'index' or (bool(folder) and stem == folder)


def folder_candidates(path: str) -> List[str]:
    """Folder notes above a note, nearest first.

    A folder note is not its own folder's child, so for ``docs/guide/guide.md``
    the search starts at ``docs``.
    """
    extension = posixpath.splitext(path)[1]
    directory = posixpath.dirname(path)
    if is_folder_note(path):
        directory = posixpath.dirname(directory)

    candidates = []
    while directory:
        name = posixpath.basename(directory)
        for candidate in (f"{directory}/index{extension}", f"{directory}/{name}{extension}"):
            if candidate != path and candidate not in candidates:
                candidates.append(candidate)
        directory = posixpath.dirname(directory)
    return candidates


class HierarchyResolver:
    """Computes a HierarchyResult for one export set.

    Args:
        store: Document store providing links and parent declarations; only
            the LINKS, HYBRID and FRONTMATTER modes need it
    """

    def __init__(self, store=None):
        self.store = store

    def resolve(
        self,
        root: str,
        export_set: Sequence[str],
        mode: HierarchyMode,
        tie_break_policy: TieBreakPolicy = TieBreakPolicy.FIRST_SEEN,
    ) -> HierarchyResult:
        """Place every note of export_set under a parent.

        Args:
            root: Root note; its parent is always None
            export_set: Notes in traversal order (root included or not)
            mode: Parent selection strategy
            tie_break_policy: Choice among several link candidates

        Returns:
            HierarchyResult with parents, depths and parents-first order
        """
        members = list(dict.fromkeys([root, *export_set]))
        member_set = set(members)
        self._members = members
        self._member_set = member_set
        self._outbound: Dict[str, List[str]] = {}
        self._inbound: Optional[Dict[str, List[str]]] = None
        self._distance: Optional[Dict[str, int]] = None
        self._root = root
        self._policy = tie_break_policy

        choose: Dict[HierarchyMode, Callable[[str], Optional[str]]] = {
            HierarchyMode.FLAT: lambda doc: root,
            HierarchyMode.LINKS: self._links_candidate,
            HierarchyMode.FOLDER: self._folder_candidate,
            HierarchyMode.FRONTMATTER: self._frontmatter_candidate,
            HierarchyMode.HYBRID: lambda doc: self._folder_candidate(doc) or self._links_candidate(doc),
        }
        select = choose[HierarchyMode(mode)]

        parent_of: Dict[str, Optional[str]] = {}
        for doc in members:
            if doc == root:
                parent_of[doc] = None
                continue
            candidate = select(doc)
            if candidate is None or candidate == doc or candidate not in member_set:
                candidate = root
            parent_of[doc] = candidate

        parent_of[root] = None
        self._break_cycles(members, parent_of, root)

        depth_of = self._depths(members, parent_of)
        order = self._order(members, parent_of, root)
        logger.debug(f"Resolved {mode.value} hierarchy for {len(members)} note(s)")
        return HierarchyResult(parent_of=parent_of, depth_of=depth_of, order=order)

    # candidates

    def _links(self, doc: str) -> List[str]:
        if doc not in self._outbound:
            links = self.store.get_links(doc) if self.store is not None else []
            self._outbound[doc] = [
                link for link in dict.fromkeys(links)
                if link in self._member_set and link != doc
            ]
        return self._outbound[doc]

    def _linkers(self, doc: str) -> List[str]:
        if self._inbound is None:
            self._inbound = {member: [] for member in self._members}
            for member in self._members:
                for target in self._links(member):
                    self._inbound[target].append(member)
        return self._inbound.get(doc, [])

    def _root_distance(self) -> Dict[str, int]:
        if self._distance is None:
            distance = {self._root: 0}
            queue = deque([self._root])
            while queue:
                current = queue.popleft()
                for neighbour in self._links(current):
                    if neighbour not in distance:
                        distance[neighbour] = distance[current] + 1
                        queue.append(neighbour)
            self._distance = distance
        return self._distance

    def _pick(self, candidates: List[str]) -> Optional[str]:
        if not candidates:
            return None
        if self._policy == TieBreakPolicy.CLOSEST_TO_ROOT:
            distance = self._root_distance()
            unreachable = len(self._members) + 1
            return min(
                candidates,
                key=lambda c: (distance.get(c, unreachable), candidates.index(c)),
            )
        if self._policy == TieBreakPolicy.PREFER_FOLDER_INDEX:
            for candidate in candidates:
                if is_folder_note(candidate):
                    return candidate
        return candidates[0]

    def _links_candidate(self, doc: str) -> Optional[str]:
        # Parents sit strictly closer to the root, so linked notes never
        # choose each other.
        distance = self._root_distance()
        if doc in distance:
            candidates = [
                linker for linker in self._linkers(doc)
                if distance.get(linker, distance[doc]) < distance[doc]
            ]
        else:
            candidates = self._links(doc)
        return self._pick(list(candidates))

    def _folder_candidate(self, doc: str) -> Optional[str]:
        for candidate in folder_candidates(doc):
            if candidate in self._member_set:
                return candidate
        return None

    def _frontmatter_candidate(self, doc: str) -> Optional[str]:
        if self.store is None:
            return None
        declaration = self.store.get_parent_declaration(doc)
        if not declaration:
            return None

        for name in (declaration, declaration + '.md'):
            if name in self._member_set:
                return name

        resolve = getattr(self.store, 'resolve_link', None)
        if resolve is not None:
            resolved = resolve(declaration, doc)
            if resolved in self._member_set:
                return resolved

        wanted = document_title(declaration).lower()
        matches = sorted(m for m in self._members if document_title(m).lower() == wanted)
        return matches[0] if matches else None

    # repair and layout

    @staticmethod
    def _break_cycles(members: List[str], parent_of: Dict[str, Optional[str]], root: str) -> None:
        done = set()
        for start in members:
            if start in done:
                continue
            path: List[str] = []
            on_path = set()
            node: Optional[str] = start
            while node is not None and node not in done:
                if node in on_path:
                    logger.info(f"Hierarchy cycle through {node}; placing it under {root}")
                    parent_of[node] = root
                    break
                on_path.add(node)
                path.append(node)
                node = parent_of.get(node)
            done.update(path)

    @staticmethod
    def _depths(members: List[str], parent_of: Dict[str, Optional[str]]) -> Dict[str, int]:
        depth_of: Dict[str, int] = {}
        for member in members:
            chain = []
            node: Optional[str] = member
            while node is not None and node not in depth_of:
                chain.append(node)
                node = parent_of.get(node)
            base = -1 if node is None else depth_of[node]
            for offset, item in enumerate(reversed(chain), start=1):
                depth_of[item] = base + offset
        return depth_of

    @staticmethod
    def _order(members: List[str], parent_of: Dict[str, Optional[str]], root: str) -> List[str]:
        children: Dict[str, List[str]] = {member: [] for member in members}
        for member in members:
            parent = parent_of.get(member)
            if parent is not None:
                children.setdefault(parent, []).append(member)

        order: List[str] = []
        seen = set()
        stack = [root]
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            order.append(node)
            stack.extend(sorted(children.get(node, []), reverse=True))

        order.extend(sorted(member for member in members if member not in seen))
        return order


def resolve_hierarchy(
    root: str,
    export_set: Sequence[str],
    mode: HierarchyMode,
    tie_break_policy: TieBreakPolicy = TieBreakPolicy.FIRST_SEEN,
    store=None,
) -> HierarchyResult:
    """Functional shortcut for ``HierarchyResolver(store).resolve(...)``."""
    return HierarchyResolver(store).resolve(root, export_set, mode, tie_break_policy)


def intended_parent_id(
    path: str,
    hierarchy: HierarchyResult,
    settings,
    page_id_of: Callable[[str], Optional[str]],
) -> Optional[str]:
    """Confluence page id a note's page should live under.

    The root goes under the configured parent. Other notes go under their
    hierarchy parent's page, or the configured parent while that page does
    not exist yet. In flat mode with child_pages_under_root disabled every
    note sits directly under the configured parent.

    Args:
        path: Note path
        hierarchy: Resolved hierarchy of the export set
        settings: ExportSettings of the run
        page_id_of: Lookup of the page id currently mapped to a note
    """
    parent = hierarchy.parent_of.get(path)
    if parent is None:
        return settings.parent_page_id
    if settings.hierarchy_mode == HierarchyMode.FLAT and not settings.child_pages_under_root:
        return settings.parent_page_id
    return page_id_of(parent) or settings.parent_page_id
