"""Data models for the publishing engine.

All models use dataclasses; strategy selections are closed enums so every
decision table over them is total.
"""

import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class ExportMode(str, Enum):
    """Which notes around the root take part in a run."""
    BACKLINKS = 'backlinks'
    OUTLINKS = 'outlinks'
    GRAPH = 'graph'


class HierarchyMode(str, Enum):
    """How each note's parent page is chosen."""
    FLAT = 'flat'
    LINKS = 'links'
    FOLDER = 'folder'
    FRONTMATTER = 'frontmatter'
    HYBRID = 'hybrid'


class TieBreakPolicy(str, Enum):
    """How one parent is picked among several candidates."""
    FIRST_SEEN = 'firstSeen'
    CLOSEST_TO_ROOT = 'closestToRoot'
    PREFER_FOLDER_INDEX = 'preferFolderIndex'


class PlanAction(str, Enum):
    CREATE = 'create'
    UPDATE = 'update'
    RECREATE = 'recreate'
    CONFLICT = 'conflict'
    SKIP = 'skip'


ACTIONABLE = (PlanAction.CREATE, PlanAction.UPDATE, PlanAction.RECREATE)


def document_title(path: str) -> str:
    """Page title for a note: its file name without extension."""
    return posixpath.splitext(posixpath.basename(path))[0]


@dataclass
class IdentityEntry:
    """Association between a note and the Confluence page it was published to.

    Attributes:
        document_path: Vault-relative note path
        remote_page_id: Confluence page id
        title: Page title at the last publish
        web_link: Browser URL of the page
        updated_at: ISO 8601 timestamp of the last successful write
    """
    document_path: str
    remote_page_id: str
    title: str
    web_link: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class HierarchyResult:
    """Parent/child placement of an export set.

    Attributes:
        parent_of: Parent path of every note; None for the root
        depth_of: Distance from the root (root is 0)
        order: Parents-first processing order
    """
    parent_of: Dict[str, Optional[str]] = field(default_factory=dict)
    depth_of: Dict[str, int] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)


@dataclass
class ExportSettings:
    """Publishing target and strategy selection for one run.

    Attributes:
        space_key: Confluence space the pages live in
        parent_page_id: Default parent page for the root (None = space top level)
        export_mode: Traversal used to build the export set
        graph_depth: BFS depth for ExportMode.GRAPH
        hierarchy_mode: Parent selection strategy
        tie_break_policy: Candidate selection among several parents
        update_existing: Update mapped pages and match unmapped notes by title
        sync_labels: Turn note tags into page labels
        upload_attachments: Upload embedded images
        child_pages_under_root: In flat mode, nest every note under the root page
    """
    space_key: str
    parent_page_id: Optional[str] = None
    export_mode: ExportMode = ExportMode.OUTLINKS
    graph_depth: int = 1
    hierarchy_mode: HierarchyMode = HierarchyMode.FLAT
    tie_break_policy: TieBreakPolicy = TieBreakPolicy.FIRST_SEEN
    update_existing: bool = True
    sync_labels: bool = True
    upload_attachments: bool = True
    child_pages_under_root: bool = True


@dataclass(frozen=True)
class PlanItem:
    """Per-note publication decision, shown for review before applying.

    Plan items are immutable; review changes go through
    ``plan_review.reduce_plan_item``.
    """
    path: str
    title: str
    action: PlanAction
    reason: str = ''
    override_action: Optional[PlanAction] = None
    remote_id: Optional[str] = None
    web_link: Optional[str] = None
    labels_desired: List[str] = field(default_factory=list)
    labels_existing: Optional[List[str]] = None
    labels_to_add: List[str] = field(default_factory=list)
    labels_to_remove: List[str] = field(default_factory=list)
    diff_old: Optional[str] = None
    diff_new: Optional[str] = None
    selected: bool = False
    apply_label_changes: bool = True
    title_changed: bool = False
    content_changed: bool = False

    @property
    def effective_action(self) -> PlanAction:
        return self.override_action or self.action

    @property
    def has_label_delta(self) -> bool:
        return bool(self.labels_to_add or self.labels_to_remove)

    @property
    def is_label_only_update(self) -> bool:
        return (
            self.action == PlanAction.UPDATE
            and self.has_label_delta
            and not self.title_changed
            and not self.content_changed
        )


@dataclass
class DryRunDecision:
    """What pass 1 would have done for a note."""
    path: str
    action: str
    title: str
    parent_id: Optional[str] = None
    page_id: Optional[str] = None


@dataclass
class ExportReport:
    """Outcome of an export run."""
    dry_run: bool = False
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    recreated: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    pass1_order: List[str] = field(default_factory=list)
    pass2_order: List[str] = field(default_factory=list)
    decisions: List[DryRunDecision] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures
