"""Publishing engine: plans and applies the export of vault notes to Confluence."""

from .attachments import AttachmentResult, AttachmentSync
from .errors import (
    IdentityMapError,
    MissingPageIdError,
    PageOwnershipError,
    PublishError,
    RunLockError,
)
from .export_set import build_export_set
from .hierarchy import HierarchyResolver, intended_parent_id, resolve_hierarchy
from .identity_map import IdentityMap, YamlMappingFile
from .labels import desired_labels, label_delta, to_confluence_label
from .models import (
    DryRunDecision,
    ExportMode,
    ExportReport,
    ExportSettings,
    HierarchyMode,
    HierarchyResult,
    IdentityEntry,
    PlanAction,
    PlanItem,
    TieBreakPolicy,
)
from .orchestrator import ExportOrchestrator
from .plan_builder import PlanBuilder
from .plan_review import (
    OverrideAction,
    PlanSession,
    ReviewContext,
    SetApplyLabels,
    SetSelected,
    apply_intent,
    extract_page_id,
    reduce_plan_item,
    select_all,
    select_by_action,
    select_none,
    summarize_plan,
)
from .rendering import DocumentRenderer
from .run_lock import RunLock
from .snapshot_store import SnapshotStore

__all__ = [
    'AttachmentResult',
    'AttachmentSync',
    'DocumentRenderer',
    'DryRunDecision',
    'ExportMode',
    'ExportOrchestrator',
    'ExportReport',
    'ExportSettings',
    'HierarchyMode',
    'HierarchyResolver',
    'HierarchyResult',
    'IdentityEntry',
    'IdentityMap',
    'IdentityMapError',
    'MissingPageIdError',
    'OverrideAction',
    'PageOwnershipError',
    'PlanAction',
    'PlanBuilder',
    'PlanItem',
    'PlanSession',
    'PublishError',
    'ReviewContext',
    'RunLock',
    'RunLockError',
    'SetApplyLabels',
    'SetSelected',
    'SnapshotStore',
    'TieBreakPolicy',
    'YamlMappingFile',
    'apply_intent',
    'build_export_set',
    'desired_labels',
    'extract_page_id',
    'intended_parent_id',
    'label_delta',
    'reduce_plan_item',
    'resolve_hierarchy',
    'select_all',
    'select_by_action',
    'select_none',
    'summarize_plan',
    'to_confluence_label',
]
