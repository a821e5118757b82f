"""Review of a plan before it is applied.

Plan items are immutable. A user interface (the CLI here) dispatches
intents, and ``reduce_plan_item`` returns the updated item:

    SetSelected(True)        select; no effect on SKIP/CONFLICT items
    OverrideAction(action)   replace the action (None restores the planned one)
    SetApplyLabels(False)    do not touch labels; a label-only update becomes SKIP

PlanSession ties planning and applying together for one root note and lets
the target be changed between the two.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Union

from .models import ACTIONABLE, ExportReport, ExportSettings, HierarchyMode, PlanAction, PlanItem, TieBreakPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetSelected:
    selected: bool


@dataclass(frozen=True)
class OverrideAction:
    action: Optional[PlanAction]


@dataclass(frozen=True)
class SetApplyLabels:
    enabled: bool


PlanIntent = Union[SetSelected, OverrideAction, SetApplyLabels]


def reduce_plan_item(item: PlanItem, intent: PlanIntent) -> PlanItem:
    """Return item with intent applied; item itself is never modified.

    Raises:
        TypeError: For an unknown intent
    """
    if isinstance(intent, SetSelected):
        if intent.selected and item.effective_action not in ACTIONABLE:
            return item
        return replace(item, selected=intent.selected)

    if isinstance(intent, OverrideAction):
        action = PlanAction(intent.action) if intent.action is not None else None
        if action == item.action:
            action = None
        updated = replace(item, override_action=action)
        return replace(updated, selected=updated.effective_action in ACTIONABLE)

    if isinstance(intent, SetApplyLabels):
        updated = replace(item, apply_label_changes=intent.enabled)
        if not item.is_label_only_update:
            return updated
        if not intent.enabled:
            return replace(updated, override_action=PlanAction.SKIP, selected=False)
        if item.override_action == PlanAction.SKIP:
            return replace(updated, override_action=None, selected=True)
        return updated

    raise TypeError(f"Unknown plan intent: {intent!r}")


def apply_intent(items: List[PlanItem], path: str, intent: PlanIntent) -> List[PlanItem]:
    """Apply intent to the item for path; other items are returned as they are.

    Raises:
        KeyError: If no item has that path
    """
    if not any(item.path == path for item in items):
        raise KeyError(path)
    return [reduce_plan_item(item, intent) if item.path == path else item for item in items]


def select_all(items: List[PlanItem]) -> List[PlanItem]:
    return [reduce_plan_item(item, SetSelected(True)) for item in items]


def select_none(items: List[PlanItem]) -> List[PlanItem]:
    return [reduce_plan_item(item, SetSelected(False)) for item in items]


def select_by_action(items: List[PlanItem], action: PlanAction) -> List[PlanItem]:
    """Select exactly the items whose effective action is action."""
    action = PlanAction(action)
    return [
        reduce_plan_item(item, SetSelected(item.effective_action == action))
        for item in items
    ]


def summarize_plan(items: List[PlanItem]) -> Dict[PlanAction, int]:
    """Count items per effective action; every action is present."""
    counts = {action: 0 for action in PlanAction}
    for item in items:
        counts[item.effective_action] += 1
    return counts


_PAGE_ID_PATTERNS = (
    re.compile(r'^\s*(\d+)\s*$'),
    re.compile(r'/pages/(\d+)'),
    re.compile(r'[?&]pageId=(\d+)'),
    re.compile(r'/content/(\d+)'),
    re.compile(r'(\d{6,})'),
)


def extract_page_id(text: Optional[str]) -> Optional[str]:
    """Page id from a bare id or a Confluence page URL.

    Example:
        >>> extract_page_id("https://x.atlassian.net/wiki/spaces/DOCS/pages/98765/Intro")
        '98765'
    """
    if not text:
        return None
    for pattern in _PAGE_ID_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


@dataclass(frozen=True)
class ReviewContext:
    """Target chosen during review; changing it requires a new plan."""
    space_key: str
    parent_page_id: Optional[str] = None
    hierarchy_mode: HierarchyMode = HierarchyMode.FLAT
    tie_break_policy: TieBreakPolicy = TieBreakPolicy.FIRST_SEEN

    @classmethod
    def from_settings(cls, settings: ExportSettings) -> 'ReviewContext':
        return cls(
            space_key=settings.space_key,
            parent_page_id=settings.parent_page_id,
            hierarchy_mode=settings.hierarchy_mode,
            tie_break_policy=settings.tie_break_policy,
        )

    def apply(self, settings: ExportSettings) -> ExportSettings:
        """Copy of settings with this context's target."""
        return replace(
            settings,
            space_key=self.space_key,
            parent_page_id=self.parent_page_id,
            hierarchy_mode=HierarchyMode(self.hierarchy_mode),
            tie_break_policy=TieBreakPolicy(self.tie_break_policy),
        )


class PlanSession:
    """Plan, review and apply the publication of one root note.

    Args:
        root: Root note path
        planner_factory: Returns a planner (with ``plan(root)``) for a context
        orchestrator_factory: Returns an orchestrator (with ``export``) for a context
    """

    def __init__(
        self,
        root: str,
        planner_factory: Callable[[ReviewContext], object],
        orchestrator_factory: Callable[[ReviewContext], object],
    ):
        self.root = root
        self.planner_factory = planner_factory
        self.orchestrator_factory = orchestrator_factory
        self.items: List[PlanItem] = []

    def rebuild(self, context: ReviewContext) -> List[PlanItem]:
        """Re-run planning for context, discarding earlier review changes."""
        planner = self.planner_factory(context)
        self.items = planner.plan(self.root)
        logger.info(f"Planned {len(self.items)} note(s) for {self.root}")
        return self.items

    def dispatch(self, path: str, intent: PlanIntent) -> List[PlanItem]:
        self.items = apply_intent(self.items, path, intent)
        return self.items

    def confirm(
        self,
        selected_items: List[PlanItem],
        context: ReviewContext,
        dry_run: bool = False,
    ) -> ExportReport:
        """Apply the selected actionable items.

        Items are handed over with their effective action as the action, so
        the orchestrator does not need to know about overrides.
        """
        to_apply = [
            replace(item, action=item.effective_action, override_action=None)
            for item in selected_items
            if item.selected and item.effective_action in ACTIONABLE
        ]
        logger.info(f"Applying {len(to_apply)} of {len(selected_items)} plan item(s)")
        orchestrator = self.orchestrator_factory(context)
        return orchestrator.export(self.root, items=to_apply, dry_run=dry_run)
