"""Per-note publication plan, built before anything is written.

Each note of the export set is classified as one of five actions:

    CREATE    no page yet
    UPDATE    page exists and title, body or labels differ
    RECREATE  mapped page was deleted in Confluence
    CONFLICT  a page with the title exists outside the target tree
    SKIP      nothing to do, or the page state could not be verified

The body comparison uses the last published storage snapshot as baseline
when there is one, so Confluence's own reformatting of stored pages does not
show up as a change.
"""

import logging
from typing import List, Optional, Tuple

from src.confluence_client.errors import PageNotFoundError
from src.content_converter.storage_converter import StorageConverter
from src.content_converter.storage_normalizer import normalize_storage, normalize_text_for_diff
from src.models.confluence_page import ConfluencePage

from .export_set import build_export_set
from .hierarchy import intended_parent_id, resolve_hierarchy
from .identity_map import IdentityMap
from .labels import desired_labels, label_delta
from .models import ACTIONABLE, ExportSettings, HierarchyResult, PlanAction, PlanItem, document_title
from .rendering import DocumentRenderer
from .snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


class PlanBuilder:
    """Builds the list of PlanItem for an export set.

    Planning only reads: it fetches and searches pages but never writes to
    Confluence, the identity map or the snapshot store.

    Args:
        store: Document store
        remote: Remote content service (APIWrapper or compatible)
        identity_map: Loaded identity map
        snapshots: Snapshot store of the vault
        converter: Markdown to storage converter
        settings: Target and strategy selection
    """

    def __init__(
        self,
        store,
        remote,
        identity_map: IdentityMap,
        snapshots: SnapshotStore,
        converter: StorageConverter,
        settings: ExportSettings,
    ):
        self.store = store
        self.remote = remote
        self.identity_map = identity_map
        self.snapshots = snapshots
        self.converter = converter
        self.settings = settings

    def plan(self, root: str) -> List[PlanItem]:
        """Build the export set and hierarchy for root, then plan it."""
        export_set = build_export_set(
            root, self.settings.export_mode, self.store, self.settings.graph_depth
        )
        hierarchy = resolve_hierarchy(
            root,
            export_set,
            self.settings.hierarchy_mode,
            self.settings.tie_break_policy,
            self.store,
        )
        return self.build_plan(export_set, hierarchy)

    def build_plan(self, export_set: List[str], hierarchy: HierarchyResult) -> List[PlanItem]:
        """Classify every note of the export set.

        Items come in hierarchy order. A note whose planning fails is
        reported as SKIP with the error as reason; the other notes are still
        planned.

        Args:
            export_set: Notes of the run
            hierarchy: Parent/child placement of those notes

        Returns:
            One PlanItem per note
        """
        members = set(export_set)
        order = [path for path in hierarchy.order if path in members]
        order.extend(path for path in export_set if path not in order)

        renderer = DocumentRenderer(
            self.store, self.converter, self.identity_map, self.settings.space_key, export_set
        )

        items = []
        for path in order:
            try:
                item = self._plan_document(path, hierarchy, renderer)
            except Exception as e:
                logger.warning(f"Planning failed for {path}: {e}")
                item = PlanItem(
                    path=path,
                    title=document_title(path),
                    action=PlanAction.SKIP,
                    reason=f"Planning failed: {e}",
                )
            logger.debug(f"Plan: {path} -> {item.action.value} ({item.reason})")
            items.append(item)
        return items

    def _page_id_of(self, path: str) -> Optional[str]:
        entry = self.identity_map.get(path)
        return entry.remote_page_id if entry else None

    def _plan_document(self, path: str, hierarchy: HierarchyResult, renderer: DocumentRenderer) -> PlanItem:
        title = document_title(path)
        markdown = renderer.publish_markdown(path)
        new_storage = normalize_storage(renderer.render(path, markdown))
        desired = desired_labels(self.store.get_tags(path)) if self.settings.sync_labels else []

        entry = self.identity_map.get(path)
        if entry is not None:
            try:
                page = self.remote.get_page(entry.remote_page_id)
            except PageNotFoundError:
                return PlanItem(
                    path=path,
                    title=title,
                    action=PlanAction.RECREATE,
                    reason=f"Page {entry.remote_page_id} no longer exists",
                    remote_id=entry.remote_page_id,
                    web_link=entry.web_link,
                    labels_desired=desired,
                    labels_to_add=list(desired),
                    diff_old=self.snapshots.read_snapshot(path) or '',
                    diff_new=markdown,
                    selected=True,
                    content_changed=True,
                )
            except Exception as e:
                return self._skip(path, title, f"Could not verify mapped page: {e}", entry.remote_page_id)
            return self._compare(path, title, page, markdown, new_storage, desired)

        if not self.settings.update_existing:
            return self._create(path, title, markdown, desired, "New page")

        try:
            page = self.remote.find_page_by_title(self.settings.space_key, title)
        except Exception as e:
            return self._skip(path, title, f"Search failed: {e}")

        if page is None:
            return self._create(path, title, markdown, desired, "No page with this title")

        owner = self.identity_map.find_by_page_id(page.page_id)
        if owner is not None and owner.document_path != path:
            return PlanItem(
                path=path,
                title=title,
                action=PlanAction.CONFLICT,
                reason=f"Page '{title}' is already published from {owner.document_path}",
                remote_id=page.page_id,
                web_link=page.web_link,
                labels_desired=desired,
                diff_old=normalize_storage(page.storage),
                diff_new=new_storage,
            )

        parent_id = intended_parent_id(path, hierarchy, self.settings, self._page_id_of)
        if not self._in_scope(page, parent_id):
            return PlanItem(
                path=path,
                title=title,
                action=PlanAction.CONFLICT,
                reason=f"Page '{title}' already exists outside the target parent",
                remote_id=page.page_id,
                web_link=page.web_link,
                labels_desired=desired,
                diff_old=normalize_storage(page.storage),
                diff_new=new_storage,
            )
        return self._compare(path, title, page, markdown, new_storage, desired)

    def _in_scope(self, page: ConfluencePage, parent_id: Optional[str]) -> bool:
        scope = {pid for pid in (parent_id, self.settings.parent_page_id) if pid}
        if not scope:
            return True
        return any(ancestor in scope for ancestor in page.ancestors)

    def _existing_labels(self, page: ConfluencePage) -> Optional[List[str]]:
        try:
            return list(self.remote.get_labels(page.page_id))
        except Exception as e:
            logger.warning(f"Could not read labels of page {page.page_id}: {e}")
            return None

    def _diff_panes(self, path: str, markdown: str, baseline: str, new_storage: str) -> Tuple[str, str]:
        source_snapshot = self.snapshots.read_snapshot(path)
        if source_snapshot is not None:
            old, new = source_snapshot, markdown
        else:
            old, new = baseline, new_storage
        return normalize_text_for_diff(old), normalize_text_for_diff(new)

    def _compare(
        self,
        path: str,
        title: str,
        page: ConfluencePage,
        markdown: str,
        new_storage: str,
        desired: List[str],
    ) -> PlanItem:
        snapshot = self.snapshots.read_storage_snapshot(path)
        baseline = normalize_storage(snapshot if snapshot is not None else page.storage)

        title_changed = page.title != title
        content_changed = baseline != new_storage

        existing: Optional[List[str]] = None
        to_add: List[str] = []
        to_remove: List[str] = []
        if self.settings.sync_labels:
            existing = self._existing_labels(page)
            if existing is not None:
                to_add, to_remove = label_delta(desired, existing)

        if title_changed:
            action, reason = PlanAction.UPDATE, f"Title changed from '{page.title}'"
        elif content_changed:
            action, reason = PlanAction.UPDATE, "Content changed"
        elif to_add or to_remove:
            action, reason = PlanAction.UPDATE, "Labels changed"
        else:
            action, reason = PlanAction.SKIP, "No changes"

        diff_old, diff_new = self._diff_panes(path, markdown, baseline, new_storage)
        return PlanItem(
            path=path,
            title=title,
            action=action,
            reason=reason,
            remote_id=page.page_id,
            web_link=page.web_link,
            labels_desired=desired,
            labels_existing=existing,
            labels_to_add=to_add,
            labels_to_remove=to_remove,
            diff_old=diff_old,
            diff_new=diff_new,
            selected=action in ACTIONABLE,
            title_changed=title_changed,
            content_changed=content_changed,
        )

    @staticmethod
    def _create(path: str, title: str, markdown: str, desired: List[str], reason: str) -> PlanItem:
        return PlanItem(
            path=path,
            title=title,
            action=PlanAction.CREATE,
            reason=reason,
            labels_desired=desired,
            labels_to_add=list(desired),
            diff_old='',
            diff_new=markdown,
            selected=True,
            content_changed=True,
        )

    @staticmethod
    def _skip(path: str, title: str, reason: str, remote_id: Optional[str] = None) -> PlanItem:
        logger.warning(f"{path}: {reason}")
        return PlanItem(
            path=path,
            title=title,
            action=PlanAction.SKIP,
            reason=reason,
            remote_id=remote_id,
        )
