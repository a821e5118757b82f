"""Two-pass export of a note set to Confluence.

Pass 1 makes sure every note has a page, parents before children, so each
child can be created under its parent's page. Because sibling pages may not
exist yet, pages are created with links to unpublished notes left as text.

Pass 2 renders every note again, now with all links resolvable, and
updates the pages whose body or title differs from what was last published.

A failure for one note is recorded in the report and the run goes on.
Labels, attachments and snapshot writes never fail a note.
"""

import logging
from typing import Dict, List, Optional

from src.confluence_client.errors import PageNotFoundError
from src.content_converter.storage_converter import StorageConverter
from src.content_converter.storage_normalizer import normalize_storage

from .attachments import AttachmentSync
from .errors import IdentityMapError, MissingPageIdError, PageOwnershipError
from .export_set import build_export_set
from .hierarchy import intended_parent_id, resolve_hierarchy
from .identity_map import IdentityMap, utc_now
from .labels import desired_labels, label_delta
from .models import (
    ACTIONABLE,
    DryRunDecision,
    ExportReport,
    ExportSettings,
    HierarchyResult,
    IdentityEntry,
    PlanAction,
    PlanItem,
    document_title,
)
from .rendering import DocumentRenderer
from .snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

# Identity map is persisted after this many notes in pass 1
SAVE_INTERVAL = 5


class ExportOrchestrator:
    """Runs an export, optionally restricted to reviewed plan items.

    Args:
        store: Document store
        remote: Remote content service
        identity_map: Loaded identity map; updated and saved during the run
        snapshots: Snapshot store; written after each successful write
        converter: Markdown to storage converter
        settings: Target and strategy selection
        attachments: Attachment uploader (defaults to AttachmentSync)
    """

    def __init__(
        self,
        store,
        remote,
        identity_map: IdentityMap,
        snapshots: SnapshotStore,
        converter: StorageConverter,
        settings: ExportSettings,
        attachments: Optional[AttachmentSync] = None,
    ):
        self.store = store
        self.remote = remote
        self.identity_map = identity_map
        self.snapshots = snapshots
        self.converter = converter
        self.settings = settings
        self.attachments = attachments or AttachmentSync(store, remote)

    def export(self, root: str, items: Optional[List[PlanItem]] = None, dry_run: bool = False) -> ExportReport:
        """Publish root and its export set.

        Args:
            root: Root note path
            items: Reviewed plan items; when given only their actionable
                items are processed, with the item's effective action
            dry_run: Record pass 1 decisions without writing anything

        Returns:
            ExportReport of the run
        """
        report = ExportReport(dry_run=dry_run)
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

        planned: Optional[Dict[str, PlanItem]] = None
        order = list(hierarchy.order)
        if items is not None:
            planned = {
                item.path: item for item in items
                if item.effective_action in ACTIONABLE
            }
            order = [path for path in order if path in planned]

        logger.info(f"Pass 1: ensuring {len(order)} page(s) exist")
        renderer = DocumentRenderer(
            self.store, self.converter, self.identity_map, self.settings.space_key
        )
        for index, path in enumerate(order, start=1):
            item = planned.get(path) if planned is not None else None
            try:
                if self._ensure_page(path, hierarchy, item, renderer, report, dry_run):
                    report.pass1_order.append(path)
            except Exception as e:
                logger.error(f"Pass 1 failed for {path}: {e}")
                report.failures[path] = str(e)
            if not dry_run and index % SAVE_INTERVAL == 0:
                self._save_identity_map(report)

        if dry_run:
            logger.info(f"Dry run: {len(report.decisions)} decision(s) recorded, nothing written")
            return report

        self._save_identity_map(report)

        logger.info(f"Pass 2: updating content of {len(report.pass1_order)} page(s)")
        for path in report.pass1_order:
            try:
                self._update_content(path, renderer, report)
                report.pass2_order.append(path)
            except Exception as e:
                logger.error(f"Pass 2 failed for {path}: {e}")
                report.failures[path] = str(e)

        self._save_identity_map(report)
        return report

    # pass 1

    def _page_id_of(self, path: str) -> Optional[str]:
        entry = self.identity_map.get(path)
        return entry.remote_page_id if entry else None

    def _ensure_page(
        self,
        path: str,
        hierarchy: HierarchyResult,
        item: Optional[PlanItem],
        renderer: DocumentRenderer,
        report: ExportReport,
        dry_run: bool,
    ) -> bool:
        """Create or adopt the page of a note. Returns False when the note is left alone."""
        title = document_title(path)
        parent_id = intended_parent_id(path, hierarchy, self.settings, self._page_id_of)
        entry = self.identity_map.get(path)

        adopted = None
        if item is not None:
            action = item.effective_action
            if action == PlanAction.UPDATE:
                adopted = entry.remote_page_id if entry else item.remote_id
                if not adopted:
                    raise MissingPageIdError(path)
        elif entry is not None:
            if not self.settings.update_existing:
                logger.info(f"{path}: mapped page {entry.remote_page_id} kept, updates disabled")
                if dry_run:
                    report.decisions.append(DryRunDecision(path, PlanAction.SKIP.value, title, parent_id, entry.remote_page_id))
                return False
            try:
                self.remote.get_page(entry.remote_page_id)
                action, adopted = PlanAction.UPDATE, entry.remote_page_id
            except PageNotFoundError:
                logger.warning(f"{path}: page {entry.remote_page_id} is gone, recreating")
                action = PlanAction.RECREATE
                if not dry_run:
                    self.identity_map.remove(path)
        elif self.settings.update_existing:
            found = self.remote.find_page_by_title(self.settings.space_key, title)
            if found is not None:
                owner = self.identity_map.find_by_page_id(found.page_id)
                if owner is not None and owner.document_path != path:
                    raise PageOwnershipError(path, found.page_id, owner.document_path)
                action, adopted = PlanAction.UPDATE, found.page_id
                if not dry_run:
                    self.identity_map.set(IdentityEntry(path, found.page_id, title, found.web_link, utc_now()))
            else:
                action = PlanAction.CREATE
        else:
            action = PlanAction.CREATE

        if dry_run:
            report.decisions.append(DryRunDecision(path, action.value, title, parent_id, adopted))
            return True

        markdown = renderer.publish_markdown(path)
        if adopted is None:
            storage = renderer.render(path, markdown)
            page = self.remote.create_page(self.settings.space_key, title, storage, parent_id)
            if page is None or not page.page_id:
                raise MissingPageIdError(path)
            page_id = page.page_id
            self.identity_map.set(IdentityEntry(path, page_id, title, page.web_link, utc_now()))
            self._write_snapshots(path, markdown, normalize_storage(storage), report)
            if action == PlanAction.RECREATE:
                report.recreated.append(path)
            else:
                report.created.append(path)
            logger.info(f"Created page {page_id} for {path}")
        else:
            page_id = adopted
            if self.identity_map.get(path) is None:
                web_link = item.web_link if item is not None else None
                self.identity_map.set(IdentityEntry(path, page_id, title, web_link, utc_now()))

        self._sync_labels(path, page_id, item, report)
        self._sync_attachments(path, page_id, markdown, report)
        return True

    def _sync_labels(self, path: str, page_id: str, item: Optional[PlanItem], report: ExportReport) -> None:
        if not self.settings.sync_labels:
            return
        try:
            if item is not None:
                if not item.apply_label_changes:
                    return
                to_add, to_remove = item.labels_to_add, item.labels_to_remove
            else:
                desired = desired_labels(self.store.get_tags(path))
                to_add, to_remove = label_delta(desired, self.remote.get_labels(page_id))
            if to_add:
                self.remote.add_labels(page_id, to_add)
            if to_remove:
                self.remote.remove_labels(page_id, to_remove)
        except Exception as e:
            logger.warning(f"Label sync failed for {path}: {e}")
            report.warnings.append(f"{path}: labels not updated ({e})")

    def _sync_attachments(self, path: str, page_id: str, markdown: str, report: ExportReport) -> None:
        if not self.settings.upload_attachments:
            return
        try:
            result = self.attachments.sync(page_id, path, markdown)
        except Exception as e:
            logger.warning(f"Attachment sync failed for {path}: {e}")
            report.warnings.append(f"{path}: attachments not uploaded ({e})")
            return
        for filename, reason in result.failed.items():
            report.warnings.append(f"{path}: attachment {filename} failed ({reason})")
        for target in result.missing:
            report.warnings.append(f"{path}: embedded file {target} not found")

    # pass 2

    def _update_content(self, path: str, renderer: DocumentRenderer, report: ExportReport) -> None:
        entry = self.identity_map.get(path)
        if entry is None:
            raise MissingPageIdError(path)

        title = document_title(path)
        markdown = renderer.publish_markdown(path)
        storage = renderer.render(path, markdown)
        normalized = normalize_storage(storage)

        try:
            page = self.remote.get_page(entry.remote_page_id)
        except PageNotFoundError:
            logger.warning(f"{path}: page {entry.remote_page_id} disappeared, mapping dropped")
            self.identity_map.remove(path)
            report.warnings.append(f"{path}: page {entry.remote_page_id} not found, will be recreated next run")
            return

        snapshot = self.snapshots.read_storage_snapshot(path)
        baseline = normalize_storage(snapshot if snapshot is not None else page.storage)
        if baseline == normalized and page.title == title:
            if path not in report.created and path not in report.recreated:
                report.unchanged.append(path)
            return

        updated = self.remote.update_page(entry.remote_page_id, title, storage)
        web_link = (updated.web_link if updated is not None else None) or entry.web_link
        self.identity_map.set(IdentityEntry(path, entry.remote_page_id, title, web_link, utc_now()))
        self._write_snapshots(path, markdown, normalized, report)
        if path not in report.created and path not in report.recreated:
            report.updated.append(path)
        logger.info(f"Updated page {entry.remote_page_id} for {path}")

    # state

    def _write_snapshots(self, path: str, markdown: str, normalized: str, report: ExportReport) -> None:
        try:
            self.snapshots.write_published(path, markdown, normalized)
        except OSError as e:
            logger.warning(f"Snapshot write failed for {path}: {e}")
            report.warnings.append(f"{path}: snapshot not saved ({e})")

    def _save_identity_map(self, report: ExportReport) -> None:
        if not self.identity_map.dirty:
            return
        try:
            self.identity_map.save()
        except IdentityMapError as e:
            logger.error(str(e))
            report.failures['<identity map>'] = str(e)
