"""Data models for CLI operations.

All models use dataclasses, following the patterns of src/publisher/models.py.
"""

import os
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from src.publisher.models import ExportMode, ExportSettings, HierarchyMode, TieBreakPolicy


class ExitCode(IntEnum):
    """Exit codes for CLI operations.

    - SUCCESS (0): Operation completed successfully
    - GENERAL_ERROR (1): General error (config issues, validation failures)
    - CONFLICTS (2): Conflicts or per-note failures remain after the run
    - AUTH_ERROR (3): Authentication or authorization failure
    - NETWORK_ERROR (4): Network connectivity or API availability issues

    Example:
        >>> exit_code = ExitCode.SUCCESS
        >>> sys.exit(exit_code)
    """
    SUCCESS = 0
    GENERAL_ERROR = 1
    CONFLICTS = 2
    AUTH_ERROR = 3
    NETWORK_ERROR = 4


@dataclass
class PublishConfig:
    """Project configuration from .confluence-publish/config.yaml.

    Attributes:
        space_key: Confluence space the notes are published to
        vault_path: Directory holding the notes
        parent_page_id: Page the root note is created under
        export_mode: outlinks, backlinks or graph
        graph_depth: Link distance for the graph export mode
        hierarchy_mode: flat, links, folder, frontmatter or hybrid
        tie_break_policy: firstSeen, closestToRoot or preferFolderIndex
        update_existing: Update mapped pages and adopt pages found by title
        sync_labels: Publish note tags as page labels
        upload_attachments: Upload embedded images
        child_pages_under_root: In flat mode, nest notes under the root page
        state_dir: Identity map and snapshot directory, relative to vault_path

    Example:
        >>> config = PublishConfig(space_key="DOCS", parent_page_id="123456")
    """
    space_key: str
    vault_path: str = '.'
    parent_page_id: Optional[str] = None
    export_mode: ExportMode = ExportMode.OUTLINKS
    graph_depth: int = 1
    hierarchy_mode: HierarchyMode = HierarchyMode.FLAT
    tie_break_policy: TieBreakPolicy = TieBreakPolicy.FIRST_SEEN
    update_existing: bool = True
    sync_labels: bool = True
    upload_attachments: bool = True
    child_pages_under_root: bool = True
    state_dir: str = '.confluence-publish'

    @property
    def state_path(self) -> str:
        """State directory resolved against the vault."""
        if os.path.isabs(self.state_dir):
            return self.state_dir
        return os.path.join(self.vault_path, self.state_dir)

    def to_settings(self) -> ExportSettings:
        return ExportSettings(
            space_key=self.space_key,
            parent_page_id=self.parent_page_id,
            export_mode=self.export_mode,
            graph_depth=self.graph_depth,
            hierarchy_mode=self.hierarchy_mode,
            tie_break_policy=self.tie_break_policy,
            update_existing=self.update_existing,
            sync_labels=self.sync_labels,
            upload_attachments=self.upload_attachments,
            child_pages_under_root=self.child_pages_under_root,
        )
