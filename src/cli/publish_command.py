"""Command wiring for plan, publish, rename and discover.

PublishCommand loads the configuration, builds the vault store, Confluence
client and publisher state, runs the requested operation and translates
exceptions to exit codes.
"""

import logging
import os
import posixpath
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from src.confluence_client.api_wrapper import APIWrapper
from src.confluence_client.auth import Authenticator
from src.confluence_client.errors import (
    APIAccessError,
    APIUnreachableError,
    ConfigurationError,
    DiscoveryError,
    InvalidCredentialsError,
    SyncError,
)
from src.content_converter.storage_converter import StorageConverter
from src.publisher.identity_map import IdentityMap, YamlMappingFile
from src.publisher.models import ExportReport, HierarchyMode, PlanAction, PlanItem
from src.publisher.orchestrator import ExportOrchestrator
from src.publisher.plan_builder import PlanBuilder
from src.publisher.plan_review import (
    OverrideAction,
    PlanIntent,
    PlanSession,
    ReviewContext,
    SetApplyLabels,
    SetSelected,
    extract_page_id,
    summarize_plan,
)
from src.publisher.run_lock import RunLock
from src.publisher.snapshot_store import SnapshotStore
from src.vault.errors import VaultError
from src.vault.vault_store import VaultDocumentStore

from .config import DEFAULT_CONFIG_PATH, ConfigLoader
from .errors import CLIError, ConfigError, ConfigNotFoundError
from .models import ExitCode, PublishConfig
from .output import OutputHandler

logger = logging.getLogger(__name__)

MAPPING_FILE_NAME = 'mapping.yaml'
LOCK_TIMEOUT = 30.0


class PublishCommand:
    """Runs the CLI operations against one configured vault.

    Example:
        >>> command = PublishCommand(output_handler=OutputHandler(verbosity=1))
        >>> exit_code = command.plan("index.md")
        >>> sys.exit(exit_code)
    """

    def __init__(
        self,
        config_path: str = DEFAULT_CONFIG_PATH,
        output_handler: Optional[OutputHandler] = None,
        authenticator: Optional[Authenticator] = None,
        remote=None,
        store=None,
        converter: Optional[StorageConverter] = None,
    ):
        """Initialize the command with optional dependencies.

        Args:
            config_path: Path to configuration YAML file
            output_handler: OutputHandler for terminal output (optional)
            authenticator: Authenticator for Confluence API (optional)
            remote: Remote content service; an APIWrapper is created if omitted
            store: Document store; a VaultDocumentStore is created if omitted
            converter: Markdown to storage converter (optional)
        """
        self.config_path = config_path
        self.output_handler = output_handler or OutputHandler()
        self.authenticator = authenticator
        self.remote = remote
        self.store = store
        self.converter = converter or StorageConverter()
        self.config: Optional[PublishConfig] = None
        self.identity_map: Optional[IdentityMap] = None
        self.snapshots: Optional[SnapshotStore] = None

    # setup

    def _load(self, needs_remote: bool = True) -> PublishConfig:
        logger.info(f"Loading configuration from {self.config_path}")
        self.config = ConfigLoader.load(self.config_path)

        if self.store is None:
            self.store = VaultDocumentStore(self.config.vault_path, Path(self.config.state_dir).name)
        if needs_remote and self.remote is None:
            if self.authenticator is None:
                self.authenticator = Authenticator()
            self.remote = APIWrapper(self.authenticator)

        state_path = self.config.state_path
        self.identity_map = IdentityMap(YamlMappingFile(os.path.join(state_path, MAPPING_FILE_NAME)))
        self.identity_map.load()
        self.snapshots = SnapshotStore(state_path)
        return self.config

    def _planner(self, context: ReviewContext) -> PlanBuilder:
        return PlanBuilder(
            self.store,
            self.remote,
            self.identity_map,
            self.snapshots,
            self.converter,
            context.apply(self.config.to_settings()),
        )

    def _orchestrator(self, context: ReviewContext) -> ExportOrchestrator:
        return ExportOrchestrator(
            self.store,
            self.remote,
            self.identity_map,
            self.snapshots,
            self.converter,
            context.apply(self.config.to_settings()),
        )

    def _note_path(self, path: str) -> str:
        """Vault-relative path of a note given as vault path, file path or link target.

        Raises:
            CLIError: If no note matches
        """
        candidate = Path(path)
        vault_root = Path(self.config.vault_path).resolve()
        if candidate.exists():
            try:
                return candidate.resolve().relative_to(vault_root).as_posix()
            except ValueError:
                raise CLIError(f"{path} is outside the vault {vault_root}")

        normalized = posixpath.normpath(path.replace('\\', '/'))
        resolved = self.store.resolve_link(normalized)
        if not resolved:
            raise CLIError(f"Note not found in vault: {path}")
        return resolved

    def _context(
        self,
        space: Optional[str] = None,
        parent: Optional[str] = None,
        hierarchy: Optional[str] = None,
    ) -> ReviewContext:
        context = ReviewContext.from_settings(self.config.to_settings())
        changes = {}
        if space:
            changes['space_key'] = space
        if parent:
            page_id = extract_page_id(parent)
            if page_id is None:
                raise CLIError(f"Not a page id or page URL: {parent}")
            changes['parent_page_id'] = page_id
        if hierarchy:
            try:
                changes['hierarchy_mode'] = HierarchyMode(hierarchy)
            except ValueError:
                allowed = ', '.join(mode.value for mode in HierarchyMode)
                raise CLIError(f"Invalid hierarchy mode '{hierarchy}'; expected one of: {allowed}")
        if not changes:
            return context
        return ReviewContext(
            space_key=changes.get('space_key', context.space_key),
            parent_page_id=changes.get('parent_page_id', context.parent_page_id),
            hierarchy_mode=changes.get('hierarchy_mode', context.hierarchy_mode),
            tie_break_policy=context.tie_break_policy,
        )

    def _intents(
        self,
        skip: Iterable[str],
        overrides: Iterable[str],
        no_labels: Iterable[str],
    ) -> List[Tuple[str, PlanIntent]]:
        intents: List[Tuple[str, PlanIntent]] = []
        for path in skip or []:
            intents.append((self._note_path(path), SetSelected(False)))
        for entry in overrides or []:
            path, separator, action = entry.rpartition('=')
            if not separator or not path:
                raise CLIError(f"Override must look like PATH=ACTION, got '{entry}'")
            try:
                intents.append((self._note_path(path), OverrideAction(PlanAction(action.strip().lower()))))
            except ValueError:
                allowed = ', '.join(a.value for a in PlanAction)
                raise CLIError(f"Invalid action '{action}'; expected one of: {allowed}")
        for path in no_labels or []:
            intents.append((self._note_path(path), SetApplyLabels(False)))
        return intents

    # operations

    def plan(self, root: str, show_diff: bool = False, **target) -> ExitCode:
        """Print the plan for root without changing anything."""
        def operation() -> ExitCode:
            self._load()
            context = self._context(**target)
            session = PlanSession(self._note_path(root), self._planner, self._orchestrator)
            with self.output_handler.spinner("Planning..."):
                items = session.rebuild(context)
            self._show_plan(items, show_diff)
            return self._plan_exit_code(items)

        return self._run("plan", operation)

    def publish(
        self,
        root: str,
        yes: bool = False,
        dry_run: bool = False,
        skip: Iterable[str] = (),
        overrides: Iterable[str] = (),
        no_labels: Iterable[str] = (),
        confirm: Optional[Callable[[str], bool]] = None,
        **target,
    ) -> ExitCode:
        """Plan root, apply review intents, confirm and publish the selected items."""
        def operation() -> ExitCode:
            config = self._load()
            context = self._context(**target)
            session = PlanSession(self._note_path(root), self._planner, self._orchestrator)
            intents = self._intents(skip, overrides, no_labels)

            with RunLock(config.state_path, timeout=LOCK_TIMEOUT):
                with self.output_handler.spinner("Planning..."):
                    session.rebuild(context)
                for path, intent in intents:
                    try:
                        session.dispatch(path, intent)
                    except KeyError:
                        raise CLIError(f"{path} is not part of the plan")
                self._show_plan(session.items, show_diff=False)

                selected = [item for item in session.items if item.selected]
                if not selected:
                    self.output_handler.warning("Nothing selected to publish")
                    return self._plan_exit_code(session.items)

                if not yes and not dry_run and confirm is not None:
                    if not confirm(f"Publish {len(selected)} page(s) to space {context.space_key}?"):
                        self.output_handler.warning("Publish cancelled")
                        return ExitCode.SUCCESS

                report = session.confirm(session.items, context, dry_run=dry_run)

            self.output_handler.print_report(report)
            return self._report_exit_code(report, session.items)

        return self._run("publish", operation)

    def rename(self, old_path: str, new_path: str) -> ExitCode:
        """Move the page mapping and snapshots of a renamed note."""
        def operation() -> ExitCode:
            config = self._load(needs_remote=False)
            old = posixpath.normpath(old_path.replace('\\', '/'))
            new = posixpath.normpath(new_path.replace('\\', '/'))
            with RunLock(config.state_path, timeout=LOCK_TIMEOUT):
                entry = self.identity_map.rename(old, new)
                if entry is None:
                    self.output_handler.warning(f"{old} has no published page; nothing to rename")
                    return ExitCode.SUCCESS
                self.snapshots.rename(old, new)
                self.identity_map.save()
            self.output_handler.success(f"{new} now publishes to page {entry.remote_page_id}")
            return ExitCode.SUCCESS

        return self._run("rename", operation)

    def discover(self) -> ExitCode:
        """Detect and print the REST API root of the configured Confluence."""
        def operation() -> ExitCode:
            if self.authenticator is None:
                self.authenticator = Authenticator()
            wrapper = self.remote if isinstance(self.remote, APIWrapper) else APIWrapper(self.authenticator)
            with self.output_handler.spinner("Probing Confluence..."):
                endpoint = wrapper.discover()
            self.output_handler.success(f"REST API root: {endpoint.rest_root}")
            self.output_handler.print(f"  Base URL: {endpoint.base_url}")
            self.output_handler.print(f"  Deployment: {'cloud' if endpoint.cloud else 'server'}")
            return ExitCode.SUCCESS

        return self._run("discover", operation)

    # helpers

    def _show_plan(self, items: List[PlanItem], show_diff: bool) -> None:
        self.output_handler.print_plan(items)
        self.output_handler.print_plan_summary(summarize_plan(items))
        if show_diff:
            for item in items:
                self.output_handler.print_diff(item)

    @staticmethod
    def _plan_exit_code(items: List[PlanItem]) -> ExitCode:
        if any(item.effective_action == PlanAction.CONFLICT for item in items):
            return ExitCode.CONFLICTS
        return ExitCode.SUCCESS

    @staticmethod
    def _report_exit_code(report: ExportReport, items: List[PlanItem]) -> ExitCode:
        if report.failures:
            return ExitCode.CONFLICTS
        return PublishCommand._plan_exit_code(items)

    def _run(self, name: str, operation: Callable[[], ExitCode]) -> ExitCode:
        try:
            return operation()

        except (InvalidCredentialsError, ConfigurationError) as e:
            logger.error(f"Authentication failed: {e}")
            self.output_handler.error(f"Authentication failed: {e}")
            self.output_handler.info(
                "Check CONFLUENCE_URL, CONFLUENCE_USER and CONFLUENCE_API_TOKEN "
                "(or CONFLUENCE_BEARER_TOKEN) environment variables"
            )
            return ExitCode.AUTH_ERROR

        except (APIUnreachableError, APIAccessError, DiscoveryError) as e:
            logger.error(f"API error: {e}")
            self.output_handler.error(f"API error: {e}")
            self.output_handler.info("Check your internet connection and try again")
            return ExitCode.NETWORK_ERROR

        except (ConfigError, ConfigNotFoundError) as e:
            logger.error(f"Configuration error: {e}")
            self.output_handler.error(str(e))
            return ExitCode.GENERAL_ERROR

        except (CLIError, VaultError, SyncError) as e:
            logger.error(f"{name} failed: {e}")
            self.output_handler.error(f"Error: {e}")
            return ExitCode.GENERAL_ERROR

        except Exception as e:
            logger.exception(f"Unexpected error during {name}")
            self.output_handler.error(f"Unexpected error: {e}")
            return ExitCode.GENERAL_ERROR
