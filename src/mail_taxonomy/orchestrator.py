"""Two-phase folder provisioning.

Objective:
    Make the provider contain every node of a resolved folder tree, recording
    the provider's id for each one, without ever failing because a folder is
    already there.

Phases:
    - Phase A (:meth:`ProvisioningOrchestrator.provision_skeleton`): the core
      tree for the business type(s), no team or supplier folders. Runs at
      onboarding, before any team data exists.
    - Phase B (:meth:`ProvisioningOrchestrator.inject_team_folders`): only the
      nodes present in the team tree and absent from the skeleton. Phase A
      nodes are never touched again.

High-level call tree:
    - :meth:`ProvisioningOrchestrator._run`
        - one worker per top-level branch (``ThreadPoolExecutor``)
            - :meth:`ProvisioningOrchestrator._provision_branch` (parent-first)
                - :meth:`ProvisioningOrchestrator._provision_node`
                    - ``adapter.create`` -> on conflict ``adapter.resolve_by_name``
                    - ``store.upsert``

Operational notes:
    - Every node is create-or-resolve, so a run can be repeated at any time.
    - A failed node fails only itself and its descendants
      (``error_kind="parent_failed"``, no remote call).
    - :class:`~src.mail_taxonomy.errors.AuthError` stops every branch and is
      re-raised; nothing else escapes as an exception.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional
import logging
import threading

from .config import Settings, get_settings
from .errors import AuthError, ProviderError
from .models import (
    FolderSpec,
    FolderTree,
    NodeFailure,
    NodeStatus,
    ParentRef,
    PATH_SEPARATOR,
    ProviderFolderRecord,
    ProvisioningReport,
    record_paths,
)
from .provider_adapter import ProviderAdapter
from .store import FolderStore, utcnow

logger = logging.getLogger(__name__)


class _Run:
    """Mutable state shared by the branch workers of one run."""

    def __init__(self, report: ProvisioningReport, adapter: ProviderAdapter):
        self.report = report
        self.adapter = adapter
        self.stop = threading.Event()
        self._lock = threading.Lock()

    def succeed(self, status: NodeStatus, path: str, folder_id: str) -> None:
        with self._lock:
            if status is NodeStatus.CREATED:
                self.report.created.append(path)
            else:
                self.report.already_existed.append(path)
            self.report.folder_ids[path] = folder_id

    def fail(self, path: str, error_kind: str, message: str = "") -> None:
        with self._lock:
            self.report.failed.append(
                NodeFailure(path=path, error_kind=error_kind, message=message)
            )


class ProvisioningOrchestrator:
    """
    Provision folder trees through a provider adapter.

    The orchestrator never looks at which provider it talks to; flat-label
    and hierarchical semantics live entirely in the adapter.

    Args:
        store: Local folder record.
        settings: Settings providing the worker pool size.
    """

    def __init__(self, store: FolderStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    def provision_skeleton(
        self, tenant_id: str, tree: FolderTree, adapter: ProviderAdapter
    ) -> ProvisioningReport:
        """
        Phase A: provision every core node of ``tree``.

        Dynamic nodes, if the tree carries any, are left to Phase B.

        Args:
            tenant_id: Tenant (business profile id).
            tree: Resolved tree.
            adapter: Provider adapter bound to the tenant's credential.

        Returns:
            ProvisioningReport: created / already-existed / failed nodes.

        Raises:
            AuthError: The credential was rejected.
        """
        targets = {
            node.path.lower() for node in tree.walk() if not self._has_dynamic_ancestry(tree, node)
        }
        return self._run(tenant_id, "skeleton", tree, targets, adapter, known={})

    def inject_team_folders(
        self,
        tenant_id: str,
        skeleton: FolderTree,
        team_tree: FolderTree,
        adapter: ProviderAdapter,
    ) -> ProvisioningReport:
        """
        Phase B: provision the nodes ``team_tree`` adds to ``skeleton``.

        Ancestors of new nodes are taken from the local record. An ancestor
        with no live record is provisioned first, in the same run.

        Args:
            tenant_id: Tenant (business profile id).
            skeleton: Tree resolved without team data.
            team_tree: Tree resolved with current team data.
            adapter: Provider adapter bound to the tenant's credential.

        Returns:
            ProvisioningReport: Outcome of the new nodes (and any ancestors
            that had to be provisioned).
        """
        existing = {path.lower() for path in skeleton.paths()}
        targets = {path.lower() for path in team_tree.paths() if path.lower() not in existing}

        records = self.store.list_records(tenant_id, adapter.provider)
        known = {path.lower(): label_id for label_id, path in record_paths(records).items()}

        # Ancestors of new nodes need an id; unknown ones become targets too.
        for path in list(targets):
            parts = path.split(PATH_SEPARATOR)
            for depth in range(1, len(parts)):
                ancestor = PATH_SEPARATOR.join(parts[:depth])
                if ancestor not in known:
                    targets.add(ancestor)

        if not targets:
            logger.info("No team folders to add for tenant %s", tenant_id)
        return self._run(tenant_id, "team", team_tree, targets, adapter, known=known)

    @staticmethod
    def _has_dynamic_ancestry(tree: FolderTree, node: FolderSpec) -> bool:
        if node.is_dynamic:
            return True
        parent_path = node.parent_path
        while parent_path:
            parent = tree.find(parent_path)
            if parent is None:
                return False
            if parent.is_dynamic:
                return True
            parent_path = parent.parent_path
        return False

    def _run(
        self,
        tenant_id: str,
        phase: str,
        tree: FolderTree,
        targets: set[str],
        adapter: ProviderAdapter,
        known: dict[str, str],
    ) -> ProvisioningReport:
        report = ProvisioningReport(tenant_id=tenant_id, provider=adapter.provider, phase=phase)
        run = _Run(report, adapter)
        branches = [
            root
            for root in tree.branches()
            if any(node.path.lower() in targets for node in root.walk())
        ]
        logger.info(
            "Provisioning %d folders in %d branches for tenant %s (%s, %s)",
            len(targets),
            len(branches),
            tenant_id,
            adapter.provider.value,
            phase,
        )

        if branches:
            with ThreadPoolExecutor(max_workers=self.settings.max_concurrent_calls) as executor:
                futures = {
                    executor.submit(
                        self._provision_branch, run, tenant_id, root, None, targets, known
                    ): root.name
                    for root in branches
                }
                try:
                    for future in as_completed(futures):
                        future.result()
                except AuthError:
                    run.stop.set()
                    for future in futures:
                        future.cancel()
                    logger.error("Provisioning aborted for tenant %s: credential rejected", tenant_id)
                    raise
                except Exception:
                    run.stop.set()
                    for future in futures:
                        future.cancel()
                    logger.exception("Provisioning crashed for tenant %s", tenant_id)
                    raise

        order = {path: index for index, path in enumerate(tree.paths())}
        report.created.sort(key=lambda p: order.get(p, len(order)))
        report.already_existed.sort(key=lambda p: order.get(p, len(order)))
        report.failed.sort(key=lambda f: order.get(f.path, len(order)))
        logger.info("Tenant %s (%s): %s", tenant_id, phase, report.summary_message)
        return report

    def _provision_branch(
        self,
        run: _Run,
        tenant_id: str,
        node: FolderSpec,
        parent: Optional[ParentRef],
        targets: set[str],
        known: dict[str, str],
    ) -> None:
        if run.stop.is_set():
            return
        wanted = [n for n in node.walk() if n.path.lower() in targets]
        if not wanted:
            return

        if node.path.lower() in targets:
            folder_id = self._provision_node(run, tenant_id, node, parent)
        else:
            folder_id = known.get(node.path.lower())

        if folder_id is None:
            for descendant in wanted:
                if descendant is not node:
                    run.fail(descendant.path, "parent_failed", f"Parent {node.path} failed")
            return

        child_parent = ParentRef(folder_id=folder_id, path=node.path)
        for child in node.children:
            self._provision_branch(run, tenant_id, child, child_parent, targets, known)

    def _provision_node(
        self,
        run: _Run,
        tenant_id: str,
        node: FolderSpec,
        parent: Optional[ParentRef],
    ) -> Optional[str]:
        """Create-or-resolve one node and record it.

        Returns:
            Optional[str]: Provider id, or None if the node failed.
        """
        adapter = run.adapter
        try:
            result = adapter.create(node.name, parent, color=node.color)
            if result.conflict:
                folder_id = adapter.resolve_by_name(node.name, parent)
                if folder_id is None:
                    logger.warning("Conflict on %s but no folder found by name", node.path)
                    run.fail(node.path, "conflict_unresolved", "Folder exists but was not found")
                    return None
                status = NodeStatus.ALREADY_EXISTED
                logger.info("Folder already exists: %s", node.path)
            elif result.folder_id:
                folder_id = result.folder_id
                status = NodeStatus.CREATED
                logger.info("Created folder: %s", node.path)
            else:
                run.fail(node.path, "provider_error", "Provider returned no folder id")
                return None
        except AuthError:
            run.stop.set()
            raise
        except ProviderError as exc:
            logger.warning("Failed to provision %s: %s", node.path, exc)
            run.fail(node.path, exc.error_kind, str(exc))
            return None

        remote = adapter.remote_folder(folder_id, node.name, parent)
        self.store.upsert(
            ProviderFolderRecord(
                label_id=remote.id,
                provider=adapter.provider,
                business_profile_id=tenant_id,
                label_name=remote.name,
                color=remote.color,
                parent_id=remote.parent_id,
                synced_at=utcnow(),
            )
        )
        run.succeed(status, node.path, folder_id)
        return folder_id
