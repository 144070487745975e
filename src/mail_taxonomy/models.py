"""Pydantic data models used across the engine.

Objective:
    Centralize all strongly-typed data structures representing:
    - The resolved folder tree (:class:`FolderSpec`, :class:`FolderTree`)
    - Business profile inputs (:class:`BusinessProfile` and its members)
    - Provider wire objects (:class:`GmailLabel`, :class:`GraphMailFolder`)
      and their provider-agnostic form (:class:`RemoteFolder`)
    - Persisted folder records (:class:`ProviderFolderRecord`)
    - Run outputs (provisioning, reconciliation, coverage, health, routing)

Design notes:
    - Provider wire models use Pydantic aliases to match API field names
      (e.g. ``displayName`` -> :attr:`GraphMailFolder.display_name`).
    - ``model_config = ConfigDict(populate_by_name=True)`` allows constructing
      models with either alias names or pythonic field names.
    - Tree nodes own their children; the parent is referenced by path only.

Call tree usage:
    - :mod:`src.mail_taxonomy.schema` builds :class:`FolderTree`.
    - Provider adapters validate responses into :class:`GmailLabel` /
      :class:`GraphMailFolder` and return :class:`RemoteFolder`.
    - :mod:`src.mail_taxonomy.store` persists :class:`ProviderFolderRecord`.
    - The orchestrator, reconciliation service, coverage validator and
      routing builder return the report models defined at the bottom.
"""

from datetime import datetime
from enum import Enum
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import FolderKind, MailProvider
from .errors import PartialProvisioningFailure


PATH_SEPARATOR = "/"


class FolderSpec(BaseModel):
    """
    One node of the canonical folder tree.

    Attributes:
        name: Display name, unique (case-insensitively) among siblings.
        kind: Whether the node comes from the schema or from team data.
        depth: 0 for top-level categories.
        parent_path: Path of the parent node, None at the top level.
        color: Optional label background colour from the schema.
        children: Child nodes in provisioning order.
    """

    name: str
    kind: FolderKind = FolderKind.CORE
    depth: int = 0
    parent_path: Optional[str] = None
    color: Optional[str] = None
    children: list["FolderSpec"] = Field(default_factory=list)

    @property
    def path(self) -> str:
        """Logical path, e.g. ``MANAGER/Unassigned``."""
        if self.parent_path:
            return f"{self.parent_path}{PATH_SEPARATOR}{self.name}"
        return self.name

    @property
    def is_dynamic(self) -> bool:
        return self.kind is not FolderKind.CORE

    def walk(self) -> Iterator["FolderSpec"]:
        """Yield this node and its descendants, parents before children."""
        yield self
        for child in self.children:
            yield from child.walk()


class FolderTree(BaseModel):
    """
    Resolved folder tree for one tenant.

    Attributes:
        business_types: Business types the tree was resolved for.
        roots: Top-level categories in provisioning order.
        dynamic_names: Team-member and supplier names injected into the
            tree, including those that matched an existing folder.
    """

    business_types: list[str] = Field(default_factory=list)
    roots: list[FolderSpec] = Field(default_factory=list)
    dynamic_names: list[str] = Field(default_factory=list)

    def walk(self) -> Iterator[FolderSpec]:
        """Yield every node, each top-level branch fully before the next."""
        for root in self.roots:
            yield from root.walk()

    def branches(self) -> list[FolderSpec]:
        """Top-level categories; each one is provisioned independently."""
        return list(self.roots)

    def paths(self) -> list[str]:
        return [node.path for node in self.walk()]

    def find(self, path: str) -> Optional[FolderSpec]:
        """Find a node by its logical path (case-insensitive).

        Args:
            path: Logical path such as ``SUPPLIERS/Lennox``.

        Returns:
            Optional[FolderSpec]: Matching node, or None.
        """
        wanted = path.lower()
        for node in self.walk():
            if node.path.lower() == wanted:
                return node
        return None

    def root(self, name: str) -> Optional[FolderSpec]:
        lowered = name.lower()
        return next((r for r in self.roots if r.name.lower() == lowered), None)


class TeamMember(BaseModel):
    """Team member as stored on the business profile."""

    name: str
    role: Optional[str] = None
    email: Optional[str] = None


class Supplier(BaseModel):
    """Supplier as stored on the business profile."""

    name: str
    domains: list[str] = Field(default_factory=list)


class BusinessProfile(BaseModel):
    """
    Read-only view of a tenant's business profile.

    The profile id doubles as the tenant id and the owner of every folder
    record.

    Attributes:
        tenant_id: Business profile id.
        business_types: Selected business type keys.
        managers: Team members (one MANAGER subfolder each).
        suppliers: Suppliers (one SUPPLIERS subfolder each).
    """

    tenant_id: str = Field(alias="id")
    business_types: list[str] = Field(default_factory=list, alias="businessTypes")
    managers: list[TeamMember] = Field(default_factory=list)
    suppliers: list[Supplier] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class ProviderCredential(BaseModel):
    """
    Bearer credential for one tenant's mailbox.

    Supplied by the OAuth collaborator; never refreshed here.
    """

    provider: MailProvider
    access_token: str = Field(repr=False)


class GmailLabel(BaseModel):
    """
    Gmail label resource.

    Gmail labels are a flat namespace; nesting is only a ``/`` naming
    convention in :attr:`name`.
    """

    id: str
    name: str
    type: str = "user"
    color: Optional[dict[str, str]] = None

    @property
    def background_color(self) -> Optional[str]:
        if self.color:
            return self.color.get("backgroundColor")
        return None


class GraphMailFolder(BaseModel):
    """
    Outlook mail folder returned by Microsoft Graph.

    Attributes:
        id: Unique folder ID.
        display_name: Folder display name.
        parent_folder_id: Parent folder ID.
        child_folder_count: Number of child folders.
    """

    id: str
    display_name: str = Field(alias="displayName")
    parent_folder_id: Optional[str] = Field(default=None, alias="parentFolderId")
    child_folder_count: int = Field(default=0, alias="childFolderCount")

    model_config = ConfigDict(populate_by_name=True)


class RemoteFolder(BaseModel):
    """
    Provider-agnostic view of a folder or label that exists remotely.

    Attributes:
        id: Provider-assigned identifier (opaque).
        name: Name as the provider reports it.
        parent_id: Parent identifier for hierarchical providers.
        color: Background colour, when the provider has one.
    """

    id: str
    name: str
    parent_id: Optional[str] = None
    color: Optional[str] = None


class ParentRef(BaseModel):
    """
    Reference to an already-provisioned parent folder.

    Hierarchical providers use :attr:`folder_id`; flat-label providers use
    :attr:`path` to build the prefixed label name.
    """

    folder_id: Optional[str] = None
    path: Optional[str] = None


class CreateResult(BaseModel):
    """
    Outcome of a create call.

    ``conflict=True`` means the folder already existed; the orchestrator then
    resolves the canonical id by name.
    """

    folder_id: Optional[str] = None
    conflict: bool = False


class ProviderFolderRecord(BaseModel):
    """
    Local record of one remote folder.

    Attributes:
        label_id: Provider-assigned identifier.
        provider: Mail provider.
        business_profile_id: Owning tenant.
        label_name: Provider name at last sync.
        color: Optional colour.
        parent_id: Parent folder id (hierarchical providers only).
        synced_at: Last time the folder was confirmed present.
        is_deleted: Soft marker set when reconciliation no longer sees it.
    """

    label_id: str
    provider: MailProvider
    business_profile_id: str
    label_name: str
    color: Optional[str] = None
    parent_id: Optional[str] = None
    synced_at: datetime
    is_deleted: bool = False


def record_paths(records: list[ProviderFolderRecord]) -> dict[str, str]:
    """Compute the logical path of each record.

    A record whose ``parent_id`` names another record in the list is placed
    under that record's path; otherwise its ``label_name`` is the path (flat
    labels already carry the full path in their name).

    Args:
        records: Records of one tenant and provider.

    Returns:
        dict[str, str]: label_id -> logical path.
    """
    by_id = {r.label_id: r for r in records}
    paths: dict[str, str] = {}

    def resolve(record: ProviderFolderRecord, seen: set[str]) -> str:
        if record.label_id in paths:
            return paths[record.label_id]
        parent = by_id.get(record.parent_id) if record.parent_id else None
        if parent is None or parent.label_id in seen:
            path = record.label_name
        else:
            seen.add(record.label_id)
            path = f"{resolve(parent, seen)}{PATH_SEPARATOR}{record.label_name}"
        paths[record.label_id] = path
        return path

    for record in records:
        resolve(record, set())
    return paths


class NodeStatus(str, Enum):
    CREATED = "created"
    ALREADY_EXISTED = "already-existed"
    FAILED = "failed"


class NodeFailure(BaseModel):
    """A folder that could not be provisioned in this run."""

    path: str
    error_kind: str
    message: str = ""


class ProvisioningReport(BaseModel):
    """
    Partial-success report of a provisioning run.

    This is the primary output returned to the CLI and the web API.

    Attributes:
        tenant_id: Tenant the run was for.
        provider: Provider the run targeted.
        phase: ``skeleton`` or ``team``.
        created: Paths created by this run.
        already_existed: Paths that already existed (conflict resolved or
            previously recorded).
        failed: Paths that failed after retries.
        folder_ids: Path -> provider id for every successful node.
    """

    tenant_id: str
    provider: MailProvider
    phase: str
    created: list[str] = Field(default_factory=list)
    already_existed: list[str] = Field(default_factory=list)
    failed: list[NodeFailure] = Field(default_factory=list)
    folder_ids: dict[str, str] = Field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.created) + len(self.already_existed) + len(self.failed)

    @property
    def succeeded(self) -> int:
        return len(self.created) + len(self.already_existed)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    @property
    def summary_message(self) -> str:
        """User-facing summary; never includes provider payloads."""
        if self.has_failures:
            return f"{self.succeeded} of {self.total} folders created, retry"
        return f"{self.succeeded} of {self.total} folders ready"

    def raise_for_status(self) -> None:
        """Raise :class:`PartialProvisioningFailure` if any node failed."""
        if self.has_failures:
            raise PartialProvisioningFailure(self)


class ReconciliationReport(BaseModel):
    """Counts from one reconciliation pass."""

    tenant_id: str
    provider: MailProvider
    observed: int = 0
    discovered: int = 0
    updated: int = 0
    restored: int = 0
    soft_deleted: list[str] = Field(default_factory=list)


class ExpectedCategorySet(BaseModel):
    """
    Names the downstream classifier may route into.

    All names are stored lowercased.

    Attributes:
        top_level: Top-level category names.
        subfolders: Declared (schema) subfolder names at any depth.
        dynamic: Current team-member and supplier names.
    """

    top_level: set[str] = Field(default_factory=set)
    subfolders: set[str] = Field(default_factory=set)
    dynamic: set[str] = Field(default_factory=set)

    @property
    def names(self) -> set[str]:
        return self.top_level | self.subfolders | self.dynamic

    def matches(self, label_name: str) -> bool:
        """Check a provider folder name against the set.

        Both the full name and its leaf segment are tried, so flat labels such
        as ``MANAGER/Hailey`` match ``Hailey``.

        Args:
            label_name: Name as recorded from the provider.

        Returns:
            bool: True if the classifier can route into this folder.
        """
        lowered = label_name.strip().lower()
        leaf = lowered.rsplit(PATH_SEPARATOR, 1)[-1].strip()
        names = self.names
        return lowered in names or leaf in names


class CoverageReport(BaseModel):
    total_folders: int
    classifiable_folders: int
    unclassifiable_folders: list[str] = Field(default_factory=list)
    coverage_percentage: float
    is_healthy: bool


class FolderHealthReport(BaseModel):
    total_expected: int
    total_found: int
    missing_folders: list[str] = Field(default_factory=list)
    health_percentage: float
    all_folders_present: bool


class HealthReport(BaseModel):
    """Answer to ``checkHealth`` for the onboarding UI."""

    tenant_id: str
    provider: MailProvider
    folder_health_percentage: float
    folder_health: FolderHealthReport
    classifier_coverage: CoverageReport


class RoutingTable(BaseModel):
    """
    Category -> folder ids mapping consumed by the workflow engine.

    Attributes:
        provider: Provider the ids belong to.
        categories: Normalized category key -> folder ids.
        folders: Logical path -> folder id.
    """

    provider: MailProvider
    categories: dict[str, list[str]] = Field(default_factory=dict)
    folders: dict[str, str] = Field(default_factory=dict)
