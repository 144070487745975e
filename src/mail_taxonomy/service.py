"""Tenant-level operations used by the CLI and the web API.

Objective:
    Wire schema resolution, provider adapters, the orchestrator, the
    reconciliation service, the coverage validator and the routing builder
    into the five operations callers need:
    - :meth:`FolderProvisioningService.provision_skeleton`
    - :meth:`FolderProvisioningService.inject_team_folders`
    - :meth:`FolderProvisioningService.reconcile`
    - :meth:`FolderProvisioningService.check_health`
    - :meth:`FolderProvisioningService.build_routing_table`

Operational notes:
    - Tenant id and credential are passed explicitly on every call; there is
      no "current tenant" state.
    - Provisioning and reconciliation for one tenant are serialized by a
      per-tenant lock. Different tenants never contend.
    - Both provisioning phases reconcile first, so the local record is fresh
      when Phase B looks up ancestor ids.
"""

from pathlib import Path
from typing import Callable, Optional, Protocol, Union
import json
import logging
import threading

from .config import MailProvider, Settings, get_settings
from .coverage import CoverageValidator
from .errors import ProfileNotFoundError
from .models import (
    BusinessProfile,
    HealthReport,
    ProviderCredential,
    ProvisioningReport,
    ReconciliationReport,
    RoutingTable,
)
from .orchestrator import ProvisioningOrchestrator
from .provider_adapter import ProviderAdapter, create_provider_adapter
from .reconciliation import ReconciliationService
from .routing import RoutingTableBuilder
from .schema import SchemaResolver, expected_category_set
from .store import FolderStore

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[ProviderCredential, Settings], ProviderAdapter]


class ProfileSource(Protocol):
    """Read access to business profiles (owned by another service)."""

    def get(self, tenant_id: str) -> BusinessProfile: ...


class JsonProfileSource:
    """
    Business profiles stored as ``<directory>/<tenant_id>.json``.

    Args:
        directory: Profiles directory.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def get(self, tenant_id: str) -> BusinessProfile:
        if not tenant_id or "/" in tenant_id or "\\" in tenant_id or tenant_id.startswith("."):
            raise ProfileNotFoundError(tenant_id)
        path = self.directory / f"{tenant_id}.json"
        if not path.is_file():
            raise ProfileNotFoundError(tenant_id)
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        data.setdefault("id", tenant_id)
        return BusinessProfile.model_validate(data)


class InMemoryProfileSource:
    """Profiles held in memory; used by tests and embedding callers."""

    def __init__(self, profiles: Optional[list[BusinessProfile]] = None):
        self._profiles = {p.tenant_id: p for p in profiles or []}

    def save(self, profile: BusinessProfile) -> None:
        self._profiles[profile.tenant_id] = profile

    def get(self, tenant_id: str) -> BusinessProfile:
        try:
            return self._profiles[tenant_id]
        except KeyError:
            raise ProfileNotFoundError(tenant_id) from None


class FolderProvisioningService:
    """
    Facade over the provisioning engine.

    Args:
        store: Local folder record.
        profiles: Business profile source.
        settings: Application settings.
        adapter_factory: Builds a provider adapter from a credential;
            defaults to :func:`create_provider_adapter`.
    """

    def __init__(
        self,
        store: FolderStore,
        profiles: ProfileSource,
        settings: Optional[Settings] = None,
        adapter_factory: Optional[AdapterFactory] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.profiles = profiles
        self.adapter_factory = adapter_factory or create_provider_adapter
        self.resolver = SchemaResolver(self.settings)
        self.orchestrator = ProvisioningOrchestrator(store, self.settings)
        self.reconciler = ReconciliationService(store)
        self.validator = CoverageValidator(self.settings)
        self.routing = RoutingTableBuilder(self.settings)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _tenant_lock(self, tenant_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(tenant_id, threading.Lock())

    def provision_skeleton(
        self,
        tenant_id: str,
        credential: ProviderCredential,
        business_type: Optional[Union[str, list[str]]] = None,
    ) -> ProvisioningReport:
        """
        Phase A: provision the core tree for the tenant's business type.

        Args:
            tenant_id: Tenant (business profile id).
            credential: Provider credential.
            business_type: Business type(s); defaults to the profile's.

        Returns:
            ProvisioningReport: Partial-success report.

        Raises:
            SchemaError: Unknown or malformed business type (no remote call).
            AuthError: Credential rejected.
        """
        types = business_type
        if not types:
            types = self.profiles.get(tenant_id).business_types
        tree = self.resolver.resolve(types)
        adapter = self.adapter_factory(credential, self.settings)

        with self._tenant_lock(tenant_id):
            self.reconciler.reconcile(tenant_id, adapter)
            return self.orchestrator.provision_skeleton(tenant_id, tree, adapter)

    def inject_team_folders(
        self, tenant_id: str, credential: ProviderCredential
    ) -> ProvisioningReport:
        """
        Phase B: add team-member and supplier folders from the saved profile.

        Args:
            tenant_id: Tenant (business profile id).
            credential: Provider credential.

        Returns:
            ProvisioningReport: Outcome of the new folders only.
        """
        profile = self.profiles.get(tenant_id)
        skeleton = self.resolver.resolve(profile.business_types)
        team_tree = self.resolver.resolve(
            profile.business_types, profile.managers, profile.suppliers
        )
        adapter = self.adapter_factory(credential, self.settings)

        with self._tenant_lock(tenant_id):
            self.reconciler.reconcile(tenant_id, adapter)
            return self.orchestrator.inject_team_folders(tenant_id, skeleton, team_tree, adapter)

    def reconcile(self, tenant_id: str, credential: ProviderCredential) -> ReconciliationReport:
        adapter = self.adapter_factory(credential, self.settings)
        with self._tenant_lock(tenant_id):
            return self.reconciler.reconcile(tenant_id, adapter)

    def check_health(self, tenant_id: str, provider: MailProvider) -> HealthReport:
        """
        Report folder health and classifier coverage from the local record.

        No remote call is made; reconcile first for a fresh answer.

        Args:
            tenant_id: Tenant (business profile id).
            provider: Provider to check.

        Returns:
            HealthReport: Folder health and classifier coverage.
        """
        provider = MailProvider(provider)
        profile = self.profiles.get(tenant_id)
        tree = self.resolver.resolve(profile.business_types, profile.managers, profile.suppliers)
        records = self.store.list_records(tenant_id, provider)

        folder_health = self.validator.folder_health(tree, records)
        coverage = self.validator.validate(records, expected_category_set(tree))
        return HealthReport(
            tenant_id=tenant_id,
            provider=provider,
            folder_health_percentage=folder_health.health_percentage,
            folder_health=folder_health,
            classifier_coverage=coverage,
        )

    def build_routing_table(
        self,
        tenant_id: str,
        provider: MailProvider,
        credential: Optional[ProviderCredential] = None,
    ) -> RoutingTable:
        """
        Build the routing table, reconciling first when a credential is given.

        Raises:
            NotProvisionedError: The tenant has no live folders.
            ValueError: The credential belongs to another provider.
        """
        provider = MailProvider(provider)
        if credential is not None:
            if MailProvider(credential.provider) is not provider:
                raise ValueError(
                    f"Credential is for {MailProvider(credential.provider).value}, "
                    f"routing table requested for {provider.value}"
                )
            self.reconcile(tenant_id, credential)
        records = self.store.list_records(tenant_id, provider)
        return self.routing.build(tenant_id, provider, records)
