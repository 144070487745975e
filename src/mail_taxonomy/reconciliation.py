"""Reconciliation of the local folder record with the provider.

Objective:
    Refresh the local record so it matches what the provider actually has:
    - folders created by the user or another tool get a record;
    - renamed / moved folders get their new name and parent;
    - folders deleted remotely are soft-deleted (``is_deleted=True``).

Operational notes:
    - This is the only writer allowed to mark records as deleted.
    - If listing fails (auth, transient, anything) the error propagates and
      nothing is marked deleted: a failed listing is not an empty mailbox.
"""

import logging

from .models import ProviderFolderRecord, ReconciliationReport
from .provider_adapter import ProviderAdapter
from .store import FolderStore, utcnow

logger = logging.getLogger(__name__)


class ReconciliationService:
    """
    Bring a tenant's local records in line with remote state.

    Args:
        store: Local folder record.
    """

    def __init__(self, store: FolderStore):
        self.store = store

    def reconcile(self, tenant_id: str, adapter: ProviderAdapter) -> ReconciliationReport:
        """
        Run one reconciliation pass.

        Args:
            tenant_id: Tenant (business profile id).
            adapter: Provider adapter bound to the tenant's credential.

        Returns:
            ReconciliationReport: Counts of discovered, updated, restored and
            soft-deleted records.

        Raises:
            ProviderError: Listing failed; the store is left untouched.
        """
        provider = adapter.provider
        remote = adapter.list_folders()
        now = utcnow()

        existing = {
            record.label_id: record
            for record in self.store.list_records(tenant_id, provider, include_deleted=True)
        }
        report = ReconciliationReport(tenant_id=tenant_id, provider=provider, observed=len(remote))

        seen: set[str] = set()
        for folder in remote:
            seen.add(folder.id)
            previous = existing.get(folder.id)
            record = ProviderFolderRecord(
                label_id=folder.id,
                provider=provider,
                business_profile_id=tenant_id,
                label_name=folder.name,
                # Hierarchical providers report no colour; keep what we set.
                color=folder.color or (previous.color if previous else None),
                parent_id=folder.parent_id,
                synced_at=now,
                is_deleted=False,
            )
            if previous is None:
                report.discovered += 1
                logger.info("Discovered folder %s (%s)", folder.name, folder.id)
            elif previous.is_deleted:
                report.restored += 1
                logger.info("Folder reappeared: %s (%s)", folder.name, folder.id)
            elif (previous.label_name, previous.parent_id, previous.color) != (
                record.label_name,
                record.parent_id,
                record.color,
            ):
                report.updated += 1
            self.store.upsert(record)

        missing = [
            record
            for label_id, record in existing.items()
            if not record.is_deleted and label_id not in seen
        ]
        if missing:
            self.store.mark_deleted(
                tenant_id, provider, [record.label_id for record in missing], synced_at=now
            )
            for record in missing:
                logger.info("Folder no longer present: %s (%s)", record.label_name, record.label_id)
        report.soft_deleted = [record.label_name for record in missing]

        logger.info(
            "Reconciled tenant %s (%s): %d observed, %d new, %d updated, %d restored, %d gone",
            tenant_id,
            provider.value,
            report.observed,
            report.discovered,
            report.updated,
            report.restored,
            len(report.soft_deleted),
        )
        return report
