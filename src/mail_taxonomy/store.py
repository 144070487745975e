"""Local record of provider folders (SQLite).

Objective:
    Persist :class:`~src.mail_taxonomy.models.ProviderFolderRecord` rows: the
    engine's belief about which folders exist remotely. The record is a cache
    with explicit staleness marking, never the source of truth.

Schema:
    ``provider_folders`` keyed by ``(business_profile_id, provider, label_id)``
    with indexes on ``business_profile_id`` and ``(provider, label_id)``.

Operational notes:
    - One short-lived connection per operation (WAL mode, busy timeout), so
      the store is safe to share between worker threads. Because of that a
      ``:memory:`` path is not supported; use a file.
    - Writes are upserts with last-write-wins on ``synced_at``: an older
      write never overwrites a newer row.
    - Only the reconciliation service calls :meth:`FolderStore.mark_deleted`.
"""

from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union
import logging
import sqlite3

from .config import MailProvider
from .models import ProviderFolderRecord

logger = logging.getLogger(__name__)

# Fixed width so stored timestamps compare correctly as text.
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS provider_folders (
    business_profile_id TEXT NOT NULL,
    provider TEXT NOT NULL,
    label_id TEXT NOT NULL,
    label_name TEXT NOT NULL,
    color TEXT,
    parent_id TEXT,
    synced_at TEXT NOT NULL,
    is_deleted INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (business_profile_id, provider, label_id)
);
CREATE INDEX IF NOT EXISTS idx_provider_folders_profile
    ON provider_folders (business_profile_id);
CREATE INDEX IF NOT EXISTS idx_provider_folders_label
    ON provider_folders (provider, label_id);
"""

_UPSERT = """
INSERT INTO provider_folders (
    business_profile_id, provider, label_id, label_name, color, parent_id,
    synced_at, is_deleted
) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (business_profile_id, provider, label_id) DO UPDATE SET
    label_name = excluded.label_name,
    color = excluded.color,
    parent_id = excluded.parent_id,
    synced_at = excluded.synced_at,
    is_deleted = excluded.is_deleted
WHERE excluded.synced_at >= provider_folders.synced_at
"""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value)


class FolderStore:
    """
    SQLite-backed store of provider folder records.

    Args:
        db_path: Database file; created (with parent directories) on first use.
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self.init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        with closing(sqlite3.connect(self.db_path, timeout=30.0)) as conn:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA busy_timeout = 30000;")
            with conn:
                yield conn

    def init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.executescript(_SCHEMA)
        logger.debug("Folder store ready at %s", self.db_path)

    @staticmethod
    def _row_values(record: ProviderFolderRecord) -> tuple:
        return (
            record.business_profile_id,
            MailProvider(record.provider).value,
            record.label_id,
            record.label_name,
            record.color,
            record.parent_id,
            _format_timestamp(record.synced_at),
            int(record.is_deleted),
        )

    @staticmethod
    def _from_row(row: sqlite3.Row) -> ProviderFolderRecord:
        return ProviderFolderRecord(
            business_profile_id=row["business_profile_id"],
            provider=MailProvider(row["provider"]),
            label_id=row["label_id"],
            label_name=row["label_name"],
            color=row["color"],
            parent_id=row["parent_id"],
            synced_at=_parse_timestamp(row["synced_at"]),
            is_deleted=bool(row["is_deleted"]),
        )

    def upsert(self, record: ProviderFolderRecord) -> bool:
        """
        Insert or update one record.

        Args:
            record: Record to write.

        Returns:
            bool: False if a newer row already existed and was kept.
        """
        with self._connect() as conn:
            cursor = conn.execute(_UPSERT, self._row_values(record))
            written = cursor.rowcount > 0
        if not written:
            logger.debug("Kept newer record for %s/%s", record.provider, record.label_id)
        return written

    def get(
        self, business_profile_id: str, provider: MailProvider, label_id: str
    ) -> Optional[ProviderFolderRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM provider_folders "
                "WHERE business_profile_id = ? AND provider = ? AND label_id = ?",
                (business_profile_id, MailProvider(provider).value, label_id),
            ).fetchone()
        return self._from_row(row) if row else None

    def list_records(
        self,
        business_profile_id: str,
        provider: Optional[MailProvider] = None,
        include_deleted: bool = False,
    ) -> list[ProviderFolderRecord]:
        """
        List a tenant's records.

        Args:
            business_profile_id: Tenant.
            provider: Restrict to one provider.
            include_deleted: Include soft-deleted records.

        Returns:
            list[ProviderFolderRecord]: Records ordered by name.
        """
        query = "SELECT * FROM provider_folders WHERE business_profile_id = ?"
        params: list = [business_profile_id]
        if provider is not None:
            query += " AND provider = ?"
            params.append(MailProvider(provider).value)
        if not include_deleted:
            query += " AND is_deleted = 0"
        query += " ORDER BY label_name, label_id"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._from_row(row) for row in rows]

    def mark_deleted(
        self,
        business_profile_id: str,
        provider: MailProvider,
        label_ids: Iterable[str],
        synced_at: Optional[datetime] = None,
    ) -> int:
        """
        Soft-delete records no longer observed remotely.

        Args:
            business_profile_id: Tenant.
            provider: Provider.
            label_ids: Ids to mark.
            synced_at: Time of the observation; defaults to now.

        Returns:
            int: Number of records marked.
        """
        ids = list(label_ids)
        if not ids:
            return 0
        stamp = _format_timestamp(synced_at or utcnow())
        with self._connect() as conn:
            cursor = conn.executemany(
                "UPDATE provider_folders SET is_deleted = 1, synced_at = ? "
                "WHERE business_profile_id = ? AND provider = ? AND label_id = ? "
                "AND is_deleted = 0 AND synced_at <= ?",
                [
                    (stamp, business_profile_id, MailProvider(provider).value, label_id, stamp)
                    for label_id in ids
                ],
            )
            return cursor.rowcount
