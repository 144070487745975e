"""Routing table for the workflow engine.

The workflow engine routes a classified email by category key (``sales``,
``manager``, ...) to provider folder ids. Keys are normalized top-level
folder names with aliases folded (``forms`` -> ``formsub``), so naming drift
between the schema and the classifier does not break routing.
"""

from typing import Optional
import logging
import re

from .config import MailProvider, Settings, get_settings
from .errors import NotProvisionedError
from .models import PATH_SEPARATOR, ProviderFolderRecord, RoutingTable, record_paths

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[\s_\-]+")


def normalize_category(name: str, aliases: Optional[dict[str, str]] = None) -> str:
    """
    Normalize a category name into a routing key.

    Args:
        name: Top-level folder name, e.g. ``GOOGLE_REVIEW``.
        aliases: Lowercased alias -> canonical key.

    Returns:
        str: Key such as ``google review``.
    """
    key = _SEPARATORS.sub(" ", name.strip().lower()).strip()
    if aliases:
        return aliases.get(key, key)
    return key


class RoutingTableBuilder:
    """
    Build the category -> folder ids mapping from the local record.

    Args:
        settings: Settings providing the category aliases.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def build(
        self, tenant_id: str, provider: MailProvider, records: list[ProviderFolderRecord]
    ) -> RoutingTable:
        """
        Build the routing table.

        Each category lists the ids of every folder below it, ordered by
        path. A category with no subfolders routes to its own id.

        Args:
            tenant_id: Tenant (business profile id).
            provider: Provider the records belong to.
            records: Tenant records for the provider.

        Returns:
            RoutingTable: Category mapping plus the flat path -> id map.

        Raises:
            NotProvisionedError: No live records.
        """
        live = [r for r in records if not r.is_deleted]
        if not live:
            raise NotProvisionedError(tenant_id, MailProvider(provider).value)

        aliases = self.settings.category_alias_map
        paths = record_paths(live)
        table = RoutingTable(provider=provider)
        own_ids: dict[str, str] = {}

        for label_id, path in sorted(paths.items(), key=lambda item: item[1].lower()):
            table.folders[path] = label_id
            top, _, rest = path.partition(PATH_SEPARATOR)
            key = normalize_category(top, aliases)
            if rest:
                table.categories.setdefault(key, []).append(label_id)
            else:
                own_ids.setdefault(key, label_id)

        for key, label_id in own_ids.items():
            if not table.categories.get(key):
                table.categories[key] = [label_id]

        table.categories = dict(sorted(table.categories.items()))
        logger.debug(
            "Routing table for %s: %d categories, %d folders",
            tenant_id,
            len(table.categories),
            len(table.folders),
        )
        return table
