"""Classifier coverage and folder health.

- Coverage: share of the tenant's live folders the classifier can route
  into (their name is in the expected category set).
- Folder health: share of the expected tree that has a live record.
"""

from typing import Optional
import logging

from .config import Settings, get_settings
from .models import (
    CoverageReport,
    ExpectedCategorySet,
    FolderHealthReport,
    FolderTree,
    ProviderFolderRecord,
    record_paths,
)

logger = logging.getLogger(__name__)


def _percentage(part: int, whole: int) -> float:
    return round(part / whole * 100, 1)


class CoverageValidator:
    """
    Compare recorded folders against what should exist.

    Args:
        settings: Settings providing the healthy coverage threshold.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def validate(
        self, records: list[ProviderFolderRecord], expected: ExpectedCategorySet
    ) -> CoverageReport:
        """
        Compute classifier coverage.

        Soft-deleted records are ignored. With no folders at all coverage is
        0% and unhealthy.

        Args:
            records: Tenant records for one provider.
            expected: Names the classifier may route into.

        Returns:
            CoverageReport: Coverage percentage and unclassifiable names.
        """
        live = [r for r in records if not r.is_deleted]
        unclassifiable = [r.label_name for r in live if not expected.matches(r.label_name)]
        classifiable = len(live) - len(unclassifiable)

        if not live:
            percentage = 0.0
        else:
            percentage = _percentage(classifiable, len(live))
        healthy = bool(live) and percentage >= self.settings.healthy_coverage_threshold

        if unclassifiable:
            logger.debug("Unclassifiable folders: %s", unclassifiable)
        return CoverageReport(
            total_folders=len(live),
            classifiable_folders=classifiable,
            unclassifiable_folders=sorted(unclassifiable),
            coverage_percentage=percentage,
            is_healthy=healthy,
        )

    def folder_health(
        self, tree: FolderTree, records: list[ProviderFolderRecord]
    ) -> FolderHealthReport:
        """
        Check which expected folders have a live record.

        Args:
            tree: Expected tree (current team data included).
            records: Tenant records for one provider.

        Returns:
            FolderHealthReport: Found / missing paths and the percentage.
        """
        live = [r for r in records if not r.is_deleted]
        found = {path.lower() for path in record_paths(live).values()}
        expected = tree.paths()
        missing = [path for path in expected if path.lower() not in found]
        total_found = len(expected) - len(missing)
        percentage = _percentage(total_found, len(expected)) if expected else 100.0

        return FolderHealthReport(
            total_expected=len(expected),
            total_found=total_found,
            missing_folders=missing,
            health_percentage=percentage,
            all_folders_present=not missing,
        )
