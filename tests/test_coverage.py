from datetime import datetime, timezone

import pytest

from src.mail_taxonomy.config import MailProvider, Settings
from src.mail_taxonomy.coverage import CoverageValidator
from src.mail_taxonomy.models import ProviderFolderRecord
from src.mail_taxonomy.schema import SchemaResolver, expected_category_set

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _records(*names, deleted=()):
    return [
        ProviderFolderRecord(
            label_id=f"id-{i}",
            provider=MailProvider.GMAIL,
            business_profile_id="t1",
            label_name=name,
            synced_at=NOW,
            is_deleted=name in deleted,
        )
        for i, name in enumerate(names)
    ]


@pytest.fixture
def validator() -> CoverageValidator:
    return CoverageValidator(Settings(_env_file=None, healthy_coverage_threshold=90.0))


@pytest.fixture
def resolver() -> SchemaResolver:
    return SchemaResolver(Settings(_env_file=None))


class TestCoverage:
    def test_no_folders_is_zero_and_unhealthy(self, validator, resolver):
        expected = expected_category_set(resolver.resolve("Hot tub & Spa"))

        report = validator.validate([], expected)

        assert report.total_folders == 0
        assert report.coverage_percentage == 0.0
        assert report.is_healthy is False

    def test_unknown_folders_are_listed(self, validator, resolver):
        expected = expected_category_set(resolver.resolve("Hot tub & Spa"))

        report = validator.validate(_records("MISC", "SALES", "Vacation Pics"), expected)

        assert report.classifiable_folders == 2
        assert report.unclassifiable_folders == ["Vacation Pics"]
        assert report.coverage_percentage == 66.7
        assert report.is_healthy is False

    def test_deleted_records_are_ignored(self, validator, resolver):
        expected = expected_category_set(resolver.resolve("Hot tub & Spa"))

        report = validator.validate(_records("MISC", "Old", deleted={"Old"}), expected)

        assert report.total_folders == 1
        assert report.coverage_percentage == 100.0
        assert report.is_healthy is True

    def test_adding_team_member_never_lowers_coverage(self, validator, resolver):
        records = _records("MISC", "MANAGER/Hailey", "MANAGER/Jillian")
        before = validator.validate(
            records, expected_category_set(resolver.resolve("Hot tub & Spa", managers=["Hailey"]))
        )

        after = validator.validate(
            records,
            expected_category_set(
                resolver.resolve("Hot tub & Spa", managers=["Hailey", "Jillian"])
            ),
        )

        assert before.unclassifiable_folders == ["MANAGER/Jillian"]
        assert after.coverage_percentage >= before.coverage_percentage
        assert after.unclassifiable_folders == []


class TestFolderHealth:
    def test_missing_paths_are_reported(self, validator, resolver):
        tree = resolver.resolve("Hot tub & Spa")
        paths = tree.paths()
        records = _records(*[p for p in paths if p != "MISC/Personal"])

        report = validator.folder_health(tree, records)

        assert report.missing_folders == ["MISC/Personal"]
        assert report.total_expected == len(paths)
        assert report.all_folders_present is False
        assert report.health_percentage == round((len(paths) - 1) / len(paths) * 100, 1)

    def test_all_present(self, validator, resolver):
        tree = resolver.resolve("Hot tub & Spa")

        report = validator.folder_health(tree, _records(*tree.paths()))

        assert report.health_percentage == 100.0
        assert report.all_folders_present is True
