from unittest.mock import MagicMock

import pytest

from src.mail_taxonomy.errors import (
    AuthError,
    PartialProvisioningFailure,
    TransientProviderError,
)
from src.mail_taxonomy.orchestrator import ProvisioningOrchestrator
from src.mail_taxonomy.schema import SchemaResolver


@pytest.fixture
def resolver(settings) -> SchemaResolver:
    return SchemaResolver(settings)


@pytest.fixture
def orchestrator(store, settings) -> ProvisioningOrchestrator:
    return ProvisioningOrchestrator(store, settings)


def _live(store, tenant="t1"):
    return {(r.label_id, r.label_name, r.parent_id) for r in store.list_records(tenant)}


class TestProvisionSkeleton:
    def test_creates_every_core_node(self, orchestrator, resolver, gmail_adapter, store):
        tree = resolver.resolve("Hot tub & Spa")

        report = orchestrator.provision_skeleton("t1", tree, gmail_adapter)

        assert report.created == tree.paths()
        assert report.failed == []
        assert len(store.list_records("t1")) == len(tree.paths())
        assert report.summary_message == f"{len(tree.paths())} of {len(tree.paths())} folders ready"

    def test_second_run_is_idempotent(self, orchestrator, resolver, gmail_adapter, store):
        tree = resolver.resolve("Hot tub & Spa")
        orchestrator.provision_skeleton("t1", tree, gmail_adapter)
        before = _live(store)

        report = orchestrator.provision_skeleton("t1", tree, gmail_adapter)

        assert report.created == []
        assert report.already_existed == tree.paths()
        assert _live(store) == before

    def test_existing_remote_folder_is_resolved_not_failed(
        self, orchestrator, resolver, gmail_adapter, store
    ):
        gmail_adapter.add_remote("SALES", folder_id="pre-existing")
        tree = resolver.resolve("Hot tub & Spa")

        report = orchestrator.provision_skeleton("t1", tree, gmail_adapter)

        assert "SALES" in report.already_existed
        assert report.folder_ids["SALES"] == "pre-existing"
        assert not report.has_failures
        assert store.get("t1", gmail_adapter.provider, "pre-existing").label_name == "SALES"

    def test_unresolvable_conflict_fails_node_without_fabricating_id(
        self, orchestrator, resolver, gmail_adapter, store
    ):
        gmail_adapter.add_remote("MISC", folder_id="hidden")
        gmail_adapter.resolve_by_name = MagicMock(return_value=None)
        tree = resolver.resolve("Hot tub & Spa")

        report = orchestrator.provision_skeleton("t1", tree, gmail_adapter)

        failures = {f.path: f.error_kind for f in report.failed}
        assert failures["MISC"] == "conflict_unresolved"
        assert failures["MISC/General"] == "parent_failed"
        assert store.get("t1", gmail_adapter.provider, "hidden") is None

    def test_failed_branch_does_not_abort_siblings(
        self, orchestrator, resolver, gmail_adapter
    ):
        gmail_adapter.fail_on["SALES"] = TransientProviderError("gmail", "HTTP 503")
        tree = resolver.resolve("Hot tub & Spa")

        report = orchestrator.provision_skeleton("t1", tree, gmail_adapter)

        failed = {f.path: f.error_kind for f in report.failed}
        assert failed["SALES"] == "transient"
        assert all(kind == "parent_failed" for path, kind in failed.items() if path != "SALES")
        assert len(failed) == 1 + len(tree.find("SALES").children)
        # Children of the failed node are never attempted.
        assert not any(call.startswith("SALES/") for call in gmail_adapter.create_calls)
        assert "BANKING" in report.created
        assert report.summary_message.endswith("folders created, retry")
        with pytest.raises(PartialProvisioningFailure):
            report.raise_for_status()

    def test_auth_error_aborts_run(self, orchestrator, resolver, gmail_adapter):
        gmail_adapter.fail_on["BANKING"] = AuthError("gmail", "Credential rejected", 401)
        tree = resolver.resolve("Hot tub & Spa")

        with pytest.raises(AuthError):
            orchestrator.provision_skeleton("t1", tree, gmail_adapter)

    def test_dynamic_nodes_are_left_for_phase_b(self, orchestrator, resolver, gmail_adapter):
        tree = resolver.resolve("Hot tub & Spa", managers=["Hailey"])

        report = orchestrator.provision_skeleton("t1", tree, gmail_adapter)

        assert "MANAGER/Hailey" not in report.created
        assert "MANAGER/Unassigned" in report.created

    def test_hierarchical_provider_records_parent_ids(
        self, orchestrator, resolver, outlook_adapter, store
    ):
        tree = resolver.resolve("Hot tub & Spa")

        report = orchestrator.provision_skeleton("t1", tree, outlook_adapter)

        manager_id = report.folder_ids["MANAGER"]
        unassigned = store.get("t1", outlook_adapter.provider, report.folder_ids["MANAGER/Unassigned"])
        assert unassigned.label_name == "Unassigned"
        assert unassigned.parent_id == manager_id


class TestInjectTeamFolders:
    def test_adds_only_new_team_nodes(self, orchestrator, resolver, gmail_adapter, store):
        skeleton = resolver.resolve("Hot tub & Spa")
        first = orchestrator.provision_skeleton("t1", skeleton, gmail_adapter)
        unassigned_id = first.folder_ids["MANAGER/Unassigned"]
        unassigned_before = store.get("t1", gmail_adapter.provider, unassigned_id)
        gmail_adapter.create_calls.clear()

        team_tree = resolver.resolve("Hot tub & Spa", managers=["Hailey", "Jillian"])
        report = orchestrator.inject_team_folders("t1", skeleton, team_tree, gmail_adapter)

        assert report.phase == "team"
        assert report.created == ["MANAGER/Hailey", "MANAGER/Jillian"]
        assert gmail_adapter.create_calls == ["MANAGER/Hailey", "MANAGER/Jillian"]
        assert store.get("t1", gmail_adapter.provider, unassigned_id) == unassigned_before

    def test_hierarchical_children_hang_off_recorded_parent(
        self, orchestrator, resolver, outlook_adapter, store
    ):
        skeleton = resolver.resolve("Hot tub & Spa")
        first = orchestrator.provision_skeleton("t1", skeleton, outlook_adapter)

        team_tree = resolver.resolve("Hot tub & Spa", suppliers=["Aqua Supply"])
        report = orchestrator.inject_team_folders("t1", skeleton, team_tree, outlook_adapter)

        supplier = store.get("t1", outlook_adapter.provider, report.folder_ids["SUPPLIERS/Aqua Supply"])
        assert supplier.parent_id == first.folder_ids["SUPPLIERS"]

    def test_missing_ancestor_is_provisioned_first(
        self, orchestrator, resolver, gmail_adapter, store
    ):
        skeleton = resolver.resolve("Hot tub & Spa")
        team_tree = resolver.resolve("Hot tub & Spa", managers=["Hailey"])

        report = orchestrator.inject_team_folders("t1", skeleton, team_tree, gmail_adapter)

        assert report.created == ["MANAGER", "MANAGER/Hailey"]

    def test_no_team_changes_is_empty_report(self, orchestrator, resolver, gmail_adapter):
        skeleton = resolver.resolve("Hot tub & Spa")

        report = orchestrator.inject_team_folders("t1", skeleton, skeleton, gmail_adapter)

        assert report.total == 0
        assert gmail_adapter.create_calls == []


class TestConcurrency:
    def test_branches_overlap_within_the_call_limit(
        self, orchestrator, resolver, tracking_adapter, settings
    ):
        tree = resolver.resolve("Hot tub & Spa")

        report = orchestrator.provision_skeleton("t1", tree, tracking_adapter)

        assert not report.has_failures
        assert 1 < tracking_adapter.peak <= settings.max_concurrent_calls

    def test_calls_for_one_node_are_sequential(self, orchestrator, resolver, tracking_adapter):
        tracking_adapter.add_remote("SALES", folder_id="pre-existing")
        tree = resolver.resolve("Hot tub & Spa")

        report = orchestrator.provision_skeleton("t1", tree, tracking_adapter)

        assert report.folder_ids["SALES"] == "pre-existing"
        assert [op for op, path in tracking_adapter.events if path == "SALES"] == [
            "create",
            "resolve",
        ]
        assert tracking_adapter.orphans == []
