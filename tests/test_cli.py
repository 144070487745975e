from unittest.mock import MagicMock

import pytest

from src.mail_taxonomy import cli
from src.mail_taxonomy.config import MailProvider, Settings
from src.mail_taxonomy.errors import AuthError
from src.mail_taxonomy.models import NodeFailure, ProvisioningReport, RoutingTable


@pytest.fixture
def service(monkeypatch) -> MagicMock:
    service = MagicMock()
    monkeypatch.setattr(cli, "get_settings", lambda: Settings(_env_file=None))
    monkeypatch.setattr(cli, "build_service", lambda settings: service)
    monkeypatch.setattr(cli, "setup_logging", lambda level: None)
    return service


def _report(failed=()):
    return ProvisioningReport(
        tenant_id="acme",
        provider=MailProvider.GMAIL,
        phase="skeleton",
        created=["SALES", "SALES/Quotes"],
        failed=[NodeFailure(path=p, error_kind="transient") for p in failed],
    )


def test_provision_passes_business_types_and_token(service, capsys) -> None:
    service.provision_skeleton.return_value = _report()

    code = cli.main(
        ["provision", "acme", "-p", "gmail", "--access-token", "tok", "-b", "HVAC", "-b", "Plumber"]
    )

    assert code == 0
    args, kwargs = service.provision_skeleton.call_args
    assert args[0] == "acme"
    assert args[1].provider is MailProvider.GMAIL
    assert args[1].access_token == "tok"
    assert kwargs["business_type"] == ["HVAC", "Plumber"]
    assert "2 of 2 folders ready" in capsys.readouterr().out


def test_partial_failure_exits_nonzero(service, capsys) -> None:
    service.inject_team_folders.return_value = _report(failed=["MANAGER/Hailey"])

    code = cli.main(["inject-team", "acme", "-p", "gmail", "--access-token", "tok"])

    assert code == 1
    out = capsys.readouterr().out
    assert "MANAGER/Hailey [transient]" in out
    assert "2 of 3 folders created, retry" in out


def test_auth_error_asks_to_reconnect(service, capsys) -> None:
    service.reconcile.side_effect = AuthError("outlook", "Credential rejected", 401)

    code = cli.main(["reconcile", "acme", "-p", "outlook", "--access-token", "tok"])

    assert code == 2
    assert "Reconnect your email account" in capsys.readouterr().out


def test_missing_token_is_rejected_before_any_call(service, capsys) -> None:
    code = cli.main(["provision", "acme", "-p", "gmail"])

    assert code == 1
    service.provision_skeleton.assert_not_called()


def test_routing_prints_json_without_token(service, capsys) -> None:
    service.build_routing_table.return_value = RoutingTable(
        provider=MailProvider.GMAIL, categories={"sales": ["L1"]}, folders={"SALES": "L1"}
    )

    code = cli.main(["routing", "acme", "-p", "gmail"])

    assert code == 0
    service.build_routing_table.assert_called_once_with("acme", MailProvider.GMAIL, None)
    assert '"sales"' in capsys.readouterr().out


def test_print_report_verbose_lists_existing_and_errors(capsys) -> None:
    report = ProvisioningReport(
        tenant_id="acme",
        provider=MailProvider.OUTLOOK,
        phase="team",
        already_existed=["MANAGER"],
        failed=[NodeFailure(path="MANAGER/Sam", error_kind="provider_error", message="HTTP 400")],
    )

    cli.print_report(report, verbose=True)

    out = capsys.readouterr().out
    assert "MANAGER (already existed)" in out
    assert "Error: HTTP 400" in out
