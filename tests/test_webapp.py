from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from src.mail_taxonomy.config import MailProvider
from src.mail_taxonomy.errors import AuthError, NotProvisionedError, SchemaError
from src.mail_taxonomy.models import NodeFailure, ProvisioningReport, RoutingTable
from src.mail_taxonomy.webapp import create_app, get_service


def _client(service) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_service] = lambda: service
    return TestClient(app)


def test_health() -> None:
    """Health endpoint returns ok."""

    client = TestClient(create_app())

    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_provision_returns_report_with_summary() -> None:
    """A partial failure is still a 200 with the retry message."""

    service = MagicMock()
    service.provision_skeleton.return_value = ProvisioningReport(
        tenant_id="spa",
        provider=MailProvider.GMAIL,
        phase="skeleton",
        created=["SALES"],
        failed=[NodeFailure(path="MISC", error_kind="transient", message="HTTP 503")],
    )

    resp = _client(service).post(
        "/api/tenants/spa/provision",
        json={"provider": "gmail", "business_type": "Hot tub & Spa"},
        headers={"X-Provider-Token": "tok"},
    )

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["message"] == "1 of 2 folders created, retry"
    assert payload["created"] == ["SALES"]
    assert payload["failed"][0]["path"] == "MISC"

    args, kwargs = service.provision_skeleton.call_args
    assert args[0] == "spa"
    assert args[1].access_token == "tok"
    assert kwargs["business_type"] == "Hot tub & Spa"


def test_missing_token_is_auth_required() -> None:
    service = MagicMock()

    resp = _client(service).post("/api/tenants/spa/team-folders", json={"provider": "outlook"})

    assert resp.status_code == 401
    assert resp.json()["error"] == "auth_required"
    service.inject_team_folders.assert_not_called()


def test_auth_error_maps_to_reconnect_message() -> None:
    service = MagicMock()
    service.inject_team_folders.side_effect = AuthError("outlook", "Credential rejected", 401)

    resp = _client(service).post(
        "/api/tenants/spa/team-folders",
        json={"provider": "outlook"},
        headers={"X-Provider-Token": "expired"},
    )

    assert resp.status_code == 401
    assert resp.json() == {"error": "auth_required", "message": "Reconnect your email account"}


def test_schema_error_is_unprocessable() -> None:
    service = MagicMock()
    service.provision_skeleton.side_effect = SchemaError("Unknown business type: 'Bakery'")

    resp = _client(service).post(
        "/api/tenants/spa/provision",
        json={"provider": "gmail", "business_type": "Bakery"},
        headers={"X-Provider-Token": "tok"},
    )

    assert resp.status_code == 422
    assert resp.json()["error"] == "schema_error"


def test_routing_not_provisioned_is_conflict() -> None:
    service = MagicMock()
    service.build_routing_table.side_effect = NotProvisionedError("spa", "gmail")

    resp = _client(service).get("/api/tenants/spa/routing", params={"provider": "gmail"})

    assert resp.status_code == 409
    assert resp.json()["error"] == "not_provisioned"
    service.build_routing_table.assert_called_once_with("spa", MailProvider.GMAIL, None)


def test_routing_table_payload() -> None:
    service = MagicMock()
    service.build_routing_table.return_value = RoutingTable(
        provider=MailProvider.GMAIL,
        categories={"manager": ["L2"]},
        folders={"MANAGER/Unassigned": "L2"},
    )

    resp = _client(service).get("/api/tenants/spa/routing", params={"provider": "gmail"})

    assert resp.status_code == 200
    assert resp.json()["categories"] == {"manager": ["L2"]}


def test_requests_share_one_service(tmp_path, monkeypatch) -> None:
    """Per-tenant locks only serialise work if every request sees the same service."""

    monkeypatch.setenv("MAIL_TAXONOMY_DATABASE_PATH", str(tmp_path / "folders.sqlite"))
    monkeypatch.setenv("MAIL_TAXONOMY_PROFILES_DIR", str(tmp_path / "profiles"))
    get_service.cache_clear()
    try:
        first = get_service()
        second = get_service()

        assert first is second
        assert first._tenant_lock("t1") is second._tenant_lock("t1")
    finally:
        get_service.cache_clear()
