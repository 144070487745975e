"""FastAPI JSON API for the provisioning engine.

Objective:
    Expose the tenant operations of
    :class:`src.mail_taxonomy.service.FolderProvisioningService` to the
    onboarding UI and the workflow engine. This module only parses requests
    and maps outcomes to HTTP responses; all logic stays in the service.

High-level call tree:
    - :func:`create_app`:
        - defines routes:
            - ``GET /health`` -> :func:`health`
            - ``POST /api/tenants/{tenant_id}/provision`` -> :func:`provision`
            - ``POST /api/tenants/{tenant_id}/team-folders`` -> :func:`team_folders`
            - ``GET /api/tenants/{tenant_id}/health`` -> :func:`tenant_health`
            - ``GET /api/tenants/{tenant_id}/routing`` -> :func:`routing_table`
    - :func:`get_service`:
        - returns the shared :class:`FolderProvisioningService` built from
          settings on first use.

Operational notes:
    - The provider bearer token travels in the ``X-Provider-Token`` header and
      is never echoed back.
    - Error mapping: auth -> 401, schema -> 422, missing profile -> 404,
      nothing provisioned -> 409, provider unavailable -> 502. A partial
      failure is a 200 carrying the report and its summary message.
    - For tests, :func:`get_service` is overridden via
      ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional
import logging

from fastapi import Depends, FastAPI, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import MailProvider, get_settings
from .errors import (
    AuthError,
    NotProvisionedError,
    ProfileNotFoundError,
    ProviderError,
    SchemaError,
)
from .models import ProviderCredential, ProvisioningReport
from .service import FolderProvisioningService, JsonProfileSource
from .store import FolderStore

logger = logging.getLogger(__name__)


class ProvisionRequest(BaseModel):
    provider: MailProvider
    business_type: Optional[str | list[str]] = None


class TeamFoldersRequest(BaseModel):
    provider: MailProvider


@lru_cache(maxsize=1)
def get_service() -> FolderProvisioningService:
    """Create the service from settings, once per process.

    Every request shares the instance so that its per-tenant locks serialise
    operations on the same tenant. Tests override this dependency with a stub
    exposing the same methods.

    Returns:
        FolderProvisioningService: Service instance.
    """
    settings = get_settings()
    return FolderProvisioningService(
        store=FolderStore(settings.database_path),
        profiles=JsonProfileSource(settings.profiles_dir),
        settings=settings,
    )


def _report_payload(report: ProvisioningReport) -> dict[str, Any]:
    payload = report.model_dump(mode="json")
    payload["message"] = report.summary_message
    return payload


def _auth_required() -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"error": "auth_required", "message": AuthError.user_message},
    )


def _error_response(exc: Exception) -> JSONResponse:
    """Map an engine error to a JSON response without provider payloads."""
    if isinstance(exc, AuthError):
        return _auth_required()
    if isinstance(exc, SchemaError):
        return JSONResponse(status_code=422, content={"error": "schema_error", "message": str(exc)})
    if isinstance(exc, ProfileNotFoundError):
        return JSONResponse(
            status_code=404, content={"error": "profile_not_found", "message": str(exc)}
        )
    if isinstance(exc, NotProvisionedError):
        return JSONResponse(
            status_code=409, content={"error": "not_provisioned", "message": str(exc)}
        )
    if isinstance(exc, ProviderError):
        logger.warning("Provider unavailable: %s", exc)
        return JSONResponse(
            status_code=502,
            content={"error": "provider_unavailable", "message": "Mail provider unavailable, retry"},
        )
    raise exc


def _credential(provider: MailProvider, token: Optional[str]) -> Optional[ProviderCredential]:
    if not token:
        return None
    return ProviderCredential(provider=provider, access_token=token)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: FastAPI app.
    """

    app = FastAPI(title="Mail Taxonomy Sync")

    @app.get("/health")
    def health() -> dict[str, str]:
        """Liveness check; makes no external calls."""

        return {"status": "ok"}

    @app.post("/api/tenants/{tenant_id}/provision")
    def provision(
        tenant_id: str,
        payload: ProvisionRequest,
        x_provider_token: Optional[str] = Header(default=None),
        service: FolderProvisioningService = Depends(get_service),
    ) -> Any:
        """Phase A: provision the core folder tree.

        Expected request body:
            ``{"provider": "gmail", "business_type": "Hot tub & Spa"}``
        """

        credential = _credential(payload.provider, x_provider_token)
        if credential is None:
            return _auth_required()
        try:
            report = service.provision_skeleton(
                tenant_id, credential, business_type=payload.business_type
            )
        except (SchemaError, AuthError, ProfileNotFoundError, ProviderError) as e:
            return _error_response(e)
        return _report_payload(report)

    @app.post("/api/tenants/{tenant_id}/team-folders")
    def team_folders(
        tenant_id: str,
        payload: TeamFoldersRequest,
        x_provider_token: Optional[str] = Header(default=None),
        service: FolderProvisioningService = Depends(get_service),
    ) -> Any:
        """Phase B: add folders for the team members saved on the profile."""

        credential = _credential(payload.provider, x_provider_token)
        if credential is None:
            return _auth_required()
        try:
            report = service.inject_team_folders(tenant_id, credential)
        except (SchemaError, AuthError, ProfileNotFoundError, ProviderError) as e:
            return _error_response(e)
        return _report_payload(report)

    @app.get("/api/tenants/{tenant_id}/health")
    def tenant_health(
        tenant_id: str,
        provider: MailProvider,
        service: FolderProvisioningService = Depends(get_service),
    ) -> Any:
        """Folder health and classifier coverage from the local record."""

        try:
            report = service.check_health(tenant_id, provider)
        except (SchemaError, ProfileNotFoundError) as e:
            return _error_response(e)
        return report.model_dump(mode="json")

    @app.get("/api/tenants/{tenant_id}/routing")
    def routing_table(
        tenant_id: str,
        provider: MailProvider,
        x_provider_token: Optional[str] = Header(default=None),
        service: FolderProvisioningService = Depends(get_service),
    ) -> Any:
        """Routing table; reconciles first when a provider token is sent."""

        try:
            table = service.build_routing_table(
                tenant_id, provider, _credential(provider, x_provider_token)
            )
        except (NotProvisionedError, AuthError, ProviderError) as e:
            return _error_response(e)
        return table.model_dump(mode="json")

    return app


app = create_app()
