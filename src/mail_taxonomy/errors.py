"""Error taxonomy for provisioning runs.

Propagation policy:
    - :class:`SchemaError` aborts before any network call.
    - :class:`AuthError` aborts the whole tenant run; the caller must refresh
      the credential and re-invoke.
    - :class:`TransientProviderError` and :class:`ProviderError` are isolated
      to the node that raised them and reported as failed nodes.
    - A folder that already exists is not an error at all; adapters report it
      as ``CreateResult(conflict=True)``.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import ProvisioningReport


class MailTaxonomyError(Exception):
    """Base class for all engine errors."""


class SchemaError(MailTaxonomyError):
    """Raised for unknown business types or malformed folder schemas."""


class ProfileNotFoundError(MailTaxonomyError):
    """Raised when no business profile exists for a tenant."""

    def __init__(self, tenant_id: str) -> None:
        super().__init__(f"No business profile for tenant {tenant_id!r}")
        self.tenant_id = tenant_id


class ProviderError(MailTaxonomyError):
    """A provider rejected a call and retrying will not help.

    Args:
        provider: Provider identifier (``gmail`` / ``outlook``).
        message: Short description, safe to show in reports.
        status_code: HTTP status when one was received.
    """

    error_kind = "provider_error"

    def __init__(
        self, provider: str, message: str, status_code: Optional[int] = None
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """Network failure, throttling or 5xx that outlived the retry budget."""

    error_kind = "transient"


class AuthError(ProviderError):
    """The provider credential is expired, revoked or lacks permissions."""

    error_kind = "auth"
    user_message = "Reconnect your email account"


class NotProvisionedError(MailTaxonomyError):
    """Raised instead of returning an empty routing table."""

    def __init__(self, tenant_id: str, provider: str) -> None:
        super().__init__(f"No folders provisioned for tenant {tenant_id!r} on {provider}")
        self.tenant_id = tenant_id
        self.provider = provider


class PartialProvisioningFailure(MailTaxonomyError):
    """One or more folders failed after retries; the run is safe to repeat.

    Raised by :meth:`ProvisioningReport.raise_for_status`, never by the
    orchestrator itself.
    """

    def __init__(self, report: "ProvisioningReport") -> None:
        super().__init__(report.summary_message)
        self.report = report
