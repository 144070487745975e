"""Provider adapter interface and shared HTTP core.

Objective:
    Give the orchestrator and the reconciliation service one capability
    interface over two very different providers:
    - Gmail: flat label namespace, nesting is a ``/`` naming convention.
    - Outlook (Microsoft Graph): real folder hierarchy with parent ids.

Responsibilities:
    - Declare the adapter operations (:class:`ProviderAdapter`).
    - Issue authenticated HTTP requests with a per-provider retry policy
      (:meth:`ProviderAdapter._make_request`).
    - Map HTTP outcomes to the engine's error taxonomy.
    - Select the provider variant from a credential
      (:func:`create_provider_adapter`).

High-level call tree:
    - :func:`create_provider_adapter`
        -> :class:`src.mail_taxonomy.gmail_labels.GmailLabelAdapter`
        -> :class:`src.mail_taxonomy.outlook_folders.OutlookFolderAdapter`
    - :meth:`ProviderAdapter._make_request` (auth header, timeout, retries)

Error handling:
    - 401/403 -> :class:`AuthError`, never retried.
    - 429, 5xx, timeouts and connection failures are retried; once the budget
      is spent -> :class:`TransientProviderError`.
    - A conflict response is returned as ``None`` when the caller allows it;
      adapters turn that into ``CreateResult(conflict=True)``.
    - Any other non-2xx -> :class:`ProviderError`.
    - Provider payloads are logged at DEBUG only.
"""

from abc import ABC, abstractmethod
from typing import Optional
import logging
import time

import requests

from .config import MailProvider, RetryPolicy, Settings, get_settings
from .errors import AuthError, ProviderError, TransientProviderError
from .models import CreateResult, ParentRef, ProviderCredential, RemoteFolder

logger = logging.getLogger(__name__)

AUTH_STATUSES = frozenset({401, 403})


def _retry_after_seconds(response: requests.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class ProviderAdapter(ABC):
    """
    Create/list/resolve folders on one tenant's mailbox.

    Subclasses set :attr:`provider` and :attr:`BASE_URL` and implement the
    four abstract operations. The credential is passed in explicitly; the
    adapter never refreshes it.

    Attributes:
        credential: Bearer credential for the mailbox.
        settings: Application settings (timeout, retry policy).
        retry_policy: Retry budget for this provider.
    """

    provider: MailProvider
    BASE_URL = ""

    def __init__(self, credential: ProviderCredential, settings: Optional[Settings] = None):
        self.credential = credential
        self.settings = settings or get_settings()
        self.retry_policy: RetryPolicy = self.settings.retry_policy(self.provider)
        self._sleep = time.sleep

    @abstractmethod
    def create(
        self, name: str, parent: Optional[ParentRef] = None, color: Optional[str] = None
    ) -> CreateResult:
        """Create a folder under ``parent`` (None for top level).

        ``color`` is applied where the provider supports label colours.
        """

    @abstractmethod
    def list_folders(self) -> list[RemoteFolder]:
        """List every user folder the provider currently has."""

    @abstractmethod
    def resolve_by_name(self, name: str, parent: Optional[ParentRef] = None) -> Optional[str]:
        """Return the id of an existing folder, or None when absent."""

    @abstractmethod
    def remote_folder(
        self, folder_id: str, name: str, parent: Optional[ParentRef] = None
    ) -> RemoteFolder:
        """Describe a provisioned node the way :meth:`list_folders` would."""

    def _is_conflict(self, response: requests.Response) -> bool:
        return response.status_code == 409

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json_data: Optional[dict] = None,
        allow_conflict: bool = False,
    ) -> Optional[dict]:
        """Make an authenticated request with retries.

        Args:
            method: HTTP method.
            endpoint: Path relative to :attr:`BASE_URL`, or an absolute URL
                (paging links).
            params: Query parameters.
            json_data: JSON body.
            allow_conflict: Return None instead of raising on a conflict.

        Returns:
            Optional[dict]: Decoded JSON, ``{}`` for 204, or None for an
            allowed conflict.

        Raises:
            AuthError: Credential rejected.
            TransientProviderError: Retry budget exhausted.
            ProviderError: Any other non-2xx response.
        """
        url = endpoint if endpoint.startswith("http") else f"{self.BASE_URL}{endpoint}"
        headers = {
            "Authorization": f"Bearer {self.credential.access_token}",
            "Content-Type": "application/json",
        }
        policy = self.retry_policy
        provider = self.provider.value

        for attempt in range(1, policy.max_attempts + 1):
            retry_after: Optional[float] = None
            try:
                response = requests.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=params,
                    json=json_data,
                    timeout=self.settings.request_timeout,
                )
            except (requests.Timeout, requests.ConnectionError) as exc:
                failure = f"{method} {endpoint} failed: {type(exc).__name__}"
            else:
                status = response.status_code
                if status in AUTH_STATUSES:
                    logger.error("%s rejected the credential (HTTP %s)", provider, status)
                    raise AuthError(provider, "Credential rejected by provider", status)
                if status == 429 or status >= 500:
                    failure = f"{method} {endpoint} failed with HTTP {status}"
                    retry_after = _retry_after_seconds(response)
                elif not response.ok:
                    if allow_conflict and self._is_conflict(response):
                        logger.debug("%s conflict on %s %s", provider, method, endpoint)
                        return None
                    logger.debug("%s error payload: %s - %s", provider, status, response.text)
                    raise ProviderError(
                        provider, f"{method} {endpoint} failed with HTTP {status}", status
                    )
                elif status == 204:
                    return {}
                else:
                    return response.json()

            if attempt == policy.max_attempts:
                break
            delay = policy.delay_for(attempt)
            if retry_after is not None:
                delay = min(retry_after, policy.max_delay)
            logger.warning(
                "%s; retrying in %.1fs (attempt %d/%d)",
                failure,
                delay,
                attempt,
                policy.max_attempts,
            )
            self._sleep(delay)

        logger.warning("%s; giving up after %d attempts", failure, policy.max_attempts)
        raise TransientProviderError(provider, failure)


def create_provider_adapter(
    credential: ProviderCredential, settings: Optional[Settings] = None
) -> ProviderAdapter:
    """
    Build the adapter variant for the credential's provider.

    Args:
        credential: Bearer credential naming the provider.
        settings: Optional settings.

    Returns:
        ProviderAdapter: Gmail or Outlook adapter.
    """
    provider = MailProvider(credential.provider)
    if provider is MailProvider.GMAIL:
        from .gmail_labels import GmailLabelAdapter

        return GmailLabelAdapter(credential, settings)

    from .outlook_folders import OutlookFolderAdapter

    return OutlookFolderAdapter(credential, settings)
