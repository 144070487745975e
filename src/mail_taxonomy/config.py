"""Application configuration and settings.

Objective:
    Provide a single source of truth for runtime configuration used across the
    provisioning engine (local store, provider retry policies, concurrency,
    coverage thresholds and category aliases).

Responsibilities:
    - Define the supported mail providers (:class:`MailProvider`) and folder
      kinds (:class:`FolderKind`).
    - Load environment-driven settings via :class:`Settings` (Pydantic
      BaseSettings).
    - Derive per-provider :class:`RetryPolicy` objects and the category alias
      map used by the routing table builder.

High-level call tree:
    - :func:`get_settings` -> returns :class:`Settings`
    - :class:`Settings`
        - :meth:`Settings.retry_policy`
        - :attr:`Settings.category_alias_map`

Operational notes:
    - ``Settings`` loads from ``.env`` by default via ``pydantic-settings``.
      Every variable is prefixed with ``MAIL_TAXONOMY_``.
    - Components accept a ``Settings`` object explicitly to enable testing;
      the service facade falls back to :func:`get_settings` when not provided.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Fixed parents of dynamic folders
MANAGER_CATEGORY = "MANAGER"
SUPPLIERS_CATEGORY = "SUPPLIERS"
UNASSIGNED_FOLDER = "Unassigned"


class MailProvider(str, Enum):
    """Mail providers with a folder/label adapter.

    The value is the identifier persisted on every folder record.
    """

    GMAIL = "gmail"
    OUTLOOK = "outlook"


class FolderKind(str, Enum):
    """Origin of a folder node in the resolved tree."""

    CORE = "core"
    DYNAMIC_TEAM = "dynamic-team"
    DYNAMIC_SUPPLIER = "dynamic-supplier"


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget for remote calls against one provider.

    Args:
        max_attempts: Total attempts including the first call.
        base_delay: Delay before the first retry, in seconds. Doubles per retry.
        max_delay: Upper bound for any single delay, in seconds.
    """

    max_attempts: int
    base_delay: float
    max_delay: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Return the backoff delay after a failed ``attempt`` (1-based).

        Args:
            attempt: Number of the attempt that just failed.

        Returns:
            float: Seconds to wait before the next attempt.
        """
        return min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The settings model is intentionally flat and human-editable via `.env`.
    Most fields map directly to environment variables.

    Attributes:
        database_path: SQLite file holding provider folder records.
        profiles_dir: Directory of ``<tenant>.json`` business profiles.
        access_token: Optional provider bearer token for CLI runs.
        request_timeout: Timeout (seconds) applied to every remote call.
        max_concurrent_calls: Worker pool size for independent branches.
        gmail_max_attempts: Attempts per Gmail call (including the first).
        gmail_backoff_base: First Gmail retry delay in seconds.
        outlook_max_attempts: Attempts per Graph call (including the first).
        outlook_backoff_base: First Graph retry delay in seconds.
        max_backoff: Upper bound for a single retry delay.
        healthy_coverage_threshold: Coverage percentage considered healthy.
        category_aliases: Comma-separated ``alias:canonical`` pairs.
        max_managers: Maximum injected team-member folders.
        max_suppliers: Maximum injected supplier folders.
        log_level: Logging level.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MAIL_TAXONOMY_",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    database_path: str = Field(
        default="mail_taxonomy.sqlite", description="SQLite database file for folder records"
    )
    profiles_dir: str = Field(
        default="profiles", description="Directory containing <tenant>.json business profiles"
    )

    # Credential supplied by the OAuth collaborator (CLI only)
    access_token: Optional[str] = Field(
        default=None,
        description=(
            "Provider bearer token used by the CLI when --access-token is not given. "
            "The engine never refreshes tokens."
        ),
    )

    # Remote call behaviour
    request_timeout: float = Field(
        default=30.0, gt=0, description="Timeout in seconds for each provider call"
    )
    max_concurrent_calls: int = Field(
        default=4, ge=1, le=8, description="Concurrent remote calls per provisioning run"
    )
    gmail_max_attempts: int = Field(default=5, ge=1, le=10)
    gmail_backoff_base: float = Field(default=1.0, ge=0)
    outlook_max_attempts: int = Field(default=4, ge=1, le=10)
    outlook_backoff_base: float = Field(default=2.0, ge=0)
    max_backoff: float = Field(default=30.0, ge=0)

    # Validation and routing
    healthy_coverage_threshold: float = Field(default=90.0, ge=0, le=100)
    category_aliases: str = Field(
        default=(
            "forms:formsub,form submissions:formsub,"
            "google_review:google review,googlereview:google review,"
            "social:socialmedia,social media:socialmedia"
        ),
        description="Comma-separated alias:canonical category key pairs",
    )

    # Dynamic injection caps
    max_managers: int = Field(default=5, ge=0)
    max_suppliers: int = Field(default=10, ge=0)

    log_level: str = Field(default="INFO", description="Logging level")

    def retry_policy(self, provider: MailProvider) -> RetryPolicy:
        """
        Build the retry policy for a provider.

        Gmail and Graph have different throttling characteristics, so each
        provider has its own attempt count and base delay.

        Args:
            provider: Mail provider.

        Returns:
            RetryPolicy: Retry budget for the provider.
        """
        if MailProvider(provider) is MailProvider.GMAIL:
            return RetryPolicy(self.gmail_max_attempts, self.gmail_backoff_base, self.max_backoff)
        return RetryPolicy(self.outlook_max_attempts, self.outlook_backoff_base, self.max_backoff)

    @property
    def category_alias_map(self) -> dict[str, str]:
        """
        Parse category aliases from the comma-separated setting.

        Malformed pairs are skipped with a warning.

        Returns:
            dict[str, str]: Lowercased alias -> lowercased canonical key.
        """
        aliases: dict[str, str] = {}
        if not self.category_aliases:
            return aliases
        for pair in self.category_aliases.split(","):
            alias, sep, canonical = pair.partition(":")
            if not sep or not alias.strip() or not canonical.strip():
                logger.warning("Ignoring malformed category alias: %r", pair)
                continue
            aliases[alias.strip().lower()] = canonical.strip().lower()
        return aliases


def get_settings() -> Settings:
    """
    Load and return application settings.

    For tests, construct a :class:`Settings` instance directly.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
