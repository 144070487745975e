"""Command-line interface (CLI) entrypoint.

Objective:
    Provide operator tooling around
    :class:`src.mail_taxonomy.service.FolderProvisioningService`.

Responsibilities:
    - Parse sub-commands (provision, inject-team, reconcile, health, routing).
    - Configure logging, redacting bearer tokens from every record.
    - Build the service from settings and print a readable summary.

High-level call tree:
    - :func:`main`
        - :func:`setup_logging`
            - installs :class:`_BearerTokenRedactionFilter`
        - :func:`build_service`
        - one :class:`FolderProvisioningService` operation
        - :func:`print_report` / JSON output

Exit codes:
    - 0: success
    - 1: partial failure or any other error
    - 2: the provider rejected the credential
"""

import argparse
import logging
import re
import sys
from typing import Optional

from .config import MailProvider, Settings, get_settings
from .errors import AuthError, MailTaxonomyError
from .models import ProviderCredential, ProvisioningReport
from .service import FolderProvisioningService, JsonProfileSource
from .store import FolderStore

_BEARER_PATTERN = re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE)


class _BearerTokenRedactionFilter(logging.Filter):
    """Filter that rewrites ``Bearer <token>`` to ``Bearer ***``.

    Provider credentials can end up in messages from lower layers (request
    dumps in DEBUG mode). The record is rewritten in place and always emitted.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact the record's message.

        Args:
            record: Log record emitted by the logging framework.

        Returns:
            bool: Always True.
        """
        msg = record.getMessage()
        if "bearer" in msg.lower():
            record.msg = _BEARER_PATTERN.sub(r"\1***", msg)
            record.args = None
        return True


def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the application.

    This sets the root logger level and installs the
    :class:`_BearerTokenRedactionFilter` on all root handlers.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    root_logger = logging.getLogger()
    redaction_filter = _BearerTokenRedactionFilter()
    for handler in root_logger.handlers:
        handler.addFilter(redaction_filter)


def build_service(settings: Settings) -> FolderProvisioningService:
    """Build the service from settings (SQLite store + JSON profiles)."""
    return FolderProvisioningService(
        store=FolderStore(settings.database_path),
        profiles=JsonProfileSource(settings.profiles_dir),
        settings=settings,
    )


def print_report(report: ProvisioningReport, verbose: bool = False) -> None:
    """
    Print a provisioning report to the console.

    Args:
        report: Report returned by a provisioning phase.
        verbose: Also list folders that already existed.
    """
    print(f"\n{'='*60}")
    print(f"PROVISIONING ({report.phase}): {report.tenant_id} on {report.provider.value}")
    print(f"{'='*60}\n")

    for path in report.created:
        print(f"  ✅ {path}")
    if verbose:
        for path in report.already_existed:
            print(f"  📁 {path} (already existed)")
    for failure in report.failed:
        print(f"  ❌ {failure.path} [{failure.error_kind}]")
        if verbose and failure.message:
            print(f"      Error: {failure.message}")

    print(f"\n{'='*60}")
    print(
        f"SUMMARY: {len(report.created)} created, {len(report.already_existed)} already existed, "
        f"{len(report.failed)} failed"
    )
    print(report.summary_message)
    print(f"{'='*60}\n")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mail-taxonomy",
        description="Mail folder/label provisioning and reconciliation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s provision acme --provider gmail --business-type "Hot tub & Spa"
  %(prog)s inject-team acme --provider outlook
  %(prog)s health acme --provider gmail
  %(prog)s routing acme --provider gmail --refresh
        """,
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (defaults to MAIL_TAXONOMY_LOG_LEVEL)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("tenant_id", help="Business profile id")
    common.add_argument(
        "--provider",
        "-p",
        required=True,
        choices=[p.value for p in MailProvider],
        help="Mail provider",
    )
    common.add_argument(
        "--access-token",
        default=None,
        help="Provider bearer token (defaults to MAIL_TAXONOMY_ACCESS_TOKEN)",
    )
    common.add_argument("--database", default=None, help="SQLite database path")
    common.add_argument("--profiles-dir", default=None, help="Business profiles directory")

    sub = parser.add_subparsers(dest="command", required=True)

    provision = sub.add_parser("provision", parents=[common], help="Phase A: core folder tree")
    provision.add_argument(
        "--business-type",
        "-b",
        action="append",
        default=None,
        help="Business type (repeatable); defaults to the profile's",
    )
    sub.add_parser("inject-team", parents=[common], help="Phase B: team and supplier folders")
    sub.add_parser("reconcile", parents=[common], help="Refresh the local record")
    sub.add_parser("health", parents=[common], help="Folder health and classifier coverage")
    routing = sub.add_parser("routing", parents=[common], help="Print the routing table")
    routing.add_argument(
        "--refresh", action="store_true", help="Reconcile before building the table"
    )
    return parser


def main(args: Optional[list[str]] = None) -> int:
    """
    Main CLI entry point.

    Pass an explicit ``args`` list instead of relying on ``sys.argv`` in
    tests.

    Args:
        args: Command line arguments (uses sys.argv if None).

    Returns:
        int: Exit code.
    """
    parsed_args = _build_parser().parse_args(args)

    settings = get_settings()
    if parsed_args.database:
        settings.database_path = parsed_args.database
    if parsed_args.profiles_dir:
        settings.profiles_dir = parsed_args.profiles_dir

    log_level = "DEBUG" if parsed_args.verbose else (parsed_args.log_level or settings.log_level)
    setup_logging(log_level)

    logger = logging.getLogger(__name__)

    provider = MailProvider(parsed_args.provider)
    token = parsed_args.access_token or settings.access_token
    credential = ProviderCredential(provider=provider, access_token=token) if token else None
    needs_token = parsed_args.command in {"provision", "inject-team", "reconcile"} or (
        parsed_args.command == "routing" and parsed_args.refresh
    )
    if needs_token and credential is None:
        print("\n❌ Error: an access token is required (--access-token)\n")
        return 1

    try:
        service = build_service(settings)
        tenant_id = parsed_args.tenant_id

        if parsed_args.command == "provision":
            report = service.provision_skeleton(
                tenant_id, credential, business_type=parsed_args.business_type
            )
            print_report(report, verbose=parsed_args.verbose)
            return 1 if report.has_failures else 0

        if parsed_args.command == "inject-team":
            report = service.inject_team_folders(tenant_id, credential)
            print_report(report, verbose=parsed_args.verbose)
            return 1 if report.has_failures else 0

        if parsed_args.command == "reconcile":
            result = service.reconcile(tenant_id, credential)
        elif parsed_args.command == "health":
            result = service.check_health(tenant_id, provider)
        else:
            result = service.build_routing_table(
                tenant_id, provider, credential if parsed_args.refresh else None
            )
        print(result.model_dump_json(indent=2))
        return 0

    except AuthError as e:
        logger.error("Credential rejected for %s", e.provider)
        print(f"\n❌ {e.user_message}\n")
        return 2
    except MailTaxonomyError as e:
        logger.error("%s", e)
        print(f"\n❌ Error: {e}\n")
        return 1
    except Exception as e:
        logger.exception("Fatal error")
        print(f"\n❌ Error: {e}\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())
