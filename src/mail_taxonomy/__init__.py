"""Mail taxonomy provisioning and reconciliation package.

Objective:
    Keep a tenant's email folder/label taxonomy truthful across three sources:
    - A declarative business-type schema (base taxonomy + vertical extension).
    - A local record of the folders we believe exist (SQLite).
    - The mail provider's actual remote state (Gmail labels, Outlook folders).

Key modules:
    - :mod:`src.mail_taxonomy.schema`:
        Resolve the canonical folder tree and the expected category set.
    - :mod:`src.mail_taxonomy.provider_adapter`:
        Provider-agnostic create/list/resolve with retries.
    - :mod:`src.mail_taxonomy.gmail_labels` / :mod:`src.mail_taxonomy.outlook_folders`:
        Flat-label and hierarchical-folder provider variants.
    - :mod:`src.mail_taxonomy.orchestrator`:
        Two-phase (skeleton, team injection) provisioning.
    - :mod:`src.mail_taxonomy.reconciliation`:
        Refresh the local record from the provider.
    - :mod:`src.mail_taxonomy.coverage` / :mod:`src.mail_taxonomy.routing`:
        Classifier coverage, folder health and the workflow routing table.
    - :mod:`src.mail_taxonomy.service`:
        Tenant-level operations used by the CLI and the web API.
"""

__version__ = "0.1.0"
