"""Gmail label adapter (flat namespace).

Gmail has no real folder hierarchy: ``MANAGER/Hailey`` is a single label
whose name contains a slash, and the Gmail UI renders it nested. Every node
is therefore created by its full logical path and ``parent_id`` is always
None.

Endpoints used:
    - ``GET  /users/me/labels``
    - ``POST /users/me/labels``
"""

from typing import Optional
import logging

import requests

from .config import MailProvider
from .models import CreateResult, GmailLabel, ParentRef, PATH_SEPARATOR, RemoteFolder
from .provider_adapter import ProviderAdapter

logger = logging.getLogger(__name__)


class GmailLabelAdapter(ProviderAdapter):
    """Provider adapter over the Gmail labels API."""

    provider = MailProvider.GMAIL
    BASE_URL = "https://gmail.googleapis.com/gmail/v1/users/me"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.colors: dict[str, str] = {}

    @staticmethod
    def label_name(name: str, parent: Optional[ParentRef] = None) -> str:
        """Full label name for ``name`` under ``parent``."""
        if parent is not None and parent.path:
            return f"{parent.path}{PATH_SEPARATOR}{name}"
        return name

    def _is_conflict(self, response: requests.Response) -> bool:
        if response.status_code == 409:
            return True
        if response.status_code == 400:
            text = (response.text or "").lower()
            return "exists" in text or "conflict" in text
        return False

    def _list_labels(self) -> list[GmailLabel]:
        data = self._make_request("GET", "/labels") or {}
        labels = [GmailLabel.model_validate(item) for item in data.get("labels", [])]
        return [
            label
            for label in labels
            if label.type == "user" and not label.name.startswith("CATEGORY_")
        ]

    def list_folders(self) -> list[RemoteFolder]:
        return [
            RemoteFolder(id=label.id, name=label.name, color=label.background_color)
            for label in self._list_labels()
        ]

    def resolve_by_name(self, name: str, parent: Optional[ParentRef] = None) -> Optional[str]:
        wanted = self.label_name(name, parent).lower()
        for label in self._list_labels():
            if label.name.lower() == wanted:
                return label.id
        return None

    def create(
        self, name: str, parent: Optional[ParentRef] = None, color: Optional[str] = None
    ) -> CreateResult:
        """
        Create a label, or report a conflict if it already exists.

        Args:
            name: Leaf name.
            parent: Parent reference; only ``path`` is used.
            color: Optional background colour (hex).

        Returns:
            CreateResult: New label id, or ``conflict=True``.
        """
        full_name = self.label_name(name, parent)
        body = {
            "name": full_name,
            "labelListVisibility": "labelShow",
            "messageListVisibility": "show",
        }
        if color:
            body["color"] = {"backgroundColor": color, "textColor": "#ffffff"}

        data = self._make_request("POST", "/labels", json_data=body, allow_conflict=True)
        if data is None:
            logger.info("Label already exists: %s", full_name)
            return CreateResult(conflict=True)

        label = GmailLabel.model_validate(data)
        if color:
            self.colors[label.id] = color
        return CreateResult(folder_id=label.id)

    def remote_folder(
        self, folder_id: str, name: str, parent: Optional[ParentRef] = None
    ) -> RemoteFolder:
        return RemoteFolder(
            id=folder_id, name=self.label_name(name, parent), color=self.colors.get(folder_id)
        )
