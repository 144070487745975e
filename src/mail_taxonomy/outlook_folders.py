"""Microsoft Graph mail folder adapter (hierarchical).

Objective:
    Implement the provider adapter over Outlook mail folders, where nesting
    is real: a child folder is created under its parent's id and keeps its
    plain display name.

Graph endpoints used:
    - ``GET  /me/mailFolders`` (top level, paged via ``@odata.nextLink``)
    - ``GET  /me/mailFolders/{id}/childFolders``
    - ``POST /me/mailFolders`` (create root folder)
    - ``POST /me/mailFolders/{id}/childFolders`` (create child folder)

Operational notes:
    - Well-known system folders (Inbox, Sent Items, ...) and their subtrees
      are never listed; the engine only owns user folders.
    - Listing errors propagate. A partial listing would make reconciliation
      mark live folders as deleted.
"""

from typing import Optional
import logging

from .config import MailProvider
from .models import CreateResult, GraphMailFolder, ParentRef, RemoteFolder
from .provider_adapter import ProviderAdapter

logger = logging.getLogger(__name__)

SYSTEM_FOLDER_NAMES = frozenset(
    {
        "inbox",
        "drafts",
        "sent items",
        "deleted items",
        "junk email",
        "archive",
        "outbox",
        "conversation history",
        "sync issues",
        "conflicts",
        "local failures",
        "server failures",
        "rss feeds",
        "rss subscriptions",
        "scheduled",
        "search folders",
        "clutter",
    }
)

FOLDER_FIELDS = "id,displayName,parentFolderId,childFolderCount"


class OutlookFolderAdapter(ProviderAdapter):
    """Provider adapter over Microsoft Graph mail folders."""

    provider = MailProvider.OUTLOOK
    BASE_URL = "https://graph.microsoft.com/v1.0"

    @staticmethod
    def _folders_endpoint(parent_id: Optional[str]) -> str:
        if parent_id:
            return f"/me/mailFolders/{parent_id}/childFolders"
        return "/me/mailFolders"

    def _get_pages(self, endpoint: str, params: dict) -> list[GraphMailFolder]:
        folders: list[GraphMailFolder] = []
        response = self._make_request("GET", endpoint, params=params) or {}
        while True:
            folders.extend(
                GraphMailFolder.model_validate(item) for item in response.get("value", [])
            )
            next_link = response.get("@odata.nextLink")
            if not next_link:
                return folders
            # The link already carries the query string.
            response = self._make_request("GET", next_link) or {}

    def _get_child_folders(self, parent: GraphMailFolder) -> list[RemoteFolder]:
        params = {"$top": 100, "$select": FOLDER_FIELDS}
        remote: list[RemoteFolder] = []
        for folder in self._get_pages(self._folders_endpoint(parent.id), params):
            remote.append(RemoteFolder(id=folder.id, name=folder.display_name, parent_id=parent.id))
            if folder.child_folder_count > 0:
                remote.extend(self._get_child_folders(folder))
        return remote

    def list_folders(self) -> list[RemoteFolder]:
        """
        List user folders depth-first.

        Top-level folders are reported with ``parent_id=None`` so they match
        what :meth:`remote_folder` records at creation time.

        Returns:
            list[RemoteFolder]: Every non-system folder.
        """
        params = {"$top": 100, "$select": FOLDER_FIELDS}
        remote: list[RemoteFolder] = []
        for folder in self._get_pages(self._folders_endpoint(None), params):
            if folder.display_name.strip().lower() in SYSTEM_FOLDER_NAMES:
                continue
            remote.append(RemoteFolder(id=folder.id, name=folder.display_name))
            if folder.child_folder_count > 0:
                remote.extend(self._get_child_folders(folder))

        logger.debug("Found %d Outlook folders", len(remote))
        return remote

    def resolve_by_name(self, name: str, parent: Optional[ParentRef] = None) -> Optional[str]:
        parent_id = parent.folder_id if parent else None
        escaped = name.replace("'", "''")
        params = {
            "$filter": f"displayName eq '{escaped}'",
            "$select": FOLDER_FIELDS,
        }
        wanted = name.lower()
        for folder in self._get_pages(self._folders_endpoint(parent_id), params):
            if folder.display_name.lower() == wanted:
                return folder.id
        return None

    def create(
        self, name: str, parent: Optional[ParentRef] = None, color: Optional[str] = None
    ) -> CreateResult:
        """
        Create a mail folder under the parent's id.

        Outlook folders have no colour; ``color`` is ignored.

        Returns:
            CreateResult: New folder id, or ``conflict=True`` on HTTP 409.
        """
        parent_id = parent.folder_id if parent else None
        data = self._make_request(
            "POST",
            self._folders_endpoint(parent_id),
            json_data={"displayName": name},
            allow_conflict=True,
        )
        if data is None:
            logger.info("Folder already exists: %s", name)
            return CreateResult(conflict=True)

        folder = GraphMailFolder.model_validate(data)
        logger.info("Created folder: %s", name)
        return CreateResult(folder_id=folder.id)

    def remote_folder(
        self, folder_id: str, name: str, parent: Optional[ParentRef] = None
    ) -> RemoteFolder:
        return RemoteFolder(
            id=folder_id, name=name, parent_id=parent.folder_id if parent else None
        )
