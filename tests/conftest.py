import threading
import time
from typing import Optional

import pytest

from src.mail_taxonomy.config import MailProvider, Settings
from src.mail_taxonomy.models import (
    CreateResult,
    ParentRef,
    PATH_SEPARATOR,
    ProviderCredential,
    RemoteFolder,
)
from src.mail_taxonomy.provider_adapter import ProviderAdapter
from src.mail_taxonomy.store import FolderStore


class FakeProviderAdapter(ProviderAdapter):
    """In-memory provider.

    Flat mode names folders by full path (Gmail); hierarchical mode keeps the
    plain name and a parent id (Outlook).
    """

    def __init__(
        self,
        provider: MailProvider = MailProvider.GMAIL,
        hierarchical: bool = False,
        settings: Optional[Settings] = None,
    ):
        self.provider = provider
        super().__init__(
            ProviderCredential(provider=provider, access_token="test-token"),
            settings or Settings(_env_file=None),
        )
        self.hierarchical = hierarchical
        self.folders: dict[str, RemoteFolder] = {}
        self.fail_on: dict[str, Exception] = {}
        self.list_error: Optional[Exception] = None
        self.create_calls: list[str] = []
        self._counter = 0
        self._lock = threading.Lock()

    def _remote_name(self, name: str, parent: Optional[ParentRef]) -> str:
        if self.hierarchical or parent is None or not parent.path:
            return name
        return f"{parent.path}{PATH_SEPARATOR}{name}"

    def _parent_id(self, parent: Optional[ParentRef]) -> Optional[str]:
        if self.hierarchical and parent is not None:
            return parent.folder_id
        return None

    def _find(self, name: str, parent: Optional[ParentRef]) -> Optional[RemoteFolder]:
        wanted = self._remote_name(name, parent).lower()
        parent_id = self._parent_id(parent)
        for folder in self.folders.values():
            if folder.name.lower() == wanted and folder.parent_id == parent_id:
                return folder
        return None

    def add_remote(
        self, name: str, folder_id: Optional[str] = None, parent_id: Optional[str] = None
    ) -> str:
        """Seed a folder that exists remotely before any run."""
        with self._lock:
            self._counter += 1
            folder_id = folder_id or f"remote-{self._counter}"
        self.folders[folder_id] = RemoteFolder(id=folder_id, name=name, parent_id=parent_id)
        return folder_id

    def create(self, name, parent=None, color=None) -> CreateResult:
        path = f"{parent.path}{PATH_SEPARATOR}{name}" if parent and parent.path else name
        with self._lock:
            self.create_calls.append(path)
            if path in self.fail_on:
                raise self.fail_on[path]
            if self._find(name, parent) is not None:
                return CreateResult(conflict=True)
            self._counter += 1
            folder_id = f"id-{self._counter}"
            self.folders[folder_id] = RemoteFolder(
                id=folder_id,
                name=self._remote_name(name, parent),
                parent_id=self._parent_id(parent),
                color=None if self.hierarchical else color,
            )
        return CreateResult(folder_id=folder_id)

    def list_folders(self) -> list[RemoteFolder]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.folders.values())

    def resolve_by_name(self, name, parent=None) -> Optional[str]:
        folder = self._find(name, parent)
        return folder.id if folder else None

    def remote_folder(self, folder_id, name, parent=None) -> RemoteFolder:
        existing = self.folders.get(folder_id)
        return RemoteFolder(
            id=folder_id,
            name=self._remote_name(name, parent),
            parent_id=self._parent_id(parent),
            color=existing.color if existing else None,
        )


class TrackingAdapter(FakeProviderAdapter):
    """Fake provider that records overlapping and out-of-order calls.

    The first two creates wait for each other, so a run that never overlaps
    branches breaks the barrier.
    """

    def __init__(self, settings: Settings):
        super().__init__(MailProvider.GMAIL, settings=settings)
        self.barrier = threading.Barrier(2, timeout=5)
        self.events: list[tuple[str, str]] = []
        self.finished: set[str] = set()
        self.orphans: list[str] = []
        self.in_flight = 0
        self.peak = 0
        self._track = threading.Lock()

    @staticmethod
    def _path(name: str, parent: Optional[ParentRef]) -> str:
        return f"{parent.path}{PATH_SEPARATOR}{name}" if parent and parent.path else name

    def create(self, name, parent=None, color=None) -> CreateResult:
        path = self._path(name, parent)
        with self._track:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            self.events.append(("create", path))
            if parent is not None and parent.path not in self.finished:
                self.orphans.append(path)
            calls = sum(1 for op, _ in self.events if op == "create")
        try:
            if calls <= 2:
                self.barrier.wait()
            time.sleep(0.005)
            return super().create(name, parent, color)
        finally:
            with self._track:
                self.in_flight -= 1

    def resolve_by_name(self, name, parent=None) -> Optional[str]:
        with self._track:
            self.events.append(("resolve", self._path(name, parent)))
        return super().resolve_by_name(name, parent)

    def remote_folder(self, folder_id, name, parent=None) -> RemoteFolder:
        with self._track:
            self.finished.add(self._path(name, parent))
        return super().remote_folder(folder_id, name, parent)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, max_concurrent_calls=4)


@pytest.fixture
def store(tmp_path) -> FolderStore:
    return FolderStore(tmp_path / "folders.sqlite")


@pytest.fixture
def gmail_adapter(settings) -> FakeProviderAdapter:
    return FakeProviderAdapter(MailProvider.GMAIL, hierarchical=False, settings=settings)


@pytest.fixture
def outlook_adapter(settings) -> FakeProviderAdapter:
    return FakeProviderAdapter(MailProvider.OUTLOOK, hierarchical=True, settings=settings)


@pytest.fixture
def tracking_adapter(settings) -> TrackingAdapter:
    return TrackingAdapter(settings)


@pytest.fixture
def other_gmail_adapter(settings) -> FakeProviderAdapter:
    return FakeProviderAdapter(MailProvider.GMAIL, hierarchical=False, settings=settings)
