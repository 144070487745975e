from unittest.mock import MagicMock

import pytest

from src.mail_taxonomy.config import MailProvider, Settings
from src.mail_taxonomy.gmail_labels import GmailLabelAdapter
from src.mail_taxonomy.models import ParentRef, ProviderCredential


@pytest.fixture
def adapter() -> GmailLabelAdapter:
    return GmailLabelAdapter(
        ProviderCredential(provider=MailProvider.GMAIL, access_token="t"),
        Settings(_env_file=None),
    )


LABELS = {
    "labels": [
        {"id": "INBOX", "name": "INBOX", "type": "system"},
        {"id": "CATEGORY_SOCIAL", "name": "CATEGORY_SOCIAL", "type": "user"},
        {"id": "L1", "name": "MANAGER", "type": "user", "color": {"backgroundColor": "#ffad47"}},
        {"id": "L2", "name": "MANAGER/Hailey", "type": "user"},
    ]
}


def test_create_child_uses_full_path_and_color(adapter) -> None:
    adapter._make_request = MagicMock(return_value={"id": "L9", "name": "MANAGER/Jillian"})

    result = adapter.create("Jillian", ParentRef(folder_id="L1", path="MANAGER"), color="#ffad47")

    assert result.folder_id == "L9"
    assert result.conflict is False
    args, kwargs = adapter._make_request.call_args
    assert args == ("POST", "/labels")
    assert kwargs["json_data"]["name"] == "MANAGER/Jillian"
    assert kwargs["json_data"]["color"]["backgroundColor"] == "#ffad47"
    assert kwargs["allow_conflict"] is True


def test_create_conflict_is_reported_not_raised(adapter) -> None:
    adapter._make_request = MagicMock(return_value=None)

    result = adapter.create("SALES")

    assert result.conflict is True
    assert result.folder_id is None


def test_list_folders_skips_system_and_category_labels(adapter) -> None:
    adapter._make_request = MagicMock(return_value=LABELS)

    folders = adapter.list_folders()

    assert [f.id for f in folders] == ["L1", "L2"]
    assert folders[0].color == "#ffad47"
    assert all(f.parent_id is None for f in folders)


def test_resolve_by_name_matches_full_path_case_insensitively(adapter) -> None:
    adapter._make_request = MagicMock(return_value=LABELS)

    assert adapter.resolve_by_name("hailey", ParentRef(path="manager")) == "L2"
    assert adapter.resolve_by_name("Jillian", ParentRef(path="MANAGER")) is None


def test_existing_label_error_counts_as_conflict(adapter) -> None:
    response = MagicMock(status_code=400, text="Label name exists or conflicts")
    assert adapter._is_conflict(response) is True

    response = MagicMock(status_code=400, text="Invalid label name")
    assert adapter._is_conflict(response) is False


def test_remote_folder_names_by_path(adapter) -> None:
    folder = adapter.remote_folder("L9", "Jillian", ParentRef(folder_id="L1", path="MANAGER"))

    assert folder.name == "MANAGER/Jillian"
    assert folder.parent_id is None
