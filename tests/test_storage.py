"""Tests for the per-user JSON document store."""

import json

import pytest

from budgety.exceptions import PersistenceError
from budgety.storage import EXPENSES_KEY, JSONStorage, resource_for


def test_missing_resource_loads_empty(tmp_path):
    storage = JSONStorage(tmp_path)
    assert storage.load(resource_for(EXPENSES_KEY)) == []


def test_save_replaces_whole_array(tmp_path):
    storage = JSONStorage(tmp_path)
    storage.save("expenses.json", [{"id": "1"}, {"id": "2"}])
    storage.save("expenses.json", [{"id": "3"}])

    assert storage.load("expenses.json") == [{"id": "3"}]
    assert not (tmp_path / "expenses.json.tmp").exists()


def test_corrupted_document_raises(tmp_path):
    (tmp_path / "savings.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(PersistenceError, match="Corrupted JSON document"):
        JSONStorage(tmp_path).load("savings.json")


def test_non_list_document_raises(tmp_path):
    (tmp_path / "savings.json").write_text(json.dumps({"id": "1"}), encoding="utf-8")
    with pytest.raises(PersistenceError, match="Expected a JSON array"):
        JSONStorage(tmp_path).load("savings.json")


def test_user_storages_are_isolated(tmp_path):
    root = JSONStorage(tmp_path)
    root.for_user("alice").save("expenses.json", [{"id": "a"}])

    assert root.for_user("bob").load("expenses.json") == []
    assert root.for_user("alice").base_path == tmp_path / "users" / "alice"


@pytest.mark.parametrize("owner", ["../escape", "", "a/b", None])
def test_user_storage_rejects_unsafe_ids(tmp_path, owner):
    with pytest.raises(PersistenceError, match="Invalid storage owner"):
        JSONStorage(tmp_path).for_user(owner)
