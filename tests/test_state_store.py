import json

import pytest

from sajitech.errors import StaleDocument, StorageError
from sajitech.models.client import Client
from sajitech.models.state import WALK_IN_CLIENT_ID, AppState, SequenceCounter
from sajitech.storage.state_store import LocalStateStore


def _bak_files(path):
    return sorted(path.parent.glob(f"{path.stem}.*.bak.json"))


def test_missing_file_gives_initial_document(tmp_path):
    state = LocalStateStore(tmp_path / "db.json").load()
    assert [c.id for c in state.clients] == [WALK_IN_CLIENT_ID]
    assert state.revision == 0


def test_save_and_reload(tmp_path, state, now):
    store = LocalStateStore(tmp_path / "db.json")
    state.settings.sequences["SJ"] = SequenceCounter(year=2026, next_index=12)
    assert store.save(state) is True
    assert state.revision == 1

    loaded = store.load()
    assert loaded.revision == 1
    assert loaded.product("PRD-1").stock_qty == 10
    assert loaded.settings.sequences["SJ"].next_index == 12


def test_unchanged_document_is_not_rewritten(tmp_path, state):
    path = tmp_path / "db.json"
    store = LocalStateStore(path)
    store.save(state)
    assert store.save(state) is False
    assert store.save(store.load()) is False
    assert state.revision == 1
    assert _bak_files(path) == []


def test_backups_are_rotated(tmp_path, state):
    path = tmp_path / "db.json"
    store = LocalStateStore(path, backup_keep=2)
    for i in range(5):
        state.product("PRD-1").stock_qty = i
        store.save(state)
    assert len(_bak_files(path)) == 2
    assert store.load().product("PRD-1").stock_qty == 4


def test_corrupt_file_is_set_aside(tmp_path):
    path = tmp_path / "db.json"
    path.write_text("{not json", encoding="utf-8")
    state = LocalStateStore(path).load()
    assert [c.id for c in state.clients] == [WALK_IN_CLIENT_ID]
    assert (tmp_path / "db.corrupt.json").read_text(encoding="utf-8") == "{not json"


def test_schema_mismatch_is_set_aside(tmp_path):
    path = tmp_path / "db.json"
    path.write_text(json.dumps({"products": [{"price": 3}]}), encoding="utf-8")
    state = LocalStateStore(path).load()
    assert state.products == []
    assert (tmp_path / "db.corrupt.json").exists()


def test_legacy_invoice_counter_is_migrated(tmp_path):
    path = tmp_path / "db.json"
    legacy = {
        "clients": [{"id": "c1", "name": "Client de Passage"}],
        "settings": {"company_name": "SAJITECH", "next_invoice_index": 42, "current_year": 2025},
    }
    path.write_text(json.dumps(legacy), encoding="utf-8")
    state = LocalStateStore(path).load()
    assert state.settings.sequences["SJ"] == SequenceCounter(year=2025, next_index=42)
    assert state.settings.company_name == "SAJITECH"


def test_stale_revision_is_rejected(tmp_path, state):
    path = tmp_path / "db.json"
    first = LocalStateStore(path)
    first.save(state)

    other = LocalStateStore(path)
    theirs = other.load()
    theirs.clients.append(Client(name="Autre poste"))
    other.save(theirs, expected_revision=1)

    state.product("PRD-1").stock_qty = 3
    with pytest.raises(StaleDocument) as exc:
        first.save(state, expected_revision=1)
    assert exc.value.found == 2
    assert LocalStateStore(path).load().product("PRD-1").stock_qty == 10


def test_write_failure_raises_storage_error(tmp_path):
    target = tmp_path / "db.json"
    target.mkdir()
    with pytest.raises(StorageError):
        LocalStateStore(target, backup_enabled=False).save(AppState.initial())
