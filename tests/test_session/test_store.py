import json
from pathlib import Path

import pytest

from meow_cli.exceptions import SessionExistsError, SessionImportError, SessionNotFoundError
from meow_cli.session import DEFAULT_SESSION, SessionStore


def _msg(role: str, content: str) -> dict:
    return {"role": role, "content": content}


def test_new_store_has_default_session():
    store = SessionStore()

    assert store.current == DEFAULT_SESSION
    assert store.list_names() == [DEFAULT_SESSION]
    assert store.current_session.messages == []


def test_get_creates_on_first_reference():
    store = SessionStore()

    session = store.get("work")

    assert "work" in store
    assert session.messages == []
    assert store.current == DEFAULT_SESSION


def test_create_and_switch_errors():
    store = SessionStore()
    store.create("work")

    with pytest.raises(SessionExistsError):
        store.create("work")
    with pytest.raises(SessionNotFoundError):
        store.switch("missing")


def test_deleting_current_moves_to_first_remaining_name():
    store = SessionStore()
    store.create("zeta")
    store.create("alpha")
    store.switch("zeta")

    store.delete("zeta")

    assert store.current == "alpha"


def test_deleting_last_session_recreates_default():
    store = SessionStore()
    store.create("only")
    store.switch("only")
    store.delete(DEFAULT_SESSION)

    store.delete("only")

    assert store.current == DEFAULT_SESSION
    assert store.list_names() == [DEFAULT_SESSION]


def test_rename_keeps_history_and_current_pointer():
    store = SessionStore()
    store.commit(DEFAULT_SESSION, [_msg("user", "hi")])

    store.rename(DEFAULT_SESSION, "main")

    assert store.current == "main"
    assert store.current_session.messages == [_msg("user", "hi")]
    assert DEFAULT_SESSION not in store


def test_clear_empties_current_history():
    store = SessionStore()
    store.commit(DEFAULT_SESSION, [_msg("user", "hi"), _msg("assistant", "hello")])

    store.clear()

    assert store.current_session.messages == []


def test_export_import_roundtrip_preserves_store():
    store = SessionStore()
    store.commit(DEFAULT_SESSION, [_msg("user", "one")])
    store.create("b")
    store.commit("b", [_msg("user", "two"), _msg("assistant", "three")])
    store.switch("b")
    blob = store.export()

    other = SessionStore()
    other.import_(json.loads(json.dumps(blob)))

    assert other.export() == blob
    assert other.current == "b"


def test_export_is_a_copy():
    store = SessionStore()
    store.commit(DEFAULT_SESSION, [_msg("user", "one")])

    blob = store.export()
    blob["chats"][DEFAULT_SESSION].append(_msg("user", "two"))

    assert len(store.current_session.messages) == 1


@pytest.mark.parametrize("blob", [{"current": "x"}, {"chats": []}, [], "nope", {"chats": {"a": "b"}}])
def test_import_rejects_blob_without_chats_mapping(blob):
    store = SessionStore()
    store.commit(DEFAULT_SESSION, [_msg("user", "keep")])

    with pytest.raises(SessionImportError):
        store.import_(blob)

    assert store.current_session.messages == [_msg("user", "keep")]


def test_import_repairs_dangling_current_pointer():
    store = SessionStore()

    store.import_({"current": "gone", "chats": {"a": []}})

    assert store.current == DEFAULT_SESSION
    assert sorted(store.list_names()) == ["a", DEFAULT_SESSION]


def test_import_drops_stored_system_messages():
    store = SessionStore()

    store.import_(
        {"chats": {DEFAULT_SESSION: [_msg("system", "old persona"), _msg("user", "hi")], "b": [_msg("system", "x")]}}
    )

    assert store.current_session.messages == [_msg("user", "hi")]
    assert store.get("b").messages == []


def test_legacy_file_system_messages_are_dropped(tmp_path: Path):
    path = tmp_path / "sessions.json"
    path.write_text(json.dumps([_msg("system", "persona"), _msg("user", "old")]), encoding="utf-8")

    store = SessionStore.load(path)

    assert store.current_session.messages == [_msg("user", "old")]


def test_store_persists_to_file(tmp_path: Path):
    path = tmp_path / "sessions.json"
    store = SessionStore.load(path)
    store.create("work")
    store.switch("work")
    store.commit("work", [_msg("user", "persist me")])

    reloaded = SessionStore.load(path)

    assert reloaded.current == "work"
    assert reloaded.current_session.messages == [_msg("user", "persist me")]
    assert not (tmp_path / "sessions.json.tmp").exists()


def test_legacy_bare_array_is_upgraded(tmp_path: Path):
    path = tmp_path / "sessions.json"
    path.write_text(json.dumps([_msg("user", "old"), _msg("assistant", "reply")]), encoding="utf-8")

    store = SessionStore.load(path)

    assert store.current == DEFAULT_SESSION
    assert store.current_session.messages == [_msg("user", "old"), _msg("assistant", "reply")]


def test_corrupt_file_is_backed_up_and_store_starts_empty(tmp_path: Path):
    path = tmp_path / "sessions.json"
    path.write_text("{not json", encoding="utf-8")

    store = SessionStore.load(path)

    assert store.list_names() == [DEFAULT_SESSION]
    assert (tmp_path / "sessions.json.bak").read_text(encoding="utf-8") == "{not json"


def test_export_and_import_files(tmp_path: Path):
    store = SessionStore()
    store.commit(DEFAULT_SESSION, [_msg("user", "saved")])
    target = store.export_to_file(tmp_path / "out" / "export.json")

    other = SessionStore()
    other.import_from_file(target)

    assert other.current_session.messages == [_msg("user", "saved")]
    with pytest.raises(SessionImportError):
        other.import_from_file(tmp_path / "missing.json")


def test_commit_to_new_session_saves_once(tmp_path: Path, monkeypatch):
    store = SessionStore(tmp_path / "sessions.json")
    saves = []
    monkeypatch.setattr(store, "save", lambda: saves.append(store.export()))

    store.commit("fresh", [_msg("user", "hi")])

    assert len(saves) == 1
    assert saves[0]["chats"]["fresh"] == [_msg("user", "hi")]


def test_load_accepts_string_path(tmp_path: Path):
    path = tmp_path / "sessions.json"
    path.write_text(json.dumps({"chats": {"a": [_msg("user", "x")]}, "current": "a"}), encoding="utf-8")

    store = SessionStore.load(str(path))

    assert store.path == path
    assert store.current == "a"
