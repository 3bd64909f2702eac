from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from api import SIGNED_IN, SIGNED_OUT, AuthError, StoreError
from catalog import CatalogSynchronizer
from samples import sample_books
from storage import LocalBookStore, LocalState


def _create_state(tmp_path: Path) -> LocalState:
    return LocalState(tmp_path / "nested" / "litebooks.db")


def test_state_round_trips_json(tmp_path: Path) -> None:
    state = _create_state(tmp_path)
    state.set_json("app_books", [{"id": "1", "title": "One"}])
    state.set_json("app_books", [{"id": "2", "title": "Two"}])

    assert state.get_json("app_books") == [{"id": "2", "title": "Two"}]
    assert state.get_json("missing") is None

    state.delete("app_books")
    assert state.get_json("app_books") is None
    state.close()


def test_state_ignores_corrupt_values(tmp_path: Path) -> None:
    state = _create_state(tmp_path)
    state.close()
    conn = sqlite3.connect(tmp_path / "nested" / "litebooks.db")
    with conn:
        conn.execute("INSERT INTO kv (key, value) VALUES (?, ?)", ("broken", "{not json"))
    conn.close()

    reopened = _create_state(tmp_path)
    assert reopened.get_json("broken") is None
    reopened.close()


def test_local_store_persists_collection_under_namespaced_key(tmp_path: Path) -> None:
    state = _create_state(tmp_path)
    store = LocalBookStore(state, app_id="litebooks-test")

    first = store.insert_books([{"title": "First", "content": "a", "category": "DevOps"}])[0]
    second = store.insert_books([{"title": "Second", "content": "b", "isLocal": True}])[0]

    stored = state.get_json("litebooks-test_books")
    assert [row["title"] for row in stored] == ["Second", "First"]
    assert all("isLocal" not in row for row in stored)
    assert second.is_hidden is False

    reloaded = LocalBookStore(state, app_id="litebooks-test")
    assert [book.id for book in reloaded.list_books()] == [second.id, first.id]
    state.close()


def test_local_store_update_and_delete(tmp_path: Path) -> None:
    state = _create_state(tmp_path)
    store = LocalBookStore(state)
    book = store.insert_books([{"title": "Doc", "content": "body"}])[0]

    updated = store.update_book(book.id, {"is_hidden": True, "id": "hijack"})
    assert updated is not None
    assert updated.id == book.id
    assert updated.is_hidden is True
    assert store.update_book("missing", {"title": "x"}) is None

    store.delete_book(book.id)
    assert store.list_books() == []
    assert LocalBookStore(state).list_books() == []
    state.close()


def test_local_store_requires_title(tmp_path: Path) -> None:
    store = LocalBookStore(_create_state(tmp_path))
    with pytest.raises(StoreError):
        store.insert_books([{"title": "  ", "content": "x"}])


def test_local_store_skips_unusable_stored_rows(tmp_path: Path) -> None:
    state = _create_state(tmp_path)
    state.set_json("litebooks-2026_books", [{"title": "no id"}, "junk", {"id": "k1", "title": "Kept"}])

    store = LocalBookStore(state)

    assert [book.title for book in store.list_books()] == ["Kept"]


def test_local_store_simulated_sign_in(tmp_path: Path) -> None:
    store = LocalBookStore(_create_state(tmp_path))
    events = []
    store.on_auth_state_change(lambda event, session: events.append(event))

    with pytest.raises(AuthError):
        store.sign_in("", "secret")

    session = store.sign_in("admin@itts.ac.id", "secret")
    assert store.get_session() == session
    assert session.user.email == "admin@itts.ac.id"

    store.sign_out()
    assert store.get_session() is None
    assert events == [SIGNED_IN, SIGNED_OUT]


def test_local_store_gets_seeded_once(tmp_path: Path) -> None:
    state = _create_state(tmp_path)
    sync = CatalogSynchronizer(LocalBookStore(state))

    books = sync.fetch_catalog()
    assert len(books) == len(sample_books())
    assert not any(book.is_local for book in books)

    again = CatalogSynchronizer(LocalBookStore(state)).fetch_catalog()
    assert [book.id for book in again] == [book.id for book in books]
