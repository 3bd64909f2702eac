from __future__ import annotations

from typing import Dict

import pytest

from api import StoreError
from catalog import CatalogSynchronizer
from models import Book, BookDraft
from views import CatalogView, EditorView, LoginView, Navigator, ReaderView

from fakes import FakeStore


@pytest.fixture
def auth() -> Dict[str, bool]:
    return {"signed_in": False}


@pytest.fixture
def navigator(auth: Dict[str, bool]) -> Navigator:
    return Navigator(lambda: auth["signed_in"])


def _book(**extra) -> Book:
    data = {"id": "b-1", "title": "Title", "content": "Body", "category": "DevOps"}
    data.update(extra)
    return Book(**data)


def test_starts_on_catalog(navigator: Navigator) -> None:
    assert isinstance(navigator.state, CatalogView)


def test_reader_carries_selected_book(navigator: Navigator) -> None:
    book = _book()
    assert navigator.open_reader(book)
    assert navigator.state == ReaderView(book)
    assert navigator.back_to_catalog()
    assert isinstance(navigator.state, CatalogView)


def test_editor_unavailable_when_anonymous(navigator: Navigator) -> None:
    assert navigator.open_create() is False
    assert navigator.open_edit(_book()) is False
    assert isinstance(navigator.state, CatalogView)


def test_create_starts_from_empty_draft(navigator: Navigator, auth: Dict[str, bool]) -> None:
    auth["signed_in"] = True

    assert navigator.open_create()

    state = navigator.state
    assert isinstance(state, EditorView)
    assert state.draft == BookDraft()
    assert state.is_editing is False
    assert state.target is None


def test_edit_populates_draft_from_record(navigator: Navigator, auth: Dict[str, bool]) -> None:
    auth["signed_in"] = True
    book = _book(description="Summary")
    navigator.open_reader(book)

    assert navigator.open_edit(book)

    state = navigator.state
    assert isinstance(state, EditorView)
    assert state.is_editing
    assert state.target == book
    assert state.draft == BookDraft(
        title="Title", description="Summary", content="Body", category="DevOps"
    )


def test_cancel_discards_draft(navigator: Navigator, auth: Dict[str, bool]) -> None:
    auth["signed_in"] = True
    navigator.open_edit(_book())
    navigator.update_draft(title="Changed")

    assert navigator.cancel()
    assert isinstance(navigator.state, CatalogView)

    navigator.open_create()
    assert navigator.state.draft.title == ""


def test_update_draft_only_in_editor(navigator: Navigator, auth: Dict[str, bool]) -> None:
    assert navigator.update_draft(title="x") is False
    auth["signed_in"] = True
    navigator.open_create()
    assert navigator.update_draft(title="New", content="Text")
    assert navigator.state.draft.title == "New"
    assert navigator.state.draft.content == "Text"


def test_login_flow(navigator: Navigator, auth: Dict[str, bool]) -> None:
    assert navigator.signed_in() is False
    assert navigator.open_login()
    assert isinstance(navigator.state, LoginView)

    auth["signed_in"] = True
    assert navigator.signed_in()
    assert isinstance(navigator.state, CatalogView)
    assert navigator.open_login() is False


def test_logout_returns_to_catalog(navigator: Navigator, auth: Dict[str, bool]) -> None:
    auth["signed_in"] = True
    navigator.open_create()
    auth["signed_in"] = False

    assert navigator.logged_out()
    assert isinstance(navigator.state, CatalogView)


def test_save_resets_to_catalog(navigator: Navigator, auth: Dict[str, bool]) -> None:
    auth["signed_in"] = True
    store = FakeStore()
    sync = CatalogSynchronizer(store)
    navigator.open_create()
    navigator.update_draft(title="Published", content="# Hello")

    assert navigator.save(sync)

    assert isinstance(navigator.state, CatalogView)
    assert [book.title for book in sync.books] == ["Published"]


def test_failed_save_keeps_editor_and_draft(navigator: Navigator, auth: Dict[str, bool]) -> None:
    auth["signed_in"] = True
    store = FakeStore()
    store.fail_on.add("insert")
    sync = CatalogSynchronizer(store)
    navigator.open_create()
    navigator.update_draft(title="Draft", content="Body")
    before = navigator.state

    with pytest.raises(StoreError):
        navigator.save(sync)

    assert navigator.state is before


def test_incomplete_draft_is_not_saved(navigator: Navigator, auth: Dict[str, bool]) -> None:
    auth["signed_in"] = True
    store = FakeStore()
    sync = CatalogSynchronizer(store)
    navigator.open_create()
    navigator.update_draft(title="No body")

    assert navigator.save(sync) is False
    assert isinstance(navigator.state, EditorView)
    assert store.calls == []


def test_lost_session_leaves_editor(navigator: Navigator, auth: Dict[str, bool]) -> None:
    auth["signed_in"] = True
    navigator.open_create()
    assert navigator.session_ended() is False

    auth["signed_in"] = False
    assert navigator.session_ended() is True
    assert isinstance(navigator.state, CatalogView)


def test_session_change_keeps_login_and_reader(navigator: Navigator, auth: Dict[str, bool]) -> None:
    navigator.open_login()
    auth["signed_in"] = True
    assert navigator.session_ended() is False
    assert isinstance(navigator.state, LoginView)

    navigator.signed_in()
    book = _book()
    navigator.open_reader(book)
    auth["signed_in"] = False
    assert navigator.session_ended() is False
    assert navigator.state == ReaderView(book)
