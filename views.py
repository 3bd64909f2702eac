from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from models import Book, BookDraft

if TYPE_CHECKING:
    from catalog import CatalogSynchronizer


@dataclass(frozen=True)
class CatalogView:
    name = "catalog"


@dataclass(frozen=True)
class ReaderView:
    book: Book
    name = "reader"


@dataclass(frozen=True)
class EditorView:
    draft: BookDraft = field(default_factory=BookDraft)
    target: Optional[Book] = None
    name = "editor"

    @property
    def is_editing(self) -> bool:
        return self.target is not None


@dataclass(frozen=True)
class LoginView:
    name = "login"


View = Union[CatalogView, ReaderView, EditorView, LoginView]


class Navigator:
    """Tracks the active screen and the editor form.

    Admin-only transitions return False and leave the state alone when the
    viewer is anonymous; the UI does not offer them in that case.
    """

    def __init__(self, is_authenticated: Callable[[], bool]):
        self._is_authenticated = is_authenticated
        self.state: View = CatalogView()

    @property
    def authenticated(self) -> bool:
        return bool(self._is_authenticated())

    def back_to_catalog(self) -> bool:
        self.state = CatalogView()
        return True

    def open_reader(self, book: Book) -> bool:
        if not isinstance(self.state, CatalogView):
            return False
        self.state = ReaderView(book)
        return True

    def open_create(self) -> bool:
        if not self.authenticated or not isinstance(self.state, CatalogView):
            return False
        self.state = EditorView(BookDraft())
        return True

    def open_edit(self, book: Book) -> bool:
        if not self.authenticated or not isinstance(self.state, (CatalogView, ReaderView)):
            return False
        self.state = EditorView(BookDraft.from_book(book), target=book)
        return True

    def update_draft(self, **changes: Any) -> bool:
        if not isinstance(self.state, EditorView):
            return False
        self.state = replace(self.state, draft=replace(self.state.draft, **changes))
        return True

    def open_login(self) -> bool:
        if self.authenticated:
            return False
        self.state = LoginView()
        return True

    def signed_in(self) -> bool:
        if not isinstance(self.state, LoginView):
            return False
        self.state = CatalogView()
        return True

    def cancel(self) -> bool:
        if not isinstance(self.state, EditorView):
            return False
        self.state = CatalogView()
        return True

    def saved(self) -> bool:
        return self.cancel()

    def save(self, sync: "CatalogSynchronizer") -> bool:
        """Save the editor draft through ``sync`` and return to the catalog.

        Store errors propagate and leave the editor as it was.
        """
        state = self.state
        if not isinstance(state, EditorView):
            return False
        if not sync.save_book(state.draft, state.target):
            return False
        if self.state is state:
            self.saved()
        return True

    def logged_out(self) -> bool:
        self.state = CatalogView()
        return True

    def session_ended(self) -> bool:
        """Leave the editor when the session goes away underneath it.

        Other views stay put; returns True only when the view changed.
        """
        if not isinstance(self.state, EditorView) or self.authenticated:
            return False
        return self.logged_out()
