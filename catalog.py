from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from api import StoreError
from models import Book, BookDraft
from samples import sample_books, seed_rows

logger = logging.getLogger(__name__)


class BookStore(Protocol):
    def list_books(self) -> List[Book]: ...

    def insert_books(self, rows: Iterable[Dict[str, Any]]) -> List[Book]: ...

    def update_book(self, book_id: str, fields: Dict[str, Any]) -> Optional[Book]: ...

    def delete_book(self, book_id: str) -> None: ...


def filter_books(books: Sequence[Book], query: str, authenticated: bool) -> List[Book]:
    """Subset of ``books`` matching ``query`` on title or category.

    Hidden records are dropped for anonymous viewers. Input order is kept.
    """
    needle = (query or "").lower()
    results = []
    for book in books:
        if needle and not (
            needle in book.title.lower() or needle in book.category.value.lower()
        ):
            continue
        if not authenticated and book.is_hidden:
            continue
        results.append(book)
    return results


class CatalogSynchronizer:
    """Keeps the in-memory catalog in line with the book store.

    ``store`` is None when no backend is configured; the catalog then only
    ever shows the sample books and refuses writes.
    """

    def __init__(
        self,
        store: Optional[BookStore],
        samples: Optional[Sequence[Book]] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.store = store
        self.samples: List[Book] = list(samples) if samples is not None else sample_books()
        self.books: List[Book] = list(self.samples)
        self.loading = False
        self.last_error: Optional[str] = None
        self.on_change = on_change
        self._lock = threading.RLock()
        self._load_lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return self.store is not None

    # ------------------------------------------------------------------
    # Collection helpers
    # ------------------------------------------------------------------
    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change()

    def _set_books(self, books: Iterable[Book]) -> None:
        with self._lock:
            self.books = list(books)
        self._notify()

    def _replace(self, book: Book) -> None:
        with self._lock:
            self.books = [book if item.id == book.id else item for item in self.books]
        self._notify()

    def find(self, book_id: str) -> Optional[Book]:
        with self._lock:
            return next((book for book in self.books if book.id == book_id), None)

    def visible_books(self, query: str, authenticated: bool) -> List[Book]:
        with self._lock:
            books = list(self.books)
        return filter_books(books, query, authenticated)

    def apply_optimistic(self, book_id: str, **changes: Any) -> Callable[[], None]:
        """Apply ``changes`` locally right away; the returned callable undoes them."""
        original = self.find(book_id)
        if original is None:
            return lambda: None
        self._replace(original.with_changes(**changes))

        def revert() -> None:
            if self.find(book_id) is not None:
                self._replace(original)

        return revert

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def fetch_catalog(self) -> List[Book]:
        self.loading = True
        self._notify()
        try:
            self._set_books(self._load())
        finally:
            self.loading = False
            self._notify()
        return list(self.books)

    def _load(self) -> List[Book]:
        if self.store is None:
            return list(self.samples)
        # One load at a time, so an empty store is only seeded once.
        with self._load_lock:
            return self._load_from_store()

    def _load_from_store(self) -> List[Book]:
        try:
            books = self.store.list_books()
        except StoreError as error:
            logger.error("Could not fetch the catalog: %s", error)
            self.last_error = error.message
            return list(self.samples)
        self.last_error = None
        if books:
            return books
        return self._seed()

    def _seed(self) -> List[Book]:
        logger.info("Catalog is empty, seeding %d sample books", len(self.samples))
        try:
            self.store.insert_books(seed_rows(self.samples))
            return self.store.list_books()
        except StoreError as error:
            logger.error("Seeding sample books failed: %s", error)
            self.last_error = error.message
            return list(self.samples)

    def save_book(self, draft: BookDraft, target: Optional[Book] = None) -> bool:
        """Write the draft. Returns False when nothing was attempted.

        Edits of a sample book are saved as a new record.
        """
        if not draft.is_complete() or self.store is None:
            return False
        fields = draft.to_fields()
        try:
            if target is not None and not target.is_local:
                self.store.update_book(target.id, fields)
            else:
                fields["is_hidden"] = False
                self.store.insert_books([fields])
        except StoreError as error:
            logger.error("Saving '%s' failed: %s", draft.title, error)
            raise
        self.fetch_catalog()
        return True

    def delete_book(
        self, book: Book, confirm: Optional[Callable[[Book], bool]] = None
    ) -> bool:
        if book.is_local:
            with self._lock:
                remaining = [item for item in self.books if item.id != book.id]
            self._set_books(remaining)
            return True
        if self.store is None:
            return False
        if confirm is not None and not confirm(book):
            return False
        try:
            self.store.delete_book(book.id)
        except StoreError as error:
            logger.error("Deleting %s failed: %s", book.id, error)
            raise
        self.fetch_catalog()
        return True

    def toggle_visibility(self, book: Book) -> bool:
        if book.is_local or self.store is None:
            return False
        current = self.find(book.id) or book
        hidden = not current.is_hidden
        revert = self.apply_optimistic(book.id, is_hidden=hidden)
        try:
            self.store.update_book(book.id, {"is_hidden": hidden})
        except StoreError as error:
            logger.error("Changing visibility of %s failed: %s", book.id, error)
            revert()
            self.fetch_catalog()
            raise
        return True
