from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from api import StoreError
from models import Book


class FakeStore:
    """In-memory stand-in for the hosted book store."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None):
        self.rows: List[Dict[str, Any]] = []
        self.calls: List[Tuple[str, Any]] = []
        self.fail_on: Set[str] = set()
        self.before_update: Optional[Callable[[], None]] = None
        self.before_list: Optional[Callable[[], None]] = None
        self._counter = 0
        for row in rows or []:
            self._add(row)

    def _add(self, row: Dict[str, Any]) -> Dict[str, Any]:
        self._counter += 1
        stored = dict(row)
        stored.setdefault("id", f"row-{self._counter}")
        stored["created_at"] = f"2026-01-01T00:{self._counter // 60:02d}:{self._counter % 60:02d}"
        self.rows.append(stored)
        return stored

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise StoreError(f"{operation} rejected by backend")

    def list_books(self) -> List[Book]:
        self.calls.append(("list", None))
        if self.before_list:
            self.before_list()
        self._check("list")
        ordered = sorted(self.rows, key=lambda row: row["created_at"], reverse=True)
        return [Book.from_row(row) for row in ordered]

    def insert_books(self, rows: Iterable[Dict[str, Any]]) -> List[Book]:
        rows = [dict(row) for row in rows]
        self.calls.append(("insert", rows))
        self._check("insert")
        return [Book.from_row(self._add(row)) for row in rows]

    def update_book(self, book_id: str, fields: Dict[str, Any]) -> Optional[Book]:
        self.calls.append(("update", (book_id, dict(fields))))
        if self.before_update:
            self.before_update()
        self._check("update")
        for row in self.rows:
            if row["id"] == book_id:
                row.update(fields)
                return Book.from_row(row)
        return None

    def delete_book(self, book_id: str) -> None:
        self.calls.append(("delete", book_id))
        self._check("delete")
        self.rows = [row for row in self.rows if row["id"] != book_id]

    def operations(self) -> List[str]:
        return [name for name, _ in self.calls]

