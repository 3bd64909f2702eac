from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from api import SIGNED_IN, SIGNED_OUT, AuthError, AuthEvents, StoreError
from models import PERSISTED_FIELDS, Book, Session, User

logger = logging.getLogger(__name__)


class LocalState:
    """SQLite-backed key/value file holding JSON documents."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                );
                """
            )

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def get_json(self, key: str) -> Any:
        with self._lock:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except ValueError:
            logger.error("Could not decode stored value for %s", key)
            return None

    def set_json(self, key: str, value: Any) -> None:
        encoded = json.dumps(value, ensure_ascii=False)
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO kv (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, encoded),
            )

    def delete(self, key: str) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))


class LocalBookStore(AuthEvents):
    """Book store kept entirely on this machine under one namespaced key.

    The whole collection is read when the store is created and written back
    after every change. Sign-in is simulated: any non-empty credentials
    open an admin session for that email.
    """

    def __init__(self, state: LocalState, *, app_id: str = "litebooks-2026"):
        super().__init__()
        self._state = state
        self._books_key = f"{app_id}_books"
        self._lock = threading.Lock()
        self._rows: List[Dict[str, Any]] = self._read()
        self._session: Optional[Session] = None

    def _read(self) -> List[Dict[str, Any]]:
        data = self._state.get_json(self._books_key)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.error("Stored collection under %s is not a list; ignoring it", self._books_key)
            return []
        rows = []
        for row in data:
            if isinstance(row, dict) and row.get("id"):
                rows.append(row)
        return rows

    def _write(self) -> None:
        self._state.set_json(self._books_key, self._rows)

    def _books(self, rows: Iterable[Dict[str, Any]]) -> List[Book]:
        books = []
        for row in rows:
            try:
                books.append(Book.from_row(row))
            except ValidationError as error:
                logger.warning("Skipping malformed local row %r: %s", row.get("id"), error)
        return books

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------
    def list_books(self) -> List[Book]:
        with self._lock:
            rows = sorted(
                self._rows, key=lambda row: row.get("created_at") or "", reverse=True
            )
        return self._books(rows)

    def insert_books(self, rows: Iterable[Dict[str, Any]]) -> List[Book]:
        created = []
        with self._lock:
            for row in rows:
                record = {key: value for key, value in row.items() if key in PERSISTED_FIELDS}
                if not str(record.get("title") or "").strip():
                    raise StoreError("Title is required.")
                record.setdefault("is_hidden", False)
                record["id"] = uuid.uuid4().hex
                record["created_at"] = datetime.now(timezone.utc).isoformat()
                created.append(record)
            self._rows = created[::-1] + self._rows
            self._write()
        return self._books(created)

    def update_book(self, book_id: str, fields: Dict[str, Any]) -> Optional[Book]:
        changes = {key: value for key, value in fields.items() if key in PERSISTED_FIELDS}
        with self._lock:
            for row in self._rows:
                if row.get("id") == book_id:
                    row.update(changes)
                    self._write()
                    return self._books([row])[0]
        return None

    def delete_book(self, book_id: str) -> None:
        with self._lock:
            self._rows = [row for row in self._rows if row.get("id") != book_id]
            self._write()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    def get_session(self) -> Optional[Session]:
        return self._session

    def sign_in(self, email: str, password: str) -> Session:
        email = email.strip()
        if not email or not password:
            raise AuthError("Email and password are required.")
        self._session = Session(
            access_token=uuid.uuid4().hex,
            user=User(id=f"local-{email.lower()}", email=email),
        )
        self._emit(SIGNED_IN, self._session)
        return self._session

    def sign_out(self) -> None:
        self._session = None
        self._emit(SIGNED_OUT, None)

    def close(self) -> None:
        pass
