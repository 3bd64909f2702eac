from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional

import requests
from pydantic import ValidationError

from models import PERSISTED_FIELDS, Book, Session, User

if TYPE_CHECKING:
    from storage import LocalState

logger = logging.getLogger(__name__)

BOOKS_TABLE = "books"
DEFAULT_TIMEOUT = 15.0

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"

AuthListener = Callable[[str, Optional[Session]], None]


class StoreError(Exception):
    """A failed read or write against the book store."""

    def __init__(
        self, message: str, *, status: Optional[int] = None, code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code


class AuthError(StoreError):
    """Sign-in, refresh or session failure."""


def normalize_rows(rows: Any) -> List[Book]:
    """Validate stored rows, dropping the ones that cannot form a record."""
    if not isinstance(rows, list):
        return []
    books: List[Book] = []
    for row in rows:
        if not isinstance(row, dict):
            logger.warning("Skipping non-object row: %r", row)
            continue
        try:
            books.append(Book.from_row(row))
        except ValidationError as error:
            logger.warning("Skipping malformed book row %r: %s", row.get("id"), error)
    return books


class AuthEvents:
    """Session-change subscription shared by the store implementations."""

    def __init__(self) -> None:
        self._listeners: List[AuthListener] = []
        self._listeners_lock = threading.Lock()

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        with self._listeners_lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, event: str, session: Optional[Session]) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event, session)
            except Exception:
                logger.exception("Auth listener failed for %s", event)


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in ("message", "msg", "error_description", "error"):
            value = payload.get(key)
            if value:
                return str(value)
    text = (response.text or "").strip()
    return text or f"HTTP {response.status_code} {response.reason or ''}".strip()


def _error_code(response: requests.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        code = payload.get("code") or payload.get("error_code")
        return str(code) if code else None
    return None


def parse_session(data: Dict[str, Any]) -> Session:
    """Create a Session from a token endpoint response."""
    user_data = data.get("user") or {}
    if not data.get("access_token") or not user_data.get("id"):
        raise AuthError("The auth service returned an incomplete session.")

    expires_at: Optional[datetime] = None
    try:
        if data.get("expires_at"):
            expires_at = datetime.fromtimestamp(int(data["expires_at"]), tz=timezone.utc)
        elif data.get("expires_in"):
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(data["expires_in"]))
    except (TypeError, ValueError, OverflowError, OSError) as error:
        raise AuthError(f"The auth service returned an invalid expiry: {error}") from error

    return Session(
        access_token=str(data["access_token"]),
        refresh_token=data.get("refresh_token"),
        expires_at=expires_at,
        user=User(id=str(user_data["id"]), email=str(user_data.get("email") or "")),
    )


class SupabaseStore(AuthEvents):
    """Client for a hosted backend exposing a REST row API and a token auth API."""

    def __init__(
        self,
        url: str,
        key: str,
        *,
        state: Optional["LocalState"] = None,
        app_id: str = "litebooks-2026",
        timeout: float = DEFAULT_TIMEOUT,
        http: Optional[requests.Session] = None,
    ):
        super().__init__()
        self.url = url.rstrip("/")
        self.key = key
        self.timeout = timeout
        self.http = http or requests.Session()
        self._state = state
        self._session_key = f"{app_id}_session"
        self._session_lock = threading.RLock()
        self._session: Optional[Session] = self._load_session()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _headers(self, *, use_session: bool = True) -> Dict[str, str]:
        token = self.key
        if use_session and self._session is not None:
            token = self._session.access_token
        return {"apikey": self.key, "Authorization": f"Bearer {token}"}

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        use_session: bool = True,
        error_cls: type = StoreError,
    ) -> Any:
        if use_session:
            # Refreshes an expired token, or drops the session when that fails.
            self.get_session()
        merged = self._headers(use_session=use_session)
        if headers:
            merged.update(headers)
        try:
            response = self.http.request(
                method,
                f"{self.url}{path}",
                params=params,
                json=json,
                headers=merged,
                timeout=self.timeout,
            )
        except requests.RequestException as error:
            raise error_cls(f"Unable to reach the backend: {error}") from error

        if not response.ok:
            raise error_cls(
                _error_message(response),
                status=response.status_code,
                code=_error_code(response),
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------
    def list_books(self) -> List[Book]:
        rows = self._request(
            "GET",
            f"/rest/v1/{BOOKS_TABLE}",
            params={"select": "*", "order": "created_at.desc"},
        )
        return normalize_rows(rows)

    def insert_books(self, rows: Iterable[Dict[str, Any]]) -> List[Book]:
        payload = [
            {key: value for key, value in row.items() if key in PERSISTED_FIELDS}
            for row in rows
        ]
        created = self._request(
            "POST",
            f"/rest/v1/{BOOKS_TABLE}",
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        return normalize_rows(created)

    def update_book(self, book_id: str, fields: Dict[str, Any]) -> Optional[Book]:
        payload = {key: value for key, value in fields.items() if key in PERSISTED_FIELDS}
        updated = normalize_rows(
            self._request(
                "PATCH",
                f"/rest/v1/{BOOKS_TABLE}",
                params={"id": f"eq.{book_id}"},
                json=payload,
                headers={"Prefer": "return=representation"},
            )
        )
        return updated[0] if updated else None

    def delete_book(self, book_id: str) -> None:
        self._request(
            "DELETE",
            f"/rest/v1/{BOOKS_TABLE}",
            params={"id": f"eq.{book_id}"},
        )

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    def _load_session(self) -> Optional[Session]:
        if self._state is None:
            return None
        data = self._state.get_json(self._session_key)
        if not data:
            return None
        try:
            return Session.model_validate(data)
        except ValidationError:
            logger.warning("Discarding unreadable stored session")
            self._state.delete(self._session_key)
            return None

    def _store_session(self, session: Optional[Session]) -> None:
        with self._session_lock:
            self._session = session
            if self._state is None:
                return
            if session is None:
                self._state.delete(self._session_key)
            else:
                self._state.set_json(self._session_key, session.model_dump(mode="json"))

    def get_session(self) -> Optional[Session]:
        with self._session_lock:
            session = self._session
        if session is None or not session.is_expired:
            return session
        if not session.refresh_token:
            self._store_session(None)
            self._emit(SIGNED_OUT, None)
            return None
        try:
            return self.refresh_session()
        except StoreError as error:
            logger.warning("Session refresh failed: %s", error)
            self._store_session(None)
            self._emit(SIGNED_OUT, None)
            return None

    def sign_in(self, email: str, password: str) -> Session:
        data = self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            use_session=False,
            error_cls=AuthError,
        )
        session = parse_session(data or {})
        self._store_session(session)
        logger.info("Signed in as %s", session.user.email)
        self._emit(SIGNED_IN, session)
        return session

    def refresh_session(self) -> Session:
        with self._session_lock:
            current = self._session
        if current is None or not current.refresh_token:
            raise AuthError("No session to refresh.")
        data = self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": current.refresh_token},
            use_session=False,
            error_cls=AuthError,
        )
        session = parse_session(data or {})
        self._store_session(session)
        self._emit(TOKEN_REFRESHED, session)
        return session

    def sign_out(self) -> None:
        with self._session_lock:
            current = self._session
        try:
            if current is not None:
                self._request("POST", "/auth/v1/logout", error_cls=AuthError)
        except StoreError as error:
            logger.warning("Remote sign-out failed, clearing local session: %s", error)
        finally:
            self._store_session(None)
            self._emit(SIGNED_OUT, None)

    def close(self) -> None:
        self.http.close()
