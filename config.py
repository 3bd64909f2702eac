from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

from api import SupabaseStore
from storage import LocalBookStore, LocalState

APP_NAME = "LiteBooks"
DEFAULT_APP_ID = "litebooks-2026"
DEFAULT_DATA_DIR = Path.home() / ".litebooks"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_TIMEOUT = 15.0
STORAGE_REMOTE = "remote"
STORAGE_LOCAL = "local"

LOG_FORMAT = "[litebooks] %(asctime)s %(levelname)s %(name)s %(message)s"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from the environment."""

    supabase_url: str = ""
    supabase_key: str = ""
    app_id: str = DEFAULT_APP_ID
    data_dir: Path = DEFAULT_DATA_DIR
    storage: str = STORAGE_REMOTE
    log_level: str = DEFAULT_LOG_LEVEL
    timeout: float = DEFAULT_TIMEOUT

    @property
    def configured(self) -> bool:
        return is_configured({"SUPABASE_URL": self.supabase_url, "SUPABASE_KEY": self.supabase_key})

    @property
    def db_path(self) -> Path:
        return self.data_dir / "litebooks.db"


def _env(environ: Mapping[str, str], name: str) -> str:
    # The web build exposes the same values with a VITE_ prefix.
    value = environ.get(name) or environ.get(f"VITE_{name}") or ""
    return value.strip()


def is_configured(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Return True when both the backend URL and access key are present."""
    try:
        source = os.environ if environ is None else environ
        return bool(_env(source, "SUPABASE_URL") and _env(source, "SUPABASE_KEY"))
    except Exception:
        return False


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Resolve settings; an unreadable environment yields the unconfigured defaults."""
    source = os.environ if environ is None else environ
    try:
        return _read_settings(source)
    except Exception as error:
        logger.warning("Could not read settings from the environment: %s", error)
        return Settings()


def _read_settings(source: Mapping[str, str]) -> Settings:
    url = _env(source, "SUPABASE_URL") if is_configured(source) else ""
    key = _env(source, "SUPABASE_KEY") if url else ""

    timeout_raw = source.get("LITEBOOKS_TIMEOUT", "")
    try:
        timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT
    except ValueError:
        logger.warning("Ignoring invalid LITEBOOKS_TIMEOUT=%r", timeout_raw)
        timeout = DEFAULT_TIMEOUT
    if timeout <= 0:
        timeout = DEFAULT_TIMEOUT

    storage = (source.get("LITEBOOKS_STORAGE") or STORAGE_REMOTE).strip().lower()
    if storage not in {STORAGE_REMOTE, STORAGE_LOCAL}:
        logger.warning("Unknown LITEBOOKS_STORAGE=%r, using remote", storage)
        storage = STORAGE_REMOTE

    data_dir_raw = (source.get("LITEBOOKS_DATA_DIR") or "").strip()
    data_dir = Path(data_dir_raw).expanduser() if data_dir_raw else DEFAULT_DATA_DIR

    return Settings(
        supabase_url=url.rstrip("/"),
        supabase_key=key,
        app_id=(source.get("LITEBOOKS_APP_ID") or DEFAULT_APP_ID).strip(),
        data_dir=data_dir,
        storage=storage,
        log_level=(source.get("LITEBOOKS_LOG_LEVEL") or DEFAULT_LOG_LEVEL).strip().upper(),
        timeout=timeout,
    )


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if any(getattr(handler, "_litebooks", False) for handler in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._litebooks = True  # type: ignore[attr-defined]
    root.addHandler(handler)


def build_store(
    settings: Settings, state: LocalState
) -> Optional[Union[SupabaseStore, LocalBookStore]]:
    """Pick the store backing the catalog, or None for the degraded mode."""
    if settings.storage == STORAGE_LOCAL:
        logger.info("Using local storage under %s", settings.db_path)
        return LocalBookStore(state, app_id=settings.app_id)
    if settings.configured:
        logger.info("Using remote store at %s", settings.supabase_url)
        return SupabaseStore(
            settings.supabase_url,
            settings.supabase_key,
            state=state,
            app_id=settings.app_id,
            timeout=settings.timeout,
        )
    logger.info("Remote store not configured; showing sample content only")
    return None
