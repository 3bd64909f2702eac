from __future__ import annotations

import hashlib
import io
import logging
from pathlib import Path
from typing import Optional, Tuple

import requests
from PIL import Image, ImageTk, UnidentifiedImageError

logger = logging.getLogger(__name__)

DEFAULT_MAX_EDGE = 720


def _safe_name(identifier: str) -> str:
    return hashlib.sha1(identifier.encode("utf-8")).hexdigest()


def cached_image_path(cache_dir: Path, url: str, max_edge: Optional[int]) -> Path:
    suffix = str(max_edge) if max_edge else "orig"
    return Path(cache_dir) / f"{_safe_name(f'{url}:{suffix}')}.png"


def fetch_and_cache_image(
    url: Optional[str],
    cache_dir: Path,
    *,
    max_edge: Optional[int] = DEFAULT_MAX_EDGE,
    timeout: float = 15.0,
    http: Optional[requests.Session] = None,
) -> Optional[Path]:
    """Download an image referenced from article content into the cache."""
    if not url or not url.lower().startswith(("http://", "https://")):
        return None

    target_path = cached_image_path(cache_dir, url, max_edge)
    if target_path.exists():
        return target_path
    target_path.parent.mkdir(parents=True, exist_ok=True)

    getter = http.get if http is not None else requests.get
    try:
        response = getter(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as error:
        logger.warning("Could not download image %s: %s", url, error)
        return None

    try:
        image = Image.open(io.BytesIO(response.content))
        if image.mode not in ("RGB", "RGBA", "L", "LA", "P"):
            image = image.convert("RGBA")
        if max_edge:
            image.thumbnail((max_edge, max_edge), Image.LANCZOS)
        image.save(target_path, format="PNG")
    except (UnidentifiedImageError, OSError) as error:
        logger.warning("Could not decode image %s: %s", url, error)
        return None
    return target_path


def load_photo(path: Path, size: Tuple[int, int]) -> Optional[ImageTk.PhotoImage]:
    """Photo of a cached image scaled to fit inside ``size``, or None if unreadable."""
    try:
        with Image.open(path) as source:
            fitted = source.copy()
    except (UnidentifiedImageError, OSError) as error:
        logger.debug("Cannot open cached image %s: %s", path, error)
        return None
    fitted.thumbnail(size, Image.LANCZOS)
    return ImageTk.PhotoImage(fitted)
