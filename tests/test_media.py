from __future__ import annotations

import io
from pathlib import Path
from typing import List

import pytest
import requests
from PIL import Image

pytest.importorskip("PIL.ImageTk")

from media import cached_image_path, fetch_and_cache_image, load_photo  # noqa: E402

IMAGE_URL = "https://images.example/cover.jpg"


def _png_bytes(size=(1200, 600)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeHttp:
    def __init__(self, status: int = 200, content: bytes = b"") -> None:
        self.status = status
        self.content = content
        self.urls: List[str] = []

    def get(self, url: str, timeout: float) -> requests.Response:
        self.urls.append(url)
        response = requests.Response()
        response.status_code = self.status
        response.url = url
        response._content = self.content
        return response


def test_downloads_resizes_and_caches(tmp_path: Path) -> None:
    http = FakeHttp(content=_png_bytes())

    path = fetch_and_cache_image(IMAGE_URL, tmp_path, max_edge=300, http=http)

    assert path == cached_image_path(tmp_path, IMAGE_URL, 300)
    with Image.open(path) as image:
        assert max(image.size) == 300

    again = fetch_and_cache_image(IMAGE_URL, tmp_path, max_edge=300, http=http)
    assert again == path
    assert http.urls == [IMAGE_URL]


def test_cache_key_depends_on_size(tmp_path: Path) -> None:
    assert cached_image_path(tmp_path, IMAGE_URL, 300) != cached_image_path(tmp_path, IMAGE_URL, None)


@pytest.mark.parametrize("url", [None, "", "data:image/png;base64,AAAA", "file:///etc/passwd"])
def test_non_http_urls_are_ignored(tmp_path: Path, url) -> None:
    http = FakeHttp(content=_png_bytes())

    assert fetch_and_cache_image(url, tmp_path, http=http) is None
    assert http.urls == []


def test_http_errors_return_none(tmp_path: Path) -> None:
    assert fetch_and_cache_image(IMAGE_URL, tmp_path, http=FakeHttp(status=404)) is None
    assert not cached_image_path(tmp_path, IMAGE_URL, 720).exists()


def test_undecodable_content_returns_none(tmp_path: Path) -> None:
    assert fetch_and_cache_image(IMAGE_URL, tmp_path, http=FakeHttp(content=b"not an image")) is None


def test_unreadable_cache_entries_give_no_photo(tmp_path: Path) -> None:
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not an image")

    assert load_photo(tmp_path / "missing.png", (64, 64)) is None
    assert load_photo(broken, (64, 64)) is None
