from __future__ import annotations

import threading

import pytest

from scriptrank.config import AppSettings
from scriptrank.fetcher import HttpError, PageBody, Unreachable

SEARCH_TEMPLATE = "https://search.test/?q={query}"


class FakeFetcher:
    """
    Serves canned pages by URL. An ``int`` value is answered with that HTTP
    status; unknown URLs are unreachable.
    """

    def __init__(self, pages: dict[str, bytes | int], gate: threading.Event | None = None):
        self.pages = pages
        self.gate = gate
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def fetch(self, url: str) -> PageBody:
        with self._lock:
            self.calls.append(url)
        if self.gate is not None:
            self.gate.wait(timeout=5)
        page = self.pages.get(url)
        if page is None:
            raise Unreachable(url, "no route to host")
        if isinstance(page, int):
            raise HttpError(url, page)
        return PageBody(url=url, final_url=url, status_code=200, content=page)


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(search_url_template=SEARCH_TEMPLATE, max_workers=4)


@pytest.fixture
def site_pages() -> dict[str, bytes | int]:
    seed = b"""
    <html><body>
      <div class="r"><a href="https://a.test/">A</a></div>
      <div class="r"><a href="/url-b">B</a></div>
      <div class="r"><a href="https://c.test/">C</a></div>
      <a href="https://ads.test/">sponsored</a>
    </body></html>
    """
    page_a = b"""
    <html><head>
      <script src="https://cdn.a.test/libs/jquery-3.6.0.min.js"></script>
      <script>window.inline = true;</script>
    </head><body>
      <script src="/static/jquery-3.6.0.min.js"></script>
    </body></html>
    """
    page_b = b"""
    <html><body>
      <script src="https://unpkg.test/react/umd/react.production.min.js"></script>
      <script src="https://cdn.b.test:abc/broken.js"></script>
    </body></html>
    """
    return {
        "https://search.test/?q=javascript+libraries": seed,
        "https://a.test/": page_a,
        "https://search.test/url-b": page_b,
        "https://c.test/": 500,
    }
