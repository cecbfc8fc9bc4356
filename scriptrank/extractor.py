from __future__ import annotations

from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup
from bs4.element import Tag


class MalformedURL(ValueError):
    """A script or link reference that does not parse as an absolute URL."""

    def __init__(self, url: str):
        super().__init__(f"Malformed URL: {url!r}")
        self.url = url


def extract_key(url: str) -> str:
    try:
        parts = urlsplit(url)
    except ValueError as exc:
        raise MalformedURL(url) from exc
    if not parts.scheme or not parts.netloc:
        raise MalformedURL(url)
    try:
        valid = bool(parts.hostname) and (parts.port is None or parts.port >= 0)
    except ValueError as exc:
        raise MalformedURL(url) from exc
    if not valid:
        raise MalformedURL(url)
    return parts.path.rsplit("/", 1)[-1]


def resolve_absolute(base_url: str, raw_value) -> str:
    # "" when the value cannot become an absolute http(s) URL.
    if isinstance(raw_value, list):
        raw_value = " ".join(raw_value)
    if not isinstance(raw_value, str):
        return ""
    candidate = raw_value.strip()
    if not candidate:
        return ""
    try:
        resolved = urljoin(base_url, candidate)
        parts = urlsplit(resolved)
    except ValueError:
        return ""
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        return ""
    return resolved


def parse_page(body: bytes | str) -> BeautifulSoup:
    return BeautifulSoup(body, "lxml")


def select_attribute_urls(
    body: bytes | str, *, base_url: str, selector: str, attr: str
) -> list[str]:
    soup = parse_page(body)
    urls: list[str] = []
    for node in soup.select(selector):
        if not isinstance(node, Tag):
            continue
        urls.append(resolve_absolute(base_url, node.attrs.get(attr)))
    return urls


def select_result_links(body: bytes | str, *, base_url: str, selector: str) -> list[str]:
    links = select_attribute_urls(body, base_url=base_url, selector=selector, attr="href")
    return [link for link in links if link]


def select_script_sources(
    body: bytes | str, *, base_url: str, selector: str = "script"
) -> list[str]:
    # Inline scripts come back as empty strings; callers drop them.
    return select_attribute_urls(body, base_url=base_url, selector=selector, attr="src")
