from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter

import httpx

from scriptrank.config import AppSettings
from scriptrank.logger import get_logger

logger = get_logger(__name__)


class FetchError(RuntimeError):
    """A single page could not be fetched."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class Unreachable(FetchError):
    pass


class HttpError(FetchError):
    def __init__(self, url: str, status_code: int):
        super().__init__(url, f"HTTP {status_code}")
        self.status_code = status_code


class ProtocolError(FetchError):
    pass


@dataclass(slots=True)
class PageBody:
    url: str
    final_url: str
    status_code: int
    content: bytes


class PageFetcher:
    """One GET per call; timeout_seconds also bounds reading the body."""

    def __init__(self, settings: AppSettings, client: httpx.Client | None = None):
        self.settings = settings
        self._owns_client = client is None
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=httpx.Timeout(settings.timeout_seconds),
            headers={"User-Agent": settings.user_agent},
            limits=httpx.Limits(
                max_connections=settings.max_workers,
                max_keepalive_connections=settings.max_workers,
            ),
        )

    def __enter__(self) -> "PageFetcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def fetch(self, url: str) -> PageBody:
        logger.debug("Downloading %s...", url)
        deadline = perf_counter() + self.settings.timeout_seconds
        try:
            with self._client.stream("GET", url) as response:
                if not response.is_success:
                    raise HttpError(url, response.status_code)
                content = self._read_body(url, response, deadline)
                return PageBody(
                    url=url,
                    final_url=str(response.url),
                    status_code=response.status_code,
                    content=content,
                )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            raise Unreachable(url, f"invalid URL ({exc})") from exc
        except httpx.TimeoutException as exc:
            raise Unreachable(url, "timed out") from exc
        except (httpx.ProtocolError, httpx.DecodingError, httpx.TooManyRedirects) as exc:
            raise ProtocolError(url, str(exc) or type(exc).__name__) from exc
        except httpx.TransportError as exc:
            raise Unreachable(url, str(exc) or type(exc).__name__) from exc
        except httpx.HTTPError as exc:
            raise ProtocolError(url, str(exc) or type(exc).__name__) from exc

    def _read_body(self, url: str, response: httpx.Response, deadline: float) -> bytes:
        limit = self.settings.max_body_bytes
        chunks: list[bytes] = []
        size = 0
        for chunk in response.iter_bytes():
            if perf_counter() > deadline:
                raise Unreachable(url, "timed out reading body")
            chunks.append(chunk)
            size += len(chunk)
            if size >= limit:
                logger.debug("Truncating %s at %d bytes", url, limit)
                break
        return b"".join(chunks)[:limit]
