from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from time import perf_counter
from typing import Callable, Protocol
from urllib.parse import quote_plus

from scriptrank.aggregator import FrequencyAggregator, RankedEntry, top_n
from scriptrank.config import AppSettings
from scriptrank.extractor import (
    MalformedURL,
    extract_key,
    select_result_links,
    select_script_sources,
)
from scriptrank.fetcher import FetchError, PageBody, PageFetcher
from scriptrank.logger import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[str, int, str], None]


class Fetcher(Protocol):
    def fetch(self, url: str) -> PageBody: ...


class FatalRunError(RuntimeError):
    pass


class SeedUnreachable(FatalRunError):
    def __init__(self, url: str, reason: str):
        super().__init__(f"Could not fetch search results from {url}: {reason}")
        self.url = url
        self.reason = reason


class RunState(str, Enum):
    IDLE = "idle"
    SEED_FETCHING = "seed_fetching"
    SCANNING = "scanning"
    AGGREGATED = "aggregated"
    REPORTED = "reported"
    FAILED = "failed"


TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.IDLE: frozenset({RunState.SEED_FETCHING}),
    RunState.SEED_FETCHING: frozenset({RunState.SCANNING, RunState.FAILED}),
    RunState.SCANNING: frozenset({RunState.AGGREGATED}),
    RunState.AGGREGATED: frozenset({RunState.REPORTED}),
    RunState.REPORTED: frozenset(),
    RunState.FAILED: frozenset(),
}


@dataclass(slots=True)
class PageScan:
    url: str
    keys: list[str] = field(default_factory=list)
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class RunResult:
    query: str
    seed_url: str
    limit: int
    entries: list[RankedEntry]
    candidates: int
    pages_scanned: int
    pages_failed: int
    references: int
    stage_durations: dict[str, float]


def build_search_url(template: str, query: str) -> str:
    return template.replace("{query}", quote_plus(query))


class LinkCollector:
    def __init__(self, settings: AppSettings, fetcher: Fetcher):
        self.settings = settings
        self.fetcher = fetcher

    def collect(self, query: str) -> list[str]:
        seed_url = build_search_url(self.settings.search_url_template, query)
        try:
            page = self.fetcher.fetch(seed_url)
        except FetchError as exc:
            raise SeedUnreachable(seed_url, exc.reason) from exc

        links = select_result_links(
            page.content,
            base_url=page.final_url,
            selector=self.settings.result_link_selector,
        )
        if self.settings.max_candidates is not None:
            links = links[: self.settings.max_candidates]
        logger.info("Found %d result links on %s", len(links), seed_url)
        return links


class PageScriptScanner:
    def __init__(self, settings: AppSettings, fetcher: Fetcher):
        self.settings = settings
        self.fetcher = fetcher

    def scan(self, url: str) -> list[str]:
        return self.scan_page(url).keys

    def scan_page(self, url: str) -> PageScan:
        try:
            page = self.fetcher.fetch(url)
        except FetchError as exc:
            logger.warning("Could not fetch page from %s (%s)", url, exc.reason)
            return PageScan(url=url, error=exc)

        sources = select_script_sources(
            page.content,
            base_url=page.final_url,
            selector=self.settings.script_selector,
        )
        keys: list[str] = []
        for src in sources:
            if not src:
                continue
            try:
                keys.append(extract_key(src))
            except MalformedURL:
                continue
        return PageScan(url=url, keys=keys)


def _ignore_progress(phase: str, pct: int, message: str) -> None:
    return None


class Scanner:
    def __init__(self, settings: AppSettings, fetcher: Fetcher | None = None):
        self.settings = settings
        self._fetcher = fetcher
        self.state = RunState.IDLE

    def run_scan(
        self,
        *,
        query: str,
        limit: int | None = None,
        progress: ProgressCallback | None = None,
    ) -> RunResult:
        notify = progress or _ignore_progress
        if limit is None:
            limit = self.settings.default_limit
        overall_start = perf_counter()
        stage_durations: dict[str, float] = {}
        seed_url = build_search_url(self.settings.search_url_template, query)

        fetcher = self._fetcher or PageFetcher(self.settings)
        try:
            self._transition(RunState.SEED_FETCHING)
            notify(self.state.value, 5, f"Fetching search results for {query!r}")
            stage_start = perf_counter()
            try:
                candidates = LinkCollector(self.settings, fetcher).collect(query)
            except FatalRunError as exc:
                self._transition(RunState.FAILED)
                notify(self.state.value, 100, str(exc))
                raise
            stage_durations["seed"] = perf_counter() - stage_start

            self._transition(RunState.SCANNING)
            notify(self.state.value, 15, f"Scanning {len(candidates)} result pages")
            stage_start = perf_counter()
            aggregator = FrequencyAggregator()
            pages = self._scan_candidates(
                candidates=candidates,
                scanner=PageScriptScanner(self.settings, fetcher),
                aggregator=aggregator,
                notify=notify,
            )
            stage_durations["scan"] = perf_counter() - stage_start

            self._transition(RunState.AGGREGATED)
            mapping = aggregator.snapshot()
            notify(self.state.value, 95, f"Counted {len(mapping)} distinct scripts")
            entries = top_n(mapping, limit)

            self._transition(RunState.REPORTED)
            stage_durations["total"] = perf_counter() - overall_start
            notify(self.state.value, 100, "Run completed")
        finally:
            if self._fetcher is None:
                fetcher.close()

        failed = sum(1 for page in pages if not page.ok)
        return RunResult(
            query=query,
            seed_url=seed_url,
            limit=limit,
            entries=entries,
            candidates=len(candidates),
            pages_scanned=len(pages) - failed,
            pages_failed=failed,
            references=aggregator.total,
            stage_durations=stage_durations,
        )

    def _scan_candidates(
        self,
        *,
        candidates: list[str],
        scanner: PageScriptScanner,
        aggregator: FrequencyAggregator,
        notify: ProgressCallback,
    ) -> list[PageScan]:
        pages: list[PageScan] = []
        if not candidates:
            return pages

        def scan_and_merge(url: str) -> PageScan:
            page = scanner.scan_page(url)
            aggregator.merge(page.keys)
            return page

        with ThreadPoolExecutor(
            max_workers=self.settings.max_workers,
            thread_name_prefix="scriptrank-scan",
        ) as pool:
            futures = [pool.submit(scan_and_merge, url) for url in candidates]
            for future in as_completed(futures):
                page = future.result()
                pages.append(page)
                pct = 15 + int(80 * len(pages) / len(candidates))
                notify(
                    RunState.SCANNING.value,
                    min(pct, 94),
                    f"Scanned {len(pages)}/{len(candidates)} pages",
                )
        return pages

    def _transition(self, target: RunState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal run transition {self.state.value} -> {target.value}")
        logger.debug("Run state %s -> %s", self.state.value, target.value)
        self.state = target
