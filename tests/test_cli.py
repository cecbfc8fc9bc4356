from __future__ import annotations

import pytest
from pydantic import ValidationError

from scriptrank import cli
from scriptrank.aggregator import RankedEntry
from scriptrank.config import AppSettings
from scriptrank.scanner import RunResult, SeedUnreachable


class NoNetworkScanner:
    def __init__(self, settings) -> None:
        raise AssertionError("no crawl may start on invalid input")


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda verbose=False: None)


def test_missing_search_term_exits_without_crawling(monkeypatch, capsys) -> None:
    monkeypatch.setattr(cli, "Scanner", NoNetworkScanner)
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])
    assert excinfo.value.code != 0
    assert "search_term" in capsys.readouterr().err


def test_blank_search_term_exits_without_crawling(monkeypatch, capsys) -> None:
    monkeypatch.setattr(cli, "Scanner", NoNetworkScanner)
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["   "])
    assert excinfo.value.code != 0
    assert "Required search term not set" in capsys.readouterr().err


@pytest.mark.parametrize("limit", ["five", "2.5", "0", "-1"])
def test_invalid_limit_exits_without_crawling(monkeypatch, capsys, limit: str) -> None:
    monkeypatch.setattr(cli, "Scanner", NoNetworkScanner)
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["jquery", limit])
    assert excinfo.value.code != 0
    assert "Limit argument" in capsys.readouterr().err


def test_invalid_option_value_exits_without_crawling(monkeypatch, capsys) -> None:
    monkeypatch.setattr(cli, "Scanner", NoNetworkScanner)
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["jquery", "--workers", "0"])
    assert excinfo.value.code != 0
    assert "max_workers" in capsys.readouterr().err


def test_invalid_selector_exits_without_crawling(monkeypatch, capsys) -> None:
    monkeypatch.setattr(cli, "Scanner", NoNetworkScanner)
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["jquery", "--link-selector", "div[["])
    assert excinfo.value.code != 0
    assert "result_link_selector" in capsys.readouterr().err


def test_report_is_printed_to_stdout(monkeypatch, capsys) -> None:
    seen: dict = {}

    class StubScanner:
        def __init__(self, settings) -> None:
            seen["settings"] = settings

        def run_scan(self, *, query, limit=None, progress=None) -> RunResult:
            seen["query"] = query
            seen["limit"] = limit
            return RunResult(
                query=query,
                seed_url="https://search.test/?q=jquery",
                limit=3,
                entries=[RankedEntry("jquery.min.js", 4), RankedEntry("app.js", 2)],
                candidates=5,
                pages_scanned=4,
                pages_failed=1,
                references=6,
                stage_durations={"total": 1.5},
            )

    monkeypatch.setattr(cli, "Scanner", StubScanner)
    exit_code = cli.main(["jquery", "3", "--workers", "12", "--max-candidates", "20"])

    assert exit_code == 0
    assert seen["query"] == "jquery"
    assert seen["limit"] == 3
    assert seen["settings"].max_workers == 12
    assert seen["settings"].max_candidates == 20
    assert capsys.readouterr().out.splitlines() == [
        "Libraries -- Occurrences",
        "jquery.min.js -- 4",
        "app.js -- 2",
    ]


def test_seed_failure_exits_non_zero(monkeypatch, capsys) -> None:
    class FailingScanner:
        def __init__(self, settings) -> None:
            pass

        def run_scan(self, *, query, limit=None, progress=None) -> RunResult:
            raise SeedUnreachable("https://search.test/?q=jquery", "HTTP 429")

    monkeypatch.setattr(cli, "Scanner", FailingScanner)
    assert cli.main(["jquery"]) == 1
    assert capsys.readouterr().out == ""


def test_settings_reject_invalid_script_selector() -> None:
    with pytest.raises(ValidationError):
        AppSettings(script_selector="script[")
