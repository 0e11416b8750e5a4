"""End-to-end tests for the command-line interface."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from ship_tracker.cli import main
from ship_tracker.github import GitHubReleaseSource
from ship_tracker.models import FetchFailureReason, FetchResult, ReleaseEvent
from ship_tracker.storage import JsonFileStore


@pytest.fixture
def store(tmp_path: Path) -> Path:
    return tmp_path / "state.json"


@pytest.fixture
def no_network(monkeypatch):
    calls = []

    def fake_fetch(self, repo):
        calls.append(repo)
        return FetchResult(events=[ReleaseEvent(
            id=1,
            tag_name="v1.0.0",
            name=None,
            url="https://github.com/octo/demo/releases/tag/v1.0.0",
            published_at=datetime(2024, 3, 12, 8, 0, tzinfo=timezone.utc),
        )])

    monkeypatch.setattr(GitHubReleaseSource, "fetch_events", fake_fetch)
    return calls


def test_connect_without_verification(store: Path):
    code = main(["--store", str(store), "connect", "octo/demo", "--day", "friday",
                 "--time", "17:00", "--timezone", "Europe/Paris", "--no-verify"])

    assert code == 0
    commitment = JsonFileStore(store).commitments.get()
    assert commitment.repo_slug == "octo/demo"
    assert commitment.rule.day_of_week == 5


def test_connect_verifies_repository(store: Path, no_network):
    assert main(["--store", str(store), "connect", "https://github.com/octo/demo"]) == 0
    assert no_network == ["octo/demo"]


def test_connect_rejects_bad_input(store: Path):
    with pytest.raises(SystemExit):
        main(["--store", str(store), "connect", "octo/demo", "--time", "25:00", "--no-verify"])
    assert JsonFileStore(store).commitments.get() is None


def test_settings_updates_only_given_fields(store: Path):
    main(["--store", str(store), "connect", "octo/demo", "--tag-pattern", "^v", "--no-verify"])

    assert main(["--store", str(store), "settings", "--day", "3"]) == 0

    rule = JsonFileStore(store).commitments.get().rule
    assert rule.day_of_week == 3
    assert rule.tag_pattern == "^v"

    main(["--store", str(store), "settings", "--clear-tag-pattern"])
    assert JsonFileStore(store).commitments.get().rule.tag_pattern is None


def test_check_writes_verdicts(store: Path, no_network):
    main(["--store", str(store), "connect", "octo/demo", "--no-verify"])

    code = main(["--store", str(store), "check", "--now", "2024-03-14T10:00:00Z"])

    assert code == 0
    history = JsonFileStore(store).verdicts.list_recent(8)
    assert len(history) == 5
    assert history[0].status.value == "pass"
    assert history[0].proof.tag_name == "v1.0.0"


def test_check_reports_fetch_failure(store: Path, monkeypatch):
    main(["--store", str(store), "connect", "octo/demo", "--no-verify"])
    monkeypatch.setattr(
        GitHubReleaseSource,
        "fetch_events",
        lambda self, repo: FetchResult(error="rate limited", reason=FetchFailureReason.RATE_LIMITED),
    )

    assert main(["--store", str(store), "check"]) == 1
    assert JsonFileStore(store).verdicts.list_recent(8) == []


def test_evidence_and_scorecard_exports(store: Path, tmp_path: Path):
    main(["--store", str(store), "connect", "octo/demo", "--no-verify"])

    assert main(["--store", str(store), "evidence", "--week", "1",
                 "--url", "https://example.com/demo", "--note", "conference talk"]) == 0

    output_dir = tmp_path / "out"
    code = main(["--store", str(store), "scorecard", "--output-dir", str(output_dir),
                 "--json", "--csv", "--xlsx"])

    assert code == 0
    results = json.loads((output_dir / "octo_demo_scorecard.json").read_text())
    assert results["weeks"][1]["status"] == "grace"
    assert results["weeks"][1]["verdict"]["note"] == "conference talk"
    assert (output_dir / "octo_demo_scorecard.csv").exists()
    assert (output_dir / "octo_demo_scorecard.xlsx").exists()


def test_evidence_reads_the_clock_once(store: Path, monkeypatch):
    main(["--store", str(store), "connect", "octo/demo", "--no-verify"])
    thursday = datetime(2024, 3, 14, 10, 0, tzinfo=timezone.utc)
    # a second reading would land after the Sunday cutoff
    monkeypatch.setattr("ship_tracker.cli.utc_now", lambda: thursday)
    monkeypatch.setattr(
        "ship_tracker.tracker.utc_now",
        lambda: datetime(2024, 3, 18, 9, 0, tzinfo=timezone.utc),
    )

    assert main(["--store", str(store), "evidence", "--week", "1", "--url", "https://x.test"]) == 0

    stored = JsonFileStore(store).verdicts.list_recent(8)
    assert len(stored) == 1
    assert stored[0].week_end == datetime(2024, 3, 10, 23, 59, tzinfo=timezone.utc)
    assert stored[0].evaluated_at == thursday


def test_evidence_week_out_of_range(store: Path):
    main(["--store", str(store), "connect", "octo/demo", "--no-verify"])

    with pytest.raises(SystemExit):
        main(["--store", str(store), "evidence", "--week", "9", "--url", "https://x.test"])


def test_scorecard_without_repository(store: Path):
    assert main(["--store", str(store), "scorecard"]) == 1
