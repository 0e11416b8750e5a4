"""Tests for evaluation passes over fake collaborators."""

from datetime import datetime, timezone

import pytest

from ship_tracker.config import ConfigurationError, build_cutoff_rule
from ship_tracker.models import FetchFailureReason, FetchResult, ReleaseEvent, WeekStatus
from ship_tracker.storage import InMemoryCommitmentStore, InMemoryVerdictStore
from ship_tracker.tracker import ShipTracker, summarize


NOW = datetime(2024, 3, 14, 10, 0, tzinfo=timezone.utc)
LATER = datetime(2024, 3, 21, 10, 0, tzinfo=timezone.utc)


class FakeSource:
    def __init__(self, result: FetchResult):
        self.result = result
        self.calls = []

    def fetch_events(self, repo):
        self.calls.append(repo)
        return self.result


def event(tag, published_at, release_id=1):
    return ReleaseEvent(
        id=release_id,
        tag_name=tag,
        name=None,
        url=f"https://github.com/octo/demo/releases/tag/{tag}",
        published_at=published_at,
    )


EVENTS = [
    event("v1.2.0", datetime(2024, 3, 12, 8, 0, tzinfo=timezone.utc), 3),
    event("v1.1.0", datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc), 2),
]


def make_tracker(result=None, tag_pattern=None):
    source = FakeSource(result or FetchResult(events=list(EVENTS)))
    tracker = ShipTracker(source, InMemoryVerdictStore(), InMemoryCommitmentStore())
    rule = build_cutoff_rule(0, "23:59", "UTC", tag_pattern)
    tracker.connect_repo("https://github.com/octo/demo", rule, now=NOW, verify=False)
    return tracker, source


def test_connect_repo_stores_commitment():
    tracker, _ = make_tracker()

    commitment = tracker.require_commitment()

    assert commitment.repo_slug == "octo/demo"
    assert commitment.created_at == NOW


def test_connect_repo_verifies_by_fetching():
    source = FakeSource(FetchResult(events=[]))
    tracker = ShipTracker(source, InMemoryVerdictStore(), InMemoryCommitmentStore())

    tracker.connect_repo("octo/demo", build_cutoff_rule(0, "23:59", "UTC"))

    assert source.calls == ["octo/demo"]


def test_connect_repo_failure_saves_nothing():
    failure = FetchResult(error="Repository not found.", reason=FetchFailureReason.NOT_FOUND)
    commitments = InMemoryCommitmentStore()
    tracker = ShipTracker(FakeSource(failure), InMemoryVerdictStore(), commitments)

    with pytest.raises(RuntimeError, match="not found"):
        tracker.connect_repo("octo/missing", build_cutoff_rule(0, "23:59", "UTC"))
    assert commitments.get() is None


def test_connect_repo_rejects_invalid_identifier():
    tracker = ShipTracker(FakeSource(FetchResult()), InMemoryVerdictStore(), InMemoryCommitmentStore())

    with pytest.raises(ConfigurationError):
        tracker.connect_repo("not a repo", build_cutoff_rule(0, "23:59", "UTC"))


def test_check_releases_evaluates_every_window_with_one_fetch():
    tracker, source = make_tracker()

    result = tracker.check_releases(NOW)

    assert result.success
    assert len(source.calls) == 1
    assert len(result.windows) == 5
    statuses = [v.status for v in result.verdicts]
    # v1.2.0 lands in the current week, v1.1.0 two weeks earlier
    assert statuses == [
        WeekStatus.PASS,
        WeekStatus.FAIL,
        WeekStatus.PASS,
        WeekStatus.FAIL,
        WeekStatus.FAIL,
    ]
    assert result.verdicts[0].proof.tag_name == "v1.2.0"
    assert all(v.evaluated_at == NOW for v in result.verdicts)
    assert len(tracker.history()) == 5


def test_check_releases_applies_tag_pattern():
    tracker, _ = make_tracker(tag_pattern="^prod-")

    result = tracker.check_releases(NOW)

    assert result.verdicts[0].status == WeekStatus.PENDING
    assert all(v.status == WeekStatus.FAIL for v in result.verdicts[1:])


def test_failed_fetch_leaves_stored_verdicts_untouched():
    tracker, source = make_tracker()
    tracker.check_releases(NOW)
    before = tracker.history()

    source.result = FetchResult(error="rate limited", reason=FetchFailureReason.RATE_LIMITED)
    result = tracker.check_releases(LATER)

    assert not result.success
    assert result.verdicts == []
    assert result.fetch.reason == FetchFailureReason.RATE_LIMITED
    assert tracker.history() == before


def test_pass_survives_later_empty_fetch():
    tracker, source = make_tracker()
    tracker.check_releases(NOW)

    source.result = FetchResult(events=[])
    result = tracker.check_releases(LATER)

    # what was the current week is now "Last Week"
    last_week = result.verdicts[1]
    assert last_week.status == WeekStatus.PASS
    assert last_week.proof.tag_name == "v1.2.0"
    assert result.verdicts[0].status == WeekStatus.PENDING


def test_current_week_becomes_fail_after_cutoff():
    tracker, source = make_tracker(FetchResult(events=[]))
    first = tracker.check_releases(NOW)
    assert first.verdicts[0].status == WeekStatus.PENDING

    second = tracker.check_releases(LATER)

    assert second.verdicts[1].week_end == first.verdicts[0].week_end
    assert second.verdicts[1].status == WeekStatus.FAIL


def test_closed_pending_week_reads_as_fail_when_fetch_fails():
    tracker, source = make_tracker(FetchResult(events=[]))
    tracker.check_releases(NOW)

    source.result = FetchResult(error="GitHub API error: 502", reason=FetchFailureReason.TRANSIENT)
    assert not tracker.check_releases(LATER).success
    rows = tracker.scorecard(LATER)

    assert rows[1].verdict.status == WeekStatus.PENDING
    assert rows[1].status == WeekStatus.FAIL
    summary = summarize(rows)
    assert summary["unevaluated"] == 0
    assert summary["fail"] == 4


def test_closed_pending_week_with_evidence_reads_as_grace():
    tracker, source = make_tracker(FetchResult(events=[]))
    tracker.check_releases(NOW)
    current = tracker.windows(NOW)[0]
    tracker.add_evidence(current.start, current.end, "https://example.com", now=NOW)

    source.result = FetchResult(error="rate limited", reason=FetchFailureReason.RATE_LIMITED)
    tracker.check_releases(LATER)
    rows = tracker.scorecard(LATER)

    assert rows[1].window.end == current.end
    assert rows[1].status == WeekStatus.GRACE
    assert summarize(rows)["grace"] == 1


def test_connecting_another_repository_drops_stored_weeks():
    tracker, source = make_tracker()
    tracker.check_releases(NOW)

    source.result = FetchResult(events=[])
    rule = build_cutoff_rule(0, "23:59", "UTC")
    tracker.connect_repo("octo/other", rule, now=NOW, verify=False)

    assert tracker.history() == []
    result = tracker.check_releases(NOW)
    assert result.verdicts[0].status == WeekStatus.PENDING
    assert all(v.status == WeekStatus.FAIL for v in result.verdicts[1:])
    assert all(v.proof is None for v in result.verdicts)


def test_reconnecting_same_repository_keeps_stored_weeks():
    tracker, _ = make_tracker()
    tracker.check_releases(NOW)

    tracker.connect_repo("Octo/Demo", build_cutoff_rule(1, "09:00", "UTC"), now=NOW, verify=False)

    assert len(tracker.history()) == 5


def test_evidence_works_while_fetch_is_failing():
    failure = FetchResult(error="GitHub API error: 502", reason=FetchFailureReason.TRANSIENT)
    tracker, _ = make_tracker(failure)
    assert not tracker.check_releases(NOW).success

    last_week = tracker.windows(NOW)[1]
    verdict = tracker.add_evidence(
        last_week.start, last_week.end, "https://example.com", "demo video", now=NOW
    )

    assert verdict.status == WeekStatus.GRACE
    assert tracker.verdicts.get(last_week.start, last_week.end) == verdict


def test_evidence_flips_fail_to_grace_and_survives_recheck():
    tracker, _ = make_tracker(FetchResult(events=[]))
    tracker.check_releases(NOW)
    last_week = tracker.windows(NOW)[1]
    assert tracker.verdicts.get(last_week.start, last_week.end).status == WeekStatus.FAIL

    tracker.add_evidence(last_week.start, last_week.end, "https://example.com", now=NOW)
    result = tracker.check_releases(NOW)

    assert result.verdicts[1].status == WeekStatus.GRACE
    assert result.verdicts[1].evidence_url == "https://example.com"


def test_add_evidence_rejects_unknown_week():
    tracker, _ = make_tracker()

    with pytest.raises(ValueError):
        tracker.add_evidence(
            datetime(2020, 1, 1, tzinfo=timezone.utc),
            datetime(2020, 1, 8, tzinfo=timezone.utc),
            "https://example.com",
            now=NOW,
        )


def test_update_rule_replaces_rule_and_keeps_repo():
    tracker, _ = make_tracker(tag_pattern="^v")

    updated = tracker.update_rule(build_cutoff_rule(5, "17:00", "Europe/Paris"))

    assert updated.repo_slug == "octo/demo"
    assert updated.rule.tag_pattern is None
    assert tracker.require_commitment().rule.timezone == "Europe/Paris"


def test_check_without_commitment_raises():
    tracker = ShipTracker(FakeSource(FetchResult()), InMemoryVerdictStore(), InMemoryCommitmentStore())

    with pytest.raises(RuntimeError):
        tracker.check_releases(NOW)


def test_scorecard_and_summary():
    tracker, _ = make_tracker()
    tracker.check_releases(NOW)
    last_week = tracker.windows(NOW)[1]
    tracker.add_evidence(last_week.start, last_week.end, "https://example.com", now=NOW)

    rows = tracker.scorecard(NOW)
    summary = summarize(rows)

    assert [row.window.label for row in rows][:2] == ["This Week", "Last Week"]
    assert summary == {
        "weeks": 4,
        "pass": 1,
        "fail": 2,
        "grace": 1,
        "unevaluated": 0,
        "current_status": "pass",
    }


def test_scorecard_before_any_check_is_pending():
    tracker, _ = make_tracker()

    rows = tracker.scorecard(NOW)

    assert all(row.verdict is None for row in rows)
    assert summarize(rows)["unevaluated"] == 4
