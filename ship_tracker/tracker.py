"""
Evaluation passes and evidence writes over the configured collaborators.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from .config import ConfigurationError, DEFAULT_WEEK_COUNT, MAX_STORED_WEEKS
from .evaluator import attach_evidence, evaluate_week
from .github import parse_repo_url
from .interfaces import CommitmentStore, ReleaseSource, VerdictStore
from .models import (
    Commitment,
    CutoffRule,
    FetchResult,
    ScorecardRow,
    WeekStatus,
    WeekVerdict,
    WeekWindow,
)
from .time_utils import ensure_utc, utc_now
from .windows import compute_week_windows, find_window


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one evaluation pass."""

    fetch: FetchResult
    windows: List[WeekWindow] = field(default_factory=list)
    verdicts: List[WeekVerdict] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.fetch.success


class ShipTracker:
    """Tie the window calculator and verdict evaluator to their collaborators."""

    def __init__(
        self,
        source: ReleaseSource,
        verdicts: VerdictStore,
        commitments: CommitmentStore,
        week_count: int = DEFAULT_WEEK_COUNT,
    ):
        """Initialize the tracker.

        Args:
            source: Where releases come from
            verdicts: Store for per-week verdicts
            commitments: Store for the tracked repository and cutoff rule
            week_count: Number of completed weeks shown besides the current one
        """
        self.source = source
        self.verdicts = verdicts
        self.commitments = commitments
        self.week_count = week_count

    def connect_repo(
        self,
        repo: str,
        rule: CutoffRule,
        now: Optional[datetime] = None,
        verify: bool = True,
    ) -> Commitment:
        """Start tracking a repository.

        With ``verify`` the releases are fetched once so a missing or private
        repository is reported before anything is saved. Connecting a
        different repository than the tracked one drops the stored weeks.

        Raises:
            ConfigurationError: If ``repo`` is not a GitHub repository
            RuntimeError: If verification fails
        """
        parsed = parse_repo_url(repo)
        if parsed is None:
            raise ConfigurationError(
                f"Invalid repository {repo!r}; use owner/name or a github.com URL"
            )
        owner, name = parsed
        if verify:
            result = self.source.fetch_events(f"{owner}/{name}")
            if not result.success:
                raise RuntimeError(result.error or "Failed to fetch repository")
            logger.info("Found %s published releases in %s/%s", len(result.events), owner, name)

        commitment = Commitment(
            repo_owner=owner,
            repo_name=name,
            rule=rule,
            created_at=ensure_utc(now) if now else utc_now(),
        )
        previous = self.commitments.get()
        if previous is not None and previous.repo_slug.lower() != commitment.repo_slug.lower():
            # verdicts and proofs belong to the previous repository
            logger.info("Switching from %s to %s, clearing stored weeks",
                        previous.repo_slug, commitment.repo_slug)
            self.verdicts.clear()
        self.commitments.set(commitment)
        return commitment

    def update_rule(self, rule: CutoffRule) -> Commitment:
        """Replace the cutoff rule of the current commitment."""
        commitment = self.require_commitment()
        updated = replace(commitment, rule=rule)
        self.commitments.set(updated)
        return updated

    def require_commitment(self) -> Commitment:
        commitment = self.commitments.get()
        if commitment is None:
            raise RuntimeError("No repository is being tracked; connect one first")
        return commitment

    def windows(self, now: Optional[datetime] = None) -> List[WeekWindow]:
        commitment = self.require_commitment()
        return compute_week_windows(
            commitment.rule, ensure_utc(now) if now else utc_now(), self.week_count
        )

    def check_releases(self, now: Optional[datetime] = None) -> CheckResult:
        """Run one evaluation pass.

        ``now`` is frozen for the whole pass so all windows share one anchor.
        Releases are fetched once; if that fails nothing is written and the
        typed failure is returned.
        """
        commitment = self.require_commitment()
        now = ensure_utc(now) if now else utc_now()
        windows = compute_week_windows(commitment.rule, now, self.week_count)

        fetch = self.source.fetch_events(commitment.repo_slug)
        if not fetch.success:
            logger.warning(
                "Skipping evaluation for %s: %s", commitment.repo_slug, fetch.error
            )
            return CheckResult(fetch=fetch, windows=windows)

        logger.info(
            "Evaluating %s weeks of %s against %s releases",
            len(windows), commitment.repo_slug, len(fetch.events),
        )
        results = []
        for window in windows:
            prior = self.verdicts.get(window.start, window.end)
            verdict = evaluate_week(
                window,
                fetch.events,
                tag_pattern=commitment.rule.tag_pattern,
                prior=prior,
                evaluated_at=now,
            )
            self.verdicts.put(verdict)
            logger.debug("%s: %s", window.label, verdict.status.value)
            results.append(verdict)

        return CheckResult(fetch=fetch, windows=windows, verdicts=results)

    def add_evidence(
        self,
        week_start: datetime,
        week_end: datetime,
        evidence_url: Optional[str],
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> WeekVerdict:
        """Attach a manual evidence link and note to one of the shown weeks.

        This does not touch the release source, so it works while fetching is
        failing.

        Raises:
            ValueError: If the week is not one of the current windows
        """
        now = ensure_utc(now) if now else utc_now()
        window = find_window(self.windows(now), week_start, week_end)
        if window is None:
            raise ValueError(
                f"No tracked week from {week_start.isoformat()} to {week_end.isoformat()}"
            )
        prior = self.verdicts.get(window.start, window.end)
        verdict = attach_evidence(window, prior, evidence_url, note, evaluated_at=now)
        self.verdicts.put(verdict)
        return verdict

    def scorecard(self, now: Optional[datetime] = None) -> List[ScorecardRow]:
        """Windows joined with stored verdicts, current week first."""
        return [
            ScorecardRow(window=window, verdict=self.verdicts.get(window.start, window.end))
            for window in self.windows(now)
        ]

    def history(self, limit: int = MAX_STORED_WEEKS) -> List[WeekVerdict]:
        return self.verdicts.list_recent(limit)


def summarize(rows: List[ScorecardRow]) -> Dict[str, Any]:
    """Count outcomes over the completed weeks of a scorecard."""
    past = [row for row in rows if not row.window.is_current]
    counts = {status: 0 for status in WeekStatus}
    for row in past:
        counts[row.status] += 1

    current = next((row for row in rows if row.window.is_current), None)
    return {
        "weeks": len(past),
        "pass": counts[WeekStatus.PASS],
        "fail": counts[WeekStatus.FAIL],
        "grace": counts[WeekStatus.GRACE],
        "unevaluated": counts[WeekStatus.PENDING],
        "current_status": current.status.value if current else None,
    }
