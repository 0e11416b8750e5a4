"""
Core data models for the ship tracker.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import List, Optional


class WeekStatus(str, Enum):
    """Verdict for a single week window."""

    PASS = "pass"
    FAIL = "fail"
    GRACE = "grace"
    PENDING = "pending"


class FetchFailureReason(str, Enum):
    """Why a release fetch did not produce events."""

    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class CutoffRule:
    """Weekly cutoff: day (Sunday = 0), local wall-clock time and IANA zone."""

    day_of_week: int
    cutoff_time: time
    timezone: str
    tag_pattern: Optional[str] = None


@dataclass(frozen=True)
class Commitment:
    """A tracked repository together with its cutoff rule."""

    repo_owner: str
    repo_name: str
    rule: CutoffRule
    created_at: datetime

    @property
    def repo_slug(self) -> str:
        return f"{self.repo_owner}/{self.repo_name}"


@dataclass(frozen=True)
class WeekWindow:
    """A half-open [start, end) week interval in absolute time."""

    index: int
    start: datetime
    end: datetime
    is_current: bool
    label: str


@dataclass(frozen=True)
class ReleaseEvent:
    """A published release as reported by the release source."""

    id: int
    tag_name: str
    name: Optional[str]
    url: str
    published_at: datetime
    is_draft: bool = False
    is_prerelease: bool = False
    body: Optional[str] = None


@dataclass(frozen=True)
class ReleaseProof:
    """Snapshot of the release that satisfied a week."""

    id: int
    tag_name: str
    url: str
    published_at: datetime
    name: Optional[str]
    body_length: int


@dataclass(frozen=True)
class WeekVerdict:
    """Stored outcome for one week window, keyed by (week_start, week_end)."""

    week_start: datetime
    week_end: datetime
    status: WeekStatus
    proof: Optional[ReleaseProof] = None
    evidence_url: Optional[str] = None
    note: Optional[str] = None
    evaluated_at: Optional[datetime] = None


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a release fetch: events, or a typed failure."""

    events: List[ReleaseEvent] = field(default_factory=list)
    error: Optional[str] = None
    reason: Optional[FetchFailureReason] = None

    @property
    def success(self) -> bool:
        return self.reason is None


@dataclass(frozen=True)
class ScorecardRow:
    """A week window joined with whatever verdict is stored for it."""

    window: WeekWindow
    verdict: Optional[WeekVerdict]

    @property
    def status(self) -> WeekStatus:
        """Stored status, with a leftover ``pending`` on a closed week settled.

        A week recorded as ``pending`` while it was current reads as
        ``grace`` (evidence attached) or ``fail`` once it has ended, even if
        no evaluation pass has run since.
        """
        if self.verdict is None:
            return WeekStatus.PENDING
        status = self.verdict.status
        if status == WeekStatus.PENDING and not self.window.is_current:
            return WeekStatus.GRACE if self.verdict.evidence_url else WeekStatus.FAIL
        return status
