"""
Interfaces for release sources and persistence collaborators.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol

from .models import Commitment, FetchResult, WeekVerdict


class ReleaseSource(Protocol):
    """Fetch the non-draft releases of a repository."""

    def fetch_events(self, repo: str) -> FetchResult:
        ...


class VerdictStore(Protocol):
    """Keep one verdict per week window, capped to the most recent weeks."""

    def get(self, week_start: datetime, week_end: datetime) -> Optional[WeekVerdict]:
        ...

    def put(self, verdict: WeekVerdict) -> None:
        ...

    def list_recent(self, limit: int) -> List[WeekVerdict]:
        ...

    def clear(self) -> None:
        ...


class CommitmentStore(Protocol):
    """Hold the tracked repository and its cutoff rule as a single value."""

    def get(self) -> Optional[Commitment]:
        ...

    def set(self, commitment: Commitment) -> None:
        ...
