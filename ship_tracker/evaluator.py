"""
Per-week verdict evaluation against a list of releases.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import datetime
from typing import Optional, Pattern, Sequence

from .models import ReleaseEvent, ReleaseProof, WeekStatus, WeekVerdict, WeekWindow
from .time_utils import ensure_utc, utc_now


logger = logging.getLogger(__name__)


def compile_tag_pattern(tag_pattern: Optional[str]) -> Optional[Pattern[str]]:
    """Compile a tag filter; an empty or invalid pattern means no filter."""
    if not tag_pattern:
        return None
    try:
        return re.compile(tag_pattern)
    except re.error as e:
        logger.warning("Ignoring invalid tag pattern %r: %s", tag_pattern, e)
        return None


def find_qualifying_event(
    events: Sequence[ReleaseEvent],
    window: WeekWindow,
    tag_pattern: Optional[str] = None,
) -> Optional[ReleaseEvent]:
    """Return the first event, in input order, that qualifies for ``window``."""
    regex = compile_tag_pattern(tag_pattern)
    for event in events:
        published_at = ensure_utc(event.published_at)
        if not window.start <= published_at < window.end:
            continue
        if regex is not None and not regex.search(event.tag_name):
            continue
        return event
    return None


def release_to_proof(event: ReleaseEvent) -> ReleaseProof:
    return ReleaseProof(
        id=event.id,
        tag_name=event.tag_name,
        url=event.url,
        published_at=ensure_utc(event.published_at),
        name=event.name,
        body_length=len(event.body or ""),
    )


def evaluate_week(
    window: WeekWindow,
    events: Sequence[ReleaseEvent],
    tag_pattern: Optional[str] = None,
    prior: Optional[WeekVerdict] = None,
    evaluated_at: Optional[datetime] = None,
) -> WeekVerdict:
    """Compute the verdict for one window, merging with the prior record.

    Args:
        window: The week being judged
        events: Non-draft releases, in the caller's (stable) order
        tag_pattern: Optional regular expression the tag name must match
        prior: Previously stored verdict for this window, if any
        evaluated_at: Evaluation instant; defaults to now

    Returns:
        The new verdict. A proof recorded by an earlier pass is kept unless a
        qualifying release replaces it, and a backed ``pass`` is never
        downgraded. Evidence URL and note are carried over untouched.
    """
    match = find_qualifying_event(events, window, tag_pattern)
    prior_proof = prior.proof if prior is not None else None
    proof = release_to_proof(match) if match is not None else prior_proof
    held_pass = (
        prior is not None
        and prior.status == WeekStatus.PASS
        and prior_proof is not None
    )

    if match is not None or held_pass:
        status = WeekStatus.PASS
    elif window.is_current:
        status = WeekStatus.PENDING
    elif prior is not None and (prior.status == WeekStatus.GRACE or prior.evidence_url):
        status = WeekStatus.GRACE
    else:
        status = WeekStatus.FAIL

    return WeekVerdict(
        week_start=window.start,
        week_end=window.end,
        status=status,
        proof=proof,
        evidence_url=prior.evidence_url if prior is not None else None,
        note=prior.note if prior is not None else None,
        evaluated_at=ensure_utc(evaluated_at) if evaluated_at else utc_now(),
    )


def attach_evidence(
    window: WeekWindow,
    prior: Optional[WeekVerdict],
    evidence_url: Optional[str],
    note: Optional[str] = None,
    evaluated_at: Optional[datetime] = None,
) -> WeekVerdict:
    """Record manual evidence for a window without re-running matching.

    A URL on a failed week turns it into a grace week straight away. The
    current week stays ``pending`` until it closes. Empty strings clear the
    field.
    """
    evidence_url = (evidence_url or "").strip() or None
    note = (note or "").strip() or None
    evaluated_at = ensure_utc(evaluated_at) if evaluated_at else utc_now()

    if prior is None:
        if window.is_current:
            status = WeekStatus.PENDING
        elif evidence_url:
            status = WeekStatus.GRACE
        else:
            status = WeekStatus.FAIL
        prior = WeekVerdict(week_start=window.start, week_end=window.end, status=status)
    else:
        status = prior.status
        if window.is_current and status != WeekStatus.PASS:
            status = WeekStatus.PENDING
        elif status == WeekStatus.PENDING:
            # window closed before it was re-evaluated
            status = WeekStatus.FAIL
        if evidence_url and status == WeekStatus.FAIL:
            status = WeekStatus.GRACE

    return replace(
        prior,
        status=status,
        evidence_url=evidence_url,
        note=note,
        evaluated_at=evaluated_at,
    )
