"""
Reference verdict and commitment stores: in-memory and a single JSON file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .config import MAX_STORED_WEEKS, build_cutoff_rule, format_cutoff_time
from .models import Commitment, ReleaseProof, WeekStatus, WeekVerdict
from .time_utils import ensure_utc, format_timestamp, parse_timestamp


logger = logging.getLogger(__name__)

WeekKey = Tuple[datetime, datetime]


def week_key(week_start: datetime, week_end: datetime) -> WeekKey:
    return ensure_utc(week_start), ensure_utc(week_end)


def trim_recent(verdicts: List[WeekVerdict], limit: int) -> List[WeekVerdict]:
    """Newest ``limit`` verdicts by week end, newest first."""
    ordered = sorted(verdicts, key=lambda v: ensure_utc(v.week_end), reverse=True)
    return ordered[:limit]


def _optional_timestamp(value: Optional[datetime]) -> Optional[str]:
    return format_timestamp(value) if value is not None else None


def _required_timestamp(data: Dict[str, Any], key: str) -> datetime:
    parsed = parse_timestamp(data.get(key))
    if parsed is None:
        raise ValueError(f"Missing or invalid timestamp field {key!r}")
    return parsed


def proof_to_dict(proof: ReleaseProof) -> Dict[str, Any]:
    return {
        "id": proof.id,
        "tag_name": proof.tag_name,
        "url": proof.url,
        "published_at": format_timestamp(proof.published_at),
        "name": proof.name,
        "body_length": proof.body_length,
    }


def proof_from_dict(data: Dict[str, Any]) -> ReleaseProof:
    return ReleaseProof(
        id=int(data["id"]),
        tag_name=str(data["tag_name"]),
        url=str(data["url"]),
        published_at=_required_timestamp(data, "published_at"),
        name=data.get("name"),
        body_length=int(data.get("body_length") or 0),
    )


def verdict_to_dict(verdict: WeekVerdict) -> Dict[str, Any]:
    return {
        "week_start": format_timestamp(verdict.week_start),
        "week_end": format_timestamp(verdict.week_end),
        "status": verdict.status.value,
        "proof": proof_to_dict(verdict.proof) if verdict.proof else None,
        "evidence_url": verdict.evidence_url,
        "note": verdict.note,
        "evaluated_at": _optional_timestamp(verdict.evaluated_at),
    }


def verdict_from_dict(data: Dict[str, Any]) -> WeekVerdict:
    proof = data.get("proof")
    return WeekVerdict(
        week_start=_required_timestamp(data, "week_start"),
        week_end=_required_timestamp(data, "week_end"),
        status=WeekStatus(data["status"]),
        proof=proof_from_dict(proof) if proof else None,
        evidence_url=data.get("evidence_url"),
        note=data.get("note"),
        evaluated_at=parse_timestamp(data.get("evaluated_at")),
    )


def commitment_to_dict(commitment: Commitment) -> Dict[str, Any]:
    rule = commitment.rule
    return {
        "repo_owner": commitment.repo_owner,
        "repo_name": commitment.repo_name,
        "timezone": rule.timezone,
        "cutoff_dow": rule.day_of_week,
        "cutoff_time": format_cutoff_time(rule.cutoff_time),
        "tag_pattern": rule.tag_pattern,
        "created_at": format_timestamp(commitment.created_at),
    }


def commitment_from_dict(data: Dict[str, Any]) -> Commitment:
    rule = build_cutoff_rule(
        data["cutoff_dow"],
        data["cutoff_time"],
        data["timezone"],
        data.get("tag_pattern"),
    )
    return Commitment(
        repo_owner=str(data["repo_owner"]),
        repo_name=str(data["repo_name"]),
        rule=rule,
        created_at=_required_timestamp(data, "created_at"),
    )


class InMemoryVerdictStore:
    """Verdicts kept in a dict; at most ``max_weeks`` newest are retained."""

    def __init__(self, max_weeks: int = MAX_STORED_WEEKS) -> None:
        self.max_weeks = max_weeks
        self._verdicts: Dict[WeekKey, WeekVerdict] = {}
        self._lock = threading.Lock()

    def get(self, week_start: datetime, week_end: datetime) -> Optional[WeekVerdict]:
        with self._lock:
            return self._verdicts.get(week_key(week_start, week_end))

    def put(self, verdict: WeekVerdict) -> None:
        with self._lock:
            self._verdicts[week_key(verdict.week_start, verdict.week_end)] = verdict
            kept = trim_recent(list(self._verdicts.values()), self.max_weeks)
            self._verdicts = {week_key(v.week_start, v.week_end): v for v in kept}

    def list_recent(self, limit: int = MAX_STORED_WEEKS) -> List[WeekVerdict]:
        with self._lock:
            return trim_recent(list(self._verdicts.values()), limit)

    def clear(self) -> None:
        with self._lock:
            self._verdicts = {}


class InMemoryCommitmentStore:

    def __init__(self, commitment: Optional[Commitment] = None) -> None:
        self._commitment = commitment

    def get(self) -> Optional[Commitment]:
        return self._commitment

    def set(self, commitment: Commitment) -> None:
        self._commitment = commitment


class JsonFileStore:
    """One JSON document holding the commitment and the stored weeks.

    The document looks like ``{"commitment": {...} | null, "weeks": [...]}``.
    Writes go to a temporary file that replaces the document, so readers
    never see a partial write. A missing or unreadable document reads as
    empty.
    """

    def __init__(self, path: Path, max_weeks: int = MAX_STORED_WEEKS) -> None:
        self.path = Path(path)
        self.max_weeks = max_weeks
        self.lock = threading.RLock()
        self.verdicts = JsonVerdictStore(self)
        self.commitments = JsonCommitmentStore(self)

    def read(self) -> Dict[str, Any]:
        with self.lock:
            if not self.path.exists():
                return {"commitment": None, "weeks": []}
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning("Unreadable store %s, using defaults: %s", self.path, e)
                return {"commitment": None, "weeks": []}
            if not isinstance(data, dict):
                logger.warning("Invalid store document in %s, using defaults", self.path)
                return {"commitment": None, "weeks": []}
            data.setdefault("commitment", None)
            data.setdefault("weeks", [])
            return data

    def write(self, data: Dict[str, Any]) -> None:
        with self.lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise

    def load_verdicts(self) -> List[WeekVerdict]:
        verdicts = []
        for raw in self.read().get("weeks") or []:
            try:
                verdicts.append(verdict_from_dict(raw))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping invalid stored week %r: %s", raw, e)
        return verdicts


class JsonVerdictStore:
    """Verdict store view over a ``JsonFileStore``."""

    def __init__(self, backend: JsonFileStore) -> None:
        self.backend = backend

    def get(self, week_start: datetime, week_end: datetime) -> Optional[WeekVerdict]:
        key = week_key(week_start, week_end)
        for verdict in self.backend.load_verdicts():
            if week_key(verdict.week_start, verdict.week_end) == key:
                return verdict
        return None

    def put(self, verdict: WeekVerdict) -> None:
        key = week_key(verdict.week_start, verdict.week_end)
        with self.backend.lock:
            data = self.backend.read()
            verdicts = [
                v for v in self.backend.load_verdicts()
                if week_key(v.week_start, v.week_end) != key
            ]
            verdicts.append(verdict)
            kept = trim_recent(verdicts, self.backend.max_weeks)
            data["weeks"] = [verdict_to_dict(v) for v in kept]
            self.backend.write(data)

    def list_recent(self, limit: int = MAX_STORED_WEEKS) -> List[WeekVerdict]:
        return trim_recent(self.backend.load_verdicts(), limit)

    def clear(self) -> None:
        with self.backend.lock:
            data = self.backend.read()
            data["weeks"] = []
            self.backend.write(data)


class JsonCommitmentStore:
    """Commitment store view over a ``JsonFileStore``."""

    def __init__(self, backend: JsonFileStore) -> None:
        self.backend = backend

    def get(self) -> Optional[Commitment]:
        raw = self.backend.read().get("commitment")
        if not raw:
            return None
        try:
            return commitment_from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring invalid stored commitment: %s", e)
            return None

    def set(self, commitment: Commitment) -> None:
        with self.backend.lock:
            data = self.backend.read()
            data["commitment"] = commitment_to_dict(commitment)
            self.backend.write(data)
