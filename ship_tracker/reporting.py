"""
Reporting and export utilities.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .models import Commitment, ScorecardRow
from .storage import verdict_to_dict
from .time_utils import format_timestamp, format_week_range


logger = logging.getLogger(__name__)

SCORECARD_COLUMNS = [
    "week",
    "label",
    "range",
    "week_start",
    "week_end",
    "is_current",
    "status",
    "tag_name",
    "release_name",
    "release_url",
    "published_at",
    "evidence_url",
    "note",
    "evaluated_at",
]


def scorecard_to_dataframe(rows: List[ScorecardRow], timezone: str) -> pd.DataFrame:
    records = []
    for row in rows:
        window, verdict = row.window, row.verdict
        proof = verdict.proof if verdict else None
        records.append({
            "week": window.index,
            "label": window.label,
            "range": format_week_range(window.start, window.end, timezone),
            "week_start": window.start,
            "week_end": window.end,
            "is_current": window.is_current,
            "status": row.status.value,
            "tag_name": proof.tag_name if proof else None,
            "release_name": proof.name if proof else None,
            "release_url": proof.url if proof else None,
            "published_at": proof.published_at if proof else None,
            "evidence_url": verdict.evidence_url if verdict else None,
            "note": verdict.note if verdict else None,
            "evaluated_at": verdict.evaluated_at if verdict else None,
        })
    df = pd.DataFrame(records, columns=SCORECARD_COLUMNS)
    for col in ("week_start", "week_end", "published_at", "evaluated_at"):
        df[col] = pd.to_datetime(df[col], utc=True)
    return df


def print_summary(commitment: Commitment, rows: List[ScorecardRow], summary: Dict[str, Any]) -> None:
    tz = commitment.rule.timezone
    logger.info("=" * 60)
    logger.info("SHIP SCORECARD")
    logger.info("=" * 60)
    logger.info("Repository: %s", commitment.repo_slug)
    logger.info("Timezone: %s", tz)
    if commitment.rule.tag_pattern:
        logger.info("Tag pattern: %s", commitment.rule.tag_pattern)
    logger.info("-" * 60)
    for row in rows:
        detail = ""
        if row.verdict and row.verdict.proof:
            detail = row.verdict.proof.tag_name
        elif row.verdict and row.verdict.evidence_url:
            detail = row.verdict.evidence_url
        logger.info(
            "%-12s %-24s %-8s %s",
            row.window.label,
            format_week_range(row.window.start, row.window.end, tz),
            row.status.value,
            detail,
        )
    logger.info("-" * 60)
    logger.info(
        "Past %s weeks: %s shipped, %s grace, %s missed",
        summary["weeks"], summary["pass"], summary["grace"], summary["fail"],
    )
    logger.info("=" * 60)


def save_results_json(
    commitment: Commitment,
    rows: List[ScorecardRow],
    summary: Dict[str, Any],
    output_dir: Path,
) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    results_file = output_dir / f"{commitment.repo_owner}_{commitment.repo_name}_scorecard.json"
    results = {
        "repository": commitment.repo_slug,
        "timezone": commitment.rule.timezone,
        "summary": summary,
        "weeks": [
            {
                "label": row.window.label,
                "week_start": format_timestamp(row.window.start),
                "week_end": format_timestamp(row.window.end),
                "is_current": row.window.is_current,
                "status": row.status.value,
                "verdict": verdict_to_dict(row.verdict) if row.verdict else None,
            }
            for row in rows
        ],
    }
    with open(results_file, 'w') as f:
        json.dump(results, f, indent=2, default=str)
    return results_file


def export_scorecard_csv(df: pd.DataFrame, output_dir: Path, commitment: Commitment) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    csv_file = output_dir / f"{commitment.repo_owner}_{commitment.repo_name}_scorecard.csv"
    df.to_csv(csv_file, index=False)
    return csv_file


def export_worksheet(df: pd.DataFrame, output_dir: Path, commitment: Commitment) -> Optional[Path]:
    if df.empty:
        return None
    output_dir.mkdir(parents=True, exist_ok=True)
    excel_file = output_dir / f"{commitment.repo_owner}_{commitment.repo_name}_scorecard.xlsx"
    df_copy = df.copy()
    for col in df_copy.columns:
        if isinstance(df_copy[col].dtype, pd.DatetimeTZDtype):
            df_copy[col] = df_copy[col].dt.tz_convert('UTC').dt.tz_localize(None)
    with pd.ExcelWriter(excel_file, engine='openpyxl') as writer:
        # Excel sheet names have a 31 character limit
        df_copy.to_excel(writer, sheet_name=commitment.repo_name[:31], index=False)
    return excel_file
