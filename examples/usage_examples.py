#!/usr/bin/env python3
"""
Example script showing how to use the ship tracker as a library.
"""

from datetime import datetime, timezone
from pathlib import Path

from ship_tracker.config import build_cutoff_rule
from ship_tracker.github import GitHubReleaseSource
from ship_tracker.reporting import export_worksheet, scorecard_to_dataframe
from ship_tracker.storage import InMemoryCommitmentStore, InMemoryVerdictStore, JsonFileStore
from ship_tracker.tracker import ShipTracker, summarize
from ship_tracker.windows import compute_week_windows


def example_windows():
    """Example: Inspect the week windows for a cutoff rule."""
    print("="*60)
    print("Example 1: Week Windows")
    print("="*60)

    rule = build_cutoff_rule("friday", "17:00", "America/Los_Angeles")
    now = datetime(2024, 6, 5, 12, 0, tzinfo=timezone.utc)

    for window in compute_week_windows(rule, now):
        print(f"{window.label:<12} {window.start.isoformat()} -> {window.end.isoformat()}")


def example_in_memory_check():
    """Example: Evaluate a public repository without persisting anything."""
    print("\n" + "="*60)
    print("Example 2: One-off Check")
    print("="*60)

    tracker = ShipTracker(
        source=GitHubReleaseSource(),
        verdicts=InMemoryVerdictStore(),
        commitments=InMemoryCommitmentStore(),
    )
    tracker.connect_repo("psf/requests", build_cutoff_rule(0, "23:59", "UTC"))

    result = tracker.check_releases()
    if not result.success:
        print(f"Fetch failed ({result.fetch.reason.value}): {result.fetch.error}")
        return

    for window, verdict in zip(result.windows, result.verdicts):
        tag = verdict.proof.tag_name if verdict.proof else "-"
        print(f"{window.label:<12} {verdict.status.value:<8} {tag}")
    print(summarize(tracker.scorecard()))


def example_persistent_tracker():
    """Example: Track a repository in a JSON file and export a worksheet."""
    print("\n" + "="*60)
    print("Example 3: Persistent Tracking with Evidence")
    print("="*60)

    store = JsonFileStore(Path("./output/example3/state.json"))
    tracker = ShipTracker(
        source=GitHubReleaseSource(),
        verdicts=store.verdicts,
        commitments=store.commitments,
    )
    commitment = tracker.connect_repo(
        "https://github.com/pandas-dev/pandas",
        build_cutoff_rule("sunday", "23:59", "Europe/Berlin", tag_pattern=r"^v\d"),
    )
    tracker.check_releases()

    last_week = tracker.windows()[1]
    verdict = tracker.add_evidence(
        last_week.start, last_week.end, "https://example.com/changelog", "docs-only week"
    )
    print(f"Last week is now: {verdict.status.value}")

    df = scorecard_to_dataframe(tracker.scorecard(), commitment.rule.timezone)
    print(df[["label", "range", "status", "tag_name"]])
    excel_file = export_worksheet(df, Path("./output/example3"), commitment)
    print(f"Worksheet saved to: {excel_file}")


if __name__ == "__main__":
    example_windows()

    # The remaining examples call the GitHub API
    # example_in_memory_check()
    # example_persistent_tracker()
