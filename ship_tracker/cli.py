"""
Command-line interface for the ship tracker.
"""

import argparse
import logging
import sys
from pathlib import Path

from .config import (
    DAYS_OF_WEEK,
    DEFAULT_CUTOFF_DAY,
    DEFAULT_CUTOFF_TIME,
    DEFAULT_TIMEZONE,
    DEFAULT_WEEK_COUNT,
    ConfigurationError,
    Settings,
    build_cutoff_rule,
    format_cutoff_time,
)
from .github import GitHubReleaseSource
from .reporting import (
    export_scorecard_csv,
    export_worksheet,
    print_summary,
    save_results_json,
    scorecard_to_dataframe,
)
from .storage import JsonFileStore
from .time_utils import format_timestamp, parse_timestamp, utc_now
from .tracker import ShipTracker, summarize


logger = logging.getLogger(__name__)


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Track whether a GitHub repository ships a release every week"
    )
    parser.add_argument(
        "--store",
        default=str(settings.store_path),
        help=f"Path of the JSON state file. Default: {settings.store_path}"
    )
    parser.add_argument(
        "--weeks",
        type=int,
        default=DEFAULT_WEEK_COUNT,
        help=f"Number of completed weeks to show. Default: {DEFAULT_WEEK_COUNT}"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    connect = subparsers.add_parser("connect", help="Start tracking a repository")
    connect.add_argument("repo", help="owner/name or https://github.com/owner/name")
    connect.add_argument(
        "--day",
        default=str(DEFAULT_CUTOFF_DAY),
        help="Cutoff day, 0-6 (Sunday = 0) or a day name. Default: Sunday"
    )
    connect.add_argument(
        "--time",
        default=DEFAULT_CUTOFF_TIME,
        help=f"Cutoff time as HH:MM in the cutoff timezone. Default: {DEFAULT_CUTOFF_TIME}"
    )
    connect.add_argument(
        "--timezone",
        default=DEFAULT_TIMEZONE,
        help=f"IANA timezone of the cutoff. Default: {DEFAULT_TIMEZONE}"
    )
    connect.add_argument("--tag-pattern", default=None, help="Regex release tags must match")
    connect.add_argument(
        "--no-verify",
        action="store_true",
        help="Save without fetching releases first"
    )

    settings_cmd = subparsers.add_parser("settings", help="Change the cutoff settings")
    settings_cmd.add_argument("--day", default=None, help="Cutoff day, 0-6 or a day name")
    settings_cmd.add_argument("--time", default=None, help="Cutoff time as HH:MM")
    settings_cmd.add_argument("--timezone", default=None, help="IANA timezone")
    pattern_group = settings_cmd.add_mutually_exclusive_group()
    pattern_group.add_argument("--tag-pattern", default=None, help="Regex release tags must match")
    pattern_group.add_argument(
        "--clear-tag-pattern",
        action="store_true",
        help="Count every release regardless of tag"
    )

    check = subparsers.add_parser("check", help="Fetch releases and evaluate each week")
    check.add_argument("--now", default=None, help="Evaluate as of this ISO 8601 instant")

    evidence = subparsers.add_parser("evidence", help="Attach an evidence link to a week")
    week_group = evidence.add_mutually_exclusive_group(required=True)
    week_group.add_argument(
        "--week",
        type=int,
        help="Week offset: 0 for this week, 1 for last week, and so on"
    )
    week_group.add_argument("--week-end", help="ISO 8601 end instant of the week")
    evidence.add_argument("--url", default="", help="Evidence URL; empty clears it")
    evidence.add_argument("--note", default="", help="Free-form note")

    scorecard = subparsers.add_parser("scorecard", help="Show and export the scorecard")
    scorecard.add_argument(
        "--output-dir",
        default="./output",
        help="Output directory for exports. Default: ./output"
    )
    scorecard.add_argument("--json", action="store_true", help="Save the scorecard as JSON")
    scorecard.add_argument("--csv", action="store_true", help="Save the scorecard as CSV")
    scorecard.add_argument("--xlsx", action="store_true", help="Save the scorecard as an Excel file")

    return parser


def build_tracker(args: argparse.Namespace, settings: Settings) -> ShipTracker:
    store = JsonFileStore(Path(args.store))
    source = GitHubReleaseSource(api_url=settings.github_api_url, token=settings.github_token)
    return ShipTracker(
        source=source,
        verdicts=store.verdicts,
        commitments=store.commitments,
        week_count=args.weeks,
    )


def run_connect(tracker: ShipTracker, args: argparse.Namespace) -> int:
    rule = build_cutoff_rule(args.day, args.time, args.timezone, args.tag_pattern)
    commitment = tracker.connect_repo(args.repo, rule, verify=not args.no_verify)
    logger.info(
        "Tracking %s: cutoff %s %s %s",
        commitment.repo_slug,
        DAYS_OF_WEEK[rule.day_of_week],
        format_cutoff_time(rule.cutoff_time),
        rule.timezone,
    )
    return 0


def run_settings(tracker: ShipTracker, args: argparse.Namespace) -> int:
    current = tracker.require_commitment().rule
    if args.clear_tag_pattern:
        tag_pattern = None
    elif args.tag_pattern is not None:
        tag_pattern = args.tag_pattern
    else:
        tag_pattern = current.tag_pattern
    rule = build_cutoff_rule(
        args.day if args.day is not None else current.day_of_week,
        args.time if args.time is not None else current.cutoff_time,
        args.timezone if args.timezone is not None else current.timezone,
        tag_pattern,
    )
    tracker.update_rule(rule)
    logger.info(
        "Cutoff is now %s %s %s",
        DAYS_OF_WEEK[rule.day_of_week],
        format_cutoff_time(rule.cutoff_time),
        rule.timezone,
    )
    return 0


def run_check(tracker: ShipTracker, args: argparse.Namespace) -> int:
    now = _parse_instant(args.now) if args.now else None
    result = tracker.check_releases(now)
    if not result.success:
        logger.error("Could not fetch releases: %s", result.fetch.error)
        logger.error("You can still add evidence links manually with 'evidence'.")
        return 1
    commitment = tracker.require_commitment()
    rows = tracker.scorecard(now)
    print_summary(commitment, rows, summarize(rows))
    return 0


def run_evidence(tracker: ShipTracker, args: argparse.Namespace) -> int:
    now = utc_now()
    windows = tracker.windows(now)
    if args.week is not None:
        if not 0 <= args.week < len(windows):
            raise ConfigurationError(f"--week must be between 0 and {len(windows) - 1}")
        window = windows[args.week]
    else:
        week_end = _parse_instant(args.week_end)
        window = next((w for w in windows if w.end == week_end), None)
        if window is None:
            raise ConfigurationError(f"No tracked week ends at {args.week_end}")
    verdict = tracker.add_evidence(window.start, window.end, args.url, args.note, now=now)
    logger.info(
        "%s (%s) is now %s",
        window.label,
        format_timestamp(window.end),
        verdict.status.value,
    )
    return 0


def run_scorecard(tracker: ShipTracker, args: argparse.Namespace) -> int:
    commitment = tracker.require_commitment()
    rows = tracker.scorecard()
    summary = summarize(rows)
    print_summary(commitment, rows, summary)

    output_dir = Path(args.output_dir)
    if args.json:
        results_file = save_results_json(commitment, rows, summary, output_dir)
        logger.info("Results saved to: %s", results_file)
    if args.csv or args.xlsx:
        df = scorecard_to_dataframe(rows, commitment.rule.timezone)
        if args.csv:
            logger.info("CSV saved to: %s", export_scorecard_csv(df, output_dir, commitment))
        if args.xlsx:
            excel_file = export_worksheet(df, output_dir, commitment)
            if excel_file is not None:
                logger.info("Worksheet saved to: %s", excel_file)
    return 0


COMMANDS = {
    "connect": run_connect,
    "settings": run_settings,
    "check": run_check,
    "evidence": run_evidence,
    "scorecard": run_scorecard,
}


def _parse_instant(value: str):
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ConfigurationError(f"Invalid ISO 8601 instant {value!r}")
    return parsed


def main(argv=None):
    """Main entry point for the CLI."""
    settings = Settings.from_env()
    parser = build_parser(settings)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )

    tracker = build_tracker(args, settings)
    try:
        return COMMANDS[args.command](tracker, args)
    except ConfigurationError as e:
        parser.error(str(e))
    except (RuntimeError, ValueError) as e:
        logger.error("Error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
