"""Command-line argument parsing for the GitHub PR metrics generator."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

from .config import DEFAULT_API_URL, VALID_STATES


def _positive_count(value: str) -> int:
    """argparse type for day windows, result caps and worker counts."""
    try:
        count = int(value, 10)
    except ValueError:
        count = 0
    if count < 1:
        raise argparse.ArgumentTypeError(f"expected a whole number of at least 1, got {value!r}")
    return count


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for PR metrics generation.

    Returns:
        Parsed CLI arguments. ``owner`` may be ``None`` when it is expected
        from the ``GITHUB_OWNER`` environment variable.
    """
    parser = argparse.ArgumentParser(
        prog="github-pr-metrics",
        description=(
            "Export GitHub pull-request metrics (time to close, merge, first "
            "review and first comment) for one or all repositories of an owner."
        ),
    )

    parser.add_argument(
        "--owner",
        default=None,
        help="GitHub organization or user (default: $GITHUB_OWNER).",
    )
    parser.add_argument(
        "--repo",
        dest="repository",
        default=None,
        help="Single repository to analyze; omit to analyze all accessible repositories.",
    )
    parser.add_argument(
        "--days",
        type=_positive_count,
        default=30,
        help="Number of days to look back (default: 30).",
    )
    parser.add_argument(
        "--state",
        choices=VALID_STATES,
        default="all",
        help="Pull request state filter (default: all).",
    )
    parser.add_argument(
        "--max-results",
        type=_positive_count,
        default=100,
        help="Maximum pull requests per repository (default: 100).",
    )
    parser.add_argument(
        "--basic",
        action="store_true",
        help="Skip review/comment detail retrieval.",
    )
    parser.add_argument(
        "--include-drafts",
        action="store_true",
        help="Include draft pull requests.",
    )
    parser.add_argument(
        "--output",
        default="github-pr-metrics.csv",
        help="CSV output path (default: github-pr-metrics.csv).",
    )
    parser.add_argument(
        "--summary",
        default=None,
        help="Optional Markdown summary output path.",
    )
    parser.add_argument(
        "--workers",
        type=_positive_count,
        default=1,
        help="Concurrent detail fetches per repository (default: 1).",
    )
    parser.add_argument(
        "--api-url",
        default=DEFAULT_API_URL,
        help=f"GitHub REST API base URL (default: {DEFAULT_API_URL}).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    return parser.parse_args(argv)
