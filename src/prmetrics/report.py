"""CSV export and summary statistics for PR metrics rows.

This module provides utilities for:
- Writing metrics rows as a fully quoted CSV file (header always present).
- Computing linear-interpolation percentiles of hour samples.
- Aggregating duration statistics (count, average, P50, P90).
- Building a Markdown summary report of a run.
"""

from __future__ import annotations

import csv
import math
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from .metrics import unescape_quotes
from .models import OUTPUT_COLUMNS, PRMetrics


def _csv_record(row: PRMetrics) -> Dict[str, str]:
    record = row.as_row()
    # The csv writer doubles quotes itself.
    record["Title"] = unescape_quotes(record["Title"])
    return record


def write_csv(rows: Sequence[PRMetrics], path: str) -> int:
    """Write metrics rows to ``path``; an empty run yields a header-only file.

    Returns:
        Number of data rows written.
    """
    with open(path, "w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(
            handle,
            fieldnames=OUTPUT_COLUMNS,
            quoting=csv.QUOTE_ALL,
            lineterminator="\n",
        )
        writer.writeheader()
        for row in rows:
            writer.writerow(_csv_record(row))
    return len(rows)


def calculate_percentile(sorted_hours: Sequence[float], p: float) -> Optional[float]:
    """Return the ``p``-th percentile of ascending hour samples.

    Values between ranks are linearly interpolated; an empty sample has no
    percentile.
    """
    if not 0 <= p <= 100:
        raise ValueError(f"Percentile must be between 0 and 100, got {p}")
    if not sorted_hours:
        return None

    rank = (len(sorted_hours) - 1) * p / 100.0
    below = math.floor(rank)
    above = min(below + 1, len(sorted_hours) - 1)
    return sorted_hours[below] + (sorted_hours[above] - sorted_hours[below]) * (rank - below)


def compute_statistics(samples: Sequence[Optional[float]]) -> Dict[str, Optional[float]]:
    """Compute count, average, P50 and P90 for duration samples in hours.

    ``None`` and NaN samples are ignored. Percentiles and average are ``None``
    when no valid samples exist.
    """
    clean_samples = sorted(
        sample for sample in samples if sample is not None and not math.isnan(sample)
    )
    average = sum(clean_samples) / len(clean_samples) if clean_samples else None

    return {
        "count": float(len(clean_samples)),
        "average": average,
        "p50": calculate_percentile(clean_samples, 50),
        "p90": calculate_percentile(clean_samples, 90),
    }


def format_hours(hours: Optional[float]) -> str:
    """Format hours as ``"X hours (Y days)"``, or ``"n/a"`` when missing."""
    if hours is None:
        return "n/a"
    return f"{round(hours, 2)} hours ({round(hours / 24, 1)} days)"


def _duration_lines(rows: Sequence[PRMetrics]) -> List[str]:
    durations = [
        ("Time to Close", [row.time_to_close for row in rows if row.state == "closed"]),
        ("Time to Merge", [row.time_to_merge for row in rows]),
        ("Time to First Review", [row.time_to_first_review for row in rows]),
        ("Time to First Comment", [row.time_to_first_comment for row in rows]),
    ]
    lines = []
    for label, samples in durations:
        stats = compute_statistics(samples)
        if not stats["count"]:
            continue
        lines.append(
            f"- **Average {label}:** {format_hours(stats['average'])}"
            f" | P50: {format_hours(stats['p50'])} | P90: {format_hours(stats['p90'])}"
        )
    return lines


def generate_summary(
    rows: Sequence[PRMetrics],
    owner: str,
    repository: Optional[str],
    days: int,
    state: str,
    generated_at: Optional[datetime] = None,
) -> str:
    """Generate a Markdown summary report for a run.

    Sections: run header, totals by state, duration statistics, top
    repositories (only when more than one), top contributors, longest running
    closed pull requests and code change totals. A run without rows gets an
    explanatory section instead.
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    lines = [
        "# GitHub PR Metrics Analysis Report",
        "",
        f"**Generated:** {generated_at.strftime('%Y-%m-%d %H:%M:%S')} UTC  ",
        f"**Organization:** {owner}  ",
        f"**Repository:** {repository or 'All accessible repositories'}  ",
        f"**Analysis Period:** Last {days} days  ",
        f"**State Filter:** {state}  ",
        "",
    ]

    if not rows:
        lines.extend(
            [
                "## Analysis Results",
                "",
                "No pull requests found matching the specified criteria.",
                "",
                "This could be due to:",
                "- No PRs in the specified time period",
                "- Repository access issues",
                "- Invalid repository name",
                "- API rate limiting",
            ]
        )
        return "\n".join(lines)

    lines.extend(
        [
            "## Summary Statistics",
            "",
            f"- **Total PRs Analyzed:** {len(rows)}",
            f"- **Open PRs:** {sum(1 for row in rows if row.state == 'open')}",
            f"- **Closed PRs:** {sum(1 for row in rows if row.state == 'closed')}",
            f"- **Merged PRs:** {sum(1 for row in rows if row.merged_at is not None)}",
        ]
    )
    lines.extend(_duration_lines(rows))

    repo_counts = Counter(row.repository for row in rows).most_common(10)
    if len(repo_counts) > 1:
        lines.extend(["", "## Top Repositories by PR Count", ""])
        lines.extend(f"- **{name}:** {count} PRs" for name, count in repo_counts)

    contributor_counts = Counter(row.author for row in rows if row.author).most_common(10)
    if contributor_counts:
        lines.extend(["", "## Top Contributors", ""])
        lines.extend(f"- **{name}:** {count} PRs" for name, count in contributor_counts)

    closed = [row for row in rows if row.state == "closed" and row.time_to_close is not None]
    longest = sorted(closed, key=lambda row: row.time_to_close or 0.0, reverse=True)[:5]
    if longest:
        lines.extend(["", "## Longest Running PRs (Closed)", ""])
        for row in longest:
            days_open = round((row.time_to_close or 0.0) / 24, 1)
            title = unescape_quotes(row.title)
            lines.append(f"- **#{row.pull_number}** - {days_open} days - [{title}]({row.url})")

    total_additions = sum(row.additions for row in rows)
    total_deletions = sum(row.deletions for row in rows)
    total_files = sum(row.changed_files for row in rows)
    if total_additions or total_deletions or total_files:
        lines.extend(["", "## Code Change Statistics", ""])
        if total_additions:
            lines.append(f"- **Total Lines Added:** {total_additions}")
        if total_deletions:
            lines.append(f"- **Total Lines Deleted:** {total_deletions}")
        if total_files:
            lines.append(f"- **Total Files Changed:** {total_files}")

    return "\n".join(lines)


def write_summary(text: str, path: str) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(text + "\n")
