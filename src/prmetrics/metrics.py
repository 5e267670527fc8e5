"""Metrics derivation for GitHub pull requests.

This module turns a raw pull request plus its fetched details into one flat
``PRMetrics`` row. Durations are in hours, rounded to two decimals:
- time to close (creation to close)
- time to merge (creation to merge)
- time to first review (creation to earliest submitted review)
- time to first comment (creation to earliest issue or review comment)

A duration is ``None`` whenever its defining event is missing. Nothing here
raises on incomplete payloads.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from .models import PRMetrics, PullRequest, PullRequestDetails

logger = logging.getLogger(__name__)


def hours_between(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    """Return ``end - start`` in hours rounded to 2 places, or ``None`` if either is missing."""
    if start is None or end is None:
        return None
    return round((end - start).total_seconds() / 3600, 2)


def earliest(timestamps: Iterable[Optional[datetime]]) -> Optional[datetime]:
    """Return the earliest present timestamp, ignoring ``None`` values."""
    present = [value for value in timestamps if value is not None]
    if not present:
        return None
    return min(present)


def escape_quotes(text: str) -> str:
    """Double embedded quote characters for tabular encoding."""
    return text.replace('"', '""')


def unescape_quotes(text: str) -> str:
    return text.replace('""', '"')


def derive_metrics(
    repository: str,
    pr: PullRequest,
    details: Optional[PullRequestDetails] = None,
) -> PRMetrics:
    """Build the metrics row for one pull request.

    Business logic:
    - ``closed_at`` falls back to ``merged_at`` when the payload omits it, so a
      merged pull request always has a time to close.
    - First review uses ``submitted_at`` of every review that carries one.
    - First comment uses the union of issue comments and review comments.
    - Missing text defaults to ``""``, missing counts to ``0``, a missing draft
      flag to ``False``.
    """
    details = details or PullRequestDetails()
    created_at = pr.created_at
    closed_at = pr.closed_at or pr.merged_at

    first_review_at = earliest(review.submitted_at for review in details.reviews)
    first_comment_at = earliest(
        comment.created_at for comment in [*details.issue_comments, *details.review_comments]
    )

    if created_at is None:
        logger.debug(
            "Pull request has no creation timestamp; durations left empty",
            extra={"repository": repository, "pull_number": pr.number},
        )

    return PRMetrics(
        repository=pr.base_repository or repository,
        pull_number=pr.number or 0,
        title=escape_quotes(pr.title or ""),
        author=pr.author or "",
        state=pr.state or "",
        is_draft=bool(pr.draft),
        created_at=created_at,
        updated_at=pr.updated_at,
        closed_at=closed_at,
        merged_at=pr.merged_at,
        time_to_close=hours_between(created_at, closed_at),
        time_to_merge=hours_between(created_at, pr.merged_at),
        time_to_first_review=hours_between(created_at, first_review_at),
        time_to_first_comment=hours_between(created_at, first_comment_at),
        total_reviews=len(details.reviews),
        total_comments=len(details.issue_comments) + len(details.review_comments),
        additions=pr.additions or 0,
        deletions=pr.deletions or 0,
        changed_files=pr.changed_files or 0,
        commits=pr.commits or 0,
        url=pr.url or "",
    )
