"""Domain models for GitHub pull request metrics.

Raw records mirror the subset of GitHub REST payload fields the metrics need.
Every raw field is optional: the API may omit any of them, and ``from_api``
constructors default missing or malformed values to ``None`` instead of raising.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

OUTPUT_COLUMNS = [
    "Repository",
    "PullNumber",
    "Title",
    "Author",
    "State",
    "IsDraft",
    "CreatedAt",
    "UpdatedAt",
    "ClosedAt",
    "MergedAt",
    "TimeToClose",
    "TimeToMerge",
    "TimeToFirstReview",
    "TimeToFirstComment",
    "TotalReviews",
    "TotalComments",
    "Additions",
    "Deletions",
    "ChangedFiles",
    "Commits",
    "Url",
]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse GitHub ISO8601 timestamps into timezone-aware UTC datetimes.

    Returns ``None`` for missing, non-string, or malformed values.
    """
    if not value or not isinstance(value, str):
        return None

    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


@dataclass(slots=True)
class RateLimitState:
    """Remaining request quota and the epoch second at which it resets."""

    remaining: int = 5000
    reset_at: float = field(default_factory=lambda: time.time() + 3600)


@dataclass(frozen=True, slots=True)
class RepositoryRef:
    """Represents a repository selected for processing."""

    name: str
    full_name: str

    @classmethod
    def from_api(cls, payload: Dict[str, Any], owner: str) -> Optional["RepositoryRef"]:
        name = payload.get("name")
        if not name:
            return None
        full_name = payload.get("full_name") or f"{owner}/{name}"
        return cls(name=str(name), full_name=str(full_name))


@dataclass(slots=True)
class PullRequest:
    """Represents a pull request as returned by the GitHub pulls endpoints."""

    number: Optional[int] = None
    title: Optional[str] = None
    author: Optional[str] = None
    state: Optional[str] = None
    draft: Optional[bool] = None
    base_repository: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None
    additions: Optional[int] = None
    deletions: Optional[int] = None
    changed_files: Optional[int] = None
    commits: Optional[int] = None
    url: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "PullRequest":
        user = payload.get("user") or {}
        base = payload.get("base") or {}
        base_repo = base.get("repo") if isinstance(base, dict) else None
        if not isinstance(base_repo, dict):
            base_repo = {}
        draft = payload.get("draft")

        return cls(
            number=_optional_int(payload.get("number")),
            title=_optional_str(payload.get("title")),
            author=_optional_str(user.get("login")) if isinstance(user, dict) else None,
            state=_optional_str(payload.get("state")),
            draft=draft if isinstance(draft, bool) else None,
            base_repository=_optional_str(base_repo.get("name")),
            created_at=parse_timestamp(payload.get("created_at")),
            updated_at=parse_timestamp(payload.get("updated_at")),
            closed_at=parse_timestamp(payload.get("closed_at")),
            merged_at=parse_timestamp(payload.get("merged_at")),
            additions=_optional_int(payload.get("additions")),
            deletions=_optional_int(payload.get("deletions")),
            changed_files=_optional_int(payload.get("changed_files")),
            commits=_optional_int(payload.get("commits")),
            url=_optional_str(payload.get("html_url")),
        )


@dataclass(slots=True)
class Review:
    """Represents the minimal review data used to find the first review."""

    submitted_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Review":
        return cls(submitted_at=parse_timestamp(payload.get("submitted_at")))


@dataclass(slots=True)
class Comment:
    """Represents an issue comment or a review comment."""

    created_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Comment":
        return cls(created_at=parse_timestamp(payload.get("created_at")))


@dataclass(slots=True)
class PullRequestDetails:
    """Reviews and comments fetched for one pull request."""

    reviews: List[Review] = field(default_factory=list)
    issue_comments: List[Comment] = field(default_factory=list)
    review_comments: List[Comment] = field(default_factory=list)


def _format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def _format_hours(value: Optional[float]) -> str:
    if value is None:
        return ""
    return str(round(value, 2))


@dataclass(slots=True)
class PRMetrics:
    """One output row: a pull request with its derived timing metrics.

    Durations are in hours and are ``None`` when the defining event never
    happened; they are rendered as empty strings only by :meth:`as_row`.
    """

    repository: str
    pull_number: int
    title: str
    author: str
    state: str
    is_draft: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    closed_at: Optional[datetime]
    merged_at: Optional[datetime]
    time_to_close: Optional[float]
    time_to_merge: Optional[float]
    time_to_first_review: Optional[float]
    time_to_first_comment: Optional[float]
    total_reviews: int
    total_comments: int
    additions: int
    deletions: int
    changed_files: int
    commits: int
    url: str

    def as_row(self) -> Dict[str, str]:
        """Serialize to the output schema keyed by ``OUTPUT_COLUMNS``."""
        return {
            "Repository": self.repository,
            "PullNumber": str(self.pull_number),
            "Title": self.title,
            "Author": self.author,
            "State": self.state,
            "IsDraft": str(self.is_draft),
            "CreatedAt": _format_timestamp(self.created_at),
            "UpdatedAt": _format_timestamp(self.updated_at),
            "ClosedAt": _format_timestamp(self.closed_at),
            "MergedAt": _format_timestamp(self.merged_at),
            "TimeToClose": _format_hours(self.time_to_close),
            "TimeToMerge": _format_hours(self.time_to_merge),
            "TimeToFirstReview": _format_hours(self.time_to_first_review),
            "TimeToFirstComment": _format_hours(self.time_to_first_comment),
            "TotalReviews": str(self.total_reviews),
            "TotalComments": str(self.total_comments),
            "Additions": str(self.additions),
            "Deletions": str(self.deletions),
            "ChangedFiles": str(self.changed_files),
            "Commits": str(self.commits),
            "Url": self.url,
        }
