"""Configuration parsing and validation for the GitHub PR metrics generator."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from .errors import AuthenticationError, ConfigurationError

VALID_STATES = ("all", "open", "closed")
DEFAULT_API_URL = "https://api.github.com"


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the metrics generator."""

    owner: str
    repository: Optional[str]
    days: int
    state: str
    max_results: int
    include_details: bool
    include_drafts: bool
    token: str = field(repr=False)
    output_path: str = "github-pr-metrics.csv"
    summary_path: Optional[str] = None
    detail_workers: int = 1
    api_url: str = DEFAULT_API_URL

    def cutoff(self, now: Optional[datetime] = None) -> datetime:
        """Return the earliest creation timestamp still in scope."""
        now = now or datetime.now(timezone.utc)
        return now - timedelta(days=self.days)


def load_config(
    owner: Optional[str],
    repository: Optional[str] = None,
    days: int = 30,
    state: str = "all",
    max_results: int = 100,
    include_details: bool = True,
    include_drafts: bool = False,
    output_path: str = "github-pr-metrics.csv",
    summary_path: Optional[str] = None,
    detail_workers: int = 1,
    api_url: Optional[str] = None,
) -> Config:
    """Build and validate application configuration.

    The owner falls back to the ``GITHUB_OWNER`` environment variable and the
    token is always read from ``GITHUB_TOKEN``.

    Raises:
        ConfigurationError: If the owner is missing or a numeric/state value is invalid.
        AuthenticationError: If ``GITHUB_TOKEN`` is not configured.
    """
    effective_owner = (owner or os.getenv("GITHUB_OWNER", "")).strip()
    if not effective_owner:
        raise ConfigurationError(
            "GitHub owner/organization must be specified with --owner or the "
            "'GITHUB_OWNER' environment variable."
        )

    if days <= 0:
        raise ConfigurationError("Invalid value for 'days': expected an integer greater than 0.")
    if max_results <= 0:
        raise ConfigurationError(
            "Invalid value for 'max_results': expected an integer greater than 0."
        )
    if detail_workers < 1:
        raise ConfigurationError(
            "Invalid value for 'detail_workers': expected an integer of at least 1."
        )
    if state not in VALID_STATES:
        raise ConfigurationError(
            f"Invalid value for 'state': expected one of {', '.join(VALID_STATES)}."
        )

    token: str = os.getenv("GITHUB_TOKEN", "").strip()
    if not token:
        raise AuthenticationError(
            "Missing required GitHub token. "
            "Set the 'GITHUB_TOKEN' environment variable before running the metrics generator."
        )

    return Config(
        owner=effective_owner,
        repository=(repository or "").strip() or None,
        days=days,
        state=state,
        max_results=max_results,
        include_details=include_details,
        include_drafts=include_drafts,
        token=token,
        output_path=output_path,
        summary_path=summary_path,
        detail_workers=detail_workers,
        api_url=(api_url or DEFAULT_API_URL).rstrip("/"),
    )
