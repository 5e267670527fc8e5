"""Tests for null-safe parsing of GitHub payloads."""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from prmetrics.models import PullRequest, RepositoryRef, parse_timestamp


def test_parse_timestamp_handles_zulu_and_invalid_values():
    """Verify ISO timestamps parse to UTC and bad values become None."""
    assert parse_timestamp("2026-01-02T03:04:05Z") == datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp(12345) is None


def test_pull_request_from_api_reads_full_payload():
    """Verify a complete payload maps onto every field."""
    pr = PullRequest.from_api(
        {
            "number": 7,
            "title": "Add gears",
            "user": {"login": "octocat"},
            "state": "closed",
            "draft": True,
            "base": {"repo": {"name": "widgets"}},
            "created_at": "2026-01-01T00:00:00Z",
            "closed_at": "2026-01-02T00:00:00Z",
            "merged_at": "2026-01-02T00:00:00Z",
            "additions": 5,
            "deletions": 1,
            "changed_files": 2,
            "commits": 3,
            "html_url": "https://github.com/acme/widgets/pull/7",
        }
    )

    assert pr.number == 7
    assert pr.author == "octocat"
    assert pr.draft is True
    assert pr.base_repository == "widgets"
    assert pr.merged_at == datetime(2026, 1, 2, tzinfo=timezone.utc)
    assert pr.commits == 3
    assert pr.url == "https://github.com/acme/widgets/pull/7"


def test_pull_request_from_api_tolerates_missing_and_malformed_fields():
    """Verify partial or malformed payloads default to None instead of raising."""
    pr = PullRequest.from_api(
        {"number": "abc", "user": None, "base": "main", "draft": "yes", "additions": "many"}
    )

    assert pr == PullRequest()


def test_repository_ref_from_api_requires_name():
    """Verify repository entries without a name are skipped and full names synthesized."""
    assert RepositoryRef.from_api({}, "acme") is None
    assert RepositoryRef.from_api({"name": "widgets"}, "acme") == RepositoryRef(
        name="widgets", full_name="acme/widgets"
    )


def test_pull_request_from_api_treats_overflowing_numbers_as_missing():
    """Verify numbers that decode to infinity default to None."""
    payload = json.loads('{"number": 5, "additions": 1e400, "created_at": "2026-03-01T00:00:00Z"}')

    pr = PullRequest.from_api(payload)

    assert pr.number == 5
    assert pr.additions is None
    assert pr.created_at == datetime(2026, 3, 1, tzinfo=timezone.utc)
