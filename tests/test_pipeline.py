"""Tests for the repository/pull request metrics pipeline."""

import sys
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from prmetrics.config import Config
from prmetrics.errors import ApiError, AuthenticationError, RunCancelledError
from prmetrics.github_client import GitHubClient
from prmetrics.models import Comment, PullRequest, PullRequestDetails, RepositoryRef, Review
from prmetrics.pipeline import collect_pr_metrics, resolve_repositories
from prmetrics.rate_limit import RateLimiter

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _config(**overrides) -> Config:
    values = dict(
        owner="acme",
        repository=None,
        days=30,
        state="all",
        max_results=100,
        include_details=True,
        include_drafts=False,
        token="secret",
    )
    values.update(overrides)
    return Config(**values)


def _pr(number: int, days_ago: float = 1) -> PullRequest:
    return PullRequest(
        number=number,
        title=f"PR {number}",
        author="octocat",
        state="open",
        draft=False,
        created_at=NOW - timedelta(days=days_ago),
    )


def _repo(name: str) -> RepositoryRef:
    return RepositoryRef(name=name, full_name=f"acme/{name}")


def test_resolve_repositories_synthesizes_single_repository():
    """Verify an explicit repository skips enumeration."""
    client = Mock()

    repositories = resolve_repositories(client, _config(repository="widgets"))

    assert repositories == [RepositoryRef(name="widgets", full_name="acme/widgets")]
    client.list_repositories.assert_not_called()


def test_resolve_repositories_enumerates_owner_when_no_repository_given():
    """Verify all repositories of the owner are used when none is configured."""
    client = Mock()
    client.list_repositories.return_value = [_repo("a"), _repo("b")]

    repositories = resolve_repositories(client, _config())

    assert [r.name for r in repositories] == ["a", "b"]
    client.list_repositories.assert_called_once_with("acme")


def test_cutoff_scenario_returns_only_recent_pull_requests():
    """Verify acme/widgets with PRs 1, 10 and 40 days old yields two rows for a 30 day window."""
    config = _config(repository="widgets", include_details=False)
    client = GitHubClient(config=config, rate_limiter=RateLimiter(sleep=Mock()))

    def _item(number, days_ago):
        created = (NOW - timedelta(days=days_ago)).strftime("%Y-%m-%dT%H:%M:%SZ")
        return {"number": number, "state": "open", "draft": False, "created_at": created}

    client._get_list = Mock(return_value=[_item(1, 1), _item(2, 10), _item(3, 40)])

    rows = collect_pr_metrics(client, config, now=NOW)

    assert sorted(row.pull_number for row in rows) == [1, 2]
    assert all(row.repository == "widgets" for row in rows)
    assert client._get_list.call_args.args[0] == "repos/acme/widgets/pulls"


def test_repository_failure_does_not_halt_later_repositories():
    """Verify a repository whose listing always fails is skipped."""
    client = Mock()
    client.list_repositories.return_value = [_repo("first"), _repo("broken"), _repo("last")]

    def _list(owner, repo, **kwargs):
        if repo == "broken":
            raise ApiError("GitHub request failed after 3 attempts")
        return [_pr(1 if repo == "first" else 2)]

    client.list_pull_requests.side_effect = _list
    client.fetch_pull_request_details.return_value = PullRequestDetails()
    client.fetch_pull_request.return_value = None

    rows = collect_pr_metrics(client, _config(), now=NOW)

    assert [row.repository for row in rows] == ["first", "last"]
    assert client.list_pull_requests.call_count == 3


def test_authentication_failure_aborts_the_run():
    """Verify credential errors inside a repository are fatal."""
    client = Mock()
    client.list_repositories.return_value = [_repo("a"), _repo("b")]
    client.list_pull_requests.side_effect = AuthenticationError("bad credentials")

    with pytest.raises(AuthenticationError):
        collect_pr_metrics(client, _config(), now=NOW)

    assert client.list_pull_requests.call_count == 1


def test_repository_enumeration_failure_is_fatal():
    """Verify a failure before any repository begins propagates."""
    client = Mock()
    client.list_repositories.side_effect = ApiError("boom")

    with pytest.raises(ApiError):
        collect_pr_metrics(client, _config(), now=NOW)


def test_basic_mode_skips_detail_fetch():
    """Verify details are never fetched when detail inclusion is off."""
    client = Mock()
    client.list_pull_requests.return_value = [_pr(1), _pr(2)]

    rows = collect_pr_metrics(client, _config(repository="widgets", include_details=False), now=NOW)

    assert len(rows) == 2
    client.fetch_pull_request_details.assert_not_called()
    client.fetch_pull_request.assert_not_called()
    assert all(row.total_reviews == 0 and row.time_to_first_comment is None for row in rows)


def test_details_enrich_timings_and_statistics():
    """Verify fetched details and statistics flow into the metrics row."""
    pr = _pr(5, days_ago=2)
    client = Mock()
    client.list_pull_requests.return_value = [pr]
    client.fetch_pull_request_details.return_value = PullRequestDetails(
        reviews=[Review(submitted_at=pr.created_at + timedelta(hours=3))],
        issue_comments=[Comment(created_at=pr.created_at + timedelta(hours=1))],
    )
    client.fetch_pull_request.return_value = PullRequest(number=5, additions=12, deletions=3, changed_files=2, commits=4)

    rows = collect_pr_metrics(client, _config(repository="widgets"), now=NOW)

    assert len(rows) == 1
    row = rows[0]
    assert row.time_to_first_review == 3.0
    assert row.time_to_first_comment == 1.0
    assert (row.additions, row.deletions, row.changed_files, row.commits) == (12, 3, 2, 4)
    client.fetch_pull_request_details.assert_called_once_with("acme", "widgets", 5)


def test_parallel_detail_fetch_keeps_every_pull_request():
    """Verify bounded concurrent detail fetches produce one row per pull request in order."""
    client = Mock()
    client.list_pull_requests.return_value = [_pr(n) for n in range(1, 9)]
    client.fetch_pull_request_details.return_value = PullRequestDetails()
    client.fetch_pull_request.return_value = None

    rows = collect_pr_metrics(client, _config(repository="widgets", detail_workers=4), now=NOW)

    assert [row.pull_number for row in rows] == list(range(1, 9))
    assert client.fetch_pull_request_details.call_count == 8


def test_cancellation_is_honored_at_repository_boundary():
    """Verify no repository is started once cancellation was requested."""
    cancel_event = threading.Event()
    client = Mock()
    client.list_repositories.return_value = [_repo("a"), _repo("b")]

    def _list(owner, repo, **kwargs):
        cancel_event.set()
        return [_pr(1)]

    client.list_pull_requests.side_effect = _list

    rows = collect_pr_metrics(
        client, _config(include_details=False), cancel_event=cancel_event, now=NOW
    )

    assert len(rows) == 1
    assert client.list_pull_requests.call_count == 1


def test_cancellation_during_repository_returns_partial_rows():
    """Verify a cancelled API call stops the run and keeps earlier rows."""
    client = Mock()
    client.list_repositories.return_value = [_repo("a"), _repo("b"), _repo("c")]
    client.list_pull_requests.side_effect = [[_pr(1)], RunCancelledError("cancelled"), [_pr(3)]]

    rows = collect_pr_metrics(client, _config(include_details=False), now=NOW)

    assert [row.repository for row in rows] == ["a"]
    assert client.list_pull_requests.call_count == 2


def test_no_pull_requests_yields_empty_result():
    """Verify an empty run is not an error."""
    client = Mock()
    client.list_repositories.return_value = [_repo("a")]
    client.list_pull_requests.return_value = []

    assert collect_pr_metrics(client, _config(), now=NOW) == []


def test_unexpected_repository_error_is_logged_and_skipped(caplog):
    """Verify a non-API error inside one repository does not end the run."""
    client = Mock()
    client.list_repositories.return_value = [_repo("bad"), _repo("good")]

    def _list(owner, repo, **kwargs):
        if repo == "bad":
            raise OverflowError("cannot convert float infinity to integer")
        return [_pr(1)]

    client.list_pull_requests.side_effect = _list

    rows = collect_pr_metrics(client, _config(include_details=False), now=NOW)

    assert [row.repository for row in rows] == ["good"]
    assert "acme/bad" in caplog.text
