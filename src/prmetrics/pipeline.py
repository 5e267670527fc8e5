"""Pull request metrics pipeline across one or many repositories."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import List, Optional

from .config import Config
from .errors import AuthenticationError, PRMetricsError, RunCancelledError
from .github_client import GitHubClient
from .metrics import derive_metrics
from .models import PRMetrics, PullRequest, PullRequestDetails, RepositoryRef

logger = logging.getLogger(__name__)


def resolve_repositories(client: GitHubClient, config: Config) -> List[RepositoryRef]:
    """Return the explicitly configured repository or every repository of the owner."""
    if config.repository:
        return [RepositoryRef(name=config.repository, full_name=f"{config.owner}/{config.repository}")]
    return client.list_repositories(config.owner)


def _merge_statistics(pr: PullRequest, full: Optional[PullRequest]) -> None:
    if full is None:
        return
    for name in ("additions", "deletions", "changed_files", "commits"):
        value = getattr(full, name)
        if value is not None:
            setattr(pr, name, value)


def _process_pull_request(
    client: GitHubClient,
    config: Config,
    repository: RepositoryRef,
    pr: PullRequest,
) -> PRMetrics:
    details = PullRequestDetails()
    if config.include_details and pr.number is not None:
        details = client.fetch_pull_request_details(config.owner, repository.name, pr.number)
        _merge_statistics(pr, client.fetch_pull_request(config.owner, repository.name, pr.number))
    return derive_metrics(repository.name, pr, details)


def process_repository(
    client: GitHubClient,
    config: Config,
    repository: RepositoryRef,
    cutoff: datetime,
) -> List[PRMetrics]:
    """Enumerate qualifying pull requests of one repository and derive their metrics."""
    pull_requests = client.list_pull_requests(
        owner=config.owner,
        repo=repository.name,
        state=config.state,
        cutoff=cutoff,
        include_drafts=config.include_drafts,
        max_results=config.max_results,
    )

    if config.detail_workers > 1 and config.include_details and len(pull_requests) > 1:
        with ThreadPoolExecutor(max_workers=config.detail_workers) as executor:
            rows = list(
                executor.map(
                    lambda pr: _process_pull_request(client, config, repository, pr),
                    pull_requests,
                )
            )
    else:
        rows = [_process_pull_request(client, config, repository, pr) for pr in pull_requests]

    logger.info(
        "Processed %s pull requests in %s",
        len(rows),
        repository.full_name,
        extra={"repository": repository.full_name, "pull_requests": len(rows)},
    )
    return rows


def collect_pr_metrics(
    client: GitHubClient,
    config: Config,
    cancel_event: Optional[threading.Event] = None,
    now: Optional[datetime] = None,
) -> List[PRMetrics]:
    """Collect metrics rows for every selected repository.

    A failure inside one repository is logged and that repository is skipped.
    Failures while resolving the repository set, and authentication failures
    anywhere, propagate. A cancellation stops the run and returns the rows
    collected so far.
    """
    cutoff = config.cutoff(now or datetime.now(timezone.utc))
    repositories = resolve_repositories(client, config)
    logger.info(
        "Analyzing %s repositories for '%s' (cutoff %s)",
        len(repositories),
        config.owner,
        cutoff.isoformat(),
        extra={"owner": config.owner, "repositories": len(repositories)},
    )

    results: List[PRMetrics] = []
    failed_repositories = 0

    for index, repository in enumerate(repositories, start=1):
        if cancel_event is not None and cancel_event.is_set():
            logger.warning(
                "Run cancelled before repository %s; %s repositories not processed",
                repository.full_name,
                len(repositories) - index + 1,
            )
            break

        logger.info("Processing repository %s/%s: %s", index, len(repositories), repository.full_name)
        try:
            results.extend(process_repository(client, config, repository, cutoff))
        except AuthenticationError:
            raise
        except RunCancelledError:
            logger.warning("Run cancelled while processing %s", repository.full_name)
            break
        except PRMetricsError as exc:
            failed_repositories += 1
            logger.error(
                "Skipping repository %s: %s",
                repository.full_name,
                exc,
                extra={"repository": repository.full_name},
            )
        except Exception:
            failed_repositories += 1
            logger.exception(
                "Unexpected error in repository %s; skipping it",
                repository.full_name,
                extra={"repository": repository.full_name},
            )

    logger.info(
        "Collected %s pull request rows",
        len(results),
        extra={
            "rows": len(results),
            "repositories": len(repositories),
            "failed_repositories": failed_repositories,
        },
    )
    return results
