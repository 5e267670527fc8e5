"""GitHub REST API client for pull request metrics retrieval."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

import requests

from .config import Config
from .errors import (
    ApiError,
    AuthenticationError,
    NotFoundError,
    PermissionDeniedError,
    RunCancelledError,
)
from .models import Comment, PullRequest, PullRequestDetails, RepositoryRef, Review
from .rate_limit import RateLimiter

logger = logging.getLogger(__name__)

REDACTED = "***"


class GitHubClient:
    """Small, typed client for the GitHub repository and pull request APIs."""

    _PAGE_SIZE = 100
    _MAX_RETRIES = 3
    _RATE_LIMIT_COOLDOWN_SECONDS = 60

    def __init__(
        self,
        config: Config,
        rate_limiter: Optional[RateLimiter] = None,
        cancel_event: Optional[threading.Event] = None,
        timeout_seconds: int = 30,
        max_retries: Optional[int] = None,
    ) -> None:
        """Initialize an authenticated GitHub API client.

        Args:
            config: Validated runtime configuration including owner and token.
            rate_limiter: Shared quota tracker; one is created when omitted.
            cancel_event: When set, no further API calls are issued.
            timeout_seconds: Per-request timeout in seconds.
            max_retries: Attempts per logical call (default 3).
        """
        self._config = config
        self._token = config.token
        self._timeout_seconds = timeout_seconds
        self._max_retries = max_retries or self._MAX_RETRIES
        self._base_url = config.api_url.rstrip("/")
        self._rate_limiter = rate_limiter or RateLimiter(cancel_event=cancel_event)
        self._cancel_event = cancel_event
        self._user_owners: Set[str] = set()

        self._session = requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {config.token}",
                "User-Agent": "github-pr-metrics",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    def _build_url(self, path: str) -> str:
        """Build a fully qualified API URL from a path below the API root."""
        return f"{self._base_url}/{path.lstrip('/')}"

    def redact(self, text: str) -> str:
        """Replace every occurrence of the token in ``text``."""
        if not self._token:
            return text
        return text.replace(self._token, REDACTED)

    def _backoff_seconds(self, attempt: int) -> int:
        return 2 ** (attempt - 1)

    def _error_message(self, response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return (response.text or "")[:300]
        if isinstance(payload, dict):
            return str(payload.get("message") or "")
        return ""

    def _check_cancelled(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise RunCancelledError("Run cancelled; no further API calls are issued.")

    def request(
        self,
        url: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        """Execute one logical API call with bounded retries.

        Raises:
            AuthenticationError: On HTTP 401.
            PermissionDeniedError: On HTTP 403 that is not a rate-limit rejection.
            NotFoundError: On HTTP 404.
            ApiError: When every attempt failed.
            RunCancelledError: When cancellation was requested before an attempt.
        """
        safe_url = self.redact(url)
        last_error: Optional[str] = None

        for attempt in range(1, self._max_retries + 1):
            self._check_cancelled()
            self._rate_limiter.wait_if_needed()
            self._check_cancelled()

            try:
                response = self._session.request(
                    method,
                    url,
                    params=params,
                    headers=headers,
                    timeout=self._timeout_seconds,
                )
            except requests.RequestException as exc:
                last_error = self.redact(str(exc))
                logger.warning(
                    "Request failed (attempt %s/%s): %s %s: %s",
                    attempt,
                    self._max_retries,
                    method,
                    safe_url,
                    last_error,
                    extra={"url": safe_url, "attempt": attempt},
                )
                if attempt < self._max_retries:
                    time.sleep(self._backoff_seconds(attempt))
                continue

            self._rate_limiter.update_from_headers(response.headers)
            status_code = response.status_code

            if 200 <= status_code < 300:
                return response

            message = self.redact(self._error_message(response))

            if status_code == 401:
                raise AuthenticationError(
                    f"GitHub rejected the credentials: {method} {safe_url} returned 401"
                )

            if status_code == 403:
                if "rate limit" not in message.lower():
                    raise PermissionDeniedError(
                        f"GitHub API permission denied: {method} {safe_url} returned 403 - {message}",
                        status_code=status_code,
                    )
                last_error = f"HTTP 403 rate limited - {message}"
                logger.warning(
                    "Rate limited (attempt %s/%s): %s %s; cooling down %ss",
                    attempt,
                    self._max_retries,
                    method,
                    safe_url,
                    self._RATE_LIMIT_COOLDOWN_SECONDS,
                    extra={"url": safe_url, "attempt": attempt},
                )
                if attempt < self._max_retries:
                    time.sleep(self._RATE_LIMIT_COOLDOWN_SECONDS)
                continue

            if status_code == 404:
                raise NotFoundError(
                    f"GitHub API resource not found: {method} {safe_url}",
                    status_code=status_code,
                )

            last_error = f"HTTP {status_code} - {message}"
            logger.warning(
                "Request returned HTTP %s (attempt %s/%s): %s %s",
                status_code,
                attempt,
                self._max_retries,
                method,
                safe_url,
                extra={"url": safe_url, "attempt": attempt, "status_code": status_code},
            )
            if attempt < self._max_retries:
                time.sleep(self._backoff_seconds(attempt))

        raise ApiError(
            f"GitHub request failed after {self._max_retries} attempts: "
            f"{method} {safe_url} ({last_error})"
        )

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a path and decode its JSON body.

        Raises:
            ApiError: If the request fails or the body is not valid JSON.
        """
        url = self._build_url(path)
        response = self.request(url, params=params)
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(f"GitHub API returned invalid JSON: GET {self.redact(url)}") from exc

    def _get_list(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        payload = self._get_json(path, params=params)
        if not isinstance(payload, list):
            raise ApiError(f"GitHub API returned unexpected payload shape: GET {path}")
        return [item for item in payload if isinstance(item, dict)]

    def list_repositories(self, owner: str) -> List[RepositoryRef]:
        """List the owner's repositories, falling back from org to user endpoints.

        Only a failure of the very first organization page triggers the
        fallback; the choice sticks for the rest of the run.
        """
        use_user_endpoint = owner in self._user_owners
        repositories: List[RepositoryRef] = []
        page = 1

        while True:
            params = {"per_page": self._PAGE_SIZE, "page": page}
            if use_user_endpoint:
                items = self._get_list(f"users/{owner}/repos", params=params)
            else:
                try:
                    items = self._get_list(f"orgs/{owner}/repos", params=params)
                except ApiError as exc:
                    if page != 1:
                        raise
                    logger.info(
                        "Organization repositories unavailable for '%s' (%s); "
                        "falling back to user repositories",
                        owner,
                        exc,
                        extra={"owner": owner},
                    )
                    self._user_owners.add(owner)
                    use_user_endpoint = True
                    continue

            for item in items:
                repository = RepositoryRef.from_api(item, owner)
                if repository is not None:
                    repositories.append(repository)

            if len(items) < self._PAGE_SIZE:
                break

            page += 1

        logger.info(
            "Found %s repositories for '%s'",
            len(repositories),
            owner,
            extra={"owner": owner, "repositories": len(repositories)},
        )
        return repositories

    def list_pull_requests(
        self,
        owner: str,
        repo: str,
        state: str,
        cutoff: datetime,
        include_drafts: bool,
        max_results: int,
    ) -> List[PullRequest]:
        """List pull requests created on or after ``cutoff``.

        Pages are requested most recently updated first. Pagination stops on an
        empty page, when the last record of a page was created before the
        cutoff, or once ``max_results`` records were kept. The cutoff stop is an
        approximation: the listing is ordered by update time, not creation time,
        so an old pull request updated recently can keep pagination going while
        a recently created one that has not been updated since older records
        may be missed.
        """
        pull_requests: List[PullRequest] = []
        page = 1

        while True:
            items = self._get_list(
                f"repos/{owner}/{repo}/pulls",
                params={
                    "state": state,
                    "sort": "updated",
                    "direction": "desc",
                    "per_page": self._PAGE_SIZE,
                    "page": page,
                },
            )
            if not items:
                break

            records = [PullRequest.from_api(item) for item in items]
            for record in records:
                if record.created_at is None or record.created_at < cutoff:
                    continue
                if record.draft and not include_drafts:
                    continue
                pull_requests.append(record)

            last_created = records[-1].created_at
            if last_created is not None and last_created < cutoff:
                break
            if len(pull_requests) >= max_results:
                break

            page += 1

        if len(pull_requests) > max_results:
            pull_requests = pull_requests[:max_results]

        logger.debug(
            "Listed %s pull requests for %s/%s",
            len(pull_requests),
            owner,
            repo,
            extra={"repository": f"{owner}/{repo}", "pages": page},
        )
        return pull_requests

    def fetch_pull_request_details(self, owner: str, repo: str, number: int) -> PullRequestDetails:
        """Fetch reviews, issue comments and review comments for a pull request.

        Any API failure degrades to empty details.
        """
        params = {"per_page": self._PAGE_SIZE}
        try:
            reviews = self._get_list(f"repos/{owner}/{repo}/pulls/{number}/reviews", params=params)
            issue_comments = self._get_list(
                f"repos/{owner}/{repo}/issues/{number}/comments", params=params
            )
            review_comments = self._get_list(
                f"repos/{owner}/{repo}/pulls/{number}/comments", params=params
            )
        except ApiError as exc:
            logger.warning(
                "Could not fetch details for %s/%s#%s: %s",
                owner,
                repo,
                number,
                exc,
                extra={"repository": f"{owner}/{repo}", "pull_number": number},
            )
            return PullRequestDetails()

        return PullRequestDetails(
            reviews=[Review.from_api(item) for item in reviews],
            issue_comments=[Comment.from_api(item) for item in issue_comments],
            review_comments=[Comment.from_api(item) for item in review_comments],
        )

    def fetch_pull_request(self, owner: str, repo: str, number: int) -> Optional[PullRequest]:
        """Fetch the single pull request record, which carries change statistics.

        Returns ``None`` when the call fails.
        """
        try:
            payload = self._get_json(f"repos/{owner}/{repo}/pulls/{number}")
        except ApiError as exc:
            logger.warning(
                "Could not fetch statistics for %s/%s#%s: %s",
                owner,
                repo,
                number,
                exc,
                extra={"repository": f"{owner}/{repo}", "pull_number": number},
            )
            return None

        if not isinstance(payload, dict):
            return None
        return PullRequest.from_api(payload)
