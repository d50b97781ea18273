# Entrius 2025
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import bittensor as bt
import requests

from claguard.constants import BASE_GITHUB_API_URL, COMMENT_MARKER, GITHUB_PAGE_SIZE
from claguard.exceptions import StatusUpdateError

# =============================================================================
# Retries and rate limits
# =============================================================================
MAX_ATTEMPTS = 3
RETRYABLE_STATUS_CODES = (502, 503, 504)
RATE_LIMITED_STATUS_CODES = (403, 429)

RATE_LIMIT_BUFFER_SECONDS = 5
RATE_LIMIT_LOW_WATERMARK = 10  # warn once this few requests are left
RATE_LIMIT_DEFAULT_WAIT_SECONDS = 60
RATE_LIMIT_MAX_WAIT_SECONDS = 900


@dataclass
class RateLimitInfo:
    """The X-RateLimit-* headers of one GitHub response."""

    limit: int
    remaining: int
    reset_timestamp: int
    used: int

    @classmethod
    def from_response(cls, response: requests.Response) -> Optional['RateLimitInfo']:
        headers = response.headers
        try:
            info = cls(
                limit=int(headers.get('X-RateLimit-Limit', 0)),
                remaining=int(headers.get('X-RateLimit-Remaining', 0)),
                reset_timestamp=int(headers.get('X-RateLimit-Reset', 0)),
                used=int(headers.get('X-RateLimit-Used', 0)),
            )
        except (ValueError, TypeError) as e:
            bt.logging.debug(f"Unreadable rate limit headers: {e}")
            return None
        if not info.limit and not info.reset_timestamp:
            return None
        return info

    @property
    def is_exceeded(self) -> bool:
        return self.remaining == 0

    @property
    def seconds_until_reset(self) -> int:
        return max(0, self.reset_timestamp - int(time.time()))

    def __str__(self) -> str:
        return f"RateLimit(remaining={self.remaining}/{self.limit}, resets_in={self.seconds_until_reset}s)"


def is_rate_limited(response: requests.Response) -> Tuple[bool, Optional[int]]:
    """Return (limited, seconds to wait) for a GitHub response.

    Primary limits are read from the reset header, secondary limits from
    Retry-After or a fixed default.
    """
    if response.status_code not in RATE_LIMITED_STATUS_CODES:
        return (False, None)

    info = RateLimitInfo.from_response(response)
    if info and info.is_exceeded:
        return (True, min(info.seconds_until_reset + RATE_LIMIT_BUFFER_SECONDS, RATE_LIMIT_MAX_WAIT_SECONDS))

    if 'rate limit' not in response.text.lower():
        return (False, None)

    retry_after = response.headers.get('Retry-After')
    if retry_after and str(retry_after).isdigit():
        return (True, min(int(retry_after), RATE_LIMIT_MAX_WAIT_SECONDS))
    return (True, RATE_LIMIT_DEFAULT_WAIT_SECONDS)


def _warn_if_quota_low(response: requests.Response) -> None:
    info = RateLimitInfo.from_response(response)
    if info and info.remaining <= RATE_LIMIT_LOW_WATERMARK:
        bt.logging.warning(f"GitHub API quota nearly used up: {info}")


def _sleep_until_reset(wait_seconds: int, context: str) -> None:
    bt.logging.warning(f"GitHub API rate limit hit while requesting {context}, sleeping {wait_seconds}s")
    time.sleep(wait_seconds)
    bt.logging.info(f"Resuming GitHub requests for {context}")


def make_headers(token: Optional[str]) -> Dict[str, str]:
    """Build standard GitHub HTTP headers for a token.

    Args:
        token (Optional[str]): Github token, anonymous requests when empty
    Returns:
        Dict[str, str]: Mapping of HTTP header names to values.
    """
    headers = {"Accept": "application/vnd.github.v3+json"}
    if token:
        headers["Authorization"] = f"token {token}"
    return headers


def github_request(
    method: str, path: str, token: Optional[str], context: str, **kwargs: Any
) -> Optional[requests.Response]:
    """Send a GitHub REST request with rate limit handling and retries on transient errors.

    Args:
        method (str): HTTP method
        path (str): API path below BASE_GITHUB_API_URL, e.g. '/repos/octocat/Hello-World/pulls'
        token (Optional[str]): Github token
        context (str): Short description used in log messages
        **kwargs: Passed to requests.request (params, json, ...)

    Returns:
        Optional[requests.Response]: The final response (any status), or None if no response was received
    """
    headers = make_headers(token)

    for attempt in range(MAX_ATTEMPTS):
        try:
            response = requests.request(method, f"{BASE_GITHUB_API_URL}{path}", headers=headers, timeout=30, **kwargs)

            rate_limited, wait_seconds = is_rate_limited(response)
            if rate_limited and wait_seconds:
                if attempt < MAX_ATTEMPTS - 1:
                    _sleep_until_reset(wait_seconds, context)
                    continue
                bt.logging.error(f"Rate limit exceeded on final attempt for {context}")
                return response

            if response.status_code in RETRYABLE_STATUS_CODES and attempt < MAX_ATTEMPTS - 1:
                backoff_delay = 2 * (2**attempt)
                bt.logging.warning(
                    f"GitHub request for {context} failed with status {response.status_code} "
                    f"(attempt {attempt + 1}/{MAX_ATTEMPTS}), retrying in {backoff_delay}s..."
                )
                time.sleep(backoff_delay)
                continue

            if response.status_code < 400:
                _warn_if_quota_low(response)
            return response

        except requests.exceptions.RequestException as e:
            if attempt < MAX_ATTEMPTS - 1:
                backoff_delay = 2 * (2**attempt)
                bt.logging.warning(
                    f"GitHub request for {context} connection error (attempt {attempt + 1}/{MAX_ATTEMPTS}): {e}, "
                    f"retrying in {backoff_delay}s..."
                )
                time.sleep(backoff_delay)
            else:
                bt.logging.error(f"GitHub request for {context} failed after {MAX_ATTEMPTS} attempts: {e}")

    return None


def _get_all_pages(path: str, token: Optional[str], context: str, params: Optional[Dict] = None) -> Optional[List[Dict]]:
    """Collect every page of a list endpoint. Returns None if any page fails."""
    items: List[Dict] = []
    page = 1

    while True:
        page_params = dict(params or {}, per_page=GITHUB_PAGE_SIZE, page=page)
        response = github_request('GET', path, token, context, params=page_params)
        if response is None or response.status_code != 200:
            status = response.status_code if response is not None else 'no response'
            bt.logging.warning(f"Failed to get {context} (page {page}): status {status}")
            return None

        batch = response.json()
        items.extend(batch)
        if len(batch) < GITHUB_PAGE_SIZE:
            return items
        page += 1


def get_open_pull_requests(repository: str, token: Optional[str]) -> Optional[List[Dict]]:
    """
    Get all open pull requests of a repository.

    Args:
        repository (str): Repository in format 'owner/repo'
        token (Optional[str]): Github token
    Returns:
        Optional[List[Dict]]: Raw pull request objects, or None on error
    """
    return _get_all_pages(f'/repos/{repository}/pulls', token, f"open PRs of {repository}", params={'state': 'open'})


def get_org_repositories(org: str, token: Optional[str]) -> Optional[List[Dict]]:
    """
    Get all repositories of an organization.

    Args:
        org (str): Organization login
        token (Optional[str]): Github token
    Returns:
        Optional[List[Dict]]: Raw repository objects, or None on error
    """
    return _get_all_pages(f'/orgs/{org}/repos', token, f"repositories of org {org}")


def get_github_user_by_name(username: str, token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Fetch the public GitHub user object for a username, None if unknown or on error."""
    response = github_request('GET', f'/users/{username}', token, f"user {username}")
    if response is None or response.status_code != 200:
        return None
    return response.json()


def get_pull_request_head_sha(repository: str, pr_number: int, token: Optional[str]) -> Optional[str]:
    """Get the head commit sha of a pull request, None on error."""
    response = github_request('GET', f'/repos/{repository}/pulls/{pr_number}', token, f"PR #{pr_number}")
    if response is None or response.status_code != 200:
        bt.logging.warning(f"Could not get head sha of PR #{pr_number} in {repository}")
        return None
    return response.json().get('head', {}).get('sha')


def create_commit_status(
    repository: str, sha: str, state: str, description: str, context: str, target_url: str, token: Optional[str]
) -> bool:
    """
    Create a commit status.

    Args:
        repository (str): Repository in format 'owner/repo'
        sha (str): Commit sha
        state (str): One of 'success', 'failure', 'pending', 'error'
        description (str): Short description shown next to the status
        context (str): Status context, e.g. 'license/cla'
        target_url (str): Link shown with the status
        token (Optional[str]): Github token
    Returns:
        bool: True if the status was created
    """
    response = github_request(
        'POST',
        f'/repos/{repository}/statuses/{sha}',
        token,
        f"status of {sha[:7]}",
        json={'state': state, 'description': description, 'context': context, 'target_url': target_url},
    )
    if response is None or response.status_code != 201:
        status = response.status_code if response is not None else 'no response'
        bt.logging.warning(f"Failed to create status on {sha[:7]} in {repository}: status {status}")
        return False
    return True


def find_cla_comment(repository: str, pr_number: int, token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Find the CLA comment of a pull request by its marker.

    Returns None only when the comments were listed and none carries the marker.

    Raises:
        StatusUpdateError: If the comments could not be listed
    """
    comments = _get_all_pages(f'/repos/{repository}/issues/{pr_number}/comments', token, f"comments of PR #{pr_number}")
    if comments is None:
        raise StatusUpdateError(f"Could not list comments of {repository}#{pr_number}")
    for comment in comments:
        if COMMENT_MARKER in (comment.get('body') or ''):
            return comment
    return None


def create_comment(repository: str, pr_number: int, body: str, token: Optional[str]) -> bool:
    response = github_request(
        'POST', f'/repos/{repository}/issues/{pr_number}/comments', token, f"comment on PR #{pr_number}", json={'body': body}
    )
    return response is not None and response.status_code == 201


def update_comment(repository: str, comment_id: int, body: str, token: Optional[str]) -> bool:
    response = github_request(
        'PATCH', f'/repos/{repository}/issues/comments/{comment_id}', token, f"comment {comment_id}", json={'body': body}
    )
    return response is not None and response.status_code == 200


def delete_comment(repository: str, comment_id: int, token: Optional[str]) -> bool:
    response = github_request('DELETE', f'/repos/{repository}/issues/comments/{comment_id}', token, f"comment {comment_id}")
    return response is not None and response.status_code == 204


def get_pull_request_committers(repository: str, pr_number: int, token: Optional[str]) -> Optional[Tuple[List[str], List[str]]]:
    """
    Get the committers of a pull request.

    Args:
        repository (str): Repository in format 'owner/repo'
        pr_number (int): PR number
        token (Optional[str]): Github token
    Returns:
        Optional[Tuple[List[str], List[str]]]: (GitHub logins, names of committers without a GitHub account),
        or None on error
    """
    commits = _get_all_pages(f'/repos/{repository}/pulls/{pr_number}/commits', token, f"commits of PR #{pr_number}")
    if commits is None:
        return None

    logins: List[str] = []
    unknown: List[str] = []
    for commit in commits:
        github_author = commit.get('author') or commit.get('committer')
        if github_author and github_author.get('login'):
            if github_author['login'] not in logins:
                logins.append(github_author['login'])
            continue
        name = (commit.get('commit') or {}).get('author', {}).get('name')
        if name and name not in unknown:
            unknown.append(name)
    return logins, unknown
