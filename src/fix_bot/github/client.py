"""Minimal GitHub REST client used as the repository collaborator."""

import base64
import logging
import os
import time
from typing import Any, Callable

import httpx

from fix_bot.github.exceptions import GitHubAPIError, GitHubError, RateLimitError

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_ATTEMPTS = 3
LOW_RATE_LIMIT_WARNING = 100
RATE_LIMIT_BUFFER_SECONDS = 1.0


def _int_header(headers: httpx.Headers, name: str) -> int | None:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class GitHubClient:
    """Synchronous GitHub API wrapper with rate-limit and 5xx handling.

    Implements the content and tree accessors consumed by FileSelector and
    the calls ChangeSubmitter needs to open a draft pull request.
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str = GITHUB_API_BASE,
        http_client: httpx.Client | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the client.

        Args:
            token: Default access token. Falls back to GITHUB_TOKEN env var;
                every call may also pass its own token.
            base_url: API root, overridable for GitHub Enterprise.
            http_client: Optional shared httpx.Client (used by tests).
            max_attempts: Attempts per call for rate-limit and 5xx responses.
        """
        self.token: str | None = token or os.getenv("GITHUB_TOKEN")
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max(1, max_attempts)
        self._sleep = sleep
        self._clock = clock
        self._client = http_client or httpx.Client(timeout=timeout)
        self._owns_client = http_client is None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _headers(self, token: str | None) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "fix-bot",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        auth = token or self.token
        if auth:
            headers["Authorization"] = f"Bearer {auth}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        token: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        last_error: Exception | None = None

        for attempt in range(self.max_attempts):
            is_last = attempt == self.max_attempts - 1
            try:
                response = self._client.request(
                    method, url, headers=self._headers(token), **kwargs
                )
            except httpx.TransportError as exc:
                last_error = exc
                if is_last:
                    break
                self._sleep(2 ** attempt)
                continue

            remaining = _int_header(response.headers, "X-RateLimit-Remaining")
            reset = _int_header(response.headers, "X-RateLimit-Reset")

            if response.status_code == 403 and remaining == 0 and reset:
                if is_last:
                    raise RateLimitError(reset)
                wait = max(0.0, reset - self._clock()) + RATE_LIMIT_BUFFER_SECONDS
                logger.warning("GitHub rate limit exceeded, waiting %.0fs until reset", wait)
                self._sleep(wait)
                continue

            if response.status_code >= 500:
                if is_last:
                    raise GitHubAPIError(
                        f"GitHub API server error: {response.text[:500]}",
                        response.status_code,
                        details=f"attempt {attempt + 1}",
                    )
                backoff = 2 ** attempt
                logger.warning(
                    "GitHub API server error (%s), retrying in %ss",
                    response.status_code,
                    backoff,
                )
                self._sleep(backoff)
                continue

            if response.status_code >= 400:
                message = f"GitHub API error: {response.reason_phrase}"
                try:
                    payload = response.json()
                    if isinstance(payload, dict) and payload.get("message"):
                        message = str(payload["message"])
                except ValueError:
                    if response.text:
                        message = response.text[:500]
                raise GitHubAPIError(message, response.status_code, details=response.text)

            if remaining is not None and remaining < LOW_RATE_LIMIT_WARNING:
                logger.warning("GitHub API rate limit low: %s remaining", remaining)
            return response

        raise GitHubError(f"GitHub API call failed: {method} {path}: {last_error}") from last_error

    def _json(self, method: str, path: str, token: str | None = None, **kwargs: Any) -> Any:
        response = self._request(method, path, token=token, **kwargs)
        if not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Repository content
    # ------------------------------------------------------------------

    def get_file_content(
        self,
        owner: str,
        repo: str,
        path: str,
        token: str | None = None,
        ref: str | None = None,
    ) -> str:
        """Return the decoded text of a file.

        Raises:
            GitHubAPIError: If the path is missing or is not a file.
        """
        params = {"ref": ref} if ref else None
        data = self._json(
            "GET", f"/repos/{owner}/{repo}/contents/{path.lstrip('/')}", token, params=params
        )
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            raise GitHubAPIError(f"'{path}' is not a file", 422)
        if data.get("encoding") == "base64":
            return base64.b64decode(data.get("content", "")).decode("utf-8", errors="replace")
        return str(data.get("content", ""))

    def file_exists(
        self,
        owner: str,
        repo: str,
        path: str,
        token: str | None = None,
        ref: str | None = None,
    ) -> bool:
        try:
            self.get_file_content(owner, repo, path, token=token, ref=ref)
        except GitHubAPIError as exc:
            if exc.status_code in (404, 422):
                return False
            raise
        return True

    def list_paths(
        self,
        owner: str,
        repo: str,
        token: str | None = None,
        ref: str | None = None,
    ) -> list[str]:
        """Return every blob path of the repository tree at ``ref``."""
        tree_ref = ref or self.get_default_branch(owner, repo, token)
        data = self._json(
            "GET",
            f"/repos/{owner}/{repo}/git/trees/{tree_ref}",
            token,
            params={"recursive": "1"},
        )
        if data.get("truncated"):
            logger.warning("Tree listing for %s/%s was truncated by GitHub", owner, repo)
        return [entry["path"] for entry in data.get("tree", []) if entry.get("type") == "blob"]

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def fetch_issue(
        self, owner: str, repo: str, issue_number: int, token: str | None = None
    ) -> dict[str, Any]:
        return self._json("GET", f"/repos/{owner}/{repo}/issues/{issue_number}", token)

    def post_issue_comment(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        body: str,
        token: str | None = None,
    ) -> dict[str, Any]:
        return self._json(
            "POST",
            f"/repos/{owner}/{repo}/issues/{issue_number}/comments",
            token,
            json={"body": body},
        )

    # ------------------------------------------------------------------
    # Git data
    # ------------------------------------------------------------------

    def get_default_branch(self, owner: str, repo: str, token: str | None = None) -> str:
        data = self._json("GET", f"/repos/{owner}/{repo}", token)
        return data["default_branch"]

    def get_branch_sha(
        self, owner: str, repo: str, branch: str, token: str | None = None
    ) -> str:
        data = self._json("GET", f"/repos/{owner}/{repo}/git/ref/heads/{branch}", token)
        return data["object"]["sha"]

    def get_commit_tree_sha(
        self, owner: str, repo: str, commit_sha: str, token: str | None = None
    ) -> str:
        data = self._json("GET", f"/repos/{owner}/{repo}/git/commits/{commit_sha}", token)
        return data["tree"]["sha"]

    def create_branch(
        self, owner: str, repo: str, branch: str, sha: str, token: str | None = None
    ) -> dict[str, Any]:
        return self._json(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            token,
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )

    def create_tree(
        self,
        owner: str,
        repo: str,
        base_tree: str,
        entries: list[dict[str, str]],
        token: str | None = None,
    ) -> str:
        data = self._json(
            "POST",
            f"/repos/{owner}/{repo}/git/trees",
            token,
            json={"base_tree": base_tree, "tree": entries},
        )
        return data["sha"]

    def create_commit(
        self,
        owner: str,
        repo: str,
        message: str,
        tree_sha: str,
        parent_sha: str,
        token: str | None = None,
    ) -> str:
        data = self._json(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            token,
            json={"message": message, "tree": tree_sha, "parents": [parent_sha]},
        )
        return data["sha"]

    def update_ref(
        self, owner: str, repo: str, branch: str, sha: str, token: str | None = None
    ) -> dict[str, Any]:
        return self._json(
            "PATCH",
            f"/repos/{owner}/{repo}/git/refs/heads/{branch}",
            token,
            json={"sha": sha, "force": False},
        )

    def create_draft_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        head: str,
        base: str,
        labels: list[str] | None = None,
        token: str | None = None,
    ) -> dict[str, Any]:
        pr = self._json(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            token,
            json={"title": title, "body": body, "head": head, "base": base, "draft": True},
        )
        if labels:
            self._json(
                "POST",
                f"/repos/{owner}/{repo}/issues/{pr['number']}/labels",
                token,
                json={"labels": labels},
            )
        return pr
