"""Exceptions raised by the GitHub REST client."""

from datetime import datetime, timezone


class GitHubError(Exception):
    """Base exception for GitHub operations."""


class GitHubAPIError(GitHubError):
    """Raised when the GitHub API answers with an error status."""

    def __init__(self, message: str, status_code: int, details: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class RateLimitError(GitHubAPIError):
    """Raised when the rate limit is still exhausted after the last attempt."""

    def __init__(self, reset_at: int) -> None:
        reset = datetime.fromtimestamp(reset_at, tz=timezone.utc).isoformat()
        super().__init__(f"GitHub API rate limit exceeded. Resets at {reset}", 429)
        self.reset_at = reset_at
