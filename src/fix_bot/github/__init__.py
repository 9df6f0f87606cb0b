"""GitHub collaborator for repository access and change submission."""

from fix_bot.github.client import GitHubClient
from fix_bot.github.exceptions import GitHubAPIError, GitHubError, RateLimitError

__all__ = [
    "GitHubAPIError",
    "GitHubClient",
    "GitHubError",
    "RateLimitError",
]
