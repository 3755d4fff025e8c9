"""GitHub API client utilities."""

from .client import GitHubClient, ServerError, contents_url, get_token, parse_rate_limit, raw_url
from .models import GitHubContent, RateLimit

__all__ = [
    "GitHubClient",
    "GitHubContent",
    "RateLimit",
    "ServerError",
    "contents_url",
    "get_token",
    "parse_rate_limit",
    "raw_url",
]
