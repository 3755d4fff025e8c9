"""GitHub API client."""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Mapping

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from .models import GitHubContent, RateLimit

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
RAW_URL = "https://raw.githubusercontent.com"

# Retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 10  # seconds


class ServerError(httpx.HTTPStatusError):
    """5xx response, eligible for retry."""


RETRYABLE_EXCEPTIONS = (
    httpx.TransportError,
    ServerError,
)


def get_token(token: str | None = None) -> str | None:
    """
    Get GitHub token.

    Priority:
    1. Explicitly provided token
    2. Environment variable GH_TOKEN / GITHUB_TOKEN

    Args:
        token: Explicitly provided token

    Returns:
        GitHub token or None
    """
    if token:
        logger.debug("Using explicitly provided token")
        return token

    env_token = os.environ.get("GH_TOKEN") or os.environ.get("GITHUB_TOKEN")
    if env_token:
        logger.debug("Using token from environment variable")
        return env_token

    return None


def contents_url(owner: str, repo: str, path: str = "", ref: str | None = None) -> str:
    """Contents API URL for a path in a repository."""
    url = f"{API_URL}/repos/{owner}/{repo}/contents/{path.strip('/')}"
    return f"{url}?ref={ref}" if ref else url


def raw_url(owner: str, repo: str, path: str = "", ref: str = "main") -> str:
    """Raw content base URL for a path in a repository."""
    return f"{RAW_URL}/{owner}/{repo}/{ref}/{path.strip('/')}".rstrip("/")


def parse_rate_limit(headers: Mapping[str, str]) -> RateLimit | None:
    """
    Parse rate limit counters from response headers.

    Returns:
        RateLimit, or None when the headers are absent or unreadable
    """
    limit = headers.get("x-ratelimit-limit")
    remaining = headers.get("x-ratelimit-remaining")
    if limit is None or remaining is None:
        return None
    try:
        reset = headers.get("x-ratelimit-reset")
        reset_at = datetime.fromtimestamp(int(reset), tz=timezone.utc) if reset else None
        return RateLimit(
            limit=int(limit),
            remaining=int(remaining),
            reset_at=reset_at,
            resource=headers.get("x-ratelimit-resource"),
        )
    except ValueError:
        logger.debug("Unreadable rate limit headers: limit=%s remaining=%s", limit, remaining)
        return None


def create_retry_decorator(max_retries: int = DEFAULT_MAX_RETRIES):
    """Create a retry decorator with specified max retries."""
    return retry(
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        stop=stop_after_attempt(max(1, max_retries)),
        wait=wait_exponential(multiplier=1, min=DEFAULT_MIN_WAIT, max=DEFAULT_MAX_WAIT),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


class GitHubClient:
    """GitHub REST client for contents listings and raw downloads."""

    USER_AGENT = "agent-rules-github-client"

    def __init__(
        self,
        token: str | None = None,
        timeout: float = 30.0,
        max_retries: int = DEFAULT_MAX_RETRIES,
        user_agent: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token: GitHub personal access token (falls back to GH_TOKEN / GITHUB_TOKEN)
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts per request (1 disables retry)
            user_agent: Identifying User-Agent header
            transport: Custom httpx transport (used by tests)
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.transport = transport
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": user_agent or self.USER_AGENT,
        }
        self.rate_limit: RateLimit | None = None

        resolved_token = get_token(token)
        self.authenticated = resolved_token is not None
        if resolved_token:
            self.headers["Authorization"] = f"token {resolved_token}"
            logger.debug("GitHub client initialized with token")
        else:
            logger.info("GitHub client initialized without token (rate limited)")

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.timeout,
            headers=self.headers,
            transport=self.transport,
            follow_redirects=True,
        )

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Make an HTTP request, recording rate limit headers.

        Raises:
            httpx.HTTPStatusError: non-2xx response (ServerError for 5xx)
            httpx.TransportError: connection failure or timeout
        """

        @create_retry_decorator(self.max_retries)
        def do_request() -> httpx.Response:
            logger.debug("Request: %s %s", method, url)
            with self._client() as client:
                response = client.request(method, url, **kwargs)
            logger.debug("Response: %s %s (status=%d)", method, url, response.status_code)

            rate_limit = parse_rate_limit(response.headers)
            if rate_limit is not None:
                self.rate_limit = rate_limit

            if response.status_code >= 500:
                logger.warning("Server error %d from %s", response.status_code, url)
                raise ServerError(
                    f"Server error {response.status_code}",
                    request=response.request,
                    response=response,
                )
            response.raise_for_status()
            return response

        return do_request()

    def list_directory(self, url: str) -> list[GitHubContent]:
        """
        List a contents directory.

        Args:
            url: Contents API URL (see ``contents_url``)

        Returns:
            List of GitHubContent items
        """
        response = self.request("GET", url)
        data = response.json()

        # Contents API answers with a single object for file paths
        if isinstance(data, dict):
            logger.debug("Single item response: %s", data.get("name"))
            return [GitHubContent(**data)]

        logger.debug("Directory listing: %d items", len(data))
        return [GitHubContent(**item) for item in data]

    def download(self, url: str) -> str:
        """Download raw file content."""
        response = self.request("GET", url)
        logger.debug("Downloaded %s (%d bytes)", url, len(response.content))
        return response.text

    def head(self, url: str) -> httpx.Response:
        """HEAD request, mainly to read headers cheaply."""
        return self.request("HEAD", url)
