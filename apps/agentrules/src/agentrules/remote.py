"""Remote recipe repository client."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, TypeVar
from urllib.parse import quote

import httpx
from gh import GitHubClient, RateLimit

from .config import EndpointConfig
from .errors import RemoteError, RemoteTimeout, RemoteUnavailable
from .models import RemoteEntry
from .parser import is_recipe_file

logger = logging.getLogger(__name__)

USER_AGENT = "agent-rules-generator/0.1.0"

T = TypeVar("T")


def _error_message(response: httpx.Response) -> str | None:
    """Pull the ``message`` field out of a JSON error body."""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase or None


class RemoteClient:
    """Lists and downloads recipe files from the configured repository.

    Performs no caching and no retries; both belong to the caller.
    """

    def __init__(
        self,
        config: EndpointConfig,
        token: str | None = None,
        transport: httpx.BaseTransport | None = None,
        client: GitHubClient | None = None,
    ):
        """
        Initialize remote client.

        Args:
            config: Shared endpoint configuration (read on every call)
            token: GitHub token (falls back to GH_TOKEN / GITHUB_TOKEN)
            transport: Custom httpx transport (used by tests)
            client: Pre-built GitHub client
        """
        self.config = config
        self.client = client or GitHubClient(
            token=token,
            timeout=config.timeout,
            max_retries=1,
            user_agent=USER_AGENT,
            transport=transport,
        )

    @property
    def rate_limit(self) -> RateLimit | None:
        """Last rate limit counters seen, if the server sent any."""
        return self.client.rate_limit

    @property
    def authenticated(self) -> bool:
        return self.client.authenticated

    def content_url(self, name: str) -> str:
        return f"{self.config.content_endpoint_base}/{quote(name)}"

    def _call(self, url: str, fn: Callable[[str], T]) -> T:
        """Run a request, translating httpx errors into RemoteError."""
        try:
            return fn(url)
        except httpx.TimeoutException as e:
            raise RemoteTimeout(url, self.config.timeout) from e
        except httpx.HTTPStatusError as e:
            raise RemoteUnavailable(url, e.response.status_code, _error_message(e.response)) from e
        except httpx.HTTPError as e:
            # transport failures, redirect loops, undecodable bodies
            raise RemoteUnavailable(url, message=str(e) or type(e).__name__) from e

    def list_remote_entries(self) -> list[RemoteEntry]:
        """
        List recipe files in the remote repository.

        Returns:
            Entries for ``.yaml``, ``.yml`` and ``.json`` files only

        Raises:
            RemoteUnavailable: non-2xx response, connection failure or bad payload
            RemoteTimeout: request timed out
        """
        url = self.config.list_endpoint
        logger.info("Listing remote recipes: %s", url)
        try:
            items = self._call(url, self.client.list_directory)
        except (ValueError, TypeError) as e:
            # pydantic ValidationError is a ValueError
            raise RemoteUnavailable(url, message=f"unexpected listing payload: {e}") from e

        entries = [
            RemoteEntry(name=item.name, content_url=self.content_url(item.name))
            for item in items
            if item.is_file and is_recipe_file(item.name)
        ]
        logger.info("Found %d recipe files (%d items listed)", len(entries), len(items))
        return entries

    def fetch_content(self, content_url: str) -> str:
        """
        Download one recipe body.

        Raises:
            RemoteUnavailable: non-2xx response or connection failure
            RemoteTimeout: request timed out
        """
        logger.debug("Fetching %s", content_url)
        return self._call(content_url, self.client.download)

    def fetch_all(
        self, entries: list[RemoteEntry]
    ) -> tuple[dict[str, str], dict[str, RemoteError]]:
        """
        Download many entries with bounded concurrency.

        Args:
            entries: Entries from ``list_remote_entries``

        Returns:
            (contents by entry name in listing order, errors by entry name)
        """
        results: dict[str, str] = {}
        errors: dict[str, RemoteError] = {}

        def fetch_one(entry: RemoteEntry) -> str:
            return self.fetch_content(entry.content_url)

        with ThreadPoolExecutor(max_workers=self.config.concurrency) as pool:
            futures = {pool.submit(fetch_one, entry): entry for entry in entries}
            for future in as_completed(futures):
                entry = futures[future]
                try:
                    results[entry.name] = future.result()
                except RemoteError as e:
                    logger.warning("Failed to fetch %s: %s", entry.name, e)
                    errors[entry.name] = e

        ordered = {entry.name: results[entry.name] for entry in entries if entry.name in results}
        logger.info("Fetched %d/%d recipe files", len(ordered), len(entries))
        return ordered, errors

    def check_url(self, url: str) -> int:
        """HEAD a URL, returning the status code of a 2xx answer."""
        return self._call(url, self.client.head).status_code

    def probe_rate_limit(self) -> RateLimit | None:
        """HEAD the list endpoint to capture rate limit headers."""
        self.check_url(self.config.list_endpoint)
        return self.client.rate_limit
