"""Connection diagnostics for the recipe repository."""

import logging
import time
from typing import Any, Callable

from gh import RateLimit
from pydantic import BaseModel, Field

from .config import EndpointConfig
from .errors import RecipeError
from .models import RemoteEntry
from .remote import RemoteClient

logger = logging.getLogger(__name__)

LOW_RATE_LIMIT = 100


class ProbeResult(BaseModel):
    """Outcome of one diagnostic probe."""

    success: bool
    duration_ms: float
    error: str | None = None
    detail: dict[str, Any] = Field(default_factory=dict)


class DiagnosticReport(BaseModel):
    """Live state of the remote repository."""

    list_endpoint: str
    content_endpoint: str
    authenticated: bool
    tests: dict[str, ProbeResult] = Field(default_factory=dict)
    rate_limit: RateLimit | None = None

    @property
    def ok(self) -> bool:
        return bool(self.tests) and all(probe.success for probe in self.tests.values())

    @property
    def rate_limit_low(self) -> bool:
        return self.rate_limit is not None and self.rate_limit.remaining < LOW_RATE_LIMIT


def _probe(name: str, fn: Callable[[dict[str, Any]], None]) -> ProbeResult:
    """Run one probe. ``fn`` records what it checked in ``detail`` as it goes,
    so a failed probe still reports it."""
    detail: dict[str, Any] = {}
    start = time.perf_counter()
    try:
        fn(detail)
    except Exception as e:  # each probe reports its own failure
        elapsed = (time.perf_counter() - start) * 1000
        logger.warning("Probe %s failed (%.0fms): %s", name, elapsed, e)
        return ProbeResult(
            success=False, duration_ms=elapsed, error=str(e) or type(e).__name__, detail=detail
        )
    elapsed = (time.perf_counter() - start) * 1000
    logger.info("Probe %s passed (%.0fms)", name, elapsed)
    return ProbeResult(success=True, duration_ms=elapsed, detail=detail)


def test_connection(config: EndpointConfig, remote: RemoteClient | None = None) -> DiagnosticReport:
    """
    Probe the list endpoint, a content URL, rate limits and one download.

    Probes run independently; the cache and resolver are never touched.
    Never raises.
    """
    remote = remote or RemoteClient(config)
    entries: list[RemoteEntry] = []

    def list_endpoint(detail: dict[str, Any]) -> None:
        detail["url"] = config.list_endpoint
        entries.extend(remote.list_remote_entries())
        detail["file_count"] = len(entries)

    def content_endpoint(detail: dict[str, Any]) -> None:
        detail["url"] = entries[0].content_url if entries else config.content_endpoint_base
        detail["status"] = remote.check_url(detail["url"])

    def rate_limit(detail: dict[str, Any]) -> None:
        snapshot = remote.rate_limit or remote.probe_rate_limit()
        detail["available"] = snapshot is not None
        if snapshot is not None:
            detail["limit"] = snapshot.limit
            detail["remaining"] = snapshot.remaining

    def download(detail: dict[str, Any]) -> None:
        candidates = entries or remote.list_remote_entries()
        if not candidates:
            raise RecipeError("no recipe files listed to download")
        entry = candidates[0]
        detail["file"] = entry.name
        body = remote.fetch_content(entry.content_url)
        detail["size"] = len(body.encode("utf-8"))

    logger.info("Testing connection to %s", config.list_endpoint)
    tests = {
        "list_endpoint": _probe("list_endpoint", list_endpoint),
        "content_endpoint": _probe("content_endpoint", content_endpoint),
        "rate_limit": _probe("rate_limit", rate_limit),
        "download": _probe("download", download),
    }

    return DiagnosticReport(
        list_endpoint=config.list_endpoint,
        content_endpoint=config.content_endpoint_base,
        authenticated=remote.authenticated,
        tests=tests,
        rate_limit=remote.rate_limit,
    )
