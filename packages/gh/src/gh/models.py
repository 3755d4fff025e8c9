"""GitHub API data models."""

from datetime import datetime

from pydantic import BaseModel


class GitHubContent(BaseModel):
    """Entry of a contents directory listing.

    Only ``name`` and ``type`` are guaranteed; mirrors and custom endpoints
    often return a trimmed-down payload.
    """

    name: str
    type: str = "file"  # file | dir | symlink | submodule
    path: str | None = None
    sha: str | None = None
    size: int | None = None
    html_url: str | None = None
    download_url: str | None = None

    @property
    def is_file(self) -> bool:
        return self.type == "file"


class RateLimit(BaseModel):
    """Rate limit counters from ``X-RateLimit-*`` response headers."""

    limit: int
    remaining: int
    reset_at: datetime | None = None
    resource: str | None = None

    @property
    def is_exhausted(self) -> bool:
        return self.remaining <= 0
