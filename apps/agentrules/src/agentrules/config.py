"""Endpoint configuration for recipe resolution."""

import hashlib
import logging
import os
from datetime import timedelta
from pathlib import Path
from urllib.parse import urlparse

from gh import contents_url, raw_url
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_REPOSITORY = "ubuntupunk/agent-rules-recipes"
DEFAULT_BRANCH = "main"
DEFAULT_RECIPES_PATH = "recipes"
DEFAULT_TTL = timedelta(hours=24)
DEFAULT_CACHE_DIR = Path.home() / ".agent-rules-cache"
DEFAULT_CONCURRENCY = 8
REQUEST_TIMEOUT = 10.0  # seconds


def _default_list_endpoint() -> str:
    owner, repo = DEFAULT_REPOSITORY.split("/")
    return contents_url(owner, repo, DEFAULT_RECIPES_PATH)


def _default_content_base() -> str:
    owner, repo = DEFAULT_REPOSITORY.split("/")
    return raw_url(owner, repo, DEFAULT_RECIPES_PATH, DEFAULT_BRANCH)


class EndpointConfig(BaseModel):
    """Where recipes come from and how long they stay fresh.

    One instance is owned by the process and handed to the remote client,
    cache store and resolver, so an ``update`` is seen by every later
    resolution.
    """

    model_config = ConfigDict(validate_assignment=True)

    list_endpoint: str = Field(default_factory=_default_list_endpoint)
    content_endpoint_base: str = Field(default_factory=_default_content_base)
    ttl: timedelta = DEFAULT_TTL
    allow_bundled_fallback: bool = True
    cache_dir: Path = DEFAULT_CACHE_DIR
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)
    timeout: float = REQUEST_TIMEOUT

    @field_validator("list_endpoint", "content_endpoint_base")
    @classmethod
    def _check_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"not a valid http(s) URL: {value!r}")
        return value.rstrip("/")

    @field_validator("ttl")
    @classmethod
    def _check_ttl(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("ttl must be positive")
        return value

    @property
    def fingerprint(self) -> str:
        """Identifies the remote source that produced a cache."""
        raw = f"{self.list_endpoint}\n{self.content_endpoint_base}"
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]

    def update(
        self,
        list_endpoint: str | None = None,
        content_endpoint_base: str | None = None,
        ttl: timedelta | None = None,
        allow_bundled_fallback: bool | None = None,
    ) -> "EndpointConfig":
        """
        Mutate settings in place. Unset arguments are left alone.

        Raises:
            ValueError: malformed URL or non-positive ttl
        """
        changes = {
            "list_endpoint": list_endpoint,
            "content_endpoint_base": content_endpoint_base,
            "ttl": ttl,
            "allow_bundled_fallback": allow_bundled_fallback,
        }
        for name, value in changes.items():
            if value is not None:
                setattr(self, name, value)
                logger.info("Endpoint config updated: %s=%s", name, value)
        return self

    def use_repository(
        self, repository: str, branch: str = DEFAULT_BRANCH, path: str = DEFAULT_RECIPES_PATH
    ) -> "EndpointConfig":
        """Point both endpoints at ``owner/repo`` on GitHub."""
        owner, repo = _split_repository(repository)
        return self.update(
            list_endpoint=contents_url(owner, repo, path),
            content_endpoint_base=raw_url(owner, repo, path, branch),
        )

    def reset(self) -> "EndpointConfig":
        """Restore endpoint, ttl and fallback defaults."""
        defaults = EndpointConfig()
        return self.update(
            list_endpoint=defaults.list_endpoint,
            content_endpoint_base=defaults.content_endpoint_base,
            ttl=defaults.ttl,
            allow_bundled_fallback=defaults.allow_bundled_fallback,
        )

    @classmethod
    def for_repository(
        cls, repository: str, branch: str = DEFAULT_BRANCH, path: str = DEFAULT_RECIPES_PATH
    ) -> "EndpointConfig":
        return cls().use_repository(repository, branch=branch, path=path)

    @classmethod
    def from_env(cls) -> "EndpointConfig":
        """Build a config, overriding defaults from AGENT_RULES_* variables."""
        config = cls()
        cache_dir = os.environ.get("AGENT_RULES_CACHE_DIR")
        if cache_dir:
            config.cache_dir = Path(cache_dir).expanduser()
        ttl_hours = os.environ.get("AGENT_RULES_CACHE_TTL_HOURS")
        allow_bundled = os.environ.get("AGENT_RULES_ALLOW_BUNDLED")
        return config.update(
            list_endpoint=os.environ.get("AGENT_RULES_LIST_ENDPOINT") or None,
            content_endpoint_base=os.environ.get("AGENT_RULES_CONTENT_BASE") or None,
            ttl=timedelta(hours=float(ttl_hours)) if ttl_hours else None,
            allow_bundled_fallback=(
                allow_bundled.lower() in ("1", "true", "yes") if allow_bundled else None
            ),
        )


def _split_repository(repository: str) -> tuple[str, str]:
    owner, _, repo = repository.strip().strip("/").partition("/")
    if not owner or not repo or "/" in repo:
        raise ValueError(f"repository must look like owner/repo, got {repository!r}")
    return owner, repo
