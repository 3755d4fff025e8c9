"""Shared fixtures: a fake GitHub repository served through httpx.MockTransport."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

from agentrules.config import EndpointConfig
from agentrules.models import Recipe, RecipeSource, SourceType

LIST_URL = "https://api.github.test/repos/acme/recipes/contents/recipes"
RAW_BASE = "https://raw.github.test/acme/recipes/main/recipes"

RATE_HEADERS = {
    "X-RateLimit-Limit": "60",
    "X-RateLimit-Remaining": "57",
    "X-RateLimit-Reset": "1700000000",
}


def recipe_yaml(name: str, category: str = "Web Application", tags: str = "[react, web]") -> str:
    return (
        f"name: {name}\n"
        f"description: {name} starter\n"
        f"category: {category}\n"
        f"tags: {tags}\n"
        "techStack:\n"
        "  language: TypeScript\n"
        "  frontend: React\n"
        "agentRules: |\n"
        "  Use functional components.\n"
    )


MALFORMED_YAML = "name: [unclosed\ndescription: broken\n"


def make_recipe(key: str, **overrides) -> Recipe:
    fields = {
        "key": key,
        "name": key.replace("-", " ").title(),
        "description": f"{key} description",
        "category": "Web Application",
        "tags": ["web"],
        "tech_stack": {"language": "Python", "backend": "FastAPI"},
        "source": RecipeSource(
            origin=SourceType.REMOTE,
            url=f"{RAW_BASE}/{key}.yaml",
            fetched_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        ),
    }
    fields.update(overrides)
    return Recipe(**fields)


class FakeRepository:
    """In-memory stand-in for the GitHub contents API and raw host."""

    def __init__(self, files: dict[str, str] | None = None):
        self.files: dict[str, str] = dict(files or {})
        self.extra_listing: list[dict] = []
        self.list_status = 200
        self.list_body: object | None = None
        self.content_status: dict[str, int] = {}
        self.timeouts: set[str] = set()
        self.redirect_loops: set[str] = set()
        self.rate_headers = dict(RATE_HEADERS)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url in self.timeouts:
            raise httpx.ReadTimeout("timed out", request=request)
        if url in self.redirect_loops:
            return httpx.Response(302, headers={"Location": url})

        if url == LIST_URL:
            if self.list_status != 200:
                return httpx.Response(
                    self.list_status,
                    json={"message": "API rate limit exceeded"},
                    headers=self.rate_headers,
                )
            listing = self.list_body
            if listing is None:
                listing = [
                    {"name": name, "type": "file", "download_url": f"{RAW_BASE}/{name}"}
                    for name in self.files
                ] + self.extra_listing
            return httpx.Response(200, json=listing, headers=self.rate_headers)

        if url.startswith(RAW_BASE + "/"):
            name = url[len(RAW_BASE) + 1:]
            status = self.content_status.get(name, 200 if name in self.files else 404)
            if status != 200:
                return httpx.Response(status, text="404: Not Found")
            return httpx.Response(200, text=self.files[name])

        return httpx.Response(404, json={"message": "Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, prefix: str) -> int:
        return sum(1 for request in self.requests if str(request.url).startswith(prefix))


class FakeClock:
    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture(autouse=True)
def no_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GH_TOKEN", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def config(cache_dir: Path) -> EndpointConfig:
    return EndpointConfig(
        list_endpoint=LIST_URL,
        content_endpoint_base=RAW_BASE,
        cache_dir=cache_dir,
    )


@pytest.fixture
def repo() -> FakeRepository:
    return FakeRepository({"react-app.yaml": recipe_yaml("React App")})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
