"""Recipe data models."""

from datetime import date, datetime, time, timedelta
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

KNOWN_CATEGORIES = (
    "Web Application",
    "Mobile App",
    "Desktop App",
    "API/Backend",
    "Library/Package",
    "CLI Tool",
    "Game Development",
    "Data Science",
    "Machine Learning",
    "DevOps",
    "Other",
)

TechLabel = str | int | float | bool


def _scalar_text(value: Any) -> Any:
    """Render YAML numbers, booleans and dates as text; leave anything else alone."""
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, (int, float)):
        return str(value)
    return value


class SourceType(str, Enum):
    """Where a recipe was originally loaded from."""

    REMOTE = "remote"
    LOCAL = "local"
    BUNDLED = "bundled"


class RecipeSource(BaseModel):
    """Recipe provenance."""

    origin: SourceType
    url: str | None = None
    fetched_at: datetime | None = None


class Recipe(BaseModel):
    """Technology-stack recipe."""

    model_config = ConfigDict(populate_by_name=True)

    key: str  # filename stem, stable across refreshes
    name: str
    description: str
    category: str
    tags: list[str] = Field(default_factory=list)
    tech_stack: dict[str, TechLabel] = Field(default_factory=dict, alias="techStack")
    rules_text: str | None = Field(default=None, alias="rulesText")
    version: str | None = None
    author: str | None = None
    source: RecipeSource

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        tags: list[str] = []
        for tag in value:
            tag = str(tag).strip()
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @field_validator("tech_stack", mode="before")
    @classmethod
    def _normalize_tech_stack(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        stack: dict[str, Any] = {}
        for role, label in value.items():
            if label is None:
                continue
            if isinstance(label, list):
                if any(isinstance(item, (dict, list)) for item in label):
                    raise ValueError(f"techStack.{role} must be a scalar or a list of scalars")
                label = ", ".join(str(item) for item in label)
            elif isinstance(label, dict):
                raise ValueError(f"techStack.{role} must be a scalar, got a mapping")
            elif isinstance(label, (date, time)):
                label = label.isoformat()
            stack[str(role)] = label
        return stack

    @field_validator("name", "description", "category", "version", "author", mode="before")
    @classmethod
    def _stringify_scalars(cls, value: Any) -> Any:
        # YAML reads `version: 1.0` as a float and `2024-01-01` as a date
        return _scalar_text(value)

    @property
    def has_known_category(self) -> bool:
        return self.category in KNOWN_CATEGORIES


class RemoteEntry(BaseModel):
    """Recipe file listed by the remote repository."""

    name: str
    content_url: str

    @property
    def key(self) -> str:
        return Path(self.name).stem


class CacheMetadata(BaseModel):
    """Metadata persisted next to cached recipe files."""

    version: int = 1
    last_update: datetime
    recipe_count: int
    source_fingerprint: str | None = None
    recipe_keys: list[str] = Field(default_factory=list)


class CacheInfo(BaseModel):
    """Cache status for display."""

    cache_dir: Path
    exists: bool
    metadata: CacheMetadata | None = None
    age: timedelta | None = None
    is_valid: bool = False
