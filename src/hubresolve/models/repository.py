"""Remote repository listing and metadata models."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RepoEntry(BaseModel):
    """One file or directory in a repository tree."""

    model_config = ConfigDict(frozen=True)

    path: str
    size_bytes: int = 0
    is_directory: bool = False

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def directory(self) -> str:
        """Parent directory of the entry, or ``""`` at the repository root."""
        return self.path.rsplit("/", 1)[0] if "/" in self.path else ""


class CachedListing(BaseModel):
    """A flattened file listing persisted for one (repo_id, revision)."""

    repo_id: str
    revision: str
    entries: list[RepoEntry] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def is_valid(self, ttl: timedelta) -> bool:
        return datetime.now(UTC) - self.fetched_at < ttl


class RepoMetadata(BaseModel):
    """Repository card metadata from the model API."""

    repo_id: str
    author: Optional[str] = None
    downloads: int = 0
    likes: int = 0
    tags: list[str] = Field(default_factory=list)
    pipeline_tag: Optional[str] = None
    library_name: Optional[str] = None
    license: Optional[str] = None
    last_modified: Optional[datetime] = None
    gated: bool = False
    private: bool = False
    description: Optional[str] = None
