"""Core data models for RepoTracker."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path


@dataclass(frozen=True)
class PackageForm:
    """A dependency declared by its language-package import path."""

    name: str
    import_path: str
    pinned_revision: str = ""
    remote: str | None = None  # explicit remote override, skips path resolution
    vcs: str | None = None

    def __str__(self) -> str:
        return self.name or self.import_path


@dataclass(frozen=True)
class ArchiveForm:
    """A dependency fetched as an HTTP archive from one of several URLs."""

    name: str
    candidate_urls: tuple[str, ...] = ()

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class DirectForm:
    """A dependency declared directly by its source-control remote."""

    name: str
    remote_url: str
    pinned_revision: str = ""

    def __str__(self) -> str:
        return self.name or self.remote_url


DependencyRecord = PackageForm | ArchiveForm | DirectForm


@dataclass(frozen=True)
class RepoCoordinate:
    """Canonical remote URL and pinned revision of a dependency."""

    url: str
    revision: str = ""

    def __str__(self) -> str:
        return f"{self.url}@{self.revision}" if self.revision else self.url


@dataclass(frozen=True)
class Mirror:
    """A local clone of a remote, owned by the mirror cache."""

    url: str
    path: Path

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class Commit:
    """A single entry of a commit log."""

    hash: str
    tags: tuple[str, ...]
    timestamp: datetime
    title: str


@dataclass(frozen=True)
class Changelog:
    """Commits a dependency is behind by, newest first."""

    record: DependencyRecord
    coordinate: RepoCoordinate
    mirror: Mirror
    commits: tuple[Commit, ...]
    semver_delta: str = "unknown"  # major, minor, patch, unknown

    @property
    def web_url(self) -> str:
        return self.coordinate.url.removesuffix(".git").rstrip("/")

    def commit_url(self, hash: str) -> str:
        return f"{self.web_url}/commit/{hash}"

    def tag_url(self, tag: str) -> str:
        return f"{self.web_url}/releases/tag/{tag}"

    @property
    def latest_tag(self) -> str | None:
        for commit in self.commits:
            if commit.tags:
                return commit.tags[0]
        return None


@dataclass
class RunSummary:
    """Outcome counts of one tracking run."""

    checked: int = 0
    updated: int = 0
    up_to_date: int = 0
    skipped: int = 0
    failures: dict[str, list[str]] = field(default_factory=dict)

    @property
    def failed(self) -> int:
        return sum(len(names) for names in self.failures.values())

    def record_failure(self, stage: str, name: str) -> None:
        self.failures.setdefault(stage, []).append(name)
