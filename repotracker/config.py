"""Run configuration for RepoTracker."""

import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .errors import ConfigError


class EmptyRevisionPolicy(str, Enum):
    """What to do with a dependency that pins no revision."""

    ALWAYS = "always"  # any head counts as an update
    SKIP = "skip"  # never check


REPORT_FORMATS = ("md", "gfmd", "json")


def default_cache_root() -> Path:
    return Path(tempfile.gettempdir()) / "repotracker"


@dataclass
class TrackerConfig:
    """Settings shared by every stage of a tracking run."""

    cache_root: Path = field(default_factory=default_cache_root)
    max_concurrency: int = 20
    empty_revision_policy: EmptyRevisionPolicy = EmptyRevisionPolicy.ALWAYS
    branch: str | None = None
    git_timeout: float | None = None
    http_timeout: float = 30.0
    max_commits: int | None = None
    report_format: str = "md"
    output_dir: Path | None = None

    def __post_init__(self):
        self.cache_root = Path(self.cache_root)
        if self.output_dir is not None:
            self.output_dir = Path(self.output_dir)
        if self.max_concurrency < 1:
            raise ConfigError(f"max_concurrency must be at least 1, got {self.max_concurrency}")
        if self.max_commits is not None and self.max_commits < 1:
            raise ConfigError(f"max_commits must be at least 1, got {self.max_commits}")
        if self.report_format not in REPORT_FORMATS:
            raise ConfigError(
                f"unknown report format {self.report_format!r}; choose one of {', '.join(REPORT_FORMATS)}"
            )
        try:
            self.empty_revision_policy = EmptyRevisionPolicy(self.empty_revision_policy)
        except ValueError:
            raise ConfigError(f"unknown empty revision policy {self.empty_revision_policy!r}")

    @property
    def report_dir(self) -> Path:
        return self.output_dir if self.output_dir is not None else self.cache_root / "reports"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides) -> "TrackerConfig":
        """Build a config from REPOTRACKER_* variables, then apply overrides.

        Args:
            environ: Mapping to read instead of os.environ
            **overrides: Explicit values; None means "not given"

        Returns:
            Validated configuration
        """
        env = os.environ if environ is None else environ
        values: dict = {}

        if cache_dir := env.get("REPOTRACKER_CACHE_DIR"):
            values["cache_root"] = Path(cache_dir)
        if branch := env.get("REPOTRACKER_BRANCH"):
            values["branch"] = branch
        if concurrency := env.get("REPOTRACKER_CONCURRENCY"):
            values["max_concurrency"] = _parse_number(int, "REPOTRACKER_CONCURRENCY", concurrency)
        if timeout := env.get("REPOTRACKER_GIT_TIMEOUT"):
            values["git_timeout"] = _parse_number(float, "REPOTRACKER_GIT_TIMEOUT", timeout)

        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


def _parse_number(kind, name: str, raw: str):
    try:
        return kind(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
