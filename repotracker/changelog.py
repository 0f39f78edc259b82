"""Commit log extraction between a pinned revision and head."""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from packaging.version import InvalidVersion, Version

from .errors import MalformedLogRecord
from .mirror import MirrorCache
from .models import Commit, Mirror

logger = logging.getLogger(__name__)

FIELD_SEP = "\x00"
# hash, tag decorations, commit time, subject
LOG_FORMAT = "%H%x00%D%x00%ct%x00%s"
LOG_FIELDS = 4


def parse_tags(raw: str) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(ref.removeprefix("tag: ") for ref in raw.split(", "))


def parse_log_record(line: str) -> Commit:
    """Parse one `hash\\0refs\\0time\\0subject` record.

    Raises:
        MalformedLogRecord: If the field count or timestamp is wrong
    """
    parts = line.split(FIELD_SEP)
    if len(parts) != LOG_FIELDS:
        raise MalformedLogRecord(line, f"expected {LOG_FIELDS} fields, got {len(parts)}")

    sha, refs, epoch, title = parts
    try:
        ts = int(epoch)
    except ValueError:
        raise MalformedLogRecord(line, f"timestamp {epoch!r} is not a number")

    return Commit(
        hash=sha,
        tags=parse_tags(refs),
        timestamp=datetime.fromtimestamp(ts, tz=timezone.utc),
        title=title,
    )


def parse_log(output: str) -> list[Commit]:
    """Parse git log output produced with LOG_FORMAT.

    A single bad record fails the whole parse, since every field after
    a shifted separator would be wrong.

    Args:
        output: Raw git log stdout

    Returns:
        Commits in the order git emitted them (newest first)
    """
    return [parse_log_record(line) for line in output.split("\n") if line]


def _as_version(ref: str) -> Version | None:
    try:
        return Version(ref.removeprefix("v"))
    except InvalidVersion:
        return None


def semver_delta(pinned_revision: str, commits: Iterable[Commit]) -> str:
    """Classify the jump from a version-like pin to the newest version tag.

    Returns:
        "major", "minor", "patch", or "unknown"
    """
    old_ver = _as_version(pinned_revision) if pinned_revision else None
    if old_ver is None:
        return "unknown"

    new_ver = None
    for commit in commits:
        for tag in commit.tags:
            if (new_ver := _as_version(tag)) is not None:
                break
        if new_ver is not None:
            break

    if new_ver is None or new_ver <= old_ver:
        return "unknown"
    if new_ver.major > old_ver.major:
        return "major"
    if new_ver.minor > old_ver.minor:
        return "minor"
    if new_ver.micro > old_ver.micro:
        return "patch"
    return "unknown"


class CommitLogExtractor:
    """Reads the commits in a revision range out of a mirror."""

    def __init__(self, cache: MirrorCache, max_commits: int | None = None):
        self.cache = cache
        self.max_commits = max_commits

    async def extract(self, mirror: Mirror, from_rev: str, to_rev: str = "HEAD") -> list[Commit]:
        """Return the commits in (from_rev, to_rev], newest first.

        An empty from_rev means the whole history up to to_rev.

        Raises:
            GitCommandFailed: If git log fails
            MalformedLogRecord: If any record cannot be parsed
        """
        args = [
            f"--pretty=format:{LOG_FORMAT}",
            "--decorate=short",
            "--decorate-refs=refs/tags",
        ]
        if self.max_commits:
            args.append(f"--max-count={self.max_commits}")
        args.append(f"{from_rev}..{to_rev}" if from_rev else to_rev)
        args.append("--")

        output = await self.cache.log(mirror, *args)
        commits = parse_log(output)
        logger.debug("%s: %d commits in %s..%s", mirror, len(commits), from_rev, to_rev)
        return commits
