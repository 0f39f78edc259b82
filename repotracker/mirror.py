"""Local git mirrors of upstream repositories.

All git commands go through GitRunner, which makes them easy to replace
in tests. MirrorCache owns one working tree per remote under a single
cache root and guards each tree with a reader/writer lock: a sync is
exclusive, queries may share.
"""

import asyncio
import contextlib
import logging
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

from .errors import GitCommandFailed, SyncFailed
from .models import Mirror

logger = logging.getLogger(__name__)

PATH_UNSAFE_RE = re.compile(r"[^\w]+")
# git@github.com:owner/repo.git
SCP_LIKE_RE = re.compile(r"^(?:[^@/]+@)?([^:/]+):(?!//)(.+)$")


@dataclass(frozen=True)
class GitResult:
    """Outcome of one git command."""

    args: list[str]
    returncode: int
    stdout: str
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    await proc.wait()


class GitRunner:
    """Runs git as a subprocess and collects its combined output."""

    def __init__(self, git: str = "git", timeout: float | None = None):
        """Initialize git runner.

        Args:
            git: Git executable
            timeout: Per-command timeout in seconds, None to wait forever
        """
        self.git = git
        self.timeout = timeout

    async def run(self, *args: str, cwd: Path) -> GitResult:
        command = [self.git, *args]
        logger.debug("Running `%s` in %s", " ".join(command), cwd)

        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                cwd=cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return GitResult(command, -1, "", str(e))

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            await _terminate(proc)
            return GitResult(command, -1, "", f"timed out after {self.timeout}s")
        except asyncio.CancelledError:
            await _terminate(proc)
            raise

        return GitResult(
            command,
            proc.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )


class _ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self):
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writing = False

    @contextlib.asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writing)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                self._cond.notify_all()

    @contextlib.asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writing and self._readers == 0)
            self._writing = True
        try:
            yield
        finally:
            async with self._cond:
                self._writing = False
                self._cond.notify_all()


def mirror_dir_parts(url: str) -> tuple[str, str]:
    """Split a remote URL into sanitized host and repository path parts."""
    m = SCP_LIKE_RE.match(url)
    if m and "://" not in url:
        host, path = m.group(1), m.group(2)
    else:
        u = urlsplit(url)
        host, path = u.hostname or "", u.path

    repo = path.strip("/").removesuffix(".git")
    return PATH_UNSAFE_RE.sub("_", host), PATH_UNSAFE_RE.sub("_", repo)


def _is_dir_empty(path: Path) -> bool:
    return not any(path.iterdir())


class MirrorCache:
    """Owns the local mirrors of every remote seen in a run."""

    def __init__(self, root: Path, runner: GitRunner | None = None, branch: str | None = None):
        """Initialize mirror cache.

        Args:
            root: Directory holding all mirrors
            runner: Git command runner
            branch: Branch to fast-forward to; None follows the clone's upstream
        """
        self.root = Path(root)
        self.runner = runner or GitRunner()
        self.branch = branch
        self._locks: dict[Path, _ReadWriteLock] = {}

    def path_for(self, url: str) -> Path:
        host, repo = mirror_dir_parts(url)
        return self.root / host / repo

    def _lock(self, path: Path) -> _ReadWriteLock:
        return self._locks.setdefault(path, _ReadWriteLock())

    async def acquire(self, url: str) -> Mirror:
        """Return an up-to-date mirror of url, cloning it on first use.

        Args:
            url: Git remote

        Returns:
            The synced mirror

        Raises:
            SyncFailed: If cloning or refreshing fails
        """
        mirror = Mirror(url=url, path=self.path_for(url))
        async with self._lock(mirror.path).write():
            try:
                mirror.path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise SyncFailed(["mkdir", str(mirror.path)], str(e)) from e

            if _is_dir_empty(mirror.path):
                logger.info("%s: Cloning into %s", url, mirror.path)
                await self._sync_step(mirror, "clone", "--quiet", url, ".")
            else:
                logger.info("%s: Refreshing %s", url, mirror.path)
                upstream = f"origin/{self.branch}" if self.branch else "@{upstream}"
                await self._sync_step(mirror, "fetch", "--quiet", "--tags", "--force", "origin")
                await self._sync_step(mirror, "merge", "--ff-only", "--quiet", upstream)
        return mirror

    async def _sync_step(self, mirror: Mirror, *args: str) -> None:
        result = await self.runner.run(*args, cwd=mirror.path)
        if not result.ok:
            raise SyncFailed(result.args, result.output, result.returncode)

    async def query(self, mirror: Mirror, *args: str) -> GitResult:
        """Run a read-only git command against a synced mirror."""
        async with self._lock(mirror.path).read():
            return await self.runner.run(*args, cwd=mirror.path)

    async def has_revision(self, mirror: Mirror, revision: str) -> bool:
        result = await self.query(mirror, "cat-file", "-e", f"{revision}^{{commit}}")
        return result.ok

    async def rev_parse(self, mirror: Mirror, revision: str) -> str:
        result = await self.query(mirror, "rev-parse", "--verify", "--quiet", f"{revision}^{{commit}}")
        if not result.ok:
            raise GitCommandFailed(result.args, result.output, result.returncode)
        return result.stdout.strip()

    async def is_ancestor(self, mirror: Mirror, ancestor: str, descendant: str) -> bool:
        result = await self.query(mirror, "merge-base", "--is-ancestor", ancestor, descendant)
        if result.returncode in (0, 1):
            return result.ok
        raise GitCommandFailed(result.args, result.output, result.returncode)

    async def log(self, mirror: Mirror, *args: str) -> str:
        result = await self.query(mirror, "log", *args)
        if not result.ok:
            raise GitCommandFailed(result.args, result.output, result.returncode)
        return result.stdout
