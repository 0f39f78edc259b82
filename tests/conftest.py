"""Pytest configuration and fixtures."""

import asyncio
import json
import subprocess
from pathlib import Path

import pytest

from repotracker.mirror import GitResult


def git(cwd: Path, *args: str) -> str:
    """Run git with a throwaway identity and return its stdout."""
    result = subprocess.run(
        [
            "git",
            "-c", "user.name=Test",
            "-c", "user.email=test@example.com",
            "-c", "commit.gpgsign=false",
            "-c", "tag.gpgsign=false",
            *args,
        ],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


class Upstream:
    """A local repository standing in for a remote."""

    def __init__(self, path: Path):
        self.path = path
        path.mkdir(parents=True)
        git(path, "init", "--quiet")

    @property
    def url(self) -> str:
        return self.path.as_uri()

    def commit(self, title: str) -> str:
        git(self.path, "commit", "--quiet", "--allow-empty", "-m", title)
        return git(self.path, "rev-parse", "HEAD")

    def tag(self, name: str) -> None:
        git(self.path, "tag", name)


class FakeGitRunner:
    """Records git invocations and how many overlap per directory."""

    SYNC_COMMANDS = ("clone", "fetch", "merge")

    def __init__(self, delay: float = 0.01, fail_on: str | None = None):
        self.delay = delay
        self.fail_on = fail_on
        self.calls: list[tuple[Path, tuple[str, ...]]] = []
        self._active: dict[Path, int] = {}
        self._active_total = 0
        self.max_active_per_dir = 0
        self.max_active_total = 0
        self.sync_overlaps = 0
        self._syncing: dict[Path, int] = {}

    def commands(self, cwd: Path | None = None) -> list[str]:
        return [args[0] for path, args in self.calls if cwd is None or path == cwd]

    async def run(self, *args: str, cwd: Path) -> GitResult:
        self.calls.append((cwd, args))
        self._active[cwd] = self._active.get(cwd, 0) + 1
        self._active_total += 1
        self.max_active_per_dir = max(self.max_active_per_dir, self._active[cwd])
        self.max_active_total = max(self.max_active_total, self._active_total)
        is_sync = args[0] in self.SYNC_COMMANDS
        if (is_sync and self._active[cwd] > 1) or (not is_sync and self._syncing.get(cwd)):
            self.sync_overlaps += 1
        if is_sync:
            self._syncing[cwd] = self._syncing.get(cwd, 0) + 1
        try:
            await asyncio.sleep(self.delay)
            if args[0] == self.fail_on:
                return GitResult(["git", *args], 128, "", "fatal: repository not found")
            if args[0] == "clone":
                (Path(cwd) / ".git").mkdir()
            return GitResult(["git", *args], 0, "")
        finally:
            self._active[cwd] -= 1
            self._active_total -= 1
            if is_sync:
                self._syncing[cwd] -= 1


def rule(name: str, rule_class: str, **attrs) -> dict:
    """Build a jsonproto RULE target."""
    attribute = []
    for key, value in attrs.items():
        if isinstance(value, list):
            attribute.append({"name": key, "type": "STRING_LIST", "stringListValue": value})
        else:
            attribute.append({"name": key, "type": "STRING", "stringValue": value})
    return {
        "type": "RULE",
        "rule": {"name": f"//external:{name}", "ruleClass": rule_class, "attribute": attribute},
    }


@pytest.fixture
def sample_query():
    """jsonproto output with one rule of each supported kind."""
    return json.dumps({
        "target": [
            rule("org_golang_x_tools", "go_repository",
                 importpath="golang.org/x/tools", commit="5d2fd3ccab986d52112bf301d47a819783339d0e"),
            rule("com_github_acme_widget", "git_repository",
                 remote="https://github.com/acme/widget.git", tag="v1.2.3"),
            rule("io_bazel_rules_go", "http_archive",
                 urls=["https://mirror.example.com/rules_go.tar.gz",
                       "https://github.com/bazelbuild/rules_go/archive/0.10.1.tar.gz"]),
            rule("local_config", "local_repository", path="/tmp/local"),
            {"type": "SOURCE_FILE", "sourceFile": {"name": "//:BUILD"}},
        ]
    })


@pytest.fixture
def fake_runner():
    return FakeGitRunner()


@pytest.fixture
def runner_factory():
    return FakeGitRunner


@pytest.fixture
def make_rule():
    return rule


@pytest.fixture
def upstream(tmp_path):
    return Upstream(tmp_path / "upstream")
