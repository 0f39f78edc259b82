"""Tests for dependency record resolution."""

from unittest.mock import AsyncMock

import pytest

from repotracker.errors import (
    NoRecognizedURL,
    ResolutionError,
    ResolutionFailed,
    UnsupportedHost,
    UnsupportedRuleClass,
)
from repotracker.importpath import ImportPathResolver, ImportRoot
from repotracker.models import ArchiveForm, DirectForm, PackageForm, RepoCoordinate
from repotracker.resolve import ARCHIVE_EXTRACTORS, RuleResolver, extract_archive_coordinate


def _resolver(root: ImportRoot | None = None, error: Exception | None = None) -> RuleResolver:
    import_resolver = AsyncMock(spec=ImportPathResolver)
    if error is not None:
        import_resolver.resolve.side_effect = error
    else:
        import_resolver.resolve.return_value = root
    return RuleResolver(import_resolver)


class TestArchiveExtraction:
    """Test hostname-keyed archive URL extractors."""

    def test_github_archive(self):
        assert extract_archive_coordinate("https://github.com/acme/widget/archive/v1.2.3.tar.gz") == \
            RepoCoordinate(url="https://github.com/acme/widget", revision="v1.2.3")

    def test_github_codeload(self):
        url = "https://codeload.github.com/acme/widget/tar.gz/5d2fd3ccab986d52112bf301d47a819783339d0e"
        assert extract_archive_coordinate(url) == RepoCoordinate(
            url="https://github.com/acme/widget",
            revision="5d2fd3ccab986d52112bf301d47a819783339d0e",
        )

    def test_github_archive_refs_tags(self):
        coordinate = extract_archive_coordinate("https://github.com/acme/widget/archive/refs/tags/v2.0.zip")
        assert coordinate.revision == "v2.0"

    def test_github_release_download(self):
        url = "https://github.com/bazelbuild/bazel-gazelle/releases/download/0.10.1/bazel-gazelle-0.10.1.tar.gz"
        assert extract_archive_coordinate(url) == RepoCoordinate(
            url="https://github.com/bazelbuild/bazel-gazelle", revision="0.10.1"
        )

    def test_gitlab_archive(self):
        url = "https://gitlab.com/group/sub/project/-/archive/v1.0/project-v1.0.tar.gz"
        assert extract_archive_coordinate(url) == RepoCoordinate(
            url="https://gitlab.com/group/sub/project", revision="v1.0"
        )

    def test_bitbucket_archive(self):
        assert extract_archive_coordinate("https://bitbucket.org/owner/repo/get/v3.1.tar.gz") == \
            RepoCoordinate(url="https://bitbucket.org/owner/repo", revision="v3.1")

    def test_bazel_mirror_redispatches(self):
        url = "https://mirror.bazel.build/github.com/acme/widget/archive/v1.2.3.tar.gz"
        assert extract_archive_coordinate(url) == RepoCoordinate(
            url="https://github.com/acme/widget", revision="v1.2.3"
        )

    def test_unknown_host(self):
        assert extract_archive_coordinate("https://example.com/acme/widget/archive/v1.tar.gz") is None

    @pytest.mark.parametrize("url", [
        "https://[bad/acme/widget/archive/v1.tar.gz",
        "https://mirror.bazel.build/[bad/a/b",
    ])
    def test_malformed_url(self, url):
        assert extract_archive_coordinate(url) is None

    def test_known_host_unknown_shape(self):
        assert extract_archive_coordinate("https://github.com/acme/widget/blob/main/README.md") is None

    def test_registry_is_open_for_extension(self, monkeypatch):
        """New hosts plug in without touching the matcher."""
        monkeypatch.setitem(
            ARCHIVE_EXTRACTORS,
            "git.example.com",
            lambda u: RepoCoordinate(url="https://git.example.com/x", revision=u.path.rsplit("/", 1)[-1]),
        )
        assert extract_archive_coordinate("https://git.example.com/dl/abc") == \
            RepoCoordinate(url="https://git.example.com/x", revision="abc")


class TestRuleResolver:
    """Test resolution of each dependency record form."""

    @pytest.mark.asyncio
    async def test_archive_first_matching_candidate_wins(self, caplog):
        record = ArchiveForm(
            name="widget",
            candidate_urls=(
                "https://mirror.example.com/widget-1.2.3.tar.gz",
                "https://github.com/acme/widget/archive/v1.2.3.tar.gz",
                "https://github.com/other/widget/archive/v9.tar.gz",
            ),
        )

        with caplog.at_level("WARNING"):
            coordinate = await _resolver().resolve(record)

        assert coordinate == RepoCoordinate(url="https://github.com/acme/widget", revision="v1.2.3")
        assert "mirror.example.com" in caplog.text

    @pytest.mark.asyncio
    async def test_archive_without_recognized_url(self):
        record = ArchiveForm(name="x", candidate_urls=("https://example.com/x.tar.gz", "http://[::1/bad"))
        with pytest.raises(NoRecognizedURL):
            await _resolver().resolve(record)

    @pytest.mark.asyncio
    async def test_archive_without_urls(self):
        with pytest.raises(NoRecognizedURL):
            await _resolver().resolve(ArchiveForm(name="x"))

    @pytest.mark.asyncio
    async def test_archive_skips_malformed_mirror_url(self):
        record = ArchiveForm(name="x", candidate_urls=(
            "https://mirror.bazel.build/[bad/a/b",
            "https://github.com/acme/widget/archive/v1.2.3.tar.gz",
        ))
        assert await _resolver().resolve(record) == RepoCoordinate(
            url="https://github.com/acme/widget", revision="v1.2.3"
        )

    @pytest.mark.asyncio
    async def test_direct_passes_through(self):
        record = DirectForm(name="w", remote_url="git@github.com:acme/widget.git", pinned_revision="abc")
        assert await _resolver().resolve(record) == RepoCoordinate(
            url="git@github.com:acme/widget.git", revision="abc"
        )

    @pytest.mark.asyncio
    async def test_direct_without_remote(self):
        with pytest.raises(ResolutionFailed):
            await _resolver().resolve(DirectForm(name="w", remote_url=""))

    @pytest.mark.asyncio
    async def test_package_resolves_through_import_path(self):
        resolver = _resolver(ImportRoot("golang.org/x/tools", "git", "https://go.googlesource.com/tools"))
        record = PackageForm(name="tools", import_path="golang.org/x/tools", pinned_revision="abc")

        coordinate = await resolver.resolve(record)

        assert coordinate == RepoCoordinate(url="https://go.googlesource.com/tools", revision="abc")
        resolver.import_resolver.resolve.assert_awaited_once_with("golang.org/x/tools")

    @pytest.mark.asyncio
    async def test_package_on_non_git_host(self):
        resolver = _resolver(ImportRoot("launchpad.net/gocheck", "bzr", "https://launchpad.net/gocheck"))
        with pytest.raises(UnsupportedHost):
            await resolver.resolve(PackageForm(name="gocheck", import_path="launchpad.net/gocheck"))

    @pytest.mark.asyncio
    async def test_package_resolution_failure_propagates(self):
        resolver = _resolver(error=ResolutionFailed("no go-import meta tag"))
        with pytest.raises(ResolutionFailed):
            await resolver.resolve(PackageForm(name="x", import_path="example.com/x"))

    @pytest.mark.asyncio
    async def test_package_remote_override_skips_lookup(self):
        resolver = _resolver()
        record = PackageForm(name="x", import_path="example.com/x", pinned_revision="v1",
                             remote="https://git.example.com/x", vcs="git")

        assert await resolver.resolve(record) == RepoCoordinate(url="https://git.example.com/x", revision="v1")
        resolver.import_resolver.resolve.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_package_remote_override_with_hg(self):
        record = PackageForm(name="x", import_path="example.com/x", remote="https://hg.example.com/x", vcs="hg")
        with pytest.raises(UnsupportedHost):
            await _resolver().resolve(record)

    @pytest.mark.asyncio
    async def test_unknown_record_type(self):
        with pytest.raises(UnsupportedRuleClass):
            await _resolver().resolve("not a record")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("record", [
        PackageForm(name="p", import_path="example.com/p"),
        ArchiveForm(name="a", candidate_urls=("ftp://example.com/a.tar.gz",)),
        ArchiveForm(name="m", candidate_urls=("https://mirror.bazel.build/[bad/a/b",)),
        DirectForm(name="d", remote_url=""),
    ])
    async def test_failures_are_typed(self, record):
        """Every form either resolves or raises a ResolutionError."""
        resolver = _resolver(error=ResolutionFailed("unreachable"))
        with pytest.raises(ResolutionError):
            await resolver.resolve(record)
