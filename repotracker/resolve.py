"""Dependency record to repository coordinate resolution."""

import logging
import re
from collections.abc import Callable
from urllib.parse import SplitResult, urlsplit

from .errors import NoRecognizedURL, ResolutionFailed, UnsupportedHost, UnsupportedRuleClass
from .importpath import ImportPathResolver
from .models import ArchiveForm, DependencyRecord, DirectForm, PackageForm, RepoCoordinate

logger = logging.getLogger(__name__)

# /google/containerregistry/archive/v0.0.27.tar.gz
# /acme/widget/archive/refs/tags/v1.2.3.zip
# /bazelbuild/bazel-gazelle/releases/download/0.10.1/bazel-gazelle-0.10.1.tar.gz
GITHUB_RE = re.compile(
    r"^/([^/]+)/([^/]+)/(?:"
    r"archive/(?:refs/(?:tags|heads)/)?([^/]+?)\.(?:tar\.gz|tgz|zip)"
    r"|releases/download/([^/]+)/[^/]+"
    r")$"
)
# /golang/tools/zip/5d2fd3ccab986d52112bf301d47a819783339d0e
GITHUB_CODELOAD_RE = re.compile(r"^/([^/]+)/([^/]+)/(?:[^/]+)/(.+)$")
# /group/subgroup/project/-/archive/v1.0/project-v1.0.tar.gz
GITLAB_RE = re.compile(r"^/(.+)/([^/]+)/-/archive/([^/]+)/[^/]+$")
# /owner/repo/get/v1.0.tar.gz
BITBUCKET_RE = re.compile(r"^/([^/]+)/([^/]+)/get/([^/]+?)\.(?:tar\.gz|tar\.bz2|zip)$")

ArchiveExtractor = Callable[[SplitResult], RepoCoordinate | None]


def _github(u: SplitResult) -> RepoCoordinate | None:
    m = GITHUB_RE.match(u.path)
    if not m:
        return None
    return RepoCoordinate(
        url=f"https://github.com/{m.group(1)}/{m.group(2)}",
        revision=m.group(3) or m.group(4),
    )


def _github_codeload(u: SplitResult) -> RepoCoordinate | None:
    m = GITHUB_CODELOAD_RE.match(u.path)
    if not m:
        return None
    return RepoCoordinate(url=f"https://github.com/{m.group(1)}/{m.group(2)}", revision=m.group(3))


def _gitlab(u: SplitResult) -> RepoCoordinate | None:
    m = GITLAB_RE.match(u.path)
    if not m:
        return None
    return RepoCoordinate(url=f"https://gitlab.com/{m.group(1)}/{m.group(2)}", revision=m.group(3))


def _bitbucket(u: SplitResult) -> RepoCoordinate | None:
    m = BITBUCKET_RE.match(u.path)
    if not m:
        return None
    return RepoCoordinate(url=f"https://bitbucket.org/{m.group(1)}/{m.group(2)}", revision=m.group(3))


def _bazel_mirror(u: SplitResult) -> RepoCoordinate | None:
    # https://mirror.bazel.build/github.com/acme/widget/archive/v1.tar.gz
    host, _, path = u.path.lstrip("/").partition("/")
    if not host:
        return None
    return extract_archive_coordinate(f"https://{host}/{path}")


ARCHIVE_EXTRACTORS: dict[str, ArchiveExtractor] = {
    "github.com": _github,
    "codeload.github.com": _github_codeload,
    "gitlab.com": _gitlab,
    "bitbucket.org": _bitbucket,
    "mirror.bazel.build": _bazel_mirror,
}


def extract_archive_coordinate(url: str) -> RepoCoordinate | None:
    """Match an archive URL against the registered host extractors.

    Args:
        url: Archive download URL

    Returns:
        The coordinate the archive was cut from, or None if the url is
        malformed or no extractor matches
    """
    try:
        u = urlsplit(url)
        host = u.hostname
    except ValueError:
        return None
    extractor = ARCHIVE_EXTRACTORS.get(host or "")
    if extractor is None:
        return None
    return extractor(u)


class RuleResolver:
    """Resolver from dependency records to canonical repo coordinates."""

    def __init__(self, import_resolver: ImportPathResolver | None = None):
        self.import_resolver = import_resolver or ImportPathResolver()

    async def resolve(self, record: DependencyRecord) -> RepoCoordinate:
        """Resolve a dependency record to its repository coordinate.

        Args:
            record: Record in any of the supported forms

        Returns:
            The canonical coordinate

        Raises:
            ResolutionError: If the record cannot be resolved
        """
        match record:
            case PackageForm():
                return await self._resolve_package(record)
            case ArchiveForm():
                return self._resolve_archive(record)
            case DirectForm():
                return self._resolve_direct(record)
            case _:
                raise UnsupportedRuleClass(type(record).__name__, str(record))

    async def _resolve_package(self, record: PackageForm) -> RepoCoordinate:
        if record.remote:
            if record.vcs not in (None, "git"):
                raise UnsupportedHost(f"{record}: remote uses an unsupported VCS {record.vcs!r}; want git")
            return RepoCoordinate(url=record.remote, revision=record.pinned_revision)

        root = await self.import_resolver.resolve(record.import_path)
        if root.vcs != "git":
            raise UnsupportedHost(
                f"{record}: resolved repo {root.repo} uses an unsupported VCS {root.vcs!r}; want git"
            )
        return RepoCoordinate(url=root.repo, revision=record.pinned_revision)

    def _resolve_archive(self, record: ArchiveForm) -> RepoCoordinate:
        for url in record.candidate_urls:
            try:
                host = urlsplit(url).hostname
            except ValueError as e:
                logger.warning("%s: Malformed url %r, continue: %s", record, url, e)
                continue
            if host not in ARCHIVE_EXTRACTORS:
                logger.warning("%s: Unprocessable hostname in %r, continue.", record, url)
                continue
            coordinate = extract_archive_coordinate(url)
            if coordinate is None:
                logger.warning("%s: Failed to extract git repo from %r, continue.", record, url)
                continue
            return coordinate
        raise NoRecognizedURL(f"{record}: no recognized archive url in {list(record.candidate_urls)}")

    def _resolve_direct(self, record: DirectForm) -> RepoCoordinate:
        if not record.remote_url:
            raise ResolutionFailed(f"{record}: no remote declared")
        return RepoCoordinate(url=record.remote_url, revision=record.pinned_revision)
