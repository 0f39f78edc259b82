"""Go import path to repository root resolution."""

import logging
import re
from dataclasses import dataclass

import httpx
from bs4 import BeautifulSoup

from .errors import ResolutionFailed

logger = logging.getLogger(__name__)

_SEGMENT = r"[A-Za-z0-9_.\-]+"

# Hosts whose repository root can be read off the import path directly.
STATIC_HOSTS: list[tuple[re.Pattern, str]] = [
    (re.compile(rf"^(github\.com/{_SEGMENT}/{_SEGMENT})(/{_SEGMENT})*$"), "git"),
    (re.compile(rf"^(bitbucket\.org/{_SEGMENT}/{_SEGMENT})(/{_SEGMENT})*$"), "git"),
    (re.compile(rf"^(launchpad\.net/(?:{_SEGMENT})(?:/{_SEGMENT})?)(/{_SEGMENT})*$"), "bzr"),
]


@dataclass(frozen=True)
class ImportRoot:
    """Repository serving an import path."""

    prefix: str
    vcs: str
    repo: str


def parse_go_import_meta(body: str) -> list[ImportRoot]:
    """Extract every go-import meta tag from an HTML page.

    Args:
        body: HTML returned for ?go-get=1

    Returns:
        Import roots in document order
    """
    roots = []
    soup = BeautifulSoup(body, "html.parser")
    for tag in soup.find_all("meta", attrs={"name": "go-import"}):
        fields = (tag.get("content") or "").split()
        if len(fields) != 3:
            continue
        roots.append(ImportRoot(prefix=fields[0], vcs=fields[1], repo=fields[2]))
    return roots


def _matches_prefix(import_path: str, prefix: str) -> bool:
    return import_path == prefix or import_path.startswith(prefix + "/")


class ImportPathResolver:
    """Resolver for Go import paths to their source repositories."""

    def __init__(self, timeout: float = 30.0):
        """Initialize import path resolver.

        Args:
            timeout: Request timeout in seconds for go-get discovery
        """
        self.timeout = timeout
        self._cache: dict[str, ImportRoot] = {}

    async def resolve(self, import_path: str) -> ImportRoot:
        """Find the repository root serving an import path.

        Args:
            import_path: Go import path, e.g. golang.org/x/tools

        Returns:
            The repository root with its VCS

        Raises:
            ResolutionFailed: If the path cannot be mapped to a repository
        """
        import_path = import_path.strip().strip("/")
        if not import_path:
            raise ResolutionFailed("empty import path")

        if import_path in self._cache:
            return self._cache[import_path]

        for pattern, vcs in STATIC_HOSTS:
            m = pattern.match(import_path)
            if m:
                root = ImportRoot(prefix=m.group(1), vcs=vcs, repo=f"https://{m.group(1)}")
                break
        else:
            root = await self._discover(import_path)

        self._cache[import_path] = root
        return root

    async def _discover(self, import_path: str) -> ImportRoot:
        url = f"https://{import_path}?go-get=1"
        logger.debug("%s: Fetching %s", import_path, url)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.TimeoutException as e:
            raise ResolutionFailed(f"timeout fetching {url}") from e
        except httpx.HTTPStatusError as e:
            raise ResolutionFailed(f"HTTP error fetching {url}: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ResolutionFailed(f"network error fetching {url}: {e}") from e

        roots = [
            root for root in parse_go_import_meta(response.text)
            if _matches_prefix(import_path, root.prefix)
        ]
        # module proxies announce "mod" alongside the real VCS
        candidates = [root for root in roots if root.vcs != "mod"] or roots
        if not candidates:
            raise ResolutionFailed(f"no go-import meta tag for {import_path} at {url}")
        if len({(root.vcs, root.repo) for root in candidates}) > 1:
            raise ResolutionFailed(f"conflicting go-import meta tags for {import_path}")
        return candidates[0]
