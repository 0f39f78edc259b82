"""Update detection for pinned revisions."""

import logging

from .config import EmptyRevisionPolicy
from .errors import RevisionNotFound
from .mirror import MirrorCache
from .models import Mirror

logger = logging.getLogger(__name__)


class UpdateDetector:
    """Decides whether a mirror's head has moved past a pinned revision."""

    def __init__(
        self,
        cache: MirrorCache,
        empty_revision_policy: EmptyRevisionPolicy = EmptyRevisionPolicy.ALWAYS,
    ):
        self.cache = cache
        self.empty_revision_policy = EmptyRevisionPolicy(empty_revision_policy)

    async def has_update(self, mirror: Mirror, pinned_revision: str, head_ref: str = "HEAD") -> bool:
        """Check if head_ref strictly descends from pinned_revision.

        Args:
            mirror: A synced mirror
            pinned_revision: Revision the dependency is pinned to, may be empty
            head_ref: Revision considered the latest state

        Returns:
            True if pinned_revision is an ancestor of head_ref and differs from it

        Raises:
            RevisionNotFound: If pinned_revision is not in the mirror's history
        """
        if not pinned_revision:
            if self.empty_revision_policy is EmptyRevisionPolicy.SKIP:
                logger.info("%s: No pinned revision, skipping update check", mirror)
                return False
            return True

        if not await self.cache.has_revision(mirror, pinned_revision):
            raise RevisionNotFound(pinned_revision, mirror.url)

        pinned = await self.cache.rev_parse(mirror, pinned_revision)
        head = await self.cache.rev_parse(mirror, head_ref)
        if pinned == head:
            return False

        # a pin on a side branch that head never merged is not behind
        return await self.cache.is_ancestor(mirror, pinned, head)
