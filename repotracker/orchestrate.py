"""Concurrent update checking across all dependencies."""

import asyncio
import logging
from collections.abc import Iterable

from .changelog import CommitLogExtractor, semver_delta
from .config import EmptyRevisionPolicy, TrackerConfig
from .detect import UpdateDetector
from .errors import TrackerError
from .importpath import ImportPathResolver
from .mirror import GitRunner, MirrorCache
from .models import Changelog, DependencyRecord, RunSummary
from .report import FileReportSink, ReportSink
from .resolve import RuleResolver

logger = logging.getLogger(__name__)

_DONE = None


class Orchestrator:
    """Runs resolve, sync, detect, extract and report for every dependency.

    A fixed number of workers pull records from a bounded queue. Each worker
    takes one dependency through every stage before pulling the next one; a
    failure in any stage is logged and only skips that dependency.
    """

    def __init__(
        self,
        resolver: RuleResolver,
        cache: MirrorCache,
        detector: UpdateDetector,
        extractor: CommitLogExtractor,
        sink: ReportSink,
        max_concurrency: int = 20,
    ):
        self.resolver = resolver
        self.cache = cache
        self.detector = detector
        self.extractor = extractor
        self.sink = sink
        self.max_concurrency = max_concurrency

    @classmethod
    def from_config(cls, config: TrackerConfig, sink: ReportSink | None = None) -> "Orchestrator":
        cache = MirrorCache(
            config.cache_root,
            runner=GitRunner(timeout=config.git_timeout),
            branch=config.branch,
        )
        return cls(
            resolver=RuleResolver(ImportPathResolver(timeout=config.http_timeout)),
            cache=cache,
            detector=UpdateDetector(cache, config.empty_revision_policy),
            extractor=CommitLogExtractor(cache, max_commits=config.max_commits),
            sink=sink or FileReportSink(config.report_dir, config.report_format),
            max_concurrency=config.max_concurrency,
        )

    async def run(self, records: Iterable[DependencyRecord]) -> RunSummary:
        """Check every record for updates.

        Args:
            records: Dependency enumeration; an error while iterating it aborts the run

        Returns:
            Counts of updated, up-to-date and failed dependencies
        """
        summary = RunSummary()
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_concurrency)
        workers = [
            asyncio.create_task(self._worker(queue, summary))
            for _ in range(self.max_concurrency)
        ]

        try:
            for record in records:
                await queue.put(record)
        except BaseException:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        for _ in workers:
            await queue.put(_DONE)
        await asyncio.gather(*workers)

        logger.info(
            "Have finished all checks: %d checked, %d updated, %d up to date, %d failed.",
            summary.checked, summary.updated, summary.up_to_date, summary.failed,
        )
        return summary

    async def _worker(self, queue: asyncio.Queue, summary: RunSummary) -> None:
        while True:
            record = await queue.get()
            if record is _DONE:
                return
            await self.check(record, summary)

    async def check(self, record: DependencyRecord, summary: RunSummary) -> Changelog | None:
        """Take one dependency through the whole pipeline.

        Returns:
            The reported changelog, or None if up to date, skipped, or failed
        """
        summary.checked += 1
        logger.info("%s: Start checking update.", record)

        stage = "resolve"
        try:
            coordinate = await self.resolver.resolve(record)

            if not coordinate.revision and self.detector.empty_revision_policy is EmptyRevisionPolicy.SKIP:
                summary.skipped += 1
                logger.info("%s: No pinned revision, skipped.", record)
                return None

            stage = "sync"
            mirror = await self.cache.acquire(coordinate.url)

            stage = "detect"
            if not await self.detector.has_update(mirror, coordinate.revision):
                summary.up_to_date += 1
                logger.info("%s: Up to date at %s.", record, coordinate.revision)
                return None

            stage = "extract"
            commits = await self.extractor.extract(mirror, coordinate.revision)
            changelog = Changelog(
                record=record,
                coordinate=coordinate,
                mirror=mirror,
                commits=tuple(commits),
                semver_delta=semver_delta(coordinate.revision, commits),
            )

            stage = "report"
            await asyncio.to_thread(self.sink.report, changelog)
        except TrackerError as e:
            summary.record_failure(stage, str(record))
            logger.error("%s: Failed to %s: %s", record, stage, e)
            return None
        except Exception:
            summary.record_failure(stage, str(record))
            logger.exception("%s: Unexpected error during %s", record, stage)
            return None

        summary.updated += 1
        logger.info("%s: Finish checking update, %d new commits.", record, len(changelog.commits))
        return changelog
