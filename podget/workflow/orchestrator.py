"""Pipeline orchestrator for a podget run.

Runs the feed worker (producer) and the download worker (consumer) as two
long-lived tasks connected by a bounded DownloadQueue, and waits for both
to finish before returning.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, Sequence

from podget.podcast.downloader import EpisodeDownloader, create_session
from podget.podcast.feed_parser import FeedParser
from podget.podcast.tagging import TaggerRegistry, default_registry
from podget.workflow.config import RunConfig
from podget.workflow.queue import DownloadQueue
from podget.workflow.workers.base import WorkerResult
from podget.workflow.workers.download import DownloadWorker
from podget.workflow.workers.feed import FeedWorker

if TYPE_CHECKING:
    from podget.config import Config

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RunStats:
    """Statistics for a podget run."""

    started_at: datetime = field(default_factory=_utcnow)
    stopped_at: Optional[datetime] = None
    feeds: WorkerResult = field(default_factory=WorkerResult)
    downloads: WorkerResult = field(default_factory=WorkerResult)

    @property
    def duration_seconds(self) -> float:
        """Duration of the run in seconds."""
        end = self.stopped_at or _utcnow()
        return (end - self.started_at).total_seconds()


class Orchestrator:
    """Wires up and runs the download pipeline.

    Example:
        config = Config()
        run_config = RunConfig.from_config(config, max_age_days=7)

        orchestrator = Orchestrator(config=config, run_config=run_config)
        stats = orchestrator.run(["https://example.com/feed.xml"])
    """

    def __init__(
        self,
        config: "Config",
        run_config: RunConfig,
        parser: Optional[FeedParser] = None,
        downloader: Optional[EpisodeDownloader] = None,
        registry: Optional[TaggerRegistry] = None,
    ):
        """Initialize the orchestrator.

        Components that are not supplied are built from config and share a
        single HTTP session.

        Args:
            config: Application configuration.
            run_config: Per-run configuration.
            parser: Feed fetcher/parser.
            downloader: Episode downloader.
            registry: Taggers by file extension.
        """
        self.config = config
        self.run_config = run_config

        if parser is None or downloader is None:
            session = create_session(
                user_agent=config.PODGET_USER_AGENT,
                retry_attempts=config.PODGET_RETRY_ATTEMPTS,
            )
        if parser is None:
            parser = FeedParser(session=session, timeout=config.PODGET_FEED_TIMEOUT)
        if downloader is None:
            downloader = EpisodeDownloader(
                session=session,
                timeout=config.PODGET_DOWNLOAD_TIMEOUT,
                chunk_size=config.PODGET_CHUNK_SIZE,
            )
        if registry is None and run_config.tagging_enabled:
            registry = default_registry()

        self.parser = parser
        self.downloader = downloader
        self.registry = registry

    def run(self, feed_urls: Sequence[str]) -> RunStats:
        """Process the given feeds and download everything that needs it.

        Feed, episode and job level failures are logged by the workers and
        counted in the returned stats. Anything else raised by either
        worker is re-raised here once both have stopped.

        Args:
            feed_urls: Feed URLs, processed in order.

        Returns:
            RunStats for this run.
        """
        stats = RunStats()
        jobs = DownloadQueue(maxsize=self.run_config.queue_size)
        feed_worker = FeedWorker(
            run_config=self.run_config,
            parser=self.parser,
            jobs=jobs,
            feed_urls=feed_urls,
        )
        download_worker = DownloadWorker(
            run_config=self.run_config,
            jobs=jobs,
            downloader=self.downloader,
            registry=self.registry,
        )

        logger.info(
            f"Starting run: {len(feed_urls)} feed(s) into "
            f"{self.run_config.download_directory}"
        )

        try:
            with ThreadPoolExecutor(
                max_workers=2, thread_name_prefix="podget"
            ) as executor:
                consumer = executor.submit(download_worker.run)
                producer = executor.submit(feed_worker.run)

                # A dead consumer must not leave the producer blocked on a
                # full queue
                consumer.add_done_callback(
                    lambda f: self._cancel_on_failure(f, jobs)
                )
                try:
                    wait([producer, consumer])
                except KeyboardInterrupt:
                    logger.warning("Interrupted, finishing queued downloads...")
                    jobs.cancel()
                    raise

            # Consumer first: its failure is what cancels the producer
            errors = []
            for name, future in (("downloads", consumer), ("feeds", producer)):
                error = future.exception()
                if error is not None:
                    logger.error(f"{name} task failed: {error}")
                    errors.append(error)

            if errors:
                raise errors[0]

            stats.feeds = producer.result()
            stats.downloads = consumer.result()
        finally:
            self.downloader.close()
            stats.stopped_at = _utcnow()

        logger.info(
            f"Run finished: downloaded={stats.downloads.processed}, "
            f"failed={stats.downloads.failed + stats.feeds.failed}, "
            f"up to date={stats.feeds.skipped}, "
            f"duration={stats.duration_seconds:.1f}s"
        )
        return stats

    @staticmethod
    def _cancel_on_failure(future: Future, jobs: DownloadQueue) -> None:
        if future.exception() is not None:
            jobs.cancel()
