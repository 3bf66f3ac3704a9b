"""Feed worker: turns feed items into download jobs.

Fetches each configured feed in turn, derives a destination for every
episode, applies the rerun policy and submits a DownloadJob for episodes
that need fetching. Feed and episode failures are logged and skipped.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Sequence

from podget.podcast.feed_parser import Episode, Feed, FeedError, FeedParser
from podget.podcast.naming import (
    UNDATED,
    FilenameExtractionError,
    FilenameStrategy,
    feed_directory_name,
)
from podget.podcast.staleness import (
    DestinationUnreadableError,
    StalenessPolicy,
    evaluate_destination,
)
from podget.workflow.config import RunConfig
from podget.workflow.queue import DownloadJob, DownloadQueue
from podget.workflow.workers.base import WorkerInterface, WorkerResult

logger = logging.getLogger(__name__)


class EpisodeSkipped(Exception):
    """An episode could not be considered for download."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeedWorker(WorkerInterface):
    """Producer side of the download pipeline.

    Feeds are processed sequentially in the order given; episodes in feed
    order. The queue is always closed when run() returns or raises.
    """

    def __init__(
        self,
        run_config: RunConfig,
        parser: FeedParser,
        jobs: DownloadQueue,
        feed_urls: Sequence[str],
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the feed worker.

        Args:
            run_config: Immutable run configuration.
            parser: Feed fetcher/parser.
            jobs: Queue receiving download jobs.
            feed_urls: Feed URLs to process, in order.
            clock: Returns the current UTC time; used for rerun age checks.
        """
        self.run_config = run_config
        self.parser = parser
        self.jobs = jobs
        self.feed_urls = list(feed_urls)
        self._clock = clock
        self._strategy = FilenameStrategy(run_config.extraction_rule)

    @property
    def name(self) -> str:
        """Human-readable name for this worker."""
        return "Feeds"

    @property
    def staleness(self) -> StalenessPolicy:
        return self.run_config.staleness

    def run(self) -> WorkerResult:
        """Process every configured feed, then close the queue.

        Returns:
            WorkerResult counting enqueued (processed), skipped and failed
            episodes; a feed that can't be fetched counts as one failure.
        """
        result = WorkerResult()
        try:
            for feed_url in self.feed_urls:
                logger.info(f"fetching {feed_url}")
                result = result + self.process_feed(feed_url)
        finally:
            self.jobs.close()
            logger.debug("all feeds processed, download queue closed")

        self.log_result(result)
        return result

    def process_feed(self, feed_url: str) -> WorkerResult:
        """Fetch one feed and submit jobs for its episodes.

        Args:
            feed_url: Feed URL.

        Returns:
            WorkerResult for this feed.
        """
        result = WorkerResult()

        try:
            feed = self.parser.parse_url(feed_url)
        except FeedError as e:
            logger.error(f"can't process {feed_url}: {e}")
            result.failed = 1
            result.errors.append(str(e))
            return result

        return self.process_channel(feed)

    def process_channel(self, feed: Feed) -> WorkerResult:
        """Submit jobs for every episode of an already parsed feed."""
        result = WorkerResult()
        feed_dir = feed_directory_name(feed.title)
        logger.info(f"{feed.title} {feed_dir}/")

        for episode in feed.episodes:
            try:
                queued = self.process_episode(feed, feed_dir, episode)
            except EpisodeSkipped as e:
                logger.error(str(e))
                result.failed += 1
                result.errors.append(str(e))
                continue

            if queued:
                result.processed += 1
            else:
                result.skipped += 1

        logger.debug(f"done processing {feed.title}")
        return result

    def process_episode(self, feed: Feed, feed_dir: str, episode: Episode) -> bool:
        """Decide whether to download one episode and enqueue it if so.

        Returns:
            True if a job was enqueued, False if the episode is already
            downloaded.

        Raises:
            EpisodeSkipped: If the URL, filename or destination is unusable.
        """
        logger.info(
            f"  {self._format_date(episode)} {episode.title} {episode.duration}".rstrip()
        )

        try:
            destination = self._strategy.compute_destination(
                episode, feed_dir, self.run_config.download_directory
            )
        except FilenameExtractionError as e:
            raise EpisodeSkipped(f"skipping episode: {e}") from e
        except ValueError as e:
            raise EpisodeSkipped(
                f"can't parse URL {episode.enclosure_url} for {feed.title}: {e}"
            ) from e

        try:
            decision = evaluate_destination(destination, self.staleness, self._clock())
        except DestinationUnreadableError as e:
            raise EpisodeSkipped(f"skipping {destination}: {e}") from e

        if not decision.should_download:
            logger.info(f"skipping {destination}, already downloaded")
            return False

        self.jobs.put(
            DownloadJob(
                source_url=episode.enclosure_url,
                destination=Path(destination),
                episode=episode,
            )
        )
        logger.debug(f"queued {episode.enclosure_url} -> {destination}")
        return True

    @staticmethod
    def _format_date(episode: Episode) -> str:
        if episode.published_date is None:
            return UNDATED
        return episode.published_date.strftime("%Y-%m-%d")
