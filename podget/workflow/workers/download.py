"""Download worker: the single consumer of the download queue.

Drains DownloadJobs one at a time in arrival order, pacing requests so a
feed host never sees more than one download every couple of seconds. After
each successful download the episode artwork is fetched and the media file
is tagged.
"""

import logging
import os
import time
from pathlib import Path
from typing import Callable, Optional

import requests

from podget.podcast.downloader import DownloadResult, EpisodeDownloader
from podget.podcast.tagging import TaggerRegistry, TaggingError, TagMetadata, TagOutcome
from podget.workflow.config import RunConfig
from podget.workflow.queue import DownloadJob, DownloadQueue
from podget.workflow.workers.base import WorkerInterface, WorkerResult

logger = logging.getLogger(__name__)


class DownloadWorker(WorkerInterface):
    """Worker that downloads queued episodes sequentially.

    A failed job is logged and abandoned; the worker moves on to the next
    one. Only errors outside job processing (bugs) escape run().
    """

    def __init__(
        self,
        run_config: RunConfig,
        jobs: DownloadQueue,
        downloader: EpisodeDownloader,
        registry: Optional[TaggerRegistry] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the download worker.

        Args:
            run_config: Immutable run configuration.
            jobs: Queue to drain.
            downloader: Streams URLs to local files.
            registry: Taggers by extension. Required when tagging is enabled.
            sleep: Pacing function, replaceable in tests.

        Raises:
            ValueError: If tagging is enabled without a registry.
        """
        if run_config.tagging_enabled and registry is None:
            raise ValueError("a tagger registry is required when tagging is enabled")

        self.run_config = run_config
        self.jobs = jobs
        self.downloader = downloader
        self.registry = registry
        self._sleep = sleep

    @property
    def name(self) -> str:
        """Human-readable name for this worker."""
        return "Downloads"

    def run(self) -> WorkerResult:
        """Process jobs until the queue is closed and empty.

        Returns:
            WorkerResult with download statistics.
        """
        result = WorkerResult()
        logger.debug("download task starting")

        for job in self.jobs:
            try:
                download = self.process_job(job)
            finally:
                self._pace()

            if download.success:
                result.processed += 1
            else:
                result.failed += 1
                result.errors.append(f"{job.source_url}: {download.error}")

        logger.debug("all downloads complete")
        self.log_result(result)
        return result

    def process_job(self, job: DownloadJob) -> DownloadResult:
        """Download one episode, then fetch artwork and tag it.

        Args:
            job: The job to process.

        Returns:
            DownloadResult; success reflects the media download only.
        """
        destination = Path(job.destination)
        logger.info(f"downloading {job.source_url}")
        started = time.monotonic()

        try:
            size = self.downloader.download_file(job.source_url, destination)
        except (OSError, requests.RequestException) as e:
            logger.error(f"can't download {job.source_url} to {destination}: {e}")
            return DownloadResult(
                destination=str(destination), success=False, error=str(e)
            )

        logger.info(f"{size} bytes downloaded to {destination}")
        download = DownloadResult(
            destination=str(destination),
            success=True,
            file_size=size,
            duration_seconds=time.monotonic() - started,
        )

        if self.run_config.tagging_enabled:
            download.tagged = self._post_process(job, destination)

        return download

    def _post_process(self, job: DownloadJob, destination: Path) -> bool:
        """Fetch artwork and tag the downloaded file.

        Returns:
            True if tags were written.
        """
        episode = job.episode
        cover_path = None

        if episode.image_url:
            cover_path = Path(f"{destination}.jpg")
            try:
                self.downloader.download_file(episode.image_url, cover_path)
            except (OSError, requests.RequestException) as e:
                logger.error(
                    f"can't download artwork {episode.image_url} for {destination}: {e}"
                )
                return False
            logger.debug(f"artwork saved to {cover_path}")
        else:
            logger.debug(f"no artwork for {destination}")

        metadata = TagMetadata(
            title=episode.title,
            album=episode.feed_title,
            description=episode.description,
            published_date=episode.published_date,
            cover_path=cover_path,
        )

        try:
            outcome = self.registry.tag(destination, metadata)
        except TaggingError as e:
            logger.error(f"can't tag {destination}: {e}")
            outcome = None
        finally:
            if cover_path is not None:
                self._remove_cover(cover_path)

        return outcome is TagOutcome.TAGGED

    @staticmethod
    def _remove_cover(cover_path: Path) -> None:
        try:
            os.remove(cover_path)
        except OSError as e:
            logger.warning(f"can't delete temporary artwork {cover_path}: {e}")

    def _pace(self) -> None:
        delay = self.run_config.pacing_seconds
        if delay > 0:
            logger.debug(f"sleeping {delay}s before next download")
            self._sleep(delay)
