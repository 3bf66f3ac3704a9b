"""Tests for the download worker (download queue consumer)."""

from pathlib import Path
from unittest.mock import Mock, call

import pytest
import requests

from podget.podcast.tagging import TaggingError, TagOutcome
from podget.workflow.config import RunConfig
from podget.workflow.queue import DownloadJob, DownloadQueue
from podget.workflow.workers.download import DownloadWorker


def write_body(url, path):
    """download_file side effect that creates the destination."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    Path(path).write_bytes(b"body")
    return 4


@pytest.fixture
def run_config(tmp_path):
    return RunConfig(download_directory=tmp_path)


@pytest.fixture
def downloader():
    mock = Mock()
    mock.download_file.side_effect = write_body
    return mock


@pytest.fixture
def registry():
    mock = Mock()
    mock.tag.return_value = TagOutcome.TAGGED
    return mock


@pytest.fixture
def sleep():
    return Mock()


def queue_of(*jobs):
    """A closed queue holding the given jobs."""
    q = DownloadQueue(maxsize=max(len(jobs), 1))
    for job in jobs:
        q.put(job)
    q.close()
    return q


def make_job(episode, tmp_path, name="ep.mp3"):
    return DownloadJob(
        source_url=f"https://example.com/media/{name}",
        destination=tmp_path / "Show" / name,
        episode=episode,
    )


class TestDownloadWorker:
    """Tests for DownloadWorker."""

    def test_requires_registry_when_tagging(self, run_config, downloader):
        """Test that tagging without a registry is rejected."""
        with pytest.raises(ValueError, match="registry"):
            DownloadWorker(run_config, DownloadQueue(), downloader, registry=None)

    def test_name(self, run_config, downloader, registry):
        worker = DownloadWorker(run_config, DownloadQueue(), downloader, registry)
        assert worker.name == "Downloads"

    def test_processes_jobs_in_order_with_pacing(
        self, run_config, downloader, registry, sleep, episode_factory, tmp_path
    ):
        """Test FIFO processing with a pause after every job."""
        episode = episode_factory(image_url=None)
        jobs = queue_of(
            make_job(episode, tmp_path, "1.mp3"),
            make_job(episode, tmp_path, "2.mp3"),
        )
        manager = Mock()
        manager.attach_mock(downloader.download_file, "download_file")
        manager.attach_mock(sleep, "sleep")

        result = DownloadWorker(run_config, jobs, downloader, registry, sleep).run()

        assert result.processed == 2
        assert manager.mock_calls == [
            call.download_file(
                "https://example.com/media/1.mp3", tmp_path / "Show" / "1.mp3"
            ),
            call.sleep(2.0),
            call.download_file(
                "https://example.com/media/2.mp3", tmp_path / "Show" / "2.mp3"
            ),
            call.sleep(2.0),
        ]

    def test_failed_download_continues(
        self, run_config, registry, sleep, episode_factory, tmp_path
    ):
        """Test that a failed job is abandoned and the queue keeps draining."""
        episode = episode_factory(image_url=None)
        downloader = Mock()
        downloader.download_file.side_effect = [
            requests.ConnectionError("connection refused"),
            OSError("disk full"),
            4,
        ]
        jobs = queue_of(
            make_job(episode, tmp_path, "1.mp3"),
            make_job(episode, tmp_path, "2.mp3"),
            make_job(episode, tmp_path, "3.mp3"),
        )

        result = DownloadWorker(run_config, jobs, downloader, registry, sleep).run()

        assert result.failed == 2
        assert result.processed == 1
        assert "connection refused" in result.errors[0]
        assert sleep.call_count == 3
        registry.tag.assert_called_once()

    def test_tags_with_artwork_and_removes_it(
        self, run_config, downloader, registry, sleep, episode, tmp_path
    ):
        """Test the artwork download, tag call and cover cleanup."""
        job = make_job(episode, tmp_path)
        worker = DownloadWorker(run_config, queue_of(), downloader, registry, sleep)

        download = worker.process_job(job)

        cover = Path(f"{job.destination}.jpg")
        downloader.download_file.assert_any_call(
            "https://example.com/artwork.jpg", cover
        )
        path, metadata = registry.tag.call_args[0]
        assert path == job.destination
        assert metadata.title == "Episode 42: Foo"
        assert metadata.album == "Test Podcast"
        assert metadata.description == "The answer."
        assert metadata.genre == "Podcast"
        assert metadata.cover_path == cover
        assert download.success and download.tagged
        assert not cover.exists()
        assert job.destination.exists()

    def test_no_artwork_tags_without_cover(
        self, run_config, downloader, registry, sleep, episode_factory, tmp_path
    ):
        """Test that an episode without artwork is still tagged."""
        job = make_job(episode_factory(image_url=None), tmp_path)
        worker = DownloadWorker(run_config, queue_of(), downloader, registry, sleep)

        worker.process_job(job)

        assert downloader.download_file.call_count == 1
        assert registry.tag.call_args[0][1].cover_path is None

    def test_artwork_failure_skips_tagging_keeps_media(
        self, run_config, registry, sleep, episode, tmp_path
    ):
        """Test that an artwork failure abandons the rest of the job."""
        downloader = Mock()
        downloader.download_file.side_effect = [
            4,
            requests.HTTPError("404 Not Found"),
        ]
        worker = DownloadWorker(run_config, queue_of(), downloader, registry, sleep)

        download = worker.process_job(make_job(episode, tmp_path))

        assert download.success is True
        assert download.tagged is False
        registry.tag.assert_not_called()

    def test_tagging_failure_is_not_fatal(
        self, run_config, downloader, registry, sleep, episode, tmp_path
    ):
        """Test that tagging errors are logged and the cover still removed."""
        registry.tag.side_effect = TaggingError("bad frame")
        job = make_job(episode, tmp_path)
        worker = DownloadWorker(run_config, queue_of(), downloader, registry, sleep)

        download = worker.process_job(job)

        assert download.success is True
        assert download.tagged is False
        assert not Path(f"{job.destination}.jpg").exists()

    def test_cover_cleanup_failure_is_a_warning(
        self, run_config, registry, sleep, episode, tmp_path, caplog
    ):
        """Test that failing to delete the artwork never fails the job."""
        downloader = Mock()
        # Nothing is written, so removing the cover fails
        downloader.download_file.return_value = 4
        jobs = queue_of(make_job(episode, tmp_path))

        result = DownloadWorker(run_config, jobs, downloader, registry, sleep).run()

        assert result.processed == 1
        assert result.failed == 0
        assert "can't delete temporary artwork" in caplog.text

    def test_unsupported_container_not_tagged(
        self, run_config, downloader, registry, sleep, episode, tmp_path
    ):
        """Test that an unsupported format is a successful, untagged download."""
        registry.tag.return_value = TagOutcome.UNSUPPORTED
        worker = DownloadWorker(run_config, queue_of(), downloader, registry, sleep)

        download = worker.process_job(make_job(episode, tmp_path, "ep.wma"))

        assert download.success is True
        assert download.tagged is False

    def test_tagging_disabled(self, tmp_path, downloader, sleep, episode):
        """Test that --no-tag skips artwork and tagging."""
        run_config = RunConfig(download_directory=tmp_path, tagging_enabled=False)
        jobs = queue_of(make_job(episode, tmp_path))

        result = DownloadWorker(run_config, jobs, downloader, None, sleep).run()

        assert result.processed == 1
        assert downloader.download_file.call_count == 1

    def test_zero_pacing_does_not_sleep(self, tmp_path, downloader, sleep, episode):
        """Test that pacing can be turned off."""
        run_config = RunConfig(
            download_directory=tmp_path, pacing_seconds=0, tagging_enabled=False
        )
        jobs = queue_of(make_job(episode, tmp_path))

        DownloadWorker(run_config, jobs, downloader, None, sleep).run()

        sleep.assert_not_called()
