"""Streaming HTTP downloader for episode media and artwork.

Downloads podcast episodes with support for:
- Streaming response bodies straight to disk
- Exclusive temporary files, atomically moved into place
- Retry logic with exponential backoff
- Request timeouts
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "podget/0.3 (+https://github.com/lpar/podtools)"


class IncompleteDownloadError(requests.exceptions.ChunkedEncodingError):
    """The response body ended before its declared Content-Length."""


def create_session(
    user_agent: str = DEFAULT_USER_AGENT,
    retry_attempts: int = 3,
) -> requests.Session:
    """Create a requests session with retry logic.

    Args:
        user_agent: User agent header for every request
        retry_attempts: Number of retries for connection errors and
            429/5xx responses

    Returns:
        Configured session
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=retry_attempts,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET", "HEAD"],
    )

    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({"User-Agent": user_agent})

    return session


@dataclass
class DownloadResult:
    """Result of a download job."""

    destination: str
    success: bool
    file_size: Optional[int] = None
    tagged: bool = False
    error: Optional[str] = None
    duration_seconds: Optional[float] = None


class EpisodeDownloader:
    """Fetches URLs into local files.

    Example:
        downloader = EpisodeDownloader(session=create_session(), timeout=300)
        size = downloader.download_file(url, Path("/archive/Show/ep.mp3"))
    """

    DEFAULT_CHUNK_SIZE = 8192
    DEFAULT_TIMEOUT = 300  # 5 minutes

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: int = DEFAULT_TIMEOUT,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """Initialize the episode downloader.

        Args:
            session: HTTP session (see create_session)
            timeout: Per-request timeout in seconds
            chunk_size: Chunk size for streaming downloads
        """
        self._session = session or create_session()
        self.timeout = timeout
        self.chunk_size = chunk_size

    def download_file(self, url: str, output_path: Path) -> int:
        """Stream a URL to output_path.

        Missing parent directories are created. The body is written to an
        exclusively created temporary file in the destination directory and
        only moved onto output_path once complete, so a failed download
        never leaves a partial destination file.

        Args:
            url: URL to download
            output_path: Destination file path

        Returns:
            Number of bytes written

        Raises:
            OSError: If the directory or file cannot be created or written
            requests.RequestException: If the fetch fails or the body is
                shorter than its Content-Length (IncompleteDownloadError)
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(
            dir=output_path.parent, prefix=f".{output_path.name}.", suffix=".part"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                downloaded = self._stream_to(url, f)
            os.replace(temp_path, output_path)
        except BaseException:
            try:
                os.remove(temp_path)
            except OSError as e:
                logger.warning(f"Failed to remove partial download {temp_path}: {e}")
            raise

        return downloaded

    def _stream_to(self, url: str, f) -> int:
        downloaded = 0
        with self._session.get(
            url,
            stream=True,
            timeout=self.timeout,
            allow_redirects=True,
        ) as response:
            response.raise_for_status()

            total_size = None
            if (
                "content-length" in response.headers
                and "content-encoding" not in response.headers
            ):
                try:
                    total_size = int(response.headers["content-length"])
                except ValueError:
                    pass

            for chunk in response.iter_content(chunk_size=self.chunk_size):
                if chunk:
                    f.write(chunk)
                    downloaded += len(chunk)

        if total_size is not None and downloaded < total_size:
            raise IncompleteDownloadError(
                f"Expected {total_size} bytes from {url}, received {downloaded}"
            )
        if total_size is not None and downloaded > total_size:
            logger.warning(
                f"Expected {total_size} bytes from {url}, received {downloaded}"
            )

        return downloaded

    def close(self):
        """Close the downloader and release resources."""
        self._session.close()
