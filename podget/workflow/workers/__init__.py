"""Workers for the download pipeline.

- FeedWorker: Fetches feeds and queues episodes that need downloading
- DownloadWorker: Downloads, tags and paces queued episodes
"""

from podget.workflow.workers.base import WorkerInterface, WorkerResult

__all__ = [
    "WorkerInterface",
    "WorkerResult",
]
