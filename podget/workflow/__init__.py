"""Download pipeline for podget.

A feed worker turns feed items into download jobs on a bounded queue and a
single download worker drains it: feed -> queue -> download -> tag.
"""

from podget.workflow.config import RunConfig
from podget.workflow.queue import DownloadJob, DownloadQueue, QueueClosedError
from podget.workflow.workers.base import WorkerInterface, WorkerResult

__all__ = [
    "RunConfig",
    "DownloadJob",
    "DownloadQueue",
    "QueueClosedError",
    "WorkerInterface",
    "WorkerResult",
]
