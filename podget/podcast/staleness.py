"""Rerun detection for already downloaded episodes.

Some feeds periodically re-air an episode under the same filename. An
existing file is only replaced once it is older than the configured
rerun window; with no window configured an existing file is never replaced.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class DestinationUnreadableError(OSError):
    """The destination exists but could not be inspected."""


class Action(Enum):
    DOWNLOAD = "download"
    OVERWRITE = "overwrite"
    SKIP = "skip"


@dataclass(frozen=True)
class StalenessPolicy:
    """Rerun window configuration.

    Attributes:
        max_age_days: Age in days after which an existing file is replaced.
            Zero or negative disables overwriting.
    """

    max_age_days: int = 0

    @property
    def enabled(self) -> bool:
        return self.max_age_days > 0


@dataclass(frozen=True)
class Decision:
    """Outcome of evaluating a destination path."""

    action: Action
    age: Optional[timedelta] = None

    @property
    def should_download(self) -> bool:
        return self.action is not Action.SKIP


def should_overwrite(
    exists: bool,
    modified_at: Optional[datetime],
    now: datetime,
    max_age_days: int,
) -> bool:
    """Decide whether an episode should be fetched to its destination.

    Args:
        exists: Whether the destination file already exists.
        modified_at: Modification time of the existing file.
        now: Current time, comparable with modified_at.
        max_age_days: Rerun window in days.

    Returns:
        True when the destination is absent, or when it exists and is
        strictly older than max_age_days. False otherwise.
    """
    if not exists:
        return True
    if max_age_days <= 0:
        return False
    return now - modified_at > timedelta(days=max_age_days)


def evaluate_destination(
    path: Path,
    policy: StalenessPolicy,
    now: Optional[datetime] = None,
) -> Decision:
    """Stat a destination and apply the staleness policy to it.

    Args:
        path: Destination file path.
        policy: Rerun window policy.
        now: Current time (UTC aware); defaults to the wall clock.

    Returns:
        Decision describing whether to download, overwrite or skip.

    Raises:
        DestinationUnreadableError: If the path exists but cannot be stat'ed.
    """
    try:
        stats = os.stat(path)
    except FileNotFoundError:
        return Decision(Action.DOWNLOAD)
    except OSError as e:
        raise DestinationUnreadableError(
            e.errno, f"can't inspect {path}: {e.strerror or e}"
        ) from e

    now = now or datetime.now(timezone.utc)
    modified_at = datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc)
    age = now - modified_at

    if not policy.enabled:
        return Decision(Action.SKIP, age)

    overwrite = should_overwrite(True, modified_at, now, policy.max_age_days)
    logger.info(
        f"{'' if overwrite else 'not '}allowing overwrite of {path}, "
        f"file is {_format_age(age)} old"
    )
    return Decision(Action.OVERWRITE if overwrite else Action.SKIP, age)


def _format_age(age: timedelta) -> str:
    """Format an age rounded to whole seconds."""
    return str(timedelta(seconds=round(age.total_seconds())))
