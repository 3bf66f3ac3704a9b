"""Configuration for the download pipeline.

Provides environment value parsing with validation and the immutable
per-run configuration handed to every pipeline component.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from podget.podcast.staleness import StalenessPolicy

if TYPE_CHECKING:
    from podget.config import Config
    from podget.podcast.naming import ExtractionRule


def _get_int_env(
    name: str,
    default: int,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    """Parse an integer from an environment variable with validation.

    Args:
        name: Environment variable name.
        default: Default value if env var is not set.
        min_val: Minimum allowed value (inclusive), or None for no minimum.
        max_val: Maximum allowed value (inclusive), or None for no maximum.

    Returns:
        The parsed and validated integer value.

    Raises:
        ValueError: If the value cannot be parsed as an integer or is out of range.
    """
    raw = os.getenv(name)
    if raw is None:
        return default

    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid value for {name}: '{raw}' is not a valid integer"
        )

    if min_val is not None and value < min_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be >= {min_val}"
        )

    if max_val is not None and value > max_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be <= {max_val}"
        )

    return value


def _get_float_env(
    name: str,
    default: float,
    min_val: Optional[float] = None,
) -> float:
    """Parse a float from an environment variable with validation.

    Raises:
        ValueError: If the value cannot be parsed as a number or is below min_val.
    """
    raw = os.getenv(name)
    if raw is None:
        return default

    try:
        value = float(raw)
    except ValueError:
        raise ValueError(
            f"Invalid value for {name}: '{raw}' is not a valid number"
        )

    if min_val is not None and value < min_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be >= {min_val}"
        )

    return value


@dataclass(frozen=True)
class RunConfig:
    """Immutable configuration for a single podget run.

    Built once at startup from command line arguments and the environment,
    then passed to each component's constructor.
    """

    download_directory: Path
    staleness: StalenessPolicy = StalenessPolicy()
    extraction_rule: Optional["ExtractionRule"] = None
    queue_size: int = 15
    pacing_seconds: float = 2.0
    tagging_enabled: bool = True

    def __post_init__(self):
        if self.queue_size <= 0:
            raise ValueError(
                f"queue_size must be greater than zero, got {self.queue_size}"
            )
        if self.pacing_seconds < 0:
            raise ValueError(
                f"pacing_seconds must not be negative, got {self.pacing_seconds}"
            )

    @classmethod
    def from_config(
        cls,
        config: "Config",
        download_directory: Optional[str] = None,
        max_age_days: int = 0,
        extraction_rule: Optional["ExtractionRule"] = None,
        tagging_enabled: bool = True,
    ) -> "RunConfig":
        """Create a run configuration from application config and CLI values.

        Args:
            config: Application configuration (environment derived).
            download_directory: Destination directory; falls back to
                PODGET_DOWNLOAD_DIRECTORY when None or empty.
            max_age_days: Rerun window in days, 0 disables overwriting.
            extraction_rule: Optional podtrac-style filename rule.
            tagging_enabled: Whether to fetch artwork and tag downloads.

        Returns:
            RunConfig instance.
        """
        return cls(
            download_directory=Path(
                download_directory or config.PODGET_DOWNLOAD_DIRECTORY
            ).expanduser(),
            staleness=StalenessPolicy(max_age_days=max_age_days),
            extraction_rule=extraction_rule,
            queue_size=config.PODGET_QUEUE_SIZE,
            pacing_seconds=config.PODGET_PACING_SECONDS,
            tagging_enabled=tagging_enabled,
        )
