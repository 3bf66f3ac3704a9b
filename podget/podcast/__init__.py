"""Podcast feed handling.

Provides functionality for:
- RSS feed fetching and parsing
- Destination filename derivation
- Rerun (staleness) detection
- Episode downloading
- Metadata tagging
"""

from .downloader import DownloadResult, EpisodeDownloader, create_session
from .feed_parser import Episode, Feed, FeedError, FeedParser
from .naming import (
    ExtractionInstructionError,
    ExtractionRule,
    FilenameExtractionError,
    FilenameStrategy,
    feed_directory_name,
    parse_extraction_instruction,
)
from .staleness import DestinationUnreadableError, StalenessPolicy, should_overwrite
from .tagging import TagMetadata, TaggerRegistry, TaggingError, default_registry

__all__ = [
    "DownloadResult",
    "EpisodeDownloader",
    "create_session",
    "Episode",
    "Feed",
    "FeedError",
    "FeedParser",
    "ExtractionInstructionError",
    "ExtractionRule",
    "FilenameExtractionError",
    "FilenameStrategy",
    "feed_directory_name",
    "parse_extraction_instruction",
    "DestinationUnreadableError",
    "StalenessPolicy",
    "should_overwrite",
    "TagMetadata",
    "TaggerRegistry",
    "TaggingError",
    "default_registry",
]
