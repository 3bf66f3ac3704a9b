"""Destination path derivation for episodes.

Two schemes are supported:

- Default: ``<YYYY-MM-DD> - <sanitized title><ext>``.
- Extraction ("podtrac" mode): a regular expression with one capture group
  is applied to a chosen metadata field, and the captured text becomes the
  filename. This is for feeds whose enclosure URLs go through a tracking
  redirector, so every episode would otherwise be called ``default.mp3``.

In both schemes the extension comes from the enclosure URL path and the
file lives under ``<base_dir>/<feed_dir>/``.
"""

import logging
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import ParseResult, urlparse

from podget.podcast.feed_parser import Episode

logger = logging.getLogger(__name__)

# Characters allowed in a default-scheme title
_UNSAFE_TITLE_CHARS = re.compile(r"[^A-Za-z0-9_. ]+")
_NON_ASCII = re.compile(r"[^\x00-\x7f]")

UNDATED = "undated"

LOOKUP_FIELDS = (
    "item.author",
    "item.category",
    "item.description",
    "item.duration",
    "item.guid",
    "item.pubDate",
    "item.title",
    "enclosure.url",
    "url",
)


class FilenameExtractionError(ValueError):
    """The extraction rule did not yield a filename for an episode."""


class ExtractionInstructionError(ValueError):
    """An extraction instruction string is malformed."""


@dataclass(frozen=True)
class ExtractionRule:
    """Which field to search, and the pattern whose capture group names the file."""

    field: str
    pattern: re.Pattern

    def extract(self, fields: Dict[str, str]) -> Optional[str]:
        """Return the captured text for the configured field, or None."""
        match = self.pattern.search(fields.get(self.field, ""))
        if not match or not match.group(1):
            return None
        return match.group(1)


def parse_extraction_instruction(instruction: Optional[str]) -> Optional[ExtractionRule]:
    """Compile an extraction instruction of the form ``"<field> /<regex>/"``.

    The first whitespace separated token names the field; the remainder,
    trimmed of surrounding spaces and slashes, is the pattern.

    Args:
        instruction: Instruction text, or None/empty for no rule.

    Returns:
        ExtractionRule, or None when no instruction was given.

    Raises:
        ExtractionInstructionError: If the pattern is missing or invalid,
            does not have exactly one capture group, or the field is unknown.
    """
    if not instruction or not instruction.strip():
        return None

    chunks = instruction.strip().split(None, 1)
    field = chunks[0]
    source = chunks[1].strip(" /") if len(chunks) > 1 else ""

    if not source:
        raise ExtractionInstructionError(
            f"missing pattern in extraction instruction '{instruction}'"
        )
    if field not in LOOKUP_FIELDS:
        raise ExtractionInstructionError(
            f"unknown field '{field}', expected one of: {', '.join(LOOKUP_FIELDS)}"
        )

    logger.debug(f"compiling {source}")
    try:
        pattern = re.compile(source)
    except re.error as e:
        raise ExtractionInstructionError(f"can't compile '{source}': {e}") from e

    if pattern.groups != 1:
        raise ExtractionInstructionError(
            f"pattern '{source}' must have exactly one capture group, "
            f"found {pattern.groups}"
        )

    logger.debug(f"will search field {field} for {source}")
    return ExtractionRule(field=field, pattern=pattern)


def sanitize_title(title: str) -> str:
    """Remove every character outside ``[A-Za-z0-9_. ]`` from a title."""
    return _UNSAFE_TITLE_CHARS.sub("", title)


def feed_directory_name(feed_title: str) -> str:
    """Derive the per-feed directory name.

    Non-ASCII characters are dropped and spaces become underscores; ASCII
    punctuation is left alone.

    >>> feed_directory_name("This American Life!")
    'This_American_Life!'
    """
    return _NON_ASCII.sub("", feed_title).replace(" ", "_")


def url_extension(parsed_url: ParseResult) -> str:
    """File extension of a URL's path component, including the dot."""
    return posixpath.splitext(posixpath.basename(parsed_url.path))[1]


def field_lookup(episode: Episode, parsed_url: ParseResult) -> Dict[str, str]:
    """Map extraction field names to the episode's string values."""
    published = episode.published
    if not published and episode.published_date:
        published = episode.published_date.isoformat()

    return {
        "item.author": episode.author,
        "item.category": episode.category,
        "item.description": episode.raw_description or episode.description,
        "item.duration": episode.duration,
        "item.guid": episode.guid,
        "item.pubDate": published,
        "item.title": episode.title,
        "enclosure.url": episode.enclosure_url,
        "url": parsed_url.geturl(),
    }


class FilenameStrategy:
    """Computes where an episode is written.

    Example:
        strategy = FilenameStrategy(rule=None)
        path = strategy.compute_destination(episode, "My_Show", Path("/archive"))
    """

    def __init__(self, rule: Optional[ExtractionRule] = None):
        self.rule = rule

    def compute_destination(
        self, episode: Episode, feed_dir: str, base_dir: Path
    ) -> Path:
        """Compute the destination path for an episode.

        Args:
            episode: Episode to name
            feed_dir: Directory name derived from the feed title
            base_dir: Archive root directory

        Returns:
            Destination file path

        Raises:
            ValueError: If the enclosure URL cannot be parsed
            FilenameExtractionError: If extraction mode finds no filename
        """
        parsed_url = urlparse(episode.enclosure_url)
        ext = url_extension(parsed_url)

        if self.rule is not None:
            filename = self._extracted_filename(episode, parsed_url) + ext
        else:
            filename = self._default_filename(episode) + ext

        return Path(base_dir) / feed_dir / filename

    def _default_filename(self, episode: Episode) -> str:
        date = (
            episode.published_date.strftime("%Y-%m-%d")
            if episode.published_date
            else UNDATED
        )
        return f"{date} - {sanitize_title(episode.title)}"

    def _extracted_filename(self, episode: Episode, parsed_url: ParseResult) -> str:
        fields = field_lookup(episode, parsed_url)
        extracted = self.rule.extract(fields)
        # A capture may not escape or name the feed directory
        if extracted is not None:
            extracted = posixpath.basename(extracted.replace("\\", "/"))
        if extracted in (None, "", ".", ".."):
            logger.debug(f"search data: {fields.get(self.rule.field, '')}")
            logger.debug(f"     regexp: {self.rule.pattern.pattern}")
            raise FilenameExtractionError(
                f"failed to extract filename for {parsed_url.geturl()}"
            )
        return extracted


def compute_destination(
    episode: Episode,
    feed_dir: str,
    base_dir: Path,
    rule: Optional[ExtractionRule] = None,
) -> Path:
    """Functional form of FilenameStrategy.compute_destination."""
    return FilenameStrategy(rule).compute_destination(episode, feed_dir, base_dir)
