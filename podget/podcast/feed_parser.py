"""RSS/Atom feed parser for podcast episodes.

Uses feedparser library to handle various feed formats and extract
episode metadata including iTunes namespace extensions. Feeds are fetched
with a shared requests session so timeouts and retries apply.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Optional, Tuple
from urllib.parse import urlparse

import feedparser
import requests

logger = logging.getLogger(__name__)


class FeedError(Exception):
    """A feed could not be fetched or parsed."""


@dataclass(frozen=True)
class Episode:
    """Episode data parsed from an RSS item."""

    # Core identifiers
    guid: str
    title: str
    enclosure_url: str
    enclosure_type: str

    # Optional metadata
    feed_title: str = ""
    author: str = ""
    category: str = ""
    description: str = ""
    raw_description: str = ""
    link: Optional[str] = None
    published: str = ""
    published_date: Optional[datetime] = None
    duration: str = ""
    duration_seconds: Optional[int] = None

    # Artwork (episode image, or the feed image when the item has none)
    image_url: Optional[str] = None


@dataclass(frozen=True)
class Feed:
    """Parsed podcast feed with its episodes in feed order."""

    feed_url: str
    title: str
    image_url: Optional[str] = None
    episodes: Tuple[Episode, ...] = ()


class FeedParser:
    """Parser for podcast RSS/Atom feeds.

    Example:
        parser = FeedParser(session=session, timeout=30)
        feed = parser.parse_url("https://example.com/feed.xml")
        print(f"Podcast: {feed.title}")
        for episode in feed.episodes:
            print(f"  - {episode.title}")
    """

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        """Initialize the feed parser.

        Args:
            session: HTTP session used to fetch feeds
            timeout: Feed request timeout in seconds
        """
        self._session = session or requests.Session()
        self.timeout = timeout

    def parse_url(self, feed_url: str) -> Feed:
        """Fetch and parse a podcast feed.

        Args:
            feed_url: URL of the RSS/Atom feed

        Returns:
            Feed with its episodes

        Raises:
            FeedError: If the feed cannot be fetched or parsed
        """
        logger.debug(f"Fetching feed: {feed_url}")

        try:
            response = self._session.get(feed_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FeedError(f"can't fetch feed {feed_url}: {e}") from e

        return self.parse_string(response.content, feed_url)

    def parse_string(self, content, feed_url: str = "") -> Feed:
        """Parse a podcast feed from string or bytes content.

        Args:
            content: RSS/Atom feed content
            feed_url: Original URL of the feed (for reference)

        Returns:
            Feed with its episodes

        Raises:
            FeedError: If the content is not a feed
        """
        feed = feedparser.parse(content)

        if feed.bozo and feed.bozo_exception:
            logger.debug(f"Feed parsing warning for {feed_url}: {feed.bozo_exception}")

        if not feed.feed and not feed.entries:
            raise FeedError(f"error parsing feed {feed_url}: {feed.get('bozo_exception')}")

        return self._parse_feed(feed, feed_url)

    def _parse_feed(self, feed: feedparser.FeedParserDict, feed_url: str) -> Feed:
        """Convert a feedparser result into a Feed."""
        f = feed.feed
        title = f.get("title", "")
        image_url = self._extract_image_url(f)

        episodes = []
        for entry in feed.entries:
            episode = self._parse_episode(entry, title, image_url)
            if episode:
                episodes.append(episode)

        logger.debug(f"Parsed feed '{title}' with {len(episodes)} episodes")
        return Feed(
            feed_url=feed_url,
            title=title,
            image_url=image_url,
            episodes=tuple(episodes),
        )

    def _parse_episode(
        self,
        entry: feedparser.FeedParserDict,
        feed_title: str,
        feed_image_url: Optional[str],
    ) -> Optional[Episode]:
        """Convert a feed entry into an Episode.

        Returns:
            Episode or None if the entry has no enclosure
        """
        enclosure = self._extract_enclosure(entry)
        if not enclosure:
            logger.warning(f"Skipping entry without enclosure: {entry.get('title')}")
            return None

        enclosure_url, enclosure_type = enclosure

        # Get GUID - use enclosure URL as fallback
        guid = entry.get("id") or entry.get("guid") or enclosure_url

        raw_description = entry.get("description") or entry.get("summary") or ""
        duration = str(entry.get("itunes_duration") or entry.get("duration") or "")

        return Episode(
            guid=guid,
            title=entry.get("title") or entry.get("itunes_title") or "",
            enclosure_url=enclosure_url,
            enclosure_type=enclosure_type,
            feed_title=feed_title,
            author=entry.get("author") or entry.get("itunes_author") or "",
            category=self._extract_category(entry),
            description=self._clean_html(raw_description) or "",
            raw_description=raw_description,
            link=entry.get("link"),
            published=entry.get("published", ""),
            published_date=self._parse_published(entry),
            duration=duration,
            duration_seconds=self._parse_duration(duration),
            image_url=self._extract_image_url(entry) or feed_image_url,
        )

    def _extract_enclosure(self, entry: feedparser.FeedParserDict) -> Optional[tuple]:
        """Extract the media enclosure from a feed entry.

        Any RSS enclosure is taken as the episode media whatever its type.
        Media RSS content is only used as a fallback and must look like
        audio or video.

        Returns:
            Tuple of (url, type) or None if no media found
        """
        for enclosure in entry.get("enclosures", []):
            url = enclosure.get("href") or enclosure.get("url")
            if url:
                return (url, enclosure.get("type") or "audio/mpeg")

        for media in entry.get("media_content", []):
            url = media.get("url")
            mime_type = media.get("type", "")

            if url and self._is_media_type(mime_type, url):
                return (url, mime_type or "audio/mpeg")

        return None

    def _is_media_type(self, mime_type: str, url: str) -> bool:
        """Check if an enclosure is audio or video.

        Args:
            mime_type: MIME type string
            url: URL of the content

        Returns:
            True if this appears to be a media file
        """
        if mime_type:
            if mime_type.startswith(("audio/", "video/")):
                return True
            if mime_type != "application/octet-stream":
                return False

        # Check URL extension
        path = urlparse(url).path.lower()
        media_extensions = (
            ".mp3", ".m4a", ".m4b", ".mp4", ".ogg", ".oga", ".opus",
            ".wav", ".aac", ".flac", ".wmv",
        )
        return any(path.endswith(ext) for ext in media_extensions)

    def _extract_image_url(self, node: feedparser.FeedParserDict) -> Optional[str]:
        """Extract an artwork URL from a feed or entry node.

        Returns:
            Image URL or None
        """
        # itunes:image is mapped onto "image" by feedparser
        image = node.get("image")
        if image:
            if isinstance(image, dict):
                return image.get("href") or image.get("url")
            return image

        thumbs = node.get("media_thumbnail")
        if thumbs and isinstance(thumbs, list):
            return thumbs[0].get("url")

        return None

    def _extract_category(self, entry: feedparser.FeedParserDict) -> str:
        tags = entry.get("tags") or []
        for tag in tags:
            term = tag.get("term") or tag.get("label")
            if term:
                return term
        return ""

    def _parse_published(self, entry: feedparser.FeedParserDict) -> Optional[datetime]:
        """Parse the publication date of an entry, if present."""
        if entry.get("published_parsed"):
            try:
                return datetime(*entry.published_parsed[:6])
            except (TypeError, ValueError):
                pass
        elif entry.get("published"):
            try:
                return parsedate_to_datetime(entry.published)
            except (TypeError, ValueError):
                pass
        return None

    def _parse_duration(self, value) -> Optional[int]:
        """Parse duration string into seconds.

        Handles various formats:
        - Seconds: "3600"
        - MM:SS: "60:00"
        - HH:MM:SS: "1:00:00"

        Args:
            value: Duration string

        Returns:
            Duration in seconds or None
        """
        if not value:
            return None

        value_str = str(value).strip()

        try:
            return int(value_str)
        except ValueError:
            pass

        parts = value_str.split(":")
        try:
            if len(parts) == 2:
                return int(parts[0]) * 60 + int(parts[1])
            elif len(parts) == 3:
                return int(parts[0]) * 3600 + int(parts[1]) * 60 + int(parts[2])
        except (ValueError, TypeError):
            pass

        return None

    def _clean_html(self, text: Optional[str]) -> Optional[str]:
        """Remove HTML tags from text.

        Args:
            text: Text that may contain HTML

        Returns:
            Cleaned text or None
        """
        if not text:
            return None

        clean = re.sub(r"<[^>]+>", "", text)
        clean = clean.replace("&amp;", "&")
        clean = clean.replace("&lt;", "<")
        clean = clean.replace("&gt;", ">")
        clean = clean.replace("&quot;", '"')
        clean = clean.replace("&#39;", "'")
        clean = clean.replace("&nbsp;", " ")
        clean = re.sub(r"\s+", " ", clean).strip()

        return clean if clean else None
