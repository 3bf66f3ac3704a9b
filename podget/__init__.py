"""podget: download podcast episodes from RSS feeds into a local archive."""

__version__ = "0.3.0"
