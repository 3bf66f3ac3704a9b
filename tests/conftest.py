"""
Pytest configuration and fixtures for podget tests.

This module runs before any test imports, setting up the test environment.
PODGET_* variables from the caller's environment are removed so config
defaults are deterministic.
"""

import os
from datetime import datetime

import pytest

for _name in [name for name in os.environ if name.startswith("PODGET_")]:
    del os.environ[_name]

from podget.podcast.feed_parser import Episode, Feed  # noqa: E402


def make_episode(**overrides) -> Episode:
    """Build an Episode with sensible defaults for tests."""
    values = dict(
        guid="episode-42-guid",
        title="Episode 42: Foo",
        enclosure_url="https://example.com/media/ep42.mp3",
        enclosure_type="audio/mpeg",
        feed_title="Test Podcast",
        author="Test Author",
        category="Technology",
        description="The answer.",
        published="Mon, 01 Jan 2024 12:00:00 +0000",
        published_date=datetime(2024, 1, 1, 12, 0, 0),
        duration="45:30",
        duration_seconds=2730,
        image_url="https://example.com/artwork.jpg",
    )
    values.update(overrides)
    return Episode(**values)


@pytest.fixture
def episode():
    """A typical episode with a dated MP3 enclosure."""
    return make_episode()


@pytest.fixture
def feed():
    """A feed with two episodes."""
    return Feed(
        feed_url="https://example.com/feed.xml",
        title="Test Podcast",
        image_url="https://example.com/artwork.jpg",
        episodes=(
            make_episode(
                guid="old",
                title="Old Episode",
                enclosure_url="https://example.com/media/old.mp3",
                published_date=datetime(2024, 1, 1),
            ),
            make_episode(
                guid="new",
                title="New Episode",
                enclosure_url="https://example.com/media/new.mp3",
                published_date=datetime(2024, 1, 8),
            ),
        ),
    )


@pytest.fixture
def episode_factory():
    """Factory for episodes with overridden fields."""
    return make_episode
