"""Tests for destination filename derivation."""

from datetime import datetime
from pathlib import Path
from urllib.parse import urlparse

import pytest

from podget.podcast.naming import (
    ExtractionInstructionError,
    FilenameExtractionError,
    FilenameStrategy,
    compute_destination,
    feed_directory_name,
    field_lookup,
    parse_extraction_instruction,
    sanitize_title,
)


class TestParseExtractionInstruction:
    """Tests for parsing --podtrac instructions."""

    def test_empty_instruction_means_no_rule(self):
        """Test that an empty or missing instruction yields no rule."""
        assert parse_extraction_instruction(None) is None
        assert parse_extraction_instruction("") is None
        assert parse_extraction_instruction("   ") is None

    def test_field_and_pattern(self):
        """Test that the first token is the field and the rest the pattern."""
        rule = parse_extraction_instruction(r"item.title /Episode (\d+)/")

        assert rule.field == "item.title"
        assert rule.pattern.pattern == r"Episode (\d+)"

    def test_surrounding_spaces_and_slashes_trimmed(self):
        """Test that spaces and slashes around the pattern are removed."""
        rule = parse_extraction_instruction(r"  url    / /ep(\d+)\.mp3/ ")

        assert rule.field == "url"
        assert rule.pattern.pattern == r"ep(\d+)\.mp3"

    def test_missing_pattern(self):
        """Test that an instruction with no pattern is rejected."""
        with pytest.raises(ExtractionInstructionError, match="missing pattern"):
            parse_extraction_instruction("item.title")

    def test_slashes_only_is_missing_pattern(self):
        """Test that a pattern made only of slashes is rejected."""
        with pytest.raises(ExtractionInstructionError, match="missing pattern"):
            parse_extraction_instruction("item.title //")

    def test_unknown_field(self):
        """Test that an unknown lookup field is rejected."""
        with pytest.raises(ExtractionInstructionError, match="unknown field"):
            parse_extraction_instruction(r"item.bogus /(\d+)/")

    def test_invalid_regex(self):
        """Test that a pattern that doesn't compile is rejected."""
        with pytest.raises(ExtractionInstructionError, match="can't compile"):
            parse_extraction_instruction("item.title /Episode (/")

    def test_pattern_without_group(self):
        """Test that a pattern must have a capture group."""
        with pytest.raises(ExtractionInstructionError, match="exactly one"):
            parse_extraction_instruction(r"item.title /\d+/")

    def test_pattern_with_two_groups(self):
        """Test that a pattern must not have more than one capture group."""
        with pytest.raises(ExtractionInstructionError, match="exactly one"):
            parse_extraction_instruction(r"item.title /(\d+)-(\d+)/")


class TestSanitizing:
    """Tests for title and feed directory sanitizing."""

    def test_sanitize_title_keeps_safe_characters(self):
        """Test that letters, digits, underscore, dot and space survive."""
        assert sanitize_title("Ep. 3_final 2024") == "Ep. 3_final 2024"

    def test_sanitize_title_drops_everything_else(self):
        """Test that punctuation and non-ASCII characters are removed."""
        assert sanitize_title("Episode 42: Foo/Bar? Café") == "Episode 42 FooBar Caf"

    def test_feed_directory_keeps_ascii_punctuation(self):
        """Test the directory name for a title with punctuation."""
        assert feed_directory_name("This American Life!") == "This_American_Life!"

    def test_feed_directory_strips_non_ascii(self):
        """Test that non-ASCII characters are dropped from the directory name."""
        assert feed_directory_name("Café Ümlaut Show") == "Caf_mlaut_Show"


class TestDefaultScheme:
    """Tests for date and title based filenames."""

    def test_dated_title(self, episode):
        """Test the default filename layout."""
        path = compute_destination(episode, "Test_Podcast", Path("/archive"))

        assert path == Path("/archive/Test_Podcast/2024-01-01 - Episode 42 Foo.mp3")

    def test_idempotent(self, episode):
        """Test that the same episode always maps to the same path."""
        strategy = FilenameStrategy()

        first = strategy.compute_destination(episode, "Show", Path("/archive"))
        second = strategy.compute_destination(episode, "Show", Path("/archive"))

        assert first == second

    def test_undated_episode(self, episode_factory):
        """Test that an episode without a date is marked undated."""
        episode = episode_factory(published_date=None, published="")

        path = compute_destination(episode, "Show", Path("/archive"))

        assert path.name == "undated - Episode 42 Foo.mp3"

    def test_extension_from_url_path(self, episode_factory):
        """Test that the query string does not leak into the extension."""
        episode = episode_factory(
            enclosure_url="https://cdn.example.com/a/b/show.m4a?token=abc.def"
        )

        path = compute_destination(episode, "Show", Path("/archive"))

        assert path.suffix == ".m4a"

    def test_no_extension(self, episode_factory):
        """Test an enclosure URL without an extension."""
        episode = episode_factory(enclosure_url="https://example.com/stream/42")

        path = compute_destination(episode, "Show", Path("/archive"))

        assert path.name == "2024-01-01 - Episode 42 Foo"


class TestExtractionScheme:
    """Tests for podtrac-style filename extraction."""

    def test_episode_number_from_title(self, episode):
        """Test extracting the episode number from the title."""
        rule = parse_extraction_instruction(r"item.title /Episode (\d+)/")

        path = compute_destination(episode, "Show", Path("/archive"), rule)

        assert path.name == "42.mp3"
        assert path.parent == Path("/archive/Show")

    def test_extract_from_redirected_url(self, episode_factory):
        """Test extracting the real filename from a tracking URL."""
        episode = episode_factory(
            enclosure_url=(
                "https://dts.podtrac.com/redirect.mp3/"
                "media.example.com/shows/tal_0812.mp3"
            )
        )
        rule = parse_extraction_instruction(r"enclosure.url /shows\/(\w+)\.mp3/")

        path = compute_destination(episode, "Show", Path("/archive"), rule)

        assert path.name == "tal_0812.mp3"

    def test_no_match_fails(self, episode_factory):
        """Test that a non-matching pattern reports failure."""
        episode = episode_factory(title="Bonus: Live Show")
        rule = parse_extraction_instruction(r"item.title /Episode (\d+)/")

        with pytest.raises(FilenameExtractionError, match="failed to extract"):
            compute_destination(episode, "Show", Path("/archive"), rule)

    def test_empty_capture_fails(self, episode):
        """Test that an empty capture group counts as a failure."""
        rule = parse_extraction_instruction(r"item.title /Episode (\d*)x/")

        with pytest.raises(FilenameExtractionError):
            compute_destination(episode, "Show", Path("/archive"), rule)

    def test_capture_cannot_leave_feed_directory(self, episode_factory):
        """Test that path separators in a capture are not followed."""
        episode = episode_factory(title="Episode ../../etc/passwd")
        rule = parse_extraction_instruction(r"item.title /Episode (\S+)/")

        path = compute_destination(episode, "Show", Path("/archive"), rule)

        assert path == Path("/archive/Show/passwd.mp3")

    @pytest.mark.parametrize("title", ["Episode .", "Episode ..", "Episode a/.."])
    def test_capture_naming_a_directory_fails(self, episode_factory, title):
        """Test that a capture of . or .. cannot become the feed directory."""
        episode = episode_factory(
            title=title, enclosure_url="https://cdn.example.com/episodes/1"
        )
        rule = parse_extraction_instruction(r"item.title /Episode (\S+)/")

        with pytest.raises(FilenameExtractionError):
            compute_destination(episode, "Show", Path("/archive"), rule)


class TestFieldLookup:
    """Tests for the extraction field mapping."""

    def test_all_fields(self, episode):
        """Test every lookup key against the episode."""
        parsed = urlparse(episode.enclosure_url)

        fields = field_lookup(episode, parsed)

        assert fields["item.title"] == "Episode 42: Foo"
        assert fields["item.guid"] == "episode-42-guid"
        assert fields["item.author"] == "Test Author"
        assert fields["item.category"] == "Technology"
        assert fields["item.description"] == "The answer."
        assert fields["item.duration"] == "45:30"
        assert fields["item.pubDate"] == "Mon, 01 Jan 2024 12:00:00 +0000"
        assert fields["enclosure.url"] == "https://example.com/media/ep42.mp3"
        assert fields["url"] == "https://example.com/media/ep42.mp3"

    def test_pub_date_falls_back_to_parsed_date(self, episode_factory):
        """Test pubDate when the raw string is missing."""
        episode = episode_factory(published="", published_date=datetime(2024, 2, 3))

        fields = field_lookup(episode, urlparse(episode.enclosure_url))

        assert fields["item.pubDate"] == "2024-02-03T00:00:00"

    def test_description_uses_raw_markup(self, episode_factory):
        """Test that extraction sees the description before HTML cleanup."""
        episode = episode_factory(
            description="Listen here",
            raw_description='<a href="https://example.com/ep_0812.mp3">Listen here</a>',
        )
        rule = parse_extraction_instruction(r"item.description /href=\"[^\"]*\/(\w+)\.mp3/")

        fields = field_lookup(episode, urlparse(episode.enclosure_url))
        path = compute_destination(episode, "Show", Path("/archive"), rule)

        assert fields["item.description"].startswith("<a href=")
        assert path.name == "ep_0812.mp3"

    def test_description_falls_back_to_cleaned_text(self, episode):
        """Test episodes built without raw markup still expose a description."""
        fields = field_lookup(episode, urlparse(episode.enclosure_url))

        assert fields["item.description"] == "The answer."
