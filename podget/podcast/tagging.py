"""Metadata tagging for downloaded episodes.

Each container format has its own Tagger. A TaggerRegistry picks one by
file extension. Files with an extension that has no tagger are reported as
unsupported; that is an ordinary outcome, not an error.

MP3 files are tagged with eyed3 (ID3v2.4); MP4/M4A, Ogg Vorbis and FLAC
files are tagged with mutagen.
"""

import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Optional

import eyed3
from eyed3.core import Date
from eyed3.id3 import ID3_V2_4
from eyed3.id3.frames import ImageFrame
from mutagen.flac import FLAC, Picture
from mutagen.mp4 import MP4, MP4Cover
from mutagen.oggvorbis import OggVorbis

logger = logging.getLogger(__name__)

PODCAST_GENRE = "Podcast"


class TaggingError(Exception):
    """A tagger failed to write metadata to a file."""


class TagOutcome(Enum):
    TAGGED = "tagged"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class TagMetadata:
    """Metadata written to a downloaded episode."""

    title: str
    album: str
    description: str = ""
    published_date: Optional[datetime] = None
    cover_path: Optional[Path] = None
    genre: str = PODCAST_GENRE

    @property
    def date_string(self) -> Optional[str]:
        if self.published_date is None:
            return None
        return self.published_date.strftime("%Y-%m-%d")

    def read_cover(self) -> Optional[bytes]:
        if self.cover_path is None:
            return None
        return Path(self.cover_path).read_bytes()


def image_mime_type(data: bytes) -> str:
    """Guess an image MIME type from its leading bytes."""
    if data.startswith(b"\x89PNG"):
        return "image/png"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"  # Default to JPEG


class Tagger(ABC):
    """Writes TagMetadata into one container format."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this tagger."""
        pass

    @abstractmethod
    def tag(self, path: Path, metadata: TagMetadata) -> None:
        """Write metadata into the file at path.

        Raises:
            Exception: Library specific errors; the registry wraps them.
        """
        pass


class Mp3Tagger(Tagger):
    """ID3v2.4 tags via eyed3. Existing embedded images are replaced."""

    @property
    def name(self) -> str:
        return "ID3"

    def tag(self, path: Path, metadata: TagMetadata) -> None:
        audio = eyed3.load(str(path))
        if audio is None:
            raise TaggingError(f"not a recognised MP3 file: {path}")
        if audio.tag is None:
            audio.initTag(version=ID3_V2_4)

        tag = audio.tag
        tag.title = metadata.title
        tag.album = metadata.album
        tag.album_artist = metadata.album
        tag.artist = metadata.album
        tag.genre = metadata.genre
        tag.disc_num = (1, None)

        if metadata.published_date:
            d = metadata.published_date
            tag.recording_date = Date(d.year, d.month, d.day)

        if metadata.description:
            tag.comments.set(metadata.description)

        cover = metadata.read_cover()
        if cover:
            tag.images.set(ImageFrame.FRONT_COVER, cover, image_mime_type(cover))

        tag.save(version=ID3_V2_4)


class Mp4Tagger(Tagger):
    """iTunes-style MP4 atoms via mutagen."""

    @property
    def name(self) -> str:
        return "MP4"

    def tag(self, path: Path, metadata: TagMetadata) -> None:
        audio = MP4(str(path))
        if audio.tags is None:
            audio.add_tags()

        audio["\xa9nam"] = [metadata.title]
        audio["\xa9alb"] = [metadata.album]
        audio["aART"] = [metadata.album]
        audio["\xa9ART"] = [metadata.album]
        audio["\xa9gen"] = [metadata.genre]
        audio["disk"] = [(1, 0)]

        if metadata.date_string:
            audio["\xa9day"] = [metadata.date_string]
        if metadata.description:
            audio["\xa9cmt"] = [metadata.description]

        cover = metadata.read_cover()
        if cover:
            image_format = (
                MP4Cover.FORMAT_PNG
                if image_mime_type(cover) == "image/png"
                else MP4Cover.FORMAT_JPEG
            )
            audio["covr"] = [MP4Cover(cover, imageformat=image_format)]

        audio.save()


class VorbisCommentTagger(Tagger):
    """Shared Vorbis comment handling for Ogg Vorbis and FLAC."""

    def _apply_comments(self, audio, metadata: TagMetadata) -> None:
        audio["title"] = metadata.title
        audio["album"] = metadata.album
        audio["albumartist"] = metadata.album
        audio["artist"] = metadata.album
        audio["genre"] = metadata.genre
        audio["discnumber"] = "1"

        if metadata.date_string:
            audio["date"] = metadata.date_string
        if metadata.description:
            audio["comment"] = metadata.description

    def _cover_picture(self, cover: bytes) -> Picture:
        picture = Picture()
        picture.type = 3  # Cover (front)
        picture.mime = image_mime_type(cover)
        picture.desc = "Cover"
        picture.data = cover
        return picture


class OggVorbisTagger(VorbisCommentTagger):
    @property
    def name(self) -> str:
        return "Ogg Vorbis"

    def tag(self, path: Path, metadata: TagMetadata) -> None:
        audio = OggVorbis(str(path))
        self._apply_comments(audio, metadata)

        cover = metadata.read_cover()
        if cover:
            encoded = base64.b64encode(self._cover_picture(cover).write())
            audio["metadata_block_picture"] = [encoded.decode("ascii")]

        audio.save()


class FlacTagger(VorbisCommentTagger):
    @property
    def name(self) -> str:
        return "FLAC"

    def tag(self, path: Path, metadata: TagMetadata) -> None:
        audio = FLAC(str(path))
        self._apply_comments(audio, metadata)

        cover = metadata.read_cover()
        if cover:
            audio.clear_pictures()
            audio.add_picture(self._cover_picture(cover))

        audio.save()


class TaggerRegistry:
    """Dispatches tagging to a Tagger registered for the file extension.

    Example:
        registry = default_registry()
        outcome = registry.tag(Path("episode.mp3"), metadata)
    """

    def __init__(self):
        self._taggers: Dict[str, Tagger] = {}

    def register(self, extensions: Iterable[str], tagger: Tagger) -> None:
        for ext in extensions:
            self._taggers[self._normalize(ext)] = tagger

    def get(self, extension: str) -> Optional[Tagger]:
        return self._taggers.get(self._normalize(extension))

    @property
    def extensions(self) -> list[str]:
        return sorted(self._taggers)

    def tag(self, path: Path, metadata: TagMetadata) -> TagOutcome:
        """Tag a media file.

        Args:
            path: Media file to tag.
            metadata: Metadata to write.

        Returns:
            TAGGED on success, UNSUPPORTED if no tagger handles the extension.

        Raises:
            TaggingError: If the tagger fails.
        """
        path = Path(path)
        tagger = self.get(path.suffix)
        if tagger is None:
            logger.info(f"unsupported audio container: {path.suffix or '(none)'}")
            return TagOutcome.UNSUPPORTED

        try:
            tagger.tag(path, metadata)
        except TaggingError:
            raise
        except Exception as e:
            raise TaggingError(f"{tagger.name} tagging failed for {path}: {e}") from e

        logger.debug(f"Wrote {tagger.name} tags to {path}")
        return TagOutcome.TAGGED

    @staticmethod
    def _normalize(extension: str) -> str:
        extension = extension.lower()
        return extension if extension.startswith(".") else f".{extension}"


def default_registry() -> TaggerRegistry:
    """Registry with every built-in tagger."""
    registry = TaggerRegistry()
    registry.register([".mp3"], Mp3Tagger())
    registry.register([".m4a", ".m4b", ".mp4"], Mp4Tagger())
    registry.register([".ogg", ".oga"], OggVorbisTagger())
    registry.register([".flac"], FlacTagger())
    return registry
