"""Tag chapter files after they have been written."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from mutagen import MutagenError
from mutagen.easyid3 import EasyID3
from mutagen.id3 import ID3NoHeaderError
from mutagen.mp4 import MP4

from .chapters import Chapter
from .errors import TaggingError

LOGGER = logging.getLogger(__name__)

MP4_EXTENSIONS = {".m4a", ".m4b", ".mp4"}


def write_chapter_tags(
    path: Path,
    chapter: Chapter,
    total: int,
    album: Optional[str] = None,
) -> bool:
    """Store the chapter title and track number in ``path``.

    Returns ``False`` for containers that are not tagged.
    """

    suffix = path.suffix.lower()
    try:
        if suffix == ".mp3":
            _write_mp3_tags(path, chapter, total, album)
        elif suffix in MP4_EXTENSIONS:
            _write_mp4_tags(path, chapter, total, album)
        else:
            LOGGER.debug("Not tagging %s: unsupported container", path.name)
            return False
    except (MutagenError, OSError) as exc:
        raise TaggingError(f"Could not tag {path}: {exc}") from exc
    return True


def _write_mp3_tags(path: Path, chapter: Chapter, total: int, album: Optional[str]) -> None:
    try:
        tags = EasyID3(path)
    except ID3NoHeaderError:
        tags = EasyID3()
    tags["title"] = chapter.title
    tags["tracknumber"] = f"{chapter.index + 1}/{total}"
    if album:
        tags["album"] = album
    tags.save(path)


def _write_mp4_tags(path: Path, chapter: Chapter, total: int, album: Optional[str]) -> None:
    file = MP4(path)
    file["\xa9nam"] = [chapter.title]
    file["trkn"] = [(chapter.index + 1, total)]
    if album:
        file["\xa9alb"] = [album]
    file.save()


__all__ = ["write_chapter_tags"]
