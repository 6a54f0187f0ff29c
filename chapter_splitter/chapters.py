"""Chapter discovery from ffmpeg's diagnostic output.

ffmpeg prints the chapters of an input file as part of its human readable
stream report::

    Chapters:
      Chapter #0:0: start 0.000000, end 125.500000
        Metadata:
          title           : Introduction

There is no machine readable format involved, so chapters are recovered by
watching for two kinds of lines: one announcing the start/end offsets and one
announcing the title. :class:`ChapterParser` accumulates those values line by
line and emits a :class:`Chapter` as soon as a complete triple is available.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
import re
from typing import Iterator, List, Optional

from .errors import ChapterParseError

__all__ = [
    "Chapter",
    "ChapterParser",
    "iter_chapters",
    "parse_chapters",
    "parse_seconds",
]

logger = logging.getLogger(__name__)

CHAPTER_TIME_PATTERN = re.compile(r"start ([\d.]+), end ([\d.]+)")
CHAPTER_TITLE_PATTERN = re.compile(r"^\s*title\s*:(.*)$")
CHAPTER_HEADER_PATTERN = re.compile(r"^\s*(?:Chapters\s*:|Chapter\s+#)", re.MULTILINE)

_DECIMAL = re.compile(r"^(?:\d+(?:\.\d*)?|\.\d+)$")


@dataclass(frozen=True)
class Chapter:
    """A named segment of the input file, in seconds."""

    index: int
    title: str
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


def parse_seconds(value: str) -> float:
    """Parse an ffmpeg offset such as ``"125.500000"``.

    Only plain decimal notation with a ``.`` separator is accepted, whatever
    the process locale is. Raises :class:`ChapterParseError` for anything else.
    """

    text = value.strip()
    if not _DECIMAL.match(text):
        raise ChapterParseError(f"Invalid chapter offset: {value!r}")
    seconds = float(text)
    if not math.isfinite(seconds):
        raise ChapterParseError(f"Chapter offset out of range: {value!r}")
    return seconds


class ChapterParser:
    """Incremental accumulator turning output lines into chapters.

    Call :meth:`feed` once per line; it returns a :class:`Chapter` whenever the
    line completes one and ``None`` otherwise. Time and title lines may come in
    either order. While a slot is filled, further matches for it are ignored
    until the chapter is emitted.

    With ``await_header`` set, title lines are ignored until a chapter header
    has been seen, which keeps the container's own ``title`` tag from being
    paired with the first chapter.
    """

    def __init__(self, *, await_header: bool = False) -> None:
        self._start: Optional[str] = None
        self._end: Optional[str] = None
        self._title: Optional[str] = None
        self._line: Optional[str] = None
        self._next_index = 0
        self._in_chapters = not await_header

    @property
    def emitted(self) -> int:
        return self._next_index

    def feed(self, line: str) -> Optional[Chapter]:
        if not self._in_chapters and CHAPTER_HEADER_PATTERN.match(line):
            self._in_chapters = True

        if self._start is None and self._end is None:
            match = CHAPTER_TIME_PATTERN.search(line)
            if match:
                self._start, self._end = match.group(1), match.group(2)
                self._line = line

        if self._title is None and self._in_chapters:
            match = CHAPTER_TITLE_PATTERN.match(line)
            if match:
                self._title = match.group(1).strip()

        if self._start is None or self._end is None or self._title is None:
            return None
        return self._emit()

    def finish(self) -> bool:
        """Report whether an incomplete chapter was left pending.

        The partial values are discarded either way; this only makes the loss
        visible in the log.
        """

        dropped = any(slot is not None for slot in (self._start, self._end, self._title))
        if dropped:
            logger.warning(
                "Dropping incomplete chapter after #%d (start=%s, end=%s, title=%r)",
                self._next_index,
                self._start,
                self._end,
                self._title,
            )
        self._reset()
        return dropped

    def _emit(self) -> Chapter:
        start = parse_seconds(self._start or "")
        end = parse_seconds(self._end or "")
        if end <= start:
            raise ChapterParseError(
                f"Chapter {self._next_index} ends at {end} which is not after its start {start}",
                line=self._line,
            )
        chapter = Chapter(index=self._next_index, title=self._title or "", start=start, end=end)
        self._next_index += 1
        self._reset()
        logger.debug("Parsed chapter %s", chapter)
        return chapter

    def _reset(self) -> None:
        self._start = None
        self._end = None
        self._title = None
        self._line = None


def iter_chapters(text: str) -> Iterator[Chapter]:
    """Lazily yield the chapters described in ffmpeg's output ``text``."""

    parser = ChapterParser(await_header=CHAPTER_HEADER_PATTERN.search(text) is not None)
    for line in text.splitlines():
        chapter = parser.feed(line)
        if chapter is not None:
            yield chapter
    parser.finish()


def parse_chapters(text: str) -> List[Chapter]:
    return list(iter_chapters(text))
