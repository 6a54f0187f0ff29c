"""Exceptions raised by the chapter splitter."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

__all__ = [
    "ChapterSplitterError",
    "InputNotFoundError",
    "ToolUnavailableError",
    "ChapterParseError",
    "OutputDirectoryError",
    "ChapterSplitFailure",
    "TaggingError",
]


class ChapterSplitterError(Exception):
    """Base class for every error the splitter reports to the user."""

    exit_code: int = 1


class InputNotFoundError(ChapterSplitterError, FileNotFoundError):
    """The audio file to split does not exist."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Input file does not exist: {path}")


class ToolUnavailableError(ChapterSplitterError):
    """ffmpeg could not be located or started."""


class ChapterParseError(ChapterSplitterError, ValueError):
    """Chapter timing read from ffmpeg output is unusable."""

    def __init__(self, message: str, line: Optional[str] = None) -> None:
        self.line = line
        super().__init__(message)


class OutputDirectoryError(ChapterSplitterError):
    """The output directory could not be created."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Cannot create output directory {path}: {reason}")


class ChapterSplitFailure(ChapterSplitterError):
    """ffmpeg exited with a non-zero status while writing one chapter.

    Never raised by the orchestrator itself; failed chapters are recorded as
    outcomes and this type only describes them for reporting.
    """

    def __init__(self, index: int, filename: str, returncode: int) -> None:
        self.index = index
        self.filename = filename
        self.returncode = returncode
        super().__init__(
            f"Chapter {index:03d} ({filename}) failed with exit code {returncode}"
        )


class TaggingError(ChapterSplitterError):
    """Writing tags to a chapter file failed."""
