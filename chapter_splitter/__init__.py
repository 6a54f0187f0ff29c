"""Core package for Chapter Splitter."""

from __future__ import annotations

from .chapters import Chapter, ChapterParser, iter_chapters, parse_chapters
from .splitter import ChapterSplitter, SplitOptions, SplitOutcome, SplitResult

__all__ = [
    "Chapter",
    "ChapterParser",
    "ChapterSplitter",
    "SplitOptions",
    "SplitOutcome",
    "SplitResult",
    "iter_chapters",
    "parse_chapters",
]

__version__ = "0.1.0"
