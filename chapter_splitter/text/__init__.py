"""Text helpers for Chapter Splitter."""

from .filenames import chapter_filename, remove_accents, safe_filename

__all__ = ["chapter_filename", "remove_accents", "safe_filename"]
