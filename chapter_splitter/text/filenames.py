"""Filename helpers for chapter output files."""

from __future__ import annotations

import re
import unicodedata

DEFAULT_MAX_LENGTH = 100
DEFAULT_NAME = "unknown"

# Characters rejected by Windows plus the NUL/"/" POSIX forbids, so a file
# written on one host can be copied to any other.
ILLEGAL_FILENAME_CHARS = '<>:"/\\|?*' + "".join(chr(code) for code in range(32))

_ILLEGAL = re.compile("[" + re.escape(ILLEGAL_FILENAME_CHARS) + "]")


def remove_accents(text: str) -> str:
    """Strip diacritics, e.g. ``"Café"`` becomes ``"Cafe"``."""

    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return unicodedata.normalize("NFC", stripped)


def safe_filename(
    title: str,
    max_length: int = DEFAULT_MAX_LENGTH,
    default_name: str = DEFAULT_NAME,
) -> str:
    """Turn a chapter title into something usable as a file name.

    Accents are removed before truncating so that ``max_length`` counts
    characters of the final name. ``default_name`` replaces a title with
    nothing usable left and is truncated like any other name.
    """

    if max_length < 1:
        raise ValueError("max_length must be positive")
    name = _ILLEGAL.sub("", remove_accents(title)).strip()
    # both candidates start with a non-space, so truncation keeps them non-empty
    name = name or default_name.strip() or DEFAULT_NAME
    return name[:max_length].rstrip()


def chapter_filename(
    index: int,
    title: str,
    extension: str = "mp3",
    max_length: int = DEFAULT_MAX_LENGTH,
    default_name: str = DEFAULT_NAME,
) -> str:
    return f"{index:03d}_{safe_filename(title, max_length, default_name)}.{extension}"


__all__ = [
    "DEFAULT_MAX_LENGTH",
    "DEFAULT_NAME",
    "ILLEGAL_FILENAME_CHARS",
    "chapter_filename",
    "remove_accents",
    "safe_filename",
]
