"""Split orchestration shared by the CLI and library callers.

The heavy lifting happens in ffmpeg; this module decides what to ask it for.
It validates the paths once, reads the chapter list, then runs one ffmpeg
invocation per chapter. A chapter that fails is recorded and the run moves on
to the next one; only problems found before the first chapter abort the run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
import re
import time
from typing import Callable, Iterable, List, Optional, Sequence

from . import ffmpeg
from .chapters import Chapter, parse_chapters
from .errors import (
    ChapterSplitFailure,
    InputNotFoundError,
    OutputDirectoryError,
    TaggingError,
)
from .ffmpeg import ToolResult
from .tags import write_chapter_tags
from .text.filenames import (
    DEFAULT_MAX_LENGTH,
    DEFAULT_NAME,
    ILLEGAL_FILENAME_CHARS,
    chapter_filename,
)

__all__ = [
    "ChapterSplitter",
    "SplitOptions",
    "SplitOutcome",
    "SplitResult",
]

logger = logging.getLogger(__name__)

ToolRunner = Callable[..., ToolResult]


@dataclass
class SplitOptions:
    """Options that control how a chaptered file is split."""

    input_path: Path
    output_dir: Optional[Path] = None
    extension: str = "mp3"
    max_name_length: int = DEFAULT_MAX_LENGTH
    default_name: str = DEFAULT_NAME
    ffmpeg_path: Optional[str] = None
    verbose: bool = False
    write_tags: bool = True

    def __post_init__(self) -> None:
        self.input_path = Path(self.input_path)
        if self.output_dir is not None:
            self.output_dir = Path(self.output_dir)
        self.extension = self.extension.lstrip(".")
        if not re.fullmatch(r"[A-Za-z0-9]+", self.extension):
            raise ValueError(f"Invalid output extension: {self.extension!r}")
        if self.max_name_length <= 0:
            raise ValueError("max_name_length must be positive")
        if not self.default_name.strip() or any(
            ch in ILLEGAL_FILENAME_CHARS for ch in self.default_name
        ):
            raise ValueError(f"Invalid default name: {self.default_name!r}")


@dataclass(frozen=True)
class SplitOutcome:
    """What happened to one chapter."""

    chapter: Chapter
    filename: str
    path: Path
    success: bool
    returncode: int
    output: str = field(default="", repr=False)

    @property
    def index(self) -> int:
        return self.chapter.index

    def error(self) -> Optional[ChapterSplitFailure]:
        if self.success:
            return None
        return ChapterSplitFailure(self.index, self.filename, self.returncode)


@dataclass
class SplitResult:
    """Outcome returned after a split run."""

    input_path: Path
    output_dir: Path
    outcomes: List[SplitOutcome]
    elapsed_seconds: float

    @property
    def succeeded(self) -> List[SplitOutcome]:
        return [outcome for outcome in self.outcomes if outcome.success]

    @property
    def failed(self) -> List[SplitOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]

    @property
    def ok(self) -> bool:
        return not self.failed


class ChapterSplitter:
    """Drive ffmpeg to cut a chaptered file into one file per chapter."""

    def __init__(self, runner: ToolRunner = ffmpeg.run_tool) -> None:
        self.runner = runner

    # Public API -----------------------------------------------------------------
    def split(self, options: SplitOptions) -> SplitResult:
        start_time = time.perf_counter()
        logger.debug("Starting split with options: %s", options)

        input_path = self.resolve_input(options.input_path)
        output_dir = self.prepare_output_dir(options.output_dir or input_path.parent)
        executable = ffmpeg.locate_ffmpeg(options.ffmpeg_path)
        logger.debug("Using ffmpeg at %s", executable)

        logger.info("Splitting '%s'", input_path.stem)
        chapters = self.read_chapters(executable, input_path, verbose=options.verbose)
        if chapters:
            logger.info("Found %d chapters in '%s'", len(chapters), input_path.stem)
        else:
            logger.warning("No chapters found in '%s'", input_path.stem)

        outcomes = self.split_chapters(executable, input_path, output_dir, chapters, options)

        elapsed = time.perf_counter() - start_time
        logger.info(
            "Finished in %.2fs: %d succeeded, %d failed",
            elapsed,
            sum(1 for outcome in outcomes if outcome.success),
            sum(1 for outcome in outcomes if not outcome.success),
        )
        return SplitResult(
            input_path=input_path,
            output_dir=output_dir,
            outcomes=outcomes,
            elapsed_seconds=elapsed,
        )

    def read_chapters(self, executable: str, input_path: Path, *, verbose: bool = False) -> List[Chapter]:
        # ffmpeg exits non-zero when given no output file; only the text matters
        result = self.runner(executable, ffmpeg.probe_args(input_path), verbose=verbose)
        return parse_chapters(result.output)

    def split_chapters(
        self,
        executable: str,
        input_path: Path,
        output_dir: Path,
        chapters: Iterable[Chapter],
        options: SplitOptions,
    ) -> List[SplitOutcome]:
        chapter_list: Sequence[Chapter] = list(chapters)
        outcomes: List[SplitOutcome] = []
        for chapter in chapter_list:
            outcome = self._split_one(executable, input_path, output_dir, chapter, options)
            if outcome.success and options.write_tags:
                self._tag(outcome, len(chapter_list), album=input_path.stem)
            outcomes.append(outcome)
        return outcomes

    # Validation -----------------------------------------------------------------
    def resolve_input(self, path: Path) -> Path:
        input_path = Path(path).expanduser().resolve()
        if not input_path.is_file():
            raise InputNotFoundError(input_path)
        return input_path

    def prepare_output_dir(self, path: Path) -> Path:
        output_dir = Path(path).expanduser()
        try:
            output_dir = output_dir.resolve()
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputDirectoryError(output_dir, exc.strerror or str(exc)) from exc
        return output_dir

    # Per chapter ----------------------------------------------------------------
    def _split_one(
        self,
        executable: str,
        input_path: Path,
        output_dir: Path,
        chapter: Chapter,
        options: SplitOptions,
    ) -> SplitOutcome:
        filename = chapter_filename(
            chapter.index,
            chapter.title,
            extension=options.extension,
            max_length=options.max_name_length,
            default_name=options.default_name,
        )
        output_path = output_dir / filename
        logger.info("Splitting chapter %03d '%s'", chapter.index, filename)

        args = ffmpeg.split_args(input_path, chapter, output_path)
        result = self.runner(executable, args, verbose=options.verbose)

        outcome = SplitOutcome(
            chapter=chapter,
            filename=filename,
            path=output_path,
            success=result.ok,
            returncode=result.returncode,
            output=result.output,
        )
        if outcome.success:
            logger.info("Chapter %d - %s split successfully", chapter.index, filename)
        else:
            logger.error("%s", outcome.error())
            logger.debug("ffmpeg output for chapter %d:\n%s", chapter.index, result.output)
        return outcome

    def _tag(self, outcome: SplitOutcome, total: int, album: str) -> None:
        try:
            write_chapter_tags(outcome.path, outcome.chapter, total, album=album)
        except TaggingError as exc:
            logger.warning("%s", exc)
