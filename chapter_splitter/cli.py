"""Command line interface for Chapter Splitter."""

from __future__ import annotations

import argparse
import contextlib
import logging
import signal
from pathlib import Path
from typing import Iterator, List, Optional

from . import __version__, ffmpeg
from .errors import ChapterSplitterError
from .splitter import ChapterSplitter, SplitOptions
from .text.filenames import DEFAULT_MAX_LENGTH, DEFAULT_NAME

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CHAPTER_FAILED = 2
EXIT_INTERRUPTED = 130

TERMINATION_SIGNALS = ("SIGTERM", "SIGHUP")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chapter-splitter",
        description="Split an audio file with embedded chapters into one file per chapter using ffmpeg.",
    )
    parser.add_argument("input_path", type=Path, help="Audio file with chapter markers (m4a, m4b, mkv, ...)")
    parser.add_argument(
        "output_dir",
        type=Path,
        nargs="?",
        help="Directory for the chapter files (default: next to the input)",
    )
    parser.add_argument("--ffmpeg", dest="ffmpeg_path", help=f"Path to ffmpeg (default: ${ffmpeg.FFMPEG_ENV}, then ./ffmpeg, then PATH)")
    parser.add_argument("--format", dest="extension", default="mp3", help="Output file extension")
    parser.add_argument(
        "--max-name-length",
        type=int,
        default=DEFAULT_MAX_LENGTH,
        help="Maximum length of the title part of each file name",
    )
    parser.add_argument("--default-name", default=DEFAULT_NAME, help="Name used for chapters without a usable title")
    parser.add_argument("--no-tags", dest="write_tags", action="store_false", help="Do not tag the chapter files")
    parser.add_argument("--list", dest="list_only", action="store_true", help="List chapters without splitting")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging and show ffmpeg output")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only print warnings and errors")
    parser.add_argument("--version", action="version", version=f"chapter-splitter {__version__}")
    return parser


def configure_logging(verbose: bool, quiet: bool) -> None:
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def create_options(namespace: argparse.Namespace) -> SplitOptions:
    return SplitOptions(
        input_path=namespace.input_path,
        output_dir=namespace.output_dir,
        extension=namespace.extension,
        max_name_length=namespace.max_name_length,
        default_name=namespace.default_name,
        ffmpeg_path=namespace.ffmpeg_path,
        verbose=namespace.verbose,
        write_tags=namespace.write_tags,
    )


def list_chapters(splitter: ChapterSplitter, options: SplitOptions) -> int:
    input_path = splitter.resolve_input(options.input_path)
    executable = ffmpeg.locate_ffmpeg(options.ffmpeg_path)
    chapters = splitter.read_chapters(executable, input_path, verbose=options.verbose)
    for chapter in chapters:
        print(f"{chapter.index:03d}  {chapter.start:10.3f}  {chapter.end:10.3f}  {chapter.title}")
    print(f"{len(chapters)} chapters")
    return EXIT_OK


def _raise_interrupt(signum, frame) -> None:
    raise KeyboardInterrupt


@contextlib.contextmanager
def interrupt_on_termination() -> Iterator[None]:
    """Turn SIGTERM and SIGHUP into ``KeyboardInterrupt`` while active.

    The ffmpeg child runs in its own session, so it is only cleaned up if the
    termination reaches Python as an exception.
    """

    previous = {}
    for name in TERMINATION_SIGNALS:
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        try:
            previous[signum] = signal.signal(signum, _raise_interrupt)
        except ValueError:
            logging.getLogger(__name__).debug("Cannot handle %s outside the main thread", name)
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def main(argv: Optional[List[str]] = None, splitter: Optional[ChapterSplitter] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.quiet)
    logger = logging.getLogger(__name__)
    splitter = splitter or ChapterSplitter()

    try:
        with interrupt_on_termination():
            options = create_options(args)
            if args.list_only:
                return list_chapters(splitter, options)
            result = splitter.split(options)
    except KeyboardInterrupt:
        logger.warning("Cancelled")
        return EXIT_INTERRUPTED
    except (ChapterSplitterError, ValueError) as exc:
        logger.error(str(exc))
        return getattr(exc, "exit_code", EXIT_ERROR)

    for outcome in result.failed:
        print(f"Failed: {outcome.filename} (exit code {outcome.returncode})")
    print(f"Wrote {len(result.succeeded)} of {len(result.outcomes)} chapters to {result.output_dir}")
    print(f"Elapsed: {result.elapsed_seconds:.2f}s")
    return EXIT_OK if result.ok else EXIT_CHAPTER_FAILED


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
