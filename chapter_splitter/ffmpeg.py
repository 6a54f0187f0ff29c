"""Thin layer over the ffmpeg executable.

Everything that touches the child process lives here: finding the binary,
building argument lists and running one invocation to completion.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
import logging
import os
from pathlib import Path
import shlex
import signal
import subprocess
from typing import List, Optional, Sequence

from pydub.utils import which

from .chapters import Chapter
from .errors import ToolUnavailableError

__all__ = [
    "FFMPEG_ENV",
    "ToolResult",
    "format_seconds",
    "locate_ffmpeg",
    "probe_args",
    "run_tool",
    "split_args",
]

logger = logging.getLogger(__name__)

FFMPEG_ENV = "CHAPTER_SPLITTER_FFMPEG"
TERMINATE_GRACE_SECONDS = 5.0


@dataclass(frozen=True)
class ToolResult:
    """Exit status and combined stdout/stderr of one invocation."""

    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def locate_ffmpeg(explicit: Optional[str] = None) -> str:
    """Return the path of the ffmpeg executable to use.

    Checks, in order, ``explicit``, the ``CHAPTER_SPLITTER_FFMPEG`` environment
    variable and the ``PATH``. The lookup is pydub's ``which``, which tries
    the current working directory before ``PATH``, so a stray ``./ffmpeg``
    takes precedence over the installed one.
    """

    candidate = explicit or os.getenv(FFMPEG_ENV)
    if candidate:
        found = which(os.path.expanduser(candidate))
        if not found:
            raise ToolUnavailableError(f"ffmpeg executable not found: {candidate}")
        return found
    found = which("ffmpeg")
    if not found:
        raise ToolUnavailableError(
            f"ffmpeg not found on PATH; install ffmpeg or set {FFMPEG_ENV}"
        )
    return found


def format_seconds(value: float) -> str:
    return f"{value:.6f}"


def probe_args(input_path: Path) -> List[str]:
    return ["-hide_banner", "-i", str(input_path)]


def split_args(input_path: Path, chapter: Chapter, output_path: Path) -> List[str]:
    # -map_chapters -1 keeps the full chapter table out of every piece
    return [
        "-hide_banner",
        "-y",
        "-i",
        str(input_path),
        "-ss",
        format_seconds(chapter.start),
        "-t",
        format_seconds(chapter.duration),
        "-map_chapters",
        "-1",
        str(output_path),
    ]


def run_tool(executable: str, args: Sequence[str], *, verbose: bool = False) -> ToolResult:
    """Run ``executable`` with ``args`` and wait for it to finish.

    Stdin is closed and stderr is folded into stdout. With ``verbose`` the
    output is echoed as it arrives. If the wait is interrupted the child and
    anything it spawned are terminated before the exception propagates.
    """

    command = [str(executable), *(str(arg) for arg in args)]
    logger.debug("Running %s", shlex.join(command))

    popen_kwargs = {}
    if os.name == "posix":
        popen_kwargs["start_new_session"] = True
    else:  # pragma: no cover - windows only
        popen_kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP

    try:
        process = subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
            **popen_kwargs,
        )
    except OSError as exc:
        raise ToolUnavailableError(f"Cannot start {executable}: {exc}") from exc

    lines: List[str] = []
    try:
        for line in process.stdout or ():
            lines.append(line)
            if verbose:
                print(line, end="", flush=True)
        returncode = process.wait()
    except BaseException:
        _terminate(process)
        raise
    finally:
        if process.stdout is not None:
            process.stdout.close()

    logger.debug("%s exited with %d", Path(executable).name, returncode)
    return ToolResult(returncode=returncode, output="".join(lines))


def _terminate(process: subprocess.Popen) -> None:
    if process.poll() is not None:
        return
    logger.debug("Terminating child process %d", process.pid)
    _signal_group(process, signal.SIGTERM)
    try:
        process.wait(timeout=TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        logger.warning("Child process %d ignored SIGTERM; killing it", process.pid)
    finally:
        # also reached when a second interrupt cuts the grace period short
        if process.poll() is None:
            _signal_group(process, getattr(signal, "SIGKILL", signal.SIGTERM))
            process.wait()


def _signal_group(process: subprocess.Popen, signum: int) -> None:
    if os.name != "posix":  # pragma: no cover - windows only
        process.kill()
        return
    with contextlib.suppress(ProcessLookupError):
        os.killpg(process.pid, signum)
