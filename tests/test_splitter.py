"""Tests for the per-chapter split orchestration."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from chapter_splitter import ffmpeg, splitter as splitter_module  # noqa: E402
from chapter_splitter.chapters import Chapter  # noqa: E402
from chapter_splitter.errors import (  # noqa: E402
    ChapterParseError,
    ChapterSplitFailure,
    InputNotFoundError,
    OutputDirectoryError,
    TaggingError,
    ToolUnavailableError,
)
from chapter_splitter.ffmpeg import ToolResult  # noqa: E402
from chapter_splitter.splitter import ChapterSplitter, SplitOptions  # noqa: E402


REPORT = """\
  Chapters:
    Chapter #0:0: start 0.000000, end 125.500000
      Metadata:
        title           : Introduction
    Chapter #0:1: start 125.500000, end 200.000000
      Metadata:
        title           : Chapter: "One"/Two
    Chapter #0:2: start 200.000000, end 260.000000
      Metadata:
        title           : Outro
"""


class FakeRunner:
    """Stand-in for ``ffmpeg.run_tool`` that records every invocation."""

    def __init__(self, report: str = REPORT, failing: Dict[str, int] | None = None) -> None:
        self.report = report
        self.failing = failing or {}
        self.calls: List[List[str]] = []

    def __call__(self, executable, args, *, verbose=False) -> ToolResult:
        self.calls.append(list(args))
        if "-ss" not in args:
            return ToolResult(returncode=1, output=self.report)
        output_name = Path(args[-1]).name
        code = self.failing.get(output_name, 0)
        return ToolResult(returncode=code, output=f"wrote {output_name}")

    @property
    def split_calls(self) -> List[List[str]]:
        return [call for call in self.calls if "-ss" in call]


@pytest.fixture
def source(tmp_path) -> Path:
    path = tmp_path / "book.m4b"
    path.write_bytes(b"not really audio")
    return path


@pytest.fixture(autouse=True)
def fake_ffmpeg(monkeypatch):
    monkeypatch.setattr(ffmpeg, "locate_ffmpeg", lambda explicit=None: "/usr/bin/ffmpeg")


def _options(source: Path, **kwargs) -> SplitOptions:
    kwargs.setdefault("write_tags", False)
    return SplitOptions(input_path=source, **kwargs)


def test_every_chapter_is_split_once(source, tmp_path):
    runner = FakeRunner()
    out_dir = tmp_path / "out"

    result = ChapterSplitter(runner=runner).split(_options(source, output_dir=out_dir))

    assert [outcome.filename for outcome in result.outcomes] == [
        "000_Introduction.mp3",
        "001_Chapter OneTwo.mp3",
        "002_Outro.mp3",
    ]
    assert len(runner.split_calls) == 3
    assert result.ok
    assert result.output_dir == out_dir.resolve()
    assert out_dir.is_dir()


def test_split_invocation_uses_chapter_offsets(source, tmp_path):
    runner = FakeRunner()

    ChapterSplitter(runner=runner).split(_options(source, output_dir=tmp_path / "out"))

    first = runner.split_calls[0]
    assert first[first.index("-i") + 1] == str(source.resolve())
    assert first[first.index("-ss") + 1] == "0.000000"
    assert first[first.index("-t") + 1] == "125.500000"
    assert first[-1] == str((tmp_path / "out").resolve() / "000_Introduction.mp3")


def test_output_defaults_to_input_directory(source):
    result = ChapterSplitter(runner=FakeRunner()).split(_options(source))

    assert result.output_dir == source.parent.resolve()
    assert all(outcome.path.parent == source.parent.resolve() for outcome in result.outcomes)


def test_failed_chapter_does_not_stop_the_run(source, tmp_path):
    runner = FakeRunner(failing={"001_Chapter OneTwo.mp3": 1})

    result = ChapterSplitter(runner=runner).split(_options(source, output_dir=tmp_path))

    assert [outcome.success for outcome in result.outcomes] == [True, False, True]
    assert len(runner.split_calls) == 3
    assert not result.ok
    assert [outcome.index for outcome in result.failed] == [1]

    error = result.failed[0].error()
    assert isinstance(error, ChapterSplitFailure)
    assert error.returncode == 1
    assert result.succeeded[0].error() is None


def test_no_chapters_means_no_split_invocations(source, tmp_path):
    runner = FakeRunner(report="Input #0, mp3, from 'book.mp3':\n  Duration: 00:01:00.00\n")

    result = ChapterSplitter(runner=runner).split(_options(source, output_dir=tmp_path))

    assert result.outcomes == []
    assert runner.split_calls == []
    assert result.ok


def test_missing_input_aborts_before_any_invocation(tmp_path):
    runner = FakeRunner()

    with pytest.raises(InputNotFoundError) as excinfo:
        ChapterSplitter(runner=runner).split(_options(tmp_path / "missing.m4b"))

    assert isinstance(excinfo.value, FileNotFoundError)
    assert runner.calls == []


def test_directory_as_input_is_rejected(tmp_path):
    with pytest.raises(InputNotFoundError):
        ChapterSplitter(runner=FakeRunner()).split(_options(tmp_path))


def test_output_directory_failure_is_fatal(source, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    runner = FakeRunner()

    with pytest.raises(OutputDirectoryError):
        ChapterSplitter(runner=runner).split(_options(source, output_dir=blocker / "out"))
    assert runner.calls == []


def test_missing_tool_is_fatal(source, monkeypatch):
    def no_ffmpeg(explicit=None):
        raise ToolUnavailableError("ffmpeg not found")

    monkeypatch.setattr(ffmpeg, "locate_ffmpeg", no_ffmpeg)
    runner = FakeRunner()

    with pytest.raises(ToolUnavailableError):
        ChapterSplitter(runner=runner).split(_options(source))
    assert runner.calls == []


def test_parse_error_aborts_run(source, tmp_path):
    runner = FakeRunner(report="start 10.0, end 2.0\ntitle : Backwards\n")

    with pytest.raises(ChapterParseError):
        ChapterSplitter(runner=runner).split(_options(source, output_dir=tmp_path))
    assert runner.split_calls == []


def test_split_chapters_accepts_external_chapters(source, tmp_path):
    runner = FakeRunner()
    chapters = [
        Chapter(index=0, title="", start=0.0, end=1.0),
        Chapter(index=1, title="Café", start=1.0, end=2.0),
    ]

    outcomes = ChapterSplitter(runner=runner).split_chapters(
        "/usr/bin/ffmpeg",
        source,
        tmp_path,
        iter(chapters),
        _options(source, extension=".m4a", default_name="untitled"),
    )

    assert [outcome.filename for outcome in outcomes] == ["000_untitled.m4a", "001_Cafe.m4a"]


def test_successful_chapters_are_tagged(source, tmp_path, monkeypatch):
    tagged = []

    def fake_tags(path, chapter, total, album=None):
        tagged.append((path.name, chapter.index, total, album))
        return True

    monkeypatch.setattr(splitter_module, "write_chapter_tags", fake_tags)
    runner = FakeRunner(failing={"002_Outro.mp3": 1})

    ChapterSplitter(runner=runner).split(_options(source, output_dir=tmp_path, write_tags=True))

    assert tagged == [
        ("000_Introduction.mp3", 0, 3, "book"),
        ("001_Chapter OneTwo.mp3", 1, 3, "book"),
    ]


def test_tagging_failure_keeps_chapter_successful(source, tmp_path, monkeypatch, caplog):
    def broken_tags(path, chapter, total, album=None):
        raise TaggingError(f"Could not tag {path}")

    monkeypatch.setattr(splitter_module, "write_chapter_tags", broken_tags)

    with caplog.at_level("WARNING"):
        result = ChapterSplitter(runner=FakeRunner()).split(
            _options(source, output_dir=tmp_path, write_tags=True)
        )

    assert result.ok
    assert "Could not tag" in caplog.text


@pytest.mark.parametrize(
    "kwargs",
    [
        {"extension": ""},
        {"extension": "mp3/x"},
        {"max_name_length": 0},
        {"default_name": "   "},
        {"default_name": "a/b"},
    ],
)
def test_invalid_options_are_rejected(source, kwargs):
    with pytest.raises(ValueError):
        SplitOptions(input_path=source, **kwargs)
