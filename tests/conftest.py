"""Shared fixtures for tvrename tests.

External tools never run: ``run_process`` is replaced in every module that
imports it by ``FakeTools``, which writes the files the real tool would
produce and records each invocation.
"""

import json
from pathlib import Path

import pytest

from tvrename.core.process import EXIT_NOT_FOUND, ProcessResult


def srt_text(lines: list[str]) -> str:
    """Render one cue per line as SubRip."""
    blocks = []
    for i, line in enumerate(lines, 1):
        minutes, seconds = divmod(10 + 2 * i, 60)
        stamp = f"00:{minutes:02d}:{seconds:02d}"
        blocks.append(f"{i}\n{stamp},000 --> {stamp},900\n{line}\n")
    return "\n".join(blocks)


class FakeTools:
    """Stand-in for ffprobe, mkvextract, OCR and speech-to-text tools."""

    def __init__(self):
        self.calls: list[list[str]] = []
        # video file name -> ffprobe stream dicts
        self.streams: dict[str, list[dict]] = {}
        # (video file name, stream index) -> subtitle text written by mkvextract
        self.tracks: dict[tuple[str, int], str] = {}
        # text produced by OCR and speech-to-text
        self.ocr_lines: list[str] = ["ocr text"]
        self.transcript_lines: list[str] = ["transcribed text"]
        # tool names that exit non-zero
        self.failing: set[str] = set()
        self.missing: set[str] = set()

    def tool_calls(self, tool: str) -> list[list[str]]:
        return [c for c in self.calls if Path(c[0]).name == tool]

    async def __call__(self, args, timeout=None) -> ProcessResult:
        args = [str(a) for a in args]
        self.calls.append(args)
        tool = Path(args[0]).name

        if tool in self.missing:
            return ProcessResult(args, EXIT_NOT_FOUND, "", f"{tool}: command not found")
        if tool in self.failing:
            return ProcessResult(args, 1, "", f"{tool} failed")

        handler = {
            "ffprobe": self._ffprobe,
            "mkvextract": self._mkvextract,
            "vobsub2srt": self._vobsub2srt,
            "PgsToSrt": self._pgstosrt,
            "ffmpeg": self._ffmpeg,
            "whisper-cli": self._whisper,
        }[tool]
        return handler(args)

    def _ffprobe(self, args):
        video = Path(args[-1]).name
        if video not in self.streams:
            return ProcessResult(args, 1, "", "Invalid data found when processing input")
        return ProcessResult(args, 0, json.dumps({"streams": self.streams[video]}), "")

    def _mkvextract(self, args):
        video = Path(args[1]).name
        index, _, output = args[3].partition(":")
        output = Path(output)
        output.write_text(self.tracks.get((video, int(index)), ""))
        if output.suffix == ".sub":
            output.with_suffix(".idx").write_text("# VobSub index file, v7")
        return ProcessResult(args, 0, "", "")

    def _vobsub2srt(self, args):
        Path(args[-1] + ".srt").write_text(srt_text(self.ocr_lines))
        return ProcessResult(args, 0, "", "")

    def _pgstosrt(self, args):
        output = Path(args[args.index("--output") + 1])
        output.write_text(srt_text(self.ocr_lines))
        return ProcessResult(args, 0, "", "")

    def _ffmpeg(self, args):
        Path(args[-1]).write_bytes(b"RIFF")
        return ProcessResult(args, 0, "", "")

    def _whisper(self, args):
        base = args[args.index("-of") + 1]
        Path(base + ".srt").write_text(srt_text(self.transcript_lines))
        return ProcessResult(args, 0, "", "")


@pytest.fixture
def fake_tools(monkeypatch):
    """Patch run_process everywhere it is used."""
    tools = FakeTools()
    for module in (
        "tvrename.core.prober",
        "tvrename.core.extractor",
        "tvrename.core.ocr",
        "tvrename.core.transcriber",
    ):
        monkeypatch.setattr(f"{module}.run_process", tools)
    return tools


@pytest.fixture
def write_srt():
    """Write a SubRip file with one cue per line."""

    def _write(path: Path, lines: list[str]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(srt_text(lines), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def cache_dir(tmp_path):
    """Isolated extraction cache for each test."""
    cache = tmp_path / "cache" / "extracted"
    cache.mkdir(parents=True)
    return cache


@pytest.fixture
def season_folder(tmp_path):
    """Show/season layout: ``Firefly (2002)/Season 01``."""
    folder = tmp_path / "library" / "Firefly (2002)" / "Season 01"
    folder.mkdir(parents=True)
    return folder


@pytest.fixture
def reference_dir(season_folder):
    folder = season_folder / ".tvrename" / "reference"
    folder.mkdir(parents=True)
    return folder


@pytest.fixture
def make_video():
    """Create a fake video file with distinct content."""

    def _make(path: Path, seed: int = 0, size: int = 200_000) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        pattern = bytes((seed + i) % 256 for i in range(256))
        path.write_bytes((pattern * (size // 256 + 1))[:size])
        return path

    return _make


def subtitle_stream(index: int, codec: str = "subrip", default: bool = False) -> dict:
    return {
        "index": index,
        "codec_name": codec,
        "codec_type": "subtitle",
        "disposition": {"default": 1 if default else 0},
    }


def audio_stream(index: int, codec: str = "aac", channels: int = 2, default: bool = False) -> dict:
    return {
        "index": index,
        "codec_name": codec,
        "codec_type": "audio",
        "channels": channels,
        "disposition": {"default": 1 if default else 0},
    }


@pytest.fixture
def streams():
    """Builders for ffprobe stream dicts."""

    class _Streams:
        subtitle = staticmethod(subtitle_stream)
        audio = staticmethod(audio_stream)

    return _Streams
