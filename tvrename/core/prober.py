"""Prober - ffprobe wrapper.

Lists the subtitle and audio streams of a container. A failed or unparsable
probe is reported as "no streams" so callers treat it like a file without
subtitles and fall through to speech-to-text.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ValidationError

from tvrename.core.process import run_process

logger = logging.getLogger(__name__)

SUBTITLE = "subtitle"
AUDIO = "audio"

# Lower sorts first: text, then DVD bitmaps, then everything else (PGS)
_CODEC_PRIORITY = {
    "subrip": 0,
    "mov_text": 0,
    "srt": 0,
    "ass": 0,
    "ssa": 0,
    "dvd_subtitle": 1,
}


class _FFprobeDisposition(BaseModel):
    default: int = 0


class _FFprobeStream(BaseModel):
    index: int
    codec_name: str = ""
    codec_type: str = ""
    channels: int | None = None
    disposition: _FFprobeDisposition = _FFprobeDisposition()


class _FFprobeOutput(BaseModel):
    streams: list[_FFprobeStream] = []


@dataclass(frozen=True)
class ProbedStream:
    """One subtitle or audio stream reported by ffprobe."""

    index: int
    codec_name: str
    codec_type: str
    is_default: bool = False
    channels: int | None = None

    @property
    def is_subtitle(self) -> bool:
        return self.codec_type == SUBTITLE

    @property
    def is_audio(self) -> bool:
        return self.codec_type == AUDIO


def codec_priority(codec_name: str) -> int:
    """Rank subtitle codecs: text first, DVD bitmaps next, image bitmaps last."""
    return _CODEC_PRIORITY.get(codec_name, 2)


def parse_probe_output(output: str) -> list[ProbedStream]:
    """Parse ``ffprobe -print_format json -show_streams`` output.

    Returns an empty list when the output is not valid ffprobe JSON.
    """
    try:
        parsed = _FFprobeOutput.model_validate_json(output)
    except ValidationError as e:
        logger.warning(f"Could not parse ffprobe output: {e.error_count()} validation errors")
        return []

    return [
        ProbedStream(
            index=s.index,
            codec_name=s.codec_name,
            codec_type=s.codec_type,
            is_default=s.disposition.default == 1,
            channels=s.channels if s.codec_type == AUDIO else None,
        )
        for s in parsed.streams
        if s.codec_type in (SUBTITLE, AUDIO)
    ]


def select_subtitle_streams(streams: list[ProbedStream]) -> list[ProbedStream]:
    """Subtitle streams in preference order: default first, then by codec priority."""
    subtitles = [s for s in streams if s.is_subtitle]
    return sorted(subtitles, key=lambda s: (0 if s.is_default else 1, codec_priority(s.codec_name)))


def select_audio_stream(streams: list[ProbedStream]) -> ProbedStream | None:
    """The audio stream to transcribe: default first, then the most channels."""
    audio = [s for s in streams if s.is_audio]
    if not audio:
        return None
    return min(audio, key=lambda s: (0 if s.is_default else 1, -(s.channels or 0), s.index))


class StreamProber:
    """Enumerates streams with ffprobe."""

    def __init__(self, ffprobe_path: str = "ffprobe", timeout: float | None = None) -> None:
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout

    async def probe(self, video_file: Path) -> list[ProbedStream]:
        """Probe a video file.

        Returns:
            Subtitle and audio streams in container order; empty if probing failed
        """
        result = await run_process(
            [
                self.ffprobe_path,
                "-v",
                "quiet",
                "-print_format",
                "json",
                "-show_streams",
                "-i",
                str(video_file),
            ],
            timeout=self.timeout,
        )

        if not result.ok:
            logger.warning(f"ffprobe exited with code {result.returncode} for {video_file.name}")
            return []

        streams = parse_probe_output(result.stdout)
        logger.debug(
            f"Probed {video_file.name}: "
            + ", ".join(f"#{s.index} {s.codec_type}/{s.codec_name}" for s in streams)
        )
        return streams
