"""Shared fixtures for end-to-end rename and verify runs."""

from pathlib import Path

import pytest

from tests.conftest import srt_text
from tvrename.core.extractor import SubtitleExtractor
from tvrename.core.ocr import BitmapOcr
from tvrename.core.prober import StreamProber
from tvrename.matcher.normalizer import TextNormalizer
from tvrename.services.orchestrator import PipelineOrchestrator

EPISODES = {
    1: [
        "Take my love",
        "Take my land",
        "Take me where I cannot stand",
        "Never tell me the odds",
    ],
    2: [
        "Ten percent of nothing is",
        "Let me do the math for you",
        "Nothing, carry the nothing",
    ],
    3: [
        "We have done the impossible",
        "And that makes us mighty",
    ],
}


@pytest.fixture
def reference(reference_dir, write_srt):
    """Reference subtitles for three episodes of season 1."""
    for episode, lines in EPISODES.items():
        write_srt(reference_dir / f"Firefly - s01e{episode:02d}.srt", lines)
    return reference_dir


@pytest.fixture
def orchestrator(cache_dir, fake_tools):
    return PipelineOrchestrator(
        extractor=SubtitleExtractor(cache_dir, StreamProber()),
        normalizer=TextNormalizer(BitmapOcr()),
    )


@pytest.fixture
def add_episode(season_folder, make_video, fake_tools, streams):
    """Create a video file whose embedded subtitles contain ``lines``."""
    seeds = iter(range(1, 100))

    def _add(name: str, lines: list[str] | None) -> Path:
        video = make_video(season_folder / name, seed=next(seeds))
        if lines is not None:
            fake_tools.streams[video.name] = [streams.audio(1), streams.subtitle(2)]
            fake_tools.tracks[(video.name, 2)] = srt_text(lines)
        return video

    return _add
