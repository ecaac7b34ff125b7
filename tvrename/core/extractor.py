"""Extractor - subtitle track extraction with a content-addressed cache.

Pulls every usable subtitle stream out of a container with mkvextract, or
generates subtitles with speech-to-text when the container has none.
Artifacts are cached under ``<extracted>/<aa>/<bb>/<fingerprint>_<index>.<ext>``
so later runs (and renamed files) reuse them without invoking any tool.
"""

import asyncio
import logging
import os
from pathlib import Path

from tvrename.core.errors import ExtractionError, NotSupportedError
from tvrename.core.hasher import compute_fingerprint
from tvrename.core.process import run_process
from tvrename.core.prober import (
    ProbedStream,
    StreamProber,
    select_audio_stream,
    select_subtitle_streams,
)
from tvrename.core.results import Failed, Ok, Outcome
from tvrename.core.subtitles import (
    GENERATED_INDEX,
    DvdSubtitle,
    ExtractedSubtitle,
    TextSubtitle,
    extension_for_codec,
    for_codec,
)
from tvrename.core.transcriber import SpeechToText

logger = logging.getLogger(__name__)


def partial_path(path: Path) -> Path:
    """Staging name a tool writes to before the result is moved into place."""
    return path.with_name(f"{path.stem}.partial{path.suffix}")


class SubtitleExtractor:
    """Extracts subtitle artifacts for a video file, reusing cached results."""

    def __init__(
        self,
        extracted_folder: Path,
        prober: StreamProber,
        mkvextract_path: str = "mkvextract",
        speech_to_text: SpeechToText | None = None,
        timeout: float | None = None,
    ) -> None:
        self.extracted_folder = Path(extracted_folder)
        self.prober = prober
        self.mkvextract_path = mkvextract_path
        self.speech_to_text = speech_to_text
        self.timeout = timeout

    def cache_path(self, fingerprint: str, stream_index: int | str, extension: str) -> Path:
        """Cache location for one stream of a fingerprinted file."""
        folder = self.extracted_folder / fingerprint[:2] / fingerprint[2:4]
        return folder / f"{fingerprint}_{stream_index}.{extension}"

    async def extract(self, video_file: Path) -> Outcome[list[ExtractedSubtitle]]:
        """Extract (or reuse) every usable subtitle stream of ``video_file``.

        Returns:
            Ok with one artifact per usable stream, or Failed. A file without
            subtitles and without a speech-to-text backend fails with
            NotSupportedError.
        """
        try:
            fingerprint = await asyncio.to_thread(compute_fingerprint, video_file)
        except OSError as e:
            return Failed(ExtractionError(f"Cannot fingerprint {video_file.name}: {e}"))

        logger.info(f"Found episode {video_file.name} with hash {fingerprint}")

        generated = self.cache_path(fingerprint, GENERATED_INDEX, "srt")
        if generated.exists():
            logger.debug(f"Using cached generated subtitles {generated}")
            return Ok([TextSubtitle(generated, GENERATED_INDEX)])

        streams = await self.prober.probe(video_file)
        subtitle_streams = select_subtitle_streams(streams)

        if not subtitle_streams:
            return await self._generate(video_file, streams, generated)

        artifacts: list[ExtractedSubtitle] = []
        failures: list[str] = []

        for stream in subtitle_streams:
            logger.info(
                f"Probed subtitles stream index {stream.index} with codec {stream.codec_name}"
            )
            extension = extension_for_codec(stream.codec_name)
            if extension is None:
                logger.warning(
                    f"Skipping stream {stream.index} of {video_file.name}: "
                    f"unsupported codec {stream.codec_name}"
                )
                continue

            target = self.cache_path(fingerprint, stream.index, extension)
            artifact = for_codec(stream.codec_name, target, stream.index)

            if not isinstance(artifact, TextSubtitle) and artifact.text_path.exists():
                logger.debug(f"Using cached OCR text {artifact.text_path}")
                artifacts.append(TextSubtitle(artifact.text_path, stream.index))
                continue

            if target.exists():
                logger.debug(f"Using cached extraction {target}")
                artifacts.append(artifact)
                continue

            logger.info(f"Extracting subtitles to: {target}")
            if await self._extract_stream(video_file, stream, artifact):
                artifacts.append(artifact)
            else:
                failures.append(f"stream {stream.index} ({stream.codec_name})")

        if artifacts:
            return Ok(artifacts)
        if failures:
            return Failed(
                ExtractionError(
                    f"Failed to extract subtitles from {video_file.name}: {', '.join(failures)}"
                )
            )
        return Failed(ExtractionError(f"Unable to probe for subtitles in {video_file.name}"))

    async def _generate(
        self, video_file: Path, streams: list[ProbedStream], target: Path
    ) -> Outcome[list[ExtractedSubtitle]]:
        """Speech-to-text fallback for files without subtitle streams."""
        if self.speech_to_text is None:
            return Failed(
                NotSupportedError(
                    f"{video_file.name} has no subtitles and no speech-to-text backend is configured"
                )
            )

        audio = select_audio_stream(streams)
        if audio is None:
            return Failed(
                NotSupportedError(f"{video_file.name} has neither subtitle nor audio streams")
            )

        outcome = await self.speech_to_text.generate(video_file, audio, target)
        if isinstance(outcome, Ok):
            return Ok([TextSubtitle(outcome.value, GENERATED_INDEX)])
        return outcome

    async def _extract_stream(
        self, video_file: Path, stream: ProbedStream, artifact: ExtractedSubtitle
    ) -> bool:
        """Run mkvextract for one track and move the result into the cache."""
        target = artifact.path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create cache folder {target.parent}: {e}")
            return False
        staging = partial_path(target)

        # mkvextract writes the .idx next to a VobSub .sub
        moves = [(staging, target)]
        if isinstance(artifact, DvdSubtitle):
            moves.append((partial_path(artifact.idx_path), artifact.idx_path))

        try:
            result = await run_process(
                [self.mkvextract_path, str(video_file), "tracks", f"{stream.index}:{staging}"],
                timeout=self.timeout,
            )
        except TimeoutError:
            logger.error(f"mkvextract timed out extracting stream {stream.index}")
            self._discard(src for src, _ in moves)
            return False
        except BaseException:
            self._discard(src for src, _ in moves)
            raise

        if not result.ok or not staging.exists():
            logger.error(f"Failed to extract subtitles. {result.error_summary}")
            self._discard(src for src, _ in moves)
            return False

        # the .sub marks the cache entry as present, so it moves last
        try:
            for src, dest in reversed(moves):
                if src.exists():
                    os.replace(src, dest)
        except OSError as e:
            logger.error(f"Cannot move extracted subtitles into {target.parent}: {e}")
            self._discard(path for move in moves for path in move)
            return False
        return True

    @staticmethod
    def _discard(paths) -> None:
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.debug(f"Could not remove partial file {path}: {e}")
