"""Bitmap subtitle OCR.

DVD (VobSub) tracks go through vobsub2srt, Blu-ray PGS tracks through
PgsToSrt. Either way the result is a SubRip file next to the bitmap artifact
in the extraction cache, so later runs skip OCR entirely.
"""

import logging
import os
import shlex
import shutil
from pathlib import Path

from tvrename.core.errors import OcrError
from tvrename.core.extractor import partial_path
from tvrename.core.process import run_process
from tvrename.core.results import Failed, Ok, Outcome
from tvrename.core.subtitles import DvdSubtitle, ExtractedSubtitle, PgsSubtitle, TextSubtitle

logger = logging.getLogger(__name__)


class BitmapOcr:
    """Converts bitmap subtitle artifacts to text artifacts."""

    def __init__(
        self,
        vobsub2srt_path: str = "vobsub2srt",
        pgstosrt_command: str = "PgsToSrt",
        language: str = "en",
        timeout: float | None = None,
    ) -> None:
        self.vobsub2srt_path = vobsub2srt_path
        self.pgstosrt_command = pgstosrt_command
        self.language = language
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "BitmapOcr":
        return cls(
            vobsub2srt_path=settings.vobsub2srt_path,
            pgstosrt_command=settings.pgstosrt_command,
            language=settings.ocr_language,
            timeout=settings.process_timeout,
        )

    async def to_text(self, artifact: ExtractedSubtitle) -> Outcome[TextSubtitle]:
        """Return a text artifact for ``artifact``, running OCR if needed."""
        if isinstance(artifact, TextSubtitle):
            return Ok(artifact)

        if artifact.text_path.exists():
            logger.debug(f"Using cached OCR text {artifact.text_path}")
            return Ok(TextSubtitle(artifact.text_path, artifact.stream_index))

        if isinstance(artifact, DvdSubtitle):
            return await self._ocr_dvd(artifact)
        if isinstance(artifact, PgsSubtitle):
            return await self._ocr_pgs(artifact)
        return Failed(OcrError(f"No OCR tool for {artifact.kind} subtitles"))

    async def _ocr_dvd(self, artifact: DvdSubtitle) -> Outcome[TextSubtitle]:
        logger.info("Converting DVD bitmap subtitles to text")
        output = artifact.text_path
        staging = partial_path(output)

        # vobsub2srt names its output after its input, so it reads a staged
        # copy of the .idx/.sub pair and writes next to it
        staged_inputs = [
            (artifact.idx_path, partial_path(artifact.idx_path)),
            (artifact.path, partial_path(artifact.path)),
        ]
        try:
            for src, dest in staged_inputs:
                _link_or_copy(src, dest)
        except OSError as e:
            _discard([dest for _, dest in staged_inputs])
            return Failed(OcrError(f"Cannot stage {artifact.path.name} for vobsub2srt: {e}"))

        try:
            try:
                result = await run_process(
                    [
                        self.vobsub2srt_path,
                        "-l",
                        self.language,
                        str(partial_path(artifact.path).with_suffix("")),
                    ],
                    timeout=self.timeout,
                )
            except TimeoutError:
                return Failed(OcrError(f"vobsub2srt timed out on {artifact.path.name}"))

            if not result.ok or not staging.exists():
                return Failed(OcrError(f"VobSub2SRT failed: {result.error_summary}"))

            return _publish(staging, output, artifact.stream_index)
        finally:
            _discard([staging, *(dest for _, dest in staged_inputs)])

    async def _ocr_pgs(self, artifact: PgsSubtitle) -> Outcome[TextSubtitle]:
        logger.info("Converting PGS bitmap subtitles to text")
        output = artifact.text_path
        staging = partial_path(output)

        try:
            try:
                result = await run_process(
                    [
                        *shlex.split(self.pgstosrt_command),
                        "--input",
                        str(artifact.path),
                        "--output",
                        str(staging),
                    ],
                    timeout=self.timeout,
                )
            except TimeoutError:
                return Failed(OcrError(f"PgsToSrt timed out on {artifact.path.name}"))

            if not result.ok or not staging.exists():
                return Failed(OcrError(f"PgsToSrt failed: {result.error_summary}"))

            return _publish(staging, output, artifact.stream_index)
        finally:
            _discard([staging])


def _link_or_copy(src: Path, dest: Path) -> None:
    dest.unlink(missing_ok=True)
    try:
        os.link(src, dest)
    except OSError:
        # filesystems without hard links
        shutil.copyfile(src, dest)


def _publish(staging: Path, output: Path, stream_index: int | str) -> Outcome[TextSubtitle]:
    """Move finished OCR text into the cache."""
    try:
        os.replace(staging, output)
    except OSError as e:
        return Failed(OcrError(f"Cannot cache OCR text at {output}: {e}"))
    return Ok(TextSubtitle(output, stream_index))


def _discard(paths: list[Path]) -> None:
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.debug(f"Could not remove partial file {path}: {e}")
