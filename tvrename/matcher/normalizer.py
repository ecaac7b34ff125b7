"""Text normalization for matching.

Turns subtitle cues into lowercase dialogue lines so that candidate text from
OCR, speech-to-text or embedded subtitles can be compared with reference
subtitles line by line.
"""

import asyncio
import re
from collections.abc import Iterable

from loguru import logger

from tvrename.core.errors import SubtitleError
from tvrename.core.ocr import BitmapOcr
from tvrename.core.results import Absent, Failed, Ok, Outcome
from tvrename.core.subtitles import ExtractedSubtitle
from tvrename.matcher.srt_utils import read_subtitle_lines

# OCR engines often read "ll" as two pipes
_DOUBLE_PIPE = re.compile(r"\|\|")
_APOSTROPHE = re.compile(r"(?<=\w)[’‘`´']|[’‘`´'](?=\w)")
_SOUND_DESCRIPTION = re.compile(r"\[[^\]]*\]|\([^)]*\)")
_MUSIC = re.compile(r"[♪♫#]+")
_LEADING_DASH = re.compile(r"^[\s\-‐-―]+")
# Upper-case names ("JOHN:", "DR. COBB:") or a single capitalised word ("Mal:")
_SPEAKER_LABEL = re.compile(r"^(?:[A-Z][A-Z0-9 .'#]{0,24}|[A-Z][a-z]+):\s*")
_TRAILING_COLON = re.compile(r"\s*:+$")
_DASHES = re.compile(r"[\-‐-―]")
_WHITESPACE = re.compile(r"\s+")


def normalize_line(line: str) -> str:
    """Canonical form of one line; empty if nothing worth matching remains."""
    # speaker labels are recognised by their case
    text = _LEADING_DASH.sub("", line)
    text = _SPEAKER_LABEL.sub("", text)

    text = text.lower()
    text = _DOUBLE_PIPE.sub("ll", text)
    text = _APOSTROPHE.sub("'", text)
    text = _SOUND_DESCRIPTION.sub(" ", text)
    text = _MUSIC.sub(" ", text)
    text = _LEADING_DASH.sub("", text)
    text = _TRAILING_COLON.sub("", text)

    text = _DASHES.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def normalize_lines(raw_lines: Iterable[str]) -> list[str]:
    """Normalize cue lines, dropping empty and sound-description lines."""
    lines = []
    for raw in raw_lines:
        line = normalize_line(raw)
        if line:
            lines.append(line)
    return lines


class TextNormalizer:
    """Produces normalized lines from any subtitle artifact."""

    def __init__(self, ocr: BitmapOcr) -> None:
        self.ocr = ocr

    async def convert_to_lines(self, artifact: ExtractedSubtitle) -> Outcome[list[str]]:
        """Normalized dialogue lines of ``artifact``.

        Bitmap artifacts are converted with OCR first; OCR and read failures
        are returned as Failed. A subtitle without any dialogue is Absent.
        """
        text = await self.ocr.to_text(artifact)
        if not isinstance(text, Ok):
            return text

        try:
            raw_lines = await asyncio.to_thread(read_subtitle_lines, text.value.path)
        except SubtitleError as e:
            logger.error(f"Failed to read subtitles {text.value.path}: {e}")
            return Failed(e)

        lines = normalize_lines(raw_lines)
        logger.debug(f"Convert result {len(lines)} lines from {text.value.path.name}")
        if not lines:
            return Absent(f"No dialogue in {text.value.path.name}")
        return Ok(lines)
