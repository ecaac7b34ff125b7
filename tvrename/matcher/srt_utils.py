import re
from dataclasses import dataclass, field
from pathlib import Path

import chardet
from loguru import logger

from tvrename.core.errors import SubtitleError

FALLBACK_ENCODINGS = ("utf-8", "latin-1", "cp1252")

_TIMESTAMP_LINE = re.compile(r"^\s*(\d+:\d{2}:\d{2}[,.]\d{1,3})\s*-->\s*(\d+:\d{2}:\d{2}[,.]\d{1,3})")
_HTML_TAG = re.compile(r"<[^>]+>")
_ASS_OVERRIDE = re.compile(r"\{[^}]*\}")
_ASS_BREAK = re.compile(r"\\[Nn]")
_URL = re.compile(r"(?:www\.|https?://|\w+\.(?:com|net|org|io|tv|cc|me)\b)")

_CREDIT_PATTERNS = (
    "sync",
    "subtitles by",
    "corrected by",
    "ripped by",
    "encoded by",
    "transcript by",
    "timing by",
)


@dataclass
class SubtitleCue:
    """One timed subtitle block reduced to plaintext lines."""

    start: float
    lines: list[str] = field(default_factory=list)


def _is_watermark_block(text: str, start: float) -> bool:
    """Detect cues that are watermarks, ads, or credit annotations.

    Checks for:
    - URLs or domain-like patterns (e.g., www.tvsubtitles.net, opensubtitles.org)
    - Short "sync by"/"subtitles by" credits near the start of the file
    """
    text_lower = text.lower().strip()

    if _URL.search(text_lower):
        return True

    # Very short non-dialogue at start (e.g., "sync by", "subtitles by", "corrected by")
    if start < 5.0 and len(text_lower.split()) <= 8:
        if any(p in text_lower for p in _CREDIT_PATTERNS):
            return True

    return False


def detect_file_encoding(file_path) -> str:
    """Detect the encoding of a file using chardet.

    Args:
        file_path: Path to the file

    Returns:
        Detected encoding, defaults to 'utf-8' if detection fails
    """
    try:
        with open(file_path, "rb") as f:
            raw_data = f.read(1024 * 1024)
    except OSError as e:
        logger.warning(f"Error detecting encoding for {file_path}: {e}")
        return "utf-8"

    result = chardet.detect(raw_data)
    encoding = result["encoding"]
    confidence = result["confidence"] or 0.0

    logger.debug(f"Detected encoding {encoding} with {confidence:.2%} confidence for {file_path}")
    return encoding if encoding else "utf-8"


def read_file_with_fallback(file_path, encodings=None) -> str:
    """Read a file trying multiple encodings in order of preference.

    Args:
        file_path: Path to the file
        encodings: List of encodings to try, defaults to the detected one then common ones

    Returns:
        File contents

    Raises:
        SubtitleError: If the file cannot be opened or decoded with any encoding
    """
    if encodings is None:
        encodings = [detect_file_encoding(file_path), *FALLBACK_ENCODINGS]

    file_path = Path(file_path)
    errors = []

    for encoding in encodings:
        try:
            with open(file_path, encoding=encoding) as f:
                content = f.read()
            logger.debug(f"Successfully read {file_path} using {encoding} encoding")
            return content
        except (UnicodeDecodeError, LookupError) as e:
            errors.append(f"{encoding}: {e}")
            continue
        except OSError as e:
            raise SubtitleError(f"Cannot read {file_path}: {e}") from e

    raise SubtitleError(f"Failed to read {file_path} with any encoding: " + "; ".join(errors))


def parse_timestamp(timestamp: str) -> float:
    """Parse SRT timestamp into seconds."""
    hours, minutes, seconds = timestamp.strip().replace(",", ".").split(":")
    return float(hours) * 3600 + float(minutes) * 60 + float(seconds)


def strip_markup(text: str) -> str:
    """Remove HTML-like tags, ASS override blocks and ASS line breaks."""
    text = _ASS_BREAK.sub("\n", text)
    text = _ASS_OVERRIDE.sub("", text)
    return _HTML_TAG.sub("", text)


def parse_srt(content: str) -> list[SubtitleCue]:
    """Split SubRip content into cues; blocks without a timestamp line are ignored."""
    cues = []
    blocks = re.split(r"\n\s*\n", content.replace("\r\n", "\n").replace("\r", "\n").lstrip("\ufeff"))

    for block in blocks:
        lines = block.strip().split("\n")
        # the counter line is optional in sloppy files
        for i, line in enumerate(lines[:2]):
            match = _TIMESTAMP_LINE.match(line)
            if match:
                break
        else:
            continue

        try:
            start = parse_timestamp(match.group(1))
        except ValueError as e:
            logger.warning(f"Error parsing subtitle block: {e}")
            continue

        text_lines = [
            stripped
            for raw in lines[i + 1 :]
            for stripped in (part.strip() for part in strip_markup(raw).split("\n"))
            if stripped
        ]
        if text_lines:
            cues.append(SubtitleCue(start, text_lines))

    return cues


def parse_ass(content: str) -> list[SubtitleCue]:
    """Extract the dialogue of an ASS/SSA script."""
    cues = []
    text_column = 9
    start_column = 1

    for raw in content.splitlines():
        line = raw.strip()
        if line.lower().startswith("format:") and "text" in line.lower():
            columns = [c.strip().lower() for c in line.split(":", 1)[1].split(",")]
            text_column = columns.index("text")
            start_column = columns.index("start") if "start" in columns else 1
            continue
        if not line.lower().startswith("dialogue:"):
            continue

        fields = line.split(":", 1)[1].split(",", text_column)
        if len(fields) <= text_column:
            continue
        try:
            start = parse_timestamp(fields[start_column])
        except ValueError:
            start = 0.0

        text_lines = [part.strip() for part in strip_markup(fields[text_column]).split("\n")]
        text_lines = [t for t in text_lines if t]
        if text_lines:
            cues.append(SubtitleCue(start, text_lines))

    return cues


def read_subtitle_lines(file_path: Path) -> list[str]:
    """Plaintext dialogue lines of an SRT, ASS/SSA or plain text subtitle file.

    Watermark and advert cues are dropped.

    Raises:
        SubtitleError: If the file cannot be read
    """
    file_path = Path(file_path)
    content = read_file_with_fallback(file_path)
    suffix = file_path.suffix.lower()

    if suffix == ".txt":
        return [line for line in content.splitlines() if line.strip()]

    cues = parse_ass(content) if suffix in (".ass", ".ssa") else parse_srt(content)

    lines = []
    for cue in cues:
        text = " ".join(cue.lines)
        if _is_watermark_block(text, cue.start):
            logger.debug(f"Filtered watermark/ad block at {cue.start:.1f}s: {text[:80]}")
            continue
        lines.extend(cue.lines)

    logger.debug(f"Read {len(lines)} lines from {len(cues)} cues in {file_path.name}")
    return lines
