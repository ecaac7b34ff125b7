"""Extracted subtitle artifacts.

A closed set of variants chosen from the codec name when the artifact is
created. Bitmap variants are turned into ``TextSubtitle`` by OCR in the
normalizer; a text variant is used as-is.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

# Sentinel stream index for subtitles produced by speech-to-text
GENERATED_INDEX = "generated"

TEXT_CODECS = {"subrip": "srt", "mov_text": "srt", "srt": "srt", "ass": "ass", "ssa": "ass"}
DVD_CODECS = {"dvd_subtitle": "sub"}
PGS_CODECS = {"hdmv_pgs_subtitle": "sup"}


@dataclass(frozen=True)
class ExtractedSubtitle(ABC):
    """Base for a cached subtitle artifact of one stream."""

    path: Path
    stream_index: int | str

    @property
    def text_path(self) -> Path:
        """Where the text version of this artifact lives."""
        return self.path.with_suffix(".srt")

    @property
    @abstractmethod
    def kind(self) -> str:
        """Short variant name used in log messages."""


@dataclass(frozen=True)
class TextSubtitle(ExtractedSubtitle):
    """SubRip/ASS text subtitles, readable directly."""

    @property
    def kind(self) -> str:
        return "text"


@dataclass(frozen=True)
class DvdSubtitle(ExtractedSubtitle):
    """VobSub bitmaps (.idx/.sub pair), OCR'd with vobsub2srt."""

    @property
    def kind(self) -> str:
        return "dvd"

    @property
    def idx_path(self) -> Path:
        return self.path.with_suffix(".idx")


@dataclass(frozen=True)
class PgsSubtitle(ExtractedSubtitle):
    """Blu-ray PGS bitmaps (.sup), OCR'd with PgsToSrt."""

    @property
    def kind(self) -> str:
        return "pgs"


def extension_for_codec(codec_name: str) -> str | None:
    """File extension for a subtitle codec, or None if the codec is unsupported."""
    for table in (TEXT_CODECS, DVD_CODECS, PGS_CODECS):
        if codec_name in table:
            return table[codec_name]
    return None


def for_codec(codec_name: str, path: Path, stream_index: int | str) -> ExtractedSubtitle:
    """Build the artifact variant matching a codec.

    Raises:
        ValueError: If the codec is not a supported subtitle codec
    """
    if codec_name in TEXT_CODECS:
        return TextSubtitle(path, stream_index)
    if codec_name in DVD_CODECS:
        return DvdSubtitle(path, stream_index)
    if codec_name in PGS_CODECS:
        return PgsSubtitle(path, stream_index)
    raise ValueError(f"Unsupported subtitle codec: {codec_name}")
