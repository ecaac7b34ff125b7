"""Error handling framework for tvrename.

Exception hierarchy carried by ``Failed`` outcomes.
"""


# Custom Exception Hierarchy
class TvRenameError(Exception):
    """Base exception for all tvrename-specific errors."""

    pass


class ExtractionError(TvRenameError):
    """Subtitle track extraction failed.

    Raised when mkvextract or the cache layout cannot produce an artifact.
    """

    pass


class NotSupportedError(ExtractionError):
    """The file has no usable subtitles and cannot be transcribed."""

    pass


class OcrError(TvRenameError):
    """Bitmap subtitle OCR failed (vobsub2srt or PgsToSrt)."""

    pass


class TranscriptionError(TvRenameError):
    """Speech-to-text generation failed (ffmpeg or whisper)."""

    pass


class SubtitleError(TvRenameError):
    """Subtitle file could not be read or parsed."""

    pass


class ReferenceCorpusError(TvRenameError):
    """Reference subtitle search, download or loading failed."""

    pass


class RenameCollisionError(TvRenameError):
    """Rename destination already exists; the source was left untouched."""

    pass


class InvalidTransitionError(TvRenameError):
    """A run attempted an illegal state transition."""

    pass

