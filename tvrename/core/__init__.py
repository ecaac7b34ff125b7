"""Core modules for tvrename."""

from tvrename.core.extractor import SubtitleExtractor
from tvrename.core.hasher import compute_fingerprint
from tvrename.core.prober import StreamProber

__all__ = ["StreamProber", "SubtitleExtractor", "compute_fingerprint"]
