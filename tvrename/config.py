"""Runtime configuration from environment variables.

All fields have defaults; no .env file is required. Values are read once by
the CLI and passed into each component explicitly, so nothing below the CLI
reads the environment on its own.
"""

import os
import sys
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_cache_folder() -> Path:
    """Return the platform cache location used when no cache folder is configured."""
    if sys.platform == "win32":
        base = os.environ.get("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
        return Path(base) / "tvrename" / "cache"
    base = os.environ.get("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return Path(base) / "tvrename"


class Settings(BaseSettings):
    """Tool paths, cache location and matching defaults. Loaded from TVRENAME_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="TVRENAME_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Extraction cache (CACHE_FOLDER kept for compatibility with older setups)
    cache_folder: Path = Field(
        default_factory=_default_cache_folder,
        validation_alias=AliasChoices("TVRENAME_CACHE_FOLDER", "CACHE_FOLDER", "cache_folder"),
    )

    # External tools
    ffprobe_path: str = "ffprobe"
    ffmpeg_path: str = "ffmpeg"
    mkvextract_path: str = "mkvextract"
    vobsub2srt_path: str = "vobsub2srt"
    pgstosrt_command: str = "PgsToSrt"
    whisper_path: str = "whisper-cli"
    whisper_model: Path | None = None
    whisper_language: str = "en"
    ocr_language: str = "en"
    process_timeout: float | None = None

    # Matching
    default_confidence: int = Field(default=40, ge=0, le=100)

    # Reference subtitles
    opensubtitles_url: str = "https://rest.opensubtitles.org"
    opensubtitles_user_agent: str = "tvrename v1"
    request_timeout: float = 30.0

    # Logging
    debug: bool = False
    log_file: Path = Path.home() / ".tvrename" / "tvrename.log"

    @property
    def extracted_folder(self) -> Path:
        """Root of the content-addressed extraction cache."""
        return Path(self.cache_folder).expanduser() / "extracted"
