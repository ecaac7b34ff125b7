from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from tvrename.core.organizer import episode_code


class EpisodeInfo(BaseModel):
    """Season and one or more contiguous episode numbers."""

    season: int
    episodes: list[int] = Field(min_length=1)

    @property
    def s_e_format(self) -> str:
        return episode_code(self.season, self.episodes)


class ReferenceEntry(BaseModel):
    """Known-correct subtitle text for one episode (or multi-episode file)."""

    season: int
    episodes: list[int] = Field(min_length=1)
    text: str
    line_count: int
    source: Path | None = None

    @property
    def episode_info(self) -> EpisodeInfo:
        return EpisodeInfo(season=self.season, episodes=self.episodes)


class MatchResult(BaseModel):
    """Best reference entry for one set of candidate lines."""

    season: int
    episodes: list[int]
    confidence: float = Field(ge=0.0)
    weighted_confidence: float = 0.0
    matched_lines: int = 0

    @property
    def episode_info(self) -> EpisodeInfo:
        return EpisodeInfo(season=self.season, episodes=self.episodes)

    @property
    def percent(self) -> int:
        return round(self.confidence * 100)


class RunMode(str, Enum):
    RENAME = "rename"
    VERIFY = "verify"


class FileStatus(str, Enum):
    RENAMED = "renamed"
    WOULD_RENAME = "would_rename"
    VERIFIED = "verified"
    MISMATCH = "mismatch"
    LOW_CONFIDENCE = "low_confidence"
    SKIPPED = "skipped"
    COLLISION = "collision"
    FAILED = "failed"


class FileOutcome(BaseModel):
    """What happened to one candidate file."""

    path: Path
    status: FileStatus
    match: MatchResult | None = None
    destination: Path | None = None
    message: str = ""


class RunReport(BaseModel):
    """Summary of one rename or verify run."""

    mode: RunMode
    folder: Path
    exit_code: int = 0
    state: str = "init"
    title: str | None = None
    season: int | None = None
    files: list[FileOutcome] = Field(default_factory=list)
    message: str = ""

    def count(self, status: FileStatus) -> int:
        return sum(1 for f in self.files if f.status == status)
