import re
from pathlib import Path

from loguru import logger

from tvrename.core.errors import SubtitleError
from tvrename.matcher.models import EpisodeInfo, ReferenceEntry
from tvrename.matcher.normalizer import normalize_lines
from tvrename.matcher.srt_utils import read_subtitle_lines

REFERENCE_SUFFIXES = (".srt", ".txt")

# s01e02, S01x02, s01e02-e03, s01e02e03
_EPISODE_PATTERN = re.compile(r"s(\d+)[ex](\d+)((?:-?e\d+)*)", re.IGNORECASE)
_CONTINUATION = re.compile(r"e(\d+)", re.IGNORECASE)


def reference_folder(folder: Path) -> Path:
    """Where reference subtitles for a season folder are kept."""
    return Path(folder) / ".tvrename" / "reference"


def parse_season_episode(filename: str) -> EpisodeInfo | None:
    """Parse season and episode(s) from a reference file name.

    A continuation (``s01e02-e04``) expands to every episode in the range.
    """
    match = _EPISODE_PATTERN.search(filename)
    if not match:
        return None

    season = int(match.group(1))
    first = int(match.group(2))
    continuation = [int(e) for e in _CONTINUATION.findall(match.group(3))]
    last = max([first, *continuation])
    return EpisodeInfo(season=season, episodes=list(range(first, last + 1)))


def reference_files(folder: Path) -> list[Path]:
    """Top-level reference subtitle files, sorted by name."""
    ref_dir = reference_folder(folder)
    if not ref_dir.is_dir():
        return []
    return sorted(
        (p for p in ref_dir.iterdir() if p.is_file() and p.suffix.lower() in REFERENCE_SUFFIXES),
        key=lambda p: p.name,
    )


def load_reference_entry(path: Path, info: EpisodeInfo) -> ReferenceEntry:
    """Read and normalize one reference file.

    Raises:
        SubtitleError: If the file cannot be read
    """
    lines = normalize_lines(read_subtitle_lines(path))
    return ReferenceEntry(
        season=info.season,
        episodes=info.episodes,
        text=" ".join(lines),
        line_count=len(lines),
        source=path,
    )


def load_reference_corpus(folder: Path, season: int) -> list[ReferenceEntry]:
    """Load every reference entry for ``season`` from a season folder.

    Files without an episode code, for another season, without any dialogue,
    or that cannot be read are skipped.
    """
    entries = []
    for path in reference_files(folder):
        info = parse_season_episode(path.name)
        if info is None:
            logger.debug(f"Ignoring reference file without episode code: {path.name}")
            continue
        if info.season != season:
            logger.debug(f"Ignoring reference file for season {info.season}: {path.name}")
            continue

        try:
            entry = load_reference_entry(path, info)
        except SubtitleError as e:
            logger.warning(f"Skipping unreadable reference file {path.name}: {e}")
            continue

        if entry.line_count == 0:
            logger.warning(f"Skipping empty reference file {path.name}")
            continue
        entries.append(entry)

    entries.sort(key=lambda e: (e.season, e.episodes[0]))
    logger.info(f"Loaded {len(entries)} reference subtitles for season {season}")
    return entries
