"""Organizer - episode naming and renaming.

Renames identified episodes in place using the naming convention:
- Show Name - s01e02.mkv
- Show Name - s01e02-e03.mkv (multi-episode files)

Also derives the show title and season from the folder layout when they are
not given explicitly (``Show Name (2008)/Season 02``).
"""

import logging
import os
import re
from collections.abc import Sequence
from pathlib import Path

from tvrename.core.errors import RenameCollisionError, TvRenameError
from tvrename.core.results import Absent, Failed, Ok, Outcome

logger = logging.getLogger(__name__)

# "Show Name (2008)" or "Show.Name.2008.Extra"
_TITLE_WITH_YEAR = re.compile(r"^(.*?)[\s.]*[.(](\d{4})(?:[.)].*)?$")
_FIRST_NUMBER = re.compile(r"(\d+)")


def sanitize_filename(name: str) -> str:
    """Remove invalid filename characters."""
    # Remove characters not allowed in Windows filenames
    invalid_chars = '<>:"/\\|?*'
    for char in invalid_chars:
        name = name.replace(char, "")

    # Also remove leading/trailing spaces and dots
    name = name.strip(". ")

    return name


def episode_code(season: int, episodes: Sequence[int]) -> str:
    """Lowercase episode code, e.g. ``s01e02``, or ``s01e02-e04`` for a range."""
    first, last = min(episodes), max(episodes)
    code = f"s{season:02d}e{first:02d}"
    if last != first:
        code += f"-e{last:02d}"
    return code


def build_episode_filename(title: str, season: int, episodes: Sequence[int], extension: str) -> str:
    """Target file name for an identified episode.

    Example: ("Firefly", 1, [1], ".mkv") -> "Firefly - s01e01.mkv"
    """
    extension = extension if extension.startswith(".") else f".{extension}"
    return f"{sanitize_filename(title)} - {episode_code(season, episodes)}{extension}"


def title_from_folder(show_folder: Path) -> str | None:
    """Show title from a folder name, without a trailing year.

    Converts: "Firefly (2002)" -> "Firefly", "Firefly.2002.1080p" -> "Firefly"
    """
    name = show_folder.name.strip()
    if not name:
        return None
    match = _TITLE_WITH_YEAR.match(name)
    if match:
        return match.group(1).strip() or None
    return name


def season_from_folder(season_folder: Path) -> int | None:
    """Season number from a folder name ("Season 02" -> 2, "Specials" -> 0)."""
    name = season_folder.name
    match = _FIRST_NUMBER.search(name)
    if match:
        return int(match.group(1))
    if name.lower().endswith("specials"):
        return 0
    return None


def rename_episode(source_file: Path, destination_name: str, dry_run: bool = False) -> Outcome[Path]:
    """Rename a file within its folder.

    Args:
        source_file: File to rename
        destination_name: New file name (no directory part)
        dry_run: Only report what would happen

    Returns:
        Ok(destination), Absent if the source disappeared, or Failed with
        RenameCollisionError when the destination already exists
    """
    destination = source_file.with_name(destination_name)

    if not source_file.exists():
        logger.warning(f"Skipping {source_file.name}: file no longer exists")
        return Absent(f"{source_file.name} no longer exists")

    if destination == source_file:
        logger.info(f"{source_file.name} already has the correct name")
        return Ok(destination)

    if destination.exists():
        logger.error(f"Cannot rename {source_file.name}: {destination.name} already exists")
        return Failed(RenameCollisionError(f"File already exists: {destination}"))

    if dry_run:
        logger.info(f"Dry run: would rename {source_file.name} -> {destination.name}")
        return Ok(destination)

    try:
        # rename is atomic within a folder; the existence check above guards overwrites
        os.rename(source_file, destination)
    except FileNotFoundError:
        logger.warning(f"Skipping {source_file.name}: file disappeared before rename")
        return Absent(f"{source_file.name} no longer exists")
    except OSError as e:
        logger.error(f"Error renaming {source_file.name}: {e}")
        return Failed(TvRenameError(f"Cannot rename {source_file.name}: {e}"))

    logger.info(f"Renamed {source_file.name} -> {destination.name}")
    return Ok(destination)
