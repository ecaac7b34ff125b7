"""Classifier - splits a folder into labeled and unlabeled episode files.

A file is "known" when its name already carries an episode code such as
``s01e02.`` or ``s01e02-e03.``; every other supported video file is
"unknown". Only the top level of the folder is scanned.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".mkv",)

# Lowercase on purpose: names written by the organizer are lowercase
KNOWN_EPISODE_PATTERN = re.compile(r"(s\d{2}e\d{2}(?:-e\d{2})?)\.")


@dataclass
class FolderContents:
    """Top-level video files of a folder, partitioned by name."""

    known: list[Path] = field(default_factory=list)
    unknown: list[Path] = field(default_factory=list)


def is_supported_video(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() in SUPPORTED_EXTENSIONS


def is_known_episode(path: Path) -> bool:
    """True if the file name already encodes season and episode."""
    return known_episode_code(path) is not None


def known_episode_code(path: Path) -> str | None:
    """The episode code a file name carries, e.g. ``s01e02-e03``."""
    match = KNOWN_EPISODE_PATTERN.search(path.name)
    return match.group(1) if match else None


def _video_files(folder: Path) -> list[Path]:
    return sorted((p for p in Path(folder).iterdir() if is_supported_video(p)), key=lambda p: p.name)


def classify(folder: Path) -> FolderContents:
    """Partition the supported video files of ``folder``, each list sorted by name."""
    contents = FolderContents()
    for path in _video_files(folder):
        if is_known_episode(path):
            contents.known.append(path)
        else:
            contents.unknown.append(path)
    logger.debug(
        f"Classified {folder}: {len(contents.known)} known, {len(contents.unknown)} unknown"
    )
    return contents


def find_known_episodes(folder: Path) -> list[Path]:
    return classify(folder).known


def find_unknown_episodes(folder: Path) -> list[Path]:
    return classify(folder).unknown
