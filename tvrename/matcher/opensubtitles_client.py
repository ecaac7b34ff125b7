"""OpenSubtitles reference subtitle client.

Downloads the English subtitles for every episode of a season into the
reference folder of a season directory, and records how many episodes the
season has in ``.episode-count`` so later runs stay offline.
"""

import gzip
import os
import threading
import time
from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Any, TypeVar

import requests
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tvrename.core.errors import ReferenceCorpusError
from tvrename.core.organizer import build_episode_filename
from tvrename.core.results import Failed, Ok, Outcome
from tvrename.matcher.reference import parse_season_episode, reference_files, reference_folder

F = TypeVar("F", bound=Callable[..., Any])

EPISODE_COUNT_FILE = ".episode-count"


def retry_network_operation(max_retries: int = 3, base_delay: float = 1.0) -> Callable[[F], F]:
    """Decorator for retrying network operations."""

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = base_delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except (requests.ConnectionError, requests.Timeout) as e:
                    if attempt == max_retries:
                        logger.error(
                            f"Max retries ({max_retries}) exceeded for {func.__name__}: {e}"
                        )
                        raise

                    logger.warning(
                        f"Network retry {attempt + 1}/{max_retries + 1} for {func.__name__}: {e}"
                    )
                    time.sleep(delay)
                    delay = min(delay * 2, 30)  # Cap at 30 seconds

        return wrapper  # type: ignore

    return decorator


class SearchResult(BaseModel):
    """One subtitle from an OpenSubtitles search response."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sub_file_name: str | None = Field(default=None, alias="SubFileName")
    info_format: str | None = Field(default=None, alias="InfoFormat")
    sub_format: str | None = Field(default=None, alias="SubFormat")
    series_season: str | None = Field(default=None, alias="SeriesSeason")
    series_episode: str | None = Field(default=None, alias="SeriesEpisode")
    sub_download_link: str | None = Field(default=None, alias="SubDownloadLink")
    score: float = Field(default=0.0, alias="Score")

    @property
    def is_web_dl(self) -> bool:
        return (self.info_format or "").lower() == "web-dl"


class EpisodeSearchResults(BaseModel):
    """All usable subtitles for one episode, best first."""

    episode: int
    results: list[SearchResult]

    @property
    def best(self) -> SearchResult:
        return self.results[0]


def group_by_episode(results: list[SearchResult]) -> list[EpisodeSearchResults]:
    """Keep downloadable English SubRip results and group them by episode.

    Within an episode, web-dl releases come first, then higher scores.
    """
    grouped: dict[int, list[SearchResult]] = {}
    for result in results:
        if not result.sub_file_name or not result.sub_format or not result.series_episode:
            continue
        if ".ita." in result.sub_file_name.lower():
            continue
        if result.sub_format.lower() != "srt" or not result.sub_download_link:
            continue
        try:
            episode = int(result.series_episode)
        except ValueError:
            continue
        grouped.setdefault(episode, []).append(result)

    return [
        EpisodeSearchResults(
            episode=episode,
            results=sorted(items, key=lambda r: (not r.is_web_dl, -r.score)),
        )
        for episode, items in sorted(grouped.items())
    ]


class OpenSubtitlesClient:
    """Client for the OpenSubtitles REST search API.

    Implements rate limiting to be respectful to the server.
    """

    # Rate limiting: max requests per minute
    REQUESTS_PER_MINUTE = 40
    MIN_REQUEST_INTERVAL = 60.0 / REQUESTS_PER_MINUTE

    def __init__(
        self,
        base_url: str = "https://rest.opensubtitles.org",
        user_agent: str = "tvrename v1",
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})
        self._last_request_time = 0.0

    def _rate_limit(self):
        """Enforce rate limiting between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self.MIN_REQUEST_INTERVAL:
            sleep_time = self.MIN_REQUEST_INTERVAL - elapsed
            logger.debug(f"Rate limiting: sleeping {sleep_time:.2f}s")
            time.sleep(sleep_time)
        self._last_request_time = time.time()

    @retry_network_operation(max_retries=3, base_delay=1.0)
    def _get(self, url: str) -> requests.Response:
        """Make a rate-limited GET request."""
        self._rate_limit()
        logger.debug(f"GET {url}")
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response

    def search(self, imdb: str, season: int, language: str = "eng") -> list[EpisodeSearchResults]:
        """Search subtitles for one season of a show.

        Args:
            imdb: IMDb id, with or without the ``tt`` prefix
            season: Season number
            language: OpenSubtitles language id

        Raises:
            ReferenceCorpusError: If the request fails or the response is not a result list
        """
        imdb_id = imdb.lower().removeprefix("tt")
        url = f"{self.base_url}/search/imdbid-{imdb_id}/season-{season}/sublanguageid-{language}"
        logger.info(f"Searching OpenSubtitles for imdb {imdb} season {season}")

        try:
            payload = self._get(url).json()
            results = [SearchResult.model_validate(item) for item in payload]
        except requests.RequestException as e:
            raise ReferenceCorpusError(f"Error searching OpenSubtitles: {e}") from e
        except (ValueError, TypeError, ValidationError) as e:
            raise ReferenceCorpusError(f"Unexpected OpenSubtitles response: {e}") from e

        return group_by_episode(results)

    def download(self, result: SearchResult) -> bytes:
        """Download one subtitle file.

        Raises:
            ReferenceCorpusError: If the download fails
        """
        try:
            content = self._get(result.sub_download_link).content
        except requests.RequestException as e:
            raise ReferenceCorpusError(f"Error downloading {result.sub_file_name}: {e}") from e

        # downloads are gzip compressed
        try:
            return gzip.decompress(content)
        except (OSError, EOFError):
            return content


class ReferenceSubtitleDownloader:
    """Keeps a season folder's reference subtitles complete."""

    def __init__(self, client: OpenSubtitlesClient):
        self.client = client

    @staticmethod
    def read_episode_count(folder: Path) -> int | None:
        marker = reference_folder(folder) / EPISODE_COUNT_FILE
        try:
            return int(marker.read_text().strip())
        except (OSError, ValueError):
            return None

    @staticmethod
    def write_episode_count(folder: Path, count: int) -> None:
        marker = reference_folder(folder) / EPISODE_COUNT_FILE
        staging = marker.with_name(f"{EPISODE_COUNT_FILE}.partial")
        staging.write_text(str(count))
        os.replace(staging, marker)

    def download(
        self,
        title: str,
        imdb: str,
        season: int,
        folder: Path,
        cancelled: threading.Event | None = None,
    ) -> Outcome[int]:
        """Download missing reference subtitles for a season.

        Returns:
            Ok(expected episode count) or Failed; a Failed result leaves every
            file already on disk in place
        """
        ref_dir = reference_folder(folder)
        try:
            ref_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create reference folder {ref_dir}: {e}")
            return Failed(ReferenceCorpusError(f"Cannot create reference folder {ref_dir}: {e}"))

        expected = self.read_episode_count(folder)
        actual = len(reference_files(folder))
        if expected is not None and expected == actual:
            logger.debug(f"Reference subtitles complete ({actual} episodes)")
            return Ok(expected)

        try:
            episodes = self.client.search(imdb, season)
        except ReferenceCorpusError as e:
            logger.error(str(e))
            return Failed(e)

        if not episodes:
            logger.critical(f"OpenSubtitles returned no results for imdb {imdb} season {season}")
            return Failed(ReferenceCorpusError(f"No reference subtitles for season {season}"))

        last_episode = max(e.episode for e in episodes)
        logger.info(f"Found {last_episode} episodes to download")
        try:
            self.write_episode_count(folder, last_episode)
        except OSError as e:
            logger.error(f"Cannot write episode count: {e}")
            return Failed(ReferenceCorpusError(f"Cannot write episode count in {ref_dir}: {e}"))

        present = set()
        for path in reference_files(folder):
            info = parse_season_episode(path.name)
            if info is not None and info.season == season:
                present.update(info.episodes)

        for episode in episodes:
            if cancelled is not None and cancelled.is_set():
                logger.info("Reference download cancelled")
                break
            if episode.episode in present:
                continue

            target = ref_dir / build_episode_filename(title, season, [episode.episode], ".srt")
            try:
                content = self.client.download(episode.best)
            except ReferenceCorpusError as e:
                logger.warning(str(e))
                continue

            staging = target.with_name(f"{target.stem}.partial")
            try:
                staging.write_bytes(content)
                os.replace(staging, target)
            except OSError as e:
                logger.warning(f"Cannot save {target.name}: {e}")
                staging.unlink(missing_ok=True)
                continue
            logger.info(f"Downloaded reference subtitles {target.name}")

        return Ok(last_episode)
