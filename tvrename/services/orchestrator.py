"""Pipeline orchestrator for rename and verify runs.

Sequences one run over a season folder:
folder validation -> verification marker -> show identity -> reference
subtitles -> classification -> per-file extract/normalize/match -> rename or
verify -> finalize. Files are processed one at a time in name order; the
subtitle streams of one file are matched concurrently.
"""

import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path

from tvrename.config import Settings
from tvrename.core.classifier import classify, known_episode_code
from tvrename.core.errors import NotSupportedError, RenameCollisionError
from tvrename.core.extractor import SubtitleExtractor
from tvrename.core.ocr import BitmapOcr
from tvrename.core.organizer import (
    build_episode_filename,
    rename_episode,
    season_from_folder,
    title_from_folder,
)
from tvrename.core.prober import StreamProber
from tvrename.core.results import Absent, Failed, Ok, Outcome
from tvrename.core.subtitles import ExtractedSubtitle
from tvrename.core.transcriber import SpeechToText
from tvrename.matcher.episode_matcher import EpisodeMatcher
from tvrename.matcher.models import (
    FileOutcome,
    FileStatus,
    MatchResult,
    ReferenceEntry,
    RunMode,
    RunReport,
)
from tvrename.matcher.normalizer import TextNormalizer
from tvrename.matcher.opensubtitles_client import (
    OpenSubtitlesClient,
    ReferenceSubtitleDownloader,
)
from tvrename.matcher.reference import load_reference_corpus
from tvrename.services.run_state_machine import RunState, RunStateMachine

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 2

VERIFIED_MARKER = ".tvrename-verified"


@dataclass
class RunRequest:
    """Parameters of one rename or verify run."""

    mode: RunMode
    folder: Path
    imdb: str
    title: str | None = None
    season: int | None = None
    confidence: int = 40
    dry_run: bool = False


class PipelineOrchestrator:
    """Runs the identification pipeline over a season folder."""

    def __init__(
        self,
        extractor: SubtitleExtractor,
        normalizer: TextNormalizer,
        matcher: EpisodeMatcher | None = None,
        downloader: ReferenceSubtitleDownloader | None = None,
    ):
        self.extractor = extractor
        self.normalizer = normalizer
        self.matcher = matcher or EpisodeMatcher()
        self.downloader = downloader

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineOrchestrator":
        """Wire every component from one settings object."""
        prober = StreamProber(settings.ffprobe_path, timeout=settings.process_timeout)
        extractor = SubtitleExtractor(
            extracted_folder=settings.extracted_folder,
            prober=prober,
            mkvextract_path=settings.mkvextract_path,
            speech_to_text=SpeechToText.from_settings(settings),
            timeout=settings.process_timeout,
        )
        client = OpenSubtitlesClient(
            base_url=settings.opensubtitles_url,
            user_agent=settings.opensubtitles_user_agent,
            timeout=settings.request_timeout,
        )
        return cls(
            extractor=extractor,
            normalizer=TextNormalizer(BitmapOcr.from_settings(settings)),
            matcher=EpisodeMatcher(),
            downloader=ReferenceSubtitleDownloader(client),
        )

    async def run(self, request: RunRequest) -> RunReport:
        """Execute one run and report what happened to every file.

        Cancellation is reported as exit code 2 rather than raised.
        """
        state = RunStateMachine()
        report = RunReport(mode=request.mode, folder=request.folder)

        try:
            await self._run(request, state, report)
        except asyncio.CancelledError:
            logger.warning("Run cancelled")
            state.transition(RunState.CANCELLED)
            report.exit_code = EXIT_CANCELLED
            report.message = "Cancelled"

        report.state = state.state.value
        return report

    def _fail(self, state: RunStateMachine, report: RunReport, message: str) -> None:
        logger.error(message)
        state.fail(message)
        report.exit_code = EXIT_FAILURE
        report.message = message

    async def _run(self, request: RunRequest, state: RunStateMachine, report: RunReport) -> None:
        state.transition(RunState.VALIDATE_FOLDER)
        folder = Path(request.folder).expanduser().absolute()
        report.folder = folder
        if not folder.is_dir():
            self._fail(state, report, f"Folder {folder} must be a directory")
            return

        # if contents have already been verified, bail out
        state.transition(RunState.CHECK_VERIFIED)
        if (folder / VERIFIED_MARKER).exists():
            logger.info(f"{folder} has already been verified")
            report.message = "Already verified"
            state.transition(RunState.COMPLETED)
            return

        state.transition(RunState.RESOLVE_IDENTITY)
        title = request.title or title_from_folder(folder.parent)
        season = request.season if request.season is not None else season_from_folder(folder)
        if not title or season is None:
            self._fail(
                state,
                report,
                f"Unable to detect show title ({title}) or season number ({season})",
            )
            return
        report.title = title
        report.season = season
        logger.info(f"Detected show title {title}")
        logger.info(f"Detected season number {season}")

        state.transition(RunState.ACQUIRE_REFERENCE)
        expected_count = await self._acquire_reference(request.imdb, title, season, folder)

        state.transition(RunState.LOAD_REFERENCE)
        corpus = await asyncio.to_thread(load_reference_corpus, folder, season)
        if not corpus:
            self._fail(state, report, f"No reference subtitles found for season {season}")
            return

        state.transition(RunState.CLASSIFY)
        try:
            contents = classify(folder)
        except OSError as e:
            self._fail(state, report, f"Cannot list {folder}: {e}")
            return
        if request.mode == RunMode.VERIFY:
            candidates = contents.known
            problem = self._check_verify_counts(folder, corpus, candidates, expected_count)
            if problem:
                self._fail(state, report, problem)
                return
        else:
            candidates = contents.unknown
        logger.info(f"Found {len(candidates)} episodes to process")

        state.transition(RunState.PROCESS_FILES)
        for video_file in candidates:
            outcome = await self.process_file(video_file, corpus, request, title)
            report.files.append(outcome)

        state.transition(RunState.FINALIZE)
        if request.mode == RunMode.VERIFY:
            verified = report.count(FileStatus.VERIFIED)
            if verified != len(candidates):
                self._fail(
                    state, report, f"Verified {verified} of {len(candidates)} episodes"
                )
                return
            problem = self._write_verified_marker(folder)
            if problem:
                self._fail(state, report, problem)
                return
            report.message = f"Verified {verified} episodes"

        report.exit_code = EXIT_SUCCESS
        state.transition(RunState.COMPLETED)

    async def _acquire_reference(
        self, imdb: str, title: str, season: int, folder: Path
    ) -> int | None:
        """Bring the reference folder up to date; returns the expected episode count."""
        if self.downloader is None:
            return ReferenceSubtitleDownloader.read_episode_count(folder)

        cancelled = threading.Event()
        try:
            outcome = await asyncio.to_thread(
                self.downloader.download, title, imdb, season, folder, cancelled
            )
        except asyncio.CancelledError:
            cancelled.set()
            raise

        if isinstance(outcome, Ok):
            return outcome.value

        logger.warning(
            f"Could not update reference subtitles ({outcome.message}); "
            "continuing with files already downloaded"
        )
        return ReferenceSubtitleDownloader.read_episode_count(folder)

    @staticmethod
    def _check_verify_counts(
        folder: Path,
        corpus: list[ReferenceEntry],
        known_files: list[Path],
        expected_count: int | None,
    ) -> str | None:
        """Reason verification cannot start, or None."""
        reference_episodes = sum(len(entry.episodes) for entry in corpus)
        if expected_count != reference_episodes:
            return (
                f"Expected {expected_count} reference episodes but found {reference_episodes}"
            )
        if len(known_files) != len(corpus):
            return (
                f"Found {len(known_files)} named episodes in {folder.name} "
                f"but {len(corpus)} reference subtitles"
            )
        return None

    @staticmethod
    def _write_verified_marker(folder: Path) -> str | None:
        """Write the verification marker; returns an error message on failure."""
        marker = folder / VERIFIED_MARKER
        staging = marker.with_name(f"{VERIFIED_MARKER}.partial")
        try:
            staging.write_text("OK")
            os.replace(staging, marker)
        except OSError as e:
            if staging.is_file():
                staging.unlink()
            return f"Cannot write verification marker {marker}: {e}"
        logger.info(f"Wrote verification marker {marker}")
        return None

    async def process_file(
        self,
        video_file: Path,
        corpus: list[ReferenceEntry],
        request: RunRequest,
        title: str,
    ) -> FileOutcome:
        """Identify one file and rename or verify it."""
        if not video_file.exists():
            logger.warning(f"Skipping {video_file.name}: file no longer exists")
            return FileOutcome(path=video_file, status=FileStatus.SKIPPED, message="File vanished")

        extracted = await self.extractor.extract(video_file)
        if isinstance(extracted, Failed):
            skipped = isinstance(extracted.error, NotSupportedError)
            logger.warning(f"Skipping {video_file.name}: {extracted.message}")
            return FileOutcome(
                path=video_file,
                status=FileStatus.SKIPPED if skipped else FileStatus.FAILED,
                message=extracted.message,
            )
        if isinstance(extracted, Absent):
            logger.warning(f"Skipping {video_file.name}: {extracted.reason}")
            return FileOutcome(path=video_file, status=FileStatus.SKIPPED, message=extracted.reason)

        best = await self.best_match(extracted.value, corpus)
        if isinstance(best, Failed):
            logger.warning(f"Skipping {video_file.name}: {best.message}")
            return FileOutcome(path=video_file, status=FileStatus.FAILED, message=best.message)
        if isinstance(best, Absent):
            logger.warning(f"Skipping {video_file.name}: {best.reason}")
            return FileOutcome(path=video_file, status=FileStatus.SKIPPED, message=best.reason)

        match = best.value
        code = match.episode_info.s_e_format
        if match.confidence * 100 < request.confidence:
            logger.warning(
                f"{video_file.name} best match {code} has confidence {match.percent}% "
                f"below threshold {request.confidence}%"
            )
            return FileOutcome(
                path=video_file,
                status=FileStatus.LOW_CONFIDENCE,
                match=match,
                message=f"{match.percent}% < {request.confidence}%",
            )

        if request.mode == RunMode.VERIFY:
            return self._verify(video_file, match)
        return self._rename(video_file, match, title, request.dry_run)

    async def best_match(
        self, artifacts: list[ExtractedSubtitle], corpus: list[ReferenceEntry]
    ) -> Outcome[MatchResult]:
        """Match every artifact concurrently and keep the highest confidence.

        One artifact failing does not stop the others; Failed is returned only
        when no artifact produced a match.
        """
        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(self._match_artifact(a, corpus)) for a in artifacts]

        outcomes = [task.result() for task in tasks]
        matches = [o.value for o in outcomes if isinstance(o, Ok)]
        if matches:
            return Ok(max(matches, key=lambda m: (m.confidence, m.weighted_confidence)))

        failures = [o for o in outcomes if isinstance(o, Failed)]
        if failures:
            return failures[0]
        return Absent("No subtitle text to match")

    async def _match_artifact(
        self, artifact: ExtractedSubtitle, corpus: list[ReferenceEntry]
    ) -> Outcome[MatchResult]:
        lines = await self.normalizer.convert_to_lines(artifact)
        if not isinstance(lines, Ok):
            reason = lines.message if isinstance(lines, Failed) else lines.reason
            logger.warning(
                f"Cannot use {artifact.kind} subtitles {artifact.path.name} "
                f"(stream {artifact.stream_index}): {reason}"
            )
            return lines

        outcome = self.matcher.match(corpus, lines.value)
        if isinstance(outcome, Ok):
            logger.info(
                f"Stream {artifact.stream_index} ({artifact.kind}) matched "
                f"{outcome.value.episode_info.s_e_format} at {outcome.value.percent}%"
            )
        return outcome

    def _verify(self, video_file: Path, match: MatchResult) -> FileOutcome:
        code = match.episode_info.s_e_format
        if known_episode_code(video_file) == code:
            logger.info(f"Verified {video_file.name} as {code} ({match.percent}%)")
            return FileOutcome(path=video_file, status=FileStatus.VERIFIED, match=match)

        logger.error(f"{video_file.name} looks like {code} ({match.percent}%)")
        return FileOutcome(
            path=video_file,
            status=FileStatus.MISMATCH,
            match=match,
            message=f"Matched {code}",
        )

    def _rename(
        self, video_file: Path, match: MatchResult, title: str, dry_run: bool
    ) -> FileOutcome:
        name = build_episode_filename(title, match.season, match.episodes, video_file.suffix)
        outcome = rename_episode(video_file, name, dry_run=dry_run)

        if isinstance(outcome, Ok):
            return FileOutcome(
                path=video_file,
                status=FileStatus.WOULD_RENAME if dry_run else FileStatus.RENAMED,
                match=match,
                destination=outcome.value,
            )
        if isinstance(outcome, Absent):
            return FileOutcome(
                path=video_file, status=FileStatus.SKIPPED, match=match, message=outcome.reason
            )

        collision = isinstance(outcome.error, RenameCollisionError)
        return FileOutcome(
            path=video_file,
            status=FileStatus.COLLISION if collision else FileStatus.FAILED,
            match=match,
            destination=video_file.with_name(name),
            message=outcome.message,
        )
