"""Command line entry point: ``tvrename rename`` and ``tvrename verify``."""

import argparse
import asyncio
from collections.abc import Sequence
from pathlib import Path

from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from tvrename import __version__
from tvrename.config import Settings
from tvrename.core.logging import setup_logging
from tvrename.matcher.models import FileStatus, RunMode, RunReport
from tvrename.services.orchestrator import (
    EXIT_CANCELLED,
    EXIT_FAILURE,
    PipelineOrchestrator,
    RunRequest,
)

console = Console()

_STATUS_STYLES = {
    FileStatus.RENAMED: "green",
    FileStatus.WOULD_RENAME: "cyan",
    FileStatus.VERIFIED: "green",
    FileStatus.MISMATCH: "red",
    FileStatus.LOW_CONFIDENCE: "yellow",
    FileStatus.SKIPPED: "dim",
    FileStatus.COLLISION: "red",
    FileStatus.FAILED: "red",
}


def _confidence(value: str) -> int:
    percent = int(value)
    if not 0 <= percent <= 100:
        raise argparse.ArgumentTypeError("confidence must be between 0 and 100")
    return percent


def _add_shared_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    parser.add_argument("--imdb", required=True, help="IMDb id of the show, e.g. tt0303461.")
    parser.add_argument("--title", help="Show title (defaults to the parent folder name).")
    parser.add_argument(
        "--season",
        type=int,
        help="Season number (defaults to the number in the folder name).",
    )
    parser.add_argument(
        "--confidence",
        type=_confidence,
        help="Minimum match confidence in percent (default from settings, 40).",
    )
    parser.add_argument("folder", type=Path, help="Season folder containing the episodes.")
    return parser


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tvrename",
        description="Identify and rename TV episodes by matching their subtitles.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging output.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    rename = _add_shared_arguments(
        subparsers.add_parser("rename", help="Rename unlabeled episodes in a season folder.")
    )
    rename.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the renames that would happen without touching any file.",
    )

    _add_shared_arguments(
        subparsers.add_parser("verify", help="Check that labeled episodes match their names.")
    )
    return parser


def render_report(report: RunReport) -> None:
    """Print a summary table of a run."""
    if report.files:
        table = Table(title=f"{report.mode.value.title()}: {report.folder}")
        table.add_column("File")
        table.add_column("Status")
        table.add_column("Match")
        table.add_column("Confidence", justify="right")
        table.add_column("Details")

        for outcome in report.files:
            style = _STATUS_STYLES.get(outcome.status, "")
            match = outcome.match
            details = outcome.destination.name if outcome.destination else outcome.message
            table.add_row(
                outcome.path.name,
                f"[{style}]{outcome.status.value}[/{style}]" if style else outcome.status.value,
                match.episode_info.s_e_format if match else "",
                f"{match.percent}%" if match else "",
                details,
            )
        console.print(table)

    if report.message:
        console.print(report.message)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        return EXIT_FAILURE

    setup_logging(debug=args.debug or settings.debug, log_file=settings.log_file)

    request = RunRequest(
        mode=RunMode(args.command),
        folder=args.folder,
        imdb=args.imdb,
        title=args.title,
        season=args.season,
        confidence=args.confidence if args.confidence is not None else settings.default_confidence,
        dry_run=getattr(args, "dry_run", False),
    )

    orchestrator = PipelineOrchestrator.from_settings(settings)
    try:
        report = asyncio.run(orchestrator.run(request))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_CANCELLED

    render_report(report)
    return report.exit_code
