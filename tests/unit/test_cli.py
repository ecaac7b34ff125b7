"""Unit tests for the command line interface."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from tvrename import cli
from tvrename.matcher.models import FileOutcome, FileStatus, RunMode, RunReport


@pytest.mark.unit
class TestParser:
    def test_rename_arguments(self):
        args = cli.build_parser().parse_args(
            ["rename", "--imdb", "tt0303461", "--season", "1", "--dry-run", "/tv/Firefly/Season 01"]
        )

        assert args.command == "rename"
        assert args.imdb == "tt0303461"
        assert args.season == 1
        assert args.dry_run
        assert args.confidence is None
        assert args.folder == Path("/tv/Firefly/Season 01")

    def test_verify_has_no_dry_run(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["verify", "--imdb", "tt1", "--dry-run", "/tv"])

    def test_imdb_is_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["rename", "/tv"])

    @pytest.mark.parametrize("value", ["-1", "101", "abc"])
    def test_confidence_range(self, value):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["verify", "--imdb", "tt1", "--confidence", value, "/tv"])


@pytest.mark.unit
class TestMain:
    @pytest.fixture
    def orchestrator(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TVRENAME_LOG_FILE", str(tmp_path / "tvrename.log"))
        monkeypatch.setattr(cli, "setup_logging", MagicMock())
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock()
        monkeypatch.setattr(cli.PipelineOrchestrator, "from_settings", lambda settings: orchestrator)
        return orchestrator

    def test_returns_report_exit_code(self, orchestrator, tmp_path):
        orchestrator.run.return_value = RunReport(
            mode=RunMode.VERIFY,
            folder=tmp_path,
            exit_code=1,
            files=[FileOutcome(path=tmp_path / "a.mkv", status=FileStatus.MISMATCH)],
        )

        code = cli.main(["verify", "--imdb", "tt0303461", str(tmp_path)])

        assert code == 1
        request = orchestrator.run.call_args.args[0]
        assert request.mode == RunMode.VERIFY
        assert request.confidence == 40
        assert not request.dry_run

    def test_explicit_confidence(self, orchestrator, tmp_path):
        orchestrator.run.return_value = RunReport(mode=RunMode.RENAME, folder=tmp_path)

        code = cli.main(["rename", "--imdb", "tt0303461", "--confidence", "75", str(tmp_path)])

        assert code == 0
        assert orchestrator.run.call_args.args[0].confidence == 75

    def test_interrupt_exits_with_cancelled(self, orchestrator, tmp_path):
        orchestrator.run.side_effect = KeyboardInterrupt

        assert cli.main(["rename", "--imdb", "tt0303461", str(tmp_path)]) == cli.EXIT_CANCELLED
