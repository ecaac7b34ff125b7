"""Unit tests for logging setup."""

import logging

import pytest
from loguru import logger

from tvrename.core.logging import setup_logging


@pytest.mark.unit
def test_stdlib_records_reach_log_file(tmp_path):
    log_file = tmp_path / "logs" / "tvrename.log"

    setup_logging(debug=True, log_file=log_file)
    try:
        logging.getLogger("tvrename.services.orchestrator").debug("Run state transition: a -> b")
        logger.complete()

        assert "Run state transition: a -> b" in log_file.read_text()
    finally:
        logger.remove()
        logging.root.handlers = []
