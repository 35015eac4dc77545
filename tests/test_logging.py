"""Tests for regplan.logging."""

from __future__ import annotations

import logging
from pathlib import Path

from regplan.logging import configure_logging, get_logger, phase_logger


def test_get_logger_uses_regplan_hierarchy() -> None:
    assert get_logger().name == "regplan"
    assert get_logger("planner").name == "regplan.planner"


def test_configure_logging_levels_and_file_sink(tmp_path: Path) -> None:
    assert configure_logging(verbose=True).level == logging.DEBUG
    assert configure_logging(quiet=True).level == logging.WARNING

    log_file = tmp_path / "logs" / "regplan.log"
    logger = configure_logging(log_file=log_file)
    phase_logger("planner", "pre_analysis").debug("Registering %s", "zoo.Dog")
    for handler in logger.handlers:
        handler.flush()

    assert len(logger.handlers) == 2
    assert "[pre_analysis] Registering zoo.Dog" in log_file.read_text(encoding="utf-8")
