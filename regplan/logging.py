"""Logging utilities for regplan commands and host integrations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, MutableMapping, Tuple

_LOGGER_NAME = "regplan"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the regplan hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


class PhaseLoggerAdapter(logging.LoggerAdapter):
    """Prefixes records with the lifecycle phase that emitted them."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        phase = (self.extra or {}).get("phase")
        if phase:
            return f"[{phase}] {msg}", kwargs
        return msg, kwargs


def phase_logger(name: str, phase: str) -> PhaseLoggerAdapter:
    """Return a logger that tags every message with ``phase``."""
    return PhaseLoggerAdapter(get_logger(name), {"phase": phase})


def configure_logging(
    *, verbose: bool = False, quiet: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the regplan logger with console output and an optional file sink.

    ``verbose`` wins over ``quiet`` so ``-v -q`` still surfaces per-type
    registration decisions.
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    # The file sink always captures DEBUG; the console handler filters on its own level.
    logger.setLevel(logging.DEBUG if log_file is not None else level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when the CLI runs more than once per process.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[regplan] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(threadName)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["PhaseLoggerAdapter", "configure_logging", "get_logger", "phase_logger"]
