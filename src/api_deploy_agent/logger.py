"""Logging for the deploy pipeline.

Every module logs through ``logging.getLogger(__name__)``; ``setup_logging``
attaches a single coloured handler to the package logger so the CLI output
shows which pipeline stage produced each line.
"""

import logging
import time
from contextlib import contextmanager
from typing import Iterator

LOGGER_NAME = "api_deploy_agent"

_logger = logging.getLogger(LOGGER_NAME)


class _StageFormatter(logging.Formatter):
    """Terminal formatter that prefixes records with their pipeline stage."""

    _GREY = "\033[90m"
    _CYAN = "\033[96m"
    _YELLOW = "\033[93m"
    _RED = "\033[91m"
    _BOLD = "\033[1m"
    _RST = "\033[0m"

    LEVEL_COLOURS = {
        logging.DEBUG: _GREY,
        logging.INFO: _CYAN,
        logging.WARNING: _YELLOW,
        logging.ERROR: _RED,
        logging.CRITICAL: _RED + _BOLD,
    }

    def format(self, record: logging.LogRecord) -> str:
        colour = self.LEVEL_COLOURS.get(record.levelno, self._RST)
        timestamp = time.strftime("%H:%M:%S", time.localtime(record.created))
        stage = getattr(record, "stage", None)
        stage_tag = f" {self._BOLD}[{stage}]{self._RST}" if stage else ""
        message = f"{self._GREY}{timestamp}{self._RST}{stage_tag} {colour}{record.getMessage()}{self._RST}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def setup_logging(verbose: bool = False, level: str | None = None) -> logging.Logger:
    """Configure and return the package logger."""
    if verbose:
        _logger.setLevel(logging.DEBUG)
    else:
        _logger.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))

    if not _logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(_StageFormatter())
        _logger.addHandler(handler)
    _logger.propagate = False

    for noisy in ("boto3", "botocore", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return _logger


@contextmanager
def log_stage(stage_name: str, logger: logging.Logger | None = None) -> Iterator[logging.Logger]:
    """Log entry, exit and duration of one pipeline stage."""
    logger = logger or _logger
    start = time.perf_counter()
    extra = {"stage": stage_name}
    logger.info("%s ...", stage_name, extra=extra)
    try:
        yield logger
    except Exception:
        logger.error("%s failed (%.2fs)", stage_name, time.perf_counter() - start, extra=extra)
        raise
    logger.info("%s done (%.2fs)", stage_name, time.perf_counter() - start, extra=extra)
