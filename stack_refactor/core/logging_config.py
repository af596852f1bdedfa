"""Logging setup for refactor runs: structlog events rendered to stderr and a capped file."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog
from structlog.stdlib import BoundLogger, LoggerFactory, ProcessorFormatter

LOG_FILE_NAME = "refactor.log"


def setup_logging(
    log_dir: Path | str = Path("logs"),
    log_level: str | None = None,
    max_file_size_mb: int = 10,
) -> Path:
    """Route structlog through stdlib logging to the console and ``refactor.log``.

    Console output is human-readable on a terminal and JSON otherwise; the file is always
    JSON lines. Calling this again replaces the previous handlers.

    Args:
        log_dir: Directory for the log file, created if missing
        log_level: Level name (defaults to LOG_LEVEL env var or INFO)
        max_file_size_mb: Size at which the file is truncated; no backups are kept

    Returns:
        Path of the log file
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    level_name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(
        ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer()
            if sys.stderr.isatty()
            else structlog.processors.JSONRenderer()
        )
    )

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_file_size_mb * 1024 * 1024,
        backupCount=0,
        encoding="utf-8",
    )
    file_handler.setFormatter(ProcessorFormatter(processor=structlog.processors.JSONRenderer()))

    for handler in (console_handler, file_handler):
        handler.setLevel(level)
        root_logger.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=False,
    )

    structlog.get_logger("stack_refactor").info(
        "Logging system initialized",
        log_file=str(log_file.absolute()),
        log_level=level_name,
        max_file_size_mb=max_file_size_mb,
    )
    return log_file
