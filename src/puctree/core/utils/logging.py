"""Logging configuration utilities."""

import sys
from pathlib import Path

from loguru import logger

COMPACT_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
DETAILED_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{thread.name}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {thread.name} | {name}:{function}:{line} | {message}"


def setup_logging(
    level: str = "INFO",
    log_file: str | Path | None = None,
    rotation: str = "10 MB",
    retention: str = "1 week",
) -> None:
    """Configure loguru for the application.

    DEBUG and TRACE levels use a detailed console format that names the
    thread, since parallel search logs from its worker threads. Sinks are
    enqueued so records from concurrent workers are written whole.

    Args:
        level: Minimum log level to display.
        log_file: Optional path to a log file.
        rotation: When to rotate the log file.
        retention: How long to keep old log files.
    """
    level = level.upper()
    detailed = level in ("TRACE", "DEBUG")

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=DETAILED_FORMAT if detailed else COMPACT_FORMAT,
        colorize=True,
        enqueue=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            level=level,
            format=FILE_FORMAT,
            rotation=rotation,
            retention=retention,
            compression="gz",
            enqueue=True,
        )

    logger.debug(f"Logging configured at level: {level}")
