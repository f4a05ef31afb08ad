"""Logger configuration for the document grounding client."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None, rotation: str = "10 MB", retention: str = "14 days") -> None:
    """Configure loguru logger for console and optional file output.

    Sets up logging with:
    - Colored console output on stderr, so stdout stays clean for command results
    - File output with rotation and retention when ``log_file`` is given

    Args:
        level: Minimum log level for every sink
        log_file: Optional path of the log file
        rotation: Loguru rotation condition for the file sink
        retention: Loguru retention policy for rotated files
    """

    # Remove default loguru handler
    logger.remove()

    logger.add(
        sink=sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
        colorize=True,
    )

    if log_file is not None:
        logger.add(
            sink=str(log_file),
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level=level,
            rotation=rotation,
            retention=retention,
            compression="gz",  # Compress rotated logs
        )

        logger.info(f"File logging enabled: {log_file}")
        logger.info(f"Log level: {level}")
