"""
Logging configuration using loguru.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from devscope.__version__ import __version__
from devscope.core.detector import SystemInfo

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[host]}/{extra[os]} | "
    "{name}:{function}:{line} | {message}"
)


def setup_logging(
    output_dir: Path,
    verbose: bool = False,
    system_info: Optional[SystemInfo] = None,
) -> logger:
    """
    Setup application logging.

    File records are tagged with the host and OS so logs collected from
    several machines can be told apart.

    Args:
        output_dir: Directory for log files
        verbose: Enable verbose logging
        system_info: Detected system, used to tag file records

    Returns:
        Configured logger instance
    """
    logger.remove()
    logger.configure(
        extra={
            "host": system_info.hostname if system_info else "unknown",
            "os": system_info.os_type if system_info else "unknown",
        }
    )

    log_level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
    )

    log_file = output_dir / "devscope.log"
    logger.add(
        log_file,
        rotation="10 MB",
        retention="30 days",
        level="DEBUG",
        format=FILE_FORMAT,
    )

    # failed probes, listings and actions only
    error_log = output_dir / "devscope_errors.log"
    logger.add(
        error_log,
        rotation="10 MB",
        retention="90 days",
        level="ERROR",
        format=FILE_FORMAT,
    )

    if system_info is not None:
        logger.debug(
            f"DevScope {__version__} on {system_info.os_type} ({system_info.platform}), "
            f"host {system_info.hostname}, Python {system_info.python_version}"
        )
    logger.debug(f"Log files: {log_file}, {error_log}")

    return logger
