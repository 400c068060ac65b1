"""
============================================================================
SERVICE CHECK - LOGGING UTILITY
============================================================================
Loguru-based logging with a console handler and optional rotating file
handlers.  Components obtain a named logger through ``get_logger``.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
    "{extra[name]}:{function}:{line} - {message}"
)

# Records logged through the bare loguru logger still have a name to print.
logger.configure(extra={"name": "service-check"})


# ============================================================================
# LOGGER CONFIGURATION
# ============================================================================

def setup_logging(
    level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    colorize: bool = True,
) -> None:
    """
    Configure the logging system.

    Args:
        level: Minimum level for every handler
        log_file: Optional path of a rotating log file; console only when None
        colorize: Colorize console output
    """
    # Remove default loguru handler (and anything from an earlier call)
    logger.remove()

    log_level = str(level).upper()

    # Console Handler
    logger.add(
        sys.stdout,
        format=CONSOLE_FORMAT,
        level=log_level,
        colorize=colorize,
        backtrace=log_level == "DEBUG",
        diagnose=False,
    )

    # File Handlers
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path,
            format=FILE_FORMAT,
            level=log_level,
            rotation="10 MB",
            retention=5,
            compression="zip",
            backtrace=True,
            diagnose=False,
        )

        # Separate file for errors
        logger.add(
            log_path.with_name(f"{log_path.stem}.errors{log_path.suffix or '.log'}"),
            format=FILE_FORMAT,
            level="ERROR",
            rotation="1 day",
            retention="7 days",
            compression="zip",
            backtrace=True,
            diagnose=False,
        )

    logger.debug(f"Logging initialized — level={log_level}, file={log_file or '-'}")


def get_logger(name: Optional[str] = None):
    """
    Get logger instance with optional name.

    Args:
        name: Logger name shown in every record

    Returns:
        Logger instance
    """
    if name:
        return logger.bind(name=name)
    return logger
