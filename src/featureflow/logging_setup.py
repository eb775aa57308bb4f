"""Logging for the featureflow CLI: rich console output plus an optional debug file."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.logging import RichHandler

from featureflow.console import error_console

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(
    logger_name: str = "featureflow",
    log_file: str | None = None,
    verbose: bool = False,
) -> logging.Logger:
    """
    Attach a console handler and, if ``log_file`` is set, a DEBUG file handler.

    Library modules only create loggers; this is the one place handlers are
    installed. Console records go to stderr so command output stays parseable.

    Args:
        logger_name: Logger to configure; featureflow.* modules inherit from it
        log_file: Append DEBUG records here (parent directories are created)
        verbose: Show DEBUG on the console, including stage state transitions

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    # Several commands can run in one process (CliRunner); start from scratch
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.DEBUG)

    console_handler = RichHandler(
        console=error_console, show_path=False, rich_tracebacks=True
    )
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
        logger.addHandler(file_handler)

    return logger
