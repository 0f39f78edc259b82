"""Process-wide logging setup."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "repotracker"


def setup_logging(verbose: bool = False, console: Console | None = None) -> logging.Logger:
    """Route the repotracker loggers through a rich handler on stderr.

    Args:
        verbose: Log git commands and other debug detail
        console: Console to write to (default: a new stderr console)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.handlers.clear()

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbose,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return logger
