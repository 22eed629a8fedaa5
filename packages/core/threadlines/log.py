"""Logging setup shared by the CLI and library components."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "threadlines"


def configure_logging(debug: bool = False, console: Optional[Console] = None) -> logging.Logger:
    """
    Configure the package logger with a rich handler.

    Args:
        debug: Emit DEBUG records when True, INFO otherwise
        console: Console to render log records on (stderr by default)

    Returns:
        The configured ``threadlines`` logger, to be passed down to components
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=debug,
        show_time=debug,
        markup=False,
        rich_tracebacks=debug,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False
    return logger
