"""Logging helpers.

Components log through standard library loggers named ``kyoboscout.<component>``.
The package logger has a NullHandler so the library stays silent until an
application (or the CLI) configures handlers.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "kyoboscout"

logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())


def get_logger(component: str) -> logging.Logger:
    """Return the logger for a component, e.g. ``get_logger("client")``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")


def configure_logging(verbose: bool = False, console: Console | None = None) -> None:
    """Send KyoboScout log records to a rich handler on stderr."""
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
