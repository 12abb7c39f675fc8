"""Logging setup."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbosity: int = 0, log_file: str | None = None) -> None:
    """Configure the root logger.

    ``verbosity`` 0 logs warnings, 1 info and 2 or more debug. Console output
    goes to stderr through rich; ``log_file`` adds a plain text handler.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handlers: list[logging.Handler] = [
        RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    ]
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)
