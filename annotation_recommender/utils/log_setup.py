"""Logging setup for the pipeline and the command line tool."""

import logging
from pathlib import Path

from rich.logging import RichHandler

FILE_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level: str = "INFO", log_file: Path | None = None) -> None:
    """Configure root logging with a rich console handler.

    Args:
        level: Root log level name
        log_file: Optional file that additionally receives DEBUG output
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if log_file else level)

    if not any(isinstance(h, RichHandler) for h in root.handlers):
        console_handler = RichHandler(rich_tracebacks=True, show_path=False)
        console_handler.setLevel(level)
        root.addHandler(console_handler)

    if log_file is None:
        return

    log_file.parent.mkdir(parents=True, exist_ok=True)
    if not any(
        isinstance(h, logging.FileHandler)
        and getattr(h, "baseFilename", "") == str(log_file.absolute())
        for h in root.handlers
    ):
        fh = logging.FileHandler(log_file)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        root.addHandler(fh)
