import logging
import os
from typing import Optional

from rich.logging import RichHandler

_file_handler: Optional[logging.Handler] = None


class CenteredFormatter(logging.Formatter):
    longest_name_length = 14  # Initial default width

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, len(record.name)
        )

        dynamic_width = CenteredFormatter.longest_name_length + 2
        record.name = f"{record.name.center(dynamic_width - 2)}"
        return super().format(record)


def _log_level() -> int:
    if os.getenv("NEXO_DEBUG") or os.getenv("DEBUG"):
        return logging.DEBUG
    return logging.INFO


def _rich_handler(log_level: int) -> logging.Handler:
    handler = RichHandler(
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        log_time_format="[%X]",
    )
    handler.setFormatter(CenteredFormatter("[%(name)s]  %(message)s"))
    handler.setLevel(log_level)
    return handler


def get_logger(name=None) -> logging.Logger:
    """
    Creates and returns a logger configured with RichHandler for rich output.

    Loggers live under the "nexo" namespace. Once redirect_to_file() has been
    called, new loggers write to that file instead of the console.
    """
    if name is None:
        name = "market"
    logger = logging.getLogger(f"nexo.{name}")
    log_level = _log_level()
    logger.setLevel(log_level)

    if not logger.handlers:
        logger.addHandler(_file_handler or _rich_handler(log_level))
        logger.propagate = False
        logger.debug(f"Logger for '{name}' initialized.")

    return logger


def redirect_to_file(path: str) -> None:
    """
    Swap the console handler of every nexo.* logger for a file handler.

    The terminal UI owns the screen while it runs, console records would be
    drawn over it.
    """
    global _file_handler
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    if _file_handler is None:
        _file_handler = logging.FileHandler(path, encoding="utf-8")
        _file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )
        _file_handler.setLevel(_log_level())

    for name, logger in list(logging.root.manager.loggerDict.items()):
        if not name.startswith("nexo.") or not isinstance(logger, logging.Logger):
            continue
        for handler in list(logger.handlers):
            if isinstance(handler, RichHandler):
                logger.removeHandler(handler)
        if _file_handler not in logger.handlers:
            logger.addHandler(_file_handler)
