"""Logging hooks for the ``ossclient`` logger hierarchy.

The library only creates loggers; applications decide where records go.
These helpers cover the common cases: raising or lowering verbosity,
forwarding formatted records to a callback, and pretty console output.
"""

import logging
from typing import Callable, Optional, Union

from rich.logging import RichHandler

LOGGER_NAME = "ossclient"

LogCallback = Callable[[int, str], None]

logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())


class CallbackHandler(logging.Handler):
    """Forwards each formatted record to ``callback(level, message)``."""

    def __init__(self, callback: LogCallback, level: int = logging.NOTSET):
        super().__init__(level)
        self.callback = callback

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.callback(record.levelno, self.format(record))
        except Exception:
            self.handleError(record)


def set_log_level(level: Union[int, str]) -> None:
    """Set the level of the ``ossclient`` logger."""
    if isinstance(level, str):
        level = level.upper()
    logging.getLogger(LOGGER_NAME).setLevel(level)


def set_log_callback(callback: Optional[LogCallback]) -> Optional[CallbackHandler]:
    """Route ``ossclient`` records to ``callback``; ``None`` removes the route.

    Returns:
        The installed handler, or None when the callback was removed.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, CallbackHandler):
            logger.removeHandler(handler)

    if callback is None:
        return None

    handler = CallbackHandler(callback)
    handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    return handler


def configure_console_logging(level: Union[int, str] = logging.WARNING) -> RichHandler:
    """Send ``ossclient`` records to the console through Rich."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    set_log_level(level)
    return handler
