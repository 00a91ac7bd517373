"""Root logger setup for the playground engine."""

import logging
import logging.handlers
from pathlib import Path
from typing import Iterable

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s:%(lineno)d %(message)s"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUP_COUNT = 3


def configure_logging(
    level: str = "INFO",
    to_file: bool = False,
    filename: str = "logs/debug.log",
    quiet_libraries: Iterable[str] = ("asyncio", "httpx", "httpcore"),
    quiet_level: str = "WARNING",
) -> list[logging.Handler]:
    """Replace the root handlers with a console handler and, optionally, a rotating file.

    Libraries in quiet_libraries log at quiet_level so provider HTTP traffic
    does not drown the engine's DEBUG output. Returns the installed handlers.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if to_file:
        Path(filename).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(filename, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUP_COUNT))

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.setLevel(level.upper())
    for handler in handlers:
        root_logger.addHandler(handler)

    for name in quiet_libraries:
        logging.getLogger(name).setLevel(quiet_level.upper())
    return handlers
