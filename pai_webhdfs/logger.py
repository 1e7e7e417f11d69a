import logging
import sys
from pathlib import Path

from .config import LogConfig

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(threadName)s - %(message)s"

# Chatty third-party loggers kept at WARNING unless we are debugging
QUIET_LOGGERS = ("httpx", "httpcore")


def setup_logging(config: LogConfig) -> None:
    """
    Route pai_webhdfs logs to a file and/or stderr.

    Replaces any handlers already on the root logger, so calling it again
    (e.g. after reloading the INI file) does not duplicate output. An empty
    ``config.file`` disables the log file; its parent folder is created on
    demand. Per-request lines from httpx and httpcore are suppressed
    unless the level is DEBUG.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []
    if config.file:
        log_path = Path(config.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode="a", encoding="utf-8"))
    if config.console:
        handlers.append(logging.StreamHandler(sys.stderr))

    formatter = logging.Formatter(LOG_FORMAT)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    quiet_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
