"""Logging setup: stderr (and optionally a file), text or JSON lines."""

import json
import logging
import os
import sys

_DATEFMT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """One JSON object per line: time, level, logger, message, and the
    formatted traceback under "exception" when the record carries one."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def _formatter(log_format: str, with_name: bool) -> logging.Formatter:
    if log_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    if with_name:
        return logging.Formatter(
            "[%(asctime)s] [%(levelname)s] %(name)s %(message)s",
            datefmt=_DATEFMT,
        )
    return logging.Formatter(
        "[%(asctime)s] [%(levelname)s] %(message)s", datefmt=_DATEFMT
    )


def setup_logging(
    debug: bool = False,
    log_file: str | None = None,
    log_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure logging for a gfdashsync run.

    Log records always go to stderr so that report output on stdout stays
    clean; a log file receives a copy when one is given.

    Args:
        debug: If True, overrides the level to DEBUG.
        log_file: Optional log file path (appended to).
        log_format: "text" (default) or "json" for structured output.
        level: Level name from the config file, used when LOG_LEVEL is unset.

    Environment variables:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
                   Default: INFO.
    """
    env_level = os.getenv("LOG_LEVEL", level or "INFO").upper()

    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, env_level, logging.INFO)

    handlers: list[logging.Handler] = []
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(_formatter(log_format, with_name=False))
    handlers.append(stderr_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(_formatter(log_format, with_name=True))
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers)

    # Silence third-party libs unless DEBUG
    if log_level != logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("requests").setLevel(logging.WARNING)
