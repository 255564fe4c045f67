"""Loguru setup for the relay.

One console sink, plus a rotating relay log and an error log when file
logging is on. Records from uvicorn's stdlib loggers are forwarded into
loguru so that server and application lines share one format.

User speech and model replies only reach the logs through `preview_text`.
"""

import inspect
import logging
import sys
from pathlib import Path

from loguru import logger

PREVIEW_CHARS = 50

CONSOLE_FORMAT = (
    "<dim>{time:HH:mm:ss.SSS}</dim> "
    "<level>{level: <7}</level> "
    "<cyan>{name}</cyan> "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DDTHH:mm:ss.SSSZZ} {level: <7} {name}:{line} {message}"

RELAY_LOG = "relay.log"
RELAY_JSON_LOG = "relay.jsonl"
ERROR_LOG = "relay-errors.log"

FORWARDED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi")


class InterceptHandler(logging.Handler):
    """Re-emit stdlib log records through loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Attribute the line to the caller, not to the logging module
        frame, depth = inspect.currentframe(), 0
        while frame is not None and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def forward_stdlib_loggers(names: tuple[str, ...] = FORWARDED_LOGGERS) -> None:
    """Route the named stdlib loggers into loguru."""
    for name in names:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False


def setup_logging(
    level: str = "INFO",
    log_dir: str | Path = "logs",
    enable_file: bool = True,
    json_logs: bool = False,
) -> None:
    """Configure sinks for the whole process.

    Args:
        level: Minimum level for the console and relay log.
        log_dir: Directory for file sinks, created on demand.
        enable_file: Add the rotating relay and error logs.
        json_logs: Serialize the relay log as JSON lines.
    """
    logger.remove()

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=level,
        colorize=True,
        backtrace=level == "DEBUG",
        diagnose=level == "DEBUG",
    )

    if enable_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        if json_logs:
            logger.add(
                log_path / RELAY_JSON_LOG,
                level=level,
                serialize=True,
                rotation="50 MB",
                retention="14 days",
                compression="gz",
                diagnose=False,
            )
        else:
            logger.add(
                log_path / RELAY_LOG,
                format=FILE_FORMAT,
                level=level,
                rotation="50 MB",
                retention="14 days",
                compression="gz",
                diagnose=False,
            )

        logger.add(
            log_path / ERROR_LOG,
            format=FILE_FORMAT + "\n{exception}",
            level="ERROR",
            rotation="20 MB",
            retention="60 days",
            compression="gz",
            backtrace=True,
            diagnose=False,
        )

    forward_stdlib_loggers()
    logger.debug(f"Log sinks ready (level={level}, files={enable_file}, json={json_logs})")


def get_logger(name: str) -> "logger":
    """Logger bound to a module name; use as `get_logger(__name__)`."""
    return logger.bind(name=name)


def preview_text(text: str | None, limit: int = PREVIEW_CHARS) -> str:
    """Shorten user or model text before it goes into a log line."""
    if not text:
        return "<empty>"
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."
