"""Console logging for argogen.

Three output modes:
- human: ``[LEVEL] message``, colored on a TTY
- verbose: ``[LEVEL][HH:MM:SS] message``, DEBUG and up
- json: one ``{"level", "ts", "logger", "msg"}`` object per line, for CI

A SUCCESS level sits between INFO and WARNING. Generation, apply and
publish steps report their results with it.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TextIO

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

ROOT_LOGGER = "argogen"


class LogMode(Enum):
    """Logging output mode."""

    HUMAN = "human"
    VERBOSE = "verbose"
    JSON = "json"


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    RED = "\033[31m"
    BLUE = "\033[34m"
    GRAY = "\033[90m"


LEVEL_COLORS = {
    logging.DEBUG: Colors.GRAY,
    logging.INFO: Colors.BLUE,
    SUCCESS: Colors.GREEN,
    logging.WARNING: Colors.YELLOW,
    logging.ERROR: Colors.RED,
    logging.CRITICAL: Colors.RED,
}


def _is_tty(stream: TextIO) -> bool:
    return hasattr(stream, "isatty") and stream.isatty()


class ConsoleFormatter(logging.Formatter):
    """``[LEVEL] message`` lines, optionally with a timestamp and colors."""

    def __init__(self, timestamps: bool = False, use_colors: bool = False) -> None:
        super().__init__()
        self.timestamps = timestamps
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        tag = f"[{record.levelname}]"
        if self.use_colors:
            tag = f"{LEVEL_COLORS.get(record.levelno, Colors.RESET)}{tag}{Colors.RESET}"
        if self.timestamps:
            tag += datetime.now().strftime("[%H:%M:%S]")

        line = f"{tag} {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JSONFormatter(logging.Formatter):
    """JSON lines output.

    Format: {"level":"INFO","ts":"2026-01-31T19:45:23+00:00","logger":"argogen.generator","msg":"..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "level": record.levelname,
            "ts": datetime.now(UTC).isoformat(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        extra = getattr(record, "extra_data", None)
        if extra:
            entry.update(extra)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


class ArgogenLogger(logging.Logger):
    """Logger with a SUCCESS level and structured fields for JSON output."""

    def success(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(SUCCESS):
            self._log(SUCCESS, msg, args, **kwargs)

    def structured(self, level: int, msg: str, **fields: Any) -> None:
        """Log a message whose fields are merged into the JSON object.

        Console modes print only the message.
        """
        if self.isEnabledFor(level):
            self._log(level, msg, (), extra={"extra_data": fields})


logging.setLoggerClass(ArgogenLogger)


def get_logger(name: str = ROOT_LOGGER) -> ArgogenLogger:
    """Get an argogen logger.

    Modules that report with ``success`` get their logger here; the logger
    class is registered before any argogen logger is created.
    """
    return logging.getLogger(name)  # type: ignore[return-value]


def setup_logging(
    mode: LogMode = LogMode.HUMAN,
    level: int = logging.INFO,
    stream: TextIO | None = None,
) -> None:
    """Attach one handler in the given mode to the ``argogen`` logger.

    Args:
        mode: Output mode
        level: Minimum log level
        stream: Output stream (default: stdout)
    """
    stream = stream or sys.stdout
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()

    if mode == LogMode.JSON:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = ConsoleFormatter(
            timestamps=mode == LogMode.VERBOSE,
            use_colors=_is_tty(stream),
        )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def configure_from_cli(verbose: bool = False, quiet: bool = False, ci: bool = False) -> None:
    """Configure logging from the global CLI flags.

    ``--ci`` selects JSON output, ``--verbose`` adds timestamps and DEBUG
    lines, ``--quiet`` keeps warnings and errors only.
    """
    if ci:
        mode = LogMode.JSON
    elif verbose:
        mode = LogMode.VERBOSE
    else:
        mode = LogMode.HUMAN

    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    setup_logging(mode=mode, level=level)
