"""
Logging Configuration - Console setup, per-component log files, log clearing.

Provides:
- JSON output for production (machine-readable)
- Human-readable output for development
- Named rotating log files (logs/<name>.log) for the sync/build components
- clear_log / clear_all_logs for the clear-logs command

## Environment Variables

- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_FORMAT: json, text (default: text)

## Usage

    from mirrorsite.logging_config import setup_logging, create_logger

    setup_logging()  # Call once at startup
    sync_logger = create_logger("sync", settings.logs)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List

from .models.config import LogSettings

LOGGER_PREFIX = "mirrorsite"


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Output format:
    {"ts": "...", "level": "...", "logger": "...", "message": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "cycle_id"):
            log_entry["cycle_id"] = record.cycle_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


class HumanFormatter(logging.Formatter):
    """
    Human-readable log formatter for development.

    Output format:
    12:34:56 INFO    [sync           ] Message
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.now().strftime("%H:%M:%S")

        level = record.levelname
        if self.color and sys.stderr.isatty():
            level = f"{self.COLORS.get(level, '')}{level:7}{self.RESET}"
        else:
            level = f"{level:7}"

        module = record.name.split(".")[-1][:15]
        msg = record.getMessage()
        if record.exc_info:
            msg = f"{msg}\n{self.formatException(record.exc_info)}"

        return f"{time_str} {level} [{module:15}] {msg}"


class FileFormatter(logging.Formatter):
    """Plain file format: [2026-01-01 02:00:00] [sync] [INFO]: message"""

    def __init__(self, name: str):
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.name = name

    def format(self, record: logging.LogRecord) -> str:
        msg = f"[{self.formatTime(record, self.datefmt)}] [{self.name}] [{record.levelname}]: {record.getMessage()}"
        if record.exc_info:
            msg = f"{msg}\n{self.formatException(record.exc_info)}"
        return msg


def _make_formatter(format_type: str) -> logging.Formatter:
    if format_type == "json":
        return JSONFormatter()
    return HumanFormatter()


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
) -> None:
    """
    Configure console logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
               Defaults to LOG_LEVEL env var or INFO.
        format_type: Output format (json, text).
                     Defaults to LOG_FORMAT env var or text.
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_format = (format_type or os.environ.get("LOG_FORMAT", "text")).lower()

    numeric_level = getattr(logging, log_level, logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_make_formatter(log_format))
    handler.setLevel(numeric_level)
    root.addHandler(handler)

    # Suppress noisy loggers
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging configured: level={log_level}, format={log_format}"
    )


def create_logger(name: str, settings: LogSettings | None = None) -> logging.Logger:
    """
    Create a component logger that also writes to logs/<name>.log.

    Records still propagate to the root logger, so console output comes
    from setup_logging. Calling this twice for the same name does not
    stack file handlers.

    Args:
        name: Short component name (sync, build, main, server)
        settings: Log settings (directory, level, rotation)

    Returns:
        Logger named mirrorsite.<name>
    """
    settings = settings or LogSettings()
    log = logging.getLogger(f"{LOGGER_PREFIX}.{name}")
    log.setLevel(getattr(logging, settings.level.upper(), logging.INFO))

    log_dir = Path(settings.dir)
    log_file = log_dir / f"{name}.log"

    for handler in log.handlers:
        if isinstance(handler, RotatingFileHandler) and handler.baseFilename == os.path.abspath(log_file):
            return log

    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=settings.max_bytes,
        backupCount=settings.backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(FileFormatter(name))
    log.addHandler(file_handler)
    return log


def close_logger(log: logging.Logger) -> None:
    """Detach and close the file handlers created by create_logger."""
    for handler in list(log.handlers):
        if isinstance(handler, RotatingFileHandler):
            log.removeHandler(handler)
            handler.close()


# ---------------------------------------------------------------------------
# Log clearing
# ---------------------------------------------------------------------------


@dataclass
class ClearResult:
    """Outcome of clear_all_logs."""

    cleared: List[str] = field(default_factory=list)
    failed: List[Dict[str, str]] = field(default_factory=list)


def clear_log(name: str, log_dir: Path) -> bool:
    """
    Truncate logs/<name>.log.

    Returns False if the file does not exist or cannot be written.
    """
    log_file = Path(log_dir) / f"{name}.log"
    if not log_file.exists():
        return False
    try:
        log_file.write_text("", encoding="utf-8")
    except OSError as e:
        logging.getLogger(__name__).error(f"Failed to clear {log_file}: {e}")
        return False
    return True


def clear_all_logs(log_dir: Path) -> ClearResult:
    """Truncate every *.log file in ``log_dir``."""
    result = ClearResult()
    log_dir = Path(log_dir)
    if not log_dir.exists():
        return result

    for log_file in sorted(log_dir.glob("*.log")):
        try:
            log_file.write_text("", encoding="utf-8")
            result.cleared.append(log_file.name)
        except OSError as e:
            result.failed.append({"file": log_file.name, "error": str(e)})

    return result
