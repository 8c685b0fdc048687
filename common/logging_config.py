"""
Logging configuration for the decision fusion engines.

Engines only ever call logging.getLogger(__name__); the CLI wires
handlers once through setup_logging(). Every record carries the run ID
of the decision in progress, derived from its resolved seed so that a
replayed run logs under the same ID.

Version: 1.0.0
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

run_id_context: ContextVar[str] = ContextVar("run_id", default="")

LOG_FORMAT = "%(asctime)s - [%(run_id)s] - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_BACKUP_COUNT = 5
NO_RUN_ID = "no-run-id"


def run_id_for_seed(seed: int) -> str:
    """Run ID derived from a resolved casting seed, stable across replays."""
    return f"seed-{seed:08x}"


def get_run_id() -> str:
    """Current run ID or empty string outside a decision run."""
    return run_id_context.get()


class LogContext:
    """
    Scope a run ID over a block; nested scopes restore the outer ID.

    Example:
        with LogContext(run_id_for_seed(resolved_seed)):
            logger.info("Casting")
    """

    def __init__(self, run_id: str):
        self.run_id = run_id
        self._token = None

    def __enter__(self) -> str:
        self._token = run_id_context.set(self.run_id)
        return self.run_id

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            run_id_context.reset(self._token)
            self._token = None


class RunIdFilter(logging.Filter):
    """Stamp record.run_id from the current context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_context.get() or NO_RUN_ID
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per log entry."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "run_id": getattr(record, "run_id", NO_RUN_ID),
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


def setup_logging(
    log_level: int = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    structured_output: bool = False,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> logging.Logger:
    """
    Configure the root logger: stderr always, plus a size-rotated file
    when log_file is given.

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    if structured_output:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        ))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(RunIdFilter())
        root_logger.addHandler(handler)

    return root_logger


__all__ = [
    "setup_logging",
    "run_id_for_seed",
    "get_run_id",
    "LogContext",
    "run_id_context",
    "RunIdFilter",
    "StructuredFormatter",
    "LOG_FORMAT",
    "DEFAULT_MAX_BYTES",
    "DEFAULT_BACKUP_COUNT",
]
