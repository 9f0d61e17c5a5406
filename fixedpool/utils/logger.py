"""
Centralized Logging System for fixedpool

This module provides a unified logging configuration that can be imported
and used across all modules in the package.
"""

import logging
import atexit
import sys
import os
from pathlib import Path
from typing import Optional, Dict, Union
from datetime import datetime

from loguru import logger as _loguru_logger

# Run identifier for this process: combines import-time timestamp and process id.
# Each process run produces at most one log file per utility.
RUN_ID = f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_{os.getpid()}"

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {extra[utility]} | {message} | {function}:{line}"

# File sinks are opt-in; library code never writes to disk unless asked.
LOG_DIR_ENV = "FIXEDPOOL_LOG_DIR"
LOG_LEVEL_ENV = "FIXEDPOOL_LOG_LEVEL"


class InterceptHandler(logging.Handler):
    """Intercepts stdlib logging and routes it to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Retrieve corresponding Loguru level if it exists
        try:
            level = _loguru_logger.level(record.levelname).name
        except (ValueError, AttributeError):
            level = record.levelno

        # Find caller from where logging was called
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        _loguru_logger.opt(depth=depth, exception=record.exc_info).bind(
            utility=record.name
        ).log(level, record.getMessage())


def _detect_utility(name: str) -> str:
    lower_name = name.lower()
    if "database" in lower_name or "pool" in lower_name:
        return "pool"
    return "general"


def _resolve_log_dir(log_dir: Optional[Union[str, Path]]) -> Optional[Path]:
    if log_dir is not None:
        return Path(log_dir)
    env_dir = os.getenv(LOG_DIR_ENV)
    if env_dir:
        return Path(env_dir)
    return None


def _ensure_utility_dir(base_dir: Path, utility: str) -> Path:
    path = base_dir / utility
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_logger(
    name: str,
    utility: Optional[str] = None,
    log_dir: Optional[Union[str, Path]] = None,
):
    """Return a Loguru logger bound to ``name`` and ``utility``.

    The returned object exposes `.info`, `.warning`, `.error`, `.debug`, and
    the other Loguru methods. When ``log_dir`` (or ``FIXEDPOOL_LOG_DIR``) is
    set, a rotating file sink is added for the utility.
    """
    if utility is None:
        utility = _detect_utility(name)

    # Lazily initialize global sinks on first get_logger call
    _initialize_sinks_once()

    base_dir = _resolve_log_dir(log_dir)
    if base_dir is not None:
        _ensure_file_sink_for_utility(utility, _ensure_utility_dir(base_dir, utility))

    return _loguru_logger.bind(name=name, utility=utility)


def _initialize_sinks_once() -> None:
    """Initialize console sink and stdlib intercept once per process.

    Only loguru's default stderr handler (id 0) is replaced. When it is
    already gone the host application has configured loguru itself, and its
    sinks are left untouched.
    """
    global _sinks_initialized, _console_sink_id
    if _sinks_initialized:
        return

    try:
        _loguru_logger.remove(0)
    except ValueError:
        host_configured = True
    else:
        host_configured = False

    if not host_configured:
        _loguru_logger.configure(extra={"utility": "general"})
        _console_sink_id = _loguru_logger.add(
            sys.stdout,
            level=os.getenv(LOG_LEVEL_ENV, "INFO"),
            enqueue=True,
            format=LOG_FORMAT,
        )

    # Intercept stdlib logging (drivers such as psycopg log through it).
    # basicConfig is a no-op when the root logger already has handlers.
    logging.basicConfig(handlers=[InterceptHandler()], level=0)

    _sinks_initialized = True


def _ensure_file_sink_for_utility(utility: str, util_dir: Path) -> None:
    """Add a file sink for the given utility if not already added for this process run."""
    if utility in _file_sink_ids:
        return
    log_file = util_dir / f"{utility}_{RUN_ID}.log"

    sink_id = _loguru_logger.add(
        str(log_file),
        level=os.getenv(LOG_LEVEL_ENV, "INFO"),
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        encoding="utf-8",
        enqueue=True,
        format=LOG_FORMAT,
        filter=lambda record: record["extra"].get("utility") == utility,
    )

    _file_sink_ids[utility] = sink_id


def shutdown_logging() -> None:
    """Remove all Loguru sinks to flush queued messages. Safe to call multiple times."""
    global _sinks_initialized, _console_sink_id
    for sid in list(_file_sink_ids.values()):
        try:
            _loguru_logger.remove(sid)
        except ValueError as e:
            sys.stderr.write(f"Error removing file sink id={sid}: {e}\n")
    _file_sink_ids.clear()

    try:
        if _console_sink_id is not None:
            _loguru_logger.remove(_console_sink_id)
    except ValueError as e:
        sys.stderr.write(f"Error removing console sink id={_console_sink_id}: {e}\n")
    finally:
        _console_sink_id = None

    _sinks_initialized = False


_sinks_initialized = False
_console_sink_id: Optional[int] = None
_file_sink_ids: Dict[str, int] = {}

# Register shutdown to flush sinks on graceful exit
atexit.register(shutdown_logging)
