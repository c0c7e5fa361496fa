"""Logging configuration for inkwell.

Two destinations:
- the ``inkwell`` logger hierarchy, written to a dated file under
  ``$INKWELL_DATA_DIR/logs`` (plus the console at DEBUG level)
- a plain append-only marketplace event log, one line per lifecycle event,
  meant for support staff reconstructing what happened to a job
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOGGER_NAME = "inkwell"


def get_data_dir() -> Path:
    """Resolve the inkwell data directory."""
    raw = os.environ.get("INKWELL_DATA_DIR")
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".inkwell"


def get_log_dir() -> Path:
    log_dir = get_data_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def setup_inkwell_logging(level: str = "INFO", service: str = "marketplace") -> logging.Logger:
    """Configure the ``inkwell`` logger.

    Safe to call repeatedly: handlers are only attached once.

    Args:
        level: Level name, case-insensitive. Unknown names fall back to INFO.
        service: Name written at startup so multiple processes sharing a
            data dir can be told apart.

    Returns:
        The configured ``inkwell`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    resolved = getattr(logging, str(level).upper(), None)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logger.setLevel(resolved)

    if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        date = datetime.now().strftime("%Y-%m-%d")
        file_handler = logging.FileHandler(get_log_dir() / f"inkwell-{date}.log")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    has_console = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in logger.handlers
    )
    if resolved <= logging.DEBUG and not has_console:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(console)

    logger.debug(f"Logging configured | service={service} | level={logging.getLevelName(resolved)}")
    return logger


def log_marketplace_event(event_type: str, details: str, actor: str = "system") -> None:
    """Append one line to the dated marketplace event log."""
    date = datetime.now().strftime("%Y-%m-%d")
    timestamp = datetime.now().isoformat(timespec="seconds")
    try:
        path = get_log_dir() / f"marketplace-events-{date}.log"
        with open(path, "a", encoding="utf-8") as f:
            f.write(f"{timestamp} | {event_type} | actor={actor} | {details}\n")
    except OSError as e:
        # Event log failures never block a transition
        logging.getLogger(LOGGER_NAME).warning(f"Could not write marketplace event log: {e}")


def log_transition(
    job_id: str,
    from_status: Optional[str],
    to_status: str,
    actor: str = "system",
    reason: Optional[str] = None,
) -> None:
    """Record a job status change in the event log."""
    details = f"job={job_id[:8]}... | {from_status or '-'} -> {to_status}"
    if reason:
        details += f" | reason={reason[:80]}"
    log_marketplace_event("transition", details, actor=actor)


def log_upload(bucket: str, name: str, size: int, actor: str = "system") -> None:
    """Record a stored file in the event log."""
    log_marketplace_event("upload", f"bucket={bucket} | name={name} | bytes={size}", actor=actor)
