# =============================================================================
# spasi_core/logging/config.py
# Logging for the Case-Reporting Core
# =============================================================================
"""
Every log line carries a ``case`` column so a single report can be followed
from draft through sync in the daily log file:

    2024-01-10 09:30:00 | INFO    | spasi_core.offline.sync_engine | case=srv-12 | Synchronized (submitted)

Lines that are not about one case show ``case=-``.
"""

import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional


LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | case=%(case_id)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_DIR = Path("logs")

NO_CASE = "-"

# Marks handlers installed here so a Streamlit rerun replaces only ours
_SPASI_HANDLER = "_spasi_handler"

# Supabase client stack; request lines drown the sync log at INFO
NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "hpack", "supabase", "postgrest")


class CaseIdFilter(logging.Filter):
    """Default the ``case_id`` field for records logged outside a case."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "case_id"):
            record.case_id = NO_CASE
        return True


def setup_logging(
    level: int = logging.INFO,
    log_to_file: bool = True,
    log_filename: Optional[str] = None,
) -> Optional[Path]:
    """
    Send logs to stdout and, optionally, a daily file under ``LOG_DIR``.

    Calling it again (every Streamlit rerun does) swaps the handlers it
    installed before and leaves Streamlit's own handlers alone.

    Returns:
        Path of the log file, or None when file logging is off
    """
    root = logging.getLogger()
    for handler in [h for h in root.handlers if getattr(h, _SPASI_HANDLER, False)]:
        root.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler(sys.stdout)]
    log_path = None
    if log_to_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        log_path = LOG_DIR / (log_filename or f"spasi_{datetime.now():%Y-%m-%d}.log")
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(CaseIdFilter())
        setattr(handler, _SPASI_HANDLER, True)
        root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("spasi_core").info(
        f"Logging initialized (level={logging.getLevelName(level)}, file={log_path or 'off'})"
    )
    return log_path


def get_logger(name: str) -> logging.Logger:
    """
    Usage:
        from spasi_core.logging import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


class CaseLogger(logging.LoggerAdapter):
    """Logger bound to one case id; the id goes in the case column."""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra["case_id"] = self.extra["case_id"]
        kwargs["extra"] = extra
        return msg, kwargs


def case_logger(logger: logging.Logger, case_id: Optional[str]) -> CaseLogger:
    """
    Usage:
        log = case_logger(logger, record.id)
        log.info("Saved on this device")
    """
    return CaseLogger(logger, {"case_id": case_id or NO_CASE})


class LogContext:
    """
    Times one sync or listing step.

    Set ``summary`` inside the block to have it appended to the finish line:

        with LogContext(logger, "Sending 3 pending case(s)") as step:
            results = [...]
            step.summary = "2 synced, 1 failed"
        # Sending 3 pending case(s) started
        # Sending 3 pending case(s) finished in 0.42s: 2 synced, 1 failed
    """

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.summary: Optional[str] = None
        self.elapsed: Optional[float] = None
        self._started: Optional[float] = None

    def __enter__(self) -> "LogContext":
        self._started = time.perf_counter()
        self.logger.info(f"{self.operation} started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.elapsed = time.perf_counter() - self._started

        if exc_type is None:
            detail = f": {self.summary}" if self.summary else ""
            self.logger.info(f"{self.operation} finished in {self.elapsed:.2f}s{detail}")
        else:
            self.logger.error(
                f"{self.operation} failed after {self.elapsed:.2f}s: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb),
            )
        return False
