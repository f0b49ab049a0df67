"""Invocation-scoped logging: every line carries the run id, target account and attempt.

The scheduler collects logs from many concurrent invocations, so each record
is stamped with the context of the invocation that produced it. Structured
extras (``bucket``, ``region``, ``phase`` ...) passed through ``extra=`` are
kept as top-level JSON fields.
"""
import json
import logging
import uuid
import functools
import time
from datetime import datetime, timezone
from typing import Optional

_RUN_ID: Optional[str] = None

EXTRA_FIELDS = ("region", "bucket", "phase", "resource_id", "action", "duration_s")


def get_run_id() -> str:
    """Get or create the current run ID."""
    global _RUN_ID
    if _RUN_ID is None:
        _RUN_ID = str(uuid.uuid4())[:8]
    return _RUN_ID


class InvocationContext(logging.Filter):
    """Stamps records with the run id, target account and attempt number.

    A per-record ``extra={'account_id': ...}`` wins over the bound account.
    """

    def __init__(self):
        super().__init__()
        self.account_id = "-"
        self.attempt = 0

    def bind(self, account_id: Optional[str] = None, attempt: Optional[int] = None) -> None:
        if account_id:
            self.account_id = account_id
        if attempt is not None:
            self.attempt = attempt

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = get_run_id()
        if not getattr(record, "account_id", None):
            record.account_id = self.account_id
        if not hasattr(record, "attempt"):
            record.attempt = self.attempt
        return True


CONTEXT = InvocationContext()


def bind_context(account_id: Optional[str] = None, attempt: Optional[int] = None) -> None:
    """Attach the invocation's account and attempt to every later log line."""
    CONTEXT.bind(account_id, attempt)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, keyed for the scheduler's log search."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "run_id": getattr(record, "run_id", get_run_id()),
            "account_id": getattr(record, "account_id", None),
            "attempt": getattr(record, "attempt", None),
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        entry.update({key: getattr(record, key) for key in EXTRA_FIELDS if hasattr(record, key)})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(verbosity: int = 1, json_format: bool = False) -> None:
    """Configure the root logger for one invocation.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2=DEBUG, 3=DEBUG including botocore
        json_format: Use JSON formatter if True
    """
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)

    handler = logging.StreamHandler()
    handler.addFilter(CONTEXT)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] [%(run_id)s %(account_id)s#%(attempt)s] [%(threadName)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    if verbosity < 3:
        logging.getLogger("botocore").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def timed(phase: str):
    """Log how long the decorated phase took, also when it raises."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start = time.monotonic()
            outcome = "failed"
            try:
                result = func(*args, **kwargs)
                outcome = "done"
                return result
            finally:
                elapsed = round(time.monotonic() - start, 2)
                logging.info(f"Phase {phase} {outcome} in {elapsed:.2f}s",
                             extra={"phase": phase, "duration_s": elapsed})
        return wrapper
    return decorator
