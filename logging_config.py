"""
Centralized logging configuration for CapstoneHub Backend.

Every log line carries the request/job context below. HTTP requests get it
from RequestLifecycleMiddleware; background work (scheduled deadline scans,
cron scripts) opens a `job_context` instead.
"""

import logging
import logging.handlers
import json
import os
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from contextvars import ContextVar

# --- Context Variables (populated per request or per background job) ---
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
user_id_var: ContextVar[str] = ContextVar("user_id", default="-")
project_id_var: ContextVar[str] = ContextVar("project_id", default="-")
job_var: ContextVar[str] = ContextVar("job", default="-")


def current_context() -> dict:
    return {
        "request_id": request_id_var.get("-"),
        "user_id": user_id_var.get("-"),
        "project_id": project_id_var.get("-"),
        "job": job_var.get("-"),
    }


@contextmanager
def job_context(name: str):
    """Tag log lines emitted inside the block with a job name and a fresh run id."""
    job_token = job_var.set(name)
    run_token = request_id_var.set(f"job-{uuid.uuid4().hex[:8]}")
    try:
        yield
    finally:
        request_id_var.reset(run_token)
        job_var.reset(job_token)


class JSONFormatter(logging.Formatter):
    """Formats log records as JSON with context variables."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            **current_context(),
            "message": record.getMessage(),
        }

        # logger.info("msg", extra={"data": {...}})
        if getattr(record, "data", None):
            log_entry["data"] = record.data

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class DevFormatter(logging.Formatter):
    """Colorized, human-readable formatter for local development."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        ctx = current_context()

        # Unset fields are noise on a dev console
        parts = [f"req={ctx['request_id']}"]
        parts += [f"{key}={value}" for key, value in ctx.items() if key != "request_id" and value != "-"]

        msg = f"{color}{record.levelname:<7}{self.RESET} {record.name} [{' '.join(parts)}] {record.getMessage()}"

        if getattr(record, "data", None):
            msg += f"  | data={record.data}"

        if record.exc_info and record.exc_info[0] is not None:
            msg += f"\n{self.formatException(record.exc_info)}"

        return msg


def _file_handler() -> logging.Handler:
    log_dir = os.getenv("LOG_DIR") or os.path.join(os.path.dirname(__file__), "logs")
    os.makedirs(log_dir, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, "app.log"),
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging():
    """Initialize logging for the application (API process, scripts)."""
    env = os.getenv("ENV", "development").lower()
    log_level = os.getenv("LOG_LEVEL", "DEBUG" if env == "development" else "INFO").upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(JSONFormatter() if env == "production" else DevFormatter())
    root_logger.addHandler(console_handler)

    # Test runs stay off the disk
    file_handler = None
    if env != "testing":
        file_handler = _file_handler()
        root_logger.addHandler(file_handler)

    # Silence noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("motor").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)

    logging.getLogger("capstonehub").info(
        f"Logging initialized | env={env} level={log_level} "
        f"file={getattr(file_handler, 'baseFilename', None)}"
    )


def get_logger(name: str) -> logging.Logger:
    """Get a named logger under the capstonehub namespace."""
    return logging.getLogger(f"capstonehub.{name}")
