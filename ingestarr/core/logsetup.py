# ingestarr/core/logsetup.py
# Two streams:
#   - "ingestarr"         one status line per file + summaries (stdout, file)
#   - "ingestarr.errors"  full stack traces for failed files (stderr, file)
# so batch summaries stay readable while diagnostics stay complete.

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

LOGGER_NAME = "ingestarr"
ERROR_LOGGER_NAME = "ingestarr.errors"


class EnsureContext(logging.Filter):
    """Default the per-batch fields so formatters never KeyError."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "source"):
            record.source = "-"
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "msg": record.getMessage(),
            "name": record.name,
            "source": getattr(record, "source", None),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def get_error_logger() -> logging.Logger:
    return logging.getLogger(ERROR_LOGGER_NAME)


def source_logger(source: str) -> logging.LoggerAdapter:
    """Attach the source label to every log record for this source."""
    return logging.LoggerAdapter(get_logger(), {"source": source})


def setup_logging(logs_dir: Optional[Path], verbose: int = 0, quiet: bool = False,
                  log_level_arg: Optional[str] = None, json_logs: bool = False) -> logging.Logger:
    """
    Console/File matrix:
      - -q:   console = silent;        file = INFO+
      - none: console = INFO+;         file = INFO+
      - -v:   console = DEBUG;         file = DEBUG
      - --log-level=X: console and file both use X
    Stack traces always go to stderr and the file, whatever the console level.
    """
    if log_level_arg:
        console_level = getattr(logging, log_level_arg.upper())
        file_level = console_level
    elif quiet:
        console_level = logging.CRITICAL   # prints nothing (we don't emit CRITICAL)
        file_level = logging.INFO
    elif verbose >= 1:
        console_level = logging.DEBUG
        file_level = logging.DEBUG
    else:
        console_level = logging.INFO
        file_level = logging.INFO

    logger = get_logger()
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    err_logger = get_error_logger()
    err_logger.setLevel(logging.DEBUG)
    err_logger.propagate = False
    for h in list(err_logger.handlers):
        err_logger.removeHandler(h)
        h.close()

    # Console handler (human format, status lines only)
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(console_level)
    ch.addFilter(EnsureContext())
    ch.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(ch)

    # Diagnostic handler (stack traces)
    eh = logging.StreamHandler(sys.stderr)
    eh.setLevel(logging.ERROR)
    eh.addFilter(EnsureContext())
    eh.setFormatter(logging.Formatter("[%(levelname)s] [%(source)s] %(message)s"))
    err_logger.addHandler(eh)

    if logs_dir is None:
        return logger

    # File handler (rotating), shared by both loggers
    logs_dir.mkdir(parents=True, exist_ok=True)
    ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_path = logs_dir / f"ingestarr-{ts}.log"

    fh = logging.handlers.TimedRotatingFileHandler(
        log_path, when="midnight", backupCount=14, encoding="utf-8"
    )
    fh.setLevel(file_level)
    fh.addFilter(EnsureContext())
    if json_logs:
        fh.setFormatter(JsonFormatter())
    else:
        fh.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] [%(source)s] %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S"
        ))
    logger.addHandler(fh)
    err_logger.addHandler(fh)

    logger.debug("Log file: %s", log_path)
    return logger
