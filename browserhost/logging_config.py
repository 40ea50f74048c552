"""
Logging for the daemon.

Log lines go to stderr, as text or as one JSON object per line. Records
emitted through ``StructuredLogger.session_event`` carry the session id and
any extra fields, which both formats render.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

ENV_PREFIX = "BROWSERHOST_LOG_"

TEXT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Engine and server loggers that are chatty at INFO.
QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "mcp.server.lowlevel.server", "mcp.server.streamable_http_manager")


def _fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = dict(getattr(record, "fields", None) or {})
    session_id = getattr(record, "session_id", None)
    if session_id is not None:
        fields["session"] = session_id
    return fields


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            "pid": record.process,
        }
        log_data.update(_fields(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Plain format with ``key=value`` pairs appended for structured records."""

    def __init__(self):
        super().__init__(TEXT_FORMAT, datefmt=TEXT_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _fields(record)
        if fields:
            line += " " + " ".join(f"{key}={value}" for key, value in fields.items())
        return line


class StructuredLogger(logging.Logger):
    def session_event(self, level: int, msg: str, session_id: Optional[str] = None, **fields):
        """Log ``msg`` tagged with a session id and extra fields."""
        if not self.isEnabledFor(level):
            return
        self._log(level, msg, (), extra={"session_id": session_id, "fields": fields})


logging.setLoggerClass(StructuredLogger)


def setup_logging(
    level: str = None,
    json_format: bool = None,
    log_file: str = None
):
    level = level or os.environ.get(f"{ENV_PREFIX}LEVEL", "INFO")
    if json_format is None:
        json_format = os.environ.get(f"{ENV_PREFIX}JSON", "0").lower() in ("1", "true", "yes")
    log_file = log_file or os.environ.get(f"{ENV_PREFIX}FILE")

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    formatter = JSONFormatter() if json_format else TextFormatter()

    # stdout is left to the MCP and HTTP payloads.
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> StructuredLogger:
    return logging.getLogger(name)
