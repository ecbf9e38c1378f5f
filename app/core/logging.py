import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from app.core.request_context import (
    get_canvas_id,
    get_request_id,
    get_user_id,
)


class RequestIdFilter(logging.Filter):
    """Populate structured log records with request, user and canvas IDs."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "unknown"
        record.user_id = getattr(record, "user_id", None) or get_user_id() or ""
        record.canvas_id = getattr(record, "canvas_id", None) or get_canvas_id() or ""
        return True


class StructuredJsonFormatter(logging.Formatter):
    """Emit log records as JSON with consistent fields."""

    _SKIP_FIELDS = {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
        "request_id",
        "user_id",
        "canvas_id",
    }

    def format(self, record: logging.LogRecord) -> str:
        log_payload: dict[str, object | None] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "unknown"),
            "user_id": getattr(record, "user_id", ""),
        }
        canvas_id = getattr(record, "canvas_id", None)
        if canvas_id:
            log_payload["canvas_id"] = canvas_id
        log_payload.update(self._extract_extra(record))
        if record.exc_info:
            log_payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_payload["stack_info"] = record.stack_info
        try:
            return json.dumps(log_payload, default=str)
        except (TypeError, ValueError):
            return super().format(record)

    def _extract_extra(self, record: logging.LogRecord) -> dict[str, object]:
        extras: dict[str, object] = {}
        for key, value in record.__dict__.items():
            if key in self._SKIP_FIELDS or key.startswith("_"):
                continue
            if value is None:
                continue
            extras[key] = value
        return extras


def configure_logging(level_name: str, log_file: str | None = None) -> None:
    """Install the JSON formatter on the root logger, replacing prior handlers."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    formatter = StructuredJsonFormatter(datefmt="%Y-%m-%dT%H:%M:%S%z")

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    stream_handler.addFilter(RequestIdFilter())
    root_logger.addHandler(stream_handler)

    # Quiet third-party loggers.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(RequestIdFilter())
        root_logger.addHandler(file_handler)
