"""
Logging configuration for kubegate.

stdlib handlers do the output (colored console or JSON lines, optional rotating file);
structlog is configured on top so service code can emit event-style records
(``logger.warning("kubernetes.read_failed", kind="pod", status=404)``) that end up in
the same handlers.
"""
import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from kubegate.config import Settings, get_settings
from kubegate.core.request_context import request_id_var

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_CONFIGURED = False

_RESERVED_ATTRS = {
    "args", "asctime", "created", "exc_info", "exc_text", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "msg", "name", "pathname", "process",
    "processName", "relativeCreated", "stack_info", "thread", "threadName", "taskName",
}


class ContextFilter(logging.Filter):
    """Inject request_id and static service fields into every LogRecord."""

    def __init__(self, env: str = "development") -> None:
        super().__init__()
        self._env = env

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        rid = getattr(record, "request_id", None) or request_id_var.get()
        if rid is not None:
            record.request_id = rid

        if not hasattr(record, "service"):
            record.service = "kubegate"
        if not hasattr(record, "env"):
            record.env = self._env
        return True


class ColoredFormatter(logging.Formatter):
    """Console formatter with ANSI-colored level names."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record):
        levelname = record.levelname
        record.levelname = f"{self.COLORS.get(levelname, self.RESET)}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class JSONFormatter(logging.Formatter):
    """JSON lines formatter.

    Emits time, level, name and message, merges extra attributes, and redacts
    values whose key looks like a credential.
    """

    REDACT_KEYS = {"password", "passwd", "secret", "token", "authorization", "jwt", "jwt_secret"}

    def __init__(self, datefmt: Optional[str] = None) -> None:
        super().__init__(datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }

        rid = getattr(record, "request_id", None) or request_id_var.get()
        if rid:
            payload["request_id"] = rid

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in payload:
                continue
            safe_key = str(key)
            payload[safe_key] = self._redact(value) if safe_key.lower() in self.REDACT_KEYS else value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)

    @staticmethod
    def _redact(value: Any) -> str:
        return "***REDACTED***" if value not in (None, "") else ""


def _configure_structlog(json_output: bool) -> None:
    # JSON mode hands the event dict to the stdlib record as extras so JSONFormatter
    # can redact and merge it; text mode renders key=value pairs into the message.
    final_processor: Any = (
        structlog.stdlib.render_to_log_kwargs
        if json_output
        else structlog.processors.KeyValueRenderer(key_order=["event"], drop_missing=True)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            final_processor,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def setup_logging(
    settings: Optional[Settings] = None,
    *,
    use_color: bool = True,
) -> logging.Logger:
    """Configure the root logger once per process.

    Args:
        settings: application settings; defaults to ``get_settings()``
        use_color: colorize console output when stdout is a TTY

    Returns:
        logging.Logger: the ``kubegate`` logger
    """
    global _CONFIGURED
    logger = logging.getLogger("kubegate")

    if _CONFIGURED:
        return logger

    settings = settings or get_settings()

    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())

    for h in list(root.handlers):
        root.removeHandler(h)

    context_filter = ContextFilter(env=settings.app_env)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.addFilter(context_filter)

    if settings.log_json:
        console_formatter: logging.Formatter = JSONFormatter(datefmt=LOG_DATE_FORMAT)
    elif use_color and sys.stdout.isatty():
        console_formatter = ColoredFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    else:
        console_formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler.setFormatter(console_formatter)
    root.addHandler(console_handler)

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.addFilter(context_filter)
        if settings.log_json:
            file_handler.setFormatter(JSONFormatter(datefmt=LOG_DATE_FORMAT))
        else:
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        root.addHandler(file_handler)

    # Route uvicorn/fastapi loggers through the root handlers.
    for log_name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        named = logging.getLogger(log_name)
        named.handlers = []
        named.propagate = True

    # The kubernetes client logs full request bodies at DEBUG.
    logging.getLogger("kubernetes").setLevel(logging.WARNING)

    _configure_structlog(settings.log_json)

    _CONFIGURED = True
    return logger
