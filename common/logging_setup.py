"""
Structured Logging Setup

Consistent logging configuration across all components.
Uses JSON format for structured logs in production.

A single LoggingContext is built at startup and handed to every
component; it owns the level threshold and the application name tag.
"""

import json
import logging
import sys
from datetime import datetime, timezone

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Level names accepted from configuration, least to most verbose
LOG_LEVELS: dict[str, int] = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": TRACE,
}

_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "app",
    "component", "message", "taskName",
))


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "app": getattr(record, "app", "unknown"),
            "component": getattr(record, "component", "unknown"),
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ServiceLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds app name and component to all logs"""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = dict(kwargs.get("extra") or {})
        extra["app"] = self.extra.get("app", "unknown")
        extra["component"] = self.extra.get("component", "unknown")
        kwargs["extra"] = extra
        return msg, kwargs

    def trace(self, msg: str, *args, **kwargs) -> None:
        self.log(TRACE, msg, *args, **kwargs)


def parse_log_level(name: str | None) -> tuple[int, bool]:
    """
    Resolve a configured level name.

    Returns:
        Tuple of (numeric level, whether the name was valid). Unknown
        names resolve to INFO.
    """
    if not name:
        return logging.INFO, True
    level = LOG_LEVELS.get(name.strip().lower())
    if level is None:
        return logging.INFO, False
    return level, True


class LoggingContext:
    """
    Process-wide logging settings, constructed once.

    Usage:
        log_context = LoggingContext("courseNetApp", "debug", json_format=False)
        logger = log_context.get_logger("heartbeat")
        logger.info("Heartbeat started")
    """

    def __init__(
        self,
        app_name: str,
        log_level: str | None = "info",
        json_format: bool = True,
        stream=None,
    ):
        self.app_name = app_name
        self.level, level_valid = parse_log_level(log_level)
        self.json_format = json_format

        self._root = logging.getLogger("hcc2")
        self._root.setLevel(self.level)
        self._root.handlers.clear()

        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setLevel(self.level)
        if json_format:
            handler.setFormatter(JsonFormatter())
        else:
            handler.setFormatter(logging.Formatter(
                "%(asctime)s [%(levelname)s] [%(app)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ))
        self._root.addHandler(handler)

        # Don't propagate to root logger
        self._root.propagate = False

        if not level_valid:
            self.get_logger("logging").critical(
                f"Invalid log level '{log_level}' specified. Defaulting to 'info'."
            )

    def get_logger(self, component: str) -> ServiceLoggerAdapter:
        """Get a logger adapter for a component"""
        logger = logging.getLogger(f"hcc2.{component}")
        return ServiceLoggerAdapter(
            logger, {"app": self.app_name, "component": component}
        )
