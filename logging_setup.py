"""
Shared logging infrastructure for the EduSight voice engine.

Used by the voice engine, the phase state machines and the UI bridge.

Features:
- JSON-formatted structured logs
- Configurable log levels
- Screen session correlation across all logs
- Component tagging
- PII-aware helpers (transcripts and names are PII)
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class Component(str, Enum):
    """System components for log tagging."""
    ENGINE = "engine"
    SPEECH_OUTPUT = "speech_output"
    SPEECH_INPUT = "speech_input"
    TURN_COORDINATOR = "turn_coordinator"
    COMMAND_LISTENER = "command_listener"
    PHASE = "phase"
    PREFERENCES = "preferences"
    UI_BRIDGE = "ui_bridge"


# LogRecord attributes that are not user-supplied structured fields
_RESERVED_ATTRS = frozenset([
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName", "component", "session_id", "message",
])


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Each line carries:
    - ISO8601 timestamp
    - severity
    - component
    - session_id (the mounted screen session, when known)
    - message and any extra fields
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "severity": record.levelname.lower(),
            "component": getattr(record, "component", "unknown"),
            "message": record.getMessage(),
        }

        if hasattr(record, "session_id"):
            log_data["session_id"] = record.session_id

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class StructuredLogger:
    """
    Wrapper around Python's logging with structured JSON output.

    Usage:
        logger = StructuredLogger(Component.PHASE, session_id="language_1a2b")
        logger.info("Phase mounted", screen="language")
        logger.debug_pii("Transcript received", transcript="my name is Arjun")
    """

    def __init__(
        self,
        component: str | Component,
        session_id: Optional[str] = None,
        logger_name: Optional[str] = None
    ):
        self.component = component.value if isinstance(component, Component) else component
        self.session_id = session_id
        self.logger = logging.getLogger(logger_name or f"edusight.{self.component}")

    def _log(
        self,
        level: int,
        message: str,
        pii: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        exc_info = kwargs.pop("exc_info", None)
        stack_info = kwargs.pop("stack_info", None)
        stacklevel = kwargs.pop("stacklevel", 1)

        extra = {
            "component": self.component,
            **kwargs
        }

        if self.session_id:
            extra["session_id"] = self.session_id

        if pii:
            # Kept apart so log shippers can drop or redact it wholesale
            extra["pii"] = pii

        self.logger.log(
            level,
            message,
            exc_info=exc_info,
            stack_info=stack_info,
            stacklevel=stacklevel,
            extra=extra
        )

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log an error message with exception info (mirrors logging.Logger.exception)."""
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, message, **kwargs)

    def debug_pii(self, message: str, **pii_fields):
        """
        Log debug with PII fields explicitly marked.

        Example:
            logger.debug_pii("Name captured", name="Arjun")
        """
        self._log(logging.DEBUG, message, pii=pii_fields)

    def info_pii(self, message: str, **pii_fields):
        """Log info with PII fields explicitly marked."""
        self._log(logging.INFO, message, pii=pii_fields)

    def with_session(self, session_id: str) -> "StructuredLogger":
        """Create a new logger instance bound to a screen session."""
        return StructuredLogger(
            self.component,
            session_id=session_id,
            logger_name=self.logger.name
        )


def setup_logging(
    level: Optional[str] = None,
    use_json: bool = True,
    include_timestamp: bool = True
) -> None:
    """
    Configure the root logger. Call once at application startup.

    Args:
        level: Log level name; falls back to VOICE_ENGINE_LOG_LEVEL, then INFO
        use_json: Use the JSON formatter (True) or plain text (False)
        include_timestamp: Prefix plain-text lines with a timestamp
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)

    if use_json:
        formatter: logging.Formatter = JSONFormatter()
    else:
        format_str = "%(levelname)s - %(component)s - %(message)s"
        if include_timestamp:
            format_str = "%(asctime)s - " + format_str
        formatter = logging.Formatter(format_str, defaults={"component": "unknown"})

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    level_name = level or os.environ.get("VOICE_ENGINE_LOG_LEVEL", "INFO")
    root_logger.setLevel(getattr(logging, level_name.upper(), logging.INFO))


def get_logger(
    component: str | Component,
    session_id: Optional[str] = None
) -> StructuredLogger:
    """
    Get a structured logger for a component.

    Example:
        logger = get_logger(Component.TURN_COORDINATOR, session_id="home_9f1c")
        logger.info("Turn started", turn="board")
    """
    return StructuredLogger(component, session_id=session_id)
