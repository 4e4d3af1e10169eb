"""
Structured JSON event emission (shared).

Shared by the voice engine, the phase state machines and the UI bridge.
Every event carries the same envelope: ts, session_id (the mounted screen
session), component, event_type, severity, correlation_id (the turn id, or
the session id when no turn is involved) and a pii descriptor.
"""

from __future__ import annotations

import json
import os
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .event_store import event_store


class Component(str, Enum):
    """Emitting components."""

    ENGINE = "engine"
    SPEECH_OUTPUT = "speech_output"
    SPEECH_INPUT = "speech_input"
    TURN_COORDINATOR = "turn_coordinator"
    COMMAND_LISTENER = "command_listener"
    PHASE = "phase"
    PREFERENCES = "preferences"
    UI_BRIDGE = "ui_bridge"


class Severity(str, Enum):
    """Event severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


DEFAULT_PII = {"contains_pii": False, "fields": [], "handling": "none"}


def pii_fields(*fields: str) -> Optional[Dict[str, Any]]:
    """PII descriptor for the given payload fields (None when no field is set)."""
    if not fields:
        return None
    return {"contains_pii": True, "fields": list(fields), "handling": "none"}


def _stdout_enabled() -> bool:
    return os.environ.get("VOICE_ENGINE_EVENTS_STDOUT", "1").lower() not in ("0", "false", "no")


class EventEmitter:
    """Emits structured JSON events and records them in the event store."""

    def __init__(self, component: Component):
        self.component = component

    def emit(
        self,
        event_type: str,
        session_id: str,
        severity: Severity = Severity.INFO,
        correlation_id: Optional[str] = None,
        pii: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> None:
        """
        Emit one event.

        Args:
            event_type: Stable event type string (e.g. "turn.resolved")
            session_id: Screen session identifier
            severity: Event severity level
            correlation_id: Turn id (defaults to session_id)
            pii: PII descriptor, see pii_fields()
            **kwargs: Event-specific fields
        """
        event = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "session_id": session_id,
            "component": self.component.value,
            "event_type": event_type,
            "severity": severity.value,
            "correlation_id": correlation_id or session_id,
            "pii": pii or DEFAULT_PII,
        }
        event.update(kwargs)

        if _stdout_enabled():
            sys.stdout.write(json.dumps(event, ensure_ascii=False, default=str))
            sys.stdout.write("\n")
            sys.stdout.flush()

        event_store.store(event)
