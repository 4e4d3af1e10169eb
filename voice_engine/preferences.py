"""
User preferences read at phase start and written on each confirmed choice.

The persisted storage backend belongs to the host application; the engine
only depends on the PreferenceStore protocol. InMemoryPreferenceStore is
the store used by the console runner, the UI bridge and the tests.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

from pydantic import BaseModel

from logging_setup import get_logger, Component as LogComponent
from observability.events import Component as ObsComponent, EventEmitter, Severity, pii_fields


logger = get_logger(LogComponent.PREFERENCES)

# Fields that identify the learner
_PII_FIELDS = ("name",)


class Preferences(BaseModel):
    name: Optional[str] = None
    language: Optional[str] = None
    board: Optional[str] = None
    grade: Optional[str] = None
    subject: Optional[str] = None
    accessibility_mode: Optional[str] = None
    terms_accepted: bool = False
    has_completed_onboarding: bool = False
    voice_speed: float = 0.9


class PreferenceStore(Protocol):
    def load(self) -> Preferences:
        ...

    def update(self, **changes: Any) -> Preferences:
        ...


class InMemoryPreferenceStore:
    """Process-local preference store."""

    def __init__(self, initial: Optional[Preferences] = None):
        self._prefs = initial or Preferences()
        self.session_id = "engine"
        self.emitter = EventEmitter(ObsComponent.PREFERENCES)

    def load(self) -> Preferences:
        return self._prefs.model_copy()

    def update(self, **changes: Any) -> Preferences:
        """
        Apply changes and return the new preferences.

        Unknown fields raise ValueError; values are validated by the model.
        """
        unknown = set(changes) - set(Preferences.model_fields)
        if unknown:
            raise ValueError(f"Unknown preference fields: {sorted(unknown)}")

        self._prefs = Preferences.model_validate({**self._prefs.model_dump(), **changes})

        pii = [f for f in _PII_FIELDS if f in changes]
        self.emitter.emit(
            "preferences.updated",
            session_id=self.session_id,
            severity=Severity.INFO,
            pii=pii_fields(*pii),
            **changes,
        )
        logger.info("Preferences updated", fields=sorted(changes))
        return self.load()
