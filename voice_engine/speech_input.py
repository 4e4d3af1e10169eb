"""
Speech Input Controller.

Wraps the single-shot speech-to-text capability:
- at most one active SpeechSession; listen() while listening is ignored
- each accepted listen() starts from an empty transcript
- engine errors and end-of-speech flip listening off; nothing is raised
- without STT support, listen() is a no-op and listening never turns on
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from logging_setup import get_logger, Component as LogComponent
from observability.events import Component as ObsComponent, EventEmitter, Severity, pii_fields
from .capabilities import SpeechToTextCapability
from .errors import classify_recognition_error
from .observable import Observable


logger = get_logger(LogComponent.SPEECH_INPUT)


class SessionStatus(str, Enum):
    """Lifecycle of one listening attempt."""

    IDLE = "idle"
    ACTIVE = "active"
    ENDED = "ended"
    ERRORED = "errored"


@dataclass
class SpeechSession:
    """One listening attempt and its (possibly interim) transcript."""

    language_tag: str
    status: SessionStatus = SessionStatus.IDLE
    transcript: str = ""
    error: Optional[str] = None
    error_category: Optional[str] = None


class SpeechInputController(Observable):
    """
    Process-wide owner of the speech-to-text capability.

    Events:
        "transcript" (text: str, is_final: bool): current best transcript
        "listening" (bool): listening state changed
    """

    def __init__(self, capability: SpeechToTextCapability, *, language_tag: str = "en-US"):
        super().__init__()
        self._capability = capability
        self.language_tag = language_tag
        self.session_id = "engine"
        self.emitter = EventEmitter(ObsComponent.SPEECH_INPUT)

        self._generation = 0
        self._session = SpeechSession(language_tag=language_tag)

    @property
    def available(self) -> bool:
        return bool(getattr(self._capability, "available", False))

    @property
    def session(self) -> SpeechSession:
        """The current or most recent listening attempt."""
        return self._session

    @property
    def is_listening(self) -> bool:
        return self._session.status == SessionStatus.ACTIVE

    @property
    def transcript(self) -> str:
        return self._session.transcript

    def listen(self) -> bool:
        """
        Start a listening session.

        Returns True if a new session was started, False if the request was
        ignored (already listening, or no STT support).
        """
        if not self.available:
            logger.debug("listen() ignored: speech recognition unavailable")
            self.emitter.emit(
                "stt.unavailable",
                session_id=self.session_id,
                severity=Severity.DEBUG,
            )
            return False

        if self.is_listening:
            logger.debug("listen() ignored: session already active")
            return False

        self._generation += 1
        generation = self._generation
        self._session = SpeechSession(language_tag=self.language_tag, status=SessionStatus.ACTIVE)

        self._notify("transcript", "", False)
        self._notify("listening", True)
        self.emitter.emit(
            "stt.started",
            session_id=self.session_id,
            severity=Severity.INFO,
            language=self.language_tag,
        )

        try:
            self._capability.start(
                self.language_tag,
                on_result=lambda text, is_final: self._on_result(generation, text, is_final),
                on_end=lambda: self._on_end(generation),
                on_error=lambda error: self._on_error(generation, error),
            )
        except Exception as e:
            logger.warning(
                "STT capability raised on start",
                error=str(e),
                error_type=type(e).__name__,
            )
            self._on_error(generation, str(e))

        return True

    def stop(self) -> None:
        """Stop the active session, if any. Later engine callbacks are discarded."""
        if not self.is_listening:
            return

        self._generation += 1
        try:
            self._capability.stop()
        except Exception as e:
            logger.warning(
                "STT capability raised on stop",
                error=str(e),
                error_type=type(e).__name__,
            )

        self._session.status = SessionStatus.ENDED
        self.emitter.emit(
            "stt.stopped",
            session_id=self.session_id,
            severity=Severity.DEBUG,
            transcript_length=len(self._session.transcript),
        )
        self._notify("listening", False)

    # --- capability callbacks ---

    def _is_stale(self, generation: int) -> bool:
        if generation != self._generation or not self.is_listening:
            logger.debug("Ignoring stale STT callback", generation=generation)
            return True
        return False

    def _on_result(self, generation: int, text: str, is_final: bool) -> None:
        if self._is_stale(generation):
            return
        self._session.transcript = text
        if is_final:
            logger.debug_pii("Final transcript", transcript=text)
            self.emitter.emit(
                "stt.final",
                session_id=self.session_id,
                severity=Severity.INFO,
                pii=pii_fields("transcript_text") if text else None,
                transcript_text=text,
                transcript_length=len(text),
                language=self.language_tag,
            )
        self._notify("transcript", text, is_final)

    def _on_end(self, generation: int) -> None:
        if self._is_stale(generation):
            return
        self._generation += 1
        self._session.status = SessionStatus.ENDED
        self.emitter.emit(
            "stt.ended",
            session_id=self.session_id,
            severity=Severity.DEBUG,
            transcript_length=len(self._session.transcript),
        )
        self._notify("listening", False)

    def _on_error(self, generation: int, error: str) -> None:
        if self._is_stale(generation):
            return
        self._generation += 1
        category = classify_recognition_error(error)
        self._session.status = SessionStatus.ERRORED
        self._session.error = error
        self._session.error_category = category
        logger.warning("Speech recognition error", error=error, category=category)
        self.emitter.emit(
            "stt.error",
            session_id=self.session_id,
            severity=Severity.WARN,
            error=error,
            category=category,
        )
        self._notify("listening", False)
