"""
Open-ended command listener.

The home screen does not ask a bounded question; it keeps listening for a
small keyword set. CommandListener is a long-lived observer over the shared
SpeechInputController that re-arms a fresh single-shot session after each
one ends, so the single-active-session discipline still holds.

It goes dormant (and reports it) when speech recognition is unavailable or
after too many consecutive recognition errors; the screen's manual buttons
remain the path forward in that case.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Optional

from logging_setup import get_logger, Component as LogComponent
from observability.events import Component as ObsComponent, EventEmitter, Severity, pii_fields
from .errors import RecognitionErrorCategory
from .speech_input import SessionStatus, SpeechInputController


logger = get_logger(LogComponent.COMMAND_LISTENER)

Matcher = Callable[[str], Optional[str]]


class CommandListener:
    def __init__(
        self,
        speech_input: SpeechInputController,
        matcher: Matcher,
        on_command: Callable[[str, str], Any],
        *,
        rearm_delay: float = 0.5,
        error_budget: int = 3,
        on_dormant: Optional[Callable[[str], Any]] = None,
    ):
        self._input = speech_input
        self._matcher = matcher
        self._on_command = on_command
        self._on_dormant = on_dormant
        self.rearm_delay = rearm_delay
        self.error_budget = error_budget
        self.session_id = "engine"
        self.emitter = EventEmitter(ObsComponent.COMMAND_LISTENER)

        self._running = False
        self._dormant = False
        self._owns_session = False
        self._errors = 0
        self._rearm: Optional[asyncio.TimerHandle] = None
        self._unsubscribe: List[Callable[[], None]] = []

    @property
    def running(self) -> bool:
        return self._running

    @property
    def dormant(self) -> bool:
        return self._dormant

    def start(self) -> bool:
        """Begin (or resume) listening for commands. Returns False if dormant."""
        if self._dormant:
            return False
        if not self._running:
            self._running = True
            self._unsubscribe = [
                self._input.on("transcript", self._on_transcript),
                self._input.on("listening", self._on_listening),
            ]
            logger.debug("Command listener started")
        self._arm()
        return not self._dormant

    def pause(self) -> None:
        """Stop listening and unsubscribe; start() resumes. Dormancy is kept."""
        if not self._running:
            return
        self._running = False
        self._cancel_rearm()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        if self._owns_session:
            self._owns_session = False
            self._input.stop()
        logger.debug("Command listener paused")

    def stop(self) -> None:
        self.pause()
        self._errors = 0

    # --- arming ---

    def _arm(self) -> None:
        self._rearm = None
        if not self._running or self._owns_session:
            return

        if not self._input.available:
            self._go_dormant("unavailable")
            return

        self._owns_session = True
        if not self._input.listen():
            # Someone else's session is still open; try again shortly
            self._owns_session = False
            self._schedule_rearm()
            return

        self.emitter.emit(
            "listener.armed",
            session_id=self.session_id,
            severity=Severity.DEBUG,
        )

    def _schedule_rearm(self) -> None:
        if not self._running or self._rearm is not None:
            return
        loop = asyncio.get_running_loop()
        self._rearm = loop.call_later(self.rearm_delay, self._arm)

    def _cancel_rearm(self) -> None:
        if self._rearm is not None:
            self._rearm.cancel()
            self._rearm = None

    def _go_dormant(self, reason: str) -> None:
        self._dormant = True
        self.pause()
        logger.warning("Command listener dormant; manual controls only", reason=reason)
        self.emitter.emit(
            "listener.dormant",
            session_id=self.session_id,
            severity=Severity.WARN,
            reason=reason,
        )
        if self._on_dormant is not None:
            self._on_dormant(reason)

    # --- input events ---

    def _on_transcript(self, text: str, is_final: bool) -> None:
        if not (self._owns_session and is_final and text.strip()):
            return
        self._dispatch(text)

    def _on_listening(self, listening: bool) -> None:
        if listening or not self._owns_session:
            return
        self._owns_session = False
        session = self._input.session

        if session.status == SessionStatus.ERRORED:
            # Silence is the normal idle case for an open-ended listener
            if session.error_category != RecognitionErrorCategory.NO_SPEECH:
                self._errors += 1
                if self._errors >= self.error_budget:
                    self._go_dormant(session.error_category or "recognition_error")
                    return
        else:
            self._errors = 0

        self._schedule_rearm()

    def _dispatch(self, transcript: str) -> None:
        command = self._matcher(transcript)
        if command is None:
            logger.debug_pii("No command in transcript", transcript=transcript)
            return

        self._errors = 0
        self._owns_session = False
        self._input.stop()
        self.emitter.emit(
            "listener.command",
            session_id=self.session_id,
            severity=Severity.INFO,
            pii=pii_fields("transcript_text"),
            command=command,
            transcript_text=transcript,
        )
        logger.info("Voice command recognised", command=command)
        # The handler may pause() us; re-arm only if still running
        self._on_command(command, transcript)
        self._schedule_rearm()
