"""
Turn Coordinator.

Executes one Turn end-to-end (speak prompts -> listen -> interpret) and
guarantees exactly one TurnResult:
- prompts are spoken strictly in order; listening starts after the last one
- an accepted transcript and the timeout race; the first one wins
- a recognition error, an empty capture or missing STT support resolve as TimedOut
- cancel() discards the pending turn (the awaiting caller sees CancelledError)
- override(value) resolves the pending turn as ManualOverride(value)

The coordinator never retries on its own; phases apply RetryPolicy.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple, Union

from logging_setup import get_logger, Component as LogComponent
from observability.events import Component as ObsComponent, EventEmitter, Severity, pii_fields
from .interpreters import match_choice
from .observable import Observable
from .speech_input import SessionStatus, SpeechInputController
from .speech_output import SpeechOutputController, Utterance


logger = get_logger(LogComponent.TURN_COORDINATOR)

Prompt = Union[Utterance, str]
Validator = Callable[[str], Any]


class TurnOutcome(str, Enum):
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    TIMED_OUT = "timed_out"
    MANUAL_OVERRIDE = "manual_override"


@dataclass(frozen=True)
class TurnResult:
    """Terminal outcome of a Turn."""

    outcome: TurnOutcome
    value: Any = None
    transcript: str = ""
    reason: Optional[str] = None

    @classmethod
    def matched(cls, value: Any, transcript: str = "") -> "TurnResult":
        return cls(TurnOutcome.MATCHED, value=value, transcript=transcript)

    @classmethod
    def unmatched(cls, transcript: str) -> "TurnResult":
        return cls(TurnOutcome.UNMATCHED, transcript=transcript)

    @classmethod
    def timed_out(cls, reason: str = "timeout", transcript: str = "") -> "TurnResult":
        return cls(TurnOutcome.TIMED_OUT, transcript=transcript, reason=reason)

    @classmethod
    def manual(cls, value: Any) -> "TurnResult":
        return cls(TurnOutcome.MANUAL_OVERRIDE, value=value)

    @property
    def has_value(self) -> bool:
        return self.outcome in (TurnOutcome.MATCHED, TurnOutcome.MANUAL_OVERRIDE)


@dataclass(frozen=True)
class Turn:
    """
    One request/response unit.

    The expected-answer domain is either `validator` (returns a value, or
    None for no match) or `expected`, a tuple of tokens matched by
    substring containment. With neither, any non-empty transcript matches.
    """

    name: str
    prompts: Tuple[Prompt, ...] = ()
    validator: Optional[Validator] = None
    expected: Tuple[str, ...] = ()
    timeout: Optional[float] = 5.0
    reprompts: Tuple[Prompt, ...] = ()
    prompt_gap: float = 0.0
    # False: only evaluate final transcripts (e.g. digit plates, where "4" is a prefix of "45")
    accept_interim: bool = True
    # True: a rejected final transcript re-arms listening inside the same window
    keep_listening: bool = False
    listen: bool = True

    def validate(self, transcript: str) -> Any:
        if self.validator is not None:
            return self.validator(transcript)
        if self.expected:
            return match_choice(transcript, self.expected)
        return transcript.strip() or None

    def for_retry(self) -> "Turn":
        """The same turn, spoken with its reprompt (if any)."""
        return replace(self, prompts=self.reprompts or self.prompts, prompt_gap=0.0)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Uniform escalation: reprompt `max_reprompts` times after a timeout, then
    surface manual fallback and stop auto-retrying. An unmatched answer is
    escalated the same way unless `retry_on_no_match` is off.
    """

    max_reprompts: int = 1
    retry_on_no_match: bool = True

    def should_retry(self, result: TurnResult, attempts: int) -> bool:
        if attempts >= self.max_reprompts:
            return False
        if result.outcome == TurnOutcome.TIMED_OUT:
            return True
        return result.outcome == TurnOutcome.UNMATCHED and self.retry_on_no_match


@dataclass
class _ActiveTurn:
    turn_id: str
    turn: Turn
    future: "asyncio.Future[TurnResult]"
    driver: Optional["asyncio.Task[None]"] = None
    timer: Optional[asyncio.TimerHandle] = None
    unsubscribe: List[Callable[[], None]] = field(default_factory=list)


class TurnCoordinator(Observable):
    """
    Runs at most one Turn at a time over the shared speech controllers.

    Events:
        "listening" (turn_name: str): the pending turn finished its prompts and is listening
    """

    def __init__(
        self,
        output: SpeechOutputController,
        speech_input: SpeechInputController,
        *,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        super().__init__()
        self._output = output
        self._input = speech_input
        self._sleep = sleep
        self._ids = itertools.count(1)
        self._active: Optional[_ActiveTurn] = None
        self.session_id = "engine"
        self.emitter = EventEmitter(ObsComponent.TURN_COORDINATOR)

    @property
    def active_turn(self) -> Optional[Turn]:
        return self._active.turn if self._active is not None else None

    async def run(self, turn: Turn) -> TurnResult:
        """Execute a turn and return its single result."""
        if self._active is not None:
            logger.warning(
                "Turn started while another is pending; cancelling the old one",
                pending=self._active.turn.name,
                turn=turn.name,
            )
            self.cancel()

        loop = asyncio.get_running_loop()
        active = _ActiveTurn(
            turn_id=f"turn_{next(self._ids)}",
            turn=turn,
            future=loop.create_future(),
        )
        self._active = active

        self.emitter.emit(
            "turn.started",
            session_id=self.session_id,
            severity=Severity.INFO,
            correlation_id=active.turn_id,
            turn=turn.name,
            prompt_count=len(turn.prompts),
            timeout_s=turn.timeout,
        )

        if turn.prompts or turn.listen:
            active.driver = loop.create_task(self._drive(active))

        try:
            return await active.future
        finally:
            if self._active is active:
                # The awaiting task itself was cancelled
                self._discard(active)

    async def wait_for_manual(self, name: str) -> TurnResult:
        """A voice-less turn that only override() (or cancel()) can end."""
        return await self.run(Turn(name=name, listen=False, timeout=None))

    def override(self, value: Any) -> bool:
        """Resolve the pending turn with a manual value. Returns False if none is pending."""
        active = self._active
        if active is None:
            logger.debug("override() with no pending turn")
            return False
        self._resolve(active, TurnResult.manual(value))
        return True

    def cancel(self) -> bool:
        """Abort the pending turn without delivering a result."""
        active = self._active
        if active is None:
            return False
        self._discard(active)
        active.future.cancel()
        return True

    # --- turn driver ---

    async def _drive(self, active: _ActiveTurn) -> None:
        turn = active.turn
        for index, prompt in enumerate(turn.prompts):
            if index and turn.prompt_gap:
                await self._sleep(turn.prompt_gap)
            completed = await self._output.speak(prompt)
            if not completed:
                logger.debug("Prompt superseded", turn=turn.name, index=index)
        if turn.listen and self._active is active:
            self._start_listening(active)

    def _start_listening(self, active: _ActiveTurn) -> None:
        if self._input.is_listening:
            # Some other session is still open; this turn needs a fresh transcript
            self._input.stop()

        active.unsubscribe = [
            self._input.on("transcript", lambda text, is_final: self._on_transcript(active, text, is_final)),
            self._input.on("listening", lambda listening: self._on_listening(active, listening)),
        ]

        started = self._input.listen()
        if self._active is not active:
            # Resolved synchronously (engine error on start)
            return
        if not started:
            self._resolve(active, TurnResult.timed_out("unavailable"))
            return

        if active.turn.timeout is not None:
            loop = asyncio.get_running_loop()
            active.timer = loop.call_later(active.turn.timeout, self._on_timeout, active)

        self.emitter.emit(
            "turn.listening",
            session_id=self.session_id,
            severity=Severity.DEBUG,
            correlation_id=active.turn_id,
            turn=active.turn.name,
        )
        self._notify("listening", active.turn.name)

    # --- input events ---

    def _on_transcript(self, active: _ActiveTurn, text: str, is_final: bool) -> None:
        if self._active is not active or not text.strip():
            return
        if not (active.turn.accept_interim or is_final):
            return
        value = self._validate(active, text)
        if value is not None:
            self._resolve(active, TurnResult.matched(value, text))

    def _on_listening(self, active: _ActiveTurn, listening: bool) -> None:
        if listening or self._active is not active:
            return

        session = self._input.session
        transcript = session.transcript.strip()
        if not transcript:
            reason = session.error_category if session.status == SessionStatus.ERRORED else "no_speech"
            self._resolve(active, TurnResult.timed_out(reason or "recognition_error"))
            return

        value = self._validate(active, transcript)
        if value is not None:
            self._resolve(active, TurnResult.matched(value, transcript))
            return

        if active.turn.keep_listening:
            self.emitter.emit(
                "turn.no_match",
                session_id=self.session_id,
                severity=Severity.DEBUG,
                correlation_id=active.turn_id,
                turn=active.turn.name,
                pii=pii_fields("transcript_text"),
                transcript_text=transcript,
            )
            if self._input.listen():
                return

        self._resolve(active, TurnResult.unmatched(transcript))

    def _on_timeout(self, active: _ActiveTurn) -> None:
        active.timer = None
        if self._active is not active:
            return
        self._resolve(active, TurnResult.timed_out("timeout", self._input.transcript))

    def _validate(self, active: _ActiveTurn, transcript: str) -> Any:
        try:
            return active.turn.validate(transcript)
        except Exception as e:
            logger.exception(
                "Validator failed; treating transcript as no match",
                turn=active.turn.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    # --- resolution ---

    def _resolve(self, active: _ActiveTurn, result: TurnResult) -> None:
        if self._active is not active or active.future.done():
            return
        self._active = None
        self._teardown(active, stop_output=result.outcome == TurnOutcome.MANUAL_OVERRIDE)

        payload: dict[str, Any] = {"turn": active.turn.name, "outcome": result.outcome.value}
        if result.reason:
            payload["reason"] = result.reason
        if result.transcript:
            payload["transcript_text"] = result.transcript
        self.emitter.emit(
            "turn.resolved",
            session_id=self.session_id,
            severity=Severity.INFO,
            correlation_id=active.turn_id,
            pii=pii_fields("transcript_text") if result.transcript else None,
            **payload,
        )
        logger.info(
            "Turn resolved",
            turn=active.turn.name,
            turn_id=active.turn_id,
            outcome=result.outcome.value,
            reason=result.reason,
        )
        active.future.set_result(result)

    def _discard(self, active: _ActiveTurn) -> None:
        self._active = None
        self._teardown(active, stop_output=True)
        self.emitter.emit(
            "turn.cancelled",
            session_id=self.session_id,
            severity=Severity.INFO,
            correlation_id=active.turn_id,
            turn=active.turn.name,
        )

    def _teardown(self, active: _ActiveTurn, *, stop_output: bool) -> None:
        if active.timer is not None:
            active.timer.cancel()
            active.timer = None
        for unsubscribe in active.unsubscribe:
            unsubscribe()
        active.unsubscribe = []
        driver = active.driver
        if driver is not None and not driver.done() and driver is not asyncio.current_task():
            driver.cancel()
        self._input.stop()
        if stop_output:
            self._output.cancel()
