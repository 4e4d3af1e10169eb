"""
Speech Output Controller.

Wraps the text-to-speech capability with last-writer-wins semantics:
- say() flushes whatever is playing and starts the new utterance
- a superseded or cancelled utterance never delivers its completion
- completion fires exactly once on natural end or engine error
- without TTS support, say() completes immediately (zero-duration no-op)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from logging_setup import get_logger, Component as LogComponent
from observability.events import Component as ObsComponent, EventEmitter, Severity, pii_fields
from .capabilities import TextToSpeechCapability
from .observable import Observable


logger = get_logger(LogComponent.SPEECH_OUTPUT)


@dataclass(frozen=True)
class Utterance:
    """Text to speak. rate/pitch default to the controller's settings."""

    text: str
    rate: Optional[float] = None
    pitch: Optional[float] = None
    on_end: Optional[Callable[[], None]] = field(default=None, compare=False)


@dataclass
class _Playback:
    generation: int
    utterance: Utterance
    future: "asyncio.Future[None]"


class SpeechOutputController(Observable):
    """
    Process-wide owner of the text-to-speech capability.

    Events:
        "speaking" (bool): speaking state changed
    """

    def __init__(
        self,
        capability: TextToSpeechCapability,
        *,
        language_tag: str = "en-US",
        rate: float = 0.9,
        pitch: float = 1.0,
    ):
        super().__init__()
        self._capability = capability
        self.language_tag = language_tag
        self.rate = rate
        self.pitch = pitch
        self.session_id = "engine"
        self.emitter = EventEmitter(ObsComponent.SPEECH_OUTPUT)

        self._generation = 0
        self._current: Optional[_Playback] = None
        self._speaking = False

    @property
    def available(self) -> bool:
        return bool(getattr(self._capability, "available", False))

    @property
    def is_speaking(self) -> bool:
        return self._speaking

    def say(self, utterance: Union[Utterance, str]) -> "asyncio.Future[None]":
        """
        Speak an utterance, superseding any in-flight one.

        Returns a future that resolves on completion. If the utterance is
        superseded or cancelled, the future is cancelled instead and
        utterance.on_end is never called.
        """
        if isinstance(utterance, str):
            utterance = Utterance(utterance)

        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()

        self._stop_current("tts.superseded")

        self._generation += 1
        generation = self._generation

        if not self.available:
            self.emitter.emit(
                "tts.unavailable",
                session_id=self.session_id,
                severity=Severity.DEBUG,
                text_length=len(utterance.text),
            )
            self._deliver(_Playback(generation, utterance, future))
            return future

        self._current = _Playback(generation, utterance, future)
        self._set_speaking(True)

        self.emitter.emit(
            "tts.started",
            session_id=self.session_id,
            severity=Severity.INFO,
            pii=pii_fields("text"),
            text=utterance.text,
            text_length=len(utterance.text),
            language=self.language_tag,
        )

        try:
            self._capability.speak(
                utterance.text,
                language=self.language_tag,
                rate=utterance.rate if utterance.rate is not None else self.rate,
                pitch=utterance.pitch if utterance.pitch is not None else self.pitch,
                on_end=lambda: self._on_engine_end(generation),
                on_error=lambda error: self._on_engine_error(generation, error),
            )
        except Exception as e:
            logger.warning(
                "TTS capability raised on speak",
                error=str(e),
                error_type=type(e).__name__,
            )
            self._on_engine_error(generation, str(e))

        return future

    async def speak(self, utterance: Union[Utterance, str]) -> bool:
        """
        Speak and wait for the outcome.

        Returns True if the utterance completed, False if it was superseded
        or cancelled. Cancelling the awaiting task does not stop playback.
        """
        future = self.say(utterance)
        await asyncio.wait([future])
        return not future.cancelled()

    def cancel(self) -> None:
        """Stop speaking; the in-flight utterance gets no completion."""
        self._generation += 1
        self._stop_current("tts.cancelled")

    # --- capability callbacks ---

    def _on_engine_end(self, generation: int) -> None:
        playback = self._take(generation)
        if playback is None:
            return
        self.emitter.emit(
            "tts.completed",
            session_id=self.session_id,
            severity=Severity.INFO,
            cause="completed",
        )
        self._deliver(playback)

    def _on_engine_error(self, generation: int, error: str) -> None:
        playback = self._take(generation)
        if playback is None:
            return
        logger.warning("TTS engine error", error=error)
        self.emitter.emit(
            "tts.completed",
            session_id=self.session_id,
            severity=Severity.WARN,
            cause="error",
            error=error,
        )
        self._deliver(playback)

    # --- internals ---

    def _take(self, generation: int) -> Optional[_Playback]:
        """Claim the current playback if the callback belongs to it."""
        playback = self._current
        if playback is None or playback.generation != generation:
            logger.debug("Ignoring stale TTS callback", generation=generation)
            return None
        self._current = None
        self._set_speaking(False)
        return playback

    def _deliver(self, playback: _Playback) -> None:
        on_end = playback.utterance.on_end
        if on_end is not None:
            try:
                on_end()
            except Exception as e:
                logger.exception(
                    "Utterance completion callback failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
        if not playback.future.done():
            playback.future.set_result(None)

    def _stop_current(self, event_type: str) -> None:
        playback = self._current
        if self.available:
            try:
                self._capability.cancel()
            except Exception as e:
                logger.warning(
                    "TTS capability raised on cancel",
                    error=str(e),
                    error_type=type(e).__name__,
                )
        if playback is None:
            return
        self._current = None
        playback.future.cancel()
        self._set_speaking(False)
        self.emitter.emit(
            event_type,
            session_id=self.session_id,
            severity=Severity.DEBUG,
            text_length=len(playback.utterance.text),
        )

    def _set_speaking(self, speaking: bool) -> None:
        if speaking == self._speaking:
            return
        self._speaking = speaking
        self._notify("speaking", speaking)
