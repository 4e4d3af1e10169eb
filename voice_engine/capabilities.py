"""
Contracts for the device speech engines the voice engine drives.

The engine never implements speech synthesis or recognition; it consumes
these two narrow capabilities. Implementations must invoke their callbacks
on the event loop thread. Callbacks delivered after cancel()/stop() are
tolerated: the controllers discard them.

Also provides:
- Unavailable* implementations for devices without support
- Console* implementations used by `python -m voice_engine`
"""

from __future__ import annotations

import asyncio
import sys
from typing import Callable, Optional, Protocol

EndCallback = Callable[[], None]
ErrorCallback = Callable[[str], None]
ResultCallback = Callable[[str, bool], None]


class TextToSpeechCapability(Protocol):
    """Speaks one text at a time."""

    available: bool

    def speak(
        self,
        text: str,
        *,
        language: str,
        rate: float,
        pitch: float,
        on_end: EndCallback,
        on_error: ErrorCallback,
    ) -> None:
        """Start speaking; exactly one of on_end / on_error follows unless cancelled."""

    def cancel(self) -> None:
        """Flush everything queued or playing."""


class SpeechToTextCapability(Protocol):
    """Single-shot recogniser: one capture ends after one utterance."""

    available: bool

    def start(
        self,
        language_tag: str,
        *,
        on_result: ResultCallback,
        on_end: EndCallback,
        on_error: ErrorCallback,
    ) -> None:
        """Begin capture. on_result(text, is_final) may fire several times before on_end."""

    def stop(self) -> None:
        """Stop capture."""


class UnavailableTextToSpeech:
    """Stands in for a device without speech synthesis."""

    available = False

    def speak(self, text, *, language, rate, pitch, on_end, on_error) -> None:
        on_end()

    def cancel(self) -> None:
        return None


class UnavailableSpeechToText:
    """Stands in for a device without speech recognition."""

    available = False

    def start(self, language_tag, *, on_result, on_end, on_error) -> None:
        on_error("not-allowed")

    def stop(self) -> None:
        return None


class ConsoleTextToSpeech:
    """
    Prints utterances and "plays" them for a duration proportional to their length.

    Useful for driving the onboarding flow from a terminal.
    """

    available = True

    def __init__(self, seconds_per_char: float = 0.02, out=None):
        self._seconds_per_char = seconds_per_char
        self._out = out or sys.stdout
        self._pending: Optional[asyncio.TimerHandle] = None

    def speak(self, text, *, language, rate, pitch, on_end, on_error) -> None:
        self.cancel()
        self._out.write(f"[speaking {language}] {text}\n")
        self._out.flush()
        duration = len(text) * self._seconds_per_char / max(rate, 0.1)
        loop = asyncio.get_running_loop()
        self._pending = loop.call_later(duration, on_end)

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None


class ConsoleSpeechToText:
    """
    Treats each typed line on stdin as one final transcript.

    Relies on loop.add_reader, so it needs a selector event loop (Unix).
    """

    available = True

    def __init__(self, stream=None, out=None):
        self._stream = stream or sys.stdin
        self._out = out or sys.stdout
        self._reading = False

    def start(self, language_tag, *, on_result, on_end, on_error) -> None:
        loop = asyncio.get_running_loop()

        def _on_readable() -> None:
            line = self._stream.readline()
            self.stop()
            if not line:
                on_error("aborted")
                return
            on_result(line.strip(), True)
            on_end()

        self._out.write(f"[listening {language_tag}] > ")
        self._out.flush()
        loop.add_reader(self._stream.fileno(), _on_readable)
        self._reading = True

    def stop(self) -> None:
        if self._reading:
            asyncio.get_running_loop().remove_reader(self._stream.fileno())
            self._reading = False
