"""
Shared fixtures: scripted fake speech capabilities and fast engine config.
"""
import asyncio
from collections import deque

import pytest

from observability.event_store import event_store
from voice_engine.config import EngineConfig
from voice_engine.content import load_scenario
from voice_engine.phases import PhaseContext
from voice_engine.preferences import InMemoryPreferenceStore
from voice_engine.speech_input import SpeechInputController
from voice_engine.speech_output import SpeechOutputController
from voice_engine.turns import TurnCoordinator


# Scripted STT responses
SILENCE = None


def error(code):
    return ("error", code)


EMPTY_END = ("end",)


class FakeTextToSpeech:
    """
    Records utterances. With auto_complete, each utterance ends on the next
    loop iteration; otherwise the test calls finish() / fail().
    """

    def __init__(self, available=True, auto_complete=True):
        self.available = available
        self.auto_complete = auto_complete
        self.spoken = []
        self.cancels = 0
        self.callbacks = []
        self._pending = None

    @property
    def texts(self):
        return [entry["text"] for entry in self.spoken]

    def speak(self, text, *, language, rate, pitch, on_end, on_error):
        self.spoken.append({"text": text, "language": language, "rate": rate, "pitch": pitch})
        self.callbacks.append((on_end, on_error))
        if self.auto_complete:
            self._pending = asyncio.get_running_loop().call_soon(on_end)

    def cancel(self):
        self.cancels += 1
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def finish(self, index=-1):
        self.callbacks[index][0]()

    def fail(self, err="synthesis-failed", index=-1):
        self.callbacks[index][1](err)


class FakeSpeechToText:
    """
    Each start() consumes the next scripted response:
    - "text": a final transcript followed by end-of-speech
    - SILENCE: nothing happens (the turn's timeout decides)
    - error(code): an engine error
    - EMPTY_END: end-of-speech with no transcript
    Once the script is exhausted, captures stay silent.
    """

    def __init__(self, script=(), available=True):
        self.available = available
        self.script = deque(script)
        self.starts = []
        self.stops = 0
        self.listening = False
        self.callbacks = None

    def start(self, language_tag, *, on_result, on_end, on_error):
        self.starts.append(language_tag)
        self.listening = True
        self.callbacks = (on_result, on_end, on_error)
        response = self.script.popleft() if self.script else SILENCE
        loop = asyncio.get_running_loop()

        if isinstance(response, str):
            loop.call_soon(on_result, response, True)
            loop.call_soon(on_end)
        elif response == EMPTY_END:
            loop.call_soon(on_end)
        elif isinstance(response, tuple) and response[0] == "error":
            loop.call_soon(on_error, response[1])

    def stop(self):
        self.stops += 1
        self.listening = False

    def hear(self, text, is_final=True):
        self.callbacks[0](text, is_final)

    def end(self):
        self.callbacks[1]()


@pytest.fixture(autouse=True)
def cleanup_events():
    """Clear stored events between tests."""
    yield
    event_store.clear()


@pytest.fixture
def fast_config():
    return EngineConfig(
        language_timeout=0.05,
        terms_timeout=0.05,
        identity_timeout=0.05,
        calibration_timeout=0.05,
        navigation_timeout=0.05,
        intro_delay=0.0,
        prompt_gap=0.0,
        answer_gap=0.0,
        listener_rearm_delay=0.01,
    )


@pytest.fixture
def scenario():
    return load_scenario("default")


@pytest.fixture
def tts():
    return FakeTextToSpeech()


@pytest.fixture
def stt():
    return FakeSpeechToText()


@pytest.fixture
def output(tts):
    return SpeechOutputController(tts)


@pytest.fixture
def speech_input(stt):
    return SpeechInputController(stt)


@pytest.fixture
def coordinator(output, speech_input):
    return TurnCoordinator(output, speech_input)


@pytest.fixture
def preferences():
    return InMemoryPreferenceStore()


@pytest.fixture
def routes():
    return []


@pytest.fixture
def ctx(output, speech_input, coordinator, scenario, fast_config, preferences, routes):
    languages = []
    context = PhaseContext(
        output=output,
        speech_input=speech_input,
        coordinator=coordinator,
        scenario=scenario,
        config=fast_config,
        preferences=preferences,
        navigate=routes.append,
        set_language=languages.append,
    )
    context.languages_set = languages
    return context


@pytest.fixture
def eventually():
    """Await until predicate() is true (or fail after timeout seconds)."""

    async def _eventually(predicate, timeout=2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(0.002)

    return _eventually
