"""
Voice engine: process-wide owner of the speech controllers.

Exactly one SpeechOutputController, one SpeechInputController and one
TurnCoordinator exist per engine. Phases never touch the device
capabilities; they get the controllers through a PhaseContext.

Lifecycle:
    engine = start_engine(tts, stt)   # once, at app start
    engine.show("language")           # mount a screen's phase
    get_engine()                      # anywhere afterwards
    shutdown_engine()                 # at app exit
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from logging_setup import get_logger, Component as LogComponent
from observability.events import Component as ObsComponent, EventEmitter, Severity
from .capabilities import (
    SpeechToTextCapability,
    TextToSpeechCapability,
    UnavailableSpeechToText,
    UnavailableTextToSpeech,
)
from .config import EngineConfig, get_config
from .content import Scenario, get_scenario
from .errors import EngineNotStarted
from .phases import SCREENS, PhaseContext, PhaseMachine
from .preferences import InMemoryPreferenceStore, Preferences, PreferenceStore
from .speech_input import SpeechInputController
from .speech_output import SpeechOutputController
from .turns import TurnCoordinator


logger = get_logger(LogComponent.ENGINE)

DEFAULT_LANGUAGE = "english"
MIN_VOICE_SPEED = 0.5
MAX_VOICE_SPEED = 1.5


def screen_for_route(route: str) -> str:
    """'/accessibility-test' -> 'accessibility-test'; '/' -> 'language'."""
    return route.strip("/").split("/")[0] or "language"


class VoiceEngine:
    def __init__(
        self,
        tts: TextToSpeechCapability,
        stt: SpeechToTextCapability,
        *,
        config: Optional[EngineConfig] = None,
        scenario: Optional[Scenario] = None,
        preferences: Optional[PreferenceStore] = None,
        navigate: Optional[Callable[[str], Any]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config or get_config()
        self.scenario = scenario or get_scenario(self.config.scenario)
        self.preferences = preferences or InMemoryPreferenceStore(
            Preferences(voice_speed=self.config.voice_speed)
        )
        self.emitter = EventEmitter(ObsComponent.ENGINE)
        self._navigate_hook = navigate
        self._sleep = sleep

        prefs = self.preferences.load()
        tag = self.scenario.language_tag(prefs.language or DEFAULT_LANGUAGE)
        self.output = SpeechOutputController(tts, language_tag=tag, rate=prefs.voice_speed)
        self.speech_input = SpeechInputController(stt, language_tag=tag)
        self.coordinator = TurnCoordinator(self.output, self.speech_input, sleep=sleep)

        self.screen: Optional[str] = None
        self.route: Optional[str] = None
        self.phase: Optional[PhaseMachine] = None
        self.session_id = "engine"

        logger.info(
            "Voice engine created",
            tts_available=self.output.available,
            stt_available=self.speech_input.available,
            scenario=self.scenario.name,
        )

    # --- settings ---

    def set_language(self, language_id: str) -> str:
        """Switch both controllers to the language's tag. Returns the tag."""
        tag = self.scenario.language_tag(language_id)
        self.output.language_tag = tag
        self.speech_input.language_tag = tag
        logger.info("Language set", language=language_id, language_tag=tag)
        return tag

    def set_voice_speed(self, speed: float) -> float:
        speed = min(max(float(speed), MIN_VOICE_SPEED), MAX_VOICE_SPEED)
        self.output.rate = speed
        self.preferences.update(voice_speed=speed)
        return speed

    # --- screens ---

    def initial_screen(self) -> str:
        return "home" if self.preferences.load().has_completed_onboarding else "language"

    def context(self) -> PhaseContext:
        return PhaseContext(
            output=self.output,
            speech_input=self.speech_input,
            coordinator=self.coordinator,
            scenario=self.scenario,
            config=self.config,
            preferences=self.preferences,
            navigate=self.navigate,
            set_language=self.set_language,
            sleep=self._sleep,
        )

    def show(self, screen: str) -> Optional[PhaseMachine]:
        """
        Unmount the current phase and mount the one for `screen`.

        Screens without a voice flow (settings, chapters) just leave the
        engine idle. Requires a running event loop.
        """
        previous = self.screen
        if self.phase is not None:
            self.phase.unmount()
            self.phase = None

        self.screen = screen
        phase_cls = SCREENS.get(screen)
        if phase_cls is not None:
            self.phase = phase_cls(self.context())
            self._bind(self.phase.session_id)
        else:
            self._bind("engine")

        self.emitter.emit(
            "engine.screen_changed",
            session_id=self.session_id,
            severity=Severity.INFO,
            from_screen=previous,
            to_screen=screen,
            has_voice_flow=self.phase is not None,
        )
        logger.info("Screen shown", screen=screen, previous=previous)

        if self.phase is not None:
            self.phase.mount()
        return self.phase

    def navigate(self, route: str) -> None:
        """Route requested by a phase. A host-supplied navigate hook owns routing when given."""
        self.route = route
        if self._navigate_hook is not None:
            self._navigate_hook(route)
            return
        self.show(screen_for_route(route))

    def _bind(self, session_id: str) -> None:
        # Events from the shared controllers carry the mounted screen's session
        self.session_id = session_id
        self.output.session_id = session_id
        self.speech_input.session_id = session_id
        self.coordinator.session_id = session_id
        if hasattr(self.preferences, "session_id"):
            self.preferences.session_id = session_id

    def shutdown(self) -> None:
        if self.phase is not None:
            self.phase.unmount()
            self.phase = None
        self.coordinator.cancel()
        self.output.cancel()
        self.speech_input.stop()
        self.screen = None
        logger.info("Voice engine shut down")


_engine: Optional[VoiceEngine] = None


def start_engine(
    tts: Optional[TextToSpeechCapability] = None,
    stt: Optional[SpeechToTextCapability] = None,
    **kwargs: Any,
) -> VoiceEngine:
    """Create the process-wide engine. Missing capabilities degrade to manual-only."""
    global _engine
    if _engine is not None:
        logger.warning("start_engine() called twice; replacing the running engine")
        _engine.shutdown()
    _engine = VoiceEngine(
        tts or UnavailableTextToSpeech(),
        stt or UnavailableSpeechToText(),
        **kwargs,
    )
    _engine.emitter.emit(
        "engine.started",
        session_id=_engine.session_id,
        severity=Severity.INFO,
        tts_available=_engine.output.available,
        stt_available=_engine.speech_input.available,
    )
    return _engine


def get_engine() -> VoiceEngine:
    if _engine is None:
        raise EngineNotStarted("Voice engine not started; call start_engine() first")
    return _engine


def shutdown_engine() -> None:
    global _engine
    if _engine is None:
        return
    _engine.shutdown()
    _engine.emitter.emit(
        "engine.stopped",
        session_id=_engine.session_id,
        severity=Severity.INFO,
    )
    _engine = None
