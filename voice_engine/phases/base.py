"""
Phase state machine base.

A phase owns one screen's conversational flow. Its progress is a single
enumerated status plus a small retry counter (PhaseState); the scripted
flow runs as one asyncio task that only suspends on utterance completion
and turn results.

Manual UI actions are alternate entry points into the same transitions:
while a turn is pending they are funnelled into it as ManualOverride, so a
voice answer and a tap can never both drive a transition. With no turn
pending they replace the scripted flow outright.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from logging_setup import get_logger, Component as LogComponent
from observability.events import Component as ObsComponent, EventEmitter, Severity
from ..config import EngineConfig
from ..content import Scenario
from ..errors import ActionNotAvailable
from ..observable import Observable
from ..preferences import PreferenceStore
from ..speech_input import SpeechInputController
from ..speech_output import SpeechOutputController, Utterance
from ..turns import RetryPolicy, Turn, TurnCoordinator, TurnResult


logger = get_logger(LogComponent.PHASE)


class PhaseStatus(str, Enum):
    INTRO = "intro"
    PROMPTING = "prompting"
    AWAITING_ANSWER = "awaiting_answer"
    ADVANCE = "advance"
    RETRY = "retry"
    MANUAL_FALLBACK = "manual_fallback"
    # A value exists; waiting for the user's continue
    READY = "ready"
    DONE = "done"


@dataclass
class PhaseState:
    status: PhaseStatus = PhaseStatus.INTRO
    step: str = ""
    listen_attempts: int = 0
    fallback_visible: bool = False
    selections: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class PhaseContext:
    """Everything a phase needs from the engine."""

    output: SpeechOutputController
    speech_input: SpeechInputController
    coordinator: TurnCoordinator
    scenario: Scenario
    config: EngineConfig
    preferences: PreferenceStore
    navigate: Callable[[str], Any]
    set_language: Callable[[str], Any] = lambda language_id: None
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_reprompts=self.config.max_reprompts)


class PhaseMachine(Observable):
    """
    Base class for screen phases.

    Subclasses implement flow() and whichever manual actions they offer.

    Events:
        "state" (snapshot: dict): phase state changed
    """

    screen = "phase"

    def __init__(self, ctx: PhaseContext):
        super().__init__()
        self.ctx = ctx
        self.state = PhaseState()
        self.session_id = f"{self.screen}_{uuid.uuid4().hex[:8]}"
        self.logger = logger.with_session(self.session_id)
        self.emitter = EventEmitter(ObsComponent.PHASE)
        self._mounted = False
        self._task: Optional[asyncio.Task] = None
        self._unsubscribe: List[Callable[[], None]] = []

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def prompts(self):
        return self.ctx.scenario.prompts

    # --- lifecycle ---

    def mount(self) -> None:
        """Start the screen's flow. Requires a running event loop."""
        if self._mounted:
            return
        self._mounted = True
        self._unsubscribe.append(self.ctx.coordinator.on("listening", self._on_turn_listening))
        self.logger.info("Phase mounted", screen=self.screen)
        self.on_mount()
        self._start_flow(self.flow())

    def unmount(self) -> None:
        """Leave the screen: stop the flow, the pending turn, speech and listening."""
        if not self._mounted:
            return
        self._mounted = False
        self._cancel_flow()
        self.ctx.coordinator.cancel()
        self.ctx.output.cancel()
        self.ctx.speech_input.stop()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        self.on_unmount()
        self._set_state(status=PhaseStatus.DONE)
        self.logger.info("Phase unmounted", screen=self.screen)

    def on_mount(self) -> None:
        """Hook: read initial selections (preferences) before the flow starts."""

    def on_unmount(self) -> None:
        """Hook: release phase-specific resources."""

    async def flow(self) -> None:
        raise NotImplementedError

    # --- manual actions (defaults: not offered) ---

    def on_manual_select(self, value: Any) -> None:
        raise ActionNotAvailable(self.screen, "select")

    def on_skip(self) -> None:
        raise ActionNotAvailable(self.screen, "skip")

    def on_switch_to_typing(self) -> None:
        raise ActionNotAvailable(self.screen, "switch_to_typing")

    def on_continue(self) -> None:
        raise ActionNotAvailable(self.screen, "continue")

    def available_actions(self) -> List[str]:
        return []

    # --- state ---

    def snapshot(self) -> Dict[str, Any]:
        data = self.state.to_dict()
        data["screen"] = self.screen
        data["session_id"] = self.session_id
        data["mounted"] = self._mounted
        data["actions"] = self.available_actions() if self._mounted else []
        return data

    def _set_state(self, **changes: Any) -> None:
        previous = self.state.status
        for key, value in changes.items():
            setattr(self.state, key, value)

        if self.state.status != previous:
            self.emitter.emit(
                "phase.state_changed",
                session_id=self.session_id,
                severity=Severity.INFO,
                screen=self.screen,
                from_status=previous.value,
                to_status=self.state.status.value,
                step=self.state.step,
            )
        self._notify("state", self.snapshot())

    def _select(self, key: str, value: Any) -> None:
        selections = dict(self.state.selections)
        selections[key] = value
        self._set_state(selections=selections)

    def _show_fallback(self, turn_name: str, result: TurnResult) -> None:
        self._set_state(status=PhaseStatus.MANUAL_FALLBACK, fallback_visible=True)
        self.emitter.emit(
            "phase.fallback_shown",
            session_id=self.session_id,
            severity=Severity.INFO,
            screen=self.screen,
            turn=turn_name,
            outcome=result.outcome.value,
            reason=result.reason,
        )
        self.logger.info("Manual fallback shown", turn=turn_name, outcome=result.outcome.value)

    def _on_turn_listening(self, turn_name: str) -> None:
        self._set_state(status=PhaseStatus.AWAITING_ANSWER)

    # --- flow plumbing ---

    def _start_flow(self, coro: Awaitable[None]) -> None:
        self._cancel_flow()
        self._task = asyncio.get_running_loop().create_task(self._run_flow(coro))

    def _cancel_flow(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run_flow(self, coro: Awaitable[None]) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Converge on manual controls rather than leaving a silent screen
            self.logger.exception(
                "Phase flow failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            if self._mounted:
                self._set_state(status=PhaseStatus.MANUAL_FALLBACK, fallback_visible=True)

    async def _pause(self, seconds: float) -> None:
        if seconds > 0:
            await self.ctx.sleep(seconds)

    async def _say(self, text: str, **kwargs: Any) -> bool:
        return await self.ctx.output.speak(Utterance(text, **kwargs))

    async def _ask(self, turn: Turn) -> TurnResult:
        """
        Run a turn under the retry policy.

        Returns a result carrying a value (Matched or ManualOverride). After
        the reprompts are used up the fallback controls are shown and the
        phase waits for a manual answer; voice stays mounted.
        """
        policy = self.ctx.retry_policy
        attempts = 0
        current = turn

        while True:
            self._set_state(
                status=PhaseStatus.PROMPTING if current.prompts else PhaseStatus.AWAITING_ANSWER,
                listen_attempts=attempts,
            )
            result = await self.ctx.coordinator.run(current)
            if result.has_value:
                return result

            if policy.should_retry(result, attempts):
                attempts += 1
                self._set_state(status=PhaseStatus.RETRY, listen_attempts=attempts)
                self.emitter.emit(
                    "turn.retry",
                    session_id=self.session_id,
                    severity=Severity.INFO,
                    screen=self.screen,
                    turn=turn.name,
                    attempt=attempts,
                    outcome=result.outcome.value,
                )
                current = turn.for_retry()
                continue

            self._show_fallback(turn.name, result)
            return await self.ctx.coordinator.wait_for_manual(turn.name)

    def _manual(self, action: str, value: Any, apply: Callable[[Any], Awaitable[None]]) -> None:
        """
        Route a manual answer.

        A pending turn receives it as ManualOverride and the flow continues
        as if it had been heard. Otherwise apply(value) replaces the flow.
        """
        self._record_action(action, value)
        if self.ctx.coordinator.override(value):
            return
        self._start_flow(apply(value))

    def _record_action(self, action: str, value: Any = None) -> None:
        if not self._mounted:
            raise ActionNotAvailable(self.screen, action, "screen is not mounted")
        self.emitter.emit(
            "phase.manual_action",
            session_id=self.session_id,
            severity=Severity.INFO,
            screen=self.screen,
            action=action,
            step=self.state.step,
        )
        self.logger.info("Manual action", action=action, step=self.state.step)

    def _finish(self, route: str) -> None:
        self._set_state(status=PhaseStatus.DONE)
        self.ctx.navigate(route)
