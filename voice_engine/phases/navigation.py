"""
Home screen: curriculum navigation.

The home step listens continuously for a command keyword (board, grade,
subject, setting) through a CommandListener. Board/grade/subject open a
bounded choice turn; the selection is stored and the screen returns home.
Once all three are set, Continue to Chapters is offered. The manual
buttons offer the same transitions at all times.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from ..errors import ActionNotAvailable
from ..interpreters import HOME_COMMANDS, match_choice, match_command, match_grade
from ..listener import CommandListener
from ..turns import Turn
from .base import PhaseContext, PhaseMachine, PhaseStatus

HOME = "home"
SETTINGS_ROUTE = "/settings"
CHAPTERS_ROUTE = "/chapters"
CURRICULUM = ("board", "grade", "subject")


class NavigationPhase(PhaseMachine):
    screen = "home"

    def __init__(self, ctx: PhaseContext):
        super().__init__(ctx)
        self.listener = CommandListener(
            ctx.speech_input,
            match_command,
            self._on_voice_command,
            rearm_delay=ctx.config.listener_rearm_delay,
            error_budget=ctx.config.listener_error_budget,
            on_dormant=self._on_listener_dormant,
        )
        self.listener.session_id = self.session_id

    def on_mount(self) -> None:
        prefs = self.ctx.preferences.load()
        self._set_state(step=HOME, selections={
            "board": prefs.board,
            "grade": prefs.grade,
            "subject": prefs.subject,
        })

    def on_unmount(self) -> None:
        self.listener.stop()

    @property
    def can_continue(self) -> bool:
        return all(self.state.selections.get(key) for key in CURRICULUM)

    def options(self, kind: str) -> Sequence[str]:
        scenario = self.ctx.scenario
        return {"board": scenario.boards, "grade": scenario.grades, "subject": scenario.subjects}[kind]

    async def flow(self) -> None:
        await self._pause(self.ctx.config.intro_delay)
        name = self.ctx.preferences.load().name or self.prompts.default_name
        await self._say(self.prompts.home_greeting.format(name=name))
        await self._pause(self.ctx.config.prompt_gap)
        await self._say(self.prompts.home_commands)
        self._listen_for_commands()

    def _listen_for_commands(self) -> None:
        self._set_state(
            step=HOME,
            status=PhaseStatus.READY if self.can_continue else PhaseStatus.AWAITING_ANSWER,
        )
        self.listener.start()

    def _on_listener_dormant(self, reason: str) -> None:
        self._set_state(fallback_visible=True)

    def _on_voice_command(self, command: str, transcript: str) -> None:
        self._open(command)

    def _open(self, command: str) -> None:
        self.listener.pause()
        if command == "setting":
            self._finish(SETTINGS_ROUTE)
            return
        self._start_flow(self._choose(command))

    async def _choose(self, kind: str) -> None:
        self._set_state(step=kind)
        options = self.options(kind)
        question = getattr(self.prompts, f"{kind}_question")
        turn = Turn(
            name=kind,
            prompts=(question, ", ".join(options)),
            validator=self._validator(kind),
            timeout=self.ctx.config.timeout_for(self.screen),
            reprompts=(self.prompts.choice_reprompt,),
            prompt_gap=self.ctx.config.prompt_gap,
            keep_listening=True,
        )
        result = await self._ask(turn)
        await self._store(kind, result.value)

    def _validator(self, kind: str):
        options = self.options(kind)
        if kind == "grade":
            return lambda transcript: match_grade(transcript, options)
        return lambda transcript: match_choice(transcript, options)

    async def _store(self, kind: str, value: str) -> None:
        self._select(kind, value)
        self.ctx.preferences.update(**{kind: value})
        self._set_state(fallback_visible=False)
        await self._say(self.prompts.choice_selected.format(value=value))
        self._listen_for_commands()

    async def _back_home(self) -> None:
        self._set_state(fallback_visible=False)
        self._listen_for_commands()

    def _option_for(self, kind: str, value: Any) -> str:
        options = self.options(kind)
        if value in options:
            return value
        found: Optional[str] = match_choice(str(value), options)
        if found is None:
            raise ValueError(f"Unknown {kind}: {value!r}")
        return found

    def on_manual_select(self, value: Any) -> None:
        """
        Home step: a command button (board, grade, subject, setting).
        Sub-phase: one of that sub-phase's options.
        """
        step = self.state.step
        if step == HOME:
            command = match_command(str(value))
            if command is None:
                raise ValueError(f"Unknown command: {value!r}; expected one of {HOME_COMMANDS}")
            self._record_action("open", command)
            self._open(command)
            return
        option = self._option_for(step, value)
        self._manual("select", option, lambda chosen: self._store(step, chosen))

    def on_back(self) -> None:
        """Back to Home from a sub-phase."""
        if self.state.step == HOME:
            raise ActionNotAvailable(self.screen, "back", "already home")
        self._record_action("back")
        self.ctx.coordinator.cancel()
        self._start_flow(self._back_home())

    def on_continue(self) -> None:
        if not self.can_continue:
            raise ActionNotAvailable(self.screen, "continue", "board, grade and subject are required")
        self._record_action("continue")
        self.listener.stop()
        self._cancel_flow()
        self._finish(CHAPTERS_ROUTE)

    def available_actions(self) -> List[str]:
        actions = ["select"]
        if self.state.step != HOME:
            actions.append("back")
        if self.can_continue:
            actions.append("continue")
        return actions

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data["can_continue"] = self.can_continue
        data["listener_dormant"] = self.listener.dormant
        return data
