"""Identity capture screen (what should I call you?)."""

from __future__ import annotations

from typing import Any, List

from ..errors import ActionNotAvailable
from ..interpreters import extract_name
from ..turns import Turn
from .base import PhaseMachine, PhaseStatus


class IdentityPhase(PhaseMachine):
    screen = "welcome"
    next_route = "/accessibility-test"

    def on_mount(self) -> None:
        stored = self.ctx.preferences.load().name
        if stored:
            self._select("name", stored)

    async def flow(self) -> None:
        await self._pause(self.ctx.config.intro_delay)
        self._set_state(step="voice")
        turn = Turn(
            name="identity",
            prompts=(self.prompts.identity_welcome, self.prompts.identity_question),
            validator=extract_name,
            timeout=self.ctx.config.timeout_for(self.screen),
            reprompts=(self.prompts.identity_reprompt,),
            prompt_gap=self.ctx.config.prompt_gap,
            accept_interim=False,
        )
        result = await self._ask(turn)
        await self._capture(result.value)

    async def _capture(self, value: str) -> None:
        self._select("name", value)
        self._set_state(status=PhaseStatus.READY)
        self.logger.info_pii("Name captured", name_value=value)

    async def _confirm(self, value: Any = None) -> None:
        name = self.state.selections["name"]
        self._set_state(status=PhaseStatus.ADVANCE)
        self.ctx.preferences.update(name=name)
        await self._say(self.prompts.identity_confirmed.format(name=name))
        self._finish(self.next_route)

    async def _skip(self, value: Any = None) -> None:
        name = self.prompts.default_name
        self._select("name", name)
        self._set_state(status=PhaseStatus.ADVANCE)
        self.ctx.preferences.update(name=name)
        await self._say(self.prompts.identity_skipped)
        self._finish(self.next_route)

    def on_manual_select(self, value: Any) -> None:
        """A typed name."""
        name = str(value or "").strip()
        if not name:
            raise ValueError("Name must not be empty")
        self._manual("type_name", name, self._capture)

    def on_switch_to_typing(self) -> None:
        self._record_action("switch_to_typing")
        self._cancel_flow()
        self.ctx.coordinator.cancel()
        self._set_state(status=PhaseStatus.MANUAL_FALLBACK, step="typing", fallback_visible=True)

    def on_skip(self) -> None:
        self._record_action("skip")
        self.ctx.coordinator.cancel()
        self._start_flow(self._skip())

    def on_continue(self) -> None:
        if not self.state.selections.get("name"):
            raise ActionNotAvailable(self.screen, "continue", "no name yet")
        self._record_action("continue")
        self._start_flow(self._confirm())

    def available_actions(self) -> List[str]:
        actions = ["select", "switch_to_typing", "skip"]
        if self.state.selections.get("name"):
            actions.append("continue")
        return actions
