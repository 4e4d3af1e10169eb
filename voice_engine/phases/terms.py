"""Terms agreement screen."""

from __future__ import annotations

from typing import Any, List

from ..errors import ActionNotAvailable
from ..interpreters import is_affirmation
from ..turns import Turn
from .base import PhaseMachine, PhaseStatus


class TermsPhase(PhaseMachine):
    """
    Reads the full terms as one long utterance, then asks for agreement.

    The Agree control (on_continue) becomes available once reading finishes
    or is skipped.
    """

    screen = "terms"
    next_route = "/welcome"

    def on_mount(self) -> None:
        self._set_state(step="reading", selections={"agree_available": False})

    async def flow(self) -> None:
        await self._pause(self.ctx.config.intro_delay)
        await self._say(self.ctx.scenario.terms_text, rate=self.ctx.config.terms_rate)
        await self._ask_agreement()

    async def _ask_agreement(self) -> None:
        self._set_state(step="agreement")
        self._select("agree_available", True)
        turn = Turn(
            name="terms",
            prompts=(self.prompts.terms_question,),
            validator=lambda transcript: True if is_affirmation(transcript) else None,
            timeout=self.ctx.config.timeout_for(self.screen),
            reprompts=(self.prompts.terms_reprompt,),
        )
        await self._ask(turn)
        await self._agree(True)

    async def _agree(self, value: Any = True) -> None:
        self._select("agreed", True)
        self._set_state(status=PhaseStatus.ADVANCE)
        self.ctx.preferences.update(terms_accepted=True)
        await self._say(self.prompts.terms_agreed)
        self._finish(self.next_route)

    def on_skip(self) -> None:
        if self.state.step != "reading":
            raise ActionNotAvailable(self.screen, "skip", "terms already read")
        self._record_action("skip")
        self.ctx.output.cancel()
        self._start_flow(self._ask_agreement())

    def on_continue(self) -> None:
        if not self.state.selections.get("agree_available"):
            raise ActionNotAvailable(self.screen, "continue", "terms are still being read")
        self._manual("continue", True, self._agree)

    def available_actions(self) -> List[str]:
        if self.state.selections.get("agree_available"):
            return ["continue"]
        return ["skip"]
