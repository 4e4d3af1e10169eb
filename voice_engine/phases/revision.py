"""Chapter revision screen (spoken summary on request)."""

from __future__ import annotations

from typing import Any, List

from ..errors import ActionNotAvailable
from .base import PhaseMachine, PhaseStatus

INTRO = "intro"
SUMMARY = "summary"


class RevisionPhase(PhaseMachine):
    """
    Announces the chapter, then waits. "play" stops whatever is being said
    and reads the summary; it is refused while the summary is already
    playing. There is no listening on this screen.
    """

    screen = "revision"

    def on_mount(self) -> None:
        self._set_state(step=INTRO, selections={"title": self.ctx.scenario.revision.title, "playing": False})

    async def flow(self) -> None:
        await self._pause(self.ctx.config.intro_delay)
        revision = self.ctx.scenario.revision
        await self._say(self.prompts.revision_intro.format(title=revision.title))
        self._set_state(status=PhaseStatus.READY)

    async def _read_summary(self) -> None:
        self._set_state(step=SUMMARY, status=PhaseStatus.PROMPTING)
        self._select("playing", True)
        try:
            await self._say(self.ctx.scenario.revision.summary)
        finally:
            self._select("playing", False)
        self._set_state(status=PhaseStatus.READY)

    def on_manual_select(self, value: Any) -> None:
        if str(value).strip().lower() != "play":
            raise ValueError(f"Unknown revision action: {value!r}; expected 'play'")
        if self.state.selections.get("playing"):
            raise ActionNotAvailable(self.screen, "select", "summary is already playing")
        self._record_action("play")
        self.ctx.output.cancel()
        self._start_flow(self._read_summary())

    def available_actions(self) -> List[str]:
        if self.state.selections.get("playing"):
            return []
        return ["select"]
