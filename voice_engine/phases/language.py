"""Language selection screen."""

from __future__ import annotations

from typing import Any, List

from ..content import LanguageOption
from ..interpreters import match_choice
from ..turns import Turn
from .base import PhaseMachine, PhaseStatus


class LanguagePhase(PhaseMachine):
    """
    One choice turn over the configured languages.

    The language buttons are a parallel path: tapping one resolves the
    pending turn (or replaces the flow when none is pending). Skip picks
    the first language (English).
    """

    screen = "language"
    next_route = "/terms"

    def on_mount(self) -> None:
        current = self.ctx.preferences.load().language
        if current:
            self._select("language", current)

    async def flow(self) -> None:
        await self._pause(self.ctx.config.intro_delay)
        languages = self.ctx.scenario.languages
        turn = Turn(
            name="language",
            prompts=(self.prompts.language_intro, *(option.name for option in languages)),
            validator=lambda transcript: match_choice(transcript, languages),
            timeout=self.ctx.config.timeout_for(self.screen),
            reprompts=(self.prompts.language_reprompt,),
            prompt_gap=self.ctx.config.prompt_gap,
            keep_listening=True,
        )
        result = await self._ask(turn)
        await self._choose(result.value)

    async def _choose(self, option: LanguageOption) -> None:
        self._select("language", option.id)
        self._set_state(status=PhaseStatus.ADVANCE)
        self.ctx.preferences.update(language=option.id)
        self.ctx.set_language(option.id)
        await self._say(self.prompts.language_selected.format(name=option.name))
        self._finish(self.next_route)

    def _resolve(self, value: Any) -> LanguageOption:
        if isinstance(value, LanguageOption):
            return value
        option = self.ctx.scenario.language(str(value))
        if option is None:
            option = match_choice(str(value), self.ctx.scenario.languages)
        if option is None:
            raise ValueError(f"Unknown language: {value!r}")
        return option

    def on_manual_select(self, value: Any) -> None:
        self._manual("select", self._resolve(value), self._choose)

    def on_skip(self) -> None:
        self._manual("skip", self.ctx.scenario.languages[0], self._choose)

    def available_actions(self) -> List[str]:
        return ["select", "skip"]
