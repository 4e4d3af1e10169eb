"""
Accessibility calibration screen.

Colour plates first (one digit-matching turn per plate, pass/fail each),
then acuity lines (one fuzzy-matching turn per line, tracking the last
readable one), then the resulting display mode is announced. The user can
override the mode before continuing.
"""

from __future__ import annotations

from typing import Any, List

from ..content import MODE_LABELS
from ..errors import ActionNotAvailable
from ..interpreters import AccessibilityMode, determine_mode, is_line_readable, match_plate
from ..turns import Turn
from .base import PhaseMachine, PhaseStatus

PLATES = "plates"
LINES = "lines"
RESULT = "result"


class CalibrationPhase(PhaseMachine):
    screen = "accessibility-test"
    next_route = "/home"

    def on_mount(self) -> None:
        self._set_state(step="intro", selections={
            "plate_results": [],
            "line_index": 0,
            "last_readable_line": -1,
            "mode": None,
            "answer_open": False,
            "previous_mode": self.ctx.preferences.load().accessibility_mode,
        })

    @property
    def plate_results(self) -> List[bool]:
        return list(self.state.selections["plate_results"])

    async def flow(self) -> None:
        await self._pause(self.ctx.config.intro_delay)
        await self._say(self.prompts.calibration_intro)
        await self._run_tests()

    async def _run_tests(self) -> None:
        plates = self.ctx.scenario.color_plates
        while len(self.plate_results) < len(plates):
            index = len(self.plate_results)
            self._set_state(step=PLATES, fallback_visible=False)
            self._select("plate_index", index)
            expected = plates[index].number
            result = await self._ask_test(Turn(
                name=f"plate_{index + 1}",
                prompts=(self.prompts.plate_question,),
                validator=lambda transcript: match_plate(transcript, expected),
                timeout=self.ctx.config.timeout_for(self.screen),
                reprompts=(self.prompts.plate_reprompt,),
                accept_interim=False,
            ))
            self._record_plate(result)
            await self._pause(self.ctx.config.answer_gap)

        lines = self.ctx.scenario.acuity_lines
        while self.state.selections["line_index"] < len(lines):
            index = self.state.selections["line_index"]
            self._set_state(step=LINES, fallback_visible=False)
            letters = lines[index].letters
            result = await self._ask_test(Turn(
                name=f"line_{index + 1}",
                prompts=(self.prompts.line_question,),
                validator=lambda transcript: is_line_readable(letters, transcript),
                timeout=self.ctx.config.timeout_for(self.screen),
                reprompts=(self.prompts.line_reprompt,),
                accept_interim=False,
            ))
            self._record_line(result)

        await self._show_result()

    async def _ask_test(self, turn: Turn) -> bool:
        """One plate or line question; manual answers are accepted only while it is open."""
        self._select("answer_open", True)
        try:
            result = await self._ask(turn)
        finally:
            self._select("answer_open", False)
        return bool(result.value)

    def _record_plate(self, passed: bool) -> None:
        self._select("plate_results", self.plate_results + [passed])

    def _record_line(self, readable: bool) -> None:
        index = self.state.selections["line_index"]
        if readable:
            self._select("last_readable_line", index)
        self._select("line_index", index + 1)

    async def _show_result(self) -> None:
        mode = determine_mode(self.plate_results, self.state.selections["last_readable_line"])
        self._select("mode", mode.value)
        self._set_state(step=RESULT, status=PhaseStatus.READY, fallback_visible=False)
        self.logger.info("Calibration scored", mode=mode.value, plate_results=self.plate_results)
        await self._say(self.prompts.calibration_result.format(mode=MODE_LABELS[mode.value]))

    def on_manual_select(self, value: Any) -> None:
        """
        Plates: True = "I see it", False = "Can't see clearly".
        Lines: True = "I can read this", False = "Too small".
        Result: an accessibility mode overriding the computed one.
        """
        if self.state.step == RESULT:
            mode = AccessibilityMode(value)
            self._record_action("select_mode", mode.value)
            self._cancel_flow()
            self.ctx.output.cancel()
            self._select("mode", mode.value)
            return
        if not self.state.selections.get("answer_open"):
            raise ActionNotAvailable(self.screen, "select", "no plate or line is being asked")
        if not isinstance(value, bool):
            raise ValueError(f"Expected a yes/no answer, got {value!r}")
        self._record_action("answer", value)
        if not self.ctx.coordinator.override(value):
            raise ActionNotAvailable(self.screen, "select", "no plate or line is being asked")

    def on_skip(self) -> None:
        step = self.state.step
        if step == RESULT:
            raise ActionNotAvailable(self.screen, "skip", "tests already finished")
        self._record_action("skip")
        self.ctx.coordinator.cancel()
        self.ctx.output.cancel()
        if step == LINES:
            self._select("last_readable_line", len(self.ctx.scenario.acuity_lines) - 1)
            self._select("line_index", len(self.ctx.scenario.acuity_lines))
        else:
            self._select("plate_results", [True] * len(self.ctx.scenario.color_plates))
        self._start_flow(self._run_tests())

    def on_continue(self) -> None:
        mode = self.state.selections.get("mode")
        if self.state.step != RESULT or mode is None:
            raise ActionNotAvailable(self.screen, "continue", "calibration not finished")
        self._record_action("continue")
        self._cancel_flow()
        self._set_state(status=PhaseStatus.ADVANCE)
        self.ctx.preferences.update(accessibility_mode=mode, has_completed_onboarding=True)
        self._finish(self.next_route)

    def available_actions(self) -> List[str]:
        if self.state.step == RESULT:
            return ["select", "continue"]
        if self.state.selections.get("answer_open"):
            return ["select", "skip"]
        return ["skip"]
