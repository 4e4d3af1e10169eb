"""
Tests for the accessibility calibration phase.
"""
import pytest

from voice_engine.errors import ActionNotAvailable
from voice_engine.phases import CalibrationPhase, PhaseStatus

PLATE_ANSWERS = ["74", "I see 21", "12"]
LINE_ANSWERS = ["e", "f p", "t o z", "l p e d", "um", "um"]


@pytest.mark.asyncio
async def test_full_voice_calibration(ctx, tts, stt, routes, preferences, eventually):
    stt.script.extend(PLATE_ANSWERS + LINE_ANSWERS)
    phase = CalibrationPhase(ctx)

    phase.mount()
    await eventually(lambda: phase.state.status == PhaseStatus.READY)

    selections = phase.state.selections
    assert selections["plate_results"] == [True, False, True]
    assert selections["last_readable_line"] == 3
    assert selections["mode"] == "normal"
    assert tts.texts[0].startswith("Let's check what display works best")
    assert tts.texts[-1].startswith("Based on the test, I will set your mode to Normal Vision.")
    assert phase.available_actions() == ["select", "continue"]

    phase.on_continue()

    assert routes == ["/home"]
    prefs = preferences.load()
    assert prefs.accessibility_mode == "normal"
    assert prefs.has_completed_onboarding is True


@pytest.mark.asyncio
async def test_plate_failures_give_colorblind(ctx, stt, eventually):
    stt.script.extend(["74", "nine", "I see 3"] + LINE_ANSWERS)
    phase = CalibrationPhase(ctx)

    phase.mount()
    await eventually(lambda: phase.state.status == PhaseStatus.READY)

    assert phase.state.selections["mode"] == "colorblind"
    phase.unmount()


@pytest.mark.asyncio
async def test_poor_acuity_gives_visually_assisted(ctx, stt, eventually):
    stt.script.extend(PLATE_ANSWERS + ["e", "f p", "um", "um", "um", "um"])
    phase = CalibrationPhase(ctx)

    phase.mount()
    await eventually(lambda: phase.state.status == PhaseStatus.READY)

    assert phase.state.selections["last_readable_line"] == 1
    assert phase.state.selections["mode"] == "visually-assisted"
    phase.unmount()


@pytest.mark.asyncio
async def test_silent_plate_falls_back_to_buttons(ctx, tts, eventually):
    phase = CalibrationPhase(ctx)
    phase.mount()

    await eventually(lambda: phase.state.fallback_visible)

    assert phase.state.step == "plates"
    assert "Please say the number you see, or tap a button below." in tts.texts

    # "Can't see clearly" answers the first plate; the second plate is asked next
    phase.on_manual_select(False)
    await eventually(lambda: phase.state.selections["plate_results"] == [False])
    await eventually(lambda: phase.state.selections["plate_index"] == 1)

    with pytest.raises(ValueError):
        phase.on_manual_select("maybe")
    phase.unmount()


@pytest.mark.asyncio
async def test_skip_plates_then_lines(ctx, eventually):
    phase = CalibrationPhase(ctx)
    phase.mount()

    phase.on_skip()
    await eventually(lambda: phase.state.step == "lines")
    assert phase.state.selections["plate_results"] == [True, True, True]

    phase.on_skip()
    await eventually(lambda: phase.state.status == PhaseStatus.READY)

    assert phase.state.selections["last_readable_line"] == 5
    assert phase.state.selections["mode"] == "normal"
    with pytest.raises(ActionNotAvailable):
        phase.on_skip()
    phase.unmount()


@pytest.mark.asyncio
async def test_mode_override_before_continue(ctx, stt, routes, preferences, eventually):
    stt.script.extend(PLATE_ANSWERS + LINE_ANSWERS)
    phase = CalibrationPhase(ctx)
    phase.mount()
    await eventually(lambda: phase.state.status == PhaseStatus.READY)

    phase.on_manual_select("colorblind")
    phase.on_continue()

    assert routes == ["/home"]
    assert preferences.load().accessibility_mode == "colorblind"


@pytest.mark.asyncio
async def test_continue_before_result_not_available(ctx):
    phase = CalibrationPhase(ctx)
    phase.mount()

    with pytest.raises(ActionNotAvailable):
        phase.on_continue()
    phase.unmount()


@pytest.mark.asyncio
async def test_answer_between_questions_not_available(ctx, stt, eventually):
    ctx.config.answer_gap = 0.3
    stt.script.extend(["74", "nine", "12"])
    phase = CalibrationPhase(ctx)
    phase.mount()

    await eventually(lambda: len(phase.state.selections["plate_results"]) == 3)

    # The last plate is answered and the first line is not shown yet
    assert phase.available_actions() == ["skip"]
    with pytest.raises(ActionNotAvailable):
        phase.on_manual_select(False)
    assert phase.state.selections["plate_results"] == [True, False, True]
    assert phase.state.selections["line_index"] == 0
    phase.unmount()


@pytest.mark.asyncio
async def test_answer_during_intro_not_available(ctx, tts):
    tts.auto_complete = False
    phase = CalibrationPhase(ctx)
    phase.mount()

    with pytest.raises(ActionNotAvailable):
        phase.on_manual_select(True)
    assert phase.state.step == "intro"
    assert phase.state.selections["plate_results"] == []
    phase.unmount()


@pytest.mark.asyncio
async def test_stored_mode_is_shown(ctx):
    ctx.preferences.update(accessibility_mode="colorblind")
    phase = CalibrationPhase(ctx)
    phase.mount()

    assert phase.state.selections["previous_mode"] == "colorblind"
    assert phase.state.selections["mode"] is None
    phase.unmount()
