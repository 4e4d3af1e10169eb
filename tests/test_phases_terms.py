"""
Tests for the terms agreement phase.
"""
import pytest

from voice_engine.errors import ActionNotAvailable
from voice_engine.phases import PhaseStatus, TermsPhase


@pytest.mark.asyncio
async def test_terms_read_then_spoken_agreement(ctx, tts, stt, routes, preferences, eventually):
    stt.script.extend(["I agree"])
    phase = TermsPhase(ctx)

    phase.mount()
    await eventually(lambda: routes == ["/welcome"])

    assert tts.spoken[0]["text"] == ctx.scenario.terms_text
    assert tts.spoken[0]["rate"] == 0.85
    assert tts.texts[1] == "If you agree, say 'I Agree' or tap Continue to start learning with EduSight."
    assert tts.texts[-1] == "Thank you for agreeing. Let's get started."
    assert preferences.load().terms_accepted is True
    assert phase.state.selections["agreed"] is True


@pytest.mark.asyncio
async def test_continue_not_available_while_reading(ctx, tts, eventually):
    tts.auto_complete = False
    phase = TermsPhase(ctx)
    phase.mount()
    await eventually(lambda: len(tts.spoken) == 1)

    assert phase.available_actions() == ["skip"]
    with pytest.raises(ActionNotAvailable):
        phase.on_continue()
    phase.unmount()


@pytest.mark.asyncio
async def test_skip_reading_goes_to_agreement(ctx, tts, stt, routes, eventually):
    tts.auto_complete = False
    stt.script.extend(["yes"])
    phase = TermsPhase(ctx)
    phase.mount()
    await eventually(lambda: len(tts.spoken) == 1)

    phase.on_skip()
    tts.auto_complete = True
    await eventually(lambda: routes == ["/welcome"])

    assert tts.cancels >= 1
    assert tts.texts[1].startswith("If you agree")
    with pytest.raises(ActionNotAvailable):
        phase.on_skip()


@pytest.mark.asyncio
async def test_continue_resolves_pending_agreement(ctx, routes, preferences, eventually):
    phase = TermsPhase(ctx)
    phase.mount()
    await eventually(lambda: phase.state.step == "agreement")

    assert phase.available_actions() == ["continue"]
    phase.on_continue()
    await eventually(lambda: routes == ["/welcome"])

    assert preferences.load().terms_accepted is True


@pytest.mark.asyncio
async def test_refusal_reprompts_then_falls_back(ctx, tts, stt, routes, eventually):
    stt.script.extend(["no thanks", "maybe later"])
    phase = TermsPhase(ctx)
    phase.mount()

    await eventually(lambda: phase.state.status == PhaseStatus.MANUAL_FALLBACK)

    assert "Please say 'I Agree', or tap Continue." in tts.texts
    assert routes == []
    assert ctx.preferences.load().terms_accepted is False

    phase.on_continue()
    await eventually(lambda: routes == ["/welcome"])
