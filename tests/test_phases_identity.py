"""
Tests for the identity capture phase.
"""
import pytest

from voice_engine.errors import ActionNotAvailable
from voice_engine.phases import IdentityPhase, PhaseStatus


@pytest.mark.asyncio
async def test_spoken_name_then_continue(ctx, tts, stt, routes, preferences, eventually):
    stt.script.extend(["my name is Arjun"])
    phase = IdentityPhase(ctx)

    phase.mount()
    await eventually(lambda: phase.state.status == PhaseStatus.READY)

    assert tts.texts[:2] == ["Welcome to EduSight. I will guide you step by step.", "What should I call you?"]
    assert phase.state.selections["name"] == "Arjun"
    assert "continue" in phase.available_actions()
    assert routes == []

    phase.on_continue()
    await eventually(lambda: routes == ["/accessibility-test"])

    assert preferences.load().name == "Arjun"
    assert tts.texts[-1] == "Nice to meet you, Arjun! Let's check what display works best for you."


@pytest.mark.asyncio
async def test_continue_requires_name(ctx):
    phase = IdentityPhase(ctx)
    phase.mount()

    with pytest.raises(ActionNotAvailable):
        phase.on_continue()
    phase.unmount()


@pytest.mark.asyncio
async def test_switch_to_typing_then_typed_name(ctx, stt, routes, preferences, eventually):
    phase = IdentityPhase(ctx)
    phase.mount()
    await eventually(lambda: phase.state.status == PhaseStatus.AWAITING_ANSWER)

    phase.on_switch_to_typing()

    assert phase.state.step == "typing"
    assert phase.state.fallback_visible is True
    assert ctx.coordinator.active_turn is None
    assert not ctx.speech_input.is_listening

    phase.on_manual_select("  Meera ")
    await eventually(lambda: phase.state.selections.get("name") == "Meera")
    phase.on_continue()
    await eventually(lambda: routes == ["/accessibility-test"])

    assert preferences.load().name == "Meera"


@pytest.mark.asyncio
async def test_empty_typed_name_rejected(ctx):
    phase = IdentityPhase(ctx)
    phase.mount()

    with pytest.raises(ValueError):
        phase.on_manual_select("   ")
    phase.unmount()


@pytest.mark.asyncio
async def test_skip_uses_default_name(ctx, tts, routes, preferences, eventually):
    phase = IdentityPhase(ctx)
    phase.mount()

    phase.on_skip()
    await eventually(lambda: routes == ["/accessibility-test"])

    assert preferences.load().name == "Friend"
    assert tts.texts[-1] == "That's okay! Let's continue with the accessibility test."


@pytest.mark.asyncio
async def test_silence_falls_back_to_typing(ctx, tts, eventually):
    phase = IdentityPhase(ctx)
    phase.mount()

    await eventually(lambda: phase.state.fallback_visible)

    assert phase.state.status == PhaseStatus.MANUAL_FALLBACK
    assert "Please tell me your name, or you can type it below." in tts.texts

    # The typed name resolves the waiting turn
    phase.on_manual_select("Ravi")
    await eventually(lambda: phase.state.status == PhaseStatus.READY)
    assert phase.state.selections["name"] == "Ravi"
    phase.unmount()


@pytest.mark.asyncio
async def test_stored_name_allows_continue(ctx, stt, routes, preferences, eventually):
    preferences.update(name="Kavya")
    phase = IdentityPhase(ctx)
    phase.mount()

    assert phase.state.selections["name"] == "Kavya"
    assert "continue" in phase.available_actions()

    phase.on_continue()
    await eventually(lambda: routes == ["/accessibility-test"])

    assert preferences.load().name == "Kavya"


@pytest.mark.asyncio
async def test_spoken_name_replaces_stored_name(ctx, stt, preferences, eventually):
    preferences.update(name="Kavya")
    stt.script.extend(["call me Ravi"])
    phase = IdentityPhase(ctx)
    phase.mount()

    await eventually(lambda: phase.state.selections["name"] == "Ravi")

    assert phase.state.status == PhaseStatus.READY
    phase.unmount()
