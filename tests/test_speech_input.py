"""
Tests for the Speech Input Controller.

Verifies:
- at most one active session; listen() while listening is ignored
- each accepted listen() clears the previous transcript
- errors and end-of-speech flip listening off without raising
- unavailable STT never starts listening
- late callbacks from a stopped capture are ignored
"""
import asyncio

import pytest

from voice_engine.errors import RecognitionErrorCategory
from voice_engine.speech_input import SessionStatus, SpeechInputController
from conftest import FakeSpeechToText, EMPTY_END, error


@pytest.mark.asyncio
async def test_listen_twice_yields_one_session(speech_input, stt):
    assert speech_input.listen() is True
    assert speech_input.listen() is False

    assert len(stt.starts) == 1
    assert speech_input.is_listening


@pytest.mark.asyncio
async def test_final_transcript_then_end():
    stt = FakeSpeechToText(["my name is Arjun"])
    speech_input = SpeechInputController(stt)
    transcripts = []
    listening = []
    speech_input.on("transcript", lambda text, is_final: transcripts.append((text, is_final)))
    speech_input.on("listening", listening.append)

    speech_input.listen()
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert transcripts == [("", False), ("my name is Arjun", True)]
    assert listening == [True, False]
    assert speech_input.transcript == "my name is Arjun"
    assert speech_input.session.status == SessionStatus.ENDED


@pytest.mark.asyncio
async def test_listen_clears_previous_transcript():
    stt = FakeSpeechToText(["English"])
    speech_input = SpeechInputController(stt)

    speech_input.listen()
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert speech_input.transcript == "English"

    speech_input.listen()
    assert speech_input.transcript == ""


@pytest.mark.asyncio
async def test_interim_results_update_transcript(speech_input, stt):
    speech_input.listen()

    stt.hear("my na", is_final=False)
    assert speech_input.transcript == "my na"
    assert speech_input.is_listening

    stt.hear("my name is Priya")
    stt.end()
    assert speech_input.transcript == "my name is Priya"
    assert not speech_input.is_listening


@pytest.mark.asyncio
async def test_engine_error_flips_listening_off(capsys):
    stt = FakeSpeechToText([error("no-speech")])
    speech_input = SpeechInputController(stt)
    listening = []
    speech_input.on("listening", listening.append)

    speech_input.listen()
    await asyncio.sleep(0)

    assert listening == [True, False]
    assert speech_input.session.status == SessionStatus.ERRORED
    assert speech_input.session.error_category == RecognitionErrorCategory.NO_SPEECH
    assert "stt.error" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_empty_end_of_speech():
    stt = FakeSpeechToText([EMPTY_END])
    speech_input = SpeechInputController(stt)

    speech_input.listen()
    await asyncio.sleep(0)

    assert not speech_input.is_listening
    assert speech_input.transcript == ""
    assert speech_input.session.status == SessionStatus.ENDED


@pytest.mark.asyncio
async def test_capability_exception_on_start_is_contained():
    class ExplodingSTT(FakeSpeechToText):
        def start(self, language_tag, **kwargs):
            raise OSError("microphone busy")

    speech_input = SpeechInputController(ExplodingSTT())

    assert speech_input.listen() is True
    assert not speech_input.is_listening
    assert speech_input.session.error_category == RecognitionErrorCategory.AUDIO_CAPTURE


@pytest.mark.asyncio
async def test_unavailable_stt_never_listens():
    stt = FakeSpeechToText(available=False)
    speech_input = SpeechInputController(stt)
    listening = []
    speech_input.on("listening", listening.append)

    assert speech_input.listen() is False
    assert listening == []
    assert stt.starts == []


@pytest.mark.asyncio
async def test_late_callbacks_after_stop_are_ignored(speech_input, stt):
    speech_input.listen()
    late_result, late_end, late_error = stt.callbacks

    speech_input.stop()
    late_result("too late", True)
    late_error("network")

    assert speech_input.transcript == ""
    assert speech_input.session.status == SessionStatus.ENDED
    assert stt.stops == 1


@pytest.mark.asyncio
async def test_stop_when_idle_is_noop(speech_input, stt):
    speech_input.stop()

    assert stt.stops == 0


@pytest.mark.asyncio
async def test_language_tag_passed_to_capability(stt):
    speech_input = SpeechInputController(stt, language_tag="hi-IN")

    speech_input.listen()

    assert stt.starts == ["hi-IN"]
    assert speech_input.session.language_tag == "hi-IN"
