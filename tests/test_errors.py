"""
Tests for the voice engine error taxonomy.
"""
import pytest

from voice_engine.errors import (
    ActionNotAvailable,
    CapabilityUnavailable,
    RecognitionError,
    RecognitionErrorCategory,
    VoiceEngineError,
    classify_recognition_error,
)


class TestRecognitionErrorClassification:
    """Test recognition error code classification."""

    @pytest.mark.parametrize("code,category", [
        ("no-speech", RecognitionErrorCategory.NO_SPEECH),
        ("aborted", RecognitionErrorCategory.ABORTED),
        ("audio-capture", RecognitionErrorCategory.AUDIO_CAPTURE),
        ("network", RecognitionErrorCategory.NETWORK),
        ("Connection reset", RecognitionErrorCategory.NETWORK),
        ("not-allowed", RecognitionErrorCategory.NOT_ALLOWED),
        ("service-not-allowed", RecognitionErrorCategory.NOT_ALLOWED),
        ("Permission denied", RecognitionErrorCategory.NOT_ALLOWED),
    ])
    def test_known_codes(self, code, category):
        assert classify_recognition_error(code) == category

    def test_unknown(self):
        assert classify_recognition_error("bad-grammar") == RecognitionErrorCategory.UNKNOWN
        assert classify_recognition_error(None) == RecognitionErrorCategory.UNKNOWN


def test_recognition_error_carries_category():
    err = RecognitionError("no-speech")

    assert err.code == "no-speech"
    assert err.category == RecognitionErrorCategory.NO_SPEECH
    assert isinstance(err, VoiceEngineError)


def test_capability_unavailable_message():
    err = CapabilityUnavailable("speech-to-text")

    assert err.capability == "speech-to-text"
    assert "speech-to-text" in str(err)


def test_action_not_available_message():
    err = ActionNotAvailable("terms", "continue", "terms are still being read")

    assert err.phase == "terms"
    assert err.action == "continue"
    assert str(err) == "continue is not available on terms: terms are still being read"
    assert str(ActionNotAvailable("home", "skip")) == "skip is not available on home"
