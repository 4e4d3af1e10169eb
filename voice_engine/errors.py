"""
Voice engine error taxonomy.

None of these escape to the rendering layer: controllers and the turn
coordinator catch capability failures at their boundary and convert them
into state (listening off, TimedOut results, visible manual controls).
"""
from typing import Optional


class VoiceEngineError(Exception):
    """Base class for voice engine errors."""


class CapabilityUnavailable(VoiceEngineError):
    """The device has no text-to-speech or speech-to-text support."""

    def __init__(self, capability: str):
        super().__init__(f"{capability} capability is not available")
        self.capability = capability


class RecognitionError(VoiceEngineError):
    """The speech-to-text engine reported a failure mid-capture."""

    def __init__(self, code: str, detail: Optional[str] = None):
        super().__init__(detail or code)
        self.code = code
        self.category = classify_recognition_error(code)


class EngineNotStarted(VoiceEngineError):
    """get_engine() was called before start_engine()."""


class ActionNotAvailable(VoiceEngineError):
    """A manual action was invoked that the mounted phase does not offer right now."""

    def __init__(self, phase: str, action: str, reason: Optional[str] = None):
        message = f"{action} is not available on {phase}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.phase = phase
        self.action = action


class RecognitionErrorCategory:
    """Stable categories for recognition engine error codes."""

    NO_SPEECH = "speech.no_speech"
    ABORTED = "speech.aborted"
    AUDIO_CAPTURE = "speech.audio_capture"
    NETWORK = "speech.network"
    NOT_ALLOWED = "speech.not_allowed"
    UNKNOWN = "speech.unknown"


def classify_recognition_error(code: Optional[str]) -> str:
    """
    Map an engine error code or message to a stable category.

    Engines report free-form codes ("no-speech", "not-allowed",
    "service-not-allowed", "audio-capture", ...); anything unrecognised is
    UNKNOWN.
    """
    text = (code or "").lower()

    if "no-speech" in text or "no_speech" in text or "silence" in text:
        return RecognitionErrorCategory.NO_SPEECH
    if "abort" in text or "cancel" in text:
        return RecognitionErrorCategory.ABORTED
    if "audio" in text or "microphone" in text:
        return RecognitionErrorCategory.AUDIO_CAPTURE
    if "network" in text or "timeout" in text or "connection" in text:
        return RecognitionErrorCategory.NETWORK
    if "not-allowed" in text or "not_allowed" in text or "permission" in text or "denied" in text:
        return RecognitionErrorCategory.NOT_ALLOWED
    return RecognitionErrorCategory.UNKNOWN
