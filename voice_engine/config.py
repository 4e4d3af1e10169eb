"""
Voice engine configuration.

Loads timing and content configuration from environment variables.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def load_env_files(root: Optional[Path] = None) -> None:
    """
    Load .env_local / .env.local (local dev convenience).

    Never overrides variables that are already exported.
    """
    root = root or Path(__file__).parent.parent
    for name in (".env_local", ".env.local"):
        p = root / name
        if p.exists():
            load_dotenv(p, override=False)


def _clean_env(key: str) -> Optional[str]:
    """
    Read an environment variable, stripping trailing comments and whitespace.

    "5  # seconds" -> "5", "" -> None
    """
    value = os.environ.get(key)
    if not value:
        return None
    if "#" in value:
        value = value.split("#")[0]
    value = value.strip()
    return value or None


def _parse_int_env(key: str, default: int) -> int:
    value = _clean_env(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_float_env(key: str, default: float) -> float:
    value = _clean_env(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass
class EngineConfig:
    """Voice engine configuration. All durations are in seconds."""

    # Listening windows per screen
    language_timeout: float = 3.0
    terms_timeout: float = 5.0
    identity_timeout: float = 4.0
    calibration_timeout: float = 5.0
    navigation_timeout: float = 5.0

    # Reprompts before manual fallback is surfaced
    max_reprompts: int = 1

    # Pacing
    intro_delay: float = 0.5
    prompt_gap: float = 0.3
    answer_gap: float = 1.0

    # Speech output
    voice_speed: float = 0.9
    terms_rate: float = 0.85

    # Home command listener
    listener_rearm_delay: float = 0.5
    listener_error_budget: int = 3

    # Spoken content (voice_engine/scenarios/<name>.yaml)
    scenario: str = "default"

    def timeout_for(self, screen: str) -> float:
        """Listening window for a screen name (falls back to the navigation window)."""
        return {
            "language": self.language_timeout,
            "terms": self.terms_timeout,
            "welcome": self.identity_timeout,
            "accessibility-test": self.calibration_timeout,
            "home": self.navigation_timeout,
        }.get(screen, self.navigation_timeout)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load configuration from environment variables."""
        defaults = cls()
        return cls(
            language_timeout=_parse_float_env("VOICE_LANGUAGE_TIMEOUT", defaults.language_timeout),
            terms_timeout=_parse_float_env("VOICE_TERMS_TIMEOUT", defaults.terms_timeout),
            identity_timeout=_parse_float_env("VOICE_IDENTITY_TIMEOUT", defaults.identity_timeout),
            calibration_timeout=_parse_float_env("VOICE_CALIBRATION_TIMEOUT", defaults.calibration_timeout),
            navigation_timeout=_parse_float_env("VOICE_NAVIGATION_TIMEOUT", defaults.navigation_timeout),
            max_reprompts=_parse_int_env("VOICE_MAX_REPROMPTS", defaults.max_reprompts),
            intro_delay=_parse_float_env("VOICE_INTRO_DELAY", defaults.intro_delay),
            prompt_gap=_parse_float_env("VOICE_PROMPT_GAP", defaults.prompt_gap),
            answer_gap=_parse_float_env("VOICE_ANSWER_GAP", defaults.answer_gap),
            voice_speed=_parse_float_env("VOICE_SPEED", defaults.voice_speed),
            terms_rate=_parse_float_env("VOICE_TERMS_RATE", defaults.terms_rate),
            listener_rearm_delay=_parse_float_env("VOICE_LISTENER_REARM_DELAY", defaults.listener_rearm_delay),
            listener_error_budget=_parse_int_env("VOICE_LISTENER_ERROR_BUDGET", defaults.listener_error_budget),
            scenario=os.environ.get("VOICE_SCENARIO", defaults.scenario),
        )


def get_config() -> EngineConfig:
    """Get or create global config instance."""
    global _config
    if _config is None:
        load_env_files()
        _config = EngineConfig.from_env()
    return _config


# Global config instance (lazy loaded)
_config: Optional[EngineConfig] = None
