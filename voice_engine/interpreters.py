"""
Transcript interpreters.

Pure functions that match a raw (possibly noisy) transcript against a
phase's expected answers. Each returns the matched value, or None / False
when the transcript does not match.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable, Optional, Sequence, TypeVar

T = TypeVar("T")

NAME_STOP_WORDS = frozenset(["my", "name", "is", "call", "me", "i", "am", "i'm"])
AFFIRMATION_KEYWORDS = ("agree", "yes", "accept")
HOME_COMMANDS = ("board", "grade", "subject", "setting")
READABLE_THRESHOLD = 0.6
VISION_ISSUE_LINE = 3
COLOR_FAILURE_LIMIT = 2

_DIGIT_RUN = re.compile(r"\d+")
_NON_DIGITS = re.compile(r"\D")
_WHITESPACE = re.compile(r"\s")


class AccessibilityMode(str, Enum):
    NORMAL = "normal"
    COLORBLIND = "colorblind"
    VISUALLY_ASSISTED = "visually-assisted"


def _choice_keys(candidate) -> Iterable[str]:
    """Canonical id and display name of a candidate (plain strings are both)."""
    if isinstance(candidate, str):
        return (candidate,)
    return tuple(k for k in (getattr(candidate, "id", None), getattr(candidate, "name", None)) if k)


def match_choice(transcript: str, candidates: Sequence[T]) -> Optional[T]:
    """
    Exact-choice matching (language, board, subject).

    A candidate matches when its lower-cased id or display name occurs in the
    lower-cased transcript. First match in declaration order wins.
    Candidates are strings or objects with `id` / `name` attributes.
    """
    lower = transcript.lower()
    for candidate in candidates:
        if any(key.lower() in lower for key in _choice_keys(candidate)):
            return candidate
    return None


def match_grade(transcript: str, options: Sequence[str]) -> Optional[str]:
    """Pick the first option whose label contains the first digit run of the transcript."""
    found = _DIGIT_RUN.search(transcript)
    if not found:
        return None
    digits = found.group(0)
    for option in options:
        if digits in option:
            return option
    return None


def digits_only(transcript: str) -> str:
    return _NON_DIGITS.sub("", transcript)


def match_plate(transcript: str, expected: str) -> bool:
    """
    Digit-string matching for colour plates.

    Spoken number words are not converted: "forty five" has no digits and
    does not match "45".
    """
    heard = digits_only(transcript)
    return bool(heard) and expected in heard


def line_match_ratio(expected: str, transcript: str) -> float:
    """Share of the expected letters present anywhere in the transcript (membership, not position)."""
    wanted = _WHITESPACE.sub("", expected.lower())
    if not wanted:
        return 0.0
    heard = _WHITESPACE.sub("", transcript.lower())
    matched = sum(1 for char in wanted if char in heard)
    return matched / len(wanted)


def is_line_readable(expected: str, transcript: str, threshold: float = READABLE_THRESHOLD) -> bool:
    return line_match_ratio(expected, transcript) >= threshold


def extract_name(transcript: str) -> Optional[str]:
    """
    Free-text name extraction.

    "my name is Arjun" -> "Arjun". When no token survives the filler
    filter, the whole trimmed transcript is used. Empty input gives None.
    """
    trimmed = transcript.strip()
    if not trimmed:
        return None
    for word in trimmed.split():
        if len(word) > 1 and word.lower() not in NAME_STOP_WORDS:
            return word
    return trimmed


def is_affirmation(transcript: str) -> bool:
    lower = transcript.lower()
    return any(keyword in lower for keyword in AFFIRMATION_KEYWORDS)


def match_command(transcript: str, commands: Sequence[str] = HOME_COMMANDS) -> Optional[str]:
    """Home-screen command keyword, checked in declaration order."""
    return match_choice(transcript, commands)


def determine_mode(plate_results: Sequence[bool], last_readable_line: int) -> AccessibilityMode:
    """
    Score the calibration.

    A last readable line below index 3 means visually-assisted, and this
    rule wins over the colour rule. Otherwise two or more plate failures means
    colorblind.
    """
    if last_readable_line < VISION_ISSUE_LINE:
        return AccessibilityMode.VISUALLY_ASSISTED
    failures = sum(1 for passed in plate_results if not passed)
    if failures >= COLOR_FAILURE_LIMIT:
        return AccessibilityMode.COLORBLIND
    return AccessibilityMode.NORMAL


