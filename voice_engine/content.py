"""
Spoken content for the onboarding screens.

Prompts, option lists, the terms text, colour plates, acuity lines and the
revision sheet are stored as scenario files (YAML preferred, JSON accepted)
under voice_engine/scenarios/. PyYAML's safe_load parses both, and the result is
validated into a pydantic model so a broken file fails at load time rather
than mid-conversation.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from logging_setup import get_logger, Component

logger = get_logger(Component.ENGINE)


class LanguageOption(BaseModel):
    id: str
    name: str
    native_name: str = ""
    tag: str = "en-US"


class ColorPlate(BaseModel):
    number: str
    colors: List[str] = Field(default_factory=list)


class AcuityLine(BaseModel):
    letters: str
    size: str = ""


class RevisionContent(BaseModel):
    """Chapter revision sheet read on the revision screen."""

    title: str = "Chapter 1: Introduction to Matter"
    summary: str = (
        "Matter is anything that has mass and occupies space. It exists in three states: "
        "solid, liquid, and gas. Solids have fixed shape and volume, liquids have fixed "
        "volume but variable shape, and gases have neither fixed shape nor volume. All "
        "matter is made of tiny particles that are constantly moving."
    )


class Prompts(BaseModel):
    """Fixed phrases. Placeholders use str.format names."""

    language_intro: str = "Please choose your preferred language."
    language_reprompt: str = "Please say your preferred language, such as English, Tamil, or Hindi."
    language_selected: str = "You selected {name}. Let's continue."

    terms_question: str = "If you agree, say 'I Agree' or tap Continue to start learning with EduSight."
    terms_reprompt: str = "Please say 'I Agree', or tap Continue."
    terms_agreed: str = "Thank you for agreeing. Let's get started."

    identity_welcome: str = "Welcome to EduSight. I will guide you step by step."
    identity_question: str = "What should I call you?"
    identity_reprompt: str = "Please tell me your name, or you can type it below."
    identity_confirmed: str = "Nice to meet you, {name}! Let's check what display works best for you."
    identity_skipped: str = "That's okay! Let's continue with the accessibility test."
    default_name: str = "Friend"

    calibration_intro: str = "Let's check what display works best for you. This will only take a moment."
    plate_question: str = "Look at the circle of dots. Can you tell which number you see?"
    plate_reprompt: str = "Please say the number you see, or tap a button below."
    line_question: str = "Please read the letters on this line."
    line_reprompt: str = "Please read the letters aloud, or tap a button below."
    calibration_result: str = (
        "Based on the test, I will set your mode to {mode}. "
        "This will adjust font sizes, contrast, and colors for your comfort."
    )

    home_greeting: str = "Hello {name}! Welcome back to EduSight."
    home_commands: str = "You can say: Choose Board, Choose Grade, Choose Subject, or Settings."
    board_question: str = "Please choose your board."
    grade_question: str = "Please choose your grade."
    subject_question: str = "Please choose your subject."
    choice_reprompt: str = "Please say one of the options, or tap it on the screen."
    choice_selected: str = "You selected {value}."

    revision_intro: str = "Revision for {title}. Here's a quick summary to refresh your memory."


MODE_LABELS = {
    "normal": "Normal Vision",
    "colorblind": "Color-Friendly",
    "visually-assisted": "Visually Assisted",
}


class Scenario(BaseModel):
    """All spoken and matched content for one deployment."""

    name: str = "default"
    languages: List[LanguageOption] = Field(default_factory=lambda: [
        LanguageOption(id="english", name="English", native_name="English", tag="en-US"),
        LanguageOption(id="tamil", name="Tamil", native_name="தமிழ்", tag="ta-IN"),
        LanguageOption(id="hindi", name="Hindi", native_name="हिन्दी", tag="hi-IN"),
    ])
    boards: List[str] = Field(default_factory=lambda: ["CBSE", "State Board"])
    grades: List[str] = Field(default_factory=lambda: [f"Grade {n}" for n in range(6, 13)])
    subjects: List[str] = Field(default_factory=lambda: [
        "Mathematics", "Science", "Physics", "Chemistry", "Biology", "English", "Social Studies",
    ])
    color_plates: List[ColorPlate] = Field(default_factory=lambda: [
        ColorPlate(number="74"), ColorPlate(number="45"), ColorPlate(number="12"),
    ])
    acuity_lines: List[AcuityLine] = Field(default_factory=lambda: [
        AcuityLine(letters=letters)
        for letters in ("E", "F P", "T O Z", "L P E D", "P E C F D", "E D F C Z P")
    ])
    terms_text: str = "By continuing, you agree to the EduSight terms and conditions."
    revision: RevisionContent = Field(default_factory=RevisionContent)
    prompts: Prompts = Field(default_factory=Prompts)

    def language(self, language_id: str) -> Optional[LanguageOption]:
        for option in self.languages:
            if option.id == language_id:
                return option
        return None

    def language_tag(self, language_id: str) -> str:
        option = self.language(language_id)
        return option.tag if option else "en-US"


def _get_scenarios_dir() -> Path:
    return Path(__file__).parent / "scenarios"


def _load_file(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Scenario file {path} must contain a mapping at top-level")
        return data


def load_scenario(scenario_name: str) -> Scenario:
    """
    Load scenario content.

    Resolution order:
    1) <name>.yaml / <name>.yml / <name>.json
    2) default.yaml / default.yml / default.json
    3) built-in defaults
    """
    scenarios_dir = _get_scenarios_dir()

    for stem in (scenario_name, "default"):
        for suffix in (".yaml", ".yml", ".json"):
            candidate = scenarios_dir / f"{stem}{suffix}"
            if candidate.exists():
                if stem != scenario_name:
                    logger.warning("Scenario not found; using default", scenario=scenario_name)
                return Scenario.model_validate(_load_file(candidate))

    logger.warning("No scenario files found; using built-in content", scenario=scenario_name)
    return Scenario()


def get_scenario(name: Optional[str] = None) -> Scenario:
    """Scenario by explicit name, then VOICE_SCENARIO, then "default"."""
    return load_scenario(name or os.getenv("VOICE_SCENARIO", "default"))
