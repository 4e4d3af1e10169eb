"""
Tests for the preferences model and in-memory store.
"""
import pytest
from pydantic import ValidationError

from observability.event_store import event_store
from voice_engine.preferences import InMemoryPreferenceStore, Preferences


def test_defaults():
    prefs = Preferences()

    assert prefs.name is None
    assert prefs.terms_accepted is False
    assert prefs.has_completed_onboarding is False
    assert prefs.voice_speed == 0.9


def test_update_returns_new_preferences():
    store = InMemoryPreferenceStore()

    prefs = store.update(language="tamil", name="Arjun")

    assert prefs.language == "tamil"
    assert prefs.name == "Arjun"
    assert store.load().language == "tamil"


def test_load_returns_a_copy():
    store = InMemoryPreferenceStore()

    store.load().name = "Mutated"

    assert store.load().name is None


def test_unknown_field_rejected():
    store = InMemoryPreferenceStore()

    with pytest.raises(ValueError):
        store.update(favourite_colour="blue")


def test_invalid_value_rejected():
    store = InMemoryPreferenceStore()

    with pytest.raises(ValidationError):
        store.update(voice_speed="fast")
    assert store.load().voice_speed == 0.9


def test_update_emits_event_with_pii_flag():
    store = InMemoryPreferenceStore()
    store.session_id = "welcome_test"

    store.update(name="Priya")
    store.update(board="CBSE")

    events = event_store.query(session_id="welcome_test", event_type="preferences.updated")
    assert len(events) == 2
    assert events[0]["name"] == "Priya"
    assert events[0]["pii"]["fields"] == ["name"]
    assert events[1]["board"] == "CBSE"
    assert events[1]["pii"]["contains_pii"] is False
