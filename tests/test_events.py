"""
Event emission and event store tests.
Tests structured JSON event format and querying.
"""
import json
from datetime import datetime, timedelta, timezone

from observability.event_store import EventStore, event_store
from observability.events import Component, EventEmitter, Severity, pii_fields


class TestEventFormat:
    """Test the event envelope."""

    def test_required_fields(self, capsys):
        emitter = EventEmitter(Component.TURN_COORDINATOR)
        emitter.emit(
            event_type="turn.started",
            session_id="language_1234abcd",
            severity=Severity.INFO,
        )

        event = json.loads(capsys.readouterr().out.strip())

        for field in ("ts", "session_id", "component", "event_type", "severity", "correlation_id", "pii"):
            assert field in event
        assert event["session_id"] == "language_1234abcd"
        assert event["component"] == "turn_coordinator"
        assert event["event_type"] == "turn.started"
        assert event["severity"] == "info"

    def test_timestamp_is_rfc3339(self, capsys):
        EventEmitter(Component.ENGINE).emit("engine.started", session_id="engine")

        event = json.loads(capsys.readouterr().out.strip())

        datetime.fromisoformat(event["ts"])

    def test_correlation_id_defaults_to_session(self, capsys):
        EventEmitter(Component.PHASE).emit("phase.mounted", session_id="terms_1")
        EventEmitter(Component.PHASE).emit("turn.retry", session_id="terms_1", correlation_id="turn-9")

        lines = capsys.readouterr().out.strip().splitlines()
        assert json.loads(lines[0])["correlation_id"] == "terms_1"
        assert json.loads(lines[1])["correlation_id"] == "turn-9"

    def test_event_specific_fields(self, capsys):
        EventEmitter(Component.PHASE).emit("phase.state_changed", session_id="s", status="retry", step=None)

        event = json.loads(capsys.readouterr().out.strip())

        assert event["status"] == "retry"
        assert event["step"] is None

    def test_pii_descriptor(self, capsys):
        EventEmitter(Component.PREFERENCES).emit("preferences.updated", session_id="s", pii=pii_fields("name"), name="Arjun")
        EventEmitter(Component.PREFERENCES).emit("preferences.updated", session_id="s", board="CBSE")

        lines = capsys.readouterr().out.strip().splitlines()
        assert json.loads(lines[0])["pii"] == {"contains_pii": True, "fields": ["name"], "handling": "none"}
        assert json.loads(lines[1])["pii"]["contains_pii"] is False
        assert pii_fields() is None

    def test_stdout_can_be_disabled(self, capsys, monkeypatch):
        monkeypatch.setenv("VOICE_ENGINE_EVENTS_STDOUT", "0")

        EventEmitter(Component.ENGINE).emit("engine.started", session_id="engine")

        assert capsys.readouterr().out == ""
        assert event_store.query(event_type="engine.started")


class TestEventStore:
    """Test event store filters."""

    def _store(self):
        store = EventStore(max_events=10)
        store.store({"session_id": "a", "component": "turn_coordinator", "event_type": "turn.started", "correlation_id": "t1"})
        store.store({"session_id": "a", "component": "turn_coordinator", "event_type": "turn.resolved", "correlation_id": "t1", "outcome": "matched"})
        store.store({"session_id": "b", "component": "phase", "event_type": "phase.mounted"})
        return store

    def test_filters(self):
        store = self._store()

        assert len(store.query(session_id="a")) == 2
        assert len(store.query(event_type="turn.resolved")) == 1
        assert len(store.query(event_type="turn.")) == 2
        assert len(store.query(component="phase")) == 1
        assert len(store.query(correlation_id="t1")) == 2
        assert len(store.query(limit=1)) == 1

    def test_payload_round_trips(self):
        resolved = self._store().query(event_type="turn.resolved")[0]

        assert resolved["outcome"] == "matched"
        assert resolved["correlation_id"] == "t1"

    def test_correlation_defaults_to_session(self):
        assert self._store().query(session_id="b")[0]["correlation_id"] == "b"

    def test_since(self):
        store = EventStore()
        old = datetime.now(timezone.utc) - timedelta(minutes=5)
        store.store({"ts": old.isoformat(), "session_id": "a", "event_type": "old"})
        store.store({"session_id": "a", "event_type": "new"})

        recent = store.query(since=datetime.now(timezone.utc) - timedelta(minutes=1))

        assert [e["event_type"] for e in recent] == ["new"]

    def test_bounded(self):
        store = EventStore(max_events=3)
        for i in range(5):
            store.store({"session_id": "s", "event_type": f"e{i}"})

        events = store.query()
        assert [e["event_type"] for e in events] == ["e2", "e3", "e4"]
        assert store.get_stats()["total_events"] == 3
        assert store.get_stats()["max_events"] == 3

    def test_clear(self):
        store = self._store()
        store.clear()

        assert store.query() == []
        assert store.get_stats()["oldest_event_ts"] is None
