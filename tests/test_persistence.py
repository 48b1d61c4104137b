import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from chatdeck.models import Message, Session, StoreState
from chatdeck.persistence import (
    InMemoryPersistence,
    JsonFilePersistence,
    PersistenceError,
)
from chatdeck.store import SessionStore
from tests.conftest import FakeCompletionClient


def _state() -> StoreState:
    ts = datetime(2024, 5, 1, 12, 30, 15, 123456, tzinfo=timezone.utc)
    chat = Session(
        id="s-2",
        title="Explain quicksort in detail please and also discuss...",
        model="gpt-4o",
        created_at=ts,
        messages=[
            Message(id="m1", role="assistant", content="Hello!", timestamp=ts),
            Message(id="m2", role="user", content="**bold** `code`\nline", timestamp=ts),
            Message(id="m3", role="assistant", content="ünïcödé ✓", timestamp=ts),
        ],
    )
    fresh = Session(
        id="s-1",
        model="gpt-4o-mini",
        created_at=ts,
        messages=[Message(id="m0", role="assistant", content="Hello!", timestamp=ts)],
    )
    return StoreState(sessions=[chat, fresh], active_session_id="s-1", default_model="gpt-4o-mini")


def test_save_load_round_trip(tmp_path: Path):
    persistence = JsonFilePersistence(tmp_path / "sessions.json")
    state = _state()

    persistence.save(state)
    loaded = persistence.load()

    assert loaded == state
    assert [s.id for s in loaded.sessions] == ["s-2", "s-1"]
    assert loaded.sessions[0].messages[0].timestamp.microsecond == 123456


def test_round_trip_single_default_session(tmp_path: Path, config):
    persistence = JsonFilePersistence(tmp_path / "sessions.json")
    store = SessionStore(config, FakeCompletionClient(), persistence)
    state = store.initialize()

    assert persistence.load() == state
    assert len(state.sessions) == 1


def test_saved_layout(tmp_path: Path):
    path = tmp_path / "nested" / "sessions.json"
    JsonFilePersistence(path).save(_state())

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["version"] == 1
    assert data["active_session_id"] == "s-1"
    assert data["default_model"] == "gpt-4o-mini"
    assert data["sessions"][0]["messages"][1]["role"] == "user"
    assert data["sessions"][0]["created_at"].startswith("2024-05-01T12:30:15.123456")
    assert not path.with_suffix(".json.tmp").exists()


def test_missing_file_loads_none(tmp_path: Path):
    assert JsonFilePersistence(tmp_path / "absent.json").load() is None


@pytest.mark.parametrize(
    "payload",
    [
        "{ not json",
        "[1, 2, 3]",
        '{"version": 1, "sessions": [], "active_session_id": null}',
        '{"version": 99, "sessions": [], "default_model": "gpt-4o"}',
        '{"version": 1, "default_model": "gpt-4o", "sessions": '
        '[{"id": "a", "model": "gpt-4o", "messages": []}]}',
        '{"version": 1, "default_model": "gpt-4o", "sessions": '
        '[{"id": "a", "model": "gpt-4o", "messages": [{"role": "system", "content": "x"}]}]}',
    ],
)
def test_malformed_file_raises(tmp_path: Path, payload: str):
    path = tmp_path / "sessions.json"
    path.write_text(payload, encoding="utf-8")

    with pytest.raises(PersistenceError):
        JsonFilePersistence(path).load()


def test_store_falls_back_when_file_is_corrupt(tmp_path: Path, config):
    path = tmp_path / "sessions.json"
    path.write_text("{ not json", encoding="utf-8")

    store = SessionStore(config, FakeCompletionClient(), JsonFilePersistence(path))
    store.initialize()

    assert len(store.sessions) == 1
    assert JsonFilePersistence(path).load() == store.state


def test_in_memory_persistence_copies_state():
    state = _state()
    persistence = InMemoryPersistence()

    persistence.save(state)
    state.sessions[0].title = "changed"

    assert persistence.load().sessions[0].title != "changed"
    assert persistence.saves == 1
