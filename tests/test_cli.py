from pathlib import Path

import pytest

from common import llm as common_llm
from chatdeck import cli
from chatdeck.models import Message, Session, StoreState
from chatdeck.persistence import JsonFilePersistence


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CHATDECK_MODEL", "CHATDECK_DATA_PATH", "CHATDECK_API_KEY", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(common_llm, "get_model_info", lambda model: {"litellm_provider": "openai"})


def test_sessions_empty(tmp_path: Path, capsys):
    assert cli._main(["sessions", "--data", str(tmp_path / "none.json")]) == 0
    assert "No sessions found." in capsys.readouterr().out


def test_sessions_lists_saved_chats(tmp_path: Path, capsys):
    path = tmp_path / "sessions.json"
    session = Session(
        title="Quicksort",
        model="gpt-4o",
        messages=[Message(role="assistant", content="Hello!")],
    )
    JsonFilePersistence(path).save(
        StoreState(sessions=[session], active_session_id=session.id, default_model="gpt-4o")
    )

    assert cli._main(["sessions", "--data", str(path)]) == 0

    out = capsys.readouterr().out
    assert session.id in out
    assert "Quicksort" in out


def test_sessions_corrupt_file(tmp_path: Path, capsys):
    path = tmp_path / "sessions.json"
    path.write_text("{", encoding="utf-8")

    assert cli._main(["sessions", "--data", str(path)]) == 1
    assert "Error:" in capsys.readouterr().err


def test_check_missing_key(monkeypatch, capsys):
    monkeypatch.setattr(common_llm, "missing_credentials", lambda model: ["OPENAI_API_KEY"])

    assert cli._main(["check", "--model", "mini"]) == 1

    out = capsys.readouterr().out
    assert "Model: gpt-4o-mini" in out
    assert "missing (set OPENAI_API_KEY)" in out


def test_check_masks_provider_key(monkeypatch, capsys):
    monkeypatch.setattr(common_llm, "missing_credentials", lambda model: [])
    monkeypatch.setenv("OPENAI_API_KEY", "sk-proj-1234567890abcdef")

    assert cli._main(["check"]) == 0

    out = capsys.readouterr().out
    assert "OPENAI_API_KEY=sk-proj-12..." in out
    assert "abcdef" not in out


def test_check_explicit_key(monkeypatch, capsys):
    monkeypatch.setenv("CHATDECK_API_KEY", "sk-short")

    assert cli._main(["check"]) == 0
    assert "CHATDECK_API_KEY=sk-..." in capsys.readouterr().out


def test_mask_key():
    assert cli.mask_key("sk-proj-1234567890") == "sk-proj-12..."
    assert cli.mask_key("abc") == "abc..."
