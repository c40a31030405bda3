"""Tests for ModeState and the JSON-backed session store."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from coderelay.runtime.state.mode_state import (
    ModeState,
    SessionMode,
    SessionRecord,
    build_response_prefix,
)
from coderelay.runtime.state.session_store import SessionStore


class TestModeState:
    def test_default_is_inactive(self):
        mode = ModeState()
        assert mode.active is SessionMode.none
        assert not mode.is_active
        assert mode.response_prefix == ""

    def test_evolve_recomputes_prefix(self):
        mode = ModeState().evolve(active=SessionMode.opencode, project_dir="/src/shop", agent="build")
        assert mode.response_prefix == "[opencode:shop|build]"
        assert mode.is_active
        assert mode.updated_at

        switched = mode.evolve(agent="plan")
        assert switched.response_prefix == "[opencode:shop|plan]"
        assert mode.agent == "build"

    def test_cleared(self):
        mode = ModeState().evolve(active=SessionMode.codex, project_dir="/p", agent="read-only", model="o3")
        cleared = mode.cleared()
        assert cleared.active is SessionMode.none
        assert cleared.project_dir == ""
        assert cleared.agent == ""
        assert cleared.model == ""
        assert cleared.response_prefix == ""

    def test_dict_round_trip(self):
        mode = ModeState().evolve(active=SessionMode.claude, project_dir="/p", agent="plan", model="opus")
        assert ModeState.from_dict(mode.to_dict()) == mode

    def test_unknown_backend_loads_as_none(self):
        assert ModeState.from_dict({"active": "cobol", "project_dir": "/p"}).active is SessionMode.none

    def test_prefix_for_none(self):
        assert build_response_prefix(SessionMode.none, "/p", "build") == ""


class TestSessionStore:
    def test_missing_key_loads_default(self, data_dir: Path):
        store = SessionStore()
        assert store.path == data_dir / "sessions.json"
        assert store.load("telegram:1") == SessionRecord()

    def test_save_and_load(self, tmp_path: Path):
        store = SessionStore(tmp_path / "s.json")
        mode = ModeState().evolve(active=SessionMode.opencode, project_dir="/p", agent="build")
        store.save("k1", SessionRecord(mode=mode, label="opencode-p"))

        fresh = SessionStore(tmp_path / "s.json")
        record = fresh.load("k1")
        assert record.mode == mode
        assert record.label == "opencode-p"

    def test_save_replaces_only_one_key(self, tmp_path: Path):
        store = SessionStore(tmp_path / "s.json")
        store.save("a", SessionRecord(label="A"))
        store.save("b", SessionRecord(label="B"))
        store.save("a", SessionRecord(label="A2"))
        assert store.load("a").label == "A2"
        assert store.load("b").label == "B"
        assert sorted(json.loads(store.path.read_text())) == ["a", "b"]

    def test_corrupt_file_loads_default(self, tmp_path: Path):
        path = tmp_path / "s.json"
        path.write_text("{not json")
        assert SessionStore(path).load("a") == SessionRecord()

    def test_written_file_is_valid_json(self, tmp_path: Path):
        path = tmp_path / "s.json"
        SessionStore(path).save("a", SessionRecord(label="A"))
        assert json.loads(path.read_text())["a"]["label"] == "A"
        assert not path.with_suffix(".json.tmp").exists()

    def test_write_failure_propagates(self, tmp_path: Path):
        store = SessionStore(tmp_path / "s.json")
        with patch("coderelay.runtime.state._json_store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                store.save("a", SessionRecord())
