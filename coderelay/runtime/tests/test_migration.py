"""Tests for backend hand-off summaries."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from coderelay.runtime.messaging.migration import HANDOFF_PROMPT, MigrationService
from coderelay.runtime.services.backends import FailureKind
from coderelay.runtime.state.mode_state import ModeState, SessionMode


def _mode(project_dir: Path, backend: SessionMode = SessionMode.claude) -> ModeState:
    return ModeState().evolve(active=backend, project_dir=str(project_dir), agent="default", model="opus")


class TestMigrate:
    @pytest.mark.asyncio
    async def test_writes_summary(self, project_dir: Path, fake_adapters):
        fake_adapters["claude"].queue(text="## Goal\nRefactor billing\n")
        report = await MigrationService(fake_adapters).migrate(_mode(project_dir))

        assert report.ok
        assert report.path == project_dir / ".coderelay" / "migration_from_claude.md"
        content = report.path.read_text()
        assert content.startswith("# Migration from claude")
        assert "Refactor billing" in content
        request = fake_adapters["claude"].requests[0]
        assert request.message == HANDOFF_PROMPT
        assert request.agent == "plan"
        assert request.model == "opus"
        assert "saved to" in report.describe()

    @pytest.mark.asyncio
    async def test_backend_failure_recorded_in_artifact(self, project_dir: Path, fake_adapters):
        fake_adapters["codex"].queue(error="timed out", failure=FailureKind.timeout)
        report = await MigrationService(fake_adapters).migrate(_mode(project_dir, SessionMode.codex))

        assert not report.ok
        assert report.path is not None
        assert "Hand-off summary failed" in report.path.read_text()
        assert fake_adapters["codex"].requests[0].agent == "read-only"
        assert report.describe().startswith("⚠️")

    @pytest.mark.asyncio
    async def test_write_failure_never_raises(self, project_dir: Path, fake_adapters):
        with patch.object(Path, "write_text", side_effect=OSError("read-only fs")):
            report = await MigrationService(fake_adapters).migrate(_mode(project_dir))
        assert report.path is None
        assert "could not be saved" in report.describe()

    @pytest.mark.asyncio
    async def test_missing_adapter(self, project_dir: Path):
        report = await MigrationService({}).migrate(_mode(project_dir))
        assert not report.ok
        assert "no adapter" in report.path.read_text()
