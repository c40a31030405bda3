"""Shared pytest fixtures for coderelay.runtime tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from coderelay.runtime.services.backends import BACKENDS, BackendRequest, BackendResult, BackendSpec


class FakeAdapter:
    """Stands in for :class:`BackendAdapter`; records requests, replays queued results."""

    def __init__(self, spec: BackendSpec) -> None:
        self.spec = spec
        self.name = spec.name
        self.requests: list[BackendRequest] = []
        self.results: list[BackendResult] = []
        self.chunks: list[str] = []

    def queue(self, text: str = "", error: str = "", failure=None) -> None:
        self.results.append(BackendResult(text=text, error=error, failure=failure))

    async def invoke(self, request: BackendRequest) -> BackendResult:
        self.requests.append(request)
        if self.results:
            return self.results.pop(0)
        return BackendResult(text=f"{self.name} done")

    async def invoke_streaming(self, request: BackendRequest, on_chunk) -> BackendResult:
        result = await self.invoke(request)
        for chunk in self.chunks or ([result.text] if result.text else []):
            await on_chunk(chunk)
        return result


class RecordingSink:
    """MessageSink that keeps every send and edit in memory."""

    def __init__(self, *, message_id: str | None = "m1", edit_ok: bool = True) -> None:
        self.message_id = message_id
        self.edit_ok = edit_ok
        self.sent: list[tuple[str, str]] = []
        self.edits: list[tuple[str, str, str]] = []

    async def send_message(self, target: str, text: str) -> str | None:
        self.sent.append((target, text))
        return self.message_id

    async def edit_message(self, target: str, message_id: str, text: str) -> bool:
        self.edits.append((target, message_id, text))
        return self.edit_ok


@pytest.fixture(autouse=True)
def _isolate_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setenv("CODERELAY_DATA_DIR", str(data_dir))
    monkeypatch.setenv("DOTENV_PATH", str(tmp_path / ".env"))
    return data_dir


@pytest.fixture(autouse=True)
def _reset_singletons(_isolate_data_dir: Path):
    from coderelay.runtime.util.singletons import reset_all_singletons

    reset_all_singletons()
    yield
    reset_all_singletons()


@pytest.fixture()
def data_dir(_isolate_data_dir: Path) -> Path:
    return _isolate_data_dir


@pytest.fixture()
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "proj"
    path.mkdir()
    return path


@pytest.fixture()
def fake_adapters() -> dict[str, FakeAdapter]:
    return {name: FakeAdapter(spec) for name, spec in BACKENDS.items()}


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def make_sink():
    return RecordingSink
