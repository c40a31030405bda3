"""Tests for the generic backend subprocess adapter.

The adapters run the current Python interpreter with small inline
scripts, so these exercise real pipes, exit codes and timeouts.
"""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from coderelay.runtime.services.backends import (
    CLAUDE,
    CODEX,
    OPENCODE,
    BackendAdapter,
    BackendRequest,
    BackendResult,
    BackendSpec,
    FailureKind,
    build_adapters,
    get_spec,
)


def _script_spec(script: str) -> BackendSpec:
    return BackendSpec(
        name="opencode",
        label="script",
        trigger="sc",
        binary=sys.executable,
        default_agent="build",
        plan_agent="plan",
        build_args=lambda req: ["-c", script, req.message],
    )


def _request(project_dir: Path, message: str = "hi") -> BackendRequest:
    return BackendRequest(message=message, project_dir=str(project_dir), agent="build")


class TestArgumentGrammars:
    def test_opencode(self):
        req = BackendRequest("fix it", "/p", "build", "gpt-5")
        assert OPENCODE.build_args(req) == ["run", "fix it", "-c", "--agent", "build", "--model", "gpt-5"]

    def test_claude_without_model(self):
        req = BackendRequest("fix it", "/p", "plan")
        assert CLAUDE.build_args(req) == ["-p", "fix it", "--continue", "--permission-mode", "plan"]

    def test_codex_message_last(self):
        req = BackendRequest("fix it", "/p", "read-only", "o3")
        assert CODEX.build_args(req) == [
            "exec", "--skip-git-repo-check", "--sandbox", "read-only", "--model", "o3", "fix it",
        ]

    def test_get_spec(self):
        assert get_spec("codex") is CODEX
        with pytest.raises(ValueError):
            get_spec("cobol")

    def test_build_adapters(self):
        adapters = build_adapters(timeout=5)
        assert set(adapters) == {"opencode", "claude", "codex"}
        assert adapters["claude"].spec is CLAUDE


class TestFindBinary:
    def test_prefers_path_lookup(self):
        with patch("coderelay.runtime.services.backends._base.shutil.which", return_value="/usr/bin/opencode"):
            assert OPENCODE.find_binary() == "/usr/bin/opencode"

    def test_falls_back_to_search_paths(self, tmp_path: Path):
        binary = tmp_path / "opencode"
        binary.write_text("#!/bin/sh\n")
        binary.chmod(0o755)
        spec = BackendSpec(
            name="opencode", label="opencode", trigger="oc", binary="opencode",
            default_agent="build", plan_agent="plan", build_args=OPENCODE.build_args,
            search_paths=(str(tmp_path / "missing"), str(binary)),
        )
        with patch("coderelay.runtime.services.backends._base.shutil.which", return_value=None):
            assert spec.find_binary() == str(binary)

    def test_bare_name_when_nothing_found(self):
        spec = BackendSpec(
            name="codex", label="Codex", trigger="cx", binary="codex",
            default_agent="workspace-write", plan_agent="read-only", build_args=CODEX.build_args,
        )
        with patch("coderelay.runtime.services.backends._base.shutil.which", return_value=None):
            assert spec.find_binary() == "codex"


class TestBackendResult:
    def test_render_success(self):
        assert BackendResult(text="done").render() == "done"

    def test_render_exit_failure(self):
        result = BackendResult(text="partial", error="boom", failure=FailureKind.exit)
        assert result.render() == "partial\n⚠️ boom"

    def test_render_timeout(self):
        assert BackendResult(error="timed out", failure=FailureKind.timeout).render() == "⏱️ Command timed out."

    def test_render_spawn(self):
        result = BackendResult(error="No such file", failure=FailureKind.spawn)
        assert result.error_line == "❌ Error: No such file"


class TestInvoke:
    @pytest.mark.asyncio
    async def test_success(self, project_dir: Path):
        adapter = BackendAdapter(_script_spec("import sys; print('echo:', sys.argv[1])"))
        result = await adapter.invoke(_request(project_dir, "hello"))
        assert result.ok
        assert result.text.strip() == "echo: hello"

    @pytest.mark.asyncio
    async def test_runs_in_project_dir(self, project_dir: Path):
        adapter = BackendAdapter(_script_spec("import os; print(os.getcwd())"))
        result = await adapter.invoke(_request(project_dir))
        assert Path(result.text.strip()).resolve() == project_dir.resolve()

    @pytest.mark.asyncio
    async def test_nonzero_exit_with_stderr(self, project_dir: Path):
        script = "import sys; print('partial'); sys.stderr.write('bad flag'); sys.exit(2)"
        result = await BackendAdapter(_script_spec(script)).invoke(_request(project_dir))
        assert not result.ok
        assert result.failure is FailureKind.exit
        assert result.text.strip() == "partial"
        assert result.error == "bad flag"

    @pytest.mark.asyncio
    async def test_nonzero_exit_without_stderr_is_success(self, project_dir: Path):
        script = "import sys; print('all good'); sys.exit(1)"
        result = await BackendAdapter(_script_spec(script)).invoke(_request(project_dir))
        assert result.ok
        assert result.text.strip() == "all good"

    @pytest.mark.asyncio
    async def test_timeout(self, project_dir: Path):
        adapter = BackendAdapter(_script_spec("import time; time.sleep(30)"), timeout=0.5)
        result = await adapter.invoke(_request(project_dir))
        assert result.failure is FailureKind.timeout
        assert result.error == "timed out"

    @pytest.mark.asyncio
    async def test_spawn_failure(self, tmp_path: Path):
        adapter = BackendAdapter(_script_spec("print(1)"))
        result = await adapter.invoke(_request(tmp_path / "does-not-exist"))
        assert result.failure is FailureKind.spawn
        assert result.error


class TestInvokeStreaming:
    @pytest.mark.asyncio
    async def test_chunks_delivered_in_order(self, project_dir: Path):
        script = (
            "import sys, time\n"
            "for i in range(3):\n"
            "    sys.stdout.write(f'line{i}\\n'); sys.stdout.flush(); time.sleep(0.05)\n"
        )
        chunks: list[str] = []

        async def on_chunk(chunk: str) -> None:
            chunks.append(chunk)

        result = await BackendAdapter(_script_spec(script)).invoke_streaming(_request(project_dir), on_chunk)
        assert result.ok
        assert "".join(chunks) == "line0\nline1\nline2\n"
        assert result.text == "".join(chunks)

    @pytest.mark.asyncio
    async def test_multibyte_characters_survive_chunking(self, project_dir: Path):
        script = "import sys; sys.stdout.buffer.write(('\\u00fc\\u20ac\\U0001F600' * 3000).encode())"
        chunks: list[str] = []

        async def on_chunk(chunk: str) -> None:
            chunks.append(chunk)

        result = await BackendAdapter(_script_spec(script)).invoke_streaming(_request(project_dir), on_chunk)
        assert "".join(chunks) == "\u00fc\u20ac\U0001F600" * 3000
        assert "\ufffd" not in result.text

    @pytest.mark.asyncio
    async def test_timeout_keeps_partial_output(self, project_dir: Path):
        script = "import sys, time; print('started', flush=True); time.sleep(30)"
        chunks: list[str] = []

        async def on_chunk(chunk: str) -> None:
            chunks.append(chunk)

        adapter = BackendAdapter(_script_spec(script), timeout=1.0)
        result = await adapter.invoke_streaming(_request(project_dir), on_chunk)
        assert result.failure is FailureKind.timeout
        assert result.text.strip() == "started"
        assert chunks

    @pytest.mark.asyncio
    async def test_stderr_reported_after_stream(self, project_dir: Path):
        script = "import sys; print('out'); sys.stderr.write('err'); sys.exit(3)"

        async def on_chunk(chunk: str) -> None:
            pass

        result = await BackendAdapter(_script_spec(script)).invoke_streaming(_request(project_dir), on_chunk)
        assert result.error == "err"
        assert result.text.strip() == "out"
