"""The three supported coding-agent CLIs and their argument grammars."""

from __future__ import annotations

from ._base import BackendRequest, BackendSpec, common_install_paths
from .adapter import DEFAULT_TIMEOUT, BackendAdapter


def _opencode_args(req: BackendRequest) -> list[str]:
    args = ["run", req.message, "-c", "--agent", req.agent]
    if req.model:
        args += ["--model", req.model]
    return args


def _claude_args(req: BackendRequest) -> list[str]:
    args = ["-p", req.message, "--continue", "--permission-mode", req.agent]
    if req.model:
        args += ["--model", req.model]
    return args


def _codex_args(req: BackendRequest) -> list[str]:
    args = ["exec", "--skip-git-repo-check", "--sandbox", req.agent]
    if req.model:
        args += ["--model", req.model]
    args.append(req.message)
    return args


OPENCODE = BackendSpec(
    name="opencode",
    label="opencode",
    trigger="oc",
    binary="opencode",
    default_agent="build",
    plan_agent="plan",
    build_args=_opencode_args,
    search_paths=common_install_paths("opencode"),
)

CLAUDE = BackendSpec(
    name="claude",
    label="Claude Code",
    trigger="cc",
    binary="claude",
    default_agent="default",
    plan_agent="plan",
    build_args=_claude_args,
    search_paths=(*common_install_paths("claude"), "~/.claude/local/claude"),
)

CODEX = BackendSpec(
    name="codex",
    label="Codex",
    trigger="cx",
    binary="codex",
    default_agent="workspace-write",
    plan_agent="read-only",
    build_args=_codex_args,
    search_paths=common_install_paths("codex"),
)

BACKENDS: dict[str, BackendSpec] = {spec.name: spec for spec in (OPENCODE, CLAUDE, CODEX)}


def get_spec(name: str) -> BackendSpec:
    try:
        return BACKENDS[name]
    except KeyError:
        raise ValueError(f"Unknown backend: {name!r}") from None


def build_adapters(timeout: float = DEFAULT_TIMEOUT) -> dict[str, BackendAdapter]:
    return {name: BackendAdapter(spec, timeout=timeout) for name, spec in BACKENDS.items()}
