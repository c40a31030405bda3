"""Coding-agent CLI backends invoked as subprocesses."""

from ._base import BackendRequest, BackendResult, BackendSpec, FailureKind
from .adapter import BackendAdapter, ChunkCallback
from .registry import BACKENDS, CLAUDE, CODEX, OPENCODE, build_adapters, get_spec

__all__ = [
    "BACKENDS",
    "BackendAdapter",
    "BackendRequest",
    "BackendResult",
    "BackendSpec",
    "CLAUDE",
    "CODEX",
    "ChunkCallback",
    "FailureKind",
    "OPENCODE",
    "build_adapters",
    "get_spec",
]
