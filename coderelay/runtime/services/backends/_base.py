"""Backend descriptors and invocation value objects."""

from __future__ import annotations

import enum
import logging
import os
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackendRequest:
    message: str
    project_dir: str
    agent: str
    model: str = ""


class FailureKind(enum.Enum):
    spawn = "spawn"
    timeout = "timeout"
    exit = "exit"


_FAILURE_GLYPHS: dict[FailureKind, str] = {
    FailureKind.spawn: "❌",
    FailureKind.timeout: "⏱️",
    FailureKind.exit: "⚠️",
}


@dataclass(frozen=True)
class BackendResult:
    text: str = ""
    error: str = ""
    failure: FailureKind | None = None

    @property
    def ok(self) -> bool:
        return not self.error

    @property
    def error_line(self) -> str:
        """The error rendered for chat, or ``""`` on success."""
        if not self.error:
            return ""
        glyph = _FAILURE_GLYPHS.get(self.failure or FailureKind.exit, "⚠️")
        if self.failure is FailureKind.timeout:
            return f"{glyph} Command timed out."
        if self.failure is FailureKind.spawn:
            return f"{glyph} Error: {self.error}"
        return f"{glyph} {self.error}"

    def render(self) -> str:
        if self.ok:
            return self.text
        return f"{self.text}\n{self.error_line}" if self.text else self.error_line


ArgsBuilder = Callable[[BackendRequest], list[str]]


def common_install_paths(binary: str) -> tuple[str, ...]:
    return (
        f"/opt/homebrew/bin/{binary}",
        f"/usr/local/bin/{binary}",
        f"~/.local/bin/{binary}",
        f"~/.npm-global/bin/{binary}",
        f"~/Library/pnpm/{binary}",
    )


@dataclass(frozen=True)
class BackendSpec:
    """Static description of one coding-agent CLI.

    ``trigger`` is the command token (``oc`` in ``/oc``), ``plan_agent`` is
    the read-only persona used for hand-off summaries and feedback
    extraction.
    """

    name: str
    label: str
    trigger: str
    binary: str
    default_agent: str
    plan_agent: str
    build_args: ArgsBuilder
    search_paths: tuple[str, ...] = field(default=())

    def find_binary(self) -> str:
        found = shutil.which(self.binary)
        if found:
            return found
        for candidate in self.search_paths:
            path = os.path.expanduser(candidate)
            if os.path.isfile(path) and os.access(path, os.X_OK):
                return path
        logger.debug("[backend.%s] binary not found, deferring to spawn", self.name)
        return self.binary
