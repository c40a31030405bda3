"""Hand-off summaries written when a conversation moves between backends."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from ..services.backends import BackendRequest
from ..state.feedback import STATE_SUBDIR
from ..state.mode_state import ModeState

if TYPE_CHECKING:
    from ..services.backends import BackendAdapter

logger = logging.getLogger(__name__)

HANDOFF_PROMPT = """\
This session is being handed off to a different coding agent, which will \
continue the work from your notes alone. Do not modify any files.

Write a structured hand-off summary in Markdown with these sections:

## Goal
What the user is trying to achieve overall.

## Instructions
Explicit requirements, constraints and preferences the user has given.

## Discoveries
Non-obvious facts learned about the codebase, tooling or environment.

## Progress
What is done, what is in progress, and what remains, in that order.

## Relevant files
Paths that matter for the remaining work, one per line with a short note.
"""


@dataclass(frozen=True)
class MigrationReport:
    backend: str
    path: Path | None
    ok: bool
    detail: str = ""

    def describe(self) -> str:
        if self.path is None:
            return f"⚠️ Hand-off from {self.backend} could not be saved: {self.detail}"
        if self.ok:
            return f"📝 Hand-off from {self.backend} saved to {self.path}"
        return f"⚠️ Hand-off from {self.backend} failed ({self.detail}); details in {self.path}"


class MigrationService:
    """Asks the outgoing backend for a summary and files it in its project.

    Best effort: nothing here raises, so the mode switch always proceeds.
    """

    def __init__(self, adapters: Mapping[str, BackendAdapter]) -> None:
        self._adapters = adapters

    @staticmethod
    def artifact_path(project_dir: str, backend: str) -> Path:
        return Path(project_dir) / STATE_SUBDIR / f"migration_from_{backend}.md"

    async def migrate(self, previous: ModeState) -> MigrationReport:
        backend = previous.active.value
        adapter = self._adapters.get(backend)
        path = self.artifact_path(previous.project_dir, backend)
        stamp = datetime.now(UTC).isoformat()

        if adapter is None:
            ok, detail = False, f"no adapter for {backend}"
            body = detail
        else:
            logger.info("[migration] summarising %s session in %s", backend, previous.project_dir)
            result = await adapter.invoke(BackendRequest(
                message=HANDOFF_PROMPT,
                project_dir=previous.project_dir,
                agent=adapter.spec.plan_agent,
                model=previous.model,
            ))
            ok = result.ok
            detail = "" if ok else result.error
            body = result.text.strip() if ok else f"Hand-off summary failed:\n\n{result.error}"

        content = (
            f"# Migration from {backend}\n\n"
            f"- project: {previous.project_dir}\n"
            f"- agent: {previous.agent}\n"
            f"- created: {stamp}\n\n"
            f"{body}\n"
        )
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            logger.warning("[migration] cannot write %s: %s", path, exc, exc_info=True)
            return MigrationReport(backend=backend, path=None, ok=False, detail=str(exc))

        if not ok:
            logger.warning("[migration] %s summary failed: %s", backend, detail[:300])
        return MigrationReport(backend=backend, path=path, ok=ok, detail=detail)
