"""Session mode state machine.

Decides, for each message, whether a coding-mode command or the channel's
naming convention changes which backend the conversation is routed to, and
commits the new :class:`ModeState` to the session store.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING

from ...state.mode_state import ModeState, SessionMode, SessionRecord
from ...util.paths import resolve_channel_project
from . import mode as _mode_cmds
from ._outcome import UNHANDLED, RouteOutcome
from .parser import Command, CommandAction

if TYPE_CHECKING:
    from ...services.backends import BackendSpec
    from ...state.feedback import AutoLevel, FeedbackTracker
    from ...state.session_store import SessionStore
    from ..migration import MigrationService

logger = logging.getLogger(__name__)

Handler = Callable[["ModeRouter", Command, ModeState], RouteOutcome]


class ModeRouter:
    _HANDLERS: dict[CommandAction, Handler] = {
        CommandAction.exit: _mode_cmds.cmd_exit,
        CommandAction.enter: _mode_cmds.cmd_enter,
        CommandAction.switch: _mode_cmds.cmd_switch,
        CommandAction.model: _mode_cmds.cmd_model,
    }

    def __init__(
        self,
        specs: Mapping[str, BackendSpec],
        store: SessionStore,
        *,
        migration: MigrationService | None = None,
        feedback: FeedbackTracker | None = None,
        workspace_root: str = "",
    ) -> None:
        self._specs = dict(specs)
        self._store = store
        self._migration = migration
        self._feedback = feedback
        self._workspace_root = workspace_root
        names = "|".join(re.escape(n) for n in self._specs)
        self._label_re = re.compile(rf"^#?({names})[-:](.+)$", re.IGNORECASE)

    def spec_for(self, backend: str | SessionMode | None) -> BackendSpec:
        name = backend.value if isinstance(backend, SessionMode) else backend
        if not name or name not in self._specs:
            raise ValueError(f"Unknown backend: {backend!r}")
        return self._specs[name]

    def autonomy(self, mode: ModeState) -> AutoLevel | None:
        if self._feedback is None or not mode.is_active:
            return None
        return self._feedback.calculate_auto_level(mode.project_dir, mode.active.value)

    # -- explicit commands -------------------------------------------------

    def apply(self, command: Command, mode: ModeState) -> RouteOutcome:
        """Compute the outcome of *command* without touching the store."""
        if command.action is CommandAction.none:
            if command.is_help:
                return _mode_cmds.cmd_help(self, command, mode)
            return UNHANDLED
        handler = self._HANDLERS[command.action]
        outcome = handler(self, command, mode)
        logger.info(
            "[router.%s] backend=%s active=%s -> %s",
            command.action.value, command.backend, mode.active.value,
            outcome.error.value if outcome.error else (
                outcome.mode.active.value if outcome.mode else "unchanged"
            ),
        )
        return outcome

    def route(self, key: str, record: SessionRecord, command: Command) -> RouteOutcome:
        outcome = self.apply(command, record.mode)
        if outcome.changed:
            self.commit(key, record, outcome.mode)
        return outcome

    # -- channel naming convention -----------------------------------------

    def match_label(self, label: str) -> tuple[str, str] | None:
        """Return ``(backend, project_name)`` if *label* follows the convention."""
        m = self._label_re.match((label or "").strip())
        if not m:
            return None
        project = m.group(2).strip()
        if not project:
            return None
        return m.group(1).lower(), project

    async def apply_channel_label(self, label: str, mode: ModeState) -> RouteOutcome:
        matched = self.match_label(label)
        if matched is None:
            return UNHANDLED
        backend, project_name = matched
        target = SessionMode(backend)
        if mode.active is target:
            return UNHANDLED
        project_dir = resolve_channel_project(project_name, self._workspace_root)
        if not project_dir:
            return UNHANDLED

        spec = self.spec_for(backend)
        notes: list[str] = []
        if mode.active is not SessionMode.none and mode.project_dir and self._migration:
            report = await self._migration.migrate(mode)
            notes.append(report.describe())

        updated = mode.evolve(
            active=target, project_dir=project_dir, agent=spec.default_agent, model="",
        )
        logger.info(
            "[router.channel] label=%r %s -> %s (%s)",
            label, mode.active.value, backend, project_dir,
        )
        reply = f"🔓 Entered {spec.label} mode!\n\nProject: {project_dir}\n\n"
        if notes:
            reply += "\n".join(notes) + "\n\n"
        reply += f"All messages will now be forwarded to {spec.label} CLI."
        return RouteOutcome.changed_to(updated, reply)

    async def route_channel_label(self, key: str, record: SessionRecord) -> RouteOutcome:
        outcome = await self.apply_channel_label(record.label, record.mode)
        if outcome.changed:
            self.commit(key, record, outcome.mode)
        return outcome

    # -- persistence -------------------------------------------------------

    def commit(self, key: str, record: SessionRecord, mode: ModeState) -> None:
        """Adopt *mode* in memory, then save; a failed save is logged only."""
        record.mode = mode
        try:
            self._store.save(key, record)
        except OSError as exc:
            logger.error("[router.commit] failed to persist session %s: %s", key, exc, exc_info=True)
