"""Result of routing one message through the mode state machine."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from ...state.mode_state import ModeState


class RouteError(enum.Enum):
    parse_failure = "parse_failure"
    not_in_mode = "not_in_mode"


@dataclass(frozen=True)
class RouteOutcome:
    handled: bool
    reply: str = ""
    mode: ModeState | None = None
    error: RouteError | None = None

    @property
    def changed(self) -> bool:
        return self.mode is not None

    @classmethod
    def changed_to(cls, mode: ModeState, reply: str) -> RouteOutcome:
        return cls(handled=True, reply=reply, mode=mode)

    @classmethod
    def failed(cls, error: RouteError, reply: str) -> RouteOutcome:
        return cls(handled=True, reply=reply, error=error)


UNHANDLED = RouteOutcome(handled=False)
