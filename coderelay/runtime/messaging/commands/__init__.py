"""Coding-mode commands and the router that applies them.

- ``parser`` -- message text -> :class:`Command`
- ``mode``   -- enter / switch / model / exit / help handlers
- ``_router`` -- the state machine that runs handlers and commits state
"""

from ._outcome import RouteError, RouteOutcome
from ._router import ModeRouter
from .parser import NO_COMMAND, Command, CommandAction, CommandParser, is_control_directive

__all__ = [
    "NO_COMMAND",
    "Command",
    "CommandAction",
    "CommandParser",
    "ModeRouter",
    "RouteError",
    "RouteOutcome",
    "is_control_directive",
]
