"""Text command parsing for the coding-mode triggers (``/oc``, ``!cc`` ...)."""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable
from dataclasses import dataclass

from ...services.backends import BackendSpec

CONTROL_GLYPHS = "/!"


class CommandAction(enum.Enum):
    enter = "enter"
    switch = "switch"
    model = "model"
    exit = "exit"
    none = "none"


@dataclass(frozen=True)
class Command:
    action: CommandAction = CommandAction.none
    argument: str = ""
    backend: str | None = None

    @property
    def is_help(self) -> bool:
        """Bare trigger with nothing after it."""
        return self.action is CommandAction.none and self.backend is not None


NO_COMMAND = Command()


def is_control_directive(text: str, prefix: str = "/") -> bool:
    return bool(prefix) and text.lstrip().startswith(prefix)


class CommandParser:
    """Maps message text to a :class:`Command`.

    Never raises: anything that is not one of the configured triggers
    parses to :data:`NO_COMMAND`.
    """

    def __init__(self, specs: Iterable[BackendSpec]) -> None:
        self._by_trigger: dict[str, BackendSpec] = {s.trigger.lower(): s for s in specs}
        triggers = "|".join(
            re.escape(t) for t in sorted(self._by_trigger, key=len, reverse=True)
        )
        self._pattern = re.compile(
            rf"^[{re.escape(CONTROL_GLYPHS)}]({triggers})(?:\s+(.*))?$",
            re.IGNORECASE | re.DOTALL,
        )

    def triggers(self) -> dict[str, str]:
        """Trigger token -> backend name."""
        return {t: s.name for t, s in self._by_trigger.items()}

    def parse(self, body: str) -> Command:
        if not isinstance(body, str) or not self._by_trigger:
            return NO_COMMAND
        match = self._pattern.match(body.strip())
        if not match:
            return NO_COMMAND

        spec = self._by_trigger[match.group(1).lower()]
        rest = (match.group(2) or "").strip()
        if not rest:
            return Command(backend=spec.name)

        parts = rest.split(maxsplit=1)
        verb = parts[0].lower()
        tail = parts[1].strip() if len(parts) > 1 else ""

        if verb == "exit":
            return Command(CommandAction.exit, "", spec.name)
        if verb == "switch":
            return Command(CommandAction.switch, tail or spec.default_agent, spec.name)
        if verb == "model":
            return Command(CommandAction.model, tail, spec.name)
        return Command(CommandAction.enter, rest, spec.name)
