"""Per-conversation coding mode record."""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from ..util.paths import repo_name


class SessionMode(enum.Enum):
    none = "none"
    opencode = "opencode"
    claude = "claude"
    codex = "codex"


def _now() -> str:
    return datetime.now(UTC).isoformat()


def build_response_prefix(active: SessionMode, project_dir: str, agent: str) -> str:
    if active is SessionMode.none:
        return ""
    return f"[{active.value}:{repo_name(project_dir)}|{agent}]"


@dataclass
class ModeState:
    """Which backend a conversation is routed to, and with what settings.

    ``project_dir`` is non-empty whenever ``active`` is not
    :attr:`SessionMode.none`.  Mutations go through :meth:`evolve` so the
    response prefix and timestamp never drift from the other fields.
    """

    active: SessionMode = SessionMode.none
    project_dir: str = ""
    agent: str = ""
    model: str = ""
    response_prefix: str = ""
    updated_at: str = ""

    @property
    def is_active(self) -> bool:
        return self.active is not SessionMode.none and bool(self.project_dir)

    def evolve(self, **changes: Any) -> ModeState:
        """Return a copy with *changes* applied, prefix recomputed, timestamp bumped."""
        updated = replace(self, **changes)
        updated.response_prefix = build_response_prefix(
            updated.active, updated.project_dir, updated.agent,
        )
        updated.updated_at = _now()
        return updated

    def cleared(self) -> ModeState:
        return ModeState(updated_at=_now())

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["active"] = self.active.value
        return data

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> ModeState:
        if not raw:
            return cls()
        try:
            active = SessionMode(raw.get("active", "none"))
        except ValueError:
            active = SessionMode.none
        return cls(
            active=active,
            project_dir=str(raw.get("project_dir", "")),
            agent=str(raw.get("agent", "")),
            model=str(raw.get("model", "")),
            response_prefix=str(raw.get("response_prefix", "")),
            updated_at=str(raw.get("updated_at", "")),
        )


@dataclass
class SessionRecord:
    mode: ModeState = field(default_factory=ModeState)
    label: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode.to_dict(), "label": self.label}

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> SessionRecord:
        if not isinstance(raw, dict):
            return cls()
        return cls(mode=ModeState.from_dict(raw.get("mode")), label=str(raw.get("label", "")))
