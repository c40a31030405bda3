"""Coding-mode commands -- enter, switch, model, exit and help."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...state.mode_state import ModeState, SessionMode
from ...util.paths import resolve_project_dir
from ._outcome import RouteError, RouteOutcome

if TYPE_CHECKING:
    from ...services.backends import BackendSpec
    from ._router import ModeRouter
    from .parser import Command


def _not_in_mode(spec: BackendSpec) -> RouteOutcome:
    return RouteOutcome.failed(
        RouteError.not_in_mode,
        f"❌ Not in {spec.label} mode. "
        f"Use `/{spec.trigger} [project_dir]` to enter {spec.label} mode first.",
    )


def cmd_exit(router: ModeRouter, cmd: Command, mode: ModeState) -> RouteOutcome:
    label = router.spec_for(mode.active).label if mode.active is not SessionMode.none else "coding"
    return RouteOutcome.changed_to(
        mode.cleared(),
        f"🚪 Exited {label} mode. Messages will now go to the normal agent.",
    )


def cmd_enter(router: ModeRouter, cmd: Command, mode: ModeState) -> RouteOutcome:
    spec = router.spec_for(cmd.backend)
    project_dir = resolve_project_dir(cmd.argument)
    if not project_dir:
        return RouteOutcome.failed(RouteError.parse_failure, "❌ Invalid project directory.")

    target = SessionMode(spec.name)
    same_backend = mode.active is target
    agent = mode.agent if same_backend and mode.agent else spec.default_agent
    model = mode.model if same_backend else ""
    updated = mode.evolve(active=target, project_dir=project_dir, agent=agent, model=model)
    return RouteOutcome.changed_to(
        updated,
        f"🔓 Entered {spec.label} mode!\n\n"
        f"Project: {project_dir}\n"
        f"Agent: {agent}\n"
        f"Model: {model or 'default'}\n\n"
        f"All messages will now be forwarded to {spec.label} CLI. "
        f"Use /{spec.trigger} exit to leave.",
    )


def cmd_switch(router: ModeRouter, cmd: Command, mode: ModeState) -> RouteOutcome:
    spec = router.spec_for(cmd.backend)
    if mode.active.value != spec.name:
        return _not_in_mode(spec)
    agent = cmd.argument or spec.default_agent
    return RouteOutcome.changed_to(
        mode.evolve(agent=agent), f"🤖 {spec.label} agent set to: {agent}",
    )


def cmd_model(router: ModeRouter, cmd: Command, mode: ModeState) -> RouteOutcome:
    spec = router.spec_for(cmd.backend)
    if mode.active.value != spec.name:
        return _not_in_mode(spec)
    if not cmd.argument:
        return RouteOutcome.changed_to(
            mode.evolve(model=""),
            f"🧹 {spec.label} model cleared (will use {spec.label}'s default).",
        )
    return RouteOutcome.changed_to(
        mode.evolve(model=cmd.argument), f"📦 {spec.label} model set to: {cmd.argument}",
    )


def cmd_help(router: ModeRouter, cmd: Command, mode: ModeState) -> RouteOutcome:
    spec = router.spec_for(cmd.backend)
    active = mode.active.value == spec.name
    t = spec.trigger
    lines = [
        f"{spec.label} mode{' (active)' if active else ''}",
        "",
        "Usage:",
        f"• /{t} [project_dir] - Enter {spec.label} mode",
        f"• /{t} switch [agent] - Change agent (default: {spec.default_agent})",
        f"• /{t} model [model] - Set model (empty to clear)",
        f"• /{t} exit - Exit {spec.label} mode",
        "",
        "Current:",
        f"• Project: {mode.project_dir if active else 'none'}",
        f"• Agent: {mode.agent if active else spec.default_agent}",
        f"• Model: {(mode.model if active else '') or 'default'}",
    ]
    if active:
        level = router.autonomy(mode)
        if level is not None:
            lines.append(f"• Autonomy: {level.describe()}")
    return RouteOutcome(handled=True, reply="\n".join(lines))
