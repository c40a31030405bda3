"""Single-command CLI entry point.

Runs one turn against a coding-agent CLI in a project directory, renders
the streamed output live, and exits.  Useful for checking that a backend
is installed and authenticated before wiring it to a chat channel.

Usage::

    coderelay-run --backend opencode --project ~/src/app "Add a health check"
    coderelay-run -b claude -p . --agent plan --file tasks.md
    echo "Explain the build" | coderelay-run -b codex -
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.text import Text

from coderelay.runtime.config.settings import cfg
from coderelay.runtime.messaging.relay import StreamingRelay
from coderelay.runtime.services.backends import BACKENDS, BackendAdapter, BackendRequest, get_spec
from coderelay.runtime.state.mode_state import SessionMode, build_response_prefix
from coderelay.runtime.util.paths import resolve_project_dir

logger = logging.getLogger(__name__)
console = Console()


class LiveSink:
    """:class:`MessageSink` that renders the single relayed message in a ``Live``."""

    def __init__(self, live: Live) -> None:
        self._live = live

    async def send_message(self, target: str, text: str) -> str | None:
        self._live.update(Text(text))
        return "cli"

    async def edit_message(self, target: str, message_id: str, text: str) -> bool:
        self._live.update(Text(text))
        return True


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coderelay-run",
        description="Run a single coding-agent turn and exit.",
    )
    parser.add_argument(
        "prompt",
        nargs="?",
        default=None,
        help="The message to send to the backend.  Use '-' to read from stdin.",
    )
    parser.add_argument(
        "-b", "--backend",
        choices=sorted(BACKENDS),
        default="opencode",
        help="Coding-agent CLI to run (default: opencode).",
    )
    parser.add_argument(
        "-p", "--project",
        type=str,
        default=".",
        help="Project directory the backend runs in (default: current directory).",
    )
    parser.add_argument(
        "-f", "--file",
        type=str,
        default=None,
        help="Read the prompt from a file.",
    )
    parser.add_argument(
        "--agent",
        type=str,
        default=None,
        help="Agent / permission mode (default: the backend's default agent).",
    )
    parser.add_argument(
        "--model",
        type=str,
        default="",
        help="Model override (default: the backend's own default).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Ceiling in seconds (default: BACKEND_TIMEOUT_SECONDS).",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress streaming output; only print the final response.",
    )
    return parser


def _resolve_prompt(args: argparse.Namespace) -> str:
    """Return the prompt string from args, file, or stdin."""
    if args.file:
        path = Path(args.file)
        if not path.is_file():
            console.print(f"[red]Error:[/red] file not found: {path}")
            sys.exit(1)
        return path.read_text().strip()

    if args.prompt == "-":
        if sys.stdin.isatty():
            console.print("[red]Error:[/red] stdin is a TTY but '-' was specified. Pipe input or use a prompt argument.")
            sys.exit(1)
        return sys.stdin.read().strip()

    if args.prompt:
        return args.prompt

    console.print("[red]Error:[/red] no prompt provided. Use a positional argument, --file, or pipe to stdin with '-'.")
    sys.exit(1)


def _build_request(args: argparse.Namespace, prompt: str) -> BackendRequest:
    project_dir = resolve_project_dir(args.project)
    if not project_dir or not Path(project_dir).is_dir():
        console.print(f"[red]Error:[/red] not a project directory: {args.project}")
        sys.exit(1)
    spec = get_spec(args.backend)
    return BackendRequest(
        message=prompt,
        project_dir=project_dir,
        agent=args.agent or spec.default_agent,
        model=args.model,
    )


async def _run(args: argparse.Namespace) -> int:
    """Core async flow: build the request, run the backend, report."""
    prompt = _resolve_prompt(args)
    request = _build_request(args, prompt)
    spec = get_spec(args.backend)
    adapter = BackendAdapter(spec, timeout=args.timeout or cfg.backend_timeout)
    prefix = build_response_prefix(SessionMode(args.backend), request.project_dir, request.agent)

    console.print(f"[bold green]coderelay-run[/bold green] {escape(prefix)}\n")

    if args.quiet:
        result = await adapter.invoke(request)
        console.print(result.render(), markup=False)
    else:
        with Live(Text("..."), console=console, refresh_per_second=8) as live:
            relay = await StreamingRelay.open(
                LiveSink(live), "cli", prefix,
                interval=cfg.stream_interval, tail=cfg.stream_tail_chars,
            )
            result = await adapter.invoke_streaming(request, relay.feed)
            await relay.finish(result.error_line)

    if not result.ok:
        logger.debug("[cli] backend error: %s", result.error)
        return 1
    if not result.text.strip():
        console.print("[yellow]No output from backend.[/yellow]")
    return 0


def main() -> None:
    """CLI entry point for ``coderelay-run``."""
    parser = _build_parser()
    args = parser.parse_args()

    if args.prompt is None and args.file is None:
        parser.print_help()
        sys.exit(1)

    try:
        code = asyncio.run(_run(args))
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted.[/dim]")
        code = 130

    sys.exit(code)


if __name__ == "__main__":
    main()
