"""Per-message pipeline: mode routing, backend invocation, streamed replies."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..services.backends import BackendRequest
from .commands import CommandParser, ModeRouter, is_control_directive
from .relay import MessageSink, StreamingRelay

if TYPE_CHECKING:
    from ..services.backends import BackendAdapter
    from ..state.feedback import FeedbackTracker
    from ..state.mode_state import ModeState
    from ..state.session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InboundMessage:
    session_key: str
    text: str
    target: str = ""
    label: str = ""


@dataclass(frozen=True)
class DispatchResult:
    """What the connector should do after :meth:`MessageProcessor.handle`.

    ``handled=False`` means no coding mode claimed the message.  When
    ``delivered`` is set the reply already reached the chat via message
    edits and ``text`` is informational only.
    """

    handled: bool
    text: str = ""
    response_prefix: str = ""
    delivered: bool = False

    def render(self) -> str:
        """Reply text with the mode prefix, for connectors that did not stream."""
        if not self.response_prefix:
            return self.text
        return f"{self.response_prefix}\n{self.text}"


NOT_HANDLED = DispatchResult(handled=False)


class MessageProcessor:

    def __init__(
        self,
        parser: CommandParser,
        router: ModeRouter,
        store: SessionStore,
        adapters: Mapping[str, BackendAdapter],
        *,
        feedback: FeedbackTracker | None = None,
        directive_prefix: str = "/",
        stream_interval: float = 1.0,
        stream_tail: int = 3000,
    ) -> None:
        self._parser = parser
        self._router = router
        self._store = store
        self._adapters = adapters
        self._feedback = feedback
        self._directive_prefix = directive_prefix
        self._stream_interval = stream_interval
        self._stream_tail = stream_tail
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._background: set[asyncio.Task[bool]] = set()

    async def handle(self, inbound: InboundMessage, sink: MessageSink | None = None) -> DispatchResult:
        key = inbound.session_key
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                return await self._handle(inbound, sink)
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    def usage_hint(self) -> str:
        triggers = ", ".join(f"/{t}" for t in self._parser.triggers())
        return (
            "💡 No coding mode is active. "
            f"Start one with {triggers} followed by a project directory."
        )

    async def drain(self) -> None:
        """Wait for outstanding feedback bookkeeping."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _handle(self, inbound: InboundMessage, sink: MessageSink | None) -> DispatchResult:
        if not inbound.text or not inbound.text.strip():
            return NOT_HANDLED
        key = inbound.session_key
        record = self._store.load(key)

        if inbound.label and inbound.label != record.label:
            record.label = inbound.label
            self._router.commit(key, record, record.mode)

        outcome = await self._router.route_channel_label(key, record)
        if outcome.handled:
            return DispatchResult(True, outcome.reply)

        outcome = self._router.route(key, record, self._parser.parse(inbound.text))
        if outcome.handled:
            return DispatchResult(True, outcome.reply)

        mode = record.mode
        if not mode.is_active:
            return NOT_HANDLED
        if is_control_directive(inbound.text, self._directive_prefix):
            return DispatchResult(True, self._unknown_directive(inbound.text, mode))
        return await self._forward(inbound, mode, sink)

    def _unknown_directive(self, text: str, mode: ModeState) -> str:
        spec = self._router.spec_for(mode.active)
        token = text.split(maxsplit=1)[0]
        return (
            f"⚠️ Unknown command: {token}\n\n"
            f"Commands are not forwarded to {spec.label} CLI. "
            f"Send /{spec.trigger} for help or /{spec.trigger} exit to leave {spec.label} mode."
        )

    async def _forward(
        self, inbound: InboundMessage, mode: ModeState, sink: MessageSink | None,
    ) -> DispatchResult:
        adapter = self._adapters[mode.active.value]
        request = BackendRequest(
            message=inbound.text,
            project_dir=mode.project_dir,
            agent=mode.agent or adapter.spec.default_agent,
            model=mode.model,
        )
        prefix = mode.response_prefix
        self._schedule_feedback(mode, inbound.text)

        relay = None
        if sink is not None and inbound.target:
            relay = await StreamingRelay.open(
                sink, inbound.target, prefix,
                interval=self._stream_interval, tail=self._stream_tail,
            )
        if relay is None:
            result = await adapter.invoke(request)
            return DispatchResult(True, result.render(), prefix)

        result = await adapter.invoke_streaming(request, relay.feed)
        text = await relay.finish(result.error_line)
        logger.info(
            "[processor.stream] %s: %d chars, %d edits (%d failed)",
            inbound.session_key, len(text), relay.edits, relay.failed_edits,
        )
        return DispatchResult(True, text, prefix, delivered=relay.edits > 0)

    def _schedule_feedback(self, mode: ModeState, text: str) -> None:
        if self._feedback is None:
            return
        task = asyncio.create_task(
            self._feedback.record_instruction(mode.project_dir, mode.active.value, text),
        )
        self._background.add(task)
        task.add_done_callback(self._feedback_done)

    def _feedback_done(self, task: asyncio.Task[bool]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("[processor.feedback] recording failed: %s", exc, exc_info=exc)
