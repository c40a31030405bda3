"""Coalesces streamed backend output into a few in-place message edits."""

from __future__ import annotations

import logging
from collections.abc import Callable
from time import monotonic
from typing import Any, Protocol

logger = logging.getLogger(__name__)

URGENT_MARKERS: tuple[str, ...] = ("❌", "⚠️", "⏱️")
THINKING = "🤔 Thinking..."


class MessageSink(Protocol):
    """The two chat-platform operations the relay depends on."""

    async def send_message(self, target: str, text: str) -> str | None: ...

    async def edit_message(self, target: str, message_id: str, text: str) -> bool: ...


class StreamingRelay:
    """Edits one placeholder message as output arrives.

    The time gate is checked inside :meth:`feed`, on the caller's task, so
    every chunk is in the buffer before any edit that could show it.  An
    edit happens when ``interval`` seconds passed since the last timed edit or the
    chunk carries an urgent marker; :meth:`finish` always edits once more.
    """

    def __init__(
        self,
        sink: MessageSink,
        target: str,
        message_id: str,
        prefix: str,
        *,
        interval: float = 1.0,
        tail: int = 3000,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._sink = sink
        self._target = target
        self._message_id = message_id
        self._prefix = prefix
        self._interval = interval
        self._tail = tail
        self._clock = clock
        self._parts: list[str] = []
        self._last_flush = clock()
        self.edits = 0
        self.failed_edits = 0

    @classmethod
    async def open(
        cls,
        sink: MessageSink,
        target: str,
        prefix: str,
        **kwargs: Any,
    ) -> StreamingRelay | None:
        """Post the placeholder message; ``None`` if the sink gave no id."""
        try:
            message_id = await sink.send_message(target, f"{prefix} {THINKING}")
        except Exception:
            logger.warning("[relay.open] placeholder send failed for %s", target, exc_info=True)
            return None
        if not message_id:
            return None
        return cls(sink, target, message_id, prefix, **kwargs)

    @property
    def message_id(self) -> str:
        return self._message_id

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def display_text(self) -> str:
        return f"{self._prefix}\n{self.text[-self._tail:]}"

    async def feed(self, chunk: str) -> None:
        if not chunk:
            return
        self._parts.append(chunk)
        now = self._clock()
        due = now - self._last_flush >= self._interval
        if due:
            self._last_flush = now
        # Urgent flushes are out of band and leave the interval gate alone.
        if due or any(marker in chunk for marker in URGENT_MARKERS):
            await self._flush()

    async def finish(self, error_line: str = "") -> str:
        if error_line:
            self._parts.append(f"\n{error_line}" if self._parts else error_line)
        await self._flush()
        return self.text

    async def _flush(self) -> None:
        try:
            ok = await self._sink.edit_message(self._target, self._message_id, self.display_text())
        except Exception:
            logger.warning("[relay.flush] edit failed for %s", self._target, exc_info=True)
            ok = False
        if ok:
            self.edits += 1
        else:
            self.failed_edits += 1
