"""Conversation id -> channel label cache owned by a connector."""

from __future__ import annotations

from collections.abc import Callable
from time import monotonic


class ChannelLabelCache:
    """Remembers channel labels for ``ttl`` seconds.

    Connectors see a channel's display name only on some activities; the
    cache fills the gaps and is cleared when a rename is observed.
    """

    def __init__(self, ttl: float = 600.0, *, clock: Callable[[], float] = monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, str]] = {}

    def get(self, channel_id: str) -> str | None:
        entry = self._entries.get(channel_id)
        if entry is None:
            return None
        expiry, label = entry
        if self._clock() >= expiry:
            del self._entries[channel_id]
            return None
        return label

    def put(self, channel_id: str, label: str) -> None:
        if channel_id and label:
            self._entries[channel_id] = (self._clock() + self._ttl, label)

    def clear(self, channel_id: str | None = None) -> None:
        if channel_id is None:
            self._entries.clear()
        else:
            self._entries.pop(channel_id, None)
