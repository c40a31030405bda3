"""Registry of module-level singletons that tests can reset."""

from __future__ import annotations

import threading
from collections.abc import Callable

_resetters: list[Callable[[], None]] = []
_lock = threading.Lock()


def register_singleton(reset: Callable[[], None]) -> None:
    """Register *reset* to be called by :func:`reset_all_singletons`."""
    with _lock:
        if reset not in _resetters:
            _resetters.append(reset)


def reset_all_singletons() -> None:
    with _lock:
        resetters = list(_resetters)
    for reset in resetters:
        reset()
