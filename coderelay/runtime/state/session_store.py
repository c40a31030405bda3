"""Keyed session records persisted to a single JSON file."""

from __future__ import annotations

import logging
from pathlib import Path

from ..config.settings import cfg
from ._json_store import JsonStore
from .mode_state import SessionRecord

logger = logging.getLogger(__name__)


class SessionStore:
    """``load(key)`` / ``save(key, record)`` over ``sessions.json``.

    A missing or unreadable entry loads as a fresh :class:`SessionRecord`.
    ``save`` replaces exactly one record and lets ``OSError`` propagate so
    the caller decides how to treat a failed write.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._store = JsonStore(path or cfg.sessions_path)

    @property
    def path(self) -> Path:
        return self._store.path

    def load(self, key: str) -> SessionRecord:
        data = self._store.load()
        raw = data.get(key) if isinstance(data, dict) else None
        return SessionRecord.from_dict(raw)

    def save(self, key: str, record: SessionRecord) -> None:
        self._store.update(key, record.to_dict())
        logger.debug("[sessions.save] key=%s mode=%s", key, record.mode.active.value)
