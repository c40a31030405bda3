"""Persistent state stores backed by JSON and plain-text files."""

from __future__ import annotations

from ._json_store import JsonStore
from .feedback import AutoLevel, FeedbackCounter, FeedbackTracker, auto_level
from .mode_state import ModeState, SessionMode, SessionRecord, build_response_prefix
from .session_store import SessionStore

__all__ = [
    "AutoLevel",
    "FeedbackCounter",
    "FeedbackTracker",
    "JsonStore",
    "ModeState",
    "SessionMode",
    "SessionRecord",
    "SessionStore",
    "auto_level",
    "build_response_prefix",
]
