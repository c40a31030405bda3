"""Lightweight success/failure value used instead of exceptions at seams."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Result:
    success: bool
    message: str = ""
    value: Any = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, message: str = "", value: Any = None) -> Result:
        return cls(success=True, message=message, value=value)

    @classmethod
    def fail(cls, message: str) -> Result:
        return cls(success=False, message=message)
