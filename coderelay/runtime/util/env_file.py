"""Thread-safe ``.env`` file reader/writer."""

from __future__ import annotations

import threading
from pathlib import Path


class EnvFile:
    """Reads and writes a ``KEY=VALUE`` file with thread safety.

    Lines may carry a leading ``export`` so the same file can be sourced
    by a shell before launching the backends by hand.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def read(self, key: str) -> str:
        """Return the value for *key*, or ``""`` if absent."""
        return self.read_all().get(key, "")

    def read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        result: dict[str, str] = {}
        for line in self.path.read_text().splitlines():
            line = line.strip()
            if line.startswith("export "):
                line = line[len("export "):].lstrip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            result[key.strip()] = value.strip().strip('"').strip("'")
        return result

    def write(self, **kwargs: str) -> None:
        """Merge *kwargs* into the file; empty values remove the key."""
        with self._lock:
            existing = self.read_all()
            existing.update(kwargs)
            lines = [f'{k}="{v}"' for k, v in sorted(existing.items()) if v]
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("\n".join(lines) + "\n")
