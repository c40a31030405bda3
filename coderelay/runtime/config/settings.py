"""Application settings -- reads from environment and ``.env`` file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from ..util.env_file import EnvFile
from ..util.singletons import register_singleton


class Settings:

    _DATA_DIR_ENV: ClassVar[str] = "CODERELAY_DATA_DIR"

    def __init__(self) -> None:
        dotenv = os.getenv("DOTENV_PATH")
        if not dotenv:
            data_dir = os.getenv(self._DATA_DIR_ENV)
            if data_dir:
                dotenv = str(Path(data_dir) / ".env")
            else:
                dotenv = ".env"
        self.env = EnvFile(dotenv)
        self.reload()

    def reload(self) -> None:
        e = self._read

        self.bot_app_id: str = e("BOT_APP_ID")
        self.bot_app_password: str = e("BOT_APP_PASSWORD")
        self.bot_port: int = int(e("BOT_PORT") or "3978")

        self.admin_secret: str = e("ADMIN_SECRET")
        raw_senders = e("ALLOWED_SENDERS")
        self.allowed_senders: frozenset[str] = frozenset(
            uid.strip() for uid in raw_senders.split(",") if uid.strip()
        ) if raw_senders else frozenset()

        self.workspace_root: str = e("CODERELAY_WORKSPACE_ROOT")
        self.directive_prefix: str = e("DIRECTIVE_PREFIX") or "/"

        self.backend_timeout: float = float(e("BACKEND_TIMEOUT_SECONDS") or "300")
        self.stream_interval: float = float(e("STREAM_UPDATE_INTERVAL") or "1.0")
        self.stream_tail_chars: int = int(e("STREAM_TAIL_CHARS") or "3000")
        self.feedback_threshold: int = int(e("FEEDBACK_LOG_THRESHOLD") or "500")
        self.channel_label_ttl: float = float(e("CHANNEL_LABEL_TTL") or "600")

    @property
    def data_dir(self) -> Path:
        return Path(os.getenv(self._DATA_DIR_ENV, str(Path.home() / ".coderelay")))

    @property
    def sessions_path(self) -> Path:
        return self.data_dir / "sessions.json"

    def _read(self, key: str) -> str:
        return self.env.read(key) or os.getenv(key, "")

    def ensure_dirs(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def write_env(self, **kwargs: str) -> None:
        self.env.write(**kwargs)
        self.reload()


cfg = Settings()


def _reset_cfg() -> None:
    global cfg
    cfg = Settings()


register_singleton(_reset_cfg)
