"""Relay server -- app factory and entry point."""

from __future__ import annotations

import argparse
import logging
import secrets
from collections.abc import Callable

from aiohttp import web

from ..config.settings import Settings, cfg
from ..messaging.bot import Bot
from ..messaging.channel_labels import ChannelLabelCache
from .bot_endpoint import BotEndpoint
from .chat import ChatHandler
from .middleware import QuietAccessLogger, create_auth_middleware
from .wiring import Services, create_adapter, create_services

logger = logging.getLogger(__name__)


class AppFactory:

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or cfg
        self._services: Services | None = None
        self._bot: Bot | None = None

    def build(self) -> web.Application:
        s = self._settings
        self._ensure_admin_secret()
        self._services = create_services(s)

        adapter = create_adapter(s)
        self._bot = Bot(
            self._services.processor,
            ChannelLabelCache(s.channel_label_ttl),
            bot_id=s.bot_app_id,
            allowed_senders=s.allowed_senders,
        )
        self._bot.adapter = adapter

        app = web.Application(middlewares=[create_auth_middleware(s)])
        app["services"] = self._services
        router = app.router
        BotEndpoint(adapter, self._bot).register(router)
        ChatHandler(self._services.processor).register(router)
        router.add_get("/api/health", self._health_handler())
        app.on_cleanup.append(self._on_cleanup)
        return app

    def _health_handler(self) -> Callable:
        services = self._services

        async def handler(_req: web.Request) -> web.Response:
            backends = {
                name: adapter.spec.find_binary() for name, adapter in services.adapters.items()
            }
            return web.json_response({"status": "ok", "backends": backends})

        return handler

    def _ensure_admin_secret(self) -> None:
        if self._settings.admin_secret:
            return
        self._settings.write_env(ADMIN_SECRET=secrets.token_urlsafe(24))
        logger.info("Generated ADMIN_SECRET (persisted to .env)")

    async def _on_cleanup(self, _app: web.Application) -> None:
        if self._bot:
            await self._bot.drain()
        if self._services:
            await self._services.processor.drain()


def create_app(settings: Settings | None = None) -> web.Application:
    return AppFactory(settings).build()


def main() -> None:
    parser = argparse.ArgumentParser(description="coderelay server")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind (default: 0.0.0.0).")
    parser.add_argument("--port", type=int, default=0, help="Port to listen on (default: BOT_PORT).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s  %(name)s  %(levelname)s  %(message)s",
    )
    cfg.reload()
    port = args.port or cfg.bot_port
    logger.info("Starting coderelay on %s:%d ...", args.host, port)
    if not cfg.bot_app_id:
        logger.warning("BOT_APP_ID not set -- bot replies are sent inline within the webhook")
    if not cfg.allowed_senders:
        logger.warning("ALLOWED_SENDERS not set -- every channel user can drive the coding agents")

    web.run_app(create_app(), host=args.host, port=port, access_log_class=QuietAccessLogger)


if __name__ == "__main__":
    main()
