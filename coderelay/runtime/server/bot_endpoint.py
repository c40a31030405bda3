"""Bot Framework webhook -- /api/messages."""

from __future__ import annotations

import json
import logging

from aiohttp import web
from botbuilder.core import BotFrameworkAdapter
from botbuilder.schema import Activity

from ..messaging.bot import Bot

logger = logging.getLogger(__name__)


class BotEndpoint:
    def __init__(self, adapter: BotFrameworkAdapter, bot: Bot) -> None:
        self._adapter = adapter
        self._bot = bot

    def register(self, router: web.UrlDispatcher) -> None:
        router.add_post("/api/messages", self.handle)

    async def handle(self, req: web.Request) -> web.Response:
        if "application/json" not in req.headers.get("Content-Type", ""):
            return web.Response(status=415)
        try:
            body = await req.json()
        except json.JSONDecodeError:
            return web.json_response({"error": "Invalid JSON"}, status=400)

        activity = Activity().deserialize(body)
        auth_header = req.headers.get("Authorization", "")
        try:
            response = await self._adapter.process_activity(activity, auth_header, self._bot.on_turn)
        except PermissionError:
            logger.warning("[bot_endpoint] rejected activity: bad credentials")
            return web.Response(status=401)
        if response:
            return web.json_response(data=response.body, status=response.status)
        return web.Response(status=201)
