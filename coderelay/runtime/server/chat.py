"""WebSocket chat handler -- /api/chat/ws.

Client frames: ``{"action": "send", "text": ..., "session": ..., "label": ...}``.
Server frames: ``message`` (new message with an ``id``), ``edit`` (replace
the content of ``id``), ``reply`` (the final result) and ``error``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid

import aiohttp
from aiohttp import web

from ..messaging.message_processor import InboundMessage, MessageProcessor

logger = logging.getLogger(__name__)


class WebSocketSink:
    """:class:`MessageSink` that mirrors messages and edits as JSON frames."""

    def __init__(self, ws: web.WebSocketResponse) -> None:
        self._ws = ws

    async def send_message(self, target: str, text: str) -> str | None:
        if self._ws.closed:
            return None
        message_id = uuid.uuid4().hex
        await self._ws.send_json({"type": "message", "id": message_id, "content": text})
        return message_id

    async def edit_message(self, target: str, message_id: str, text: str) -> bool:
        if self._ws.closed:
            return False
        await self._ws.send_json({"type": "edit", "id": message_id, "content": text})
        return True


class ChatHandler:
    """WebSocket front end onto the message processor."""

    def __init__(self, processor: MessageProcessor) -> None:
        self._processor = processor

    def register(self, router: web.UrlDispatcher) -> None:
        router.add_get("/api/chat/ws", self.handle)

    async def handle(self, req: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(req)
        connection = uuid.uuid4().hex[:12]
        logger.info("[chat.handle] WebSocket connected from %s", req.remote)

        send_task: asyncio.Task[None] | None = None

        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                logger.debug("[chat.handle] received: %s", msg.data[:200])
                try:
                    data = json.loads(msg.data)
                except json.JSONDecodeError:
                    logger.warning("[chat.handle] invalid JSON: %s", msg.data[:100])
                    await ws.send_json({"type": "error", "content": "Invalid JSON"})
                    continue
                action = data.get("action", "") if isinstance(data, dict) else ""
                if action != "send":
                    logger.warning("[chat.handle] unknown action: %s", action)
                    await ws.send_json({"type": "error", "content": f"Unknown action: {action}"})
                    continue
                if send_task and not send_task.done():
                    await ws.send_json({"type": "error", "content": "A message is already in progress"})
                    continue
                send_task = asyncio.create_task(self._send(ws, data, connection))
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.error("[chat.handle] WebSocket error: %s", ws.exception())

        if send_task and not send_task.done():
            send_task.cancel()
        logger.info("[chat.handle] WebSocket disconnected")
        return ws

    async def _send(self, ws: web.WebSocketResponse, data: dict, connection: str) -> None:
        text = str(data.get("text") or "")
        session = str(data.get("session") or connection)
        inbound = InboundMessage(
            session_key=f"ws:{session}",
            text=text,
            target=session,
            label=str(data.get("label") or ""),
        )
        try:
            result = await self._processor.handle(inbound, WebSocketSink(ws))
        except Exception:
            logger.exception("[chat.send] unhandled error for session %s", session)
            if not ws.closed:
                await ws.send_json({"type": "error", "content": "Internal error"})
            return

        if ws.closed:
            return
        if not result.handled:
            await ws.send_json({
                "type": "reply", "handled": False, "delivered": False,
                "content": self._processor.usage_hint(),
            })
            return
        await ws.send_json({
            "type": "reply",
            "handled": True,
            "delivered": result.delivered,
            "prefix": result.response_prefix,
            "content": result.text if result.delivered else result.render(),
        })
