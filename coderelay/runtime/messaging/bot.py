"""Bot Framework ActivityHandler -- routes channel messages through the coding modes.

Backend turns can take minutes, so when a bot id is configured the work
runs in the background and replies through proactive messaging, which
keeps the webhook inside the Bot Framework's 15-second timeout.
"""

from __future__ import annotations

import asyncio
import logging

from botbuilder.core import ActivityHandler, BotFrameworkAdapter, TurnContext
from botbuilder.schema import Activity, ActivityTypes, ConversationReference

from .channel_labels import ChannelLabelCache
from .message_processor import InboundMessage, MessageProcessor

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 4000


class TurnContextSink:
    """:class:`MessageSink` backed by a live ``TurnContext``."""

    def __init__(self, turn_context: TurnContext) -> None:
        self._ctx = turn_context

    async def send_message(self, target: str, text: str) -> str | None:
        response = await self._ctx.send_activity(_plain(text))
        return response.id if response else None

    async def edit_message(self, target: str, message_id: str, text: str) -> bool:
        activity = _plain(text)
        activity.id = message_id
        await self._ctx.update_activity(activity)
        return True


class Bot(ActivityHandler):
    def __init__(
        self,
        processor: MessageProcessor,
        labels: ChannelLabelCache | None = None,
        *,
        bot_id: str = "",
        allowed_senders: frozenset[str] = frozenset(),
    ) -> None:
        self._processor = processor
        self._labels = labels if labels is not None else ChannelLabelCache()
        self._bot_id = bot_id
        self._allowed_senders = allowed_senders
        self.adapter: BotFrameworkAdapter | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def labels(self) -> ChannelLabelCache:
        return self._labels

    async def on_message_activity(self, turn_context: TurnContext) -> None:
        activity = turn_context.activity
        text = activity.text or ""
        if not text.strip():
            return
        if not self._is_authorized(activity):
            return
        conversation = activity.conversation
        conv_id = conversation.id if conversation else ""
        inbound = InboundMessage(
            session_key=session_key(activity),
            text=text,
            target=conv_id,
            label=self._resolve_label(conv_id, conversation.name if conversation else None),
        )

        if self.adapter is None or not self._bot_id:
            await self._dispatch(turn_context, inbound)
            return

        ref = TurnContext.get_conversation_reference(activity)
        task = asyncio.create_task(self._continue(ref, inbound))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def on_conversation_update_activity(self, turn_context: TurnContext) -> None:
        conversation = turn_context.activity.conversation
        if conversation and conversation.id:
            # Renames arrive as conversation updates; forget the old label.
            self._labels.clear(conversation.id)
            if conversation.name:
                self._labels.put(conversation.id, conversation.name)
            logger.info("[bot] conversation %s relabelled to %r", conversation.id, conversation.name)
        await super().on_conversation_update_activity(turn_context)

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _is_authorized(self, activity: Activity) -> bool:
        if not self._allowed_senders:
            return True
        sender_id = activity.from_property.id if activity.from_property else ""
        if sender_id not in self._allowed_senders:
            logger.warning("[bot] blocked sender %s on %s (not in ALLOWED_SENDERS)", sender_id, activity.channel_id)
            return False
        return True

    def _resolve_label(self, conv_id: str, name: str | None) -> str:
        if name:
            self._labels.put(conv_id, name)
            return name
        return self._labels.get(conv_id) or ""

    async def _continue(self, ref: ConversationReference, inbound: InboundMessage) -> None:
        async def _callback(turn_context: TurnContext) -> None:
            await self._dispatch(turn_context, inbound)

        try:
            await self.adapter.continue_conversation(ref, _callback, bot_id=self._bot_id)
        except Exception as exc:
            logger.error("[bot] background processing failed for %s: %s", inbound.session_key, exc, exc_info=True)

    async def _dispatch(self, turn_context: TurnContext, inbound: InboundMessage) -> None:
        try:
            result = await self._processor.handle(inbound, TurnContextSink(turn_context))
        except Exception as exc:
            logger.error("[bot] processing error for %s: %s", inbound.session_key, exc, exc_info=True)
            await turn_context.send_activity(_plain("❌ An error occurred while processing your message."))
            return

        if not result.handled:
            await turn_context.send_activity(_plain(self._processor.usage_hint()))
            return
        if result.delivered:
            return
        for chunk in split_message(result.render()):
            await turn_context.send_activity(_plain(chunk))


def session_key(activity: Activity) -> str:
    channel = (activity.channel_id or "unknown").lower()
    conv_id = activity.conversation.id if activity.conversation else ""
    return f"{channel}:{conv_id}"


def _plain(text: str) -> Activity:
    return Activity(type=ActivityTypes.message, text=text, text_format="plain")


def split_message(text: str, max_len: int = MAX_MESSAGE_LENGTH) -> list[str]:
    if len(text) <= max_len:
        return [text]
    chunks: list[str] = []
    while text:
        if len(text) <= max_len:
            chunks.append(text)
            break
        split_at = text.rfind("\n", 0, max_len)
        if split_at < max_len // 2:
            split_at = text.rfind(" ", 0, max_len)
        if split_at < max_len // 2:
            split_at = max_len
        chunks.append(text[:split_at])
        text = text[split_at:].lstrip()
    return chunks
