"""Service wiring -- builds the routing pipeline and the Bot Framework adapter."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from botbuilder.core import BotFrameworkAdapter, BotFrameworkAdapterSettings, TurnContext
from botbuilder.schema import Activity, ActivityTypes

from ..config.settings import Settings, cfg
from ..messaging.commands import CommandParser, ModeRouter
from ..messaging.message_processor import MessageProcessor
from ..messaging.migration import MigrationService
from ..services.backends import BACKENDS, BackendAdapter, build_adapters
from ..state.feedback import FeedbackTracker
from ..state.session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: SessionStore
    adapters: dict[str, BackendAdapter]
    feedback: FeedbackTracker
    router: ModeRouter
    processor: MessageProcessor


def create_services(settings: Settings | None = None) -> Services:
    """Wire store, adapters, tracker, router and processor from *settings*."""
    s = settings or cfg
    s.ensure_dirs()
    store = SessionStore(s.sessions_path)
    adapters = build_adapters(timeout=s.backend_timeout)
    feedback = FeedbackTracker(adapters, threshold=s.feedback_threshold)
    router = ModeRouter(
        BACKENDS,
        store,
        migration=MigrationService(adapters),
        feedback=feedback,
        workspace_root=s.workspace_root,
    )
    processor = MessageProcessor(
        CommandParser(BACKENDS.values()),
        router,
        store,
        adapters,
        feedback=feedback,
        directive_prefix=s.directive_prefix,
        stream_interval=s.stream_interval,
        stream_tail=s.stream_tail_chars,
    )
    logger.info(
        "[wiring] sessions=%s backends=%s timeout=%.0fs",
        s.sessions_path, ",".join(adapters), s.backend_timeout,
    )
    return Services(store, adapters, feedback, router, processor)


def create_adapter(settings: Settings | None = None) -> BotFrameworkAdapter:
    """Create a BotFrameworkAdapter with the configured credentials."""
    s = settings or cfg
    adapter = BotFrameworkAdapter(BotFrameworkAdapterSettings(
        app_id=s.bot_app_id or None,
        app_password=s.bot_app_password or None,
    ))

    async def on_error(context: TurnContext, error: Exception) -> None:
        logger.error("Bot turn error: %s", error, exc_info=True)
        try:
            await context.send_activity(
                Activity(type=ActivityTypes.message, text="❌ An error occurred.", text_format="plain")
            )
        except Exception:
            logger.debug("Bot turn error reply failed", exc_info=True)

    adapter.on_turn_error = on_error
    return adapter
