"""Channel messaging pipeline -- mode commands, backend relay, and bot handler."""

from .channel_labels import ChannelLabelCache
from .message_processor import NOT_HANDLED, DispatchResult, InboundMessage, MessageProcessor
from .migration import MigrationReport, MigrationService
from .relay import MessageSink, StreamingRelay

__all__ = [
    "ChannelLabelCache",
    "DispatchResult",
    "InboundMessage",
    "MessageProcessor",
    "MessageSink",
    "MigrationReport",
    "MigrationService",
    "NOT_HANDLED",
    "StreamingRelay",
]
