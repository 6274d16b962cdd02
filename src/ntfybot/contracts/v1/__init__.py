from __future__ import annotations

from .chat import ChatErrorEvent, ChatEvent, ChatMessageEvent
from .notify import MESSAGE_EVENT, MessageDecodeError, NotificationMessage

__all__ = [
    "ChatErrorEvent",
    "ChatEvent",
    "ChatMessageEvent",
    "MESSAGE_EVENT",
    "MessageDecodeError",
    "NotificationMessage",
]
