"""
In-process adapter for `mem` tokens.

Nothing leaves the process: inbound messages are injected with `inject()`,
outbound messages and reactions are recorded for inspection. Useful for
local runs without a chat platform and for tests.
"""

from __future__ import annotations

import itertools
import queue
import threading
from typing import List, Optional, Set, Tuple

from ....contracts.v1 import ChatErrorEvent, ChatEvent, ChatMessageEvent
from .base import ChatAdapterError, IMAdapter


class MemoryAdapter(IMAdapter):
    platform = "mem"

    def __init__(self, bot_name: str = "ntfybot"):
        self.bot_name = bot_name
        self.sent: List[Tuple[str, str]] = []
        self.reactions: List[Tuple[str, str, str]] = []
        self.failing_channels: Set[str] = set()

        self._events: "queue.Queue[Optional[ChatEvent]]" = queue.Queue()
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._connected = False

    def connect(self) -> "queue.Queue[Optional[ChatEvent]]":
        self._connected = True
        return self._events

    def inject(self, channel: str, text: str, sender: str = "user") -> str:
        """Queue an inbound message; returns its message id."""
        message_id = str(next(self._ids))
        self._events.put(ChatMessageEvent(id=message_id, channel=channel, sender=sender, text=text))
        return message_id

    def inject_error(self, error: str) -> None:
        self._events.put(ChatErrorEvent(error=error))

    def send(self, channel: str, text: str) -> None:
        if channel in self.failing_channels:
            raise ChatAdapterError(f"cannot send to {channel}")
        with self._lock:
            self.sent.append((channel, text))

    def react(self, channel: str, message_id: str, emoji: str) -> None:
        if channel in self.failing_channels:
            raise ChatAdapterError(f"cannot react in {channel}")
        with self._lock:
            self.reactions.append((channel, message_id, emoji))

    def sent_to(self, channel: str) -> List[str]:
        with self._lock:
            return [text for ch, text in self.sent if ch == channel]

    def mention_self(self) -> str:
        return f"@{self.bot_name}"

    def close(self) -> None:
        self._connected = False
