"""
Base class for IM platform adapters.
"""

from __future__ import annotations

import queue
from abc import ABC, abstractmethod
from typing import Optional

from ....contracts.v1 import ChatEvent


class ChatAdapterError(Exception):
    """A chat platform operation failed."""


class IMAdapter(ABC):
    """
    Abstract base class for IM platform adapters.

    Each adapter handles:
    - Connecting to the platform (fatal if it fails)
    - Producing inbound chat events onto a queue
    - Sending messages and reactions (outbound)
    - Platform-specific formatting and mention syntax
    """

    platform: str = "unknown"

    @abstractmethod
    def connect(self) -> "queue.Queue[Optional[ChatEvent]]":
        """
        Connect to the platform and return the inbound event queue.

        Raises ChatAdapterError if the connection cannot be established.
        """

    @abstractmethod
    def send(self, channel: str, text: str) -> None:
        """Send a message to a channel. Raises ChatAdapterError on failure."""

    @abstractmethod
    def react(self, channel: str, message_id: str, emoji: str) -> None:
        """Add a reaction to a message. Raises ChatAdapterError on failure."""

    @abstractmethod
    def mention_self(self) -> str:
        """The token that addresses a message to the bot."""

    @abstractmethod
    def close(self) -> None:
        """Disconnect from the platform."""

    def summarize(self, text: str, max_chars: int = 2000) -> str:
        """Fit text into a single platform message; only over-long text is cut."""
        if not text or len(text) <= max_chars:
            return text or ""
        return text[: max(0, max_chars - 1)] + "…"
