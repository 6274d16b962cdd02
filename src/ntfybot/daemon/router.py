"""Fan-out of notification messages to subscribed chat channels."""
from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING, Optional

from ..contracts.v1 import NotificationMessage
from ..kernel.registry import SubscriptionRegistry
from ..util.text import short_url

if TYPE_CHECKING:
    from ..ports.im.adapters.base import IMAdapter


logger = logging.getLogger("ntfybot.router")


def format_notification(message: NotificationMessage) -> str:
    """Chat text for one notification.

    **ntfy.sh/mytopic**
    body

    or, with a title:

    **ntfy.sh/mytopic**: title
    body
    """
    label = f"**{short_url(message.topic)}**"
    if message.title:
        label = f"{label}: {message.title}"
    return f"{label}\n{message.message}"


class MessageRouter:
    """Drains the shared notification queue and delivers to chat."""

    def __init__(
        self,
        registry: SubscriptionRegistry,
        adapter: "IMAdapter",
        messages: "queue.Queue[Optional[NotificationMessage]]",
    ):
        self.registry = registry
        self.adapter = adapter
        self.messages = messages
        self._thread: Optional[threading.Thread] = None

    def route(self, message: NotificationMessage) -> int:
        """Deliver one message to every channel of its topic.

        Each send is independent; a failing channel is logged and skipped.
        Returns the number of successful sends.
        """
        if not message.is_message:
            return 0
        channels = self.registry.channels_for(message.topic)
        if not channels:
            logger.debug(f"[route] no subscribers for {message.topic}", extra={"topic": message.topic})
            return 0

        text = format_notification(message)
        logger.info(f"[route] forwarding message {message.id} to {len(channels)} channel(s)", extra={"topic": message.topic})
        delivered = 0
        for channel in channels:
            try:
                self.adapter.send(channel, text)
                delivered += 1
            except Exception as e:
                logger.warning(
                    f"[route] delivery to {channel} failed: {e}",
                    extra={"topic": message.topic, "channel": channel},
                )
        return delivered

    def run(self) -> None:
        """Consume messages until the None sentinel arrives."""
        while True:
            message = self.messages.get()
            if message is None:
                return
            try:
                self.route(message)
            except Exception:
                logger.exception("[route] unexpected error", extra={"topic": message.topic})

    def start(self) -> "MessageRouter":
        self._thread = threading.Thread(target=self.run, name="ntfy-router", daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        self.messages.put(None)

    def join(self, timeout: Optional[float] = None) -> bool:
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()
