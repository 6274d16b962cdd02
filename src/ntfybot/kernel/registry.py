"""
Subscription registry.

Owns which chat channels want which topic, and the one live connector per
topic. Both maps change together under a single lock: a topic has a
connector exactly when it has at least one channel.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Protocol


logger = logging.getLogger("ntfybot.registry")


class Connector(Protocol):
    topic: str

    def stop(self) -> None: ...


ConnectorFactory = Callable[[str], Connector]


class SubscriptionRegistry:
    """Topic -> channels bookkeeping with per-topic connector lifecycle."""

    def __init__(self, start_connector: ConnectorFactory):
        self._start_connector = start_connector
        self._lock = threading.Lock()
        self._channels: Dict[str, List[str]] = {}
        self._connectors: Dict[str, Connector] = {}

    def subscribe(self, topic: str, channel: str) -> bool:
        """Add a channel to a topic. Returns True if a connector was started."""
        with self._lock:
            channels = self._channels.get(topic)
            if channels is not None:
                if channel not in channels:
                    channels.append(channel)
                    logger.info(f"[subscribe] {channel} joined {topic}", extra={"topic": topic, "channel": channel})
                return False

            connector = self._start_connector(topic)
            self._channels[topic] = [channel]
            self._connectors[topic] = connector
            logger.info(f"[subscribe] {channel} is first subscriber of {topic}; connecting", extra={"topic": topic, "channel": channel})
            return True

    def unsubscribe(self, topic: str, channel: str) -> bool:
        """Remove a channel from a topic. Returns True if the connector was stopped."""
        with self._lock:
            channels = self._channels.get(topic)
            if channels is None or channel not in channels:
                return False
            channels.remove(channel)
            logger.info(f"[unsubscribe] {channel} left {topic}", extra={"topic": topic, "channel": channel})
            if channels:
                return False

            del self._channels[topic]
            connector = self._connectors.pop(topic)
            connector.stop()
            logger.info(f"[unsubscribe] no more subscriptions to {topic}; connection terminated", extra={"topic": topic})
            return True

    def channels_for(self, topic: str) -> List[str]:
        with self._lock:
            return list(self._channels.get(topic, ()))

    def topics(self) -> List[str]:
        with self._lock:
            return list(self._channels)

    def is_connected(self, topic: str) -> bool:
        with self._lock:
            return topic in self._connectors

    def close(self) -> List[Connector]:
        """Stop every connector and forget all subscriptions.

        Returns the stopped connectors so the caller can wait for them.
        """
        with self._lock:
            connectors = list(self._connectors.values())
            self._connectors.clear()
            self._channels.clear()
            for connector in connectors:
                connector.stop()
        if connectors:
            logger.info(f"[close] stopped {len(connectors)} connector(s)")
        return connectors
