"""
ntfy HTTP client.

- publish: POST <topic_url> with a plain-text body
- connector: one streaming StreamConnector per topic, all feeding `messages`
"""

from __future__ import annotations

import logging
import queue
from typing import Any, Callable, Iterable, Optional

import requests

from ...contracts.v1 import NotificationMessage
from .connector import RETRY_DELAY, StreamConnector


logger = logging.getLogger("ntfybot.client")

PUBLISH_TIMEOUT = 15


class PublishError(Exception):
    """Publishing to a topic failed (network error or non-2xx response)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NtfyClient:
    def __init__(
        self,
        *,
        retry_delay: float = RETRY_DELAY,
        connect_timeout: float = 5.0,
        read_timeout: Optional[float] = 60.0,
        session_factory: Callable[[], Any] = requests.Session,
    ):
        self.messages: "queue.Queue[Optional[NotificationMessage]]" = queue.Queue()
        self.retry_delay = retry_delay
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self._session_factory = session_factory
        self._session = session_factory()

    def publish(
        self,
        topic_url: str,
        message: str,
        *,
        title: str = "",
        priority: str = "",
        tags: Iterable[str] = (),
    ) -> None:
        headers = {}
        if title:
            headers["X-Title"] = title
        if priority:
            headers["X-Priority"] = str(priority)
        tag_list = [t.strip() for t in tags if t and t.strip()]
        if tag_list:
            headers["X-Tags"] = ",".join(tag_list)

        try:
            resp = self._session.post(
                topic_url,
                data=message.encode("utf-8"),
                headers=headers,
                timeout=PUBLISH_TIMEOUT,
            )
        except requests.RequestException as e:
            raise PublishError(f"cannot publish to {topic_url}: {e}") from e

        if resp.status_code > 299:
            raise PublishError(
                f"unexpected response {resp.status_code} from server",
                status_code=resp.status_code,
            )
        logger.info(f"[publish] {topic_url} len={len(message)}", extra={"topic": topic_url})

    def connector(self, topic_url: str) -> StreamConnector:
        """Create and start the streaming connector for a topic."""
        return StreamConnector(
            topic_url,
            self.messages,
            retry_delay=self.retry_delay,
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            session_factory=self._session_factory,
        ).start()

    def close(self) -> None:
        self._session.close()
