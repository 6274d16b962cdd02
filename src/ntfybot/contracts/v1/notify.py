"""Notification contracts.

One record of an ntfy `/json` subscription stream. The server emits one
JSON object per line; only `event == "message"` carries user content,
the rest are connection control events:

- open: stream established
- keepalive: periodic heartbeat
- poll_request: hint for poll-only clients
- message: a published message
"""
from __future__ import annotations

import json
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


MESSAGE_EVENT = "message"


class MessageDecodeError(ValueError):
    """A stream line could not be decoded into a NotificationMessage."""


class NotificationMessage(BaseModel):
    """A decoded ntfy stream record."""

    event: str
    topic: str = ""

    # Content (message events only)
    message: str = ""
    title: Optional[str] = None
    priority: Optional[int] = None
    tags: List[str] = Field(default_factory=list)
    click: Optional[str] = None

    # Server metadata
    id: str = ""
    time: int = 0

    model_config = ConfigDict(extra="ignore")

    @property
    def is_message(self) -> bool:
        return self.event == MESSAGE_EVENT

    @classmethod
    def from_json_line(cls, line: str) -> "NotificationMessage":
        try:
            doc = json.loads(line)
        except json.JSONDecodeError as e:
            raise MessageDecodeError(f"invalid json: {e}") from e
        if not isinstance(doc, dict):
            raise MessageDecodeError(f"expected object, got {type(doc).__name__}")
        try:
            return cls.model_validate(doc)
        except ValidationError as e:
            raise MessageDecodeError(str(e)) from e
