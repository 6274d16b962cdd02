from __future__ import annotations

from typing import Union

from pydantic import BaseModel, ConfigDict


class ChatMessageEvent(BaseModel):
    """An inbound chat message, as delivered by an IM adapter."""

    id: str  # platform message id (used for reactions)
    channel: str
    sender: str
    text: str

    model_config = ConfigDict(extra="forbid", frozen=True)


class ChatErrorEvent(BaseModel):
    """The adapter lost its platform connection for good."""

    error: str

    model_config = ConfigDict(extra="forbid", frozen=True)


ChatEvent = Union[ChatMessageEvent, ChatErrorEvent]
