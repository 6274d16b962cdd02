"""
Discord adapter for the ntfy bridge.

Uses discord.py library with Gateway connection for both inbound and outbound.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import re
import threading
from typing import Any, Awaitable, Callable, Optional

from ....contracts.v1 import ChatErrorEvent, ChatEvent, ChatMessageEvent
from .base import ChatAdapterError, IMAdapter

# Discord limits
DISCORD_MAX_MESSAGE_LENGTH = 2000

CONNECT_TIMEOUT = 30
CALL_TIMEOUT = 10

logger = logging.getLogger("ntfybot.discord")


class DiscordAdapter(IMAdapter):
    """
    Discord adapter using discord.py Gateway.

    Runs the async event loop in a background thread; inbound messages are
    translated to ChatMessageEvent and put on the event queue.
    """

    platform = "discord"

    def __init__(
        self,
        token: str,
        max_chars: int = DISCORD_MAX_MESSAGE_LENGTH,
    ):
        self.token = token
        self.max_chars = max_chars

        self._client: Any = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._events: "queue.Queue[Optional[ChatEvent]]" = queue.Queue()
        self._ready_event = threading.Event()
        self._startup_error: Optional[BaseException] = None
        self._closing = False

    def connect(self) -> "queue.Queue[Optional[ChatEvent]]":
        """
        Initialize Discord client and start event loop in background thread.

        Blocks until the gateway reports ready.
        """
        try:
            import discord
        except ImportError as e:
            raise ChatAdapterError("discord.py not installed. Run: pip install discord.py") from e

        intents = discord.Intents.default()
        intents.guild_messages = True
        intents.message_content = True
        self._client = discord.Client(intents=intents)

        @self._client.event
        async def on_ready():
            user = self._client.user
            logger.info(f"[connect] Discord connected as user {user.name}/{user.id}", extra={"platform": self.platform})
            self._ready_event.set()

        @self._client.event
        async def on_message(message):
            self._handle_message(message)

        def run_loop():
            self._loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self._loop)
            try:
                self._loop.run_until_complete(self._client.start(self.token))
            except Exception as e:
                self._startup_error = e
                logger.error(f"[error] Discord client error: {e}", extra={"platform": self.platform})
            finally:
                self._loop.close()
                if self._ready_event.is_set() and not self._closing:
                    self._events.put(ChatErrorEvent(error=f"discord connection lost: {self._startup_error or 'closed'}"))
                self._ready_event.set()

        self._thread = threading.Thread(target=run_loop, name="discord-gateway", daemon=True)
        self._thread.start()

        if not self._ready_event.wait(timeout=CONNECT_TIMEOUT):
            raise ChatAdapterError("Discord connection timeout")
        if self._startup_error is not None or self._client.user is None:
            raise ChatAdapterError(f"Discord connection failed: {self._startup_error or 'unexpected internal state'}")
        return self._events

    def _handle_message(self, message: Any) -> None:
        """Translate an incoming Discord message into a chat event."""
        if self._client.user is None or message.author.id == self._client.user.id:
            return

        text = message.content or ""
        if not text:
            return

        # Discord sends both <@id> and <@!id>; commands compare against mention_self().
        text = re.sub(rf"^\s*<@!?{self._client.user.id}>", self.mention_self(), text)

        self._events.put(ChatMessageEvent(
            id=str(message.id),
            channel=str(message.channel.id),
            sender=str(message.author.id),
            text=text,
        ))
        logger.debug(f"[inbound] channel={message.channel.id} user={message.author.id} text={text[:50]}...", extra={"platform": self.platform})

    def _call(self, make_coro: Callable[[], Awaitable[Any]]) -> Any:
        if self._client is None or self._loop is None or self._loop.is_closed():
            raise ChatAdapterError("Discord is not connected")
        future = asyncio.run_coroutine_threadsafe(make_coro(), self._loop)
        try:
            return future.result(timeout=CALL_TIMEOUT)
        except ChatAdapterError:
            raise
        except Exception as e:
            raise ChatAdapterError(str(e) or type(e).__name__) from e

    async def _channel(self, channel: str) -> Any:
        try:
            cid = int(channel)
        except ValueError:
            raise ChatAdapterError(f"invalid channel id {channel}")
        ch = self._client.get_channel(cid)
        if ch is None:
            ch = await self._client.fetch_channel(cid)
        return ch

    def send(self, channel: str, text: str) -> None:
        if not text:
            return
        safe_text = self.summarize(text, self.max_chars)

        async def do_send():
            ch = await self._channel(channel)
            await ch.send(safe_text)

        self._call(do_send)

    def react(self, channel: str, message_id: str, emoji: str) -> None:
        async def do_react():
            ch = await self._channel(channel)
            await ch.get_partial_message(int(message_id)).add_reaction(emoji)

        self._call(do_react)

    def mention_self(self) -> str:
        if self._client is None or self._client.user is None:
            raise ChatAdapterError("Discord is not connected")
        return f"<@!{self._client.user.id}>"

    def close(self) -> None:
        """Disconnect from Discord."""
        self._closing = True
        if self._client and self._loop and not self._loop.is_closed():
            try:
                future = asyncio.run_coroutine_threadsafe(self._client.close(), self._loop)
                future.result(timeout=5)
            except Exception as e:
                logger.warning(f"[disconnect] {e}", extra={"platform": self.platform})
        if self._thread is not None:
            self._thread.join(timeout=5)
        logger.info("[disconnect] Disconnected", extra={"platform": self.platform})
