"""
ntfy IM Bridge - Core logic.

Handles:
- Inbound: chat messages addressed to the bot -> commands
- Outbound: ntfy topic streams -> router -> subscribed chat channels
- Lifecycle: connect, run until stopped, cancel every connector on exit
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Optional

from ...contracts.v1 import ChatErrorEvent, ChatEvent, ChatMessageEvent
from ...daemon.router import MessageRouter
from ...kernel.registry import SubscriptionRegistry
from ...kernel.settings import BotConfig, ConfigError, Platform
from ..ntfy.client import NtfyClient, PublishError
from .adapters.base import ChatAdapterError, IMAdapter
from .adapters.discord import DiscordAdapter
from .adapters.memory import MemoryAdapter
from .commands import (
    CommandError,
    CommandType,
    ParsedCommand,
    format_help,
    parse_command,
    split_args,
)


logger = logging.getLogger("ntfybot.bridge")

ACK_EMOJI = "✅"

# Grace period for connector threads on shutdown.
JOIN_TIMEOUT = 2.0


def create_adapter(config: BotConfig) -> IMAdapter:
    platform = config.platform
    if platform == Platform.DISCORD:
        return DiscordAdapter(token=config.token)
    if platform == Platform.MEM:
        return MemoryAdapter()
    raise ConfigError(f"invalid type: {platform.value} is not supported")


class NtfyBridge:
    """
    Main bridge class.

    Coordinates:
    - Adapter (platform-specific communication)
    - Subscription registry (topic -> channels, one connector per topic)
    - Message router (ntfy messages -> chat)
    - Command processing
    """

    def __init__(
        self,
        config: BotConfig,
        adapter: IMAdapter,
        client: Optional[NtfyClient] = None,
    ):
        self.config = config
        self.adapter = adapter
        self.client = client or NtfyClient(
            retry_delay=config.retry_delay,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
        )
        self.registry = SubscriptionRegistry(self.client.connector)
        self.router = MessageRouter(self.registry, adapter, self.client.messages)

        self._events: "Optional[queue.Queue[Optional[ChatEvent]]]" = None
        self._stop = threading.Event()

    def run(self) -> None:
        """
        Run the bridge until stop() is called.

        Raises ChatAdapterError if the chat platform cannot be reached or
        the adapter reports a fatal error.
        """
        events = self.adapter.connect()
        self._events = events
        if self._stop.is_set():
            events.put(None)

        self.router.start()
        logger.info(
            f"[start] bridge started, default server {self.config.base_url}",
            extra={"platform": self.adapter.platform},
        )
        try:
            self._handle_chat_events(events)
        finally:
            self._shutdown()

    def stop(self) -> None:
        """Request shutdown from any thread."""
        self._stop.set()
        if self._events is not None:
            self._events.put(None)

    def request_stop(self) -> None:
        """
        Request shutdown from a signal handler.

        The handler runs on the main thread, which may hold the event
        queue's mutex inside get(); the wakeup is posted by a helper thread.
        """
        self._stop.set()
        threading.Thread(target=self.stop, name="ntfybot-stop", daemon=True).start()

    def _shutdown(self) -> None:
        connectors = self.registry.close()
        self.router.stop()
        for connector in connectors:
            join = getattr(connector, "join", None)
            if join is not None and not join(JOIN_TIMEOUT):
                logger.warning(f"[stop] connector for {connector.topic} still running", extra={"topic": connector.topic})
        self.router.join(JOIN_TIMEOUT)
        try:
            self.adapter.close()
        except Exception as e:
            logger.warning(f"[stop] adapter close failed: {e}", extra={"platform": self.adapter.platform})
        self.client.close()
        logger.info("[stop] bridge stopped")

    def _handle_chat_events(self, events: "queue.Queue[Optional[ChatEvent]]") -> None:
        while True:
            ev = events.get()
            if ev is None or self._stop.is_set():
                return
            if isinstance(ev, ChatErrorEvent):
                raise ChatAdapterError(ev.error)
            if not isinstance(ev, ChatMessageEvent):
                continue
            try:
                self.handle_chat_message(ev)
            except Exception:
                logger.exception("[command] unexpected error", extra={"channel": ev.channel})

    def handle_chat_message(self, ev: ChatMessageEvent) -> bool:
        """Run the command in a chat message. Returns False if the bot was not addressed."""
        fields = ev.text.split()
        if not fields or fields[0] != self.adapter.mention_self():
            return False

        logger.debug(f"[command] channel={ev.channel} sender={ev.sender} text={ev.text}", extra={"channel": ev.channel})
        try:
            args = split_args(ev.text)
            cmd = parse_command(args[1:], base_url=self.config.base_url)
        except CommandError as e:
            self._reply(ev.channel, str(e))
            return True

        self.dispatch(ev, cmd)
        return True

    def dispatch(self, ev: ChatMessageEvent, cmd: ParsedCommand) -> None:
        if cmd.type == CommandType.PUBLISH:
            self._handle_publish(ev, cmd)
        elif cmd.type == CommandType.SUBSCRIBE:
            self._handle_subscribe(ev, cmd)
        elif cmd.type == CommandType.UNSUBSCRIBE:
            self._handle_unsubscribe(ev, cmd)
        elif cmd.type == CommandType.HELP:
            self._reply(ev.channel, format_help(self.adapter.mention_self(), self.config.base_url))
        else:
            self._reply(ev.channel, f"command not found: {cmd.name}")

    # =========================================================================
    # Command Handlers
    # =========================================================================

    def _handle_publish(self, ev: ChatMessageEvent, cmd: ParsedCommand) -> None:
        logger.info(f"[publish] {cmd.topic} from channel {ev.channel}", extra={"topic": cmd.topic, "channel": ev.channel})
        try:
            self.client.publish(
                cmd.topic,
                cmd.message,
                title=cmd.title,
                priority=cmd.priority,
                tags=cmd.tags,
            )
        except PublishError as e:
            self._reply(ev.channel, str(e))
            return
        self._ack(ev)

    def _handle_subscribe(self, ev: ChatMessageEvent, cmd: ParsedCommand) -> None:
        logger.info(f"[subscribe] {cmd.topic} in channel {ev.channel}", extra={"topic": cmd.topic, "channel": ev.channel})
        self.registry.subscribe(cmd.topic, ev.channel)
        self._ack(ev)

    def _handle_unsubscribe(self, ev: ChatMessageEvent, cmd: ParsedCommand) -> None:
        logger.info(f"[unsubscribe] {cmd.topic} in channel {ev.channel}", extra={"topic": cmd.topic, "channel": ev.channel})
        self.registry.unsubscribe(cmd.topic, ev.channel)
        self._ack(ev)

    def _reply(self, channel: str, text: str) -> None:
        try:
            self.adapter.send(channel, text)
        except Exception as e:
            logger.warning(f"[reply] sending to {channel} failed: {e}", extra={"channel": channel})

    def _ack(self, ev: ChatMessageEvent) -> None:
        try:
            self.adapter.react(ev.channel, ev.id, ACK_EMOJI)
        except Exception as e:
            logger.warning(f"[ack] reaction in {ev.channel} failed: {e}", extra={"channel": ev.channel, "message_id": ev.id})
