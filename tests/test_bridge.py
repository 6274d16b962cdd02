import threading
import unittest

from fakes import FakeClient, wait_for


class TestNtfyBridge(unittest.TestCase):
    def setUp(self) -> None:
        from ntfybot.kernel.settings import BotConfig
        from ntfybot.ports.im.adapters.memory import MemoryAdapter
        from ntfybot.ports.im.bridge import NtfyBridge

        self.adapter = MemoryAdapter()
        self.client = FakeClient()
        self.bridge = NtfyBridge(BotConfig(token="mem"), self.adapter, client=self.client)

    def _say(self, text: str, channel: str = "C1"):
        from ntfybot.contracts.v1 import ChatMessageEvent

        ev = ChatMessageEvent(id="99", channel=channel, sender="u1", text=text)
        return self.bridge.handle_chat_message(ev)

    def test_messages_not_addressed_to_bot_are_ignored(self) -> None:
        self.assertFalse(self._say("subscribe mytopic"))
        self.assertFalse(self._say("hey @ntfybot subscribe mytopic"))
        self.assertFalse(self._say(""))
        self.assertEqual(self.client.connectors, [])
        self.assertEqual(self.adapter.sent, [])

    def test_subscribe_starts_one_connector_and_reacts(self) -> None:
        self.assertTrue(self._say("@ntfybot subscribe mytopic"))
        self._say("@ntfybot subscribe mytopic")
        self.assertEqual([c.topic for c in self.client.connectors], ["https://ntfy.sh/mytopic"])
        self.assertEqual(self.bridge.registry.channels_for("https://ntfy.sh/mytopic"), ["C1"])
        self.assertEqual(self.adapter.reactions, [("C1", "99", "✅"), ("C1", "99", "✅")])
        self.assertEqual(self.adapter.sent, [])

    def test_unsubscribe_unknown_topic_succeeds_without_change(self) -> None:
        self._say("@ntfybot subscribe mytopic")
        self._say("@ntfybot unsubscribe unknown-topic")
        self.assertEqual(self.bridge.registry.topics(), ["https://ntfy.sh/mytopic"])
        self.assertFalse(self.client.connectors[0].stopped)
        self.assertEqual(len(self.adapter.reactions), 2)

    def test_last_unsubscribe_stops_connector(self) -> None:
        self._say("@ntfybot subscribe mytopic", channel="A")
        self._say("@ntfybot subscribe mytopic", channel="B")
        self._say("@ntfybot unsubscribe mytopic", channel="A")
        self.assertFalse(self.client.connectors[0].stopped)
        self._say("@ntfybot unsubscribe mytopic", channel="B")
        self.assertTrue(self.client.connectors[0].stopped)
        self.assertEqual(self.bridge.registry.channels_for("https://ntfy.sh/mytopic"), [])

    def test_publish_passes_options_and_reacts(self) -> None:
        self._say("@ntfybot publish mytopic hello world --title=Hi --tags=a,b -p high")
        self.assertEqual(self.client.published, [{
            "topic": "https://ntfy.sh/mytopic",
            "message": "hello world",
            "title": "Hi",
            "priority": "high",
            "tags": ["a", "b"],
        }])
        self.assertEqual(self.adapter.reactions, [("C1", "99", "✅")])

    def test_publish_failure_is_replied(self) -> None:
        from ntfybot.ports.ntfy.client import PublishError

        self.client.publish_error = PublishError("unexpected response 500 from server", status_code=500)
        self._say("@ntfybot publish mytopic hello")
        self.assertEqual(self.adapter.sent_to("C1"), ["unexpected response 500 from server"])
        self.assertEqual(self.adapter.reactions, [])
        self.assertEqual(self.bridge.registry.topics(), [])

    def test_unknown_command_is_replied(self) -> None:
        self._say("@ntfybot frobnicate")
        self.assertEqual(self.adapter.sent_to("C1"), ["command not found: frobnicate"])

    def test_argument_error_is_replied(self) -> None:
        self._say("@ntfybot subscribe")
        self.assertEqual(self.adapter.sent_to("C1"), ["missing topic, see help for usage details"])
        self._say('@ntfybot publish t "unterminated')
        self.assertTrue(self.adapter.sent_to("C1")[-1].startswith("cannot parse command"))

    def test_bare_mention_replies_with_help(self) -> None:
        self._say("@ntfybot")
        self.assertIn("@ntfybot subscribe <topic>", self.adapter.sent_to("C1")[0])

    def test_reply_failure_does_not_raise(self) -> None:
        self.adapter.failing_channels.add("C1")
        self._say("@ntfybot frobnicate")
        self._say("@ntfybot subscribe mytopic")
        self.assertEqual(self.bridge.registry.channels_for("https://ntfy.sh/mytopic"), ["C1"])


class TestNtfyBridgeRun(unittest.TestCase):
    def test_end_to_end_with_memory_adapter(self) -> None:
        from ntfybot.contracts.v1 import NotificationMessage
        from ntfybot.kernel.settings import BotConfig
        from ntfybot.ports.im.adapters.memory import MemoryAdapter
        from ntfybot.ports.im.bridge import NtfyBridge

        adapter = MemoryAdapter()
        client = FakeClient()
        bridge = NtfyBridge(BotConfig(token="mem"), adapter, client=client)

        t = threading.Thread(target=bridge.run, daemon=True)
        t.start()

        adapter.inject("A", "@ntfybot subscribe alerts")
        adapter.inject("B", "@ntfybot subscribe alerts")
        self.assertTrue(wait_for(lambda: len(adapter.reactions) == 2))

        client.messages.put(NotificationMessage(
            id="m1", event="message", topic="https://ntfy.sh/alerts", message="disk full",
        ))
        self.assertTrue(wait_for(lambda: len(adapter.sent) == 2))
        self.assertEqual(adapter.sent_to("A"), ["**ntfy.sh/alerts**\ndisk full"])
        self.assertEqual(adapter.sent_to("B"), ["**ntfy.sh/alerts**\ndisk full"])

        bridge.stop()
        t.join(3)
        self.assertFalse(t.is_alive())
        self.assertTrue(client.connectors[0].stopped)
        self.assertTrue(client.closed)
        self.assertEqual(bridge.registry.topics(), [])

    def test_adapter_error_event_is_fatal(self) -> None:
        from ntfybot.kernel.settings import BotConfig
        from ntfybot.ports.im.adapters.base import ChatAdapterError
        from ntfybot.ports.im.adapters.memory import MemoryAdapter
        from ntfybot.ports.im.bridge import NtfyBridge

        adapter = MemoryAdapter()
        client = FakeClient()
        bridge = NtfyBridge(BotConfig(token="mem"), adapter, client=client)
        adapter.inject("A", "@ntfybot subscribe alerts")
        adapter.inject_error("gateway closed")

        with self.assertRaises(ChatAdapterError):
            bridge.run()
        self.assertTrue(client.connectors[0].stopped)

    def test_stop_before_run_returns_immediately(self) -> None:
        from ntfybot.kernel.settings import BotConfig
        from ntfybot.ports.im.adapters.memory import MemoryAdapter
        from ntfybot.ports.im.bridge import NtfyBridge

        bridge = NtfyBridge(BotConfig(token="mem"), MemoryAdapter(), client=FakeClient())
        bridge.stop()
        bridge.run()

    def test_request_stop_does_not_block_on_held_queue_mutex(self) -> None:
        import queue

        from ntfybot.kernel.settings import BotConfig
        from ntfybot.ports.im.adapters.memory import MemoryAdapter
        from ntfybot.ports.im.bridge import NtfyBridge

        bridge = NtfyBridge(BotConfig(token="mem"), MemoryAdapter(), client=FakeClient())
        events: queue.Queue = queue.Queue()
        bridge._events = events

        # A signal handler interrupting get() runs while the mutex is held.
        with events.mutex:
            bridge.request_stop()
        self.assertIsNone(events.get(timeout=2))

    def test_request_stop_ends_run(self) -> None:
        from ntfybot.kernel.settings import BotConfig
        from ntfybot.ports.im.adapters.memory import MemoryAdapter
        from ntfybot.ports.im.bridge import NtfyBridge

        adapter = MemoryAdapter()
        client = FakeClient()
        bridge = NtfyBridge(BotConfig(token="mem"), adapter, client=client)
        t = threading.Thread(target=bridge.run, daemon=True)
        t.start()
        adapter.inject("A", "@ntfybot subscribe alerts")
        self.assertTrue(wait_for(lambda: len(adapter.reactions) == 1))

        bridge.request_stop()
        t.join(3)
        self.assertFalse(t.is_alive())
        self.assertTrue(client.connectors[0].stopped)


class TestCreateAdapter(unittest.TestCase):
    def test_platform_from_token(self) -> None:
        from ntfybot.kernel.settings import BotConfig, ConfigError
        from ntfybot.ports.im.adapters import DiscordAdapter, MemoryAdapter
        from ntfybot.ports.im.bridge import create_adapter

        self.assertIsInstance(create_adapter(BotConfig(token="mem-test")), MemoryAdapter)
        self.assertIsInstance(create_adapter(BotConfig(token="MTIz.abc.def")), DiscordAdapter)
        with self.assertRaises(ConfigError):
            create_adapter(BotConfig(token="xoxb-123"))


if __name__ == "__main__":
    unittest.main()
