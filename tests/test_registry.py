import threading
import unittest

from fakes import FakeConnector


class TestSubscriptionRegistry(unittest.TestCase):
    def _registry(self):
        from ntfybot.kernel.registry import SubscriptionRegistry

        started = []

        def start(topic: str) -> FakeConnector:
            c = FakeConnector(topic)
            started.append(c)
            return c

        return SubscriptionRegistry(start), started

    def test_first_subscriber_starts_connector(self) -> None:
        reg, started = self._registry()
        self.assertTrue(reg.subscribe("https://ntfy.sh/t", "A"))
        self.assertFalse(reg.subscribe("https://ntfy.sh/t", "B"))
        self.assertEqual(len(started), 1)
        self.assertEqual(reg.channels_for("https://ntfy.sh/t"), ["A", "B"])
        self.assertTrue(reg.is_connected("https://ntfy.sh/t"))

    def test_subscribe_twice_is_idempotent(self) -> None:
        reg, started = self._registry()
        reg.subscribe("https://ntfy.sh/t", "A")
        reg.subscribe("https://ntfy.sh/t", "A")
        self.assertEqual(reg.channels_for("https://ntfy.sh/t"), ["A"])
        self.assertEqual(len(started), 1)

    def test_unsubscribe_unknown_is_noop(self) -> None:
        reg, started = self._registry()
        self.assertFalse(reg.unsubscribe("https://ntfy.sh/nope", "A"))
        reg.subscribe("https://ntfy.sh/t", "A")
        self.assertFalse(reg.unsubscribe("https://ntfy.sh/t", "B"))
        self.assertEqual(reg.channels_for("https://ntfy.sh/t"), ["A"])
        self.assertFalse(started[0].stopped)

    def test_last_unsubscribe_stops_connector(self) -> None:
        reg, started = self._registry()
        reg.subscribe("https://ntfy.sh/t", "A")
        reg.subscribe("https://ntfy.sh/t", "B")
        self.assertFalse(reg.unsubscribe("https://ntfy.sh/t", "A"))
        self.assertFalse(started[0].stopped)
        self.assertTrue(reg.unsubscribe("https://ntfy.sh/t", "B"))
        self.assertTrue(started[0].stopped)
        self.assertEqual(reg.channels_for("https://ntfy.sh/t"), [])
        self.assertEqual(reg.topics(), [])
        self.assertFalse(reg.is_connected("https://ntfy.sh/t"))

    def test_resubscribe_after_teardown_starts_new_connector(self) -> None:
        reg, started = self._registry()
        reg.subscribe("https://ntfy.sh/t", "A")
        reg.unsubscribe("https://ntfy.sh/t", "A")
        self.assertTrue(reg.subscribe("https://ntfy.sh/t", "A"))
        self.assertEqual(len(started), 2)
        self.assertTrue(started[0].stopped)
        self.assertFalse(started[1].stopped)

    def test_channels_for_returns_a_copy(self) -> None:
        reg, _ = self._registry()
        reg.subscribe("https://ntfy.sh/t", "A")
        snapshot = reg.channels_for("https://ntfy.sh/t")
        snapshot.append("X")
        self.assertEqual(reg.channels_for("https://ntfy.sh/t"), ["A"])

    def test_failed_connector_start_leaves_no_entry(self) -> None:
        from ntfybot.kernel.registry import SubscriptionRegistry

        def start(topic: str):
            raise RuntimeError("boom")

        reg = SubscriptionRegistry(start)
        with self.assertRaises(RuntimeError):
            reg.subscribe("https://ntfy.sh/t", "A")
        self.assertEqual(reg.topics(), [])
        self.assertFalse(reg.is_connected("https://ntfy.sh/t"))

    def test_close_stops_everything(self) -> None:
        reg, started = self._registry()
        reg.subscribe("https://ntfy.sh/a", "A")
        reg.subscribe("https://ntfy.sh/b", "A")
        stopped = reg.close()
        self.assertEqual(len(stopped), 2)
        self.assertTrue(all(c.stopped for c in started))
        self.assertEqual(reg.topics(), [])

    def test_concurrent_subscribers_share_one_connector(self) -> None:
        reg, started = self._registry()
        barrier = threading.Barrier(8)

        def worker(i: int) -> None:
            barrier.wait()
            reg.subscribe("https://ntfy.sh/t", f"C{i}")

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(started), 1)
        self.assertEqual(sorted(reg.channels_for("https://ntfy.sh/t")), sorted(f"C{i}" for i in range(8)))


if __name__ == "__main__":
    unittest.main()
