import threading
import unittest

from core.timers import ThreadScheduler


class TestThreadScheduler(unittest.TestCase):
    def setUp(self):
        self.scheduler = ThreadScheduler()

    def test_call_later_fires_with_args(self):
        fired = threading.Event()
        seen = []

        def _cb(a, b):
            seen.append((a, b))
            fired.set()

        handle = self.scheduler.call_later(0.01, _cb, 1, "x")
        self.assertTrue(fired.wait(2.0))
        handle.join(timeout=2.0)
        self.assertEqual(seen, [(1, "x")])
        self.assertFalse(handle.cancelled)

    def test_cancelled_call_later_never_fires(self):
        fired = threading.Event()
        handle = self.scheduler.call_later(0.2, fired.set)
        handle.cancel()
        handle.join(timeout=2.0)
        self.assertTrue(handle.cancelled)
        self.assertFalse(fired.is_set())

    def test_call_every_stops_after_cancel(self):
        ticks = []
        three = threading.Event()

        def _tick():
            ticks.append(1)
            if len(ticks) >= 3:
                three.set()

        handle = self.scheduler.call_every(0.01, _tick)
        self.assertTrue(three.wait(2.0))
        handle.cancel()
        handle.join(timeout=2.0)
        count = len(ticks)
        threading.Event().wait(0.05)
        self.assertEqual(len(ticks), count)

    def test_failing_periodic_callback_is_logged_and_stops(self):
        calls = []

        def _boom():
            calls.append(1)
            raise RuntimeError("tick failed")

        with self.assertLogs("dropcam.timers", level="ERROR"):
            handle = self.scheduler.call_every(0.01, _boom)
            handle.join(timeout=2.0)
        self.assertTrue(handle.cancelled)
        self.assertEqual(calls, [1])

    def test_failing_one_shot_callback_is_logged(self):
        def _boom():
            raise RuntimeError("start failed")

        with self.assertLogs("dropcam.timers", level="ERROR"):
            handle = self.scheduler.call_later(0.0, _boom)
            handle.join(timeout=2.0)

    def test_call_every_rejects_non_positive_interval(self):
        with self.assertRaises(ValueError):
            self.scheduler.call_every(0.0, lambda: None)


if __name__ == "__main__":
    unittest.main()
