import threading
import time
import unittest

from scholar_harvester.services.scholar.cancel import (
    HarvestCancelled,
    cancelled,
    deadline_event,
    raise_if_cancelled,
    sleep_with_cancel,
)


class TestCancel(unittest.TestCase):
    def test_cancelled_accepts_none_and_events(self):
        event = threading.Event()
        self.assertFalse(cancelled(None))
        self.assertFalse(cancelled(event))
        event.set()
        self.assertTrue(cancelled(event))
        with self.assertRaises(HarvestCancelled):
            raise_if_cancelled(event)

    def test_sleep_with_cancel_stops_early(self):
        event = threading.Event()
        threading.Timer(0.1, event.set).start()

        started = time.monotonic()
        with self.assertRaises(HarvestCancelled):
            sleep_with_cancel(5.0, event)
        self.assertLess(time.monotonic() - started, 2.0)

    def test_non_positive_sleep_returns_immediately(self):
        event = threading.Event()
        event.set()
        sleep_with_cancel(0, event)

    def test_deadline_event_fires(self):
        event = deadline_event(0.05)
        self.assertTrue(event.wait(timeout=2.0))

    def test_deadline_timer_is_cancelled_on_exit(self):
        with deadline_event(0.2) as deadline:
            timer = deadline._timer
        timer.join(timeout=2.0)

        self.assertFalse(timer.is_alive())
        self.assertFalse(deadline.is_set())


if __name__ == "__main__":
    unittest.main()
