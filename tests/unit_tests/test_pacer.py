import random
import threading
import unittest
from unittest.mock import patch

from scholar_harvester.services.scholar.cancel import HarvestCancelled
from scholar_harvester.services.scholar.pacer import Pacer


class TestPacerAcquire(unittest.TestCase):
    def test_first_request_is_not_delayed(self):
        pacer = Pacer(min_delay_seconds=1.0, max_delay_seconds=1.0)

        with patch("scholar_harvester.services.scholar.pacer.time.monotonic", return_value=100.0), patch(
            "scholar_harvester.services.scholar.pacer.sleep_with_cancel"
        ) as sleep_with_cancel:
            slept = pacer.acquire()

        self.assertEqual(slept, 0.0)
        self.assertAlmostEqual(sleep_with_cancel.call_args.args[0], 0.0, places=6)

    def test_sleeps_only_the_remaining_part_of_the_delay(self):
        pacer = Pacer(min_delay_seconds=2.0, max_delay_seconds=2.0)

        with patch("scholar_harvester.services.scholar.pacer.time.monotonic") as monotonic, patch(
            "scholar_harvester.services.scholar.pacer.sleep_with_cancel"
        ) as sleep_with_cancel:
            monotonic.side_effect = [0.0, 0.5]
            pacer.acquire()
            pacer.acquire()

        self.assertAlmostEqual(sleep_with_cancel.call_args_list[1].args[0], 1.5, places=6)

    def test_no_extra_wait_when_interval_already_elapsed(self):
        pacer = Pacer(min_delay_seconds=1.0, max_delay_seconds=5.0, rng=random.Random(7))

        with patch("scholar_harvester.services.scholar.pacer.time.monotonic") as monotonic, patch(
            "scholar_harvester.services.scholar.pacer.sleep_with_cancel"
        ) as sleep_with_cancel:
            monotonic.side_effect = [0.0, 30.0]
            pacer.acquire()
            slept = pacer.acquire()

        self.assertEqual(slept, 0.0)
        self.assertAlmostEqual(sleep_with_cancel.call_args_list[1].args[0], 0.0, places=6)

    def test_drawn_delay_stays_within_bounds(self):
        pacer = Pacer(min_delay_seconds=1.0, max_delay_seconds=5.0, rng=random.Random(3))

        with patch("scholar_harvester.services.scholar.pacer.time.monotonic", return_value=0.0), patch(
            "scholar_harvester.services.scholar.pacer.sleep_with_cancel"
        ):
            pacer.acquire()
            previous = 0.0
            for _ in range(20):
                total = pacer.acquire()
                gap = total - previous
                previous = total
                self.assertGreaterEqual(gap, 1.0)
                self.assertLessEqual(gap, 5.0)

    def test_concurrent_callers_reserve_distinct_slots(self):
        pacer = Pacer(min_delay_seconds=1.0, max_delay_seconds=1.0)
        sleeps = []
        lock = threading.Lock()

        def record_sleep(seconds, _cancel_event):
            with lock:
                sleeps.append(round(seconds, 6))

        with patch("scholar_harvester.services.scholar.pacer.time.monotonic", return_value=0.0), patch(
            "scholar_harvester.services.scholar.pacer.sleep_with_cancel", side_effect=record_sleep
        ):
            threads = [threading.Thread(target=pacer.acquire) for _ in range(4)]
            for t in threads:
                t.start()
            for t in threads:
                t.join(timeout=2.0)

        self.assertEqual(sorted(sleeps), [0.0, 1.0, 2.0, 3.0])

    def test_cancelled_wait_raises_and_slot_stays_spent(self):
        pacer = Pacer(min_delay_seconds=5.0, max_delay_seconds=5.0)
        cancel_event = threading.Event()
        cancel_event.set()

        pacer.acquire()
        with self.assertRaises(HarvestCancelled):
            pacer.acquire(cancel_event)

        with patch("scholar_harvester.services.scholar.pacer.sleep_with_cancel") as sleep_with_cancel:
            pacer.acquire()
        # Two reserved slots ahead of "now": the cancelled one is not handed out again.
        self.assertGreater(sleep_with_cancel.call_args.args[0], 5.0)


class TestPacerBackoff(unittest.TestCase):
    def test_exponential_growth(self):
        pacer = Pacer(min_delay_seconds=1.0, max_delay_seconds=5.0, backoff_multiplier=2.0)
        self.assertEqual([pacer.backoff_delay(a) for a in range(4)], [1.0, 2.0, 4.0, 8.0])

    def test_capped_at_ten_max_delays(self):
        pacer = Pacer(min_delay_seconds=1.0, max_delay_seconds=1.5, backoff_multiplier=2.0)
        self.assertEqual(pacer.backoff_delay(10), 15.0)


if __name__ == "__main__":
    unittest.main()
