import threading
import unittest

from scholar_harvester.services.scholar.errors import Blocked, NetworkError, NotFound, RateLimited
from scholar_harvester.services.scholar.provider_selector import ProviderSelector, ProviderState


class _Calls:
    def __init__(self, result=None, error=None):
        self.count = 0
        self._result = result
        self._error = error

    def __call__(self):
        self.count += 1
        if self._error is not None:
            raise self._error
        return self._result


class TestProviderSelector(unittest.TestCase):
    def test_starts_on_primary(self):
        selector = ProviderSelector(alternate_enabled=True)
        primary = _Calls(result="primary")
        alternate = _Calls(result="alternate")

        self.assertEqual(selector.run("search_publications", primary, alternate), "primary")
        self.assertEqual(selector.state, ProviderState.PRIMARY)
        self.assertEqual(alternate.count, 0)

    def test_rate_limit_fails_over_transparently(self):
        selector = ProviderSelector(alternate_enabled=True)
        primary = _Calls(error=RateLimited("unusual traffic"))
        alternate = _Calls(result="alternate")

        self.assertEqual(selector.run("search_publications", primary, alternate), "alternate")
        self.assertEqual(selector.state, ProviderState.ALTERNATE)
        self.assertEqual(selector.transitions, 1)

    def test_alternate_state_skips_primary(self):
        selector = ProviderSelector(alternate_enabled=True)
        selector.run("search_publications", _Calls(error=Blocked("denied")), _Calls(result="a"))

        primary = _Calls(result="primary")
        self.assertEqual(selector.run("get_citations", primary, _Calls(result="b")), "b")
        self.assertEqual(primary.count, 0)

    def test_no_way_back_to_primary(self):
        selector = ProviderSelector(alternate_enabled=True)
        selector.trip("test")
        self.assertFalse(selector.trip("again"))

        for _ in range(3):
            selector.run("search_publications", _Calls(result="p"), _Calls(result="a"))
        self.assertEqual(selector.state, ProviderState.ALTERNATE)
        self.assertEqual(selector.transitions, 1)

    def test_error_propagates_without_alternate(self):
        selector = ProviderSelector(alternate_enabled=False)
        alternate = _Calls(result="alternate")

        with self.assertRaises(RateLimited):
            selector.run("search_publications", _Calls(error=RateLimited("x")), alternate)
        self.assertEqual(selector.state, ProviderState.PRIMARY)
        self.assertEqual(alternate.count, 0)

    def test_operation_without_alternate_mapping_stays_on_primary(self):
        selector = ProviderSelector(alternate_enabled=True)
        with self.assertRaises(Blocked):
            selector.run("get_author_profile", _Calls(error=Blocked("x")), None)
        self.assertEqual(selector.state, ProviderState.PRIMARY)

        selector.trip("other operation")
        primary = _Calls(result="profile")
        self.assertEqual(selector.run("get_author_profile", primary, None), "profile")
        self.assertEqual(primary.count, 1)

    def test_non_blocking_errors_do_not_trip(self):
        selector = ProviderSelector(alternate_enabled=True)
        for error in (NetworkError("reset"), NotFound("gone")):
            with self.assertRaises(type(error)):
                selector.run("search_publications", _Calls(error=error), _Calls(result="a"))
        self.assertEqual(selector.state, ProviderState.PRIMARY)
        self.assertEqual(selector.transitions, 0)

    def test_alternate_errors_propagate(self):
        selector = ProviderSelector(alternate_enabled=True)
        with self.assertRaises(NetworkError):
            selector.run(
                "search_publications",
                _Calls(error=RateLimited("x")),
                _Calls(error=NetworkError("SerpAPI error: bad key")),
            )
        self.assertEqual(selector.state, ProviderState.ALTERNATE)

    def test_concurrent_trips_transition_once(self):
        selector = ProviderSelector(alternate_enabled=True)
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait(timeout=2.0)
            selector.run("search_publications", _Calls(error=RateLimited("x")), _Calls(result="a"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=2.0)

        self.assertEqual(selector.transitions, 1)
        self.assertEqual(selector.state, ProviderState.ALTERNATE)


if __name__ == "__main__":
    unittest.main()
