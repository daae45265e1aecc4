import threading
import time

from agrisense.errors import NetworkFailure
from agrisense.poller import FreshnessPoller, PollState, initial_load, LOAD_FAILED_MESSAGE
from agrisense.store import DataStore
from helpers import readings


def queue_fetch(*batches):
    """A fetch function returning (or raising) each batch in turn."""
    batches = list(batches)

    def fetch():
        b = batches.pop(0)
        if isinstance(b, Exception):
            raise b
        return b
    return fetch


def test_first_poll_updates_and_sorts_newest_first():
    store = DataStore()
    rs = readings("01-OCT-2025 10:00:00", "03-OCT-2025 10:00:00", "02-OCT-2025 10:00:00")
    poller = FreshnessPoller(store, fetch=queue_fetch(rs))

    assert poller.poll_once() is PollState.UPDATED
    assert [r.captured_at for r in store.readings] == [
        "03-OCT-2025 10:00:00", "02-OCT-2025 10:00:00", "01-OCT-2025 10:00:00"]
    assert poller.state is PollState.IDLE
    assert poller.cycles == 1


def test_unchanged_head_keeps_held_state_identical():
    store = DataStore()
    first = readings("02-OCT-2025 10:00:00", "01-OCT-2025 10:00:00")
    # same newest timestamp, different body: still "unchanged"
    second = readings("02-OCT-2025 10:00:00")
    poller = FreshnessPoller(store, fetch=queue_fetch(first, second))

    poller.poll_once()
    held = store.readings
    version = store.version
    assert poller.poll_once() is PollState.UNCHANGED
    assert store.readings is held
    assert store.version == version


def test_newer_head_replaces_state():
    updates = []
    store = DataStore()
    poller = FreshnessPoller(store, on_update=lambda: updates.append(store.latest.captured_at),
                             fetch=queue_fetch(readings("01-OCT-2025 10:00:00"),
                                               readings("01-OCT-2025 10:00:15", "01-OCT-2025 10:00:00")))
    poller.poll_once()
    assert poller.poll_once() is PollState.UPDATED
    assert len(store.readings) == 2
    assert updates == ["01-OCT-2025 10:00:00", "01-OCT-2025 10:00:15"]


def test_failed_poll_keeps_existing_data():
    store = DataStore()
    poller = FreshnessPoller(store, fetch=queue_fetch(readings("01-OCT-2025 10:00:00"),
                                                      NetworkFailure("boom")))
    poller.poll_once()
    held = store.readings
    assert poller.poll_once() is PollState.FAILED
    assert store.readings is held
    assert poller.last_error == "boom"
    assert poller.last_outcome is PollState.FAILED


def test_empty_fetch_does_not_clear_store():
    store = DataStore()
    poller = FreshnessPoller(store, fetch=queue_fetch(readings("01-OCT-2025 10:00:00"), []))
    poller.poll_once()
    assert poller.poll_once() is PollState.UNCHANGED
    assert len(store.readings) == 1


def test_overlapping_poll_is_skipped():
    started = threading.Event()
    release = threading.Event()
    calls = []

    def slow_fetch():
        calls.append(1)
        started.set()
        release.wait(5)
        return readings("01-OCT-2025 10:00:00")

    poller = FreshnessPoller(DataStore(), fetch=slow_fetch)
    t = threading.Thread(target=poller.poll_once)
    t.start()
    assert started.wait(5)
    assert poller.state is PollState.FETCHING
    assert poller.poll_once() is PollState.IDLE
    release.set()
    t.join(5)
    assert len(calls) == 1


def test_stop_discards_in_flight_result():
    started = threading.Event()
    release = threading.Event()

    def slow_fetch():
        started.set()
        release.wait(5)
        return readings("01-OCT-2025 10:00:00")

    store = DataStore()
    poller = FreshnessPoller(store, fetch=slow_fetch, interval=0.01)
    poller.start()
    assert started.wait(5)
    poller.stop()
    assert not poller.running
    release.set()
    poller.stop(timeout=5)
    assert store.readings == ()


def test_loop_survives_failures_and_stops():
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise NetworkFailure("first cycle fails")
        return readings("01-OCT-2025 10:00:00")

    store = DataStore()
    poller = FreshnessPoller(store, fetch=flaky, interval=0.01)
    poller.start()
    deadline = time.time() + 5
    while store.latest is None and time.time() < deadline:
        time.sleep(0.01)
    poller.stop(timeout=5)
    assert store.latest is not None
    assert len(calls) >= 2
    count = len(calls)
    time.sleep(0.05)
    assert len(calls) == count


def test_initial_load_all_or_nothing():
    store = DataStore()
    result = initial_load(store, fetch_sensor=lambda: readings("01-OCT-2025 10:00:00"),
                          fetch_weather=queue_fetch(NetworkFailure("weather down")))
    assert not result.ok
    assert result.message == LOAD_FAILED_MESSAGE
    assert isinstance(result.error, NetworkFailure)
    # the half that succeeded is still reported, but the store stays empty
    assert len(result.readings) == 1
    assert store.readings == () and store.weather is None


def test_initial_load_success(weather):
    store = DataStore()
    rs = readings("01-OCT-2025 10:00:00", "02-OCT-2025 10:00:00")
    result = initial_load(store, fetch_sensor=lambda: rs, fetch_weather=lambda: weather)
    assert result.ok
    assert store.weather is weather
    assert store.latest.captured_at == "02-OCT-2025 10:00:00"
    assert store.has_data()


def test_initial_load_with_garbled_timestamp(weather):
    store = DataStore()
    rs = readings("²7-OCT-2025 14:49:04", "02-OCT-2025 10:00:00")
    result = initial_load(store, fetch_sensor=lambda: rs, fetch_weather=lambda: weather)
    assert result.ok
    # the unparseable row sorts last
    assert [r.captured_at for r in store.readings] == [
        "02-OCT-2025 10:00:00", "²7-OCT-2025 14:49:04"]


def test_restart_discards_fetch_from_previous_run():
    started = threading.Event()
    release = threading.Event()
    calls = []

    def slow_fetch():
        calls.append(1)
        if len(calls) == 1:
            started.set()
            release.wait(5)
            return readings("01-OCT-2025 10:00:00")
        return []

    store = DataStore()
    poller = FreshnessPoller(store, fetch=slow_fetch, interval=0.01)
    poller.start()
    assert started.wait(5)
    first_run = poller._thread
    poller.stop()
    poller.start()
    assert poller.running
    release.set()
    first_run.join(5)
    poller.stop(timeout=5)
    assert store.readings == ()


def test_refresh_after_stop_is_discarded():
    store = DataStore()
    updates = []
    poller = FreshnessPoller(store, fetch=queue_fetch(readings("01-OCT-2025 10:00:00")),
                             on_update=lambda: updates.append(1))
    poller.stop()
    assert poller.poll_once() is PollState.UNCHANGED
    assert store.readings == ()
    assert updates == []


def test_store_drops_cancelled_replace():
    store = DataStore()
    assert not store.replace_if_newer(readings("01-OCT-2025 10:00:00"), cancelled=lambda: True)
    assert store.version == 0
    assert store.replace_if_newer(readings("01-OCT-2025 10:00:00"), cancelled=lambda: False)
