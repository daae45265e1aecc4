"""
Keeps the soil readings in the store fresh.

Two entry points:

1.  initial_load() fetches sensor and weather data side by side and fills
    the store only if both succeed.
2.  FreshnessPoller runs a single background thread that re-fetches the
    sensor collection on a fixed interval and replaces the held readings
    only when the newest `captured_at` has changed. A failed cycle is
    logged and the loop carries on; the next tick is the retry.
"""

import time
import logging
import threading
from enum import Enum
from dataclasses import dataclass
from concurrent.futures import ThreadPoolExecutor

from .gateway import fetch_sensor_readings, fetch_weather
from .models import SensorReading, WeatherSnapshot
from .store import DataStore
from .timestamps import sort_newest_first

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 15.0
LOAD_FAILED_MESSAGE = 'Failed to fetch data. Please try again later.'


class PollState(Enum):
    IDLE = 'idle'
    FETCHING = 'fetching'
    UPDATED = 'updated'
    UNCHANGED = 'unchanged'
    FAILED = 'failed'


@dataclass
class LoadResult:
    ok: bool
    readings: list[SensorReading] | None = None
    weather: WeatherSnapshot | None = None
    error: Exception | None = None
    message: str | None = None


def initial_load(store: DataStore, fetch_sensor=fetch_sensor_readings,
                 fetch_weather=fetch_weather) -> LoadResult:
    """Fetch both upstreams concurrently; write to the store only if both succeed."""
    start = time.time()
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix='initial-load') as pool:
        sensor_future = pool.submit(fetch_sensor)
        weather_future = pool.submit(fetch_weather)

    readings = weather = error = None
    try:
        readings = sensor_future.result()
    except Exception as ex:
        error = ex
        logger.warning("Initial load: sensor fetch failed: %s", ex)
    try:
        weather = weather_future.result()
    except Exception as ex:
        error = error or ex
        logger.warning("Initial load: weather fetch failed: %s", ex)

    if error is not None:
        return LoadResult(ok=False, readings=readings, weather=weather, error=error,
                          message=LOAD_FAILED_MESSAGE)

    readings = sort_newest_first(readings)
    store.replace_all(readings, weather)
    logger.info("Initial load complete in %.2fs (%d readings)", time.time() - start, len(readings))
    return LoadResult(ok=True, readings=readings, weather=weather)


class FreshnessPoller:
    """Cancellable interval poller for the sensor collection.

    `on_update` is called (from the poller thread) after the store has been
    replaced with newer readings.
    """

    def __init__(self, store: DataStore, fetch=fetch_sensor_readings,
                 interval: float = DEFAULT_POLL_INTERVAL, on_update=None):
        self.store = store
        self.interval = interval
        self._fetch = fetch
        self._on_update = on_update

        self._state = PollState.IDLE
        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread = None

        self.last_outcome: PollState | None = None
        self.last_error: str | None = None
        self.last_cycle_ts = 0.0
        self.cycles = 0

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def running(self) -> bool:
        return self._thread is not None and not self._stop_event.is_set()

    def poll_once(self) -> PollState:
        """Run one freshness cycle and return its outcome.

        Returns IDLE without fetching when another cycle is already in flight.
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.info("Poll skipped: previous cycle still in flight")
            return PollState.IDLE
        try:
            self._state = PollState.FETCHING
            outcome = self._cycle()
            self.last_outcome = outcome
            self.last_cycle_ts = time.time()
            self.cycles += 1
        finally:
            self._state = PollState.IDLE
            self._cycle_lock.release()

        if outcome is PollState.UPDATED and self._on_update is not None:
            try:
                self._on_update()
            except Exception:
                logger.exception("on_update callback failed")
        return outcome

    def _cycle(self) -> PollState:
        # the event of the run this cycle belongs to; a restart swaps in a new one
        token = self._stop_event
        try:
            fetched = self._fetch()
        except Exception as ex:
            self.last_error = str(ex)
            logger.warning("Failed to poll soil data: %s", ex)
            return PollState.FAILED

        readings = sort_newest_first(fetched)
        replaced = self.store.replace_if_newer(readings, cancelled=token.is_set)
        if replaced:
            self.last_error = None
            logger.info("Soil data updated: newest=%s (%d readings)", readings[0].captured_at, len(readings))
            return PollState.UPDATED
        if token.is_set():
            logger.info("Poller stopped during fetch; discarding %d readings", len(readings))
            return PollState.UNCHANGED

        self.last_error = None
        logger.debug("Soil data unchanged")
        return PollState.UNCHANGED

    def _run(self, stop_event: threading.Event):
        logger.info("Soil poller started: interval=%ss", self.interval)
        # wait() returns True once stop() is called, ending the loop
        while not stop_event.wait(self.interval):
            try:
                self.poll_once()
            except Exception:
                logger.exception("Unhandled error in soil poller")
        logger.info("Soil poller stopped")

    def start(self) -> None:
        if self.running:
            return
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop_event,),
                                        name='soil-poller', daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Stop polling. No new cycle starts after this returns.

        A fetch already in flight is left to finish but its result is thrown
        away. Pass `timeout` to also wait for the thread to exit.
        """
        self._stop_event.set()
        thread = self._thread
        if timeout is not None and thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
