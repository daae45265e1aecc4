"""
In-memory holder for the current soil readings and weather snapshot.

Only the initial load and the freshness poller write here; everything else
reads. Readings are held as a tuple sorted newest first, so handing the
held object to readers is safe.
"""

import time
import logging
import threading

from .models import SensorReading, WeatherSnapshot

logger = logging.getLogger(__name__)


class DataStore:

    def __init__(self):
        self._lock = threading.Lock()
        self._readings: tuple[SensorReading, ...] = ()
        self._weather: WeatherSnapshot | None = None
        self._updated_ts = 0.0
        self._version = 0

    @property
    def readings(self) -> tuple[SensorReading, ...]:
        with self._lock:
            return self._readings

    @property
    def latest(self) -> SensorReading | None:
        with self._lock:
            return self._readings[0] if self._readings else None

    @property
    def weather(self) -> WeatherSnapshot | None:
        with self._lock:
            return self._weather

    @property
    def version(self) -> int:
        """Incremented on every write; readers can use it to spot changes."""
        with self._lock:
            return self._version

    @property
    def updated_ts(self) -> float:
        with self._lock:
            return self._updated_ts

    def has_data(self) -> bool:
        with self._lock:
            return bool(self._readings) and self._weather is not None

    def snapshot(self) -> tuple[tuple[SensorReading, ...], WeatherSnapshot | None]:
        """Readings and weather read under one lock acquisition."""
        with self._lock:
            return self._readings, self._weather

    def _touch(self):
        self._version += 1
        self._updated_ts = time.time()

    def replace_all(self, readings, weather: WeatherSnapshot) -> None:
        """Wholesale replace of both collections (initial load)."""
        readings = tuple(readings)
        with self._lock:
            self._readings = readings
            self._weather = weather
            self._touch()
        logger.info("Store loaded: %d readings, weather=%s", len(readings), weather.description)

    def replace_if_newer(self, sorted_readings, cancelled=None) -> bool:
        """Compare-and-replace used by the poller.

        `sorted_readings` must already be newest first. The held readings are
        replaced only when the store is empty or the newest `captured_at`
        string differs from the held one. Returns True when replaced.

        `cancelled` is checked under the store lock; when it returns True the
        readings are dropped and nothing changes.

        Only the head is compared, so a correction to an older row that
        leaves the newest row untouched is not picked up.
        """
        sorted_readings = tuple(sorted_readings)
        if not sorted_readings:
            return False
        with self._lock:
            if cancelled is not None and cancelled():
                return False
            if self._readings and self._readings[0].captured_at == sorted_readings[0].captured_at:
                return False
            self._readings = sorted_readings
            self._touch()
            return True
