"""
Ties the store, the poller and the insight requester together.

The Dashboard is what the HTTP routes talk to. It owns the loading/error
flags, the AI-generated content and the chat session, and makes sure an AI
request is only issued once per missing value: repeated "data changed"
notifications while a request is in flight do not start a second one.
"""

import logging
import threading
from datetime import date, datetime, time as dtime
from concurrent.futures import ThreadPoolExecutor

from .gateway import fetch_sensor_readings, fetch_weather
from .insights import (InsightRequester, ACTIONABLE_FALLBACK, CHAT_FALLBACK,
                       failed_recommendations, is_degraded)
from .models import ChatTurn, Role
from .poller import FreshnessPoller, initial_load, DEFAULT_POLL_INTERVAL
from .store import DataStore
from .timestamps import parse_apex_datetime, sort_oldest_first, format_last_reading

logger = logging.getLogger(__name__)


class ChatSession:
    """Append-only conversation for one session. Nothing is persisted."""

    def __init__(self, dashboard: "Dashboard"):
        self._dashboard = dashboard
        self._lock = threading.Lock()
        self._turns: list[ChatTurn] = []
        self.busy = False

    @property
    def turns(self) -> list[ChatTurn]:
        with self._lock:
            return list(self._turns)

    def ask(self, query: str) -> ChatTurn | None:
        """Append the farmer's question and the assistant's reply.

        Returns the assistant turn, or None when the query is blank, weather
        data isn't loaded yet, or another question is still being answered.
        """
        query = (query or '').strip()
        readings, weather = self._dashboard.store.snapshot()
        if not query or weather is None:
            return None

        with self._lock:
            if self.busy:
                return None
            self.busy = True
            self._turns.append(ChatTurn(role=Role.USER, text=query))
            history = list(self._turns)

        try:
            result = self._dashboard.requester.chat_reply(query, readings, weather, history)
            reply = ChatTurn(role=Role.ASSISTANT, text=result.unwrap_or(CHAT_FALLBACK))
            with self._lock:
                self._turns.append(reply)
            return reply
        finally:
            self.busy = False

    def clear(self) -> None:
        with self._lock:
            self._turns = []


class Dashboard:

    def __init__(self, store: DataStore, requester: InsightRequester,
                 fetch_sensor=fetch_sensor_readings, fetch_weather=fetch_weather,
                 poll_interval: float = DEFAULT_POLL_INTERVAL, ai_workers: int = 2):
        self.store = store
        self.requester = requester
        self._fetch_sensor = fetch_sensor
        self._fetch_weather = fetch_weather
        self.poller = FreshnessPoller(store, fetch=fetch_sensor, interval=poll_interval,
                                      on_update=self.on_data_changed)
        self._executor = ThreadPoolExecutor(max_workers=ai_workers, thread_name_prefix='insights')
        self._lock = threading.Lock()

        self.loading = False
        self.error: str | None = None

        self.recommendations = []
        self.recommendations_loading = False
        self.actionable = ''
        self.actionable_loading = False

        self.chat = ChatSession(self)

    # --- data lifecycle -------------------------------------------------------

    def load(self):
        """Initial load of sensor and weather data, then the AI prefetch."""
        with self._lock:
            self.loading = True
            self.error = None
        result = initial_load(self.store, fetch_sensor=self._fetch_sensor,
                              fetch_weather=self._fetch_weather)
        with self._lock:
            self.loading = False
            if not result.ok:
                self.error = result.message
        if result.ok:
            self.on_data_changed()
        else:
            logger.error("Initial load failed: %s", result.error)
        return result

    def start_polling(self) -> None:
        self.poller.start()

    def shutdown(self, timeout: float | None = 5, wait: bool = False) -> None:
        """Stop the poller and the insight workers. `wait` blocks until pending
        AI requests have finished."""
        logger.info("Shutting down dashboard: stopping poller and insight workers")
        self.poller.stop(timeout=timeout)
        self._executor.shutdown(wait=wait)

    # --- AI content -----------------------------------------------------------

    def _claim(self, kind: str, only_if_empty: bool) -> bool:
        """Mark an AI request as in flight. False if one already is (or, with
        only_if_empty, if a value is already held)."""
        with self._lock:
            if kind == 'recommendations':
                if self.recommendations_loading or (only_if_empty and self.recommendations):
                    return False
                self.recommendations_loading = True
            else:
                if self.actionable_loading or (only_if_empty and self.actionable):
                    return False
                self.actionable_loading = True
            return True

    def on_data_changed(self) -> list:
        """Prefetch whatever AI content is still missing. Returns the submitted futures."""
        if self.loading or not self.store.has_data():
            return []
        futures = []
        for kind, job in (('recommendations', self._refresh_recommendations),
                          ('actionable', self._refresh_actionable)):
            if not self._claim(kind, only_if_empty=True):
                continue
            try:
                futures.append(self._executor.submit(job))
            except RuntimeError:
                # executor already shut down
                self._release(kind)
                logger.info("Skipping %s prefetch: dashboard is shutting down", kind)
        return futures

    def _release(self, kind: str) -> None:
        with self._lock:
            if kind == 'recommendations':
                self.recommendations_loading = False
            else:
                self.actionable_loading = False

    def _refresh_recommendations(self):
        try:
            readings, weather = self.store.snapshot()
            result = self.requester.recommendation_batch(readings, weather)
            recs = result.value if result.ok else failed_recommendations()
            with self._lock:
                self.recommendations = recs
            return recs
        finally:
            self._release('recommendations')

    def _refresh_actionable(self):
        try:
            readings, weather = self.store.snapshot()
            result = self.requester.daily_actionable(readings[0], weather)
            text = result.unwrap_or(ACTIONABLE_FALLBACK)
            with self._lock:
                self.actionable = text
            return text
        finally:
            self._release('actionable')

    def regenerate_recommendations(self):
        """Synchronous re-request. None if there is no data or a request is in flight."""
        if not self.store.has_data() or not self._claim('recommendations', only_if_empty=False):
            return None
        return self._refresh_recommendations()

    def regenerate_actionable(self):
        if not self.store.has_data() or not self._claim('actionable', only_if_empty=False):
            return None
        return self._refresh_actionable()

    # --- views ----------------------------------------------------------------

    def chart_series(self, start: date | None = None, end: date | None = None) -> dict:
        """Readings oldest first for charting, optionally limited to a date window.

        The window covers `start` 00:00:00 through `end` 23:59:59.999999.
        `nutrients` is the N/P/K breakdown of the newest reading in the window.
        """
        readings = sort_oldest_first(self.store.readings)
        if start is not None and end is not None:
            lo = datetime.combine(start, dtime.min)
            hi = datetime.combine(end, dtime.max)
            readings = [r for r in readings if lo <= parse_apex_datetime(r.captured_at) <= hi]

        nutrients = []
        if readings:
            newest = readings[-1]
            nutrients = [
                {'name': 'Nitrogen (N)', 'value': newest.nitrogen, 'color': '#22c55e'},
                {'name': 'Phosphorus (P)', 'value': newest.phosphorus, 'color': '#14b8a6'},
                {'name': 'Potassium (K)', 'value': newest.potassium, 'color': '#ef4444'},
            ]
        return {
            'readings': [r.to_dict() for r in readings],
            'nutrients': nutrients,
        }

    def recommendations_view(self) -> dict:
        with self._lock:
            recs = list(self.recommendations)
            loading = self.recommendations_loading
        return {
            'recommendations': [r.to_dict() for r in recs],
            'loading': loading,
            'degraded': is_degraded(recs) if recs else False,
        }

    def actionable_view(self) -> dict:
        with self._lock:
            return {'actionable': self.actionable, 'loading': self.actionable_loading}

    def overview(self) -> dict:
        latest = self.store.latest
        weather = self.store.weather
        with self._lock:
            view = {
                'loading': self.loading,
                'error': self.error,
                'actionable': self.actionable,
                'actionableLoading': self.actionable_loading,
            }
        view['latest'] = latest.to_dict() if latest else None
        view['lastReading'] = format_last_reading(latest.captured_at if latest else None)
        view['weather'] = weather.to_dict() if weather else None
        return view

    def status(self) -> dict:
        latest = self.store.latest
        poller = self.poller
        with self._lock:
            loading, error = self.loading, self.error
        return {
            'loading': loading,
            'error': error,
            'polling': poller.running,
            'pollState': poller.state.value,
            'lastOutcome': poller.last_outcome.value if poller.last_outcome else None,
            'lastPollError': poller.last_error,
            'cycles': poller.cycles,
            'newestCapturedAt': latest.captured_at if latest else None,
            'readings': len(self.store.readings),
            'storeVersion': self.store.version,
        }
