"""
Upstream fetchers for the soil-sensor collection and the weather forecast.

Both fetchers raise NetworkFailure / ParseFailure instead of returning None,
so the poller can decide what a failed cycle means. There are no retries
here; the next poll cycle is the retry.
"""

import math
import time
import logging
import warnings

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import InsecureRequestWarning

from .config import DEFAULT_SENSOR_URL, DEFAULT_WEATHER_URL
from .errors import NetworkFailure, ParseFailure
from .models import SensorReading, WeatherSnapshot, ForecastDay

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30

# WMO weather interpretation codes -> (description, Material Symbols icon)
WEATHER_CODES = {
    0: ('Clear sky', 'wb_sunny'),
    1: ('Mainly clear', 'wb_sunny'),
    2: ('Partly cloudy', 'partly_cloudy_day'),
    3: ('Overcast', 'cloud'),
    45: ('Fog', 'foggy'),
    48: ('Depositing rime fog', 'foggy'),
    51: ('Light drizzle', 'grain'),
    53: ('Moderate drizzle', 'grain'),
    55: ('Dense drizzle', 'grain'),
    56: ('Light freezing drizzle', 'ac_unit'),
    57: ('Dense freezing drizzle', 'ac_unit'),
    61: ('Slight rain', 'rainy'),
    63: ('Moderate rain', 'rainy'),
    65: ('Heavy rain', 'rainy'),
    66: ('Light freezing rain', 'ac_unit'),
    67: ('Heavy freezing rain', 'ac_unit'),
    71: ('Slight snow fall', 'weather_snowy'),
    73: ('Moderate snow fall', 'weather_snowy'),
    75: ('Heavy snow fall', 'weather_snowy'),
    77: ('Snow grains', 'weather_snowy'),
    80: ('Slight rain showers', 'rainy'),
    81: ('Moderate rain showers', 'rainy'),
    82: ('Violent rain showers', 'rainy'),
    85: ('Slight snow showers', 'weather_snowy'),
    86: ('Heavy snow showers', 'weather_snowy'),
    95: ('Thunderstorm', 'thunderstorm'),
    96: ('Thunderstorm with hail', 'thunderstorm'),
    99: ('Thunderstorm with heavy hail', 'thunderstorm'),
}
UNKNOWN_WEATHER = ('Unknown', 'help')

FORECAST_LABELS = ('Tomorrow', 'In 2 days', 'In 3 days')


def _round(value) -> int:
    # half-up: 20.5 -> 21, -0.5 -> 0; a null reading counts as 0
    if value is None:
        return 0
    return int(math.floor(value + 0.5))


def weather_info(code) -> tuple[str, str]:
    """Return (description, icon) for a WMO code."""
    return WEATHER_CODES.get(code, UNKNOWN_WEATHER)


def build_session(pool_size: int = 2, verify_ssl: bool = True) -> requests.Session:
    """A shared Session with JSON-friendly headers and a small connection pool.

    verify_ssl=False is for test environments behind self-signed certs; it
    also silences urllib3's InsecureRequestWarning.
    """
    session = requests.Session()
    session.verify = verify_ssl
    if not verify_ssl:
        warnings.simplefilter('ignore', InsecureRequestWarning)
        logger.warning("SSL verification disabled for upstream requests")
    session.headers.update({
        'User-Agent': 'Mozilla/5.0 (compatible; AgriSenseBridge/2.0)',
        'Accept': 'application/json, text/plain, */*',
        'Accept-Language': 'en-US,en;q=0.9',
    })
    adapter = HTTPAdapter(pool_connections=max(2, pool_size), pool_maxsize=max(2, pool_size))
    session.mount('https://', adapter)
    session.mount('http://', adapter)
    return session


_session = None


def _default_session() -> requests.Session:
    global _session
    if _session is None:
        _session = build_session()
    return _session


def _get_json(url: str, session, timeout) -> object:
    session = session or _default_session()
    start = time.time()
    try:
        resp = session.get(url, timeout=timeout)
    except requests.RequestException as ex:
        logger.warning("Network error fetching %s (elapsed=%.2fs): %s", url, time.time() - start, ex)
        raise NetworkFailure(f"Request to {url} failed: {ex}", url=url) from ex

    elapsed = time.time() - start
    if not 200 <= resp.status_code < 300:
        logger.warning("HTTP %d from %s (elapsed=%.2fs). Body (truncated): %s",
                       resp.status_code, url, elapsed, resp.text[:300])
        raise NetworkFailure(f"Network response was not ok: {resp.status_code} {resp.reason}",
                             url=url, status=resp.status_code)
    try:
        data = resp.json()
    except ValueError as ex:
        logger.warning("Non-JSON response from %s (len=%d). First 300 chars: %s",
                       url, len(resp.text), resp.text[:300])
        raise ParseFailure(f"Non-JSON response from {url}", url=url) from ex

    logger.info("Fetched %s in %.2fs", url, elapsed)
    return data


def fetch_sensor_readings(url: str = DEFAULT_SENSOR_URL, session=None,
                          timeout=DEFAULT_TIMEOUT) -> list[SensorReading]:
    """GET the soil collection and map its `items` array to SensorReadings."""
    payload = _get_json(url, session, timeout)
    if not isinstance(payload, dict):
        raise ParseFailure("Sensor payload is not a JSON object", url=url)

    items = payload.get('items')
    if items is None:
        return []
    if not isinstance(items, list):
        raise ParseFailure("Sensor payload 'items' is not a list", url=url)
    return [SensorReading.from_item(item) for item in items if isinstance(item, dict)]


def parse_weather(payload) -> WeatherSnapshot:
    """Map an Open-Meteo forecast body to a WeatherSnapshot.

    Raises KeyError/IndexError/TypeError/ValueError on an unexpected shape;
    fetch_weather wraps those in ParseFailure.
    """
    current = payload['current']
    daily = payload['daily']

    description, icon = weather_info(current['weather_code'])
    forecast = []
    for i, label in enumerate(FORECAST_LABELS, start=1):
        day_description, day_icon = weather_info(daily['weather_code'][i])
        forecast.append(ForecastDay(
            day=label,
            temp=_round(daily['temperature_2m_max'][i]),
            icon=day_icon,
            description=day_description,
            humidity=_round(daily['relative_humidity_2m_mean'][i]),
            wind_speed=_round(daily['wind_speed_10m_max'][i]),
        ))

    return WeatherSnapshot(
        temperature=_round(current['temperature_2m']),
        humidity=current['relative_humidity_2m'],
        rainfall=daily['precipitation_sum'][0],
        wind_speed=_round(current['wind_speed_10m']),
        description=description,
        icon=icon,
        forecast=tuple(forecast),
    )


def fetch_weather(url: str = DEFAULT_WEATHER_URL, session=None,
                  timeout=DEFAULT_TIMEOUT) -> WeatherSnapshot:
    payload = _get_json(url, session, timeout)
    try:
        return parse_weather(payload)
    except (KeyError, IndexError, TypeError, ValueError) as ex:
        logger.warning("Unexpected weather payload from %s: %r", url, ex)
        raise ParseFailure(f"Unexpected weather payload: {ex!r}", url=url) from ex
