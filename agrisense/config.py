"""
Runtime settings, read from the process environment.

A local `.env` file is loaded first (python-dotenv) so development setups
don't have to export variables by hand. Everything has a default except
GEMINI_API_KEY; the bridge refuses to start without it.
"""

import os
import logging
from dataclasses import dataclass

from dotenv import load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

LOG_FORMAT = '[%(levelname)s] %(asctime)s %(name)s: %(message)s'

DEFAULT_SENSOR_URL = 'https://oracleapex.com/ords/g3_data/groups/data/7'

# Franschhoek, Western Cape. Today's values sit at daily index 0, the
# three forecast days at 1..3.
DEFAULT_WEATHER_URL = (
    'https://api.open-meteo.com/v1/forecast?latitude=-33.9091&longitude=19.1214'
    '&current=temperature_2m,relative_humidity_2m,wind_speed_10m,weather_code'
    '&daily=weather_code,temperature_2m_max,relative_humidity_2m_mean,precipitation_sum,wind_speed_10m_max'
    '&forecast_days=4&timezone=Africa/Johannesburg'
)


@dataclass(frozen=True)
class Settings:
    gemini_api_key: str
    gemini_model: str = 'gemini-2.5-flash'
    sensor_url: str = DEFAULT_SENSOR_URL
    weather_url: str = DEFAULT_WEATHER_URL
    upstream_timeout: int = 30
    poll_interval: float = 15.0
    max_concurrent_fetches: int = 2
    cors_origins: tuple[str, ...] = ()
    port: int = 5000
    log_level: str = 'INFO'
    verify_ssl: bool = True
    debug: bool = False


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not an integer); using %s", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not a number); using %s", name, raw, default)
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.lower() in ('1', 'true', 'yes')


def load_settings(dotenv: bool = True) -> Settings:
    """Build Settings from the environment. Raises ConfigError without an API key."""
    if dotenv:
        load_dotenv()

    api_key = (os.getenv('GEMINI_API_KEY') or '').strip()
    if not api_key:
        raise ConfigError(
            "GEMINI_API_KEY is not defined. Set it in the environment or in a local .env file."
        )

    origins_raw = os.getenv('CORS_ORIGINS') or ''
    origins = tuple(o.strip() for o in origins_raw.split(',') if o.strip())

    return Settings(
        gemini_api_key=api_key,
        gemini_model=os.getenv('GEMINI_MODEL', 'gemini-2.5-flash'),
        sensor_url=os.getenv('SENSOR_URL', DEFAULT_SENSOR_URL),
        weather_url=os.getenv('WEATHER_URL', DEFAULT_WEATHER_URL),
        upstream_timeout=_env_int('UPSTREAM_TIMEOUT', 30),
        poll_interval=_env_float('POLL_INTERVAL', 15.0),
        max_concurrent_fetches=_env_int('MAX_CONCURRENT_FETCHES', 2),
        cors_origins=origins,
        port=_env_int('PORT', 5000),
        log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        verify_ssl=_env_bool('VERIFY_SSL', True),
        debug=_env_bool('FLASK_DEBUG'),
    )


def configure_logging(level: str = 'INFO') -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
