#!/usr/bin/env python3
r"""
check_upstreams.py

Run this from the same virtualenv as the bridge. It uses the bridge's own
session builder, URLs and timeout settings, then fetches the sensor
collection and the weather forecast and prints a JSON report with the
status, a short summary or the error.

Usage:
    (venv) $ python tools/check_upstreams.py

GEMINI_API_KEY is not needed for this probe.
"""
import os
import sys
import json
import time
from pathlib import Path

# Ensure the repository root (parent of this tools/ dir) is on sys.path so
# `import agrisense` works when running `python tools/check_upstreams.py`.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from agrisense.config import DEFAULT_SENSOR_URL, DEFAULT_WEATHER_URL
from agrisense.errors import GatewayError
from agrisense.gateway import build_session, fetch_sensor_readings, fetch_weather
from agrisense.timestamps import sort_newest_first


def probe():
    session = build_session()
    timeout = int(os.getenv('UPSTREAM_TIMEOUT', '30'))
    sensor_url = os.getenv('SENSOR_URL', DEFAULT_SENSOR_URL)
    weather_url = os.getenv('WEATHER_URL', DEFAULT_WEATHER_URL)
    report = {}

    entry = {"url": sensor_url}
    try:
        readings = sort_newest_first(fetch_sensor_readings(sensor_url, session=session, timeout=timeout))
        entry["count"] = len(readings)
        entry["newest"] = readings[0].to_dict() if readings else None
    except GatewayError as ex:
        entry["error"] = str(ex)
        entry["status_code"] = getattr(ex, 'status', None)
    report["sensor"] = entry

    entry = {"url": weather_url}
    try:
        entry["body"] = fetch_weather(weather_url, session=session, timeout=timeout).to_dict()
    except GatewayError as ex:
        entry["error"] = str(ex)
        entry["status_code"] = getattr(ex, 'status', None)
    report["weather"] = entry
    return report


def main():
    print("Probing configured upstreams using the bridge's session settings...")
    t0 = time.time()
    r = probe()
    print(json.dumps(r, indent=2, default=str))
    print(f"Done in {time.time()-t0:.2f}s")


if __name__ == '__main__':
    main()
