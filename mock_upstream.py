"""
Local mock of the two upstreams the bridge polls.

Run sequence for local development:
  1. Start the mock upstream: python mock_upstream.py
  2. Start the bridge against it:
       SENSOR_URL=http://127.0.0.1:5001/ords/g3_data/groups/data/7 \
       WEATHER_URL=http://127.0.0.1:5001/v1/forecast \
       python -m agrisense.app

A new soil row appears every minute, so the bridge's poller sees an
"updated" cycle roughly once a minute and "unchanged" in between.
"""

import time
from typing import List, Dict

from flask import Flask, jsonify

app = Flask(__name__)

MONTHS = ('JAN', 'FEB', 'MAR', 'APR', 'MAY', 'JUN', 'JUL', 'AUG', 'SEP', 'OCT', 'NOV', 'DEC')


def apex_ts(offset_seconds: int = 0) -> str:
    """Format like the APEX soil table, e.g. 27-OCT-2025 14:49:04."""
    t = time.localtime(time.time() - offset_seconds)
    return f"{t.tm_mday:02d}-{MONTHS[t.tm_mon - 1]}-{t.tm_year} {t.tm_hour:02d}:{t.tm_min:02d}:{t.tm_sec:02d}"


def make_rows(count: int, group_id: int = 7) -> List[Dict]:
    # align to the minute so repeated calls within a minute return the same newest row
    aligned = int(time.time()) % 60
    rows = []
    for i in range(count):
        rows.append({
            'group_id': group_id,
            'moisture': 30.0 + i * 0.5,
            'temperature': 20.0 + (i % 4) * 0.5,
            'ec': 100 + i * 15,
            'ph': round(6.0 + (i % 5) * 0.1, 1),
            'nitrogen': 50 + i * 3,
            'phosphorus': 120 + i * 4,
            'potassium': 150 + i * 5,
            'valid': 'Y',
            'corrected_created_at': apex_ts(aligned + i * 600),
        })
    # APEX collections are not guaranteed to be ordered
    rows.reverse()
    return rows


@app.route('/ords/g3_data/groups/data/7', methods=['GET'])
@app.route('/soil/', methods=['GET'])
def soil_list():
    return jsonify({'items': make_rows(12), 'hasMore': False, 'count': 12})


@app.route('/v1/forecast', methods=['GET'])
def forecast():
    return jsonify({
        'current': {
            'temperature_2m': 21.4,
            'relative_humidity_2m': 58,
            'wind_speed_10m': 12.6,
            'weather_code': 2,
        },
        'daily': {
            'weather_code': [2, 61, 3, 0],
            'temperature_2m_max': [23.1, 19.5, 21.0, 25.7],
            'relative_humidity_2m_mean': [60.2, 78.9, 65.1, 50.4],
            'precipitation_sum': [0.4, 6.2, 0.0, 0.0],
            'wind_speed_10m_max': [18.3, 25.5, 14.0, 9.9],
        },
    })


if __name__ == '__main__':
    print('Starting mock upstream on http://127.0.0.1:5001')
    app.run(host='127.0.0.1', port=5001)
