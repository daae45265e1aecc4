"""Fakes and sample payloads shared by the tests."""
import json

from agrisense.models import SensorReading


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None, reason='OK'):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else (json.dumps(body) if body is not None else '')
        self.reason = reason

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    """Returns queued responses (or raises queued exceptions) in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeGenResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    """Stand-in for genai.GenerativeModel; replies from a queue."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []
        self.kwargs = []

    def generate_content(self, prompt, **kwargs):
        self.prompts.append(prompt)
        self.kwargs.append(kwargs)
        reply = self.replies.pop(0) if self.replies else ''
        if isinstance(reply, Exception):
            raise reply
        return FakeGenResponse(reply)


def item(ts, moisture=30.0, **extra):
    row = {
        'group_id': 7,
        'moisture': moisture,
        'temperature': 21.5,
        'ec': 120,
        'ph': 6.4,
        'nitrogen': 55,
        'phosphorus': 130,
        'potassium': '160',
        'valid': 'Y',
        'corrected_created_at': ts,
    }
    row.update(extra)
    return row


def readings(*timestamps):
    return [SensorReading.from_item(item(ts, moisture=30.0 + i)) for i, ts in enumerate(timestamps)]


WEATHER_BODY = {
    'current': {
        'temperature_2m': 21.5,
        'relative_humidity_2m': 58,
        'wind_speed_10m': 12.4,
        'weather_code': 0,
    },
    'daily': {
        'weather_code': [0, 61, 12345, 3],
        'temperature_2m_max': [23.1, 19.5, 20.49, 25.7],
        'relative_humidity_2m_mean': [60.2, 78.9, 65.5, 50.4],
        'precipitation_sum': [1.7, 6.2, 0.0, 0.0],
        'wind_speed_10m_max': [18.3, 25.5, 14.0, 9.9],
    },
}

RECS_JSON = json.dumps([
    {'title': 'Irrigate deeply', 'description': 'Dry spell ahead.', 'priority': 'High'},
    {'title': 'Check pH', 'description': 'pH is drifting.', 'priority': 'Medium'},
    {'title': 'Plan potassium', 'description': 'K is falling.', 'priority': 'Low'},
])
