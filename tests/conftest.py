import pytest
import requests

from agrisense.gateway import parse_weather
from helpers import WEATHER_BODY


@pytest.fixture
def weather():
    return parse_weather(WEATHER_BODY)


@pytest.fixture
def network_error():
    return requests.ConnectionError("connection refused")
