import copy

import pytest
import requests

from agrisense.errors import NetworkFailure, ParseFailure
from agrisense.gateway import (fetch_sensor_readings, fetch_weather, weather_info,
                               build_session, DEFAULT_TIMEOUT)
from helpers import FakeResponse, FakeSession, WEATHER_BODY, item


def test_weather_code_mapping():
    assert weather_info(0) == ("Clear sky", "wb_sunny")
    assert weather_info(95) == ("Thunderstorm", "thunderstorm")
    assert weather_info(12345) == ("Unknown", "help")


def test_sensor_fetch_maps_items():
    session = FakeSession(FakeResponse(body={'items': [item("27-OCT-2025 14:49:04"), "junk"]}))
    out = fetch_sensor_readings("http://sensor", session=session)
    assert len(out) == 1
    r = out[0]
    assert r.captured_at == "27-OCT-2025 14:49:04"
    assert r.group_id == 7
    assert r.potassium == 160.0
    assert r.valid == 'Y'
    assert session.calls == [("http://sensor", DEFAULT_TIMEOUT)]


def test_sensor_fetch_without_items_is_empty():
    session = FakeSession(FakeResponse(body={'hasMore': False}))
    assert fetch_sensor_readings("http://sensor", session=session) == []


def test_sensor_fetch_http_error():
    session = FakeSession(FakeResponse(status_code=503, text='down', reason='Service Unavailable'))
    with pytest.raises(NetworkFailure) as excinfo:
        fetch_sensor_readings("http://sensor", session=session)
    assert excinfo.value.status == 503
    assert excinfo.value.url == "http://sensor"


def test_sensor_fetch_unfollowed_redirect_is_an_error():
    session = FakeSession(FakeResponse(status_code=304, body={'items': []}, reason='Not Modified'))
    with pytest.raises(NetworkFailure) as excinfo:
        fetch_sensor_readings("http://sensor", session=session)
    assert excinfo.value.status == 304


def test_sensor_fetch_transport_error(network_error):
    session = FakeSession(network_error)
    with pytest.raises(NetworkFailure):
        fetch_sensor_readings("http://sensor", session=session)


def test_sensor_fetch_non_json():
    session = FakeSession(FakeResponse(text='<html>maintenance</html>'))
    with pytest.raises(ParseFailure):
        fetch_sensor_readings("http://sensor", session=session)


def test_weather_fetch_shapes_snapshot():
    session = FakeSession(FakeResponse(body=WEATHER_BODY))
    w = fetch_weather("http://weather", session=session)
    assert w.temperature == 22          # 21.5 rounds half-up
    assert w.wind_speed == 12
    assert w.humidity == 58
    assert w.rainfall == 1.7            # today's total, daily index 0
    assert (w.description, w.icon) == ("Clear sky", "wb_sunny")

    assert [d.day for d in w.forecast] == ["Tomorrow", "In 2 days", "In 3 days"]
    tomorrow, in_two, in_three = w.forecast
    assert (tomorrow.temp, tomorrow.humidity, tomorrow.wind_speed) == (20, 79, 26)
    assert tomorrow.description == "Slight rain"
    assert (in_two.description, in_two.icon) == ("Unknown", "help")
    assert in_two.temp == 20
    assert in_three.icon == "cloud"


def test_weather_fetch_unexpected_shape():
    body = {'current': WEATHER_BODY['current'], 'daily': {'weather_code': [0]}}
    session = FakeSession(FakeResponse(body=body))
    with pytest.raises(ParseFailure):
        fetch_weather("http://weather", session=session)


def test_weather_fetch_http_error():
    session = FakeSession(FakeResponse(status_code=400, text='bad', reason='Bad Request'))
    with pytest.raises(NetworkFailure):
        fetch_weather("http://weather", session=session)


def test_build_session():
    session = build_session(4, verify_ssl=False)
    assert isinstance(session, requests.Session)
    assert session.verify is False
    assert 'application/json' in session.headers['Accept']


def test_weather_null_values_round_to_zero():
    body = copy.deepcopy(WEATHER_BODY)
    body['current']['wind_speed_10m'] = None
    body['daily']['temperature_2m_max'][1] = None
    w = fetch_weather("http://weather", session=FakeSession(FakeResponse(body=body)))
    assert w.wind_speed == 0
    assert w.forecast[0].temp == 0
