import pytest
import threading

import requests

from conftest import FakeResponse, FakeSession
from geo.regions import BoundingBox
from signals.clients import POIClient, WeatherClient, poi_cache_key, weather_cache_key
from signals.errors import SignalCancelledError, SignalFetchError

BBOX = BoundingBox(107.64, -6.96, 107.74, -6.86)


OVERPASS_PAYLOAD = {
    "elements": [
        {"type": "node", "lat": -6.9025, "lon": 107.656, "tags": {"amenity": "hospital"}},
        {"type": "way", "center": {"lat": -6.914, "lon": 107.661}, "tags": {"shop": "mall"}},
        {"type": "relation", "tags": {"leisure": "park"}},
    ]
}


def test_cache_keys():
    assert poi_cache_key(BBOX) == "poi:107.64,-6.96,107.74,-6.86"
    assert weather_cache_key(-6.90251, 107.65599) == "weather:-6.903,107.656"


def test_poi_points_from_nodes_and_centers():
    session = FakeSession(FakeResponse(OVERPASS_PAYLOAD))
    client = POIClient("http://overpass.test", session=session, backoff_seconds=(0,))

    data = client.fetch_points(BBOX)

    assert data["count"] == 2
    assert data["points"][0] == {"lat": -6.9025, "lon": 107.656, "tags": {"amenity": "hospital"}}
    assert data["points"][1]["lat"] == -6.914

    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == "http://overpass.test"
    assert "[bbox:-6.96,107.64,-6.86,107.74]" in kwargs["data"]
    assert kwargs["timeout"] == client.timeout


def test_retries_then_succeeds():
    session = FakeSession(
        requests.ConnectionError("connection reset"),
        FakeResponse(status_code=504),
        FakeResponse(OVERPASS_PAYLOAD),
    )
    client = POIClient("http://overpass.test", session=session, retries=2, backoff_seconds=(0,))

    data = client.fetch_points(BBOX)

    assert data["count"] == 2
    assert len(session.calls) == 3


def test_exhausted_retries_raise_fetch_error():
    session = FakeSession(FakeResponse(status_code=429), FakeResponse(status_code=429))
    client = POIClient("http://overpass.test", session=session, retries=1, backoff_seconds=(0,))

    with pytest.raises(SignalFetchError, match="429"):
        client.fetch_points(BBOX)

    assert len(session.calls) == 2


def test_transport_error_is_wrapped():
    session = FakeSession(requests.Timeout("read timed out"))
    client = POIClient("http://overpass.test", session=session, retries=0)

    with pytest.raises(SignalFetchError, match="read timed out"):
        client.fetch_points(BBOX)


def test_cancelled_before_first_attempt():
    session = FakeSession(FakeResponse(OVERPASS_PAYLOAD))
    client = POIClient("http://overpass.test", session=session, backoff_seconds=(0,))
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(SignalCancelledError):
        client.fetch_points(BBOX, cancel_event=cancel)

    assert session.calls == []


def test_invalid_client_config():
    with pytest.raises(ValueError):
        POIClient("http://overpass.test", retries=-1)


def _open_meteo(times, probabilities, offset=7 * 3600):
    return {
        "utc_offset_seconds": offset,
        "hourly": {"time": times, "precipitation_probability": probabilities},
    }


def _two_days_of_hours(hours=48):
    # Open-Meteo series: local wall-clock hours from local midnight
    return [f"2026-10-{18 + h // 24:02d}T{h % 24:02d}:00" for h in range(hours)]


def test_weather_times_are_offset_aware(clock):
    payload = _open_meteo(["2026-10-18T16:00", "2026-10-18T17:00"], [35, None])
    session = FakeSession(FakeResponse(payload))
    client = WeatherClient("http://weather.test", session=session, timezone_name="Asia/Jakarta", clock=clock)

    data = client.fetch_hourly(-6.9025, 107.656)

    assert data["hourly"] == [
        {"time": "2026-10-18T16:00:00+07:00", "precipitation_probability": 35},
        {"time": "2026-10-18T17:00:00+07:00", "precipitation_probability": 0},
    ]
    _, _, kwargs = session.calls[0]
    assert kwargs["params"]["timezone"] == "Asia/Jakarta"
    assert kwargs["params"]["latitude"] == -6.9025


def test_weather_keeps_one_day_from_current_hour(clock):
    """
    09:00 UTC is 16:00 in Jakarta: hours before 16:00 local are dropped, then 24 are kept.
    """
    session = FakeSession(FakeResponse(_open_meteo(_two_days_of_hours(), list(range(48)))))
    client = WeatherClient("http://weather.test", session=session, clock=clock)

    data = client.fetch_hourly(-6.9, 107.6)

    assert len(data["hourly"]) == 24
    assert data["hourly"][0] == {"time": "2026-10-18T16:00:00+07:00", "precipitation_probability": 16}
    assert data["hourly"][-1]["time"] == "2026-10-19T15:00:00+07:00"


def test_weather_late_evening_still_covers_next_hours(clock):
    clock.advance(hours=6, minutes=30)  # 22:30 in Jakarta
    session = FakeSession(FakeResponse(_open_meteo(_two_days_of_hours(), [40] * 48)))
    client = WeatherClient("http://weather.test", session=session, clock=clock)

    data = client.fetch_hourly(-6.9, 107.6)

    times = [entry["time"] for entry in data["hourly"]]
    assert times[:4] == [
        "2026-10-18T22:00:00+07:00",
        "2026-10-18T23:00:00+07:00",
        "2026-10-19T00:00:00+07:00",
        "2026-10-19T01:00:00+07:00",
    ]


def test_weather_with_only_past_hours_is_an_error(clock):
    clock.advance(days=2)
    session = FakeSession(FakeResponse(_open_meteo(_two_days_of_hours(), [10] * 48)))
    client = WeatherClient("http://weather.test", session=session, clock=clock)

    with pytest.raises(SignalFetchError, match="no upcoming hours"):
        client.fetch_hourly(-6.9, 107.6)


def test_weather_without_hours_is_an_error(clock):
    session = FakeSession(FakeResponse({"hourly": {"time": []}}))
    client = WeatherClient("http://weather.test", session=session, clock=clock)

    with pytest.raises(SignalFetchError):
        client.fetch_hourly(-6.9, 107.6)


@pytest.mark.parametrize(
    "payload",
    [
        {"hourly": ["2026-10-18T16:00"]},
        {"hourly": {"time": ["not-a-time"]}, "utc_offset_seconds": 0},
        {"hourly": {"time": ["2026-10-18T16:00"]}, "utc_offset_seconds": "seven"},
    ],
)
def test_malformed_weather_body_is_a_fetch_error(clock, payload):
    session = FakeSession(FakeResponse(payload))
    client = WeatherClient("http://weather.test", session=session, clock=clock)

    with pytest.raises(SignalFetchError):
        client.fetch_hourly(-6.9, 107.6)


# -------------------------
# Malformed upstream bodies
# -------------------------

def test_non_object_json_is_retried_then_fetch_error():
    session = FakeSession(FakeResponse([]), FakeResponse([]))
    client = POIClient("http://overpass.test", session=session, retries=1, backoff_seconds=(0,))

    with pytest.raises(SignalFetchError, match="unexpected JSON"):
        client.fetch_points(BBOX)

    assert len(session.calls) == 2


def test_malformed_elements_are_skipped():
    payload = {
        "elements": [
            {"type": "way", "center": {"lon": 107.661}},
            {"type": "node", "lat": "-6.9", "lon": 107.65},
            "garbage",
            {"type": "way", "center": None, "tags": {"shop": "mall"}},
            {"type": "node", "lat": -6.9025, "lon": 107.656, "tags": ["not", "a", "dict"]},
        ]
    }
    client = POIClient("http://overpass.test", session=FakeSession(FakeResponse(payload)))

    data = client.fetch_points(BBOX)

    assert data == {"points": [{"lat": -6.9025, "lon": 107.656, "tags": {}}], "count": 1}


def test_elements_not_a_list_is_a_fetch_error():
    client = POIClient("http://overpass.test", session=FakeSession(FakeResponse({"elements": {"a": 1}})))

    with pytest.raises(SignalFetchError):
        client.fetch_points(BBOX)
