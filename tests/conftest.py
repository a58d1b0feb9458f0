import pytest
from datetime import datetime, timedelta, timezone

from engine.models import Trip
from engine.policy import default_settings
from geo.cells import cell_to_latlon, latlon_to_cell


class FakeClock:
    """Manually advanced clock for deterministic time-based logic."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class StubRandom:
    """random.Random stand-in that always draws the same value."""

    def __init__(self, value: float):
        self.value = value
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        return self.value


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload
        self.status_code = status_code

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self.payload is None:
            raise ValueError("No JSON object could be decoded")
        return self.payload


class FakeSession:
    """
    Replays a scripted list of responses (or exceptions) and records each call.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)


@pytest.fixture
def now():
    return datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now):
    return FakeClock(now)


@pytest.fixture
def settings():
    return default_settings()


@pytest.fixture
def cell_a(settings):
    # Example: Bandung Timur, near Cicaheum terminal
    return latlon_to_cell(-6.9025, 107.6560, settings.preferred_resolution)


@pytest.fixture
def cell_a_center(cell_a):
    return cell_to_latlon(cell_a)


def make_trip(start, started_at, hours=1.0, earnings=50_000.0, **kwargs) -> Trip:
    return Trip.new(
        started_at=started_at,
        ended_at=started_at + timedelta(hours=hours),
        earnings=earnings,
        start=start,
        **kwargs,
    )
