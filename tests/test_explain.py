import pytest
from datetime import timedelta

from conftest import make_trip
from engine.explain import (
    REASON_INTERNAL,
    REASON_NEARBY,
    REASON_POI,
    REASON_RAIN_HEAVY,
    REASON_RAIN_OK,
    REASON_RECENCY,
    REASON_TRAVEL_COST,
    explain,
)
from engine.features import build_cell_features
from engine.models import CellFeatures, HourlyForecast, WeatherSummary
from engine.policy import Weights
from engine.scoring import adjust_weights_for_weather, score


def _features(**overrides) -> CellFeatures:
    values = dict(
        internal_eph=0.0, internal_count=0, recency_score=0.0, poi_count=0,
        rain_risk_next_3h=0.0, travel_km=0.0, travel_cost=0.0, hour=9, dow=6,
    )
    values.update(overrides)
    return CellFeatures(**values)


@pytest.fixture
def rainy_scene(cell_a, cell_a_center, now, settings):
    """
    One strong trip in cell A, 10 POIs, and 80% rain expected in the next hour.
    """
    trips = [make_trip(cell_a_center, now - timedelta(hours=2), hours=1.0, earnings=50_000)]
    weather = WeatherSummary(hourly=[HourlyForecast(time=now + timedelta(hours=1), precipitation_probability=80)])
    features = build_cell_features(
        cell=cell_a,
        user_position=cell_a_center,
        trips=trips,
        poi_cells={cell_a: 10},
        weather=weather,
        now=now,
        settings=settings,
    )
    return features


def test_heavy_rain_reweights_and_explains(rainy_scene, settings):
    weights = settings.weights

    assert rainy_scene.rain_risk_next_3h == pytest.approx(0.8)

    adjusted = adjust_weights_for_weather(weights, rainy_scene.rain_risk_next_3h)
    assert adjusted.rain_heavy
    assert adjusted.w_poi == pytest.approx(weights.w_poi * 1.2)
    assert adjusted.w_travel == pytest.approx(weights.w_travel * 1.3)

    # rain only moves the score by 0.16 here, so it sits outside the default top 3
    reasons = explain(rainy_scene, weights, top_n=5)
    assert REASON_RAIN_HEAVY in reasons
    assert REASON_RAIN_OK not in reasons


def test_internal_history_leads_the_reasons(rainy_scene, settings):
    reasons = explain(rainy_scene, settings.weights)

    assert len(reasons) == 3
    assert reasons[0] == REASON_INTERNAL
    assert reasons[1] == REASON_POI
    assert reasons[2] == REASON_RECENCY
    assert score(rainy_scene, settings.weights) > 0


def test_reasons_ordered_by_absolute_contribution():
    """
    A big negative travel term outranks small positive terms.
    """
    f = _features(internal_eph=5, poi_count=1, travel_km=12, travel_cost=3_000, rain_risk_next_3h=0.1)

    reasons = explain(f, Weights())

    assert reasons[0] == REASON_TRAVEL_COST
    assert reasons[1] == REASON_INTERNAL


def test_nearby_versus_travel_cost_text():
    near = _features(travel_km=2.0, travel_cost=500)
    far = _features(travel_km=2.01, travel_cost=502.5)

    assert explain(near, Weights(), top_n=1) == [REASON_NEARBY]
    assert explain(far, Weights(), top_n=1) == [REASON_TRAVEL_COST]


def test_light_rain_reads_as_safe():
    f = _features(rain_risk_next_3h=0.3)
    assert explain(f, Weights(), top_n=1) == [REASON_RAIN_OK]


def test_top_n_limits_output():
    f = _features(internal_eph=100, recency_score=1, poi_count=4, travel_cost=100, rain_risk_next_3h=0.2)

    assert len(explain(f, Weights(), top_n=5)) == 5
    assert len(explain(f, Weights(), top_n=2)) == 2
    assert explain(f, Weights(), top_n=0) == []
