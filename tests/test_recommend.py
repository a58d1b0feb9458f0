import pytest
import random
from datetime import timedelta

from conftest import StubRandom, make_trip
from engine.candidates import build_candidate_cells
from engine.features import build_cell_features
from engine.models import Trip
from engine.recommend import EXPLORATION_BONUS, recommend_top_cells
from engine.scoring import score
from geo.cells import cell_to_latlon, latlon_to_cell
from geo.regions import REGIONS, BoundingBox

# Bandung Timur spots a few km apart
SPOTS = [
    (-6.9025, 107.6560),
    (-6.9140, 107.6610),
    (-6.9300, 107.6900),
    (-6.8950, 107.7100),
    (-6.9400, 107.6500),
]


def _cells(settings):
    return [latlon_to_cell(lat, lon, settings.preferred_resolution) for lat, lon in SPOTS]


def test_empty_candidates_return_empty_list(cell_a_center, now, settings):
    assert recommend_top_cells(
        cell_a_center, "timur", [], trips=[], poi_cells=None, weather=None, settings=settings, now=now,
    ) == []


def test_returns_top_three_sorted(cell_a_center, now, settings):
    cells = _cells(settings)
    trips = [make_trip(SPOTS[i], now - timedelta(hours=3 + i), earnings=20_000 * (i + 1)) for i in range(len(SPOTS))]

    recs = recommend_top_cells(
        cell_a_center, "timur", cells, trips, poi_cells={cells[0]: 2}, weather=None,
        settings=settings, now=now, rng=StubRandom(0.99),
    )

    assert len(recs) == 3
    scores = [rec.score for rec in recs]
    assert scores == sorted(scores, reverse=True)
    assert all(rec.cell in cells for rec in recs)
    assert all(1 <= len(rec.reasons) <= 3 for rec in recs)


def test_fewer_candidates_than_top_k(cell_a, cell_a_center, now, settings):
    recs = recommend_top_cells(
        cell_a_center, "timur", [cell_a], trips=[], poi_cells=None, weather=None,
        settings=settings, now=now, rng=StubRandom(0.99),
    )
    assert [rec.cell for rec in recs] == [cell_a]


def test_exploration_bonus_applies_when_drawn(cell_a, cell_a_center, now, settings):
    """
    Untried cell with 6+ POIs: a draw below exploration_rate adds exactly the bonus.
    """
    poi_cells = {cell_a: 6}
    features = build_cell_features(cell_a, cell_a_center, [], poi_cells, None, now, settings)
    base = score(features, settings.weights)

    lucky = recommend_top_cells(
        cell_a_center, "timur", [cell_a], [], poi_cells, None, settings, now=now, rng=StubRandom(0.0),
    )
    unlucky = recommend_top_cells(
        cell_a_center, "timur", [cell_a], [], poi_cells, None, settings, now=now, rng=StubRandom(0.99),
    )

    assert lucky[0].score == pytest.approx(base + EXPLORATION_BONUS)
    assert unlucky[0].score == pytest.approx(base)


@pytest.mark.parametrize("trip_count, poi_count", [(2, 20), (0, 5)])
def test_no_exploration_draw_when_ineligible(cell_a, cell_a_center, now, settings, trip_count, poi_count):
    trips = [make_trip(cell_a_center, now - timedelta(days=i + 1)) for i in range(trip_count)]
    rng = StubRandom(0.0)

    recs = recommend_top_cells(
        cell_a_center, "timur", [cell_a], trips, {cell_a: poi_count}, None, settings, now=now, rng=rng,
    )
    features = build_cell_features(cell_a, cell_a_center, trips, {cell_a: poi_count}, None, now, settings)

    assert rng.calls == 0
    assert recs[0].score == pytest.approx(score(features, settings.weights))


def test_seeded_rng_is_reproducible(cell_a_center, now, settings):
    cells = _cells(settings)
    poi_cells = {cell: 10 for cell in cells}

    def run():
        return recommend_top_cells(
            cell_a_center, "timur", cells, [], poi_cells, None, settings, now=now, rng=random.Random(7),
        )

    assert [(r.cell, r.score) for r in run()] == [(r.cell, r.score) for r in run()]


def test_candidates_ordered_by_trips_then_poi(now, settings):
    bbox = REGIONS["timur"].bbox
    res = settings.preferred_resolution
    busy, quiet, poi_only = SPOTS[0], SPOTS[1], SPOTS[2]

    trips = [make_trip(busy, now - timedelta(hours=h)) for h in (2, 4, 6)] + [make_trip(quiet, now - timedelta(hours=8))]
    pois = [{"lat": poi_only[0], "lon": poi_only[1]}] * 5 + [{"lat": quiet[0], "lon": quiet[1]}]

    candidates = build_candidate_cells(trips, pois, res, bbox)

    assert candidates.cells == [
        latlon_to_cell(*busy, res),
        latlon_to_cell(*quiet, res),
        latlon_to_cell(*poi_only, res),
    ]
    assert candidates.poi_counts[latlon_to_cell(*poi_only, res)] == 5


def test_candidates_respect_bbox_and_limit(now, settings):
    bbox = BoundingBox(107.64, -6.96, 107.74, -6.86)
    res = settings.preferred_resolution
    outside = (-6.90, 107.55)  # Bandung Barat

    trips = [make_trip(spot, now - timedelta(hours=2)) for spot in SPOTS] + [make_trip(outside, now - timedelta(hours=2))]
    candidates = build_candidate_cells(trips, [{"lat": outside[0], "lon": outside[1]}], res, bbox)

    assert latlon_to_cell(*outside, res) not in candidates.cells
    assert len(candidates.cells) == len(SPOTS)
    assert candidates.poi_counts == {}

    limited = build_candidate_cells(trips, [], res, bbox, limit=2)
    assert limited.cells == candidates.cells[:2]


def test_candidates_skip_trips_without_gps(now, settings):
    trip = Trip.new(started_at=now - timedelta(hours=2), ended_at=now - timedelta(hours=1), earnings=10_000)
    candidates = build_candidate_cells([trip], [], settings.preferred_resolution, REGIONS["timur"].bbox)

    assert candidates.cells == []


def test_candidate_cells_are_within_region(now, settings):
    bbox = REGIONS["timur"].bbox
    candidates = build_candidate_cells([make_trip(spot, now) for spot in SPOTS], [], settings.preferred_resolution, bbox)

    for cell in candidates.cells:
        lat, lon = cell_to_latlon(cell)
        # centroids may sit just past the edge of a boundary cell
        assert bbox.min_lat - 0.01 <= lat <= bbox.max_lat + 0.01
        assert bbox.min_lon - 0.01 <= lon <= bbox.max_lon + 0.01
