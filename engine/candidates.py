"""
Purpose: Decide which cells are even worth evaluating.
What it does:

Bins the driver's trip starts and the fetched POI points that fall inside the
active region into cells, then keeps the densest ones:

- ordered by internal trip count, then POI count
- capped (default 300) to bound the recommender's work

Rule: Candidate generation does not score; it only forms the candidate list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

from geo.binning import bin_points_to_cells
from geo.regions import BoundingBox

from .features import has_start_coordinates
from .models import Trip

MAX_CANDIDATES = 300


@dataclass(frozen=True)
class CandidateSet:
    cells: List[str]
    poi_counts: Dict[str, int] = field(default_factory=dict)


def build_candidate_cells(
    trips: Sequence[Trip],
    poi_points: Sequence[Mapping[str, Any]],
    resolution: int,
    bbox: BoundingBox,
    *,
    limit: int = MAX_CANDIDATES,
) -> CandidateSet:
    """
    Candidate cells inside bbox plus the POI count per cell (fed to the recommender).
    """
    trip_starts = [
        {"lat": trip.start_lat, "lon": trip.start_lon}
        for trip in trips
        if has_start_coordinates(trip) and bbox.contains(trip.start_lat, trip.start_lon)
    ]
    pois = [point for point in poi_points if bbox.contains(point["lat"], point["lon"])]

    internal_counts = {agg.cell: int(agg.value) for agg in bin_points_to_cells(trip_starts, resolution)}
    poi_counts = {agg.cell: int(agg.value) for agg in bin_points_to_cells(pois, resolution)}

    combined = set(internal_counts) | set(poi_counts)
    ordered = sorted(
        combined,
        key=lambda cell: (-internal_counts.get(cell, 0), -poi_counts.get(cell, 0), cell),
    )

    if limit is not None and limit > 0:
        ordered = ordered[:limit]

    return CandidateSet(cells=ordered, poi_counts=poi_counts)
