"""
Purpose: Aggregate raw points into spatial cells.
What it does:

- maps each (lat, lon) point to a cell id at a fixed resolution
- sums a value per cell (count when the point carries no value)
- converts cell aggregates into a GeoJSON FeatureCollection for heatmaps

Rule: Pure functions only. No I/O, no scoring.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping

from .cells import cell_boundary, latlon_to_cell


@dataclass(frozen=True)
class CellAggregate:
    """
    Summed value for one cell.
    """
    cell: str
    value: float


def bin_points_to_cells(points: Iterable[Mapping[str, Any]], resolution: int) -> List[CellAggregate]:
    """
    Bin points into cells and sum their values.

    Args:
        points: mappings with "lat", "lon" and an optional numeric "value" (defaults to 1)
        resolution: cell resolution passed to the indexing primitive

    Returns:
        List[CellAggregate], one entry per occupied cell (order carries no meaning).
    """
    bins: Dict[str, float] = {}
    for point in points:
        cell = latlon_to_cell(point["lat"], point["lon"], resolution)
        value = point.get("value")
        bins[cell] = bins.get(cell, 0) + (1 if value is None else value)

    return [CellAggregate(cell=cell, value=value) for cell, value in bins.items()]


def trip_points(trips: Iterable[Any]) -> List[Dict[str, float]]:
    """
    Heatmap points for trips that carry a start coordinate.
    Each point is weighted by its earnings, floored at 1 so zero-earning trips still show up.
    """
    points: List[Dict[str, float]] = []
    for trip in trips:
        if trip.start_lat is None or trip.start_lon is None:
            continue
        points.append({"lat": trip.start_lat, "lon": trip.start_lon, "value": max(trip.earnings, 1)})
    return points


def cells_to_geojson(aggregates: List[CellAggregate]) -> Dict[str, Any]:
    """
    Build a GeoJSON FeatureCollection of cell polygons.

    Each feature carries the raw value and an intensity in [0, 1] relative to the busiest cell.
    Rings are emitted in GeoJSON [lon, lat] order.
    """
    max_value = max((agg.value for agg in aggregates), default=0)

    features = []
    for agg in aggregates:
        ring = [[lon, lat] for lat, lon in cell_boundary(agg.cell)]
        if ring and ring[0] != ring[-1]:
            ring.append(ring[0])  # GeoJSON rings are closed
        features.append(
            {
                "type": "Feature",
                "geometry": {"type": "Polygon", "coordinates": [ring]},
                "properties": {
                    "cell": agg.cell,
                    "value": agg.value,
                    "intensity": agg.value / max_value if max_value > 0 else 0,
                },
            }
        )

    return {"type": "FeatureCollection", "features": features}
