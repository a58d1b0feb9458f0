"""
Purpose: Build the feature vector for one candidate cell.
What it does:

- filters trip history down to trips that started inside the cell
- earnings per hour (duration floored at 0.1h) and recency of the latest trip
- POI count for the cell
- rain risk over the next 3 hours
- travel distance/cost from the driver's position to the cell centroid

Rule: Missing inputs degrade to 0 / neutral values. Nothing here raises on absent data.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Mapping, Optional, Sequence
import math

from geo.cells import LatLon, cell_to_latlon, haversine_km, latlon_to_cell

from .models import CellFeatures, Trip, WeatherSummary
from .policy import EngineSettings

# Shortest duration a trip is credited with when computing earnings per hour.
MIN_TRIP_HOURS = 0.1

RAIN_HORIZON = timedelta(hours=3)


def _align(ts: datetime, reference: datetime) -> datetime:
    """Make ts comparable with reference (naive stamps are read in reference's timezone)."""
    if reference.tzinfo is not None and ts.tzinfo is None:
        return ts.replace(tzinfo=reference.tzinfo)
    if reference.tzinfo is None and ts.tzinfo is not None:
        return ts.astimezone().replace(tzinfo=None)
    return ts


def rain_risk_next_3h(weather: Optional[WeatherSummary], now: datetime) -> float:
    """
    Highest precipitation probability in [now, now + 3h], scaled to [0, 1].
    0 when there is no forecast or no hour falls inside the window.
    """
    if weather is None:
        return 0.0

    horizon = now + RAIN_HORIZON
    in_window = [
        entry.precipitation_probability
        for entry in weather.hourly
        if now <= _align(entry.time, now) <= horizon
    ]
    if not in_window:
        return 0.0

    return min(max(max(in_window) / 100.0, 0.0), 1.0)


def has_start_coordinates(trip: Trip) -> bool:
    if trip.start_lat is None or trip.start_lon is None:
        return False
    return math.isfinite(trip.start_lat) and math.isfinite(trip.start_lon)


def build_cell_features(
    cell: str,
    user_position: Optional[LatLon],
    trips: Sequence[Trip],
    poi_cells: Optional[Mapping[str, int]],
    weather: Optional[WeatherSummary],
    now: datetime,
    settings: EngineSettings,
) -> CellFeatures:
    """
    Compute CellFeatures for a single cell.

    Args:
        cell: target cell id
        user_position: driver's current (lat, lon), or None when GPS is unavailable
        trips: full trip history (filtered here, not by the caller)
        poi_cells: optional mapping cell id -> POI count (None when fully offline)
        weather: optional hourly precipitation forecast
        now: the current instant
        settings: supplies cost_per_km and preferred_resolution

    Returns:
        CellFeatures for the cell.
    """
    internal_count = 0
    earnings_sum = 0.0
    hours_sum = 0.0
    latest_end: Optional[datetime] = None

    for trip in trips:
        if not has_start_coordinates(trip):
            continue
        if latlon_to_cell(trip.start_lat, trip.start_lon, settings.preferred_resolution) != cell:
            continue

        internal_count += 1
        earnings_sum += trip.earnings
        hours_sum += max(trip.duration_hours, MIN_TRIP_HOURS)

        ended_at = _align(trip.ended_at, now)
        if latest_end is None or ended_at > latest_end:
            latest_end = ended_at

    internal_eph = earnings_sum / hours_sum if hours_sum > 0 else 0.0

    if latest_end is None:
        recency_score = 0.0  # no trip: days since is infinite
    else:
        days_since = max((now - latest_end).total_seconds() / 86400.0, 0.0)
        recency_score = 1.0 / (1.0 + days_since)

    poi_count = (poi_cells or {}).get(cell, 0)

    if user_position is None:
        travel_km = 0.0  # unknown position: no travel penalty
    else:
        travel_km = haversine_km(user_position, cell_to_latlon(cell))

    return CellFeatures(
        internal_eph=internal_eph,
        internal_count=internal_count,
        recency_score=recency_score,
        poi_count=poi_count,
        rain_risk_next_3h=rain_risk_next_3h(weather, now),
        travel_km=travel_km,
        travel_cost=travel_km * settings.cost_per_km,
        hour=now.hour,
        dow=now.weekday(),
    )
