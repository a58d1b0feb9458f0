#Purpose: The cell-indexing adapter.
#Sole responsibility: map (lat, lon) to a discrete cell id and back.
#Encapsulates H3-specific details:
#resolution handling
#(lat, lng) ordering of the h3 API
#boundary rings for heatmap polygons
#It should not contain scoring or aggregation rules.

from typing import List, Tuple
import math

import h3

# Internal coordinate type: (lat, lon)
LatLon = Tuple[float, float]

EARTH_RADIUS_KM = 6371.0


def latlon_to_cell(lat: float, lon: float, resolution: int) -> str:
    """Return the H3 cell id containing (lat, lon) at the given resolution."""
    return h3.latlng_to_cell(lat, lon, resolution)


def cell_to_latlon(cell: str) -> LatLon:
    """Return the centroid of a cell as (lat, lon)."""
    lat, lon = h3.cell_to_latlng(cell)
    return (lat, lon)


def cell_boundary(cell: str) -> List[LatLon]:
    """Return the polygon ring of a cell as a list of (lat, lon)."""
    return [(lat, lon) for lat, lon in h3.cell_to_boundary(cell)]


def haversine_km(a: LatLon, b: LatLon) -> float:
    """
    Great-circle distance in kilometres between two (lat, lon) points.
    """
    lat1, lon1 = math.radians(a[0]), math.radians(a[1])
    lat2, lon2 = math.radians(b[0]), math.radians(b[1])
    d_lat = lat2 - lat1
    d_lon = lon2 - lon1

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))
