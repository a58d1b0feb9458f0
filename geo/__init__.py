#Marks geo as a package.
#Re-exports the spatial helpers (cell indexing, binning, regions) so the engine
#and the assistant import from geo without knowing internal file names.
#No business logic.

from .cells import LatLon, latlon_to_cell, cell_to_latlon, cell_boundary, haversine_km
from .binning import CellAggregate, bin_points_to_cells, cells_to_geojson, trip_points
from .regions import BoundingBox, Region, REGIONS, DEFAULT_AREA_KEY, resolve_area_key

__all__ = [
    "LatLon",
    "latlon_to_cell",
    "cell_to_latlon",
    "cell_boundary",
    "haversine_km",
    "CellAggregate",
    "bin_points_to_cells",
    "cells_to_geojson",
    "trip_points",
    "BoundingBox",
    "Region",
    "REGIONS",
    "DEFAULT_AREA_KEY",
    "resolve_area_key",
]
