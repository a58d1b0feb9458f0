"""
Purpose: Fixed service regions and bounding-box helpers.
What it does:
Defines the areas a driver can pick as their base (each with a bounding box),
parses/validates "minLon,minLat,maxLon,maxLat" strings and answers containment.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned box in degrees. Field order follows the bbox string convention.
    """
    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    @classmethod
    def from_string(cls, value: str) -> BoundingBox:
        parts = [part.strip() for part in (value or "").split(",")]
        if len(parts) != 4:
            raise ValueError("bbox must contain minLon,minLat,maxLon,maxLat")
        try:
            min_lon, min_lat, max_lon, max_lat = (float(part) for part in parts)
        except ValueError:
            raise ValueError(f"bbox has non-numeric parts: {value!r}") from None

        bbox = cls(min_lon=min_lon, min_lat=min_lat, max_lon=max_lon, max_lat=max_lat)
        bbox.validate()
        return bbox

    def validate(self) -> None:
        if self.min_lon > self.max_lon or self.min_lat > self.max_lat:
            raise ValueError(f"bbox minimums exceed maximums: {self.to_string()}")

    def contains(self, lat: float, lon: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon

    def center(self) -> Tuple[float, float]:
        """Midpoint of the box as (lat, lon)."""
        return ((self.min_lat + self.max_lat) / 2, (self.min_lon + self.max_lon) / 2)

    def to_string(self) -> str:
        return f"{self.min_lon},{self.min_lat},{self.max_lon},{self.max_lat}"


@dataclass(frozen=True)
class Region:
    key: str
    label: str
    bbox: BoundingBox


REGIONS: Dict[str, Region] = {
    "timur": Region("timur", "Bandung Timur", BoundingBox(107.64, -6.96, 107.74, -6.86)),
    "tengah": Region("tengah", "Bandung Tengah", BoundingBox(107.58, -6.95, 107.64, -6.88)),
    "utara": Region("utara", "Bandung Utara", BoundingBox(107.57, -6.88, 107.69, -6.8)),
    "selatan": Region("selatan", "Bandung Selatan", BoundingBox(107.57, -7.02, 107.69, -6.95)),
    "barat": Region("barat", "Bandung Barat", BoundingBox(107.5, -6.96, 107.58, -6.86)),
}

DEFAULT_AREA_KEY = "timur"


def resolve_area_key(key: Optional[str]) -> str:
    """
    Return key if it names a known region, otherwise the default area.
    """
    if key in REGIONS:
        return key
    return DEFAULT_AREA_KEY
