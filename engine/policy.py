"""
Purpose: Central configuration for the recommendation engine (single source of truth).
What it does:

Stores all tunable parameters the engine reads on every cycle:

cost per km (travel cost feature)

average speed

exploration rate (chance to boost under-explored cells)

preferred cell resolution

the five scoring weights (internal, recency, poi, travel, rain)

Settings are passed explicitly into the engine. Persistence lives in storage/.

Rule: No logic here beyond validation and record conversion.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class Weights:
    """
    Linear scoring weights.

    Notes:
    - travel and rain are cost terms, hence negative by default.
    - the weight updater returns a new Weights; instances are never mutated.
    """
    w_internal: float = 1.0
    w_recency: float = 0.5
    w_poi: float = 0.25
    w_travel: float = -0.6
    w_rain: float = -0.2

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Weights:
        """
        Build weights from a stored mapping. Unknown keys are ignored and
        missing or non-numeric ones fall back to the defaults.
        """
        defaults = cls()
        values: Dict[str, float] = {}
        for f in fields(cls):
            raw = (data or {}).get(f.name)
            try:
                values[f.name] = float(raw) if raw is not None else getattr(defaults, f.name)
            except (TypeError, ValueError):
                values[f.name] = getattr(defaults, f.name)
        return cls(**values)


@dataclass(frozen=True)
class EngineSettings:
    """
    Process-wide engine configuration (stored as the single "default" settings record).
    """

    # --- Travel cost ---
    # Currency units spent per km driven; travel_cost = travel_km * cost_per_km.
    cost_per_km: float = 250.0

    avg_speed_kmh: float = 25.0

    # --- Exploration ---
    # Probability that a POI-dense but untried cell gets the exploration bonus.
    exploration_rate: float = 0.08

    # --- Spatial resolution ---
    # Cell resolution used to bin trip starts and POIs for ranking.
    preferred_resolution: int = 8

    weights: Weights = field(default_factory=Weights)

    def validate(self) -> None:
        """
        Basic sanity checks. Raises ValueError on the first violation.
        """
        if self.cost_per_km < 0:
            raise ValueError("cost_per_km must be >= 0")

        if self.avg_speed_kmh <= 0:
            raise ValueError("avg_speed_kmh must be > 0")

        if not 0.0 <= self.exploration_rate <= 1.0:
            raise ValueError("exploration_rate must be within [0, 1]")

        if not 0 <= self.preferred_resolution <= 15:
            raise ValueError("preferred_resolution must be within 0..15")

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": SETTINGS_ID,
            "cost_per_km": self.cost_per_km,
            "avg_speed_kmh": self.avg_speed_kmh,
            "exploration_rate": self.exploration_rate,
            "preferred_resolution": self.preferred_resolution,
            "weights": self.weights.to_dict(),
        }


SETTINGS_ID = "default"


def default_settings() -> EngineSettings:
    """
    Convenience factory for the default settings.
    """
    s = EngineSettings()
    s.validate()
    return s


def normalize_settings(record: Optional[Mapping[str, Any]]) -> EngineSettings:
    """
    Coerce a stored (possibly partial or older) settings record into valid settings.

    Missing fields take their defaults; values that fail validation are
    replaced by the default for that field instead of failing the whole record.
    """
    record = record or {}
    defaults = EngineSettings()

    def _number(name: str, cast):
        raw = record.get(name)
        if raw is None:
            return getattr(defaults, name)
        try:
            return cast(raw)
        except (TypeError, ValueError):
            return getattr(defaults, name)

    cost_per_km = _number("cost_per_km", float)
    avg_speed_kmh = _number("avg_speed_kmh", float)
    exploration_rate = _number("exploration_rate", float)
    preferred_resolution = _number("preferred_resolution", int)

    if cost_per_km < 0:
        cost_per_km = defaults.cost_per_km
    if avg_speed_kmh <= 0:
        avg_speed_kmh = defaults.avg_speed_kmh
    if not 0.0 <= exploration_rate <= 1.0:
        exploration_rate = defaults.exploration_rate
    if not 0 <= preferred_resolution <= 15:
        preferred_resolution = defaults.preferred_resolution

    s = EngineSettings(
        cost_per_km=cost_per_km,
        avg_speed_kmh=avg_speed_kmh,
        exploration_rate=exploration_rate,
        preferred_resolution=preferred_resolution,
        weights=Weights.from_dict(record.get("weights")),
    )
    s.validate()
    return s
