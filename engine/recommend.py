"""
Purpose: The recommendation "orchestrator" (single entry point of the engine).
What it does:

- builds features for every candidate cell (features.py)
- scores them (scoring.py), with an exploration bonus for untried POI-dense cells
- attaches reasons (explain.py)
- ranks and returns the top K

Rule: Engine is the only file other modules should call directly for ranking.
Candidate selection happens before this (see candidates.py); an empty list is valid.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Mapping, Optional, Protocol, Sequence
import logging
import random

from geo.cells import LatLon

from .explain import explain
from .features import build_cell_features
from .models import Recommendation, Trip, WeatherSummary, utc_now
from .policy import EngineSettings
from .scoring import score

logger = logging.getLogger(__name__)

# --- Exploration (cold-start discovery) ---
EXPLORATION_BONUS = 0.25
EXPLORATION_MAX_INTERNAL_TRIPS = 1
EXPLORATION_MIN_POI = 6

DEFAULT_TOP_K = 3


class RandomSource(Protocol):
    def random(self) -> float: ...


def recommend_top_cells(
    user_position: Optional[LatLon],
    area_key: str,
    candidate_cells: Sequence[str],
    trips: Sequence[Trip],
    poi_cells: Optional[Mapping[str, int]],
    weather: Optional[WeatherSummary],
    settings: EngineSettings,
    *,
    now: Optional[datetime] = None,
    rng: Optional[RandomSource] = None,
    top_k: int = DEFAULT_TOP_K,
) -> List[Recommendation]:
    """
    Rank candidate cells for waiting.

    Parameters
    ----------
    user_position:
        Driver's current (lat, lon); None when GPS is unavailable.
    area_key:
        Active region. Not used for scoring; kept so callers log it alongside results.
    candidate_cells:
        Cells worth evaluating (already capped by the caller).
    trips, poi_cells, weather:
        Signals; poi_cells and weather may be None when offline.
    settings:
        Weights, exploration rate, cost per km and resolution.
    now:
        Current instant (defaults to now in UTC).
    rng:
        Randomness for the exploration draw. Inject a seeded random.Random for
        reproducible rankings.

    Returns
    -------
    Up to top_k Recommendation objects, best first.
    """
    if not candidate_cells:
        return []

    now = now or utc_now()
    rng = rng or random.Random()
    weights = settings.weights

    scored: List[Recommendation] = []
    for cell in candidate_cells:
        features = build_cell_features(
            cell=cell,
            user_position=user_position,
            trips=trips,
            poi_cells=poi_cells,
            weather=weather,
            now=now,
            settings=settings,
        )
        score_value = score(features, weights)

        if (
            features.internal_count <= EXPLORATION_MAX_INTERNAL_TRIPS
            and features.poi_count >= EXPLORATION_MIN_POI
            and rng.random() < settings.exploration_rate
        ):
            score_value += EXPLORATION_BONUS
            logger.debug("exploration bonus applied to %s", cell)

        scored.append(
            Recommendation(
                cell=cell,
                score=score_value,
                reasons=explain(features, weights),
                features=features,
            )
        )

    scored.sort(key=lambda rec: rec.score, reverse=True)
    logger.debug("ranked %d candidates for area %s", len(scored), area_key)
    return scored[:top_k]
