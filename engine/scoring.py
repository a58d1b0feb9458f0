"""
Purpose: Turn a feature vector into a score, and learn from outcomes.
What it does:

Computes for each cell:

normalised terms: log1p(max(x, 0)) for eph, poi count and travel cost

weather-adaptive weights: heavy rain (>= 0.6) boosts the POI weight x1.2
and the travel weight x1.3

score = sum of the five weighted terms

After a finished job, nudges the weights toward the realised earnings per hour
(bounded per update, see update_weights_from_outcome).

Rule: Scoring is pure. Randomness (exploration) lives in recommend.py.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict
import logging
import math

from .models import CellFeatures
from .policy import Weights

logger = logging.getLogger(__name__)

RAIN_HEAVY_THRESHOLD = 0.6
RAIN_POI_FACTOR = 1.2
RAIN_TRAVEL_FACTOR = 1.3

LEARNING_RATE = 0.05
MAX_OUTCOME_RATIO = 0.2


@dataclass(frozen=True)
class WeatherAdjustedWeights:
    """
    Effective POI/travel weights after rain reweighting.
    """
    w_poi: float
    w_travel: float
    rain_heavy: bool


def normalize_log(value: float) -> float:
    return math.log1p(max(value, 0.0))


def clamp_rain_risk(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def adjust_weights_for_weather(weights: Weights, rain_risk: float) -> WeatherAdjustedWeights:
    """
    The single place where rain changes weights. Shared by the scorer and the explainer.
    """
    rain_heavy = clamp_rain_risk(rain_risk) >= RAIN_HEAVY_THRESHOLD
    if not rain_heavy:
        return WeatherAdjustedWeights(w_poi=weights.w_poi, w_travel=weights.w_travel, rain_heavy=False)

    return WeatherAdjustedWeights(
        w_poi=weights.w_poi * RAIN_POI_FACTOR,
        w_travel=weights.w_travel * RAIN_TRAVEL_FACTOR,
        rain_heavy=True,
    )


def score_contributions(features: CellFeatures, weights: Weights) -> Dict[str, float]:
    """
    The five weighted terms of the score, keyed internal/recency/poi/travel/rain.
    """
    rain_risk = clamp_rain_risk(features.rain_risk_next_3h)
    adjusted = adjust_weights_for_weather(weights, rain_risk)

    return {
        "internal": weights.w_internal * normalize_log(features.internal_eph),
        "recency": weights.w_recency * features.recency_score,
        "poi": adjusted.w_poi * normalize_log(features.poi_count),
        "travel": adjusted.w_travel * normalize_log(features.travel_cost),
        "rain": weights.w_rain * rain_risk,
    }


def score(features: CellFeatures, weights: Weights) -> float:
    """
    Unclamped score, higher is better. All-zero features score 0.
    """
    return sum(score_contributions(features, weights).values())


def update_weights_from_outcome(
    predicted_score_at_start: float,
    actual_eph: float,
    weights: Weights,
) -> Weights:
    """
    Nudge weights toward the realised earnings per hour of a finished job.

    ratio = (actual_eph - safe_pred) / safe_pred with safe_pred = max(predicted, 1),
    clipped to [-0.2, 0.2], then scaled by the learning rate (0.05). Internal weight
    moves by the full delta, recency/poi by delta/2 and delta/3, travel/rain in the
    opposite direction by delta/2 and delta/3.

    Only the per-update delta is bounded; the weights themselves are not.
    """
    safe_pred = max(predicted_score_at_start, 1.0)
    ratio = (actual_eph - safe_pred) / safe_pred
    clipped = max(min(ratio, MAX_OUTCOME_RATIO), -MAX_OUTCOME_RATIO)
    delta = clipped * LEARNING_RATE

    updated = replace(
        weights,
        w_internal=weights.w_internal + delta,
        w_recency=weights.w_recency + delta / 2,
        w_poi=weights.w_poi + delta / 3,
        w_travel=weights.w_travel - delta / 2,
        w_rain=weights.w_rain - delta / 3,
    )
    logger.debug("weight update: ratio=%.4f delta=%.5f", ratio, delta)

    # TODO: decide on absolute weight bounds; cumulative drift can flip a cost term's sign.
    for name in ("w_travel", "w_rain"):
        if getattr(updated, name) >= 0 > getattr(weights, name):
            logger.warning("cost weight %s drifted to %.4f (no longer a penalty)", name, getattr(updated, name))

    return updated
