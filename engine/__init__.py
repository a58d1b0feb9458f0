"""
Recommendation engine package.

Public API:
- Domain models: Trip, TripSource, WeatherSummary, CellFeatures, Recommendation, RecommendationEvent
- Settings: Weights, EngineSettings, default_settings, normalize_settings
- Pipeline: build_cell_features, score, explain, recommend_top_cells, build_candidate_cells
- Learning: update_weights_from_outcome
"""
from .models import (
    Trip,
    TripSource,
    HourlyForecast,
    WeatherSummary,
    CellFeatures,
    Recommendation,
    RecommendationEvent,
)
from .policy import Weights, EngineSettings, default_settings, normalize_settings
from .features import build_cell_features
from .scoring import score, score_contributions, adjust_weights_for_weather, update_weights_from_outcome
from .explain import explain
from .recommend import recommend_top_cells
from .candidates import CandidateSet, build_candidate_cells

__all__ = [
    "Trip",
    "TripSource",
    "HourlyForecast",
    "WeatherSummary",
    "CellFeatures",
    "Recommendation",
    "RecommendationEvent",
    "Weights",
    "EngineSettings",
    "default_settings",
    "normalize_settings",
    "build_cell_features",
    "score",
    "score_contributions",
    "adjust_weights_for_weather",
    "update_weights_from_outcome",
    "explain",
    "recommend_top_cells",
    "CandidateSet",
    "build_candidate_cells",
]
