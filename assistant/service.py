"""
Purpose: Orchestrator / decision pipeline (the "glue").
What it does:
Pulls POI and weather signals through the cache, builds candidate cells for the
driver's region, ranks them with the engine and logs the batch. When the driver
finishes an order, stores the trip and feeds the realised earnings per hour back
into the scoring weights.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging
import threading

from engine.candidates import build_candidate_cells
from engine.features import MIN_TRIP_HOURS
from engine.models import Recommendation, RecommendationEvent, Trip, TripSource, WeatherSummary, utc_now
from engine.recommend import RandomSource, recommend_top_cells
from engine.scoring import update_weights_from_outcome
from geo.regions import REGIONS, resolve_area_key
from signals.cache import DEFAULT_TTL_SECONDS, SignalCache, SignalMeta
from signals.clients import POIClient, WeatherClient, poi_cache_key, weather_cache_key
from signals.errors import SignalCancelledError, SignalError
from storage.repositories import RecommendationEventRepository, SettingsRepository, TripRepository

logger = logging.getLogger(__name__)

LatLon = Tuple[float, float]

LOCATION_MISSING_NOTE = "Lokasi tidak tersedia"


@dataclass(frozen=True)
class NgetemResult:
    """
    Output of one "where should I wait?" request.
    recommendations is empty when there were no candidates; the caller should
    then ask the driver for more data.
    """
    area_key: str
    recommendations: List[Recommendation]
    event_id: Optional[str] = None
    poi_meta: Optional[SignalMeta] = None
    weather_meta: Optional[SignalMeta] = None
    signal_errors: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DraftOrder:
    """
    An order in progress. predicted_score_at_start is the score of the
    recommendation the driver acted on, used for the weight update.
    """
    started_at: datetime
    start: Optional[LatLon]
    area_key: str
    predicted_score_at_start: float = 0.0
    session_id: Optional[str] = None

    @property
    def location_unavailable(self) -> bool:
        return self.start is None


class NgetemAssistant:
    """
    Coordinates signals, engine and storage for one driver.
    """

    def __init__(
        self,
        trips: TripRepository,
        settings: SettingsRepository,
        events: RecommendationEventRepository,
        cache: SignalCache,
        poi_client: POIClient,
        weather_client: WeatherClient,
        *,
        rng: Optional[RandomSource] = None,
        clock: Optional[Callable[[], datetime]] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ):
        self.trips = trips
        self.settings = settings
        self.events = events
        self.cache = cache
        self.poi_client = poi_client
        self.weather_client = weather_client
        self.rng = rng
        self.clock = clock or utc_now
        self.ttl_seconds = ttl_seconds

    # ---- signals ----

    def _load_poi_points(self, area_key: str, *, is_online: bool, force_refresh: bool,
                         cancel_event: Optional[threading.Event] = None):
        bbox = REGIONS[area_key].bbox
        result = self.cache.get_or_fetch(
            poi_cache_key(bbox),
            self.ttl_seconds,
            lambda: self.poi_client.fetch_points(bbox, cancel_event=cancel_event),
            force_refresh=force_refresh,
            allow_network=is_online,
            allow_stale=True,
        )
        return result.payload.get("points", []), result.meta

    def _load_weather(self, position: LatLon, *, is_online: bool, force_refresh: bool,
                      cancel_event: Optional[threading.Event] = None):
        lat, lon = position
        result = self.cache.get_or_fetch(
            weather_cache_key(lat, lon),
            self.ttl_seconds,
            lambda: self.weather_client.fetch_hourly(lat, lon, cancel_event=cancel_event),
            force_refresh=force_refresh,
            allow_network=is_online,
            allow_stale=True,
        )
        return WeatherSummary.from_payload(result.payload), result.meta

    # ---- recommendations ----

    def recommend_now(
        self,
        position: Optional[LatLon],
        area_key: Optional[str] = None,
        *,
        is_online: bool = True,
        force_refresh: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> NgetemResult:
        """
        Rank waiting spots around the driver's region.

        Signals that cannot be obtained degrade the ranking (no POI -> internal
        history only, no weather -> no rain risk) instead of failing it.
        position is None when GPS is unavailable: travel cost drops out and the
        forecast is taken at the region centre.
        Setting cancel_event (e.g. the driver switched region) aborts in-flight
        fetches with SignalCancelledError; the cached entries are left untouched.
        """
        area_key = resolve_area_key(area_key)
        settings = self.settings.get()
        trips = self.trips.list()
        signal_errors: Dict[str, str] = {}

        poi_points: List[Dict[str, Any]] = []
        poi_meta = None
        try:
            poi_points, poi_meta = self._load_poi_points(
                area_key, is_online=is_online, force_refresh=force_refresh, cancel_event=cancel_event,
            )
        except SignalCancelledError:
            raise
        except SignalError as e:
            logger.warning("POI signal unavailable for %s: %s", area_key, e)
            signal_errors["poi"] = str(e)

        weather = None
        weather_meta = None
        forecast_at = position or REGIONS[area_key].bbox.center()
        try:
            weather, weather_meta = self._load_weather(
                forecast_at, is_online=is_online, force_refresh=force_refresh, cancel_event=cancel_event,
            )
        except SignalCancelledError:
            raise
        except SignalError as e:
            logger.warning("Weather signal unavailable: %s", e)
            signal_errors["weather"] = str(e)

        candidates = build_candidate_cells(
            trips,
            poi_points,
            settings.preferred_resolution,
            REGIONS[area_key].bbox,
        )
        if not candidates.cells:
            logger.info("no candidate cells for %s", area_key)
            return NgetemResult(
                area_key=area_key,
                recommendations=[],
                poi_meta=poi_meta,
                weather_meta=weather_meta,
                signal_errors=signal_errors,
            )

        now = self.clock()
        top = recommend_top_cells(
            user_position=position,
            area_key=area_key,
            candidate_cells=candidates.cells,
            trips=trips,
            poi_cells=candidates.poi_counts,
            weather=weather,
            settings=settings,
            now=now,
            rng=self.rng,
        )

        event = self.events.log(RecommendationEvent.new(position, area_key, top, created_at=now))
        return NgetemResult(
            area_key=area_key,
            recommendations=top,
            event_id=event.id,
            poi_meta=poi_meta,
            weather_meta=weather_meta,
            signal_errors=signal_errors,
        )

    def record_choice(self, event_id: str, chosen_cell: Optional[str], followed: Optional[bool]) -> RecommendationEvent:
        return self.events.patch_outcome(event_id, chosen_cell, followed)

    # ---- orders ----

    def start_order(
        self,
        position: Optional[LatLon],
        predicted_score_at_start: Optional[float] = None,
        *,
        area_key: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> DraftOrder:
        """
        Begin an order. position is None when GPS failed; the trip is still recorded.
        """
        return DraftOrder(
            started_at=self.clock(),
            start=position,
            area_key=resolve_area_key(area_key),
            predicted_score_at_start=predicted_score_at_start or 0.0,
            session_id=session_id,
        )

    def finish_order(
        self,
        draft: DraftOrder,
        earnings: float,
        end_position: Optional[LatLon] = None,
        note: str = "",
    ) -> Trip:
        """
        Store the finished trip and nudge the weights toward its earnings per hour.
        """
        if earnings is None or not earnings > 0:
            raise ValueError("earnings must be > 0")

        ended_at = self.clock()
        note_parts = [note.strip()]
        if draft.location_unavailable or end_position is None:
            note_parts.append(LOCATION_MISSING_NOTE)

        trip = Trip.new(
            started_at=draft.started_at,
            ended_at=ended_at,
            earnings=earnings,
            start=draft.start,
            end=end_position,
            note=". ".join(part for part in note_parts if part),
            source=TripSource.ASSISTANT,
            session_id=draft.session_id,
        )
        self.trips.add(trip)

        actual_eph = earnings / max(trip.duration_hours, MIN_TRIP_HOURS)
        current = self.settings.get()
        updated = update_weights_from_outcome(
            predicted_score_at_start=draft.predicted_score_at_start,
            actual_eph=actual_eph,
            weights=current.weights,
        )
        self.settings.save_weights(updated)
        logger.info("trip %s stored, eph=%.1f", trip.id, actual_eph)
        return trip
