"""
Purpose: Typed access to the three persisted collections.
What it does:
- SettingsRepository: the single "default" settings record (created on first access)
- TripRepository: trips keyed by id, validated on write
- RecommendationEventRepository: write-once recommendation batches, outcome patched later

Rule: Repositories convert between records and domain objects; no scoring here.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, List, Optional
import logging

from engine.models import RecommendationEvent, Trip
from engine.policy import SETTINGS_ID, EngineSettings, Weights, normalize_settings

from .store import RecordStore

logger = logging.getLogger(__name__)


class SettingsRepository:
    """
    Settings are read on every recommendation cycle and written back by the
    weight updater. Read-modify-write is not transactional: one writer per store.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    def get(self) -> EngineSettings:
        existing = self.store.get(SETTINGS_ID)
        settings = normalize_settings(existing)
        record = settings.to_record()

        # persist defaults on first access and repair records that needed normalising
        if existing != record:
            self.store.put(record)
        return settings

    def update(self, *, weights: Optional[Weights] = None, **changes: Any) -> EngineSettings:
        current = self.get()
        if weights is not None:
            changes["weights"] = weights

        updated = replace(current, **changes)
        updated.validate()
        self.store.put(updated.to_record())
        return updated

    def save_weights(self, weights: Weights) -> EngineSettings:
        return self.update(weights=weights)


class TripRepository:
    def __init__(self, store: RecordStore):
        self.store = store

    def add(self, trip: Trip) -> Trip:
        trip.validate()
        self.store.put(trip.to_record())
        return trip

    def get(self, trip_id: str) -> Optional[Trip]:
        record = self.store.get(trip_id)
        return Trip.from_record(record) if record else None

    def list(self) -> List[Trip]:
        """All trips, newest start first."""
        trips = [Trip.from_record(record) for record in self.store.get_all()]
        return sorted(trips, key=lambda trip: trip.started_at, reverse=True)

    def attach_session(self, trip_id: str, session_id: str) -> Optional[Trip]:
        trip = self.get(trip_id)
        if trip is None:
            return None
        trip.session_id = session_id
        self.store.put(trip.to_record())
        return trip

    def delete(self, trip_id: str) -> None:
        self.store.delete(trip_id)


class RecommendationEventRepository:
    def __init__(self, store: RecordStore):
        self.store = store

    def log(self, event: RecommendationEvent) -> RecommendationEvent:
        if self.store.get(event.id) is not None:
            raise ValueError(f"Recommendation event {event.id} already logged")
        self.store.put(event.to_record())
        return event

    def get(self, event_id: str) -> Optional[RecommendationEvent]:
        record = self.store.get(event_id)
        return RecommendationEvent.from_record(record) if record else None

    def list(self) -> List[RecommendationEvent]:
        events = [RecommendationEvent.from_record(record) for record in self.store.get_all()]
        return sorted(events, key=lambda event: event.created_at, reverse=True)

    def patch_outcome(self, event_id: str, chosen_cell: Optional[str], followed: Optional[bool]) -> RecommendationEvent:
        event = self.get(event_id)
        if event is None:
            raise KeyError(f"Recommendation event {event_id} not found")

        event.chosen_cell = chosen_cell
        event.followed = followed
        self.store.put(event.to_record())
        logger.info("event %s outcome: chosen=%s followed=%s", event_id, chosen_cell, followed)
        return event
