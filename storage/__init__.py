"""
Storage package: the persisted collections the engine relies on.

Public API:
- RecordStore protocol with InMemoryRecordStore and SqliteRecordStore
- Repositories: SettingsRepository, TripRepository, RecommendationEventRepository
"""
from .store import RecordStore, InMemoryRecordStore, SqliteRecordStore
from .repositories import SettingsRepository, TripRepository, RecommendationEventRepository

__all__ = [
    "RecordStore",
    "InMemoryRecordStore",
    "SqliteRecordStore",
    "SettingsRepository",
    "TripRepository",
    "RecommendationEventRepository",
]
