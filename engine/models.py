"""
Purpose: Domain models for the recommendation engine.
What it does:
- Defines core data structures:
- Trip (id, start/end timestamps, optional start/end coordinates, earnings, note, source)
- WeatherSummary / HourlyForecast (hourly precipitation probability series)
- CellFeatures (derived per-cell feature vector, never persisted)
- Recommendation (one ranked output cell)
- RecommendationEvent (audit trail of a recommendation batch)

Defines enums/constants:
- TripSource = MANUAL | IMPORTED | ASSISTANT

Rule: No scoring, no network, no storage calls. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import uuid

LatLon = Tuple[float, float]


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string (a trailing Z is accepted) or pass a datetime through."""
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def as_utc_aware(value: datetime) -> datetime:
    """Naive datetimes are read as UTC; aware ones are returned unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TripSource(str, Enum):
    MANUAL = "manual"
    IMPORTED = "imported"
    ASSISTANT = "assistant"


@dataclass
class Trip:
    """
    A completed job. Coordinates are optional because imported trips may lack GPS.
    """

    id: str
    started_at: datetime
    ended_at: datetime
    earnings: float

    start_lat: Optional[float] = None
    start_lon: Optional[float] = None
    end_lat: Optional[float] = None
    end_lon: Optional[float] = None

    note: str = ""
    source: TripSource = TripSource.MANUAL
    session_id: Optional[str] = None

    def __post_init__(self):
        # imported history may carry naive stamps; keep every trip comparable
        self.started_at = as_utc_aware(self.started_at)
        self.ended_at = as_utc_aware(self.ended_at)

    @staticmethod # Factory method that assigns a fresh id
    def new(
        started_at: datetime,
        ended_at: datetime,
        earnings: float,
        *,
        start: Optional[LatLon] = None,
        end: Optional[LatLon] = None,
        note: str = "",
        source: TripSource = TripSource.MANUAL,
        session_id: Optional[str] = None,
    ) -> Trip:
        trip = Trip(
            id=str(uuid.uuid4()),
            started_at=started_at,
            ended_at=ended_at,
            earnings=earnings,
            start_lat=start[0] if start else None,
            start_lon=start[1] if start else None,
            end_lat=end[0] if end else None,
            end_lon=end[1] if end else None,
            note=note,
            source=source,
            session_id=session_id,
        )
        trip.validate()
        return trip

    @property
    def start(self) -> Optional[LatLon]:
        if self.start_lat is None or self.start_lon is None:
            return None
        return (self.start_lat, self.start_lon)

    @property
    def duration_hours(self) -> float:
        return (self.ended_at - self.started_at).total_seconds() / 3600.0

    def validate(self) -> None:
        if self.ended_at < self.started_at:
            raise ValueError(f"Trip {self.id} ends before it starts")
        if self.earnings < 0:
            raise ValueError(f"Trip {self.id} has negative earnings")

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "start_lat": self.start_lat,
            "start_lon": self.start_lon,
            "end_lat": self.end_lat,
            "end_lon": self.end_lon,
            "earnings": self.earnings,
            "note": self.note,
            "source": self.source.value,
            "session_id": self.session_id,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> Trip:
        return cls(
            id=record["id"],
            started_at=parse_timestamp(record["started_at"]),
            ended_at=parse_timestamp(record["ended_at"]),
            earnings=float(record.get("earnings", 0)),
            start_lat=record.get("start_lat"),
            start_lon=record.get("start_lon"),
            end_lat=record.get("end_lat"),
            end_lon=record.get("end_lon"),
            note=record.get("note") or "",
            source=TripSource(record.get("source", TripSource.MANUAL.value)),
            session_id=record.get("session_id"),
        )


@dataclass(frozen=True)
class HourlyForecast:
    time: datetime
    precipitation_probability: float  # 0..100


@dataclass(frozen=True)
class WeatherSummary:
    """
    Hourly precipitation forecast, as returned by the weather signal.
    """
    hourly: List[HourlyForecast]

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> Optional[WeatherSummary]:
        if not payload:
            return None
        hourly = [
            HourlyForecast(
                time=parse_timestamp(entry["time"]),
                precipitation_probability=float(entry.get("precipitation_probability") or 0),
            )
            for entry in payload.get("hourly", [])
        ]
        return cls(hourly=hourly)


@dataclass(frozen=True)
class CellFeatures:
    """
    Feature vector for one candidate cell. Computed per request, never stored.
    """
    internal_eph: float
    internal_count: int
    recency_score: float
    poi_count: int
    rain_risk_next_3h: float
    travel_km: float
    travel_cost: float
    hour: int
    dow: int


@dataclass(frozen=True)
class Recommendation:
    cell: str
    score: float
    reasons: List[str]
    features: CellFeatures

    def summary(self) -> Dict[str, Any]:
        """The slice of a recommendation that is logged with a RecommendationEvent."""
        return {"cell": self.cell, "score": self.score, "reasons": list(self.reasons)}


@dataclass
class RecommendationEvent:
    """
    Audit record of one recommendation batch.
    Written once; chosen_cell and followed are patched after the driver acts.
    """
    id: str
    created_at: datetime
    user_lat: Optional[float]
    user_lon: Optional[float]
    area_key: str
    recommended: List[Dict[str, Any]] = field(default_factory=list)
    chosen_cell: Optional[str] = None
    followed: Optional[bool] = None

    def __post_init__(self):
        self.created_at = as_utc_aware(self.created_at)

    @staticmethod
    def new(position: Optional[LatLon], area_key: str, recommendations: List[Recommendation],
            created_at: Optional[datetime] = None) -> RecommendationEvent:
        return RecommendationEvent(
            id=str(uuid.uuid4()),
            created_at=created_at or utc_now(),
            user_lat=position[0] if position else None,
            user_lon=position[1] if position else None,
            area_key=area_key,
            recommended=[rec.summary() for rec in recommendations],
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "user_lat": self.user_lat,
            "user_lon": self.user_lon,
            "area_key": self.area_key,
            "recommended": self.recommended,
            "chosen_cell": self.chosen_cell,
            "followed": self.followed,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> RecommendationEvent:
        return cls(
            id=record["id"],
            created_at=parse_timestamp(record["created_at"]),
            user_lat=record.get("user_lat"),
            user_lon=record.get("user_lon"),
            area_key=record["area_key"],
            recommended=list(record.get("recommended") or []),
            chosen_cell=record.get("chosen_cell"),
            followed=record.get("followed"),
        )
