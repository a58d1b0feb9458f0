import os
import random
from datetime import datetime, timedelta, timezone
from typing import List

import numpy as np
import pandas as pd

from assistant.service import NgetemAssistant
from engine.models import Trip, TripSource
from geo.regions import REGIONS
from signals.cache import SignalCache
from storage.repositories import RecommendationEventRepository, SettingsRepository, TripRepository
from storage.store import InMemoryRecordStore


class MockPOIClient:
    """Scatters fake POIs inside the requested bbox instead of calling Overpass."""

    def __init__(self, count=250, seed=7):
        self.count = count
        self.rng = np.random.default_rng(seed)

    def fetch_points(self, bbox, cancel_event=None):
        lats = self.rng.uniform(bbox.min_lat, bbox.max_lat, self.count)
        lons = self.rng.uniform(bbox.min_lon, bbox.max_lon, self.count)
        points = [{"lat": float(lat), "lon": float(lon), "tags": {}} for lat, lon in zip(lats, lons)]
        return {"points": points, "count": len(points)}


class MockWeatherClient:
    """Rain building up over the next hours."""

    def __init__(self, peak_probability=70):
        self.peak_probability = peak_probability

    def fetch_hourly(self, lat, lon, cancel_event=None):
        start = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)
        hourly = []
        for hour in range(24):
            probability = min(self.peak_probability, hour * 20)
            hourly.append({"time": (start + timedelta(hours=hour)).isoformat(), "precipitation_probability": probability})
        return {"hourly": hourly}


def load_trips(filepath="mock_trips.csv") -> List[Trip]:
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    absolute_path = os.path.join(base_dir, filepath)

    df = pd.read_csv(absolute_path)
    df = df.replace({np.nan: None})

    trips = []
    for _, row in df.iterrows():
        record = row.to_dict()
        record["source"] = record.get("source") or TripSource.IMPORTED.value
        trips.append(Trip.from_record(record))
    return trips


def run_simulation():
    print("=== STARTING NGETEM SIMULATION ===")

    # 1. Load Data
    trips = load_trips("mock_trips.csv")
    print(f"Loaded {len(trips)} Trips.\n")

    # 2. Configure System
    trip_repo = TripRepository(InMemoryRecordStore("id"))
    for trip in trips:
        trip_repo.add(trip)

    assistant = NgetemAssistant(
        trips=trip_repo,
        settings=SettingsRepository(InMemoryRecordStore("id")),
        events=RecommendationEventRepository(InMemoryRecordStore("id")),
        cache=SignalCache(InMemoryRecordStore("key")),
        poi_client=MockPOIClient(),
        weather_client=MockWeatherClient(),
        rng=random.Random(42),
    )

    # 3. Ask for recommendations from the middle of the region
    region = REGIONS["timur"]
    position = (
        (region.bbox.min_lat + region.bbox.max_lat) / 2,
        (region.bbox.min_lon + region.bbox.max_lon) / 2,
    )
    result = assistant.recommend_now(position, region.key)

    if not result.recommendations:
        print("No candidates yet. Add trips or go online to fetch POIs.")
        return

    print(f"--- Top spots in {region.label} ---")
    for rank, rec in enumerate(result.recommendations, 1):
        f = rec.features
        print(
            f"{rank}. {rec.cell} score={rec.score:.3f} | "
            f"eph={f.internal_eph:,.0f} trips={f.internal_count} poi={f.poi_count} "
            f"rain={f.rain_risk_next_3h:.2f} travel={f.travel_km:.2f}km"
        )
        for reason in rec.reasons:
            print(f"     - {reason}")

    print(f"\nPOI cache: fresh={result.poi_meta.is_fresh} from_cache={result.poi_meta.from_cache}")

    # 4. Driver follows the top pick, does one order and reports earnings
    best = result.recommendations[0]
    assistant.record_choice(result.event_id, best.cell, True)
    draft = assistant.start_order(position, best.score, area_key=region.key)
    trip = assistant.finish_order(draft, earnings=random.choice([18_000, 25_000, 32_000]), end_position=position)

    weights = assistant.settings.get().weights
    print(f"\nStored trip {trip.id}")
    print(f"Updated weights: {weights.to_dict()}")
    print("\n=== SIMULATION COMPLETE ===")


if __name__ == "__main__":
    run_simulation()
