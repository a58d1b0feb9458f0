import pandas as pd
import numpy as np
import uuid
from datetime import datetime, timezone, timedelta


def generate_mock_trips(num_trips=400, num_hotspots=12, output_file="mock_trips.csv", days=30):
    """
    Generates a synthetic trip history for one driver in Bandung.
    Trips start around a fixed set of 'hotspots' so that some cells accumulate
    history (and earnings per hour differ between them), which gives the
    recommender something to rank.
    """
    # Center around Bandung Timur
    CENTER_LAT = -6.91
    CENTER_LON = 107.69

    # 1. Hotspots, each with its own typical fare level
    hotspots = []
    for hotspot_index in range(num_hotspots):
        hotspots.append({
            "name": f"Hotspot {hotspot_index + 1}",
            "lat": CENTER_LAT + np.random.uniform(-0.04, 0.04),
            "lon": CENTER_LON + np.random.uniform(-0.04, 0.04),
            "fare_mean": np.random.uniform(12_000, 45_000),
        })

    data = []
    now = datetime.now(timezone.utc)

    # 2. Trips
    for trip_index in range(num_trips):
        hotspot = hotspots[np.random.randint(0, num_hotspots)]

        started_at = now - timedelta(minutes=int(np.random.randint(60, days * 24 * 60)))
        duration_min = int(np.random.randint(8, 75))
        ended_at = started_at + timedelta(minutes=duration_min)

        # ~5% of imported trips come without GPS
        has_gps = np.random.random() > 0.05
        start_lat = hotspot["lat"] + np.random.normal(0, 0.002) if has_gps else None
        start_lon = hotspot["lon"] + np.random.normal(0, 0.002) if has_gps else None

        data.append({
            "id": str(uuid.uuid4()),
            "started_at": started_at.isoformat(),
            "ended_at": ended_at.isoformat(),
            "start_lat": np.round(start_lat, 6) if has_gps else None,
            "start_lon": np.round(start_lon, 6) if has_gps else None,
            "end_lat": np.round(CENTER_LAT + np.random.uniform(-0.08, 0.08), 6),
            "end_lon": np.round(CENTER_LON + np.random.uniform(-0.08, 0.08), 6),
            "earnings": float(np.round(max(np.random.normal(hotspot["fare_mean"], 4_000), 5_000), -2)),
            "note": hotspot["name"],
            "source": "imported",
        })

    # 3. Save to CSV
    df = pd.DataFrame(data)
    df.to_csv(output_file, index=False)
    print(f"✅ Generated {num_trips} trips and saved to '{output_file}'")

    print("\nTop 5 Hotspots (trip count):")
    counts = df["note"].value_counts().head(5)
    for name, count in counts.items():
        print(f"  {name}: {count} trips")


if __name__ == "__main__":
    generate_mock_trips(num_trips=400, num_hotspots=12)
