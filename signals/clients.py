#Purpose: The upstream signal "adapters/clients".
#Sole responsibility: talk to the POI (Overpass) and weather (Open-Meteo) services
#via HTTP and return normalized payloads the cache can store as-is.
#Encapsulates service-specific details:
#query construction (Overpass QL, Open-Meteo params)
#timeouts / bounded retries / cancellation
#parsing response JSON into the internal payload shape
#It should not contain caching or scoring.

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging
import os
import threading
import time

from dotenv import load_dotenv
import requests

from engine.models import utc_now
from geo.regions import BoundingBox

from .errors import SignalCancelledError, SignalFetchError

# Read service base URLs from environment
# Example in .env:
# POI_BASE_URL=https://overpass-api.de/api/interpreter
# WEATHER_BASE_URL=https://api.open-meteo.com/v1/forecast
load_dotenv()
POI_BASE_URL = os.getenv("POI_BASE_URL", "https://overpass-api.de/api/interpreter")
WEATHER_BASE_URL = os.getenv("WEATHER_BASE_URL", "https://api.open-meteo.com/v1/forecast")
WEATHER_TIMEZONE = os.getenv("WEATHER_TIMEZONE", "Asia/Jakarta")

DEFAULT_TIMEOUT = 12
DEFAULT_RETRIES = 2
DEFAULT_BACKOFF_SECONDS = (1.0, 2.0)

FORECAST_HOURS = 24

logger = logging.getLogger(__name__)


def poi_cache_key(bbox: BoundingBox) -> str:
    return f"poi:{bbox.to_string()}"


def weather_cache_key(lat: float, lon: float) -> str:
    return f"weather:{lat:.3f},{lon:.3f}"


class SignalClient:
    """
    Shared HTTP plumbing: timeout, fixed-backoff retries, cancellation.

    retries is the number of extra attempts after the first one. Backoff delays
    are taken in order from backoff_seconds (the last one repeats).
    cancel_event, when set, aborts before the next attempt and during backoff waits.
    """

    service_name = "signal"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        backoff_seconds=DEFAULT_BACKOFF_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        if not base_url:
            raise ValueError(f"{self.service_name} base URL not set. Please set it in the .env file.")
        if retries < 0:
            raise ValueError("retries must be >= 0")

        self.base_url = base_url
        self.timeout = timeout #the time to wait for a response before giving up
        self.retries = retries
        self.backoff_seconds = tuple(backoff_seconds) or (0.0,)
        self.session = session or requests.Session()

    def _with_retries(self, send: Callable[[], requests.Response],
                      cancel_event: Optional[threading.Event] = None) -> Any:
        last_error: Optional[Exception] = None

        for attempt in range(self.retries + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise SignalCancelledError(f"{self.service_name} request cancelled")

            try:
                response = send()
                if not response.ok:
                    raise SignalFetchError(f"{self.service_name} failed: {response.status_code}")
                data = response.json()
                if not isinstance(data, dict):
                    raise SignalFetchError(f"{self.service_name} returned unexpected JSON: {type(data).__name__}")
                return data
            except (requests.RequestException, ValueError, SignalFetchError) as e:
                last_error = e

            if attempt < self.retries:
                delay = self.backoff_seconds[min(attempt, len(self.backoff_seconds) - 1)]
                logger.warning(
                    f"Attempt {attempt + 1} failed for {self.service_name}: {last_error}. Retrying in {delay}s..."
                )
                if cancel_event is not None:
                    if cancel_event.wait(delay):
                        raise SignalCancelledError(f"{self.service_name} request cancelled")
                else:
                    time.sleep(delay)

        logger.error(f"All {self.retries + 1} attempts failed for {self.service_name}")
        if isinstance(last_error, SignalFetchError):
            raise last_error
        raise SignalFetchError(f"{self.service_name} error: {last_error}") from last_error


class POIClient(SignalClient):
    """
    Points of interest that tend to generate rides: campuses, hospitals, markets,
    stations, food places, malls, parks.
    """

    service_name = "Overpass"

    def __init__(self, base_url: Optional[str] = None, **kwargs):
        super().__init__(base_url or POI_BASE_URL, **kwargs)

    @staticmethod
    def build_query(bbox: BoundingBox) -> str:
        box = f"{bbox.min_lat},{bbox.min_lon},{bbox.max_lat},{bbox.max_lon}"
        return f"""
    [out:json][timeout:25];
    (
      nwr["amenity"~"university|hospital|marketplace|bus_station|taxi|restaurant|cafe|fast_food|food_court"][bbox:{box}];
      nwr["shop"~"mall|supermarket|convenience|marketplace"][bbox:{box}];
      nwr["leisure"~"park|sports_centre"][bbox:{box}];
      nwr["public_transport"~"station|platform"][bbox:{box}];
    );
    out center;
    """

    def fetch_points(self, bbox: BoundingBox, cancel_event: Optional[threading.Event] = None) -> Dict[str, Any]:
        """
        Returns:
            {
                "points": [{"lat": float, "lon": float, "tags": {...}}, ...],
                "count": int,
            }
        """
        query = self.build_query(bbox)
        data = self._with_retries(
            lambda: self.session.post(
                self.base_url,
                data=query,
                headers={"Content-Type": "text/plain"},
                timeout=self.timeout,
            ),
            cancel_event,
        )

        elements = data.get("elements") or []
        if not isinstance(elements, list):
            raise SignalFetchError("Overpass returned malformed elements")

        points: List[Dict[str, Any]] = []
        for element in elements:
            coordinates = _element_coordinates(element)
            if coordinates is None:
                continue
            tags = element.get("tags")
            points.append({"lat": coordinates[0], "lon": coordinates[1], "tags": tags if isinstance(tags, dict) else {}})

        return {"points": points, "count": len(points)}


def _element_coordinates(element: Any) -> Optional[Tuple[float, float]]:
    """lat/lon of an Overpass element: nodes carry them directly, ways and relations only a center."""
    if not isinstance(element, dict):
        return None
    for source in (element, element.get("center")):
        if not isinstance(source, dict):
            continue
        lat, lon = source.get("lat"), source.get("lon")
        if isinstance(lat, (int, float)) and isinstance(lon, (int, float)):
            return (float(lat), float(lon))
    return None


class WeatherClient(SignalClient):
    """
    Hourly precipitation probability for the next day.
    """

    service_name = "Open-Meteo"

    def __init__(self, base_url: Optional[str] = None, *, timezone_name: str = WEATHER_TIMEZONE,
                 clock: Optional[Callable[[], datetime]] = None, **kwargs):
        super().__init__(base_url or WEATHER_BASE_URL, **kwargs)
        self.timezone_name = timezone_name
        self.clock = clock or utc_now

    def fetch_hourly(self, lat: float, lon: float, cancel_event: Optional[threading.Event] = None) -> Dict[str, Any]:
        """
        Returns the next FORECAST_HOURS hours, starting at the current hour:
            {
                "hourly": [{"time": ISO-8601 with offset, "precipitation_probability": 0..100}, ...]
            }
        """
        params = {
            "latitude": lat,
            "longitude": lon,
            "hourly": "precipitation_probability,precipitation",
            "forecast_days": 2,
            "timezone": self.timezone_name,
        }
        data = self._with_retries(
            lambda: self.session.get(self.base_url, params=params, timeout=self.timeout),
            cancel_event,
        )

        hourly = data.get("hourly") or {}
        if not isinstance(hourly, dict):
            raise SignalFetchError("Open-Meteo returned malformed hourly data")
        times = hourly.get("time") or []
        probabilities = hourly.get("precipitation_probability") or []
        if not isinstance(probabilities, list):
            probabilities = []
        if not times:
            raise SignalFetchError("Open-Meteo returned no hourly data")

        # Open-Meteo returns local wall-clock times from local midnight; pin them to the reported offset
        try:
            offset = timezone(timedelta(seconds=int(data.get("utc_offset_seconds", 0))))
        except (TypeError, ValueError) as e:
            raise SignalFetchError(f"Open-Meteo returned a bad utc offset: {e}") from e
        current_hour = self.clock().astimezone(offset).replace(minute=0, second=0, microsecond=0)

        entries = []
        for index, time_str in enumerate(times):
            try:
                local = datetime.fromisoformat(str(time_str))
            except ValueError as e:
                raise SignalFetchError(f"Open-Meteo returned a bad timestamp: {time_str!r}") from e
            if local.tzinfo is None:
                local = local.replace(tzinfo=offset)
            if local < current_hour:
                continue

            probability = probabilities[index] if index < len(probabilities) else None
            entries.append(
                {
                    "time": local.isoformat(),
                    "precipitation_probability": probability if probability is not None else 0,
                }
            )
            if len(entries) == FORECAST_HOURS:
                break

        if not entries:
            raise SignalFetchError("Open-Meteo returned no upcoming hours")

        return {"hourly": entries}
