#Marks signals as a package.
#Re-exports the cache and the upstream clients so the assistant imports from
#signals without knowing internal file names.
#No business logic.

from .errors import SignalError, SignalFetchError, SignalUnavailableError, SignalCancelledError
from .cache import SignalCache, SignalMeta, SignalResult, DEFAULT_TTL_SECONDS, is_fresh
from .clients import POIClient, WeatherClient, poi_cache_key, weather_cache_key

__all__ = [
    "SignalError",
    "SignalFetchError",
    "SignalUnavailableError",
    "SignalCancelledError",
    "SignalCache",
    "SignalMeta",
    "SignalResult",
    "DEFAULT_TTL_SECONDS",
    "is_fresh",
    "POIClient",
    "WeatherClient",
    "poi_cache_key",
    "weather_cache_key",
]
