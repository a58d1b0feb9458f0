"""
Purpose: Serve external signals (POI, weather) through a persistent cache.
What it does:

Wraps a fetch function with:

- time-to-live freshness (computed at read time, nothing is written on expiry)
- stale serving when the caller allows it
- a 5 minute cooldown after a failed fetch, during which the cached entry is served
- offline gating (allow_network=False never touches the fetcher)
- stale fallback with error metadata when a re-fetch fails

Every result carries SignalMeta (age, fresh/stale, from_cache, last error) so callers
can show "data is N hours old" or "last refresh failed" without re-deriving it.

Cache entry record:
{
    "key": str,
    "fetched_at": ISO-8601 str,
    "ttl_seconds": int,
    "payload": Any,
    "last_error_at": ISO-8601 str | None,
    "last_error_message": str | None,
}

Rule: No mutual exclusion. Two refreshes of the same key may both fetch; last write wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Generic, Optional, TypeVar
import logging
import math

from engine.models import parse_timestamp, utc_now
from storage.store import RecordStore

from .errors import SignalCancelledError, SignalUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

COOLDOWN_SECONDS = 5 * 60
DEFAULT_TTL_SECONDS = 6 * 60 * 60

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class SignalMeta:
    fetched_at: Optional[str]
    is_fresh: bool
    is_stale: bool
    age_seconds: Optional[int]
    ttl_seconds: int
    from_cache: bool
    last_error_at: Optional[str]
    last_error_message: Optional[str]


@dataclass(frozen=True)
class SignalResult(Generic[T]):
    payload: T
    meta: SignalMeta


def elapsed_seconds(entry: Dict[str, Any], now: datetime) -> Optional[float]:
    if not entry.get("fetched_at"):
        return None
    return (now - parse_timestamp(entry["fetched_at"])).total_seconds()


def is_fresh(entry: Dict[str, Any], now: datetime) -> bool:
    """True iff now - fetched_at < ttl_seconds (an entry exactly ttl old is stale)."""
    elapsed = elapsed_seconds(entry, now)
    if elapsed is None:
        return False
    return elapsed < entry["ttl_seconds"]


def in_cooldown(entry: Dict[str, Any], now: datetime, cooldown_seconds: int = COOLDOWN_SECONDS) -> bool:
    if not entry.get("last_error_at"):
        return False
    since_error = now - parse_timestamp(entry["last_error_at"])
    return since_error < timedelta(seconds=cooldown_seconds)


def build_meta(entry: Dict[str, Any], now: datetime, from_cache: bool) -> SignalMeta:
    elapsed = elapsed_seconds(entry, now)
    age_seconds = max(0, math.floor(elapsed)) if elapsed is not None else None
    fresh = is_fresh(entry, now)
    return SignalMeta(
        fetched_at=entry.get("fetched_at"),
        is_fresh=fresh,
        is_stale=not fresh,
        age_seconds=age_seconds,
        ttl_seconds=entry["ttl_seconds"],
        from_cache=from_cache,
        last_error_at=entry.get("last_error_at"),
        last_error_message=entry.get("last_error_message"),
    )


class SignalCache:
    """
    Read-through cache over a RecordStore keyed by signal identifier
    (e.g. "poi:<bbox>" or "weather:<lat>,<lon>").
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        clock: Optional[Clock] = None,
        cooldown_seconds: int = COOLDOWN_SECONDS,
    ):
        self.store = store
        self.clock = clock or utc_now
        self.cooldown_seconds = cooldown_seconds

    def peek(self, key: str) -> Optional[SignalResult[Any]]:
        """Cached payload and metadata without any fetch; None when nothing is cached."""
        cached = self.store.get(key)
        if cached is None:
            return None
        return SignalResult(payload=cached["payload"], meta=build_meta(cached, self.clock(), True))

    def get_or_fetch(
        self,
        key: str,
        ttl_seconds: int,
        fetcher: Callable[[], T],
        *,
        force_refresh: bool = False,
        allow_network: bool = True,
        allow_stale: bool = False,
    ) -> SignalResult[T]:
        """
        Return the signal for key, fetching only when the cache cannot answer.

        Order of decisions:
          1) cached and (fresh or allow_stale) and not force_refresh -> cached
          2) cached and a fetch failed within the cooldown            -> cached
          3) network not allowed                                      -> cached, or SignalUnavailableError
          4) fetch: success overwrites the entry; failure patches error metadata
             onto the cached entry and serves it, or re-raises when nothing is cached
        """
        now = self.clock()
        cached = self.store.get(key)

        if not force_refresh and cached and (is_fresh(cached, now) or allow_stale):
            return self._result(cached, now, from_cache=True)

        if cached and in_cooldown(cached, now, self.cooldown_seconds):
            logger.info("signal %s in error cooldown, serving cached entry", key)
            return self._result(cached, now, from_cache=True)

        if not allow_network:
            if cached:
                return self._result(cached, now, from_cache=True)
            raise SignalUnavailableError(f"no cache available offline for {key}")

        try:
            payload = fetcher()
        except SignalCancelledError:
            # a cancelled refresh is not an upstream failure: no error metadata, no cooldown
            logger.info("signal %s refresh cancelled", key)
            raise
        except Exception as e:
            if not cached:
                raise
            logger.warning("signal %s refresh failed: %s", key, e)
            failed_at = self.clock()
            updated = dict(cached)
            updated["last_error_at"] = failed_at.isoformat()
            updated["last_error_message"] = str(e) or e.__class__.__name__
            self.store.put(updated)
            return self._result(updated, failed_at, from_cache=True)

        fetched_at = self.clock()
        record = {
            "key": key,
            "fetched_at": fetched_at.isoformat(),
            "ttl_seconds": ttl_seconds,
            "payload": payload,
            "last_error_at": None,
            "last_error_message": None,
        }
        self.store.put(record)
        logger.info("signal %s refreshed", key)
        return self._result(record, fetched_at, from_cache=False)

    @staticmethod
    def _result(entry: Dict[str, Any], now: datetime, *, from_cache: bool) -> SignalResult[Any]:
        return SignalResult(payload=entry["payload"], meta=build_meta(entry, now, from_cache))
