"""
Spotify Search Cache

Stores Spotify search results in the database, keyed by a normalized form
of the search parameters, so repeated lookups skip the API.

Entries expire after cache_days (30 by default). Expired and unreadable
entries are deleted on read and reported as a miss.
"""

import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from models import CandidateRecord, SearchParams

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DAYS = 30

# Sentinel value to distinguish "no cache exists" from "cached empty result"
CACHE_MISS = object()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_cache_key(params: SearchParams) -> str:
    """
    Generate a consistent cache key from search parameters.

    Values are trimmed and lower-cased, blank fields are dropped, and the
    remaining fields are sorted by name, so semantically identical
    searches share one key.

    Examples:
        SearchParams(artist=' The Beatles ', album='Abbey Road')
            -> 'album:abbey road|artist:the beatles'
    """
    normalized = {
        name: value.lower()
        for name, value in params.fields().items()
    }
    return '|'.join(f"{name}:{normalized[name]}" for name in sorted(normalized))


def is_cache_expired(created_at: datetime, now: Optional[datetime] = None,
                     ttl: timedelta = timedelta(days=DEFAULT_CACHE_DAYS)) -> bool:
    """Check if a cache entry is older than the TTL"""
    now = now or utcnow()
    return now - created_at > ttl


def serialize_candidates(candidates: List[CandidateRecord]) -> str:
    return json.dumps([c.to_dict() for c in candidates])


def deserialize_candidates(payload: str) -> List[CandidateRecord]:
    """
    Parse a cached payload

    Raises:
        ValueError, KeyError, TypeError: if the payload is not a list of tracks
    """
    data = json.loads(payload)
    if not isinstance(data, list):
        raise ValueError("Cached search payload is not a list")
    return [CandidateRecord.from_dict(item) for item in data]


class SearchCache:
    """
    Database-backed cache of Spotify search results.

    The store must provide get_entry(key), upsert_entry(key, results,
    created_at), delete_entry(key) and delete_older_than(cutoff); see
    spotify_db.SearchCacheStore. Store errors are not caught here.
    """

    def __init__(self, store, cache_days: int = DEFAULT_CACHE_DAYS,
                 clock: Callable[[], datetime] = utcnow, logger=None):
        """
        Args:
            store: Table access object for spotify_search_cache
            cache_days: Number of days before an entry is considered stale
            clock: Returns the current (timezone-aware) time
            logger: Optional logger instance (uses module logger if not provided)
        """
        self.store = store
        self.ttl = timedelta(days=cache_days)
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)
        self._stats_lock = threading.Lock()
        self.stats = {
            'hits': 0,
            'misses': 0,
            'expired': 0,
            'corrupt': 0,
            'writes': 0
        }

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self.stats[key] += 1

    def get(self, params: SearchParams):
        """
        Get cached search results.

        Returns:
            List of CandidateRecord (possibly empty), or CACHE_MISS
        """
        cache_key = generate_cache_key(params)
        entry = self.store.get_entry(cache_key)

        if entry is None:
            self._count('misses')
            return CACHE_MISS

        if is_cache_expired(entry['created_at'], self.clock(), self.ttl):
            self.logger.debug(f"Cache expired: {cache_key}")
            self.store.delete_entry(cache_key)
            self._count('expired')
            self._count('misses')
            return CACHE_MISS

        try:
            candidates = deserialize_candidates(entry['results'])
        except (ValueError, KeyError, TypeError) as e:
            self.logger.warning(f"Deleting unreadable cache entry {cache_key}: {e}")
            self.store.delete_entry(cache_key)
            self._count('corrupt')
            self._count('misses')
            return CACHE_MISS

        self._count('hits')
        self.logger.debug(f"Cache hit: {cache_key} ({len(candidates)} tracks)")
        return candidates

    def put(self, params: SearchParams, candidates: List[CandidateRecord]) -> None:
        """Store search results, replacing any existing entry for the same key"""
        cache_key = generate_cache_key(params)
        self.store.upsert_entry(cache_key, serialize_candidates(candidates), self.clock())
        self._count('writes')
        self.logger.debug(f"Cached: {cache_key} ({len(candidates)} tracks)")

    def clear_expired(self) -> int:
        """
        Delete every entry older than the TTL.

        Returns:
            Number of entries deleted
        """
        cutoff = self.clock() - self.ttl
        deleted = self.store.delete_older_than(cutoff)
        self.logger.info(f"Cleared {deleted} expired search cache entries")
        return deleted
