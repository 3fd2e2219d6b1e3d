"""
Spotify Track Matching Engine
Core business logic for matching library songs to Spotify tracks

This module provides the SpotifyMatcher class which handles:
- Cached Spotify track searches (database cache in front of the API)
- The precise / relaxed search strategy for each song
- Ranking of Spotify candidates by similarity to the library record
- Saving confident matches back to the songs table
- Batch matching of the whole library under the Spotify rate limit

Every collaborator (API client, cache store, match writer) is passed in, so
the web app, the CLI scripts and the tests each build the engine they need.

Used by:
- scripts/match_library.py (CLI interface)
- routes/songs.py (review UI endpoints)
"""

import json
import logging
import threading
from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, List, Optional

from batch_search import batch_search_songs
from models import (
    BatchStats,
    CandidateRecord,
    LocalRecord,
    ScoredCandidate,
    SearchParams,
    clean_field,
    safe_strip,
)
from rate_limiter import RequestLimiter
from song_search import SearchResult, SongSearch
from spotify_cache import CACHE_MISS, DEFAULT_CACHE_DAYS, SearchCache
from spotify_client import DEFAULT_SEARCH_LIMIT, SpotifyClient
from spotify_db import SearchCacheStore, save_song_match
from spotify_matching import rank_candidates

logger = logging.getLogger(__name__)

# Best matches at or above this similarity are saved without review
AUTO_MATCH_THRESHOLD = 80


# ============================================================================
# LIBRARY HELPERS
# ============================================================================

def should_skip_song(song: dict) -> bool:
    """A song without a title cannot be searched"""
    return clean_field(safe_strip(song.get('title'))) is None


def has_incomplete_metadata(song: dict) -> bool:
    """True if title, artist or album is missing"""
    return any(clean_field(song.get(name)) is None for name in ('title', 'artist', 'album'))


def should_attempt_auto_match(similarity: int, threshold: int = AUTO_MATCH_THRESHOLD) -> bool:
    return similarity >= threshold


class SpotifyMatcher:
    """
    Matches library songs to Spotify tracks using cached searches
    """

    def __init__(self, client=None, cache_store=None, cache_days=DEFAULT_CACHE_DAYS,
                 force_refresh=False, auto_match_threshold=AUTO_MATCH_THRESHOLD,
                 save_match=None, market=None, search_limit=DEFAULT_SEARCH_LIMIT,
                 logger=None):
        """
        Initialize Spotify Matcher

        Args:
            client: Spotify API client (default: SpotifyClient from environment)
            cache_store: Table access for the search cache
                (default: spotify_db.SearchCacheStore)
            cache_days: Number of days before cache is considered stale
            force_refresh: If True, always fetch fresh data ignoring cache
                (results are still written back to the cache)
            auto_match_threshold: Minimum similarity to save a match automatically
            save_match: Callable(song_id, spotify_id) -> bool that records a
                match (default: spotify_db.save_song_match)
            market: ISO country code passed to Spotify searches
            search_limit: Maximum tracks per Spotify search
            logger: Optional logger instance (uses module logger if not provided)
        """
        self.logger = logger or logging.getLogger(__name__)
        self.client = client or SpotifyClient(market=market, logger=self.logger)
        self.cache = SearchCache(
            cache_store if cache_store is not None else SearchCacheStore(),
            cache_days=cache_days,
            logger=self.logger
        )
        self.force_refresh = force_refresh
        self.auto_match_threshold = auto_match_threshold
        self.save_match = save_match or save_song_match
        self.market = market
        self.search_limit = search_limit
        self.searcher = SongSearch(self.search_tracks, logger=self.logger)

        # match_library updates these from limiter worker threads
        self._stats_lock = threading.Lock()
        self.stats = {
            'songs_processed': 0,
            'songs_matched': 0,
            'songs_below_threshold': 0,
            'songs_no_results': 0,
            'songs_skipped': 0,
            'fallback_searches': 0,
            'errors': 0,
            'cache_hits': 0,
            'api_calls': 0,
            'rate_limit_hits': 0,
            'rate_limit_waits': 0
        }

    def _count(self, key: str, amount: int = 1) -> None:
        with self._stats_lock:
            self.stats[key] += amount

    # ========================================================================
    # SEARCH
    # ========================================================================

    def search_tracks(self, params: SearchParams) -> List[CandidateRecord]:
        """
        Search Spotify tracks, using the cache when possible

        Raises:
            ValueError: If params has no non-blank field
            SpotifyAPIError: If the Spotify request fails
            psycopg.Error: If the cache table cannot be read or written
        """
        if not self.force_refresh:
            cached = self.cache.get(params)
            if cached is not CACHE_MISS:
                return cached

        tracks = self.client.search_tracks(params, market=self.market, limit=self.search_limit)
        self.cache.put(params, tracks)
        return tracks

    def search(self, record: LocalRecord) -> SearchResult:
        """Run the precise/relaxed strategy for one record"""
        result = self.searcher.search(record)
        if result.fell_back:
            self._count('fallback_searches')
        return result

    def find_best_matches(self, record: LocalRecord) -> List[CandidateRecord]:
        """Candidates for a record, in the order Spotify returned them"""
        return self.search(record).candidates

    def search_and_rank(self, record: LocalRecord) -> List[ScoredCandidate]:
        """Candidates for a record, best match first"""
        return rank_candidates(record, self.find_best_matches(record))

    def search_for_song(self, song: dict) -> Dict[str, Any]:
        """
        Search Spotify for a library song (review UI entry point)

        Args:
            song: Library row with 'title', 'artist', 'album'

        Returns:
            {'success': True, 'tracks': [...], 'similarity': best} with tracks
            ranked best first, or {'success': False, 'error': message}
        """
        if should_skip_song(song):
            return {'success': False, 'error': 'Song has no title to search for'}

        record = LocalRecord.from_song(song)
        try:
            ranked = self.search_and_rank(record)
        except Exception as e:
            self.logger.error('[SEARCH_SONG_ERROR] ' + json.dumps({
                'localSong': {
                    'artist': record.artist,
                    'album': record.album,
                    'track': record.title,
                },
                'error': str(e),
                'timestamp': datetime.now(timezone.utc).isoformat(),
            }))
            return {'success': False, 'error': str(e)}

        return {
            'success': True,
            'tracks': [scored.to_dict() for scored in ranked],
            'similarity': ranked[0].similarity if ranked else 0
        }

    # ========================================================================
    # MATCHING
    # ========================================================================

    def match_song(self, song: dict, dry_run: bool = False) -> Dict[str, Any]:
        """
        Find the best Spotify track for a song and save it if confident enough

        Args:
            song: Library row (dict with 'id', 'title', 'artist', 'album')
            dry_run: If True, report the match without saving it

        Returns:
            Dict with 'song_id', 'spotify_id', 'similarity' and 'matched'

        Raises:
            SpotifyAPIError / database errors from the search or the save
        """
        song_id = song.get('id')
        result = {'song_id': song_id, 'spotify_id': None, 'similarity': 0, 'matched': False}

        if should_skip_song(song):
            self.logger.debug(f"Skipping song {song_id}: no title")
            self._count('songs_skipped')
            return result

        self._count('songs_processed')
        record = LocalRecord.from_song(song)
        ranked = self.search_and_rank(record)

        if not ranked:
            self.logger.info(f"No Spotify results for '{record.artist} - {record.title}'")
            self._count('songs_no_results')
            return result

        best = ranked[0]
        result['spotify_id'] = best.candidate.id
        result['similarity'] = best.similarity

        if not should_attempt_auto_match(best.similarity, self.auto_match_threshold):
            self.logger.info(f"Best match for '{record.artist} - {record.title}' is "
                             f"'{best.candidate.primary_artist} - {best.candidate.title}' "
                             f"({best.similarity}%), below threshold {self.auto_match_threshold}")
            self._count('songs_below_threshold')
            return result

        if dry_run:
            self.logger.info(f"[DRY RUN] Would match song {song_id} to {best.candidate.id} "
                             f"({best.similarity}%)")
            result['matched'] = True
        else:
            result['matched'] = bool(self.save_match(song_id, best.candidate.id))

        if result['matched']:
            self._count('songs_matched')
        return result

    def match_library(self, songs: List[dict], limiter: Optional[RequestLimiter] = None,
                      dry_run: bool = False) -> BatchStats:
        """
        Match every unmatched song, rate limited

        Args:
            songs: Library rows; rows that already have a spotify_id are skipped
            limiter: Limiter for Spotify work (default: the module limiter)
            dry_run: If True, report matches without saving them

        Returns:
            BatchStats (a song fails only when its search or save raised)
        """
        def on_error(song, error):
            self._count('errors')
            self.logger.error(f"Error matching song {song.get('id')} "
                              f"'{song.get('artist')} - {song.get('title')}': {error}")

        return batch_search_songs(
            songs,
            partial(self.match_song, dry_run=dry_run),
            limiter=limiter,
            on_error=on_error
        )

    # ========================================================================
    # REPORTING
    # ========================================================================

    def _aggregate_client_stats(self):
        """Copy cache and API counters into self.stats"""
        client_stats = getattr(self.client, 'stats', {})
        with self._stats_lock:
            self.stats['cache_hits'] = self.cache.stats['hits']
            for key in ('api_calls', 'rate_limit_hits', 'rate_limit_waits'):
                self.stats[key] = client_stats.get(key, 0)

    def print_summary(self):
        """Print summary of matching statistics"""
        self._aggregate_client_stats()

        self.logger.info("\n" + "=" * 70)
        self.logger.info("SPOTIFY MATCHING SUMMARY")
        self.logger.info("=" * 70)
        self.logger.info(f"Songs processed:           {self.stats['songs_processed']}")
        self.logger.info(f"Skipped (no title):        {self.stats['songs_skipped']}")
        self.logger.info(f"Matched:                   {self.stats['songs_matched']}")
        self.logger.info(f"Below threshold:           {self.stats['songs_below_threshold']}")
        self.logger.info(f"No results:                {self.stats['songs_no_results']}")
        self.logger.info(f"Errors:                    {self.stats['errors']}")
        self.logger.info("-" * 70)
        self.logger.info(f"Title-only fallbacks:      {self.stats['fallback_searches']}")
        self.logger.info(f"API calls made:            {self.stats['api_calls']}")
        self.logger.info(f"Cache hits:                {self.stats['cache_hits']}")
        self.logger.info(f"Rate limit hits:           {self.stats['rate_limit_hits']}")
        self.logger.info(f"Rate limit waits:          {self.stats['rate_limit_waits']}")
        lookups = self.stats['api_calls'] + self.stats['cache_hits']
        cache_hit_rate = (self.stats['cache_hits'] / lookups * 100) if lookups > 0 else 0
        self.logger.info(f"Cache hit rate:            {cache_hit_rate:.1f}%")
        self.logger.info("=" * 70)
