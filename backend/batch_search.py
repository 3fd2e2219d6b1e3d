"""
Batch Spotify Search

Runs a per-song search function over many library songs through a
RequestLimiter, so the Spotify rate limit is respected while searches
overlap. A failing song is counted and reported but never stops the batch.
"""

import logging
from concurrent.futures import as_completed
from typing import Callable, Iterable, Optional

from models import BatchStats
from rate_limiter import RequestLimiter, get_default_limiter

logger = logging.getLogger(__name__)


def songs_needing_search(songs: Iterable[dict]) -> list:
    """Songs that do not have a Spotify ID yet"""
    return [song for song in songs if not song.get('spotify_id')]


def batch_search_songs(songs: Iterable[dict],
                       search_fn: Callable[[dict], object],
                       limiter: Optional[RequestLimiter] = None,
                       on_error: Optional[Callable[[dict, Exception], None]] = None,
                       on_complete: Optional[Callable[[BatchStats], None]] = None) -> BatchStats:
    """
    Search Spotify for every unmatched song with rate limiting.

    Args:
        songs: Library rows (dicts); rows with a spotify_id are skipped
        search_fn: Called once per song; raising marks the song as failed
        limiter: Limiter to schedule work through (default: module limiter)
        on_error: Called with (song, exception) for each failed song
        on_complete: Called once with the final BatchStats

    Returns:
        BatchStats for the run
    """
    songs_to_search = songs_needing_search(songs)

    if not songs_to_search:
        stats = BatchStats()
        if on_complete:
            on_complete(stats)
        return stats

    limiter = limiter or get_default_limiter()
    stats = BatchStats(total=len(songs_to_search))

    futures = {limiter.schedule(search_fn, song): song for song in songs_to_search}
    logger.debug(f"Scheduled {len(futures)} song searches")

    # Futures settle on worker threads; counting happens here, in one thread
    for future in as_completed(futures):
        song = futures[future]
        error = future.exception()
        if error is None:
            stats.succeeded += 1
            continue

        stats.failed += 1
        logger.debug(f"Search failed for song {song.get('id')}: {error}")
        if on_error:
            try:
                on_error(song, error)
            except Exception as callback_error:
                logger.error(f"on_error callback raised for song {song.get('id')}: {callback_error}")

    logger.info(f"Batch search complete: {stats.succeeded}/{stats.total} succeeded, "
                f"{stats.failed} failed")

    if on_complete:
        on_complete(stats)
    return stats
