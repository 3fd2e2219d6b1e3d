"""
Spotify Database Operations

All database queries and updates for Spotify matching: the songs table
(library records and their confirmed Spotify IDs) and the search cache table.
"""

import logging
from datetime import datetime
from typing import List, Optional

from db_utils import get_db_connection
from models import MetadataFix

logger = logging.getLogger(__name__)

SONG_COLUMNS = "id, title, artist, album, album_artist, filename, spotify_id"


# ============================================================================
# SEARCH CACHE TABLE
# ============================================================================

class SearchCacheStore:
    """
    Table access for spotify_search_cache.

    Every method runs in its own transaction. Concurrent writers to one key
    are resolved by the database upsert: last write wins.
    """

    def __init__(self, connection_factory=get_db_connection):
        """
        Args:
            connection_factory: Context manager factory yielding a psycopg
                connection (default: db_utils.get_db_connection)
        """
        self.connection_factory = connection_factory

    def get_entry(self, cache_key: str) -> Optional[dict]:
        """Look up one entry; returns dict with 'results' and 'created_at', or None"""
        with self.connection_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT cache_key, results, created_at FROM spotify_search_cache WHERE cache_key = %s",
                    (cache_key,)
                )
                return cur.fetchone()

    def upsert_entry(self, cache_key: str, results: str, created_at: datetime) -> None:
        """Insert an entry, or replace payload and timestamp of an existing one"""
        with self.connection_factory() as conn:
            with conn.cursor() as cur:
                cur.execute("""
                    INSERT INTO spotify_search_cache (cache_key, results, created_at)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (cache_key) DO UPDATE
                    SET results = EXCLUDED.results,
                        created_at = EXCLUDED.created_at
                """, (cache_key, results, created_at))

    def delete_entry(self, cache_key: str) -> None:
        with self.connection_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM spotify_search_cache WHERE cache_key = %s",
                    (cache_key,)
                )

    def delete_older_than(self, cutoff: datetime) -> int:
        """Delete entries created before cutoff; returns rows deleted"""
        with self.connection_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM spotify_search_cache WHERE created_at < %s",
                    (cutoff,)
                )
                return cur.rowcount


# ============================================================================
# SONGS TABLE
# ============================================================================

def count_songs() -> int:
    """Total number of songs in the library"""
    with get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT COUNT(*) AS total FROM songs")
            return cur.fetchone()['total']


def get_songs(limit: int = None, offset: int = None) -> List[dict]:
    """Songs ordered by id, optionally paginated"""
    query = f"SELECT {SONG_COLUMNS} FROM songs ORDER BY id"
    params = []
    if limit is not None:
        query += " LIMIT %s"
        params.append(limit)
        if offset is not None:
            query += " OFFSET %s"
            params.append(offset)

    with get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(query, params)
            return cur.fetchall()


def get_song_by_id(song_id: int) -> Optional[dict]:
    """Look up song by ID"""
    with get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(f"SELECT {SONG_COLUMNS} FROM songs WHERE id = %s", (song_id,))
            return cur.fetchone()


def get_unmatched_songs(limit: int = None) -> List[dict]:
    """
    Songs without a Spotify ID that can be searched (non-empty title).

    Songs with no title are left out: the matcher cannot score them.
    """
    query = f"""
        SELECT {SONG_COLUMNS}
        FROM songs
        WHERE spotify_id IS NULL
          AND title IS NOT NULL
          AND TRIM(title) != ''
        ORDER BY id
    """
    params = []
    if limit is not None:
        query += " LIMIT %s"
        params.append(limit)

    with get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(query, params)
            return cur.fetchall()


def get_next_unmatched_song(random: bool = False) -> Optional[dict]:
    """The first (or a random) searchable song without a Spotify ID"""
    order = "RANDOM()" if random else "id"
    with get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(f"""
                SELECT {SONG_COLUMNS}
                FROM songs
                WHERE spotify_id IS NULL
                  AND title IS NOT NULL
                  AND TRIM(title) != ''
                ORDER BY {order}
                LIMIT 1
            """)
            return cur.fetchone()


def get_songs_by_artist(artist: Optional[str]) -> List[dict]:
    """All searchable songs by an artist (NULL artist matches NULL), by album then title"""
    artist_clause = "artist = %s" if artist else "artist IS NULL"
    params = [artist] if artist else []
    with get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(f"""
                SELECT {SONG_COLUMNS}
                FROM songs
                WHERE {artist_clause}
                  AND title IS NOT NULL
                  AND title != ''
                ORDER BY album, title
            """, params)
            return cur.fetchall()


def get_songs_by_album(artist: Optional[str], album: Optional[str]) -> List[dict]:
    """All songs on one album, by title"""
    clauses = []
    params = []
    for column, value in (('artist', artist), ('album', album)):
        if value:
            clauses.append(f"{column} = %s")
            params.append(value)
        else:
            clauses.append(f"{column} IS NULL")

    with get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(f"""
                SELECT {SONG_COLUMNS}
                FROM songs
                WHERE {' AND '.join(clauses)}
                ORDER BY title
            """, params)
            return cur.fetchall()


def save_song_match(song_id: int, spotify_id: str) -> bool:
    """
    Record the confirmed Spotify ID for a song.

    Returns:
        False if the song does not exist
    """
    with get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "UPDATE songs SET spotify_id = %s WHERE id = %s",
                (spotify_id, song_id)
            )
            updated = cur.rowcount > 0

    if updated:
        logger.info(f"Saved Spotify match for song {song_id}: {spotify_id}")
    else:
        logger.warning(f"Cannot save match, song {song_id} not found")
    return updated


def clear_song_match(song_id: int) -> bool:
    """
    Undo a match.

    Returns:
        False if the song does not exist
    """
    with get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute("UPDATE songs SET spotify_id = NULL WHERE id = %s", (song_id,))
            cleared = cur.rowcount > 0

    if cleared:
        logger.info(f"Cleared Spotify match for song {song_id}")
    return cleared


def apply_metadata_fix(song_id: int, fix: MetadataFix) -> bool:
    """
    Overwrite a song's artist, title and album with corrected values.
    The album is kept when the fix does not suggest one.

    Returns:
        False if the song does not exist
    """
    with get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute("""
                UPDATE songs
                SET artist = %s,
                    title = %s,
                    album = COALESCE(%s, album)
                WHERE id = %s
            """, (fix.suggested_artist, fix.suggested_track, fix.suggested_album, song_id))
            updated = cur.rowcount > 0

    if updated:
        logger.info(f"Applied metadata fix to song {song_id} ({fix.confidence} confidence)")
    return updated
