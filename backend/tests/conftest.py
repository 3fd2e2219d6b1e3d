"""
Pytest configuration and shared fixtures.
"""

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Dict, List
from unittest.mock import MagicMock

import pytest

from models import CandidateRecord, SearchParams


class FakeCacheStore:
    """In-memory stand-in for spotify_db.SearchCacheStore."""

    def __init__(self):
        self.entries: Dict[str, dict] = {}

    def get_entry(self, cache_key):
        entry = self.entries.get(cache_key)
        return dict(entry) if entry else None

    def upsert_entry(self, cache_key, results, created_at):
        self.entries[cache_key] = {
            'cache_key': cache_key,
            'results': results,
            'created_at': created_at,
        }

    def delete_entry(self, cache_key):
        self.entries.pop(cache_key, None)

    def delete_older_than(self, cutoff):
        old = [key for key, entry in self.entries.items() if entry['created_at'] < cutoff]
        for key in old:
            del self.entries[key]
        return len(old)


class FakeSpotifyClient:
    """Scripted Spotify client: responses are keyed by SearchParams."""

    def __init__(self):
        self.responses: Dict[SearchParams, List[CandidateRecord]] = {}
        self.errors: Dict[SearchParams, Exception] = {}
        self.calls: List[SearchParams] = []
        self.stats = {'api_calls': 0, 'rate_limit_hits': 0, 'rate_limit_waits': 0}

    def search_tracks(self, params, market=None, limit=20):
        self.calls.append(params)
        self.stats['api_calls'] += 1
        if params in self.errors:
            raise self.errors[params]
        return list(self.responses.get(params, []))


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now=None):
        self.now = now or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def make_track():
    """Factory for CandidateRecord objects."""
    def _make(track_id='t1', title='Yesterday', artist='The Beatles', album='Help!', **kwargs):
        artists = kwargs.pop('artists', (artist,) if artist else ())
        return CandidateRecord(id=track_id, title=title, artists=tuple(artists), album=album, **kwargs)
    return _make


@pytest.fixture
def raw_spotify_track() -> dict:
    """A track object as returned by the Spotify search API."""
    return {
        'id': '3BQHpFgAp4l80e1XslIjNI',
        'name': 'Yesterday',
        'uri': 'spotify:track:3BQHpFgAp4l80e1XslIjNI',
        'artists': [{'name': 'The Beatles'}, {'name': 'George Martin'}],
        'album': {
            'name': 'Help! (Remastered)',
            'images': [
                {'url': 'https://i.scdn.co/image/small', 'width': 64, 'height': 64},
                {'url': 'https://i.scdn.co/image/large', 'width': 640, 'height': 640},
                {'url': 'https://i.scdn.co/image/medium', 'width': 300, 'height': 300},
            ],
        },
    }


@pytest.fixture
def song() -> dict:
    """An unmatched library row."""
    return {
        'id': 1,
        'title': 'Yesterday',
        'artist': 'The Beatles',
        'album': 'Help!',
        'album_artist': 'The Beatles',
        'filename': 'yesterday.mp3',
        'spotify_id': None,
    }


@pytest.fixture
def cache_store() -> FakeCacheStore:
    return FakeCacheStore()


@pytest.fixture
def spotify_client() -> FakeSpotifyClient:
    return FakeSpotifyClient()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def db_cursor():
    """
    A mocked psycopg cursor plus a connection factory that yields it.

    Returns (cursor, connection_factory).
    """
    cursor = MagicMock()
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor

    @contextmanager
    def connection_factory():
        yield conn

    return cursor, connection_factory
