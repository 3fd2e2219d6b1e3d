"""
Matching Data Model

Plain value types passed between the library store, the Spotify client,
the similarity scorer and the batch orchestrator.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


# Library imports wrote the literal string "null" for empty tags
NULL_LITERAL = 'null'

METADATA_FIX_CONFIDENCE = ('high', 'medium', 'low')
MAX_ALTERNATIVE_QUERIES = 3


def clean_field(value) -> Optional[str]:
    """Return the value unchanged, or None for missing / empty / "null" values"""
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    if value == '' or value == NULL_LITERAL:
        return None
    return value


def safe_strip(value):
    """Safely strip a string value, handling None"""
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped if stripped else None
    return value


@dataclass(frozen=True)
class LocalRecord:
    """One entry from the personal library being matched"""
    artist: Optional[str] = None
    title: Optional[str] = None
    album: Optional[str] = None

    @classmethod
    def from_song(cls, song: dict) -> 'LocalRecord':
        """Build a record from a library row (dict from the songs table)"""
        return cls(
            artist=clean_field(song.get('artist')),
            title=clean_field(song.get('title')),
            album=clean_field(song.get('album')),
        )


@dataclass(frozen=True)
class CandidateRecord:
    """One track returned by a Spotify search"""
    id: str
    title: str
    artists: Tuple[str, ...]
    album: str
    uri: Optional[str] = None
    album_art: Optional[str] = None

    @property
    def primary_artist(self) -> Optional[str]:
        return self.artists[0] if self.artists else None

    @classmethod
    def from_spotify_track(cls, track: dict) -> 'CandidateRecord':
        """
        Map a raw track object from the Spotify search API.

        The first listed artist is the one used for scoring; every artist
        name is kept for display.
        """
        album = track.get('album') or {}
        images = album.get('images') or []
        album_art = None
        if images:
            largest = max(images, key=lambda img: img.get('width') or 0)
            album_art = largest.get('url')

        return cls(
            id=track['id'],
            title=track['name'],
            artists=tuple(a['name'] for a in track.get('artists', [])),
            album=album.get('name', ''),
            uri=track.get('uri'),
            album_art=album_art,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'artists': list(self.artists),
            'album': self.album,
            'uri': self.uri,
            'album_art': self.album_art,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CandidateRecord':
        """
        Rebuild a candidate from its cached JSON shape.

        Raises:
            KeyError, TypeError, ValueError: if the payload is malformed
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected a track object, got {type(data).__name__}")
        artists = data['artists']
        if not isinstance(artists, list) or not all(isinstance(a, str) for a in artists):
            raise ValueError("Track artists must be a list of names")
        if not isinstance(data['id'], str) or not isinstance(data['title'], str):
            raise ValueError("Track id and title must be strings")
        return cls(
            id=data['id'],
            title=data['title'],
            artists=tuple(artists),
            album=data.get('album') or '',
            uri=data.get('uri'),
            album_art=data.get('album_art'),
        )


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate paired with its similarity to the local record"""
    candidate: CandidateRecord
    similarity: int

    def to_dict(self) -> Dict[str, Any]:
        return {'track': self.candidate.to_dict(), 'similarity': self.similarity}


@dataclass(frozen=True)
class SearchParams:
    """Fields of one Spotify track search"""
    artist: Optional[str] = None
    album: Optional[str] = None
    track: Optional[str] = None

    def fields(self) -> Dict[str, str]:
        """Non-blank fields, trimmed, keyed by Spotify field filter name"""
        result = {}
        for name in ('artist', 'album', 'track'):
            value = safe_strip(getattr(self, name))
            if value:
                result[name] = value
        return result

    def to_query(self) -> str:
        """
        Build the tagged Spotify query string.

        Examples:
            SearchParams(artist='Beatles', album='Abbey Road').to_query()
                -> 'artist:Beatles album:Abbey Road'

        Raises:
            ValueError: if every field is blank
        """
        parts = [f"{name}:{value}" for name, value in self.fields().items()]
        if not parts:
            raise ValueError("At least one search parameter (artist, album, or track) is required")
        return ' '.join(parts)


@dataclass
class BatchStats:
    """Counters for one batch search run"""
    total: int = 0
    succeeded: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {'total': self.total, 'succeeded': self.succeeded, 'failed': self.failed}


@dataclass(frozen=True)
class MetadataFix:
    """Corrected metadata suggested by the metadata cleanup assistant"""
    suggested_artist: str
    suggested_track: str
    confidence: str
    reasoning: str
    suggested_album: Optional[str] = None
    alternative_search_queries: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MetadataFix':
        """
        Validate and build a fix from its JSON shape (camelCase or snake_case keys).

        Raises:
            ValueError: if a required field is missing or invalid
        """
        def pick(*keys):
            for key in keys:
                if key in data:
                    return data[key]
            return None

        artist = pick('suggestedArtist', 'suggested_artist')
        track = pick('suggestedTrack', 'suggested_track')
        album = pick('suggestedAlbum', 'suggested_album')
        confidence = pick('confidence')
        reasoning = pick('reasoning') or ''
        queries = pick('alternativeSearchQueries', 'alternative_search_queries') or []

        if not isinstance(artist, str) or not isinstance(track, str):
            raise ValueError("suggestedArtist and suggestedTrack are required strings")
        if album is not None and not isinstance(album, str):
            raise ValueError("suggestedAlbum must be a string")
        if confidence not in METADATA_FIX_CONFIDENCE:
            raise ValueError(f"confidence must be one of {', '.join(METADATA_FIX_CONFIDENCE)}")
        if not isinstance(queries, list) or len(queries) > MAX_ALTERNATIVE_QUERIES:
            raise ValueError(f"alternativeSearchQueries must be a list of at most {MAX_ALTERNATIVE_QUERIES}")

        return cls(
            suggested_artist=artist,
            suggested_track=track,
            suggested_album=album or None,
            confidence=confidence,
            reasoning=reasoning,
            alternative_search_queries=list(queries),
        )

    def apply_to(self, record: LocalRecord) -> LocalRecord:
        """Corrected record; keeps the original album when none is suggested"""
        return LocalRecord(
            artist=self.suggested_artist,
            title=self.suggested_track,
            album=self.suggested_album or record.album,
        )
