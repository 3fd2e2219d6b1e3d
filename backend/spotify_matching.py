"""
Spotify Matching Utilities

Text normalization and similarity scoring for matching local library
records to Spotify search results, plus ranking of candidate lists.

Functions in this module are stateless and can be used independently.
"""

import math
import re
import logging
from typing import Iterable, List, Optional

from models import CandidateRecord, LocalRecord, ScoredCandidate, clean_field

logger = logging.getLogger(__name__)


# ============================================================================
# CALIBRATION CONSTANTS
# ============================================================================
# Empirically tuned against real library data. Changing any of these shifts
# which candidates clear the auto-match and fallback thresholds.

EXACT_SIMILARITY = 100
SUBSTRING_SIMILARITY = 80

# Title below this means a different song, whatever the other fields say
MIN_TITLE_SIMILARITY = 70
POOR_TITLE_CAP = 15

# Both artists missing: title carries the score
NO_ARTIST_CAP = 95
# One artist missing: only trusted when title and album are near-identical
ONE_ARTIST_MISSING_MIN = 95

# Same artist and title but different album (compilation)
COMPILATION_SCORE = 98
SAME_ALBUM_MIN = 80

# Cover detection: same title, different performer, themed album
COVER_MIN_TITLE = 95
COVER_MAX_ARTIST = 62
COVER_MIN_ALBUM = 60
COVER_BASE = 25
COVER_CAP = 45

# (artist, title, album) weights
BOTH_TITLES_MISSING_WEIGHTS = (0.6, 0.0, 0.4)
ONE_TITLE_MISSING_WEIGHTS = (0.2, 0.0, 0.1)
POOR_TITLE_WEIGHTS = (0.10, 0.05, 0.0)
NO_ARTIST_WEIGHTS = (0.0, 0.85, 0.10)
ONE_ARTIST_MISSING_WEIGHTS = (0.0, 0.7, 0.2)
COVER_WEIGHTS = (0.10, 0.0, 0.05)
DEFAULT_WEIGHTS = (0.40, 0.50, 0.10)


_NON_ALNUM = re.compile(r'[^a-z0-9]')


# ============================================================================
# NORMALIZATION
# ============================================================================

def normalize_for_comparison(text: Optional[str]) -> str:
    """
    Normalize text for equality and substring checks.

    Lower-cases and drops everything that is not an ASCII letter or digit.

    Examples:
        "Hello, Goodbye!" -> "hellogoodbye"
        "AC/DC" -> "acdc"
    """
    if not text:
        return ""
    return _NON_ALNUM.sub('', text.lower())


def split_words(text: Optional[str]) -> List[str]:
    """
    Split on whitespace BEFORE normalizing, to keep word boundaries.

    Examples:
        "Love Me Do" -> ["love", "me", "do"]
        "Test - Song" -> ["test", "song"]
    """
    if not text:
        return []
    words = (normalize_for_comparison(word) for word in text.split())
    return [word for word in words if word]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (12.5 -> 13)"""
    return int(math.floor(value + 0.5))


# ============================================================================
# FIELD SIMILARITY
# ============================================================================

def calculate_similarity(text1: Optional[str], text2: Optional[str]) -> int:
    """
    Calculate similarity between two field values.

    Returns a score from 0-100:
        100 - equal after normalization
        80  - one normalized value contains the other
        0   - either side missing or empty after normalization
        otherwise the share of words in common, relative to the side with
        more words
    """
    if not text1 or not text2:
        return 0

    norm1 = normalize_for_comparison(text1)
    norm2 = normalize_for_comparison(text2)

    if not norm1 or not norm2:
        return 0

    if norm1 == norm2:
        return EXACT_SIMILARITY

    if norm1 in norm2 or norm2 in norm1:
        return SUBSTRING_SIMILARITY

    words1 = split_words(text1)
    words2 = split_words(text2)
    common = [word for word in words1 if word in words2]
    return round_half_up(len(common) / max(len(words1), len(words2)) * 100)


def _blend(weights, artist_sim, title_sim, album_sim) -> float:
    artist_w, title_w, album_w = weights
    return artist_sim * artist_w + title_sim * title_w + album_sim * album_w


# ============================================================================
# RECORD SIMILARITY
# ============================================================================

def calculate_enhanced_similarity(local: LocalRecord, candidate: LocalRecord) -> int:
    """
    Calculate how likely a Spotify result is the same recording as a local
    library entry, considering artist, title, and album.

    The rules are applied in order and the first one that applies wins:
    missing titles, poor title match, missing artists, perfect match,
    cover detection, then the default weighted blend.

    Args:
        local: The song from the local library
        candidate: The Spotify result, as (primary artist, title, album)

    Returns:
        Similarity percentage (0-100)
    """
    local_artist = clean_field(local.artist)
    local_title = clean_field(local.title)
    local_album = clean_field(local.album)
    spotify_artist = clean_field(candidate.artist)
    spotify_title = clean_field(candidate.title)
    spotify_album = clean_field(candidate.album)

    title_sim = calculate_similarity(local_title, spotify_title)
    artist_sim = calculate_similarity(local_artist, spotify_artist)
    album_sim = calculate_similarity(local_album, spotify_album)

    # Title is the load-bearing field
    if not local_title or not spotify_title:
        if not local_title and not spotify_title:
            weights = BOTH_TITLES_MISSING_WEIGHTS
        else:
            weights = ONE_TITLE_MISSING_WEIGHTS
        return round_half_up(_blend(weights, artist_sim, title_sim, album_sim))

    # Word overlap gives false positives ("Same Song" vs "Different Song")
    if title_sim < MIN_TITLE_SIMILARITY:
        score = _blend(POOR_TITLE_WEIGHTS, artist_sim, title_sim, album_sim)
        return round_half_up(min(POOR_TITLE_CAP, score))

    if not local_artist and not spotify_artist:
        score = _blend(NO_ARTIST_WEIGHTS, artist_sim, title_sim, album_sim)
        return round_half_up(min(NO_ARTIST_CAP, score))

    if not local_artist or not spotify_artist:
        if title_sim >= ONE_ARTIST_MISSING_MIN and album_sim >= ONE_ARTIST_MISSING_MIN:
            return round_half_up(_blend(ONE_ARTIST_MISSING_WEIGHTS, artist_sim, title_sim, album_sim))

    if artist_sim == EXACT_SIMILARITY and title_sim == EXACT_SIMILARITY:
        # Self-titled track ("Imagine" on "Imagine")
        if local_album == local_title or spotify_album == spotify_title:
            return EXACT_SIMILARITY
        if album_sim >= SAME_ALBUM_MIN:
            return EXACT_SIMILARITY
        return COMPILATION_SCORE

    # Low artist AND low album is more likely messy metadata than a cover
    if title_sim >= COVER_MIN_TITLE and artist_sim < COVER_MAX_ARTIST and album_sim >= COVER_MIN_ALBUM:
        score = COVER_BASE + _blend(COVER_WEIGHTS, artist_sim, title_sim, album_sim)
        return round_half_up(min(COVER_CAP, score))

    return round_half_up(_blend(DEFAULT_WEIGHTS, artist_sim, title_sim, album_sim))


def candidate_metadata(candidate: CandidateRecord) -> LocalRecord:
    """The fields of a Spotify result that take part in scoring"""
    return LocalRecord(
        artist=candidate.primary_artist,
        title=candidate.title,
        album=candidate.album,
    )


# ============================================================================
# RANKING
# ============================================================================

def score_candidates(local: LocalRecord,
                     candidates: Iterable[CandidateRecord]) -> List[ScoredCandidate]:
    """Pair each candidate with its similarity, keeping input order"""
    return [
        ScoredCandidate(
            candidate=candidate,
            similarity=calculate_enhanced_similarity(local, candidate_metadata(candidate)),
        )
        for candidate in candidates
    ]


def rank_candidates(local: LocalRecord,
                    candidates: Iterable[CandidateRecord]) -> List[ScoredCandidate]:
    """
    Score and sort candidates, best match first.

    The sort is stable: candidates with equal similarity keep the order
    Spotify returned them in.
    """
    return sorted(score_candidates(local, candidates),
                  key=lambda scored: scored.similarity, reverse=True)


def best_similarity(local: LocalRecord, candidates: Iterable[CandidateRecord]) -> int:
    """Highest similarity across the candidates, or 0 when there are none"""
    scored = score_candidates(local, candidates)
    if not scored:
        return 0
    return max(s.similarity for s in scored)
