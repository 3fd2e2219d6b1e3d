"""
Spotify Search Strategy

Finds Spotify candidates for one library record in at most two searches:

    PRECISE  - artist + title, used whenever the record has an artist
    RELAXED  - title only, used when there is no artist, or when the precise
               search found nothing usable

The only transition is PRECISE -> RELAXED, taken when the precise search
returned no tracks or its best similarity is under PRECISION_THRESHOLD.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from models import CandidateRecord, LocalRecord, ScoredCandidate, SearchParams
from spotify_matching import best_similarity, rank_candidates

logger = logging.getLogger(__name__)

# Precise results whose best match scores below this are not trusted
PRECISION_THRESHOLD = 50


class SearchPhase(Enum):
    PRECISE = 'precise'
    RELAXED = 'relaxed'


def should_fall_back(result_count: int, best: int) -> bool:
    """True when precise results are missing or too weak to keep"""
    return not (result_count > 0 and best >= PRECISION_THRESHOLD)


@dataclass
class SearchResult:
    """Outcome of one record search"""
    candidates: List[CandidateRecord]
    phase: SearchPhase
    queries: List[SearchParams] = field(default_factory=list)
    # Best similarity of the precise phase, None if it never ran
    precise_best_similarity: Optional[int] = None

    @property
    def fell_back(self) -> bool:
        return self.phase == SearchPhase.RELAXED and self.precise_best_similarity is not None


class SongSearch:
    """
    Runs the precise/relaxed search for library records.

    search_fn performs one catalog search (normally the cached search of
    SpotifyMatcher) and must raise on failure; errors are not caught here.
    """

    def __init__(self, search_fn: Callable[[SearchParams], List[CandidateRecord]], logger=None):
        self.search_fn = search_fn
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def initial_phase(record: LocalRecord) -> SearchPhase:
        return SearchPhase.PRECISE if record.artist else SearchPhase.RELAXED

    @staticmethod
    def params_for(phase: SearchPhase, record: LocalRecord) -> SearchParams:
        if phase == SearchPhase.PRECISE:
            return SearchParams(artist=record.artist, track=record.title)
        return SearchParams(track=record.title)

    def search(self, record: LocalRecord) -> SearchResult:
        """
        Search Spotify for a library record.

        Args:
            record: The library record to find

        Returns:
            SearchResult with the candidates of the last phase that ran,
            in the order Spotify returned them

        Raises:
            Whatever search_fn raises (SpotifyAPIError, database errors, ...)
        """
        phase = self.initial_phase(record)
        params = self.params_for(phase, record)
        candidates = self.search_fn(params)
        queries = [params]

        if phase == SearchPhase.RELAXED:
            return SearchResult(candidates=candidates, phase=phase, queries=queries)

        best = best_similarity(record, candidates)
        if not should_fall_back(len(candidates), best):
            return SearchResult(candidates=candidates, phase=phase, queries=queries,
                                precise_best_similarity=best)

        self.logger.debug(
            f"Precise search for '{record.artist} - {record.title}' gave "
            f"{len(candidates)} results (best {best}%), trying title only"
        )
        params = self.params_for(SearchPhase.RELAXED, record)
        candidates = self.search_fn(params)
        queries.append(params)

        return SearchResult(candidates=candidates, phase=SearchPhase.RELAXED, queries=queries,
                            precise_best_similarity=best)

    def find_best_matches(self, record: LocalRecord) -> List[CandidateRecord]:
        return self.search(record).candidates

    def search_and_rank(self, record: LocalRecord) -> List[ScoredCandidate]:
        """Search, then rank the candidates against the record (best first)"""
        return rank_candidates(record, self.find_best_matches(record))
