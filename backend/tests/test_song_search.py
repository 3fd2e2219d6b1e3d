"""
Tests for the precise/relaxed search strategy.
"""

import pytest

from models import LocalRecord, SearchParams
from song_search import (
    PRECISION_THRESHOLD,
    SearchPhase,
    SongSearch,
    should_fall_back,
)
from spotify_client import SpotifyAPIError

YESTERDAY = LocalRecord('The Beatles', 'Yesterday', 'Help!')
PRECISE = SearchParams(artist='The Beatles', track='Yesterday')
RELAXED = SearchParams(track='Yesterday')


class ScriptedSearch:
    """search_fn that answers from a dict and records every call."""

    def __init__(self, responses=None, errors=None):
        self.responses = responses or {}
        self.errors = errors or {}
        self.calls = []

    def __call__(self, params):
        self.calls.append(params)
        if params in self.errors:
            raise self.errors[params]
        return self.responses.get(params, [])


class TestShouldFallBack:

    def test_no_results(self):
        assert should_fall_back(0, 100)

    def test_weak_results(self):
        assert should_fall_back(3, PRECISION_THRESHOLD - 1)

    def test_good_results(self):
        assert not should_fall_back(3, PRECISION_THRESHOLD)


class TestSongSearch:
    """Test phase selection and the single fallback transition."""

    def test_initial_phase(self):
        assert SongSearch.initial_phase(YESTERDAY) == SearchPhase.PRECISE
        assert SongSearch.initial_phase(LocalRecord(title='Yesterday')) == SearchPhase.RELAXED

    def test_params_for_phase(self):
        assert SongSearch.params_for(SearchPhase.PRECISE, YESTERDAY) == PRECISE
        assert SongSearch.params_for(SearchPhase.RELAXED, YESTERDAY) == RELAXED

    def test_good_precise_results_are_kept(self, make_track):
        search_fn = ScriptedSearch({PRECISE: [make_track('exact')]})
        result = SongSearch(search_fn).search(YESTERDAY)

        assert result.phase == SearchPhase.PRECISE
        assert [t.id for t in result.candidates] == ['exact']
        assert result.precise_best_similarity == 100
        assert search_fn.calls == [PRECISE]
        assert not result.fell_back

    def test_empty_precise_results_fall_back(self, make_track):
        search_fn = ScriptedSearch({RELAXED: [make_track('relaxed')]})
        result = SongSearch(search_fn).search(YESTERDAY)

        assert result.phase == SearchPhase.RELAXED
        assert [t.id for t in result.candidates] == ['relaxed']
        assert search_fn.calls == [PRECISE, RELAXED]
        assert result.queries == [PRECISE, RELAXED]
        assert result.fell_back

    def test_weak_precise_results_fall_back(self, make_track):
        search_fn = ScriptedSearch({
            PRECISE: [make_track('wrong', title='Let It Be')],
            RELAXED: [make_track('cover', artist='Boyz II Men'), make_track('right')],
        })
        result = SongSearch(search_fn).search(YESTERDAY)

        assert result.phase == SearchPhase.RELAXED
        assert result.precise_best_similarity < PRECISION_THRESHOLD
        # Relaxed results come back in Spotify's order, unranked
        assert [t.id for t in result.candidates] == ['cover', 'right']

    def test_relaxed_empty_result_is_returned(self):
        search_fn = ScriptedSearch()
        result = SongSearch(search_fn).search(YESTERDAY)
        assert result.candidates == []
        assert result.phase == SearchPhase.RELAXED

    def test_no_artist_goes_straight_to_relaxed(self, make_track):
        record = LocalRecord(title='Yesterday', album='Help!')
        search_fn = ScriptedSearch({RELAXED: [make_track()]})
        result = SongSearch(search_fn).search(record)

        assert search_fn.calls == [RELAXED]
        assert result.phase == SearchPhase.RELAXED
        assert result.precise_best_similarity is None
        assert not result.fell_back

    def test_precise_error_propagates(self):
        search_fn = ScriptedSearch(errors={PRECISE: SpotifyAPIError("boom")})
        with pytest.raises(SpotifyAPIError):
            SongSearch(search_fn).search(YESTERDAY)
        assert search_fn.calls == [PRECISE]

    def test_fallback_error_propagates(self):
        search_fn = ScriptedSearch(errors={RELAXED: SpotifyAPIError("boom")})
        with pytest.raises(SpotifyAPIError):
            SongSearch(search_fn).search(YESTERDAY)

    def test_search_and_rank(self, make_track):
        search_fn = ScriptedSearch({
            PRECISE: [make_track('compilation', album='1'), make_track('exact')],
        })
        ranked = SongSearch(search_fn).search_and_rank(YESTERDAY)
        assert [(s.candidate.id, s.similarity) for s in ranked] == [('exact', 100), ('compilation', 98)]

    def test_find_best_matches(self, make_track):
        search_fn = ScriptedSearch({PRECISE: [make_track('a'), make_track('b')]})
        assert [t.id for t in SongSearch(search_fn).find_best_matches(YESTERDAY)] == ['a', 'b']
