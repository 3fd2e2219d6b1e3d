"""
Tests for text normalization, similarity scoring and candidate ranking.
"""

import pytest

from models import LocalRecord
from spotify_matching import (
    best_similarity,
    calculate_enhanced_similarity,
    calculate_similarity,
    candidate_metadata,
    normalize_for_comparison,
    rank_candidates,
    round_half_up,
    score_candidates,
    split_words,
)


def record(artist=None, title=None, album=None):
    return LocalRecord(artist=artist, title=title, album=album)


class TestNormalization:
    """Test normalization helpers."""

    def test_strips_punctuation_and_case(self):
        assert normalize_for_comparison("Hello, Goodbye!") == "hellogoodbye"
        assert normalize_for_comparison("AC/DC") == "acdc"

    def test_non_ascii_letters_are_dropped(self):
        assert normalize_for_comparison("Beyoncé") == "beyonc"
        assert normalize_for_comparison("Sigur Rós") == "sigurrs"

    def test_empty_input(self):
        assert normalize_for_comparison(None) == ""
        assert normalize_for_comparison("") == ""

    def test_split_words_keeps_word_boundaries(self):
        assert split_words("Love Me Do") == ["love", "me", "do"]
        assert split_words("Test - Song") == ["test", "song"]
        assert split_words(None) == []

    def test_round_half_up(self):
        assert round_half_up(12.5) == 13
        assert round_half_up(0.5) == 1
        assert round_half_up(2.4) == 2
        assert round_half_up(99.5) == 100


class TestCalculateSimilarity:
    """Test field similarity."""

    def test_equal_after_normalization(self):
        assert calculate_similarity("Hello, Goodbye!", "hello goodbye") == 100

    def test_missing_values_score_zero(self):
        assert calculate_similarity(None, "Yesterday") == 0
        assert calculate_similarity("", "Yesterday") == 0
        assert calculate_similarity("Yesterday", None) == 0

    def test_punctuation_only_scores_zero(self):
        assert calculate_similarity("!!!", "abc") == 0

    def test_substring_scores_80(self):
        assert calculate_similarity("Love", "Love Me Do") == 80
        assert calculate_similarity("Song - Remix", "Song") == 80

    def test_word_overlap(self):
        assert calculate_similarity("Love Me Do", "Do Me Love Now") == 75
        assert calculate_similarity("one two three", "one four five") == 33

    def test_word_overlap_rounds_half_up(self):
        # 1 common word out of 8
        assert calculate_similarity("a b c d e f g h", "a x") == 13

    def test_no_overlap(self):
        assert calculate_similarity("Alpha", "Beta") == 0


class TestEnhancedSimilarity:
    """Test record similarity rules."""

    def test_identical_records(self):
        local = record("The Beatles", "Yesterday", "Help!")
        assert calculate_enhanced_similarity(local, local) == 100

    def test_punctuation_differences_still_match(self):
        local = record("The Beatles", "Hello, Goodbye!", "Magical Mystery Tour")
        spotify = record("the beatles", "Hello Goodbye", "Magical Mystery Tour")
        assert calculate_enhanced_similarity(local, spotify) == 100

    def test_artist_punctuation(self):
        local = record("AC/DC", "Thunderstruck", "The Razors Edge")
        spotify = record("AC DC", "Thunderstruck", "The Razors Edge")
        assert calculate_enhanced_similarity(local, spotify) == 100

    def test_compilation_scores_98(self):
        local = record("The Beatles", "Yesterday", "Help!")
        spotify = record("The Beatles", "Yesterday", "Greatest Hits")
        assert calculate_enhanced_similarity(local, spotify) == 98

    def test_missing_album_scores_98(self):
        local = record("The Beatles", "Yesterday", None)
        spotify = record("The Beatles", "Yesterday", "Help!")
        assert calculate_enhanced_similarity(local, spotify) == 98

    def test_self_titled_track(self):
        local = record("John Lennon", "Imagine", "Imagine")
        spotify = record("John Lennon", "Imagine", "Gold")
        assert calculate_enhanced_similarity(local, spotify) == 100

    def test_cover_version_is_capped(self):
        local = record("Artist A", "Same Title", "Same Album")
        spotify = record("Artist B", "Same Title", "Same Album")
        assert calculate_enhanced_similarity(local, spotify) == 35

    def test_poor_title_is_capped(self):
        local = record("Artist", "Same Song", "Album")
        spotify = record("Artist", "Different Song", "Album")
        # 0.10 * 100 + 0.05 * 50 = 12.5
        assert calculate_enhanced_similarity(local, spotify) == 13

    def test_only_album_matches(self):
        local = record("Artist One", "Alpha", "Shared Album")
        spotify = record("Someone Else", "Beta", "Shared Album")
        assert calculate_enhanced_similarity(local, spotify) == 0

    def test_one_title_missing(self):
        local = record("Artist", None, "Album")
        spotify = record("Artist", "Title", "Album")
        assert calculate_enhanced_similarity(local, spotify) == 30

    def test_both_titles_missing(self):
        local = record("Artist", None, "Album")
        spotify = record("Artist", None, "Other")
        assert calculate_enhanced_similarity(local, spotify) == 60

    def test_both_artists_missing(self):
        local = record(None, "Title", "Album")
        assert calculate_enhanced_similarity(local, local) == 95

    def test_one_artist_missing_with_exact_title_and_album(self):
        local = record(None, "Title", "Album")
        spotify = record("Artist", "Title", "Album")
        assert calculate_enhanced_similarity(local, spotify) == 90

    def test_one_artist_missing_falls_through_to_blend(self):
        local = record(None, "Title", "Album")
        spotify = record("Artist", "Title", "Other Record")
        # 0.5 * 100 and nothing else
        assert calculate_enhanced_similarity(local, spotify) == 50

    def test_null_literal_is_missing(self):
        local = record("null", "Title", "null")
        spotify = record(None, "Title", None)
        # Both artists missing: 0.85 * 100
        assert calculate_enhanced_similarity(local, spotify) == 85

    def test_remix_title(self):
        local = record("Artist", "Song", "Album")
        spotify = record("Artist", "Song - Remix", "Album")
        assert calculate_enhanced_similarity(local, spotify) == 90

    def test_default_blend(self):
        local = record("Artist Name", "Title", "Album One")
        spotify = record("Artist Game", "Title", "Album Two")
        # 0.40 * 50 + 0.50 * 100 + 0.10 * 50
        assert calculate_enhanced_similarity(local, spotify) == 75

    def test_score_is_symmetric_for_simple_cases(self):
        a = record("Artist Name", "Title", "Album One")
        b = record("Artist Game", "Title", "Album Two")
        assert calculate_enhanced_similarity(a, b) == calculate_enhanced_similarity(b, a)

    @pytest.mark.parametrize("local,spotify", [
        (record(), record()),
        (record("A", "B", "C"), record()),
        (record(title="x"), record(title="y")),
    ])
    def test_range(self, local, spotify):
        score = calculate_enhanced_similarity(local, spotify)
        assert isinstance(score, int)
        assert 0 <= score <= 100


def overlapping(shared, total):
    """Two `total`-word strings with `shared` words in common"""
    left = ' '.join(f"w{i}" for i in range(total))
    right = ' '.join(f"w{i}" if i < shared else f"x{i}" for i in range(total))
    return left, right


TITLE_70 = overlapping(7, 10)
TITLE_67 = overlapping(2, 3)
TITLE_95 = overlapping(19, 20)
TITLE_94 = overlapping(16, 17)
ARTIST_62 = overlapping(8, 13)
ARTIST_61 = overlapping(11, 18)
ALBUM_95 = overlapping(19, 20)
ALBUM_94 = overlapping(16, 17)
ALBUM_80 = overlapping(4, 5)
ALBUM_79 = overlapping(11, 14)
ALBUM_60 = overlapping(3, 5)
ALBUM_59 = overlapping(10, 17)


class TestCalibrationEdges:
    """Test each calibration threshold on both sides of its edge."""

    @pytest.mark.parametrize("pair,expected", [
        (TITLE_70, 70), (TITLE_67, 67),
        (TITLE_95, 95), (TITLE_94, 94),
        (ARTIST_62, 62), (ARTIST_61, 61),
        (ALBUM_80, 80), (ALBUM_79, 79),
        (ALBUM_60, 60), (ALBUM_59, 59),
    ])
    def test_word_overlap_values(self, pair, expected):
        assert calculate_similarity(*pair) == expected

    @pytest.mark.parametrize("title,expected", [
        (TITLE_70, 85),   # default blend: 40 + 35 + 10
        (TITLE_67, 13),   # poor title: 10 + 3.35
    ])
    def test_min_title_similarity(self, title, expected):
        local = record("Artist", title[0], "Album")
        spotify = record("Artist", title[1], "Album")
        assert calculate_enhanced_similarity(local, spotify) == expected

    @pytest.mark.parametrize("artist,expected", [
        (ARTIST_62, 81),  # not a cover: 24.8 + 50 + 6
        (ARTIST_61, 34),  # cover: 25 + 6.1 + 3
    ])
    def test_cover_max_artist(self, artist, expected):
        local = record(artist[0], "Same Song", ALBUM_60[0])
        spotify = record(artist[1], "Same Song", ALBUM_60[1])
        assert calculate_enhanced_similarity(local, spotify) == expected

    @pytest.mark.parametrize("album,expected", [
        (ALBUM_60, 33),   # cover: 25 + 5 + 3
        (ALBUM_59, 76),   # default blend: 20 + 50 + 5.9
    ])
    def test_cover_min_album(self, album, expected):
        local = record("Artist A", "Same Song", album[0])
        spotify = record("Artist B", "Same Song", album[1])
        assert calculate_enhanced_similarity(local, spotify) == expected

    @pytest.mark.parametrize("title,expected", [
        (TITLE_95, 35),   # cover: 25 + 5 + 5
        (TITLE_94, 77),   # default blend: 20 + 47 + 10
    ])
    def test_cover_min_title(self, title, expected):
        local = record("Artist A", title[0], "Album")
        spotify = record("Artist B", title[1], "Album")
        assert calculate_enhanced_similarity(local, spotify) == expected

    @pytest.mark.parametrize("album,expected", [
        (ALBUM_80, 100),
        (ALBUM_79, 98),
    ])
    def test_same_album_min(self, album, expected):
        local = record("The Beatles", "Yesterday", album[0])
        spotify = record("The Beatles", "Yesterday", album[1])
        assert calculate_enhanced_similarity(local, spotify) == expected

    @pytest.mark.parametrize("album,expected", [
        (ALBUM_95, 89),   # 70 + 19
        (ALBUM_94, 30),   # falls through to cover: 25 + 4.7
    ])
    def test_one_artist_missing_min(self, album, expected):
        local = record(None, "Title", album[0])
        spotify = record("Artist", "Title", album[1])
        assert calculate_enhanced_similarity(local, spotify) == expected

    def test_same_song_by_another_artist(self):
        local = record("Artist A", "Same Song", "Album")
        spotify = record("Artist B", "Same Song", "Album")
        assert 35 <= calculate_enhanced_similarity(local, spotify) <= 45


class TestRanking:
    """Test candidate scoring and ranking."""

    def test_candidate_metadata_uses_primary_artist(self, make_track):
        track = make_track(artists=('Paul McCartney', 'Wings'), title='Jet', album='Band on the Run')
        assert candidate_metadata(track) == record('Paul McCartney', 'Jet', 'Band on the Run')

    def test_score_keeps_input_order(self, make_track):
        local = record("The Beatles", "Yesterday", "Help!")
        tracks = [make_track('bad', title='Help!'), make_track('good')]
        scored = score_candidates(local, tracks)
        assert [s.candidate.id for s in scored] == ['bad', 'good']

    def test_rank_best_first(self, make_track):
        local = record("The Beatles", "Yesterday", "Help!")
        tracks = [
            make_track('cover', artist='Boyz II Men'),
            make_track('exact'),
            make_track('other', title='Something'),
        ]
        ranked = rank_candidates(local, tracks)
        assert [s.candidate.id for s in ranked] == ['exact', 'cover', 'other']
        assert ranked[0].similarity == 100

    def test_rank_is_stable_for_ties(self, make_track):
        local = record("The Beatles", "Yesterday", "Help!")
        tracks = [make_track('first'), make_track('second'), make_track('third')]
        ranked = rank_candidates(local, tracks)
        assert [s.candidate.id for s in ranked] == ['first', 'second', 'third']

    def test_rank_empty(self):
        assert rank_candidates(record("A", "B"), []) == []

    def test_best_similarity(self, make_track):
        local = record("The Beatles", "Yesterday", "Help!")
        tracks = [make_track('a', title='Something'), make_track('b', album='1')]
        assert best_similarity(local, tracks) == 98
        assert best_similarity(local, []) == 0
