# routes/songs.py
"""
Song API Routes

Endpoints behind the match review UI: listing library songs, picking the
next unmatched song, searching Spotify for a song, and saving, clearing or
correcting a song's match and metadata.

Error responses carry {'success': False, 'error': ...}.
"""
from flask import Blueprint, current_app, jsonify, request
import logging

import spotify_db
from config import MatcherSettings
from models import MetadataFix, safe_strip
from spotify_matcher import SpotifyMatcher, should_skip_song

logger = logging.getLogger(__name__)
songs_bp = Blueprint('songs', __name__)


def get_matcher() -> SpotifyMatcher:
    """The app's matcher; built from environment settings on first use"""
    matcher = current_app.extensions.get('spotify_matcher')
    if matcher is None:
        settings = MatcherSettings.from_env()
        matcher = SpotifyMatcher(
            cache_days=settings.cache_days,
            auto_match_threshold=settings.auto_match_threshold,
            market=settings.market,
            search_limit=settings.search_limit
        )
        current_app.extensions['spotify_matcher'] = matcher
    return matcher


def error_response(message, status):
    return jsonify({'success': False, 'error': message}), status


def _int_arg(name):
    """Optional non-negative integer query parameter; raises ValueError if invalid"""
    value = request.args.get(name)
    if value is None or value == '':
        return None
    number = int(value)
    if number < 0:
        raise ValueError(f"{name} must not be negative")
    return number


# ============================================================================
# LIBRARY
# ============================================================================

@songs_bp.route('/api/songs', methods=['GET'])
def get_songs():
    """Get library songs, optionally paginated with ?limit=&offset="""
    try:
        limit = _int_arg('limit')
        offset = _int_arg('offset')
    except ValueError:
        return error_response('limit and offset must be non-negative integers', 400)

    try:
        songs = spotify_db.get_songs(limit=limit, offset=offset)
        total = spotify_db.count_songs()
        return jsonify({
            'success': True,
            'total': total,
            'count': len(songs),
            'songs': songs
        })

    except Exception as e:
        logger.error(f"Error fetching songs: {e}")
        return error_response('Failed to fetch songs from database', 500)


@songs_bp.route('/api/songs/unmatched/next', methods=['GET'])
def get_next_unmatched_song():
    """Next song to review; ?random=true picks a random one"""
    pick_random = request.args.get('random', 'false').lower() == 'true'

    try:
        song = spotify_db.get_next_unmatched_song(random=pick_random)
    except Exception as e:
        logger.error(f"Error fetching unmatched song: {e}")
        return error_response('Failed to fetch unmatched song', 500)

    if not song:
        return error_response('No unmatched songs found', 404)
    return jsonify({'success': True, 'song': song})


@songs_bp.route('/api/songs/by-artist', methods=['GET'])
def get_songs_by_artist():
    """Searchable songs by one artist (?artist=, omitted for songs with no artist)"""
    artist = safe_strip(request.args.get('artist'))
    try:
        songs = spotify_db.get_songs_by_artist(artist)
        return jsonify({'success': True, 'count': len(songs), 'songs': songs})
    except Exception as e:
        logger.error(f"Error fetching songs by artist '{artist}': {e}")
        return error_response('Failed to fetch songs by artist', 500)


@songs_bp.route('/api/songs/by-album', methods=['GET'])
def get_songs_by_album():
    """Songs on one album (?artist=&album=)"""
    artist = safe_strip(request.args.get('artist'))
    album = safe_strip(request.args.get('album'))
    try:
        songs = spotify_db.get_songs_by_album(artist, album)
        return jsonify({'success': True, 'count': len(songs), 'songs': songs})
    except Exception as e:
        logger.error(f"Error fetching songs for album '{artist} - {album}': {e}")
        return error_response('Failed to fetch songs by album', 500)


# ============================================================================
# MATCHING
# ============================================================================

@songs_bp.route('/api/songs/<int:song_id>/matches', methods=['GET'])
def get_song_matches(song_id):
    """Spotify candidates for a song, best match first"""
    try:
        song = spotify_db.get_song_by_id(song_id)
    except Exception as e:
        logger.error(f"Error fetching song {song_id}: {e}")
        return error_response('Failed to fetch song', 500)

    if not song:
        return error_response(f'Song with ID {song_id} not found', 404)
    if should_skip_song(song):
        return error_response('Song has no title to search for', 400)

    result = get_matcher().search_for_song(song)
    if not result['success']:
        return error_response(result['error'], 502)

    return jsonify({
        'success': True,
        'song': song,
        'similarity': result['similarity'],
        'tracks': result['tracks']
    })


@songs_bp.route('/api/songs/<int:song_id>/match', methods=['PUT'])
def save_song_match(song_id):
    """Save a confirmed Spotify match: body {"spotify_id": "..."}"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response('spotify_id is required', 400)
    spotify_id = safe_strip(data.get('spotify_id'))
    if not spotify_id or not isinstance(spotify_id, str):
        return error_response('spotify_id is required', 400)

    try:
        saved = spotify_db.save_song_match(song_id, spotify_id)
    except Exception as e:
        logger.error(f"Error saving match for song {song_id}: {e}")
        return error_response('Failed to save match', 500)

    if not saved:
        return error_response(f'Song with ID {song_id} not found', 404)
    return jsonify({'success': True, 'song_id': song_id, 'spotify_id': spotify_id})


@songs_bp.route('/api/songs/<int:song_id>/match', methods=['DELETE'])
def clear_song_match(song_id):
    """Remove a song's Spotify match"""
    try:
        cleared = spotify_db.clear_song_match(song_id)
    except Exception as e:
        logger.error(f"Error clearing match for song {song_id}: {e}")
        return error_response('Failed to clear match', 500)

    if not cleared:
        return error_response(f'Song with ID {song_id} not found', 404)
    return jsonify({'success': True, 'song_id': song_id})


@songs_bp.route('/api/songs/<int:song_id>/metadata-fix', methods=['POST'])
def apply_metadata_fix(song_id):
    """
    Apply corrected metadata to a song

    Body: {"suggestedArtist", "suggestedTrack", "suggestedAlbum"?,
           "confidence": "high"|"medium"|"low", "reasoning",
           "alternativeSearchQueries"?}
    """
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return error_response('No data provided', 400)

    try:
        fix = MetadataFix.from_dict(data)
    except ValueError as e:
        return error_response(str(e), 400)

    try:
        updated = spotify_db.apply_metadata_fix(song_id, fix)
        if not updated:
            return error_response(f'Song with ID {song_id} not found', 404)
        song = spotify_db.get_song_by_id(song_id)
    except Exception as e:
        logger.error(f"Error applying metadata fix to song {song_id}: {e}")
        return error_response('Failed to apply metadata fix', 500)

    return jsonify({'success': True, 'song': song})
