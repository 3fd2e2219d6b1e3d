#!/usr/bin/env python3
"""
Library Matcher - Command Line Interface
Searches Spotify for every unmatched library song and saves confident matches
"""

from script_base import ScriptBase, run_script
from dotenv import load_dotenv

load_dotenv()

from config import MatcherSettings
from rate_limiter import create_spotify_limiter
from spotify_db import get_unmatched_songs
from spotify_matcher import SpotifyMatcher


def main() -> bool:
    settings = MatcherSettings.from_env()

    script = ScriptBase(
        name="match_library",
        description="Match unmatched library songs to Spotify tracks",
        epilog="""
Setup:
  1. Get Spotify API credentials from https://developer.spotify.com/dashboard
  2. Set environment variables (or put them in .env):
     export SPOTIFY_CLIENT_ID='your_client_id'
     export SPOTIFY_CLIENT_SECRET='your_client_secret'

Examples:
  # Match every unmatched song
  python match_library.py

  # Try the first 50, without saving anything
  python match_library.py --limit 50 --dry-run

  # Only save near-certain matches
  python match_library.py --threshold 95

  # Ignore cached searches
  python match_library.py --force-refresh --debug
        """
    )

    script.add_common_args()
    script.add_limit_arg(default=None)

    script.parser.add_argument(
        '--threshold',
        type=int,
        default=settings.auto_match_threshold,
        help=f'Minimum similarity to save a match (default: {settings.auto_match_threshold})'
    )
    script.parser.add_argument(
        '--max-concurrent',
        type=int,
        default=settings.max_concurrent,
        help=f'Maximum concurrent Spotify searches (default: {settings.max_concurrent})'
    )
    script.parser.add_argument(
        '--cache-days',
        type=int,
        default=settings.cache_days,
        help=f'Number of days before cache expires (default: {settings.cache_days})'
    )

    args = script.parse_args()

    script.print_header({
        "DRY RUN": args.dry_run,
        "FORCE REFRESH": args.force_refresh,
    })

    matcher = SpotifyMatcher(
        cache_days=args.cache_days,
        force_refresh=args.force_refresh,
        auto_match_threshold=args.threshold,
        market=settings.market,
        search_limit=settings.search_limit,
        logger=script.logger
    )

    songs = get_unmatched_songs(limit=args.limit)
    script.logger.info(f"Found {len(songs)} unmatched songs")

    limiter_options = settings.limiter_options()
    limiter_options['max_concurrent'] = args.max_concurrent
    limiter = create_spotify_limiter(logger=script.logger, **limiter_options)

    try:
        stats = matcher.match_library(songs, limiter=limiter, dry_run=args.dry_run)
    finally:
        limiter.stop()

    matcher.print_summary()
    script.print_summary(stats.to_dict(), title="BATCH SUMMARY")

    return stats.failed == 0


if __name__ == "__main__":
    run_script(main)
