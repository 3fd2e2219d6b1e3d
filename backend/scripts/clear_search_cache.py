#!/usr/bin/env python3
"""
Clear Expired Spotify Search Cache
Deletes cached search results older than the cache TTL
"""

from script_base import ScriptBase, run_script
from dotenv import load_dotenv

load_dotenv()

from config import MatcherSettings
from spotify_cache import SearchCache
from spotify_db import SearchCacheStore


def main() -> bool:
    settings = MatcherSettings.from_env()

    script = ScriptBase(
        name="clear_search_cache",
        description="Delete expired Spotify search cache entries",
        epilog="""
Examples:
  # Delete entries older than the configured TTL (SPOTIFY_CACHE_DAYS)
  python clear_search_cache.py

  # Delete everything older than a week
  python clear_search_cache.py --ttl-days 7
        """
    )
    script.add_debug_arg()
    script.parser.add_argument(
        '--ttl-days',
        type=int,
        default=settings.cache_days,
        help=f'Age in days after which entries are deleted (default: {settings.cache_days})'
    )

    args = script.parse_args()
    if args.ttl_days < 0:
        script.logger.error("--ttl-days must not be negative")
        return False

    script.print_header()

    cache = SearchCache(SearchCacheStore(), cache_days=args.ttl_days, logger=script.logger)
    deleted = cache.clear_expired()

    script.print_summary({'ttl_days': args.ttl_days, 'entries_deleted': deleted})
    return True


if __name__ == "__main__":
    run_script(main)
