"""
Configuration Module for Library Matcher
Handles logging setup and matcher settings from the environment
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from rate_limiter import (
    DEFAULT_MAX_CONCURRENT,
    DEFAULT_MIN_TIME,
    DEFAULT_RESERVOIR,
    DEFAULT_RESERVOIR_REFRESH_INTERVAL,
)
from spotify_cache import DEFAULT_CACHE_DAYS
from spotify_client import DEFAULT_SEARCH_LIMIT
from spotify_matcher import AUTO_MATCH_THRESHOLD


def configure_logging(level=logging.INFO):
    """
    Configure application logging with standard format

    Returns:
        Logger instance for the config module
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    return logging.getLogger(__name__)


def set_db_pooling_mode():
    """
    Set database pooling mode environment variable

    This must be called before the first database query so that
    db_utils hands out pooled connections.
    """
    os.environ['DB_USE_POOLING'] = 'true'


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass
class MatcherSettings:
    """Tunable settings for the matcher and its rate limiter"""
    market: Optional[str] = None
    search_limit: int = DEFAULT_SEARCH_LIMIT
    cache_days: int = DEFAULT_CACHE_DAYS
    auto_match_threshold: int = AUTO_MATCH_THRESHOLD
    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    min_time_ms: int = int(DEFAULT_MIN_TIME * 1000)
    reservoir: int = DEFAULT_RESERVOIR
    reservoir_refresh_ms: int = int(DEFAULT_RESERVOIR_REFRESH_INTERVAL * 1000)

    @classmethod
    def from_env(cls) -> 'MatcherSettings':
        """
        Read settings from environment variables, falling back to defaults

        Raises:
            ValueError: If a numeric variable is not an integer
        """
        return cls(
            market=os.environ.get('SPOTIFY_MARKET') or None,
            search_limit=_env_int('SPOTIFY_SEARCH_LIMIT', cls.search_limit),
            cache_days=_env_int('SPOTIFY_CACHE_DAYS', cls.cache_days),
            auto_match_threshold=_env_int('AUTO_MATCH_THRESHOLD', cls.auto_match_threshold),
            max_concurrent=_env_int('SPOTIFY_MAX_CONCURRENT', cls.max_concurrent),
            min_time_ms=_env_int('SPOTIFY_MIN_TIME_MS', cls.min_time_ms),
            reservoir=_env_int('SPOTIFY_RESERVOIR', cls.reservoir),
            reservoir_refresh_ms=_env_int('SPOTIFY_RESERVOIR_REFRESH_MS', cls.reservoir_refresh_ms),
        )

    def limiter_options(self) -> dict:
        """Keyword arguments for rate_limiter.create_spotify_limiter"""
        return {
            'max_concurrent': self.max_concurrent,
            'min_time': self.min_time_ms / 1000,
            'reservoir': self.reservoir,
            'reservoir_refresh_interval': self.reservoir_refresh_ms / 1000,
            'reservoir_refresh_amount': self.reservoir,
        }
