"""
Spotify API Client Infrastructure

Handles low-level Spotify API concerns:
- OAuth token management (client credentials flow)
- Rate limiting with exponential backoff
- Track search and mapping of raw hits to CandidateRecord

Search results are cached one level up (spotify_cache.SearchCache), so this
client always talks to Spotify.
"""

import os
import time
import base64
import logging
import threading
from typing import List, Optional, Sequence

import requests

from models import CandidateRecord, SearchParams

logger = logging.getLogger(__name__)

TOKEN_URL = 'https://accounts.spotify.com/api/token'
SEARCH_URL = 'https://api.spotify.com/v1/search'

DEFAULT_SEARCH_LIMIT = 20
REQUEST_TIMEOUT = 10


class SpotifyAPIError(Exception):
    """Raised when a Spotify API call fails"""


class SpotifyAuthError(SpotifyAPIError):
    """Raised when no access token can be obtained"""


class SpotifyRateLimitError(SpotifyAPIError):
    """Raised when Spotify API rate limit is hit"""
    def __init__(self, retry_after: int = None):
        self.retry_after = retry_after
        super().__init__(f"Spotify rate limit exceeded. Retry after {retry_after} seconds." if retry_after else "Spotify rate limit exceeded.")


class SpotifyClient:
    """
    Low-level Spotify API client with authentication and rate limit handling.
    """

    def __init__(self, client_id=None, client_secret=None, market=None,
                 rate_limit_delay=0.0, max_retries=3, session=None, logger=None):
        """
        Initialize Spotify Client

        Args:
            client_id: Spotify app client ID (default: SPOTIFY_CLIENT_ID env var)
            client_secret: Spotify app secret (default: SPOTIFY_CLIENT_SECRET env var)
            market: Default ISO country code applied to searches
            rate_limit_delay: Minimum delay between API calls (seconds)
            max_retries: Maximum number of retries for rate-limited requests
            session: Optional requests.Session (a new one is created if not provided)
            logger: Optional logger instance (uses module logger if not provided)
        """
        self.logger = logger or logging.getLogger(__name__)
        self.client_id = client_id or os.environ.get('SPOTIFY_CLIENT_ID')
        self.client_secret = client_secret or os.environ.get('SPOTIFY_CLIENT_SECRET')
        self.market = market
        self.session = session or requests.Session()

        self.access_token = None
        self.token_expires = 0
        self._token_lock = threading.Lock()

        self.rate_limit_delay = rate_limit_delay
        self.max_retries = max_retries
        self.last_request_time = 0

        self._stats_lock = threading.Lock()
        self.stats = {
            'api_calls': 0,
            'rate_limit_hits': 0,
            'rate_limit_waits': 0
        }

        self.logger.debug(f"Rate limit: {rate_limit_delay}s delay, {max_retries} max retries")

    # ========================================================================
    # RATE LIMITING METHODS
    # ========================================================================

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self.stats[key] += 1

    def _wait_for_rate_limit(self):
        """Enforce minimum delay between requests"""
        if self.rate_limit_delay > 0:
            elapsed = time.time() - self.last_request_time
            if elapsed < self.rate_limit_delay:
                time.sleep(self.rate_limit_delay - elapsed)
        self.last_request_time = time.time()

    def _handle_rate_limit_response(self, response: requests.Response) -> Optional[int]:
        """
        Extract rate limit information from response headers

        Args:
            response: Response object from requests

        Returns:
            Number of seconds to wait before retrying, or None if not rate limited
        """
        if response.status_code != 429:
            return None

        retry_after = response.headers.get('Retry-After')
        if retry_after:
            try:
                return int(retry_after)
            except ValueError:
                self.logger.warning(f"Invalid Retry-After header: {retry_after}")

        return None

    def _make_api_request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Make an API request with rate limit handling and retries

        Args:
            method: HTTP method ('get', 'post', etc.)
            url: URL to request
            **kwargs: Additional arguments to pass to requests

        Returns:
            Response object

        Raises:
            SpotifyRateLimitError: If rate limit exceeded after all retries
            requests.exceptions.RequestException: For other request failures
        """
        retry_count = 0
        base_delay = 1

        while retry_count <= self.max_retries:
            self._wait_for_rate_limit()

            response = self.session.request(method.upper(), url, **kwargs)
            self._count('api_calls')

            if response.status_code != 429:
                return response

            self._count('rate_limit_hits')
            retry_after = self._handle_rate_limit_response(response)

            if retry_count >= self.max_retries:
                raise SpotifyRateLimitError(retry_after)

            if retry_after is not None:
                wait_time = retry_after
                self.logger.warning(f"Rate limit hit (attempt {retry_count + 1}/{self.max_retries + 1}). "
                                    f"Waiting {wait_time}s as specified by Spotify.")
            else:
                wait_time = base_delay * (2 ** retry_count)
                self.logger.warning(f"Rate limit hit (attempt {retry_count + 1}/{self.max_retries + 1}). "
                                    f"Using exponential backoff: {wait_time}s")

            self._count('rate_limit_waits')
            time.sleep(wait_time)
            retry_count += 1

        raise SpotifyRateLimitError()

    # ========================================================================
    # AUTHENTICATION
    # ========================================================================

    def get_spotify_auth_token(self) -> str:
        """
        Get a valid Spotify access token (reuses existing if still valid)

        Raises:
            SpotifyAuthError: If credentials are missing or the token request fails
        """
        with self._token_lock:
            if self.access_token and time.time() < self.token_expires:
                return self.access_token
            return self._request_token()

    def _request_token(self) -> str:
        """Fetch a new client credentials token (caller holds _token_lock)"""
        if not self.client_id or not self.client_secret:
            self.logger.error("Spotify credentials not found in environment variables")
            self.logger.error("Set SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET")
            raise SpotifyAuthError("Spotify credentials not configured")

        credentials = f"{self.client_id}:{self.client_secret}"
        credentials_b64 = base64.b64encode(credentials.encode()).decode()

        try:
            response = self._make_api_request(
                'post',
                TOKEN_URL,
                headers={
                    'Authorization': f'Basic {credentials_b64}',
                    'Content-Type': 'application/x-www-form-urlencoded'
                },
                data={'grant_type': 'client_credentials'},
                timeout=REQUEST_TIMEOUT
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Failed to authenticate with Spotify: {e}")
            raise SpotifyAuthError(f"Failed to authenticate with Spotify: {e}") from e

        # Refresh a minute before Spotify says the token expires
        self.access_token = data['access_token']
        self.token_expires = time.time() + data['expires_in'] - 60

        self.logger.debug("Spotify authentication successful")
        return self.access_token

    # ========================================================================
    # SEARCH
    # ========================================================================

    def search(self, query: str, types: Sequence[str] = ('track',),
               market: Optional[str] = None, limit: int = DEFAULT_SEARCH_LIMIT) -> List[dict]:
        """
        Run a Spotify search and return the raw items

        Args:
            query: Tagged query string, e.g. 'artist:Beatles track:Yesterday'
            types: Item types to search for; results are taken from the first
            market: ISO country code (falls back to the client default)
            limit: Maximum number of results

        Returns:
            List of raw item dicts, in Spotify's order

        Raises:
            SpotifyAPIError: If the request fails or returns an error status
        """
        token = self.get_spotify_auth_token()

        params = {
            'q': query,
            'type': ','.join(types),
            'limit': limit
        }
        market = market or self.market
        if market:
            params['market'] = market

        try:
            response = self._make_api_request(
                'get',
                SEARCH_URL,
                headers={'Authorization': f'Bearer {token}'},
                params=params,
                timeout=REQUEST_TIMEOUT
            )
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Spotify search failed for '{query}': {e}")
            raise SpotifyAPIError(f"Spotify search failed: {e}") from e

        if response.status_code == 401:
            # Token revoked early; force a refresh next time
            self.access_token = None
            raise SpotifyAuthError("Spotify rejected the access token")

        if response.status_code >= 400:
            self.logger.error(f"Spotify search returned {response.status_code} for '{query}'")
            raise SpotifyAPIError(f"Spotify search returned HTTP {response.status_code}")

        try:
            data = response.json()
            container = data.get(f"{types[0]}s") or {}
            items = [item for item in container.get('items', []) if item]
        except (ValueError, AttributeError) as e:
            self.logger.error(f"Unreadable Spotify search response for '{query}': {e}")
            raise SpotifyAPIError(f"Unreadable Spotify search response: {e}") from e

        self.logger.debug(f"Spotify search '{query}' returned {len(items)} items")
        return items

    def search_tracks(self, params: SearchParams, market: Optional[str] = None,
                      limit: int = DEFAULT_SEARCH_LIMIT) -> List[CandidateRecord]:
        """
        Search Spotify tracks using artist, album, and/or track name

        Raises:
            ValueError: If params has no non-blank field
            SpotifyAPIError: If the search fails
        """
        query = params.to_query()
        items = self.search(query, types=('track',), market=market, limit=limit)
        try:
            return [CandidateRecord.from_spotify_track(item) for item in items]
        except (KeyError, TypeError, AttributeError) as e:
            self.logger.error(f"Malformed track in Spotify results for '{query}': {e!r}")
            raise SpotifyAPIError(f"Malformed track in Spotify results: {e!r}") from e
