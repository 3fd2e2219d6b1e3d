#!/usr/bin/env python3
"""
Database Utilities - Unified for Scripts and Backend
Supports both pooled (Flask backend) and non-pooled (scripts) modes

Configuration:
    Set DB_USE_POOLING=true environment variable to enable pooling (for Flask)
    Leave unset or false for simple connections (for scripts)

    Connection settings come from DATABASE_URL, or from DB_HOST, DB_NAME,
    DB_USER, DB_PASSWORD and DB_PORT.
"""

import os
import logging
import time
import threading
from contextlib import contextmanager
from typing import Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

logger = logging.getLogger(__name__)


# ============================================================================
# CONFIGURATION
# ============================================================================

def use_pooling() -> bool:
    """Read at call time so app.py can switch modes before the first query"""
    return os.environ.get('DB_USE_POOLING', 'false').lower() == 'true'


def get_connection_string() -> str:
    """Build the libpq connection string from the environment"""
    url = os.environ.get('DATABASE_URL')
    if url:
        return url

    host = os.environ.get('DB_HOST', 'localhost')
    dbname = os.environ.get('DB_NAME', 'library_matcher')
    user = os.environ.get('DB_USER', 'postgres')
    password = os.environ.get('DB_PASSWORD', '')
    port = os.environ.get('DB_PORT', '5432')
    sslmode = os.environ.get('DB_SSLMODE', 'prefer')

    return (
        f"postgresql://{user}:{password}@{host}:{port}/{dbname}"
        f"?sslmode={sslmode}"
    )


SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS songs (
        id SERIAL PRIMARY KEY,
        title TEXT,
        album TEXT,
        artist TEXT,
        album_artist TEXT,
        filename TEXT,
        spotify_id TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_songs_album_artist
        ON songs (artist, album, album_artist);

    CREATE TABLE IF NOT EXISTS spotify_search_cache (
        cache_key TEXT PRIMARY KEY,
        results TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_spotify_search_cache_created_at
        ON spotify_search_cache (created_at);
"""


# ============================================================================
# POOLING MODE (Backend) - Only active if DB_USE_POOLING=true
# ============================================================================

pool: Optional[ConnectionPool] = None
pool_init_lock = threading.Lock()


def init_connection_pool(max_retries=3, retry_delay=2):
    """
    Initialize the connection pool (only used in pooling mode)

    Returns:
        bool: True if successful, False otherwise
    """
    if not use_pooling():
        logger.debug("Pooling not enabled, skipping pool initialization")
        return True

    global pool

    with pool_init_lock:
        if pool is not None:
            logger.debug("Connection pool already initialized")
            return True

        for attempt in range(max_retries):
            try:
                logger.info(f"Initializing connection pool (attempt {attempt + 1}/{max_retries})...")

                pool = ConnectionPool(
                    get_connection_string(),
                    min_size=1,
                    max_size=int(os.environ.get('DB_POOL_MAX_SIZE', '5')),
                    open=True,
                    timeout=30,
                    max_waiting=20,
                    max_lifetime=1800,
                    max_idle=600,
                    kwargs={
                        'row_factory': dict_row,
                        'connect_timeout': 10,
                        'autocommit': False,
                        'prepare_threshold': None
                    }
                )

                with pool.connection() as conn:
                    with conn.cursor() as cur:
                        cur.execute("SELECT 1 as test")
                        cur.fetchone()

                logger.info("Connection pool initialized successfully")
                return True

            except Exception as e:
                logger.error(f"Connection pool initialization failed (attempt {attempt + 1}/{max_retries}): {e}")

                if pool is not None:
                    try:
                        pool.close()
                    except Exception as close_error:
                        logger.error(f"Error closing failed pool: {close_error}")
                    pool = None

                if attempt < max_retries - 1:
                    wait_time = retry_delay * (1.5 ** attempt)
                    logger.info(f"Retrying in {wait_time:.1f} seconds...")
                    time.sleep(wait_time)

        logger.error("Failed to initialize connection pool after all retries")
        return False


def close_connection_pool():
    """Close the connection pool (only used in pooling mode)"""
    global pool

    with pool_init_lock:
        if pool:
            logger.info("Closing connection pool...")
            try:
                pool.close()
                logger.info("Connection pool closed")
            except Exception as e:
                logger.error(f"Error closing connection pool: {e}")
            pool = None


def get_pool_stats():
    """Get current connection pool statistics (only used in pooling mode)"""
    if pool is None:
        return None

    stats = pool.get_stats()
    return {
        'pool_size': stats.get('pool_size', 0),
        'pool_available': stats.get('pool_available', 0),
        'requests_waiting': stats.get('requests_waiting', 0)
    }


# ============================================================================
# SIMPLE MODE (Scripts)
# ============================================================================

def _create_connection():
    """
    Create a simple database connection (only used in simple mode)

    Returns:
        psycopg connection
    """
    try:
        conn = psycopg.connect(
            get_connection_string(),
            row_factory=dict_row,
            autocommit=False,
            prepare_threshold=None
        )
        logger.debug("Simple database connection created")
        return conn
    except psycopg.OperationalError as e:
        logger.error(f"Failed to connect to database: {e}")
        raise


# ============================================================================
# UNIFIED CONNECTION MANAGER
# ============================================================================

@contextmanager
def get_db_connection():
    """
    Get a database connection using the appropriate mode

    Commits when the block exits normally and rolls back on error.

    Returns:
        Database connection (context manager)
    """
    if use_pooling():
        if pool is None:
            logger.info("Connection pool not initialized, initializing now...")
            if not init_connection_pool():
                raise RuntimeError("Failed to initialize connection pool")

        try:
            with pool.connection() as conn:
                yield conn
        except psycopg.OperationalError as e:
            logger.error(f"Database operational error: {e}")
            raise

    else:
        conn = _create_connection()
        try:
            yield conn
            conn.commit()
            logger.debug("Transaction committed successfully")
        except Exception:
            try:
                conn.rollback()
                logger.debug("Transaction rolled back due to error")
            except Exception as rollback_error:
                logger.error(f"Error rolling back transaction: {rollback_error}")
            raise
        finally:
            try:
                conn.close()
            except Exception as close_error:
                logger.error(f"Error closing connection: {close_error}")


# ============================================================================
# HELPER FUNCTIONS (Used by both modes)
# ============================================================================

def execute_query(query, params=None, fetch_one=False, fetch_all=True):
    """
    Execute a query with proper error handling

    Args:
        query: SQL query string
        params: Query parameters tuple
        fetch_one: If True, return only first result
        fetch_all: If True, return all results (ignored if fetch_one is True)

    Returns:
        Query results or None
    """
    start_time = time.time()

    try:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)

                if fetch_one:
                    result = cur.fetchone()
                elif fetch_all:
                    result = cur.fetchall()
                else:
                    result = None

                logger.debug(f"Query executed in {time.time() - start_time:.3f}s")
                return result

    except psycopg.Error as e:
        logger.error(f"Query error after {time.time() - start_time:.3f}s: {e}")
        raise


def init_schema():
    """Create the songs and spotify_search_cache tables if missing"""
    with get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
    logger.info("Database schema ready")
