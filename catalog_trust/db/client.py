"""Record store client.

Thread-local connection reuse for the catalog database (MySQL protocol).
Each thread gets a persistent connection that reconnects on failure.
"""

import logging
import os
import threading
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Generator

import pymysql
from pymysql.cursors import DictCursor

from ..errors import RecordStoreUnavailableError

logger = logging.getLogger(__name__)

_thread_local = threading.local()


@lru_cache(maxsize=1)
def _get_config() -> dict:
    """Get connection configuration.

    Environment variables:
        CATALOG_DB_HOST: Database host (default: 127.0.0.1)
        CATALOG_DB_PORT: Database port (default: 3306)
        CATALOG_DB_USER: Database user (default: root)
        CATALOG_DB_PASSWORD: Database password (default: empty)
        CATALOG_DB_DATABASE: Database name (default: catalog)
        CATALOG_DB_CONNECT_TIMEOUT: Seconds to wait for a connection (default: 10)

    Returns:
        Connection config dict
    """
    return {
        "host": os.environ.get("CATALOG_DB_HOST", "127.0.0.1"),
        "port": int(os.environ.get("CATALOG_DB_PORT", "3306")),
        "user": os.environ.get("CATALOG_DB_USER", "root"),
        "password": os.environ.get("CATALOG_DB_PASSWORD", ""),
        "database": os.environ.get("CATALOG_DB_DATABASE", "catalog"),
        "connect_timeout": int(os.environ.get("CATALOG_DB_CONNECT_TIMEOUT", "10")),
        "autocommit": True,
        "charset": "utf8mb4",
        "cursorclass": DictCursor,
    }


def get_connection() -> pymysql.Connection:
    """Get a thread-local database connection, reusing if alive."""
    conn = getattr(_thread_local, "conn", None)
    if conn is not None:
        try:
            conn.ping(reconnect=False)
            return conn
        except pymysql.Error:
            logger.debug("Stale connection, reconnecting")
            try:
                conn.close()
            except pymysql.Error as e:
                logger.debug(f"Ignoring error while closing stale connection: {e}")
    conn = pymysql.connect(**_get_config())
    _thread_local.conn = conn
    return conn


@contextmanager
def get_cursor() -> Generator[Any, None, None]:
    """Context manager for a dict cursor on the thread-local connection.

    Example:
        with get_cursor() as cursor:
            cursor.execute("SELECT * FROM movies WHERE id = %s", (movie_id,))
            row = cursor.fetchone()
    """
    conn = get_connection()
    with conn.cursor() as cursor:
        yield cursor


def execute_query(sql: str, params: tuple | None = None, fetch: str = "all") -> list[dict] | dict | None:
    """Execute a query and return results.

    Args:
        sql: SQL query with %s placeholders
        params: Query parameters
        fetch: 'all' for fetchall(), 'one' for fetchone(), 'none' for no fetch

    Returns:
        Query results as list of dicts, single dict, or None
    """
    with get_cursor() as cursor:
        cursor.execute(sql, params or ())

        if fetch == "all":
            return cursor.fetchall()
        elif fetch == "one":
            return cursor.fetchone()
        return None


def check_connection() -> None:
    """Verify the record store is reachable.

    Raises:
        RecordStoreUnavailableError: If no connection can be made
    """
    try:
        execute_query("SELECT 1", fetch="one")
    except pymysql.Error as e:
        cfg = _get_config()
        raise RecordStoreUnavailableError(
            f"Record store unreachable at {cfg['host']}:{cfg['port']}/{cfg['database']}: {e}"
        ) from e


def close_connection() -> None:
    """Close this thread's connection."""
    conn = getattr(_thread_local, "conn", None)
    if conn is not None:
        try:
            conn.close()
        except pymysql.Error as e:
            logger.debug(f"Ignoring error while closing connection: {e}")
        _thread_local.conn = None
