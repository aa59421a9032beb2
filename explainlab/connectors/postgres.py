"""
Short-lived Postgres connections.

Every batch and every request gets its own connection, opened on entry and
closed on every exit path. Nothing is pooled: the workload this service
generates must show up to Postgres as independent sessions.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import asyncpg
from asyncpg import Connection

from explainlab.config import Settings, settings as default_settings
from explainlab.exceptions import DatabaseUnavailableError

logger = logging.getLogger(__name__)


def get_connection_params(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Get asyncpg connection parameters from settings.

    Returns:
        Dict with host, port, database, user, password and timeouts
    """
    cfg = settings or default_settings
    return {
        "host": cfg.POSTGRES_HOST,
        "port": cfg.POSTGRES_PORT,
        "database": cfg.POSTGRES_DATABASE,
        "user": cfg.POSTGRES_USER,
        "password": cfg.POSTGRES_PASSWORD,
        "timeout": cfg.POSTGRES_CONNECT_TIMEOUT,
        "command_timeout": cfg.POSTGRES_COMMAND_TIMEOUT,
    }


@asynccontextmanager
async def connect(settings: Optional[Settings] = None) -> AsyncIterator[Connection]:
    """
    Open a dedicated connection (async context manager).

    Usage:
        async with connect() as conn:
            rows = await conn.fetch("SELECT 1")

    Raises:
        DatabaseUnavailableError: if the connection cannot be established
    """
    params = get_connection_params(settings)
    try:
        conn = await asyncpg.connect(**params)
    except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        raise DatabaseUnavailableError(
            f"Could not connect to {params['user']}@{params['host']}:"
            f"{params['port']}/{params['database']}: {type(e).__name__}: {e or '(no message)'}"
        ) from e

    try:
        yield conn
    finally:
        try:
            await conn.close()
        except Exception as e:
            logger.debug("Error closing connection (ignored): %s", e)


def record_to_dict(record: asyncpg.Record) -> Dict[str, Any]:
    """Convert an asyncpg.Record into a plain dict."""
    return dict(record.items())


async def fetch_all(
    query: str,
    *args,
    settings: Optional[Settings] = None,
) -> List[Dict[str, Any]]:
    """
    Execute one query on its own connection and fetch all rows.

    Args:
        query: SQL query with `$N` placeholders
        *args: Query parameters

    Returns:
        List of rows as dicts
    """
    async with connect(settings) as conn:
        rows = await conn.fetch(query, *args)
        return [record_to_dict(row) for row in rows]


async def fetch_one(
    query: str,
    *args,
    settings: Optional[Settings] = None,
) -> Optional[Dict[str, Any]]:
    """Execute one query on its own connection and return the first row."""
    async with connect(settings) as conn:
        row = await conn.fetchrow(query, *args)
        return record_to_dict(row) if row is not None else None
