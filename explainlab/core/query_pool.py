"""
Query pool construction.

The built-in pool targets the schema created by sql/init.sql. A JSON file
(TRAFFIC_QUERY_POOL_FILE) can replace it entirely, e.g. to point the
failure-producing templates at a different environment.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from explainlab.config import Settings
from explainlab.exceptions import QueryPoolError
from explainlab.models.query import ParamRange, Protocol, QueryPool, QueryTemplate

logger = logging.getLogger(__name__)

# Seed sizes from sql/init.sql; ids beyond them simply return no rows.
MAX_USER_ID = 100
MAX_ORDER_ID = 500

_USER_ID = ParamRange(low=1, high=MAX_USER_ID)
_ORDER_ID = ParamRange(low=1, high=MAX_ORDER_ID)

DEFAULT_TEMPLATES: tuple[QueryTemplate, ...] = (
    QueryTemplate(
        name="user_by_id",
        sql="SELECT id, name, email FROM users WHERE id = ?",
        params=(_USER_ID,),
        description="Primary key lookup",
    ),
    QueryTemplate(
        name="list_users",
        sql="SELECT id, name, email FROM users ORDER BY id LIMIT 50",
        description="Bounded scan of users",
    ),
    QueryTemplate(
        name="orders_for_user",
        sql="SELECT id, user_id, product, amount FROM orders WHERE user_id = ? ORDER BY id",
        params=(_USER_ID,),
        description="Secondary index lookup",
    ),
    QueryTemplate(
        name="orders_with_users",
        sql=(
            "SELECT o.id, o.product, o.amount, u.name, u.email "
            "FROM orders o JOIN users u ON u.id = o.user_id "
            "WHERE o.id >= ? ORDER BY o.id LIMIT 25"
        ),
        params=(_ORDER_ID,),
        description="Join over a 25-order window starting at a random id",
    ),
    QueryTemplate(
        name="order_totals",
        sql=(
            "SELECT user_id, count(*) AS orders, sum(amount) AS total "
            "FROM orders WHERE user_id <= ? GROUP BY user_id ORDER BY total DESC LIMIT 10"
        ),
        params=(_USER_ID,),
        description="Aggregate per user",
    ),
    QueryTemplate(
        name="user_by_id_simple",
        sql="SELECT id, name, email FROM users WHERE id = ?",
        params=(_USER_ID,),
        protocol=Protocol.SIMPLE,
        description="Same lookup submitted with literals over the simple protocol",
    ),
    QueryTemplate(
        name="slow_sleep",
        sql="SELECT pg_sleep(?::int / 10.0)",
        params=(ParamRange(low=1, high=10),),
        description="Sleeps 0.1-1.0s so the statement crosses sampling thresholds",
    ),
    QueryTemplate(
        name="lock_order",
        sql="SELECT id, user_id, product, amount FROM orders WHERE id = ? FOR UPDATE",
        params=(_ORDER_ID,),
        description="Row lock inside an implicit transaction",
    ),
    QueryTemplate(
        name="restricted",
        sql="SELECT id, secret FROM restricted_data WHERE id = ?",
        params=(ParamRange(low=1, high=10),),
        expect_error=True,
        description="Table the application role has no SELECT grant on",
    ),
    QueryTemplate(
        name="restricted_function",
        sql="SELECT restricted_fn()",
        expect_error=True,
        description="Function the application role cannot execute",
    ),
)


def default_pool() -> QueryPool:
    """Return the built-in query pool."""
    return QueryPool(templates=DEFAULT_TEMPLATES)


def load_pool_file(path: str | Path) -> QueryPool:
    """
    Load a query pool from a JSON file.

    The document must look like {"templates": [{"name": ..., "sql": ...}, ...]}.

    Raises:
        QueryPoolError: if the file is missing, not JSON, or fails validation
    """
    file_path = Path(path)
    try:
        raw = json.loads(file_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise QueryPoolError(f"Cannot read query pool file {file_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise QueryPoolError(f"Query pool file {file_path} is not valid JSON: {e}") from e

    try:
        return QueryPool.model_validate(raw)
    except ValidationError as e:
        raise QueryPoolError(f"Invalid query pool in {file_path}: {e}") from e


def build_pool(settings: Settings) -> QueryPool:
    """Build the pool for this process: file if configured, else built-in."""
    if settings.TRAFFIC_QUERY_POOL_FILE:
        pool = load_pool_file(settings.TRAFFIC_QUERY_POOL_FILE)
        logger.info(
            "Loaded %d query templates from %s",
            len(pool.templates),
            settings.TRAFFIC_QUERY_POOL_FILE,
        )
        return pool

    pool = default_pool()
    logger.info("Using built-in query pool (%d templates)", len(pool.templates))
    return pool
