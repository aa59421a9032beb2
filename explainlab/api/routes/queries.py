"""
On-demand query endpoints.

Each route opens its own connection, runs one fixed statement (or one pool
template), and returns the rows as JSON. Failures are raised as
ExplainLabError subclasses and rendered by api.error_handling.
"""

from __future__ import annotations

import logging
import random

from fastapi import APIRouter, Depends, Query, Request

from explainlab.api.error_handling import query_error
from explainlab.connectors import postgres
from explainlab.core.statements import instantiate, result_row_count, run_bound
from explainlab.core.traffic_generator import BatchResult, TrafficGenerator, run_batch
from explainlab.exceptions import DatabaseUnavailableError, NotFoundError
from explainlab.models.query import QueryPool
from explainlab.models.responses import (
    BatchResponse,
    LockedOrder,
    Order,
    QueryRunResponse,
    SlowQueryResponse,
    StatementOutcomeResponse,
    TemplateInfo,
    TemplateListResponse,
    User,
)

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_SLOW_SECONDS = 10.0
MAX_TRAFFIC_COUNT = 100

USERS_SQL = "SELECT id, name, email FROM users ORDER BY id"
USER_SQL = "SELECT id, name, email FROM users WHERE id = $1"
USER_ORDERS_SQL = (
    "SELECT id, user_id, product, amount FROM orders WHERE user_id = $1 ORDER BY id"
)
LOCK_ORDER_SQL = (
    "SELECT id, user_id, product, amount FROM orders WHERE id = $1 FOR UPDATE"
)
SLOW_SQL = "SELECT pg_sleep($1)::text AS result"


def get_query_pool(request: Request) -> QueryPool:
    return request.app.state.query_pool


def get_traffic_generator(request: Request) -> TrafficGenerator:
    return request.app.state.traffic_generator


def _batch_response(result: BatchResult) -> BatchResponse:
    return BatchResponse(
        batch=result.batch,
        requested=result.requested,
        succeeded=result.succeeded,
        failed=result.failed,
        connection_error=result.connection_error,
        outcomes=[
            StatementOutcomeResponse(
                template=o.template,
                ok=o.ok,
                row_count=o.row_count,
                error=o.error,
                sqlstate=o.sqlstate,
            )
            for o in result.outcomes
        ],
    )


@router.get("/users", response_model=list[User])
async def list_users() -> list[User]:
    """All users as {id, name, email}."""
    try:
        rows = await postgres.fetch_all(USERS_SQL)
        return [User(**row) for row in rows]
    except Exception as e:
        raise query_error("users", e)


@router.get("/users/{user_id}", response_model=User)
async def get_user(user_id: int) -> User:
    try:
        row = await postgres.fetch_one(USER_SQL, user_id)
    except Exception as e:
        raise query_error("user", e)
    if row is None:
        raise NotFoundError(f"User {user_id} not found", endpoint="user")
    return User(**row)


@router.get("/users/{user_id}/orders", response_model=list[Order])
async def list_user_orders(user_id: int) -> list[Order]:
    try:
        rows = await postgres.fetch_all(USER_ORDERS_SQL, user_id)
        return [Order(**row) for row in rows]
    except Exception as e:
        raise query_error("user_orders", e)


@router.get("/orders/{order_id}/lock", response_model=LockedOrder)
async def lock_order(order_id: int) -> LockedOrder:
    """
    Read an order and hold its row lock for the rest of the transaction.

    The read and the lock are one statement inside an explicit transaction.
    """
    try:
        async with postgres.connect() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(LOCK_ORDER_SQL, order_id)
    except Exception as e:
        raise query_error("lock_order", e)
    if row is None:
        raise NotFoundError(f"Order {order_id} not found", endpoint="lock_order")
    return LockedOrder(**postgres.record_to_dict(row))


@router.get("/slow", response_model=SlowQueryResponse)
async def slow_query(
    seconds: float = Query(1.0, ge=0.0, le=MAX_SLOW_SECONDS, description="pg_sleep duration"),
) -> SlowQueryResponse:
    try:
        rows = await postgres.fetch_all(SLOW_SQL, seconds)
    except Exception as e:
        raise query_error("slow", e)
    result = rows[0]["result"] if rows else None
    return SlowQueryResponse(slept_seconds=seconds, result=result)


@router.get("/queries", response_model=TemplateListResponse)
async def list_templates(pool: QueryPool = Depends(get_query_pool)) -> TemplateListResponse:
    templates = [
        TemplateInfo(
            name=t.name,
            protocol=t.protocol.value,
            expect_error=t.expect_error,
            description=t.description,
            param_count=len(t.params),
        )
        for t in pool.templates
    ]
    return TemplateListResponse(templates=templates, total=len(templates))


async def _run_named(name: str, pool: QueryPool) -> QueryRunResponse:
    template = pool.get(name)
    bound = instantiate(template, random.Random())
    try:
        async with postgres.connect() as conn:
            rows = await run_bound(conn, bound)
    except Exception as e:
        raise query_error(name, e)
    return QueryRunResponse(
        template=template.name,
        sql=bound.sql,
        protocol=template.protocol.value,
        row_count=result_row_count(template, rows),
        rows=rows,
    )


@router.get("/queries/{name}", response_model=QueryRunResponse)
async def run_template(name: str, pool: QueryPool = Depends(get_query_pool)) -> QueryRunResponse:
    """Run one pool template with fresh random parameters."""
    return await _run_named(name, pool)


@router.get("/restricted", response_model=QueryRunResponse)
async def restricted(pool: QueryPool = Depends(get_query_pool)) -> QueryRunResponse:
    """Run the pool's `restricted` template; normally a permission error."""
    return await _run_named("restricted", pool)


@router.get("/generate-traffic", response_model=BatchResponse)
async def generate_traffic(
    count: int | None = Query(None, ge=1, le=MAX_TRAFFIC_COUNT, description="Statements to run"),
    generator: TrafficGenerator = Depends(get_traffic_generator),
) -> BatchResponse:
    """
    Run one batch immediately, independent of the background loop.

    Statement failures are reported per outcome; only a failed connect makes
    the whole request fail.
    """
    n = count or generator.queries_per_batch
    result = await run_batch(
        generator.pool,
        n,
        random.Random(),
        lambda: postgres.connect(),
    )
    if result.connection_error is not None:
        raise DatabaseUnavailableError(
            result.connection_error, endpoint="generate_traffic"
        )
    return _batch_response(result)
