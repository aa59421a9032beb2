"""
Single-statement execution for pool templates.

instantiate() is a pure function of (template, rng). execute_statement()
never raises for database-side failures: it folds them into a
StatementOutcome whose `message` is the line the caller logs. Several pool
templates fail by construction, so a failure here is an expected result.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any

import asyncpg

from explainlab.models.query import Protocol, QueryTemplate, split_placeholders

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundStatement:
    """A template instantiated with concrete parameter values."""

    template: QueryTemplate
    sql: str
    args: tuple[int, ...]
    values: tuple[int, ...]


@dataclass
class StatementOutcome:
    template: str
    ok: bool
    message: str
    row_count: int = 0
    rows: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None
    sqlstate: str | None = None
    expected: bool = False


def instantiate(template: QueryTemplate, rng: random.Random) -> BoundStatement:
    """
    Draw fresh parameter values and render the template for its protocol.

    Extended protocol: `?` becomes `$1, $2, ...` and values are bound.
    Simple protocol: values are inlined as integer literals, no bind args.
    """
    values = tuple(rng.randint(p.low, p.high) for p in template.params)
    segments = split_placeholders(template.sql)

    parts = [segments[0]]
    for idx, segment in enumerate(segments[1:]):
        if template.protocol is Protocol.SIMPLE:
            parts.append(str(int(values[idx])))
        else:
            parts.append(f"${idx + 1}")
        parts.append(segment)

    sql = "".join(parts)
    args = values if template.protocol is Protocol.EXTENDED else ()
    return BoundStatement(template=template, sql=sql, args=args, values=values)


def _parse_status_rowcount(status: str | None) -> int:
    # e.g. "SELECT 3", "UPDATE 5"
    if not status:
        return 0
    parts = str(status).split()
    try:
        return int(parts[-1])
    except (ValueError, IndexError):
        return 0


def result_row_count(template: QueryTemplate, rows: list[dict[str, Any]]) -> int:
    """Rows produced by a statement, read from the status for simple protocol."""
    if template.protocol is Protocol.SIMPLE:
        return _parse_status_rowcount(rows[0]["status"]) if rows else 0
    return len(rows)


async def run_bound(conn: Any, bound: BoundStatement) -> list[dict[str, Any]]:
    """
    Execute a bound statement on `conn` and fetch all rows.

    Simple-protocol statements go through Connection.execute() without
    arguments, which asyncpg submits as a single Query message. asyncpg does
    not hand back the rows of that path, only the command status, so the
    result is a single `{"status": "SELECT n"}` entry; use result_row_count() for
    the number of rows the server produced.
    """
    if bound.template.protocol is Protocol.SIMPLE:
        status = await conn.execute(bound.sql)
        return [{"status": status}] if status else []

    rows = await conn.fetch(bound.sql, *bound.args)
    return [dict(row.items()) for row in rows]


async def execute_statement(
    conn: Any,
    template: QueryTemplate,
    rng: random.Random,
) -> StatementOutcome:
    """
    Instantiate and run one template, capturing any failure in the outcome.

    Only Exception subclasses are captured; cancellation propagates.
    """
    bound = instantiate(template, rng)
    try:
        rows = await run_bound(conn, bound)
    except asyncpg.PostgresError as e:
        sqlstate = getattr(e, "sqlstate", None)
        return StatementOutcome(
            template=template.name,
            ok=False,
            message=(
                f"{template.name} failed [{sqlstate}] "
                f"{type(e).__name__}: {e} (params={list(bound.values)})"
            ),
            error=str(e),
            sqlstate=sqlstate,
            expected=template.expect_error,
        )
    except Exception as e:
        return StatementOutcome(
            template=template.name,
            ok=False,
            message=(
                f"{template.name} failed {type(e).__name__}: {e or '(no message)'} "
                f"(params={list(bound.values)})"
            ),
            error=str(e) or type(e).__name__,
            expected=template.expect_error,
        )

    row_count = result_row_count(template, rows)

    return StatementOutcome(
        template=template.name,
        ok=True,
        message=f"{template.name} ok rows={row_count}",
        row_count=row_count,
        rows=rows,
    )


def log_outcome(outcome: StatementOutcome) -> None:
    """Log a statement outcome at the level its result warrants."""
    if outcome.ok:
        logger.debug(outcome.message)
    elif outcome.expected:
        logger.info("Expected failure: %s", outcome.message)
    else:
        logger.warning(outcome.message)
