"""Scratch tables and views for a Superstore analysis session.

The Pareto ranking is staged into a table with fixed-precision rate
columns so that the threshold cut can be re-read (and joined against)
with plain SQL, the same way an analyst would query it interactively.
"""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from superstore_brain.analysis.tools.sql_executor import QueryResult, _q, execute_raw
from superstore_brain.discovery.pareto_analysis import ParetoResult, quantize_rate, validate_threshold

logger = logging.getLogger(__name__)

STAGING_COLUMNS = (
    '"group_id" VARCHAR(100)',
    '"entity_id" VARCHAR(100)',
    '"rank" INTEGER',
    '"entity_sales" NUMERIC(18,2)',
    '"total_sales" NUMERIC(18,2)',
    '"sales_rate" NUMERIC(18,2)',
    '"cumulative_rate" NUMERIC(18,2)',
)


async def create_category_sales_view(
    session: AsyncSession,
    source_table: str,
    view_name: str = "category_sales",
) -> None:
    """(Re)create the per-year, per-category sales view."""
    view = _q(view_name)
    await session.execute(text(f"DROP VIEW IF EXISTS {view}"))
    await session.execute(text(
        f'CREATE VIEW {view} AS '
        f'SELECT "year_", "category", SUM("sales") AS "sum_sales" '
        f'FROM {_q(source_table)} GROUP BY "year_", "category"'
    ))
    await session.commit()
    logger.info("Created view %s over %s", view_name, source_table)


async def stage_ranked_entities(
    session: AsyncSession,
    result: ParetoResult,
    table_name: str,
    batch_size: int = 200,
) -> int:
    """Replace *table_name* with every ranked entity of *result*.

    Amounts and rates are rounded to two places on the way in.

    Returns:
        Number of rows staged.
    """
    table = _q(table_name)
    await session.execute(text(f"DROP TABLE IF EXISTS {table}"))
    await session.execute(text(f"CREATE TABLE {table} ({', '.join(STAGING_COLUMNS)})"))

    rows = [
        {
            "group_id": r.group_id,
            "entity_id": r.entity_id,
            "rank": r.rank,
            "entity_sales": quantize_rate(r.total_amount),
            "total_sales": quantize_rate(r.group_total),
            "sales_rate": quantize_rate(r.share),
            "cumulative_rate": quantize_rate(r.cumulative_share),
        }
        for r in result.ranked
    ]
    if rows:
        stmt = text(
            f'INSERT INTO {table} ("group_id", "entity_id", "rank", "entity_sales", '
            f'"total_sales", "sales_rate", "cumulative_rate") VALUES '
            f"(:group_id, :entity_id, :rank, :entity_sales, :total_sales, "
            f":sales_rate, :cumulative_rate)"
        )
        for batch_start in range(0, len(rows), batch_size):
            await session.execute(stmt, rows[batch_start:batch_start + batch_size])

    await session.commit()
    logger.info("Staged %d ranked entities into %s", len(rows), table_name)
    return len(rows)


async def fetch_within_threshold(
    session: AsyncSession,
    threshold: float,
    table_name: str,
) -> QueryResult:
    """Read back the staged entities whose cumulative rate is within *threshold*."""
    limit = validate_threshold(threshold)
    sql = (
        f"SELECT * FROM {_q(table_name)} "
        f'WHERE "cumulative_rate" <= :threshold '
        f'ORDER BY "group_id", "cumulative_rate"'
    )
    return await execute_raw(session, sql, {"threshold": limit})
