"""Reports routes — Pareto cut and descriptive Superstore reports.

2 endpoints:
- POST /pareto — rank entities within groups and keep the cumulative-share prefix
- GET  /reports/{report_name} — one of the descriptive group-by reports
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from superstore_brain.analysis.tools.sql_executor import DateRange, FilterSpec, QueryIntent, execute
from superstore_brain.db.connection import get_session
from superstore_brain.db.staging import stage_ranked_entities
from superstore_brain.discovery.pareto_analysis import (
    ParetoAnalyzer,
    ParetoError,
    ParetoResult,
    RankedEntity,
    find_concentration_risk,
    quantize_rate,
    records_from_rows,
    summarize_groups,
)
from superstore_brain.discovery.superstore_reports import REPORTS, SCOPED_REPORTS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reports"])


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class ParetoRequest(BaseModel):
    table: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    segment: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None
    entity_column: str = "customer_name"
    group_column: str = "city"
    amount_column: str = "sales"
    threshold: Optional[float] = None  # defaults to settings.pareto_threshold
    empty_group_policy: Optional[str] = None  # "exclude" | "raise"
    stage: bool = False  # also write the ranking to the staging table


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _scoped_intent(
    table: str | None,
    select_columns: list[str] | None = None,
    country: str | None = None,
    city: str | None = None,
    segment: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> QueryIntent:
    """SELECT over the Superstore table narrowed by the usual predicates."""
    filters = [
        FilterSpec(column=col, operator="=", value=val)
        for col, val in (("country", country), ("city", city), ("segment", segment))
        if val is not None
    ]
    date_range = DateRange("order_date", start, end) if start or end else None
    return QueryIntent(
        table=table or settings.superstore_table,
        select_columns=select_columns or [],
        filters=filters,
        date_range=date_range,
    )


def _serialize_entity(e: RankedEntity) -> dict[str, Any]:
    return {
        "group_id": e.group_id,
        "entity_id": e.entity_id,
        "rank": e.rank,
        "total_amount": float(quantize_rate(e.total_amount)),
        "group_total": float(quantize_rate(e.group_total)),
        "share": float(quantize_rate(e.share)),
        "cumulative_share": float(quantize_rate(e.cumulative_share)),
    }


def _serialize_result(result: ParetoResult) -> dict[str, Any]:
    return {
        "threshold": float(result.threshold),
        "entities": [_serialize_entity(e) for e in result.entities],
        "ranked_count": len(result.ranked),
        "groups": summarize_groups(result),
        "excluded_groups": [
            {
                "group_id": w.group_id,
                "total_amount": float(w.total_amount),
                "reason": w.reason,
            }
            for w in result.excluded_groups
        ],
        "concentration_risks": find_concentration_risk(result),
        "skipped_rows": result.skipped_rows,
        "summary": result.summary,
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/pareto")
async def pareto(
    body: ParetoRequest,
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Run the Pareto cut over the filtered Superstore rows."""
    threshold = body.threshold if body.threshold is not None else settings.pareto_threshold
    policy = body.empty_group_policy or settings.empty_group_policy
    try:
        analyzer = ParetoAnalyzer(threshold=threshold, empty_group_policy=policy)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    intent = _scoped_intent(
        body.table,
        select_columns=[body.entity_column, body.group_column, body.amount_column],
        country=body.country,
        city=body.city,
        segment=body.segment,
        start=body.start,
        end=body.end,
    )
    query_result = await execute(session, intent)
    records, skipped = records_from_rows(
        query_result.rows, body.entity_column, body.group_column, body.amount_column,
    )

    try:
        result = analyzer.analyze(records, skipped_rows=skipped)
    except ParetoError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    if body.stage:
        await stage_ranked_entities(session, result, settings.staging_table)

    return _serialize_result(result)


@router.get("/reports/{report_name}")
async def run_report(
    report_name: str,
    country: Optional[str] = None,
    city: Optional[str] = None,
    top_n: int = Query(10, ge=1),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Run one descriptive report over the Superstore table."""
    if report_name in SCOPED_REPORTS:
        scope, func = SCOPED_REPORTS[report_name]
        scope_value = country if scope == "country" else city
        if scope_value is None:
            raise HTTPException(status_code=422, detail=f"Report '{report_name}' needs a {scope}")
        query_result = await execute(session, _scoped_intent(None, **{scope: scope_value}))
        rows = func(query_result.rows, scope_value)
    elif report_name in REPORTS:
        query_result = await execute(session, _scoped_intent(None, country=country, city=city))
        func = REPORTS[report_name]
        if report_name == "top_product_per_top_countries":
            rows = func(query_result.rows, top_n=top_n)
        else:
            rows = func(query_result.rows)
    else:
        raise HTTPException(status_code=404, detail=f"Unknown report '{report_name}'")

    logger.info("Report %s returned from %d source rows", report_name, query_result.row_count)
    return {"report": report_name, "rows": rows}
