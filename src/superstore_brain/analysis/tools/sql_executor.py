"""Safe SQL query builder and executor for the Superstore table.

Builds parameterised SELECTs from structured QueryIntent objects:
- equality / comparison / IN filters with bound values
- inclusive date ranges
- quoted, sanitised identifiers
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any

import pandas as pd
from sqlalchemy import text as sql_text
from sqlalchemy.ext.asyncio import AsyncSession

# ---------------------------------------------------------------------------
# Identifier safety
# ---------------------------------------------------------------------------

_SAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9_]")

_OPERATORS = {"=", "!=", ">", "<", ">=", "<=", "IN", "IS NULL", "IS NOT NULL"}


def _safe(name: str) -> str:
    """Sanitize a table/column name to prevent SQL injection."""
    return _SAFE_NAME_RE.sub("", name)


def _q(name: str) -> str:
    """Quote a sanitized identifier."""
    return f'"{_safe(name)}"'


# ---------------------------------------------------------------------------
# Dataclasses — structured query building blocks
# ---------------------------------------------------------------------------


@dataclass
class FilterSpec:
    """A WHERE condition."""

    column: str
    operator: str  # =, !=, >, <, >=, <=, IN, IS NULL, IS NOT NULL
    value: Any = None  # None for IS NULL / IS NOT NULL


@dataclass
class DateRange:
    """Inclusive date window on one column."""

    column: str
    start: Any = None  # date, datetime or ISO string
    end: Any = None


@dataclass
class QueryIntent:
    """Structured description of what to query."""

    table: str
    select_columns: list[str] = field(default_factory=list)
    filters: list[FilterSpec] = field(default_factory=list)
    date_range: DateRange | None = None


@dataclass
class QueryResult:
    """Result of an executed query."""

    rows: list[dict[str, Any]]
    columns: list[str]
    row_count: int
    query: str
    duration_ms: int

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=self.columns)


# ---------------------------------------------------------------------------
# SQL Builder
# ---------------------------------------------------------------------------


def _build_filter(f: FilterSpec, index: int, params: dict[str, Any]) -> str:
    """Build a single WHERE fragment, registering bound values in *params*."""
    col = _q(f.column)
    op = f.operator.upper()
    if op not in _OPERATORS:
        raise ValueError(f"Unsupported operator: {f.operator}")

    if op in ("IS NULL", "IS NOT NULL"):
        return f"{col} {op}"
    if op == "IN":
        names = []
        for j, v in enumerate(f.value):
            name = f"f{index}_{j}"
            params[name] = v
            names.append(f":{name}")
        return f"{col} IN ({', '.join(names)})"
    name = f"f{index}"
    params[name] = f.value
    return f"{col} {op} :{name}"


def build_sql(intent: QueryIntent) -> tuple[str, dict[str, Any]]:
    """Build a SQL string and its bound parameters from a QueryIntent."""
    params: dict[str, Any] = {}

    columns = ", ".join(_q(col) for col in intent.select_columns) or "*"
    sql = f"SELECT {columns} FROM {_q(intent.table)}"

    where_parts = [_build_filter(f, i, params) for i, f in enumerate(intent.filters)]
    if intent.date_range:
        dr = intent.date_range
        if dr.start is not None:
            params["date_start"] = dr.start
            where_parts.append(f"{_q(dr.column)} >= :date_start")
        if dr.end is not None:
            params["date_end"] = dr.end
            where_parts.append(f"{_q(dr.column)} <= :date_end")
    if where_parts:
        sql += f" WHERE {' AND '.join(where_parts)}"

    return sql, params


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


async def execute(session: AsyncSession, intent: QueryIntent) -> QueryResult:
    """Execute a QueryIntent and return structured results."""
    query, params = build_sql(intent)
    return await execute_raw(session, query, params)


async def execute_raw(
    session: AsyncSession, sql: str, params: dict[str, Any] | None = None
) -> QueryResult:
    """Execute a SQL string with optional bound parameters."""
    start = time.monotonic()
    result = await session.execute(sql_text(sql), params or {})
    raw_rows = result.fetchall()
    duration_ms = int((time.monotonic() - start) * 1000)
    columns = list(result.keys()) if raw_rows else []
    rows = [dict(r._mapping) for r in raw_rows]
    return QueryResult(
        rows=rows,
        columns=columns,
        row_count=len(rows),
        query=sql,
        duration_ms=duration_ms,
    )
