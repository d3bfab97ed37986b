"""Global Superstore CSV → normalised DataFrame, row filtering and SQL load."""
from __future__ import annotations

import logging
import re
from datetime import date, datetime
from pathlib import Path

import numpy as np
import pandas as pd
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("customer_name", "city", "country", "segment", "sales")
DATE_COLUMNS = ("order_date", "ship_date")

_NON_WORD_RE = re.compile(r"[^0-9a-z]+")

# pandas dtype → SQL type
_SQL_TYPE_MAP: dict[str, str] = {
    "int64": "BIGINT",
    "Int64": "BIGINT",
    "float64": "DOUBLE PRECISION",
    "bool": "BOOLEAN",
    "object": "TEXT",
}


def _sql_type(dtype: np.dtype) -> str:
    # datetime64[ns], [us], tz-aware, ... depending on the pandas version
    if pd.api.types.is_datetime64_any_dtype(dtype):
        return "TIMESTAMP"
    return _SQL_TYPE_MAP.get(str(dtype), "TEXT")


def normalise_column(name: str) -> str:
    """``"Sub-Category"`` → ``"sub_category"``, ``"Customer Name"`` → ``"customer_name"``."""
    return _NON_WORD_RE.sub("_", str(name).strip().lower()).strip("_")


def normalise_frame(
    df: pd.DataFrame,
    dayfirst: bool = False,
    date_format: str | None = None,
) -> pd.DataFrame:
    """Rename columns to snake_case, parse dates and derive ``year_``/``month_``.

    Pass *date_format* (e.g. ``"%d-%m-%Y"``) when the export's date layout is
    known. Values that still fail to parse become NaT and are logged at WARNING.

    Raises:
        ValueError: if a column the Pareto analysis needs is missing.
    """
    df = df.rename(columns=normalise_column)
    if "year" in df.columns and "year_" not in df.columns:
        df = df.rename(columns={"year": "year_"})

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Superstore data is missing required column(s): {', '.join(missing)}")

    for col in DATE_COLUMNS:
        if col in df.columns:
            present = df[col].notna()
            if date_format:
                df[col] = pd.to_datetime(df[col], errors="coerce", format=date_format)
            else:
                df[col] = pd.to_datetime(df[col], errors="coerce", dayfirst=dayfirst)
            unparsed = int((present & df[col].isna()).sum())
            if unparsed:
                logger.warning(
                    "%d %s value(s) could not be parsed as dates and were set to NaT; "
                    "check dayfirst/date_format",
                    unparsed, col,
                )

    if "order_date" in df.columns:
        if "year_" not in df.columns:
            df["year_"] = df["order_date"].dt.year.astype("Int64")
        df["month_"] = df["order_date"].dt.month.astype("Int64")

    return df


def load_superstore_csv(
    path: Path | str,
    dayfirst: bool = False,
    date_format: str | None = None,
) -> pd.DataFrame:
    """Read a Global Superstore CSV export into a normalised DataFrame."""
    df = pd.read_csv(path, encoding_errors="replace")
    logger.info("Read %d rows from %s", len(df), path)
    return normalise_frame(df, dayfirst=dayfirst, date_format=date_format)


def select_rows(
    df: pd.DataFrame,
    country: str | None = None,
    city: str | None = None,
    segment: str | None = None,
    start: date | datetime | str | None = None,
    end: date | datetime | str | None = None,
) -> list[dict]:
    """Filter by equality on country/city/segment and an inclusive order-date range.

    Returns plain dict rows with NaN/NaT replaced by None.
    """
    mask = pd.Series(True, index=df.index)
    for col, val in (("country", country), ("city", city), ("segment", segment)):
        if val is not None:
            mask &= df[col] == val

    if start is not None or end is not None:
        if "order_date" not in df.columns:
            raise ValueError("Date filtering needs an order_date column")
        if start is not None:
            mask &= df["order_date"] >= pd.Timestamp(start)
        if end is not None:
            mask &= df["order_date"] <= pd.Timestamp(end)

    selected = df[mask]
    logger.debug("Selected %d of %d rows", len(selected), len(df))
    selected = selected.astype(object).where(selected.notna(), None)
    return selected.to_dict(orient="records")


# ---------------------------------------------------------------------------
# SQL load
# ---------------------------------------------------------------------------


async def _ensure_table(session: AsyncSession, table_name: str, df: pd.DataFrame) -> None:
    """Create the target table if it doesn't already exist, keyed by a serial row id."""
    col_defs = ['"_row_id" SERIAL PRIMARY KEY']
    col_defs.extend(f'"{col}" {_sql_type(df[col].dtype)}' for col in df.columns)
    ddl = f'CREATE TABLE IF NOT EXISTS "{table_name}" ({", ".join(col_defs)})'
    await session.execute(text(ddl))
    await session.commit()


async def store_dataframe(
    df: pd.DataFrame,
    session: AsyncSession,
    table_name: str,
    batch_size: int = 200,
) -> int:
    """Insert a DataFrame into *table_name*, creating the table if needed.

    Returns:
        Number of rows inserted.
    """
    if df.empty:
        return 0

    await _ensure_table(session, table_name, df)

    columns = list(df.columns)
    col_list = ", ".join(f'"{c}"' for c in columns)
    param_list = ", ".join(f":{c}" for c in columns)
    stmt = f'INSERT INTO "{table_name}" ({col_list}) VALUES ({param_list})'

    # NaN/NaT → None for SQL
    rows = df.astype(object).where(df.notna(), None).to_dict(orient="records")

    for batch_start in range(0, len(rows), batch_size):
        batch = rows[batch_start:batch_start + batch_size]
        await session.execute(text(stmt), batch)

    await session.commit()

    logger.info("Inserted %d rows into %s", len(rows), table_name)
    return len(rows)


async def load_csv(
    path: Path,
    session: AsyncSession,
    table_name: str | None = None,
    dayfirst: bool = False,
    date_format: str | None = None,
) -> int:
    """Read a Superstore CSV and insert its rows into a SQL table.

    Args:
        path: Path to the CSV file.
        session: Async SQLAlchemy session.
        table_name: Target table name. Defaults to the normalised file stem.
        dayfirst: Parse dd/mm/yyyy order dates.
        date_format: Explicit strftime layout for the date columns.

    Returns:
        Number of rows loaded.
    """
    table_name = table_name or normalise_column(path.stem)
    df = load_superstore_csv(path, dayfirst=dayfirst, date_format=date_format)
    return await store_dataframe(df, session, table_name)
