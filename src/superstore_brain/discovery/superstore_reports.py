"""Superstore reports: grouped sales, profit and shipping totals over order rows.

Pure functions over normalised Global Superstore rows (see
``ingestion.superstore_loader``). Each report returns a list of dicts in
display order; rows with missing keys or non-numeric measures are skipped.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Callable


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _safe_float(val) -> float | None:
    """Convert a value to float safely, returning None on failure."""
    if val is None:
        return None
    try:
        result = float(val)
    except (TypeError, ValueError):
        return None
    return None if result != result else result  # NaN


def _month(row: dict) -> int | None:
    """Month of the order, from ``month_`` or the order date."""
    month = row.get("month_")
    if month is not None:
        try:
            return int(month)
        except (TypeError, ValueError):
            return None
    order_date = row.get("order_date")
    if isinstance(order_date, (date, datetime)):
        return order_date.month
    return None


def _sum_by(
    rows: list[dict],
    keys: tuple[str, ...],
    measure: str,
    where: Callable[[dict], bool] | None = None,
) -> dict[tuple, float]:
    """Sum *measure* grouped by *keys*, skipping rows with missing values."""
    totals: dict[tuple, float] = {}
    for row in rows:
        if where is not None and not where(row):
            continue
        value = _safe_float(row.get(measure))
        key = tuple(row.get(k) for k in keys)
        if value is None or any(k is None for k in key):
            continue
        totals[key] = totals.get(key, 0.0) + value
    return totals


# ---------------------------------------------------------------------------
# Company-wide
# ---------------------------------------------------------------------------


def overall_totals(rows: list[dict]) -> dict:
    """Total sales and profit across every row."""
    sales = sum(v for v in (_safe_float(r.get("sales")) for r in rows) if v is not None)
    profit = sum(v for v in (_safe_float(r.get("profit")) for r in rows) if v is not None)
    return {"total_sales": round(sales, 2), "total_profit": round(profit, 2)}


def profit_per_sale_by_country(rows: list[dict]) -> list[dict]:
    """Sales, profit and profit per unit of sales for each country, most efficient first."""
    sales = _sum_by(rows, ("country",), "sales")
    profit = _sum_by(rows, ("country",), "profit")

    results = []
    for (country,), total_sales in sales.items():
        total_profit = profit.get((country,), 0.0)
        ratio = total_profit / total_sales if total_sales else 0.0
        results.append({
            "country": country,
            "total_sales": round(total_sales, 2),
            "total_profit": round(total_profit, 2),
            "profit_per_sales": round(ratio, 4),
        })
    results.sort(key=lambda r: r["profit_per_sales"], reverse=True)
    return results


def profit_by_year(rows: list[dict]) -> list[dict]:
    """Profit per year, latest year first."""
    totals = _sum_by(rows, ("year_",), "profit")
    return [
        {"year": year, "sum_profit": round(total, 2)}
        for (year,), total in sorted(totals.items(), key=lambda x: x[0][0], reverse=True)
    ]


def top_profit_products_by_year(rows: list[dict]) -> list[dict]:
    """Profit per (year, category, product); years ascending, most profitable first."""
    totals = _sum_by(rows, ("year_", "category", "product_name"), "profit")
    ordered = sorted(totals.items(), key=lambda x: (x[0][0], -x[1]))
    return [
        {"year": y, "category": c, "product_name": p, "sum_profit": round(total, 2)}
        for (y, c, p), total in ordered
    ]


def category_sales_by_year(rows: list[dict]) -> list[dict]:
    """Sales per (year, category), smallest first within each year."""
    totals = _sum_by(rows, ("year_", "category"), "sales")
    ordered = sorted(totals.items(), key=lambda x: (x[0][0], x[1]))
    return [
        {"year": y, "category": c, "sum_sales": round(total, 2)}
        for (y, c), total in ordered
    ]


def top_product_per_top_countries(rows: list[dict], top_n: int = 10) -> list[dict]:
    """Most profitable product in each of the *top_n* countries by sales.

    Ties on profit within a country go to the product name that sorts first.
    """
    if top_n < 1:
        raise ValueError(f"top_n must be at least 1, got {top_n}")
    country_sales = _sum_by(rows, ("country",), "sales")
    top = sorted(country_sales.items(), key=lambda x: (-x[1], x[0][0]))[:top_n]
    top_countries = {c for (c,), _ in top}

    product_profit = _sum_by(
        rows, ("country", "product_name"), "profit",
        where=lambda r: r.get("country") in top_countries,
    )
    best: dict[str, tuple[str, float]] = {}
    for (country, product), total in sorted(product_profit.items()):
        current = best.get(country)
        if current is None or total > current[1]:
            best[country] = (product, total)

    results = [
        {"country": c, "product_name": p, "total_profit": round(total, 2)}
        for c, (p, total) in best.items()
    ]
    results.sort(key=lambda r: r["total_profit"], reverse=True)
    return results


# ---------------------------------------------------------------------------
# Drill-down
# ---------------------------------------------------------------------------


def city_sales(rows: list[dict], country: str) -> list[dict]:
    """Sales per city inside *country*, largest first."""
    totals = _sum_by(rows, ("city",), "sales", where=lambda r: r.get("country") == country)
    return [
        {"country": country, "city": city, "sales": round(total, 2)}
        for (city,), total in sorted(totals.items(), key=lambda x: x[1], reverse=True)
    ]


def segment_sales(rows: list[dict], city: str) -> list[dict]:
    """Sales per customer segment inside *city*, ordered by segment then sales.

    ``share`` is the segment's percentage of the city's total sales.
    """
    totals = _sum_by(rows, ("country", "segment"), "sales", where=lambda r: r.get("city") == city)
    city_total = sum(totals.values())
    ordered = sorted(totals.items(), key=lambda x: (x[0][1], -x[1]))
    return [
        {
            "country": country,
            "city": city,
            "segment": segment,
            "sales": round(total, 2),
            "share": round(total / city_total * 100, 2) if city_total else 0.0,
        }
        for (country, segment), total in ordered
    ]


# ---------------------------------------------------------------------------
# Seasonality
# ---------------------------------------------------------------------------


def monthly_sales(rows: list[dict], country: str | None = None) -> list[dict]:
    """Sales per (year, month), chronological."""
    totals: dict[tuple, float] = {}
    for row in rows:
        if country is not None and row.get("country") != country:
            continue
        year, month = row.get("year_"), _month(row)
        value = _safe_float(row.get("sales"))
        if year is None or month is None or value is None:
            continue
        totals[(year, month)] = totals.get((year, month), 0.0) + value

    return [
        {"year": y, "month": m, "total_sales": round(total, 2)}
        for (y, m), total in sorted(totals.items())
    ]


def peak_month_products(
    rows: list[dict],
    country: str | None = None,
    min_month: int = 9,
    min_sales: float = 3000.0,
) -> list[dict]:
    """Products whose sales in a peak month reach *min_sales*, largest first.

    Peak months are *min_month* through December.
    """
    totals: dict[tuple, float] = {}
    for row in rows:
        if country is not None and row.get("country") != country:
            continue
        month = _month(row)
        if month is None or month < min_month:
            continue
        year, product = row.get("year_"), row.get("product_name")
        value = _safe_float(row.get("sales"))
        if year is None or product is None or value is None:
            continue
        key = (year, month, product)
        totals[key] = totals.get(key, 0.0) + value

    results = [
        {"year": y, "month": m, "product_name": p, "total_sales": round(total, 2)}
        for (y, m, p), total in totals.items()
        if total >= min_sales
    ]
    results.sort(key=lambda r: r["total_sales"], reverse=True)
    return results


def subcategory_sales_by_year(rows: list[dict]) -> list[dict]:
    """Sales per (year, sub-category); years ascending, best sellers first."""
    totals = _sum_by(rows, ("year_", "sub_category"), "sales")
    ordered = sorted(totals.items(), key=lambda x: (x[0][0], -x[1]))
    return [
        {"year": y, "sub_category": s, "total_sales": round(total, 2)}
        for (y, s), total in ordered
    ]


# ---------------------------------------------------------------------------
# Logistics
# ---------------------------------------------------------------------------


def shipping_cost_by_mode(rows: list[dict]) -> list[dict]:
    """Shipping cost per (year, ship mode); years ascending, costliest mode first."""
    totals = _sum_by(rows, ("year_", "ship_mode"), "shipping_cost")
    ordered = sorted(totals.items(), key=lambda x: (x[0][0], -x[1]))
    return [
        {"year": y, "ship_mode": mode, "total_shipping_cost": round(total, 2)}
        for (y, mode), total in ordered
    ]


# Reports that need no arguments beyond the rows
REPORTS: dict[str, Callable[[list[dict]], list[dict] | dict]] = {
    "totals": overall_totals,
    "profit_per_sale_by_country": profit_per_sale_by_country,
    "profit_by_year": profit_by_year,
    "top_profit_products_by_year": top_profit_products_by_year,
    "category_sales": category_sales_by_year,
    "top_product_per_top_countries": top_product_per_top_countries,
    "monthly_sales": monthly_sales,
    "peak_month_products": peak_month_products,
    "subcategory_sales_by_year": subcategory_sales_by_year,
    "shipping_cost_by_mode": shipping_cost_by_mode,
}

# Reports scoped to a single country or city
SCOPED_REPORTS: dict[str, tuple[str, Callable[..., list[dict]]]] = {
    "city_sales": ("country", city_sales),
    "segment_sales": ("city", segment_sales),
}
