"""Tests for the descriptive Superstore reports."""

from datetime import datetime

import pytest

from superstore_brain.discovery.superstore_reports import (
    REPORTS,
    SCOPED_REPORTS,
    category_sales_by_year,
    city_sales,
    monthly_sales,
    overall_totals,
    peak_month_products,
    profit_by_year,
    profit_per_sale_by_country,
    segment_sales,
    shipping_cost_by_mode,
    subcategory_sales_by_year,
    top_product_per_top_countries,
    top_profit_products_by_year,
)


def _row(**kw):
    base = {
        "country": "United States",
        "city": "New York City",
        "segment": "Consumer",
        "customer_name": "Ann",
        "product_name": "Stapler",
        "category": "Office Supplies",
        "sub_category": "Fasteners",
        "ship_mode": "Standard Class",
        "year_": 2014,
        "month_": 1,
        "sales": 100.0,
        "profit": 10.0,
        "shipping_cost": 5.0,
    }
    base.update(kw)
    return base


ROWS = [
    _row(),
    _row(city="Seattle", segment="Corporate", sales=300.0, profit=60.0, month_=11,
         product_name="Chair", category="Furniture", sub_category="Chairs"),
    _row(country="France", city="Paris", sales=200.0, profit=-20.0, year_=2013,
         product_name="Desk", category="Furniture", sub_category="Tables", ship_mode="First Class"),
    _row(country="France", city="Paris", sales=50.0, profit=30.0, year_=2013, product_name="Lamp"),
    _row(segment="Home Office", sales=3500.0, profit=700.0, month_=12, product_name="Copier",
         category="Technology", sub_category="Copiers", ship_mode="Same Day", shipping_cost=80.0),
]


class TestTotals:
    def test_overall_totals(self):
        assert overall_totals(ROWS) == {"total_sales": 4150.0, "total_profit": 780.0}

    def test_skips_non_numeric(self):
        rows = [_row(sales="n/a", profit=None), _row(sales=float("nan"))]
        assert overall_totals(rows) == {"total_sales": 0.0, "total_profit": 10.0}

    def test_profit_per_sale_by_country(self):
        result = profit_per_sale_by_country(ROWS)
        assert [r["country"] for r in result] == ["United States", "France"]
        us = result[0]
        assert us["total_sales"] == 3900.0
        assert us["profit_per_sales"] == round(770 / 3900, 4)
        assert result[1]["profit_per_sales"] == round(10 / 250, 4)

    def test_profit_by_year_latest_first(self):
        assert profit_by_year(ROWS) == [
            {"year": 2014, "sum_profit": 770.0},
            {"year": 2013, "sum_profit": 10.0},
        ]

    def test_top_profit_products_by_year(self):
        result = top_profit_products_by_year(ROWS)
        assert result[0]["year"] == 2013
        assert result[0]["product_name"] == "Lamp"
        in_2014 = [r["product_name"] for r in result if r["year"] == 2014]
        assert in_2014 == ["Copier", "Chair", "Stapler"]

    def test_category_sales_by_year(self):
        result = category_sales_by_year(ROWS)
        assert result[0] == {"year": 2013, "category": "Office Supplies", "sum_sales": 50.0}
        assert [r["category"] for r in result if r["year"] == 2014] == [
            "Office Supplies", "Furniture", "Technology",
        ]


class TestTopProductPerTopCountries:
    def test_best_product_in_each_country(self):
        result = top_product_per_top_countries(ROWS)
        assert result == [
            {"country": "United States", "product_name": "Copier", "total_profit": 700.0},
            {"country": "France", "product_name": "Lamp", "total_profit": 30.0},
        ]

    def test_top_n_limits_countries(self):
        result = top_product_per_top_countries(ROWS, top_n=1)
        assert [r["country"] for r in result] == ["United States"]

    @pytest.mark.parametrize("top_n", [0, -1])
    def test_top_n_must_be_positive(self, top_n):
        with pytest.raises(ValueError, match="top_n"):
            top_product_per_top_countries(ROWS, top_n=top_n)


class TestDrillDown:
    def test_city_sales(self):
        result = city_sales(ROWS, "United States")
        assert [(r["city"], r["sales"]) for r in result] == [
            ("New York City", 3600.0),
            ("Seattle", 300.0),
        ]

    def test_city_sales_unknown_country(self):
        assert city_sales(ROWS, "Atlantis") == []

    def test_segment_sales(self):
        result = segment_sales(ROWS, "New York City")
        assert [(r["segment"], r["sales"], r["share"]) for r in result] == [
            ("Consumer", 100.0, 2.78),
            ("Home Office", 3500.0, 97.22),
        ]

    def test_segment_sales_orders_by_segment_then_sales(self):
        rows = [
            _row(country="Canada", city="London", segment="Corporate", sales=10.0),
            _row(country="United Kingdom", city="London", segment="Corporate", sales=60.0),
            _row(country="United Kingdom", city="London", segment="Consumer", sales=30.0),
        ]
        result = segment_sales(rows, "London")
        assert [(r["segment"], r["country"], r["share"]) for r in result] == [
            ("Consumer", "United Kingdom", 30.0),
            ("Corporate", "United Kingdom", 60.0),
            ("Corporate", "Canada", 10.0),
        ]
        assert sum(r["share"] for r in result) == 100.0

    def test_segment_sales_zero_city_total(self):
        result = segment_sales([_row(sales=0.0)], "New York City")
        assert result[0]["share"] == 0.0


class TestSeasonality:
    def test_monthly_sales_chronological(self):
        result = monthly_sales(ROWS, country="United States")
        assert [(r["year"], r["month"]) for r in result] == [(2014, 1), (2014, 11), (2014, 12)]

    def test_month_from_order_date(self):
        rows = [_row(month_=None, order_date=datetime(2012, 10, 3))]
        assert monthly_sales(rows)[0]["month"] == 10

    def test_peak_month_products(self):
        result = peak_month_products(ROWS, country="United States")
        assert result == [
            {"year": 2014, "month": 12, "product_name": "Copier", "total_sales": 3500.0},
        ]

    def test_peak_month_threshold(self):
        result = peak_month_products(ROWS, country="United States", min_sales=100)
        assert [r["product_name"] for r in result] == ["Copier", "Chair"]

    def test_subcategory_sales_by_year(self):
        result = subcategory_sales_by_year(ROWS)
        assert [r["sub_category"] for r in result if r["year"] == 2014] == [
            "Copiers", "Chairs", "Fasteners",
        ]


class TestShipping:
    def test_shipping_cost_by_mode(self):
        result = shipping_cost_by_mode(ROWS)
        assert result[0] == {"year": 2013, "ship_mode": "First Class", "total_shipping_cost": 5.0}
        in_2014 = [(r["ship_mode"], r["total_shipping_cost"]) for r in result if r["year"] == 2014]
        assert in_2014 == [("Same Day", 80.0), ("Standard Class", 10.0)]


def test_registries_are_callable():
    for func in REPORTS.values():
        assert callable(func)
    assert SCOPED_REPORTS["city_sales"][0] == "country"
    assert SCOPED_REPORTS["segment_sales"][0] == "city"
