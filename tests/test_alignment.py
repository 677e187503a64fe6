"""
Unit tests for price series construction and date alignment.
"""

import math
from datetime import date

import pandas as pd
import pytest

from beta_analyzer.risk.alignment import AlignedPrices, PricePoint, PriceSeries, align

from tests.conftest import make_series


class TestPricePoint:
    @pytest.mark.parametrize("close", [None, 0, -1.5, float("nan"), float("inf")])
    def test_invalid_closes(self, close):
        assert PricePoint(date(2024, 1, 1), close).is_valid() is False

    def test_positive_close_is_valid(self):
        assert PricePoint(date(2024, 1, 1), 10.5).is_valid() is True


class TestPriceSeries:
    """Tests for PriceSeries constructors."""

    def test_from_records_keeps_order(self):
        series = PriceSeries.from_records(
            "TCS.NS", [("2024-01-02", 10), ("2024-01-01", 11)]
        )
        assert [p.date for p in series] == [date(2024, 1, 2), date(2024, 1, 1)]

    def test_from_records_nan_becomes_none(self):
        series = PriceSeries.from_records("TCS.NS", [("2024-01-01", float("nan"))])
        assert series.points[0].close is None
        assert series.valid_count() == 0

    def test_from_dataframe_sorts_and_drops_time(self):
        index = pd.DatetimeIndex(
            ["2024-01-03 00:00:00+05:30", "2024-01-01 00:00:00+05:30"]
        )
        frame = pd.DataFrame({"Close": [102.0, 100.0], "Open": [1.0, 1.0]}, index=index)

        series = PriceSeries.from_dataframe("INFY.NS", frame)

        assert len(series) == 2
        assert series.points[0] == PricePoint(date(2024, 1, 1), 100.0)
        assert series.points[1] == PricePoint(date(2024, 1, 3), 102.0)

    def test_from_empty_dataframe(self):
        assert PriceSeries.from_dataframe("INFY.NS", pd.DataFrame()).is_empty()

    def test_from_dataframe_missing_column(self):
        frame = pd.DataFrame({"Open": [1.0]}, index=pd.DatetimeIndex(["2024-01-01"]))
        assert PriceSeries.from_dataframe("INFY.NS", frame).is_empty()


class TestAlign:
    """Tests for align (inner join on date)."""

    def test_full_overlap(self):
        stock = make_series("TCS.NS", [10, 11, 12])
        market = make_series("^NSEI", [100, 101, 102])

        aligned = align(stock, market)

        assert aligned.stock == (10.0, 11.0, 12.0)
        assert aligned.market == (100.0, 101.0, 102.0)
        assert len(aligned) == 3

    def test_gaps_are_dropped(self):
        """Only dates valid in both series survive."""
        stock = make_series("TCS.NS", [10, None, 12, 13])
        market = make_series("^NSEI", [100, 101, float("nan"), 103])

        aligned = align(stock, market)

        assert aligned.dates == (date(2024, 1, 1), date(2024, 1, 4))
        assert aligned.pairs() == [(10.0, 100.0), (13.0, 103.0)]

    def test_non_positive_closes_are_invalid(self):
        stock = make_series("TCS.NS", [10, 0, 12])
        market = make_series("^NSEI", [100, 101, -1])

        assert align(stock, market).pairs() == [(10.0, 100.0)]

    def test_no_overlap_is_empty_not_error(self):
        stock = make_series("TCS.NS", [10, 11], start=date(2023, 1, 1))
        market = make_series("^NSEI", [100, 101], start=date(2024, 1, 1))

        aligned = align(stock, market)

        assert aligned.is_empty()
        assert aligned == AlignedPrices()

    def test_follows_primary_order(self):
        stock = PriceSeries.from_records(
            "TCS.NS", [("2024-01-02", 11), ("2024-01-01", 10)]
        )
        market = make_series("^NSEI", [100, 101])

        assert align(stock, market).dates == (date(2024, 1, 2), date(2024, 1, 1))

    def test_duplicate_dates_emitted_once(self):
        stock = PriceSeries.from_records(
            "TCS.NS", [("2024-01-01", 10), ("2024-01-01", 99), ("2024-01-02", 11)]
        )
        market = make_series("^NSEI", [100, 101])

        aligned = align(stock, market)

        assert aligned.pairs() == [(10.0, 100.0), (11.0, 101.0)]

    def test_inputs_untouched(self):
        stock = make_series("TCS.NS", [10, None, 12])
        market = make_series("^NSEI", [100, 101, 102])
        before = (stock.points, market.points)

        align(stock, market)

        assert (stock.points, market.points) == before

    def test_aligned_values_are_finite(self):
        stock = make_series("TCS.NS", [10, float("inf"), 12])
        market = make_series("^NSEI", [100, 101, 102])

        aligned = align(stock, market)

        assert all(math.isfinite(v) for v in aligned.stock + aligned.market)
        assert len(aligned) == 2
