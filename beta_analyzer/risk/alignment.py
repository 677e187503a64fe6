"""
Price series and date alignment.

Two daily price histories rarely cover the same trading days (holidays,
suspensions, missing candles). ``align`` inner-joins them on calendar date so
the regression engine always sees paired observations.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd
import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PricePoint:
    """A single daily close. ``close`` may be missing in raw provider data."""

    date: date
    close: Optional[float] = None

    def is_valid(self) -> bool:
        """A close is usable when present, finite and strictly positive."""
        if self.close is None:
            return False
        try:
            value = float(self.close)
        except (TypeError, ValueError):
            return False
        return math.isfinite(value) and value > 0


@dataclass(frozen=True)
class PriceSeries:
    """Ordered-by-date closes for one ticker."""

    symbol: str
    points: Tuple[PricePoint, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self):
        return iter(self.points)

    def is_empty(self) -> bool:
        return not self.points

    def valid_count(self) -> int:
        return sum(1 for p in self.points if p.is_valid())

    @classmethod
    def from_records(
        cls, symbol: str, records: Iterable[Tuple[Any, Optional[float]]]
    ) -> "PriceSeries":
        """Build a series from ``(date, close)`` pairs, keeping their order."""
        points = tuple(
            PricePoint(date=_to_date(day), close=_to_float(close))
            for day, close in records
        )
        return cls(symbol=symbol, points=points)

    @classmethod
    def from_dataframe(
        cls, symbol: str, frame: pd.DataFrame, column: str = "Close"
    ) -> "PriceSeries":
        """
        Build a series from a yfinance history frame.

        The index holds the timestamps (timezone-aware for Indian listings);
        only the calendar date is kept. Rows are sorted by date.

        Args:
            symbol: Ticker the frame belongs to
            frame: DataFrame indexed by timestamp with a close column
            column: Name of the close column

        Returns:
            PriceSeries (empty when the frame is empty or lacks the column)
        """
        if frame is None or frame.empty or column not in frame.columns:
            return cls(symbol=symbol)

        closes = frame[column].sort_index()
        return cls.from_records(symbol, zip(closes.index, closes.tolist()))


@dataclass(frozen=True)
class AlignedPrices:
    """
    Closes paired by date, chronological in the primary series' order.

    ``stock`` and ``market`` are parallel sequences of equal length.
    """

    dates: Tuple[date, ...] = field(default_factory=tuple)
    stock: Tuple[float, ...] = field(default_factory=tuple)
    market: Tuple[float, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.dates)

    def is_empty(self) -> bool:
        return not self.dates

    def pairs(self) -> List[Tuple[float, float]]:
        return list(zip(self.stock, self.market))


def align(primary: PriceSeries, reference: PriceSeries) -> AlignedPrices:
    """
    Inner-join two price series on calendar date.

    Walks ``primary`` in order and emits a pair for each date on which both
    series have a valid close. A date repeated in ``primary`` is emitted once.
    No overlap yields an empty result; callers decide whether that is fatal.

    Args:
        primary: Series whose order drives the output (the stock)
        reference: Series looked up by date (the benchmark)

    Returns:
        AlignedPrices with parallel stock/market closes
    """
    reference_closes: Dict[date, float] = {}
    for point in reference:
        if point.is_valid():
            reference_closes[point.date] = float(point.close)

    dates: List[date] = []
    stock: List[float] = []
    market: List[float] = []
    seen = set()

    for point in primary:
        if point.date in seen or not point.is_valid():
            continue
        market_close = reference_closes.get(point.date)
        if market_close is None:
            continue
        seen.add(point.date)
        dates.append(point.date)
        stock.append(float(point.close))
        market.append(market_close)

    logger.debug(
        "series_aligned",
        primary=primary.symbol,
        reference=reference.symbol,
        primary_points=len(primary),
        reference_points=len(reference),
        aligned_points=len(dates),
    )

    return AlignedPrices(dates=tuple(dates), stock=tuple(stock), market=tuple(market))


def _to_date(value: Any) -> date:
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result):
        return None
    return result
