"""
Shared fixtures: an in-memory market data provider and sample price data.
"""

from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

import pytest

from beta_analyzer.config import Config
from beta_analyzer.data.base_fetcher import (
    CompanyProfile,
    Fundamentals,
    MarketDataProvider,
    Quote,
)
from beta_analyzer.data.directory import DirectoryEntry, IndustryDirectory
from beta_analyzer.risk.alignment import PriceSeries

START = date(2024, 1, 1)


def make_series(symbol: str, closes: Sequence[Optional[float]], start: date = START) -> PriceSeries:
    """Consecutive calendar days starting at ``start``."""
    return PriceSeries.from_records(
        symbol, [(start + timedelta(days=i), close) for i, close in enumerate(closes)]
    )


class FakeMarketDataProvider(MarketDataProvider):
    """
    Provider backed by dictionaries.

    Symbols listed in ``failing`` raise on every call so failure isolation
    can be exercised; every call is recorded in ``calls``.
    """

    def __init__(
        self,
        histories: Optional[Dict[str, PriceSeries]] = None,
        quotes: Optional[Dict[str, Quote]] = None,
        fundamentals: Optional[Dict[str, Fundamentals]] = None,
        profiles: Optional[Dict[str, CompanyProfile]] = None,
        similar: Optional[Dict[str, List[str]]] = None,
        fx_rate: Optional[float] = 83.0,
        failing: Optional[Dict[str, str]] = None,
    ):
        self.histories = histories or {}
        self.quotes = quotes or {}
        self.fundamentals = fundamentals or {}
        self.profiles = profiles or {}
        self.similar = similar or {}
        self.fx_rate = fx_rate
        self.failing = failing or {}
        self.calls: List[tuple] = []

    def _check(self, operation: str, symbol: str) -> None:
        self.calls.append((operation, symbol))
        if self.failing.get(symbol) in (operation, "*"):
            raise ConnectionError(f"{operation} failed for {symbol}")

    async def get_history(self, symbol, start, end):
        self._check("history", symbol)
        return self.histories.get(symbol)

    async def get_quote(self, symbol):
        self._check("quote", symbol)
        return self.quotes.get(symbol)

    async def get_fundamentals(self, symbol):
        self._check("fundamentals", symbol)
        return self.fundamentals.get(symbol)

    async def get_profile(self, symbol):
        self._check("profile", symbol)
        return self.profiles.get(symbol)

    async def get_similar(self, symbol):
        self._check("similar", symbol)
        return list(self.similar.get(symbol, []))

    async def get_fx_rate(self, pair_symbol):
        self._check("fx_rate", pair_symbol)
        return self.fx_rate

    def count(self, operation: str, symbol: Optional[str] = None) -> int:
        return sum(
            1 for op, sym in self.calls
            if op == operation and (symbol is None or sym == symbol)
        )


@pytest.fixture
def settings():
    """Config isolated from the environment's history DB path."""
    return Config(history_db_path=":memory:")


@pytest.fixture
def it_directory():
    """Small directory of IT services companies plus one bank."""
    return IndustryDirectory(
        entries=[
            DirectoryEntry("TCS", "Tata Consultancy Services", "IT Services"),
            DirectoryEntry("INFY", "Infosys", "IT Services"),
            DirectoryEntry("WIPRO", "Wipro", "IT Services"),
            DirectoryEntry("HCLTECH", "HCL Technologies", "IT Services"),
            DirectoryEntry("HDFCBANK", "HDFC Bank", "Banks"),
        ],
        source="memory",
    )


@pytest.fixture
def market_closes():
    return [1000, 1010, 1005, 1020, 1030, 1025, 1040, 1050]


@pytest.fixture
def market_series(market_closes):
    return make_series("^NSEI", market_closes)
