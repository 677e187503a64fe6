"""
Tests for the provider records, throttling wrapper and caches.
"""

import asyncio
from datetime import datetime, timedelta

import pytest

from beta_analyzer.data.base_fetcher import (
    CompanyProfile,
    FXRateCache,
    InfoCache,
    Quote,
    ThrottledProvider,
)

from tests.conftest import FakeMarketDataProvider


class SlowProvider(FakeMarketDataProvider):
    """Tracks how many calls are in flight at once."""

    def __init__(self, delay=0.01, **kwargs):
        super().__init__(**kwargs)
        self.delay = delay
        self.in_flight = 0
        self.peak = 0

    async def get_quote(self, symbol):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            return Quote(symbol=symbol)
        finally:
            self.in_flight -= 1


class TestRecords:
    def test_display_name_prefers_long_name(self):
        assert Quote("TCS.NS", long_name="Tata", short_name="TCS").display_name == "Tata"
        assert Quote("TCS.NS", short_name="TCS").display_name == "TCS"
        assert Quote("TCS.NS").display_name is None

    def test_profile_label(self):
        assert CompanyProfile("X", "Technology", "Software").label == "Technology > Software"
        assert CompanyProfile("X").label == "Unknown > Unknown"


class TestThrottledProvider:
    """Tests for ThrottledProvider."""

    @pytest.mark.asyncio
    async def test_limits_concurrency(self):
        inner = SlowProvider()
        provider = ThrottledProvider(inner, max_concurrent=2)

        await asyncio.gather(*(provider.get_quote(f"S{i}.NS") for i in range(8)))

        assert inner.peak == 2

    def test_reusable_across_event_loops(self):
        """A long-lived wrapper serves requests run on separate loops."""
        inner = SlowProvider()
        provider = ThrottledProvider(inner, max_concurrent=1)

        async def burst():
            return await asyncio.gather(*(provider.get_quote(f"S{i}.NS") for i in range(3)))

        first = asyncio.run(burst())
        second = asyncio.run(burst())

        assert [q.symbol for q in first] == [q.symbol for q in second] == ["S0.NS", "S1.NS", "S2.NS"]
        assert inner.peak == 1

    @pytest.mark.asyncio
    async def test_timeout_degrades_to_none(self):
        provider = ThrottledProvider(SlowProvider(delay=1.0), timeout=0.01)
        assert await provider.get_quote("TCS.NS") is None

    @pytest.mark.asyncio
    async def test_error_degrades_to_default(self):
        inner = FakeMarketDataProvider(failing={"TCS.NS": "*"})
        provider = ThrottledProvider(inner)

        assert await provider.get_history("TCS.NS", None, None) is None
        assert await provider.get_similar("TCS.NS") == []

    @pytest.mark.asyncio
    async def test_passes_results_through(self):
        inner = FakeMarketDataProvider(similar={"TCS.NS": ["INFY.NS"]}, fx_rate=83.2)
        provider = ThrottledProvider(inner)

        assert await provider.get_similar("TCS.NS") == ["INFY.NS"]
        assert await provider.get_fx_rate("USDINR=X") == 83.2


class TestCaches:
    def test_fx_cache_hit_and_expiry(self):
        cache = FXRateCache(ttl_seconds=60)
        cache.set("usdinr=x", 83.1)
        assert cache.get("USDINR=X") == 83.1

        cache._expiry["USDINR=X"] = datetime.now() - timedelta(seconds=1)
        assert cache.get("USDINR=X") is None

    def test_info_cache_clear(self):
        cache = InfoCache()
        cache.set("TCS.NS", {"currency": "INR"})
        assert cache.get("TCS.NS") == {"currency": "INR"}
        cache.clear()
        assert cache.get("TCS.NS") is None
