"""
Tests for YFinanceProvider with yfinance and yahooquery mocked out.
"""

import asyncio
from datetime import date
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

from beta_analyzer.data.yfinance_fetcher import YFinanceProvider
from beta_analyzer.exceptions import DataFetchError

INFO = {
    "regularMarketPrice": 1450.5,
    "currency": "INR",
    "marketCap": 2.5e12,
    "longName": "Wipro Limited",
    "shortName": "WIPRO",
    "totalRevenue": 1.1e10,
    "ebitda": 2.2e9,
    "enterpriseValue": 2.3e12,
    "enterpriseToRevenue": float("nan"),
    "trailingPE": 22.4,
    "priceToBook": 3.1,
    "dividendYield": 0.002,
    "debtToEquity": 25.0,
    "profitMargins": 0.13,
    "financialCurrency": "USD",
    "sector": "Technology",
    "industry": "Information Technology Services",
}


@pytest.fixture
def provider():
    return YFinanceProvider()


def mock_ticker(info=None, history=None):
    ticker = MagicMock()
    ticker.info = info if info is not None else {}
    ticker.history.return_value = history if history is not None else pd.DataFrame()
    return ticker


class TestHistory:
    """Tests for get_history."""

    @pytest.mark.asyncio
    async def test_returns_price_series(self, provider):
        frame = pd.DataFrame(
            {"Close": [100.0, 101.5]},
            index=pd.DatetimeIndex(["2024-01-01", "2024-01-02"]),
        )
        ticker = mock_ticker(history=frame)

        with patch("beta_analyzer.data.yfinance_fetcher.yf.Ticker", return_value=ticker):
            series = await provider.get_history("WIPRO.NS", date(2024, 1, 1), date(2024, 1, 2))

        assert [p.close for p in series] == [100.0, 101.5]
        kwargs = ticker.history.call_args.kwargs
        # end is exclusive in yfinance, so one day is added
        assert kwargs["end"] == "2024-01-03"
        assert kwargs["interval"] == "1d"

    @pytest.mark.asyncio
    async def test_empty_frame_is_none(self, provider):
        with patch("beta_analyzer.data.yfinance_fetcher.yf.Ticker", return_value=mock_ticker()):
            assert await provider.get_history("NOPE.NS", date(2024, 1, 1), date(2024, 2, 1)) is None

    @pytest.mark.asyncio
    async def test_network_error_raises_data_fetch_error(self, provider):
        ticker = mock_ticker()
        ticker.history.side_effect = ConnectionError("reset")

        with patch("beta_analyzer.data.yfinance_fetcher.yf.Ticker", return_value=ticker):
            with pytest.raises(DataFetchError) as exc_info:
                await provider.get_history("WIPRO.NS", date(2024, 1, 1), date(2024, 2, 1))

        assert exc_info.value.details["source"] == "yfinance"
        assert isinstance(exc_info.value.cause, ConnectionError)

    @pytest.mark.asyncio
    async def test_data_error_is_none(self, provider):
        ticker = mock_ticker()
        ticker.history.side_effect = KeyError("Close")

        with patch("beta_analyzer.data.yfinance_fetcher.yf.Ticker", return_value=ticker):
            assert await provider.get_history("WIPRO.NS", date(2024, 1, 1), date(2024, 2, 1)) is None


class TestInfoFields:
    """Quote, fundamentals and profile share one info download."""

    @pytest.mark.asyncio
    async def test_quote_fundamentals_profile(self, provider):
        with patch(
            "beta_analyzer.data.yfinance_fetcher.yf.Ticker", return_value=mock_ticker(info=INFO)
        ) as ticker_cls:
            quote = await provider.get_quote("WIPRO.NS")
            fundamentals = await provider.get_fundamentals("WIPRO.NS")
            profile = await provider.get_profile("WIPRO.NS")

        assert ticker_cls.call_count == 1
        assert quote.price == 1450.5
        assert quote.market_cap == 2.5e12
        assert quote.display_name == "Wipro Limited"
        assert fundamentals.revenue == 1.1e10
        assert fundamentals.reporting_currency == "USD"
        assert fundamentals.ev_revenue_multiple is None
        assert profile.label == "Technology > Information Technology Services"

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_download(self, provider):
        with patch(
            "beta_analyzer.data.yfinance_fetcher.yf.Ticker", return_value=mock_ticker(info=INFO)
        ) as ticker_cls:
            quote, fundamentals, profile = await asyncio.gather(
                provider.get_quote("WIPRO.NS"),
                provider.get_fundamentals("WIPRO.NS"),
                provider.get_profile("WIPRO.NS"),
            )

        assert ticker_cls.call_count == 1
        assert quote.market_cap == 2.5e12
        assert fundamentals.revenue == 1.1e10
        assert profile.industry == "Information Technology Services"
        assert provider._info_tasks == {}

    @pytest.mark.asyncio
    async def test_sparse_info_is_unavailable(self, provider):
        with patch(
            "beta_analyzer.data.yfinance_fetcher.yf.Ticker",
            return_value=mock_ticker(info={"trailingPegRatio": None}),
        ):
            assert await provider.get_quote("DELISTED.NS") is None
            assert await provider.get_profile("DELISTED.NS") is None


class TestSimilarAndFx:
    @pytest.mark.asyncio
    async def test_recommendations(self, provider):
        yq = MagicMock()
        yq.recommendations = {
            "TCS.NS": {
                "recommendedSymbols": [
                    {"symbol": "INFY.NS", "score": 0.3},
                    {"symbol": "wipro.ns", "score": 0.2},
                ]
            }
        }

        with patch("beta_analyzer.data.yfinance_fetcher.YQTicker", return_value=yq):
            assert await provider.get_similar("TCS.NS") == ["INFY.NS", "WIPRO.NS"]

    @pytest.mark.asyncio
    async def test_recommendations_error_message(self, provider):
        yq = MagicMock()
        yq.recommendations = {"TCS.NS": "No data found"}

        with patch("beta_analyzer.data.yfinance_fetcher.YQTicker", return_value=yq):
            assert await provider.get_similar("TCS.NS") == []

    @pytest.mark.asyncio
    async def test_fx_rate_is_cached(self, provider):
        frame = pd.DataFrame({"Close": [83.1, 83.4, float("nan")]})
        ticker = mock_ticker(history=frame)

        with patch("beta_analyzer.data.yfinance_fetcher.yf.Ticker", return_value=ticker) as ticker_cls:
            first = await provider.get_fx_rate("USDINR=X")
            second = await provider.get_fx_rate("USDINR=X")

        assert first == second == 83.4
        assert ticker_cls.call_count == 1

    @pytest.mark.asyncio
    async def test_fx_rate_unavailable(self, provider):
        with patch("beta_analyzer.data.yfinance_fetcher.yf.Ticker", return_value=mock_ticker()):
            assert await provider.get_fx_rate("USDINR=X") is None
