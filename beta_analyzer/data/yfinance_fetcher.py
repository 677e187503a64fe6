"""
YFinance-backed Market Data Provider

Handles all Yahoo Finance access for the analysis:
- Daily price history via yfinance
- Quote, fundamentals and profile fields from the yfinance info payload
- USD/INR and other FX pairs via yfinance
- Similar-symbol recommendations via yahooquery
"""

import asyncio
import math
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import structlog
import yfinance as yf
from yahooquery import Ticker as YQTicker

from beta_analyzer.data.base_fetcher import (
    FX_CACHE_TTL_SECONDS,
    INFO_CACHE_TTL_SECONDS,
    CompanyProfile,
    FXRateCache,
    Fundamentals,
    InfoCache,
    MarketDataProvider,
    Quote,
)
from beta_analyzer.exceptions import DataFetchError
from beta_analyzer.risk.alignment import PriceSeries

logger = structlog.get_logger(__name__)


def _safe_float(value: Any) -> Optional[float]:
    """Safely convert value to float, returning None for invalid values."""
    if value is None:
        return None
    try:
        f_value = float(value)
    except (ValueError, TypeError):
        return None
    if math.isnan(f_value) or math.isinf(f_value):
        return None
    return f_value


def _safe_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class YFinanceProvider(MarketDataProvider):
    """
    Market data provider on top of yfinance and yahooquery.

    yfinance is synchronous, so every call runs in a worker thread via
    ``asyncio.to_thread``. Failures are logged and reported as None, except
    network failures on history, which raise DataFetchError.

    Example:
        provider = YFinanceProvider()
        series = await provider.get_history("TCS.NS", date(2020, 1, 1), date(2025, 1, 1))
        quote = await provider.get_quote("TCS.NS")
    """

    def __init__(
        self,
        fx_cache_ttl_seconds: int = FX_CACHE_TTL_SECONDS,
        info_cache_ttl_seconds: int = INFO_CACHE_TTL_SECONDS,
    ):
        self.fx_cache = FXRateCache(fx_cache_ttl_seconds)
        self.info_cache = InfoCache(info_cache_ttl_seconds)
        self._info_tasks: Dict[str, asyncio.Future] = {}

    async def get_history(
        self, symbol: str, start: date, end: date
    ) -> Optional[PriceSeries]:
        """Fetch daily closes between ``start`` and ``end`` (inclusive)."""
        try:
            ticker = yf.Ticker(symbol)
            # yfinance treats ``end`` as exclusive
            hist = await asyncio.to_thread(
                ticker.history,
                start=start.isoformat(),
                end=(end + timedelta(days=1)).isoformat(),
                interval="1d",
                auto_adjust=False,
            )
        except asyncio.CancelledError:
            logger.warning("history_fetch_cancelled", symbol=symbol)
            raise
        except (ConnectionError, TimeoutError, OSError) as e:
            logger.warning(
                "history_fetch_network_error",
                symbol=symbol,
                error_type=type(e).__name__,
                error=str(e)
            )
            raise DataFetchError(
                f"Network error fetching history for {symbol}",
                source="yfinance",
                ticker=symbol,
                cause=e
            )
        except (ValueError, KeyError) as e:
            logger.warning(
                "history_fetch_data_error",
                symbol=symbol,
                error_type=type(e).__name__,
                error=str(e)
            )
            return None
        except Exception as e:
            logger.error(
                "history_fetch_failed",
                symbol=symbol,
                error_type=type(e).__name__,
                error=str(e)
            )
            return None

        if hist is None or hist.empty:
            logger.warning("history_empty", symbol=symbol, start=str(start), end=str(end))
            return None

        series = PriceSeries.from_dataframe(symbol, hist)
        logger.info("history_fetched", symbol=symbol, points=len(series))
        return series

    async def get_quote(self, symbol: str) -> Optional[Quote]:
        info = await self._get_info(symbol)
        if not info:
            return None

        price = _safe_float(info.get("regularMarketPrice")) or _safe_float(info.get("currentPrice"))
        return Quote(
            symbol=symbol,
            price=price,
            currency=_safe_str(info.get("currency")),
            market_cap=_safe_float(info.get("marketCap")),
            long_name=_safe_str(info.get("longName")),
            short_name=_safe_str(info.get("shortName")),
        )

    async def get_fundamentals(self, symbol: str) -> Optional[Fundamentals]:
        info = await self._get_info(symbol)
        if not info:
            return None

        return Fundamentals(
            symbol=symbol,
            revenue=_safe_float(info.get("totalRevenue")),
            ebitda=_safe_float(info.get("ebitda")),
            enterprise_value=_safe_float(info.get("enterpriseValue")),
            ev_revenue_multiple=_safe_float(info.get("enterpriseToRevenue")),
            pe_ratio=_safe_float(info.get("trailingPE")),
            pb_ratio=_safe_float(info.get("priceToBook")),
            dividend_yield=_safe_float(info.get("dividendYield")),
            debt_to_equity=_safe_float(info.get("debtToEquity")),
            profit_margin=_safe_float(info.get("profitMargins")),
            reporting_currency=_safe_str(info.get("financialCurrency")),
        )

    async def get_profile(self, symbol: str) -> Optional[CompanyProfile]:
        info = await self._get_info(symbol)
        if not info:
            return None

        industry = _safe_str(info.get("industry"))
        sector = _safe_str(info.get("sector"))
        if not industry and not sector:
            logger.debug("profile_missing_classification", symbol=symbol)
            return None

        return CompanyProfile(symbol=symbol, sector=sector, industry=industry)

    async def get_similar(self, symbol: str) -> List[str]:
        """Recommended similar symbols, in the provider's order."""
        return await asyncio.to_thread(self._get_similar_sync, symbol)

    def _get_similar_sync(self, symbol: str) -> List[str]:
        try:
            recommendations = YQTicker(symbol).recommendations
        except (ConnectionError, TimeoutError) as e:
            logger.warning(
                "recommendations_network_error",
                symbol=symbol,
                error_type=type(e).__name__,
                error=str(e)
            )
            return []
        except Exception as e:
            logger.warning(
                "recommendations_fetch_failed",
                symbol=symbol,
                error_type=type(e).__name__,
                error=str(e)
            )
            return []

        if not isinstance(recommendations, dict):
            return []

        # yahooquery keys the payload by the requested symbol; a string value
        # carries an error message
        payload = recommendations.get(symbol)
        if not isinstance(payload, dict):
            logger.debug("recommendations_unavailable", symbol=symbol)
            return []

        symbols = []
        for item in payload.get("recommendedSymbols") or []:
            if isinstance(item, dict) and item.get("symbol"):
                symbols.append(str(item["symbol"]).upper())

        logger.info("recommendations_fetched", symbol=symbol, count=len(symbols))
        return symbols

    async def get_fx_rate(self, pair_symbol: str) -> Optional[float]:
        """Latest close for an FX pair, cached for the configured TTL."""
        cached = self.fx_cache.get(pair_symbol)
        if cached is not None:
            return cached

        try:
            ticker = yf.Ticker(pair_symbol)
            hist = await asyncio.to_thread(ticker.history, period="5d")
        except asyncio.CancelledError:
            raise
        except (ConnectionError, TimeoutError) as e:
            logger.warning("fx_rate_network_error", pair=pair_symbol, error=str(e))
            return None
        except Exception as e:
            logger.warning(
                "fx_rate_fetch_failed",
                pair=pair_symbol,
                error_type=type(e).__name__,
                error=str(e)
            )
            return None

        if hist is None or hist.empty or "Close" not in hist.columns:
            logger.warning("fx_rate_empty", pair=pair_symbol)
            return None

        closes = hist["Close"].dropna()
        rate = _safe_float(closes.iloc[-1]) if not closes.empty else None
        if rate is None or rate <= 0:
            return None

        self.fx_cache.set(pair_symbol, rate)
        logger.info("fx_rate_fetched", pair=pair_symbol, rate=rate)
        return rate

    async def _get_info(self, symbol: str) -> Optional[Dict[str, Any]]:
        """Fetch (or reuse) the yfinance info payload for ``symbol``."""
        cached = self.info_cache.get(symbol)
        if cached is not None:
            return cached

        # Concurrent callers for one symbol share a single download
        key = symbol.upper()
        task = self._info_tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(self._download_info(symbol))
            self._info_tasks[key] = task
            task.add_done_callback(lambda _: self._info_tasks.pop(key, None))

        # shield: a caller timing out must not cancel the others' download
        return await asyncio.shield(task)

    async def _download_info(self, symbol: str) -> Optional[Dict[str, Any]]:
        try:
            ticker = yf.Ticker(symbol)
            info = await asyncio.to_thread(lambda: ticker.info)
        except asyncio.CancelledError:
            raise
        except (KeyError, ValueError, AttributeError) as e:
            logger.debug(
                "yfinance_info_access_error",
                symbol=symbol,
                error_type=type(e).__name__,
                error=str(e)
            )
            return None
        except Exception as e:
            logger.warning(
                "yfinance_info_failed",
                symbol=symbol,
                error_type=type(e).__name__,
                error=str(e)
            )
            return None

        # Yahoo answers unknown symbols with a near-empty payload
        if not info or len(info) < 3:
            logger.info("yfinance_info_empty", symbol=symbol)
            return None

        self.info_cache.set(symbol, info)
        return info
