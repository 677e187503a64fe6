"""
Market Data Provider Contract

Provides common functionality for all market data providers:
- Typed records for quotes, fundamentals and company profiles
- The abstract async provider interface used by the analysis
- A throttling wrapper (bounded concurrency + per-call timeout)
- TTL caches for FX rates and raw info payloads
"""

import asyncio
import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

import structlog

from beta_analyzer.risk.alignment import PriceSeries

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Constants
FX_CACHE_TTL_SECONDS = 3600
INFO_CACHE_TTL_SECONDS = 300
PER_CALL_TIMEOUT = 15
DEFAULT_MAX_CONCURRENT = 5
USD_INR_PAIR = "USDINR=X"


@dataclass(frozen=True)
class Quote:
    """Price-side data for a security, in its trading currency."""

    symbol: str
    price: Optional[float] = None
    currency: Optional[str] = None
    market_cap: Optional[float] = None
    long_name: Optional[str] = None
    short_name: Optional[str] = None

    @property
    def display_name(self) -> Optional[str]:
        return self.long_name or self.short_name


@dataclass(frozen=True)
class Fundamentals:
    """Report-side data for a security as returned by the provider (unconverted)."""

    symbol: str
    revenue: Optional[float] = None
    ebitda: Optional[float] = None
    enterprise_value: Optional[float] = None
    ev_revenue_multiple: Optional[float] = None
    pe_ratio: Optional[float] = None
    pb_ratio: Optional[float] = None
    dividend_yield: Optional[float] = None
    debt_to_equity: Optional[float] = None
    profit_margin: Optional[float] = None
    reporting_currency: Optional[str] = None


@dataclass(frozen=True)
class CompanyProfile:
    """Industry classification for a security."""

    symbol: str
    sector: Optional[str] = None
    industry: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.sector or 'Unknown'} > {self.industry or 'Unknown'}"


class MarketDataProvider(ABC):
    """
    Abstract base class for market data providers.

    Every method reports "unavailable" as None (or an empty list) so callers
    branch on absence. Transport failures may surface as DataError;
    ThrottledProvider folds those into "unavailable" too.
    """

    @abstractmethod
    async def get_history(
        self, symbol: str, start: date, end: date
    ) -> Optional[PriceSeries]:
        """Daily closes for ``symbol`` between ``start`` and ``end``."""

    @abstractmethod
    async def get_quote(self, symbol: str) -> Optional[Quote]:
        """Current price, trading currency, market cap and names."""

    @abstractmethod
    async def get_fundamentals(self, symbol: str) -> Optional[Fundamentals]:
        """Reported financials and valuation ratios."""

    @abstractmethod
    async def get_profile(self, symbol: str) -> Optional[CompanyProfile]:
        """Sector and industry classification."""

    @abstractmethod
    async def get_similar(self, symbol: str) -> List[str]:
        """Symbols the provider recommends as similar to ``symbol``."""

    @abstractmethod
    async def get_fx_rate(self, pair_symbol: str) -> Optional[float]:
        """Latest rate for an FX pair such as ``USDINR=X``."""


class ThrottledProvider(MarketDataProvider):
    """
    Wraps a provider with a shared concurrency limit and per-call timeout.

    All calls of one analysis run go through the same semaphore, so peer
    fan-out never exceeds ``max_concurrent`` in-flight provider requests.
    A timeout or unexpected error degrades that single call to "unavailable".
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        timeout: float = PER_CALL_TIMEOUT,
    ):
        self._provider = provider
        # one semaphore per event loop
        self._semaphores = weakref.WeakKeyDictionary()
        self.timeout = timeout
        self.max_concurrent = max_concurrent

    def _semaphore(self) -> asyncio.Semaphore:
        """Semaphore of the running loop; hosts may serve each request on a new loop."""
        loop = asyncio.get_running_loop()
        semaphore = self._semaphores.get(loop)
        if semaphore is None:
            semaphore = asyncio.Semaphore(self.max_concurrent)
            self._semaphores[loop] = semaphore
        return semaphore

    async def _call(
        self, operation: str, symbol: str, awaitable: Awaitable[T], default: T
    ) -> T:
        async with self._semaphore():
            try:
                return await asyncio.wait_for(awaitable, timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "provider_call_timeout",
                    operation=operation,
                    symbol=symbol,
                    timeout=self.timeout,
                )
                return default
            except asyncio.CancelledError:
                logger.warning("provider_call_cancelled", operation=operation, symbol=symbol)
                raise
            except Exception as e:
                logger.warning(
                    "provider_call_failed",
                    operation=operation,
                    symbol=symbol,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                return default

    async def get_history(self, symbol, start, end):
        return await self._call(
            "history", symbol, self._provider.get_history(symbol, start, end), None
        )

    async def get_quote(self, symbol):
        return await self._call("quote", symbol, self._provider.get_quote(symbol), None)

    async def get_fundamentals(self, symbol):
        return await self._call(
            "fundamentals", symbol, self._provider.get_fundamentals(symbol), None
        )

    async def get_profile(self, symbol):
        return await self._call("profile", symbol, self._provider.get_profile(symbol), None)

    async def get_similar(self, symbol):
        return await self._call("similar", symbol, self._provider.get_similar(symbol), [])

    async def get_fx_rate(self, pair_symbol):
        return await self._call(
            "fx_rate", pair_symbol, self._provider.get_fx_rate(pair_symbol), None
        )


class FXRateCache:
    """
    FX rate cache with TTL, keyed by pair symbol.
    """

    def __init__(self, ttl_seconds: int = FX_CACHE_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds
        self._cache: Dict[str, float] = {}
        self._expiry: Dict[str, datetime] = {}

    def get(self, pair_symbol: str) -> Optional[float]:
        """
        Get cached FX rate if available and not expired.

        Args:
            pair_symbol: FX pair such as "USDINR=X"

        Returns:
            Cached rate or None if not available/expired
        """
        key = pair_symbol.upper()
        expiry = self._expiry.get(key)

        if expiry and datetime.now() < expiry:
            return self._cache.get(key)

        return None

    def set(self, pair_symbol: str, rate: float) -> None:
        """Cache an FX rate."""
        key = pair_symbol.upper()
        self._cache[key] = rate
        self._expiry[key] = datetime.now() + timedelta(seconds=self.ttl_seconds)

    def clear(self) -> None:
        """Clear all cached rates."""
        self._cache.clear()
        self._expiry.clear()


class InfoCache:
    """
    Short-lived cache of raw provider info payloads.

    Quote, fundamentals and profile are all read from the same Yahoo info
    payload; caching it briefly turns three downloads into one.
    """

    def __init__(self, ttl_seconds: int = INFO_CACHE_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds
        self._cache: Dict[str, Dict[str, Any]] = {}
        self._expiry: Dict[str, datetime] = {}

    def get(self, symbol: str) -> Optional[Dict[str, Any]]:
        key = symbol.upper()
        expiry = self._expiry.get(key)
        if expiry and datetime.now() < expiry:
            return self._cache.get(key)
        return None

    def set(self, symbol: str, info: Dict[str, Any]) -> None:
        key = symbol.upper()
        self._cache[key] = info
        self._expiry[key] = datetime.now() + timedelta(seconds=self.ttl_seconds)

    def clear(self) -> None:
        self._cache.clear()
        self._expiry.clear()
