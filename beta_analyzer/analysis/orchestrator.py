"""
AnalysisOrchestrator - One beta-and-peers analysis run.

Flow:
1. Validate the request and resolve the listed symbol and its benchmark
2. Fetch target history, benchmark history, quote, fundamentals and the
   USD->INR rate concurrently
3. Align target against benchmark and run the regression
4. Build the target's currency-normalized snapshot
5. Discover peers and compute their metrics against the same benchmark
6. Rank peers by market cap and record the search
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

import structlog

from beta_analyzer.analysis.history import SearchHistoryStorage, SearchRecord
from beta_analyzer.config import Config, config as default_config
from beta_analyzer.data.base_fetcher import MarketDataProvider, ThrottledProvider, USD_INR_PAIR
from beta_analyzer.data.directory import DirectoryHolder, IndustryDirectory
from beta_analyzer.exceptions import (
    HistoryStorageError,
    InsufficientDataPointsError,
    InsufficientMarketDataError,
    RequestValidationError,
)
from beta_analyzer.fundamentals.currency import (
    FinancialSnapshot,
    build_snapshot,
    resolve_context,
)
from beta_analyzer.peers.finder import PeerCandidate, PeerDiscovery
from beta_analyzer.risk.alignment import PriceSeries, align
from beta_analyzer.risk.regression import RiskMetrics, compute_metrics_for
from beta_analyzer.ticker_utils import get_exchange, resolve_symbol

logger = structlog.get_logger(__name__)

FX_SOURCE_LIVE = "live"
FX_SOURCE_FALLBACK = "fallback"

MIN_PEER_POINTS = 2

DateLike = Union[date, datetime, str]


@dataclass
class PeerResult:
    """Metrics and snapshot of one ranked peer. Metrics may be absent."""

    symbol: str
    name: str
    industry_label: str
    metrics: Optional[RiskMetrics]
    snapshot: FinancialSnapshot

    def to_dict(self) -> Dict[str, Any]:
        metrics = self.metrics.to_dict() if self.metrics else {}
        return {
            "ticker": self.symbol,
            "name": self.name,
            "sector": self.industry_label,
            "beta": metrics.get("beta"),
            "alpha": metrics.get("alpha"),
            "correlation": metrics.get("correlation"),
            "rSquared": metrics.get("r_squared"),
            "volatility": metrics.get("volatility"),
            **_snapshot_fields(self.snapshot),
        }


@dataclass
class AnalysisResult:
    """Target metrics, target snapshot and ranked peers of one run."""

    symbol: str
    name: str
    market_index: str
    period: str
    metrics: RiskMetrics
    snapshot: FinancialSnapshot
    peers: List[PeerResult] = field(default_factory=list)
    fx_rate: Optional[float] = None
    fx_rate_source: str = FX_SOURCE_LIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticker": self.symbol,
            "name": self.name,
            "marketIndex": self.market_index,
            "period": self.period,
            "beta": self.metrics.beta,
            "alpha": self.metrics.alpha,
            "correlation": self.metrics.correlation,
            "rSquared": self.metrics.r_squared,
            "volatility": self.metrics.volatility,
            **_snapshot_fields(self.snapshot),
            "peers": [peer.to_dict() for peer in self.peers],
            "fxRate": self.fx_rate,
            "fxRateSource": self.fx_rate_source,
        }


def _snapshot_fields(snapshot: FinancialSnapshot) -> Dict[str, Optional[float]]:
    return {
        "marketCap": snapshot.market_cap,
        "revenue": snapshot.revenue,
        "enterpriseValue": snapshot.enterprise_value,
        "evRevenueMultiple": snapshot.ev_revenue_multiple,
        "peRatio": snapshot.pe_ratio,
        "pbRatio": snapshot.pb_ratio,
        "dividendYield": snapshot.dividend_yield,
        "ebitda": snapshot.ebitda,
        "debtToEquity": snapshot.debt_to_equity,
        "profitMargin": snapshot.profit_margin,
    }


def parse_date(value: DateLike, field_name: str) -> date:
    """
    Accept a date, datetime or ISO "YYYY-MM-DD" string.

    Raises:
        RequestValidationError: If the value cannot be read as a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise RequestValidationError(
        f"Invalid {field_name}: {value!r}",
        field=field_name,
        value=value if isinstance(value, (str, int, float)) else str(value),
        expected="YYYY-MM-DD",
    )


class AnalysisOrchestrator:
    """
    Compose alignment, regression, currency normalization and peer
    discovery into one analysis run.

    Example:
        orchestrator = AnalysisOrchestrator(YFinanceProvider(), holder)
        result = await orchestrator.run("TCS", "NSE", "2020-01-01", "2024-12-31")
        print(result.metrics.beta, [p.symbol for p in result.peers])
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        directory: Union[IndustryDirectory, DirectoryHolder, None] = None,
        history: Optional[SearchHistoryStorage] = None,
        settings: Optional[Config] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            provider: Market data provider; wrapped in a ThrottledProvider
                unless it already is one
            directory: Directory snapshot, or a holder whose current snapshot
                is read at the start of each run
            history: Search-history store; None disables recording
            settings: Configuration (module-level config by default)
        """
        self.settings = settings or default_config
        if not isinstance(provider, ThrottledProvider):
            provider = ThrottledProvider(
                provider,
                max_concurrent=self.settings.max_concurrent_requests,
                timeout=self.settings.fetch_timeout,
            )
        self.provider = provider
        self._directory = directory
        self.history = history

    @property
    def directory(self) -> IndustryDirectory:
        if isinstance(self._directory, DirectoryHolder):
            return self._directory.current
        return self._directory or IndustryDirectory()

    async def run(
        self,
        symbol: str,
        exchange: str,
        start_date: DateLike,
        end_date: DateLike,
        period_label: Optional[str] = None,
    ) -> AnalysisResult:
        """
        Run one analysis.

        Raises:
            ValidationError: Bad ticker, exchange or date range
            InsufficientMarketDataError: Target or benchmark history unavailable
            InsufficientDataPointsError: Too few aligned points or no dispersion
        """
        exchange_info = get_exchange(exchange)
        listed = resolve_symbol(symbol, exchange_info.code)
        start = parse_date(start_date, "startDate")
        end = parse_date(end_date, "endDate")
        if start >= end:
            raise RequestValidationError(
                "Start date must be before end date",
                field="startDate",
                value=start.isoformat(),
                expected=f"before {end.isoformat()}",
            )
        period = period_label or self.settings.default_period
        benchmark = exchange_info.benchmark_symbol

        logger.info(
            "analysis_started",
            symbol=listed,
            benchmark=benchmark,
            start=start.isoformat(),
            end=end.isoformat(),
        )

        stock_history, market_history, quote, fundamentals, fx_rate = await asyncio.gather(
            self.provider.get_history(listed, start, end),
            self.provider.get_history(benchmark, start, end),
            self.provider.get_quote(listed),
            self.provider.get_fundamentals(listed),
            self.provider.get_fx_rate(USD_INR_PAIR),
        )

        if stock_history is None or stock_history.is_empty():
            raise InsufficientMarketDataError(
                f"No price history available for {listed}",
                ticker=listed,
            )
        if market_history is None or market_history.is_empty():
            raise InsufficientMarketDataError(
                f"No price history available for benchmark {exchange_info.benchmark_name}",
                ticker=listed,
                benchmark=benchmark,
            )

        fx_source = FX_SOURCE_LIVE
        if fx_rate is None:
            fx_rate = self.settings.fallback_usd_inr_rate
            fx_source = FX_SOURCE_FALLBACK
            logger.warning("fx_rate_fallback", pair=USD_INR_PAIR, rate=fx_rate)

        aligned = align(stock_history, market_history)
        metrics = compute_metrics_for(aligned, self.settings.trading_days_per_year)
        if metrics is None:
            raise InsufficientDataPointsError(
                f"Not enough overlapping price data for {listed} to calculate beta",
                ticker=listed,
                aligned_points=len(aligned),
            )

        context = resolve_context(quote, fundamentals, fx_rate, self.settings.base_currency)
        snapshot = build_snapshot(quote, fundamentals, context)

        directory = self.directory
        profile = await self.provider.get_profile(listed)
        discovery = PeerDiscovery(
            self.provider,
            directory,
            max_candidates=self.settings.max_peer_candidates,
            max_peers=self.settings.max_peers,
            base_currency=self.settings.base_currency,
        )
        candidates = await discovery.discover(
            listed, profile.industry if profile else None, fx_rate
        )

        peer_results = await asyncio.gather(
            *(
                self._analyze_peer(candidate, market_history, start, end, fx_rate, directory)
                for candidate in candidates
            )
        )
        peers = sort_peers([peer for peer in peer_results if peer is not None])

        entry = directory.lookup(listed)
        name = (
            (quote.display_name if quote else None)
            or (entry.company_name if entry else None)
            or listed
        )

        result = AnalysisResult(
            symbol=listed,
            name=name,
            market_index=exchange_info.benchmark_name,
            period=period,
            metrics=metrics,
            snapshot=snapshot,
            peers=peers,
            fx_rate=fx_rate,
            fx_rate_source=fx_source,
        )

        logger.info(
            "analysis_completed",
            symbol=listed,
            beta=round(metrics.beta, 4),
            aligned_points=len(aligned),
            peers=len(peers),
            fx_rate_source=fx_source,
        )

        await self._record_search(result, exchange_info.code, start, end)
        return result

    async def _analyze_peer(
        self,
        candidate: PeerCandidate,
        market_history: PriceSeries,
        start: date,
        end: date,
        fx_rate: float,
        directory: IndustryDirectory,
    ) -> Optional[PeerResult]:
        symbol = candidate.symbol
        history = await self.provider.get_history(symbol, start, end)
        if history is None or len(history) < MIN_PEER_POINTS:
            logger.info(
                "peer_omitted_no_history",
                symbol=symbol,
                points=len(history) if history is not None else 0,
            )
            return None

        quote = candidate.quote
        fundamentals = candidate.fundamentals
        if quote is None:
            quote = await self.provider.get_quote(symbol)
        if fundamentals is None:
            fundamentals = await self.provider.get_fundamentals(symbol)

        metrics = compute_metrics_for(
            align(history, market_history), self.settings.trading_days_per_year
        )
        if metrics is None:
            logger.debug("peer_metrics_unavailable", symbol=symbol)

        context = resolve_context(quote, fundamentals, fx_rate, self.settings.base_currency)
        snapshot = build_snapshot(quote, fundamentals, context)
        if snapshot.market_cap is None and candidate.market_cap_base is not None:
            snapshot = _with_market_cap(snapshot, candidate.market_cap_base)

        entry = directory.lookup(symbol)
        name = (
            (quote.display_name if quote else None)
            or (entry.company_name if entry else None)
            or symbol
        )

        return PeerResult(
            symbol=symbol,
            name=name,
            industry_label=candidate.industry_label,
            metrics=metrics,
            snapshot=snapshot,
        )

    async def _record_search(
        self, result: AnalysisResult, exchange: str, start: date, end: date
    ) -> None:
        if self.history is None:
            return
        record = SearchRecord(
            ticker=result.symbol,
            exchange=exchange,
            start_date=start,
            end_date=end,
            beta=result.metrics.beta,
            peers=[peer.symbol for peer in result.peers],
        )
        try:
            await asyncio.to_thread(self.history.save_search, record)
        except HistoryStorageError as e:
            logger.warning("search_record_failed", symbol=result.symbol, error=str(e))


def sort_peers(peers: List[PeerResult]) -> List[PeerResult]:
    """Stable sort by normalized market cap descending; absent cap ranks as 0."""
    return sorted(peers, key=lambda p: p.snapshot.market_cap or 0.0, reverse=True)


def _with_market_cap(snapshot: FinancialSnapshot, market_cap: float) -> FinancialSnapshot:
    values = snapshot.to_dict()
    values["market_cap"] = market_cap
    return FinancialSnapshot(**values)
