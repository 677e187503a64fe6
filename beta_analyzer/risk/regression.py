"""
Single-factor regression of a stock's daily returns on a benchmark's.

Produces beta, alpha, correlation, R-squared and annualized volatility from
two date-aligned close sequences. Covariance and variances are population
sums while volatility uses the sample (n - 1) standard deviation; both
conventions are kept so results match the figures users have already seen.
"""

import math
from dataclasses import asdict, dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import structlog

from beta_analyzer.risk.alignment import AlignedPrices

logger = structlog.get_logger(__name__)

TRADING_DAYS_PER_YEAR = 252
MIN_RETURNS = 2


@dataclass(frozen=True)
class RiskMetrics:
    """Regression statistics for one stock against one benchmark."""

    beta: float
    alpha: float
    correlation: float
    r_squared: float
    volatility: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def simple_returns(
    stock_prices: Sequence[float], market_prices: Sequence[float]
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Paired simple returns ``(p[i] - p[i-1]) / p[i-1]``.

    A non-positive price in either series is an invalid point: both returns
    touching it are dropped, so a bad print never turns into a division
    fault or a -100% return.
    """
    stock = np.asarray(stock_prices, dtype=float)
    market = np.asarray(market_prices, dtype=float)

    if len(stock) < 2:
        return np.empty(0), np.empty(0)

    point_ok = (stock > 0) & (market > 0)
    valid = point_ok[:-1] & point_ok[1:]

    stock_prev, market_prev = stock[:-1][valid], market[:-1][valid]
    stock_returns = (stock[1:][valid] - stock_prev) / stock_prev
    market_returns = (market[1:][valid] - market_prev) / market_prev

    dropped = int(len(valid) - valid.sum())
    if dropped:
        logger.debug("non_positive_prices_skipped", dropped_returns=dropped)

    return stock_returns, market_returns


def compute_metrics(
    stock_prices: Sequence[float],
    market_prices: Sequence[float],
    trading_days_per_year: int = TRADING_DAYS_PER_YEAR,
) -> Optional[RiskMetrics]:
    """
    Regress stock returns on market returns.

    Args:
        stock_prices: Stock closes, chronologically aligned with market_prices
        market_prices: Benchmark closes for the same dates
        trading_days_per_year: Annualization factor for volatility

    Returns:
        RiskMetrics, or None when the sequences differ in length, either
        holds a non-positive price, fewer than two returns are available, or
        either return vector has no variance

    Formula:
        beta = cov(s, m) / var(m)
        alpha = mean(s) - beta * mean(m)
        correlation = cov(s, m) / sqrt(var(s) * var(m))
        volatility = sqrt(sum((s - mean(s))^2) / (n - 1)) * sqrt(252)
    """
    if len(stock_prices) != len(market_prices):
        logger.warning(
            "price_length_mismatch",
            stock_points=len(stock_prices),
            market_points=len(market_prices),
        )
        return None

    invalid = sum(1 for p in stock_prices if p <= 0) + sum(1 for p in market_prices if p <= 0)
    if invalid:
        logger.info("non_positive_prices", invalid_points=invalid)
        return None

    stock_returns, market_returns = simple_returns(stock_prices, market_prices)
    n = len(stock_returns)
    if n < MIN_RETURNS:
        logger.info("insufficient_returns", returns=n, required=MIN_RETURNS)
        return None

    mean_stock = float(np.mean(stock_returns))
    mean_market = float(np.mean(market_returns))

    stock_dev = stock_returns - mean_stock
    market_dev = market_returns - mean_market

    covariance = float(np.sum(stock_dev * market_dev))
    variance_market = float(np.sum(market_dev ** 2))
    variance_stock = float(np.sum(stock_dev ** 2))

    if variance_market == 0 or variance_stock == 0:
        logger.info(
            "zero_variance_returns",
            variance_stock=variance_stock,
            variance_market=variance_market,
        )
        return None

    beta = covariance / variance_market
    alpha = mean_stock - beta * mean_market
    correlation = covariance / math.sqrt(variance_stock * variance_market)
    r_squared = correlation ** 2

    standard_deviation = math.sqrt(variance_stock / (n - 1))
    volatility = standard_deviation * math.sqrt(trading_days_per_year)

    return RiskMetrics(
        beta=beta,
        alpha=alpha,
        correlation=correlation,
        r_squared=r_squared,
        volatility=volatility,
    )


def compute_metrics_for(
    aligned: AlignedPrices,
    trading_days_per_year: int = TRADING_DAYS_PER_YEAR,
) -> Optional[RiskMetrics]:
    """Run ``compute_metrics`` on the output of ``align``."""
    return compute_metrics(aligned.stock, aligned.market, trading_days_per_year)
