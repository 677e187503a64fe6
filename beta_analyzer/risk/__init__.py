"""
Return alignment and single-factor regression.

Usage:
    from beta_analyzer.risk import PriceSeries, align, compute_metrics_for

    aligned = align(stock_series, benchmark_series)
    metrics = compute_metrics_for(aligned)  # None when the sample is degenerate
"""

from beta_analyzer.risk.alignment import AlignedPrices, PricePoint, PriceSeries, align
from beta_analyzer.risk.regression import (
    RiskMetrics,
    compute_metrics,
    compute_metrics_for,
    simple_returns,
)

__all__ = [
    "AlignedPrices",
    "PricePoint",
    "PriceSeries",
    "align",
    "RiskMetrics",
    "compute_metrics",
    "compute_metrics_for",
    "simple_returns",
]
