"""
Example usage of the beta and peer analysis.

This script runs one analysis for an NSE or BSE stock against its
benchmark and prints the target's statistics and its ranked peers.

Usage:
    python examples/beta_analysis_example.py TCS NSE 2020-01-01 2024-12-31
"""

import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from beta_analyzer.analysis import AnalysisOrchestrator, SearchHistoryStorage
from beta_analyzer.config import config
from beta_analyzer.data import DirectoryHolder, YFinanceProvider
from beta_analyzer.exceptions import BetaAnalyzerError


def _fmt(value, digits=3):
    return "-" if value is None else f"{value:.{digits}f}"


def _crores(value):
    return "-" if value is None else f"{value / 1e7:,.0f} Cr"


async def run_analysis(ticker: str, exchange: str, start: str, end: str):
    """
    Run one analysis and print the result.

    Args:
        ticker: Stock ticker (with or without exchange suffix)
        exchange: "NSE" or "BSE"
        start: First day, YYYY-MM-DD
        end: Last day, YYYY-MM-DD
    """
    print(f"\n{'='*80}")
    print(f"Beta Analysis for {ticker} ({exchange}) {start} -> {end}")
    print(f"{'='*80}\n")

    orchestrator = AnalysisOrchestrator(
        YFinanceProvider(fx_cache_ttl_seconds=config.fx_cache_ttl_seconds),
        DirectoryHolder(config.industry_directory_path),
        SearchHistoryStorage(config.history_db_path),
    )

    try:
        result = await orchestrator.run(ticker, exchange, start, end)
    except BetaAnalyzerError as e:
        print(f"✗ Analysis failed: {e}")
        return

    m = result.metrics
    print(f"{result.name} ({result.symbol}) vs {result.market_index}")
    print(f"  Beta:        {_fmt(m.beta)}")
    print(f"  Alpha:       {_fmt(m.alpha, 5)}")
    print(f"  Correlation: {_fmt(m.correlation)}")
    print(f"  R-squared:   {_fmt(m.r_squared)}")
    print(f"  Volatility:  {_fmt(m.volatility * 100, 1)}%")
    print(f"  Market cap:  {_crores(result.snapshot.market_cap)}")
    print(f"  EV/Revenue:  {_fmt(result.snapshot.ev_revenue_multiple, 2)}")
    print(f"  USD/INR:     {_fmt(result.fx_rate, 2)} ({result.fx_rate_source})")
    print()

    if not result.peers:
        print("No peers found.")
        return

    print(f"{'Peer':<16}{'Beta':>8}{'R²':>8}{'Market cap':>20}  Industry")
    print("-" * 80)
    for peer in result.peers:
        beta = peer.metrics.beta if peer.metrics else None
        r_squared = peer.metrics.r_squared if peer.metrics else None
        print(
            f"{peer.symbol:<16}{_fmt(beta, 2):>8}{_fmt(r_squared, 2):>8}"
            f"{_crores(peer.snapshot.market_cap):>20}  {peer.industry_label}"
        )


async def main():
    args = sys.argv[1:]
    ticker = args[0] if len(args) > 0 else "TCS"
    exchange = args[1] if len(args) > 1 else "NSE"
    start = args[2] if len(args) > 2 else "2020-01-01"
    end = args[3] if len(args) > 3 else "2024-12-31"

    await run_analysis(ticker, exchange, start, end)


if __name__ == "__main__":
    asyncio.run(main())
