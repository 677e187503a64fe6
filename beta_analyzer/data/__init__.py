"""
Data Access Module

Provides market data and the offline industry directory.

Module Structure:
- base_fetcher.py: MarketDataProvider contract, records, throttling, caches
- yfinance_fetcher.py: YFinanceProvider (yfinance + yahooquery)
- directory.py: IndustryDirectory snapshot, spreadsheet loader, DirectoryHolder

Usage:
    from beta_analyzer.data import YFinanceProvider, load_industry_directory

    provider = YFinanceProvider()
    quote = await provider.get_quote("INFY.NS")
    directory = load_industry_directory("attached_assets/industry_directory.xlsx")
"""

from beta_analyzer.data.base_fetcher import (
    CompanyProfile,
    Fundamentals,
    FXRateCache,
    InfoCache,
    MarketDataProvider,
    Quote,
    ThrottledProvider,
    FX_CACHE_TTL_SECONDS,
    PER_CALL_TIMEOUT,
    USD_INR_PAIR,
)
from beta_analyzer.data.directory import (
    DirectoryEntry,
    DirectoryHolder,
    IndustryDirectory,
    directory_from_frame,
    load_industry_directory,
)
from beta_analyzer.data.yfinance_fetcher import YFinanceProvider

__all__ = [
    # Provider contract and records
    'MarketDataProvider',
    'ThrottledProvider',
    'Quote',
    'Fundamentals',
    'CompanyProfile',

    # Caches
    'FXRateCache',
    'InfoCache',

    # Implementations
    'YFinanceProvider',

    # Industry directory
    'DirectoryEntry',
    'DirectoryHolder',
    'IndustryDirectory',
    'directory_from_frame',
    'load_industry_directory',

    # Constants
    'FX_CACHE_TTL_SECONDS',
    'PER_CALL_TIMEOUT',
    'USD_INR_PAIR',
]
