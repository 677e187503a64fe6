"""
Indian exchange ticker utilities.

Resolves user-entered tickers to Yahoo-style symbols for NSE/BSE, maps each
exchange to its benchmark index, and strips suffixes for directory lookups.
"""

import re
from dataclasses import dataclass
from typing import Dict

import structlog

from beta_analyzer.exceptions import RequestValidationError, TickerValidationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ExchangeInfo:
    """Yahoo suffix and benchmark index for a supported exchange."""

    code: str
    suffix: str
    benchmark_symbol: str
    benchmark_name: str
    exchange_name: str


# Format: "exchange_code": ExchangeInfo(yfinance_suffix, benchmark index)
EXCHANGES: Dict[str, ExchangeInfo] = {
    "NSE": ExchangeInfo(
        code="NSE",
        suffix=".NS",
        benchmark_symbol="^NSEI",
        benchmark_name="NIFTY 50",
        exchange_name="National Stock Exchange of India",
    ),
    "BSE": ExchangeInfo(
        code="BSE",
        suffix=".BO",
        benchmark_symbol="^BSESN",
        benchmark_name="BSE SENSEX",
        exchange_name="Bombay Stock Exchange",
    ),
}

# Directory entries carry bare tickers; they are assumed to trade on NSE
DEFAULT_DIRECTORY_SUFFIX = EXCHANGES["NSE"].suffix

MAX_TICKER_LENGTH = 20


def get_exchange(exchange: str) -> ExchangeInfo:
    """
    Look up a supported exchange.

    Raises:
        RequestValidationError: If the exchange is not NSE or BSE
    """
    code = (exchange or "").strip().upper()
    if code not in EXCHANGES:
        raise RequestValidationError(
            f"Unsupported exchange: {exchange!r}",
            field="exchange",
            value=exchange,
            expected=" or ".join(EXCHANGES),
        )
    return EXCHANGES[code]


def validate_ticker(ticker: str) -> str:
    """
    Validate ticker format and return normalized uppercase ticker.

    Validation rules:
    1. Cannot be empty or whitespace-only
    2. Max length: 20 characters
    3. Allowed characters: A-Z, a-z, 0-9, '.', '-', '&', '^'
    4. Cannot start with a dot

    Args:
        ticker: The ticker symbol to validate

    Returns:
        Normalized uppercase ticker

    Raises:
        TickerValidationError: If ticker format is invalid

    Examples:
        >>> validate_ticker("reliance")
        'RELIANCE'
        >>> validate_ticker("M&M.NS")
        'M&M.NS'
        >>> validate_ticker("^NSEI")
        '^NSEI'
    """
    if not ticker or not str(ticker).strip():
        raise TickerValidationError(
            "Ticker cannot be empty",
            ticker=str(ticker),
            reason="empty_ticker"
        )

    ticker = str(ticker).strip()

    if len(ticker) > MAX_TICKER_LENGTH:
        raise TickerValidationError(
            f"Ticker exceeds maximum length of {MAX_TICKER_LENGTH} characters (got {len(ticker)})",
            ticker=ticker,
            reason="ticker_too_long"
        )

    # '&' appears in NSE symbols such as M&M and J&KBANK
    if not re.match(r'^[\w\.\-\^&]+$', ticker):
        raise TickerValidationError(
            "Ticker contains invalid characters (allowed: A-Z, a-z, 0-9, '.', '-', '&', '^')",
            ticker=ticker,
            reason="invalid_characters"
        )

    if ticker.startswith('.'):
        raise TickerValidationError(
            "Ticker cannot start with a dot",
            ticker=ticker,
            reason="invalid_format"
        )

    return ticker.upper()


def resolve_symbol(ticker: str, exchange: str) -> str:
    """
    Append the exchange suffix unless the ticker already carries it.

    Examples:
        >>> resolve_symbol("tcs", "NSE")
        'TCS.NS'
        >>> resolve_symbol("TCS.BO", "BSE")
        'TCS.BO'
    """
    info = get_exchange(exchange)
    ticker = validate_ticker(ticker)
    if ticker.endswith(info.suffix):
        return ticker
    return f"{ticker}{info.suffix}"


def bare_symbol(symbol: str) -> str:
    """Strip the exchange suffix ("INFY.NS" -> "INFY")."""
    return symbol.strip().upper().split('.')[0]


def to_directory_symbol(raw_ticker: str) -> str:
    """
    Normalize a ticker as written in an industry directory.

    Directory exports often prefix the exchange ("NSE:TCS"); only the part
    after the colon is kept.
    """
    raw_ticker = str(raw_ticker or "").strip()
    if ':' in raw_ticker:
        raw_ticker = raw_ticker.split(':')[1]
    return raw_ticker.strip().upper()


def to_listed_symbol(bare: str) -> str:
    """Map a bare directory ticker to its default (NSE) listing."""
    return f"{bare_symbol(bare)}{DEFAULT_DIRECTORY_SUFFIX}"
