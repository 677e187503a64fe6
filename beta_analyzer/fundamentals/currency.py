"""
Currency normalization of fundamentals.

A listed Indian company can trade in INR while reporting its financials in
USD (Wipro, Infosys ADR-style filers). Price-derived fields follow the
trading currency, report-derived fields follow the reporting currency. Each
monetary field is classified once in ``FIELD_CLASSES`` and converted by that
classification's currency only.

Only USD and the base currency (INR) are modeled: a USD amount is multiplied
by the USD->INR rate, anything else is taken as already in base currency.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, Optional

import structlog

from beta_analyzer.data.base_fetcher import Fundamentals, Quote

logger = structlog.get_logger(__name__)

BASE_CURRENCY = "INR"
USD = "USD"


class FieldClass(str, Enum):
    PRICE_BASED = "price_based"
    REPORT_BASED = "report_based"
    RATIO = "ratio"


FIELD_CLASSES: Dict[str, FieldClass] = {
    "market_cap": FieldClass.PRICE_BASED,
    "enterprise_value": FieldClass.PRICE_BASED,
    "revenue": FieldClass.REPORT_BASED,
    "ebitda": FieldClass.REPORT_BASED,
    "pe_ratio": FieldClass.RATIO,
    "pb_ratio": FieldClass.RATIO,
    "dividend_yield": FieldClass.RATIO,
    "debt_to_equity": FieldClass.RATIO,
    "profit_margin": FieldClass.RATIO,
}


@dataclass(frozen=True)
class CurrencyContext:
    """Currencies of one security plus the USD->base rate of the run."""

    trading_currency: str = BASE_CURRENCY
    financial_currency: str = BASE_CURRENCY
    fx_rate_usd_to_base: float = 1.0

    def currency_for(self, field_class: FieldClass) -> Optional[str]:
        if field_class is FieldClass.PRICE_BASED:
            return self.trading_currency
        if field_class is FieldClass.REPORT_BASED:
            return self.financial_currency
        return None

    def factor_for(self, field_class: FieldClass) -> float:
        currency = self.currency_for(field_class)
        if currency and currency.upper() == USD:
            return self.fx_rate_usd_to_base
        return 1.0


@dataclass(frozen=True)
class FinancialSnapshot:
    """Fundamentals with monetary fields in base currency; None means absent."""

    market_cap: Optional[float] = None
    revenue: Optional[float] = None
    enterprise_value: Optional[float] = None
    ev_revenue_multiple: Optional[float] = None
    pe_ratio: Optional[float] = None
    pb_ratio: Optional[float] = None
    dividend_yield: Optional[float] = None
    ebitda: Optional[float] = None
    debt_to_equity: Optional[float] = None
    profit_margin: Optional[float] = None

    def to_dict(self) -> Dict[str, Optional[float]]:
        return asdict(self)


def normalize(
    value: Optional[float], field_class: FieldClass, context: CurrencyContext
) -> Optional[float]:
    """
    Convert one value into base currency according to its classification.

    Ratios pass through; absent values stay absent.
    """
    if value is None:
        return None
    if field_class is FieldClass.RATIO:
        return value
    return value * context.factor_for(field_class)


def normalize_field(
    field_name: str, value: Optional[float], context: CurrencyContext
) -> Optional[float]:
    """Convert a named snapshot field using the classification table."""
    try:
        field_class = FIELD_CLASSES[field_name]
    except KeyError:
        raise KeyError(f"Unclassified snapshot field: {field_name}") from None
    return normalize(value, field_class, context)


def resolve_context(
    quote: Optional[Quote],
    fundamentals: Optional[Fundamentals],
    fx_rate_usd_to_base: float,
    base_currency: str = BASE_CURRENCY,
) -> CurrencyContext:
    """
    Work out a security's trading and reporting currencies.

    Trading currency comes from the quote (``base_currency`` when unknown);
    reporting currency from the fundamentals, defaulting to the trading
    currency.
    """
    trading = (quote.currency if quote and quote.currency else base_currency).upper()
    financial = (
        fundamentals.reporting_currency
        if fundamentals and fundamentals.reporting_currency
        else trading
    ).upper()
    return CurrencyContext(
        trading_currency=trading,
        financial_currency=financial,
        fx_rate_usd_to_base=fx_rate_usd_to_base,
    )


def build_snapshot(
    quote: Optional[Quote],
    fundamentals: Optional[Fundamentals],
    context: CurrencyContext,
) -> FinancialSnapshot:
    """
    Assemble a FinancialSnapshot in base currency.

    The provider's EV/revenue multiple is only trusted when the security
    trades and reports in the same currency. Otherwise, or when the provider
    has none, it is recomputed from the normalized enterprise value and
    normalized revenue so numerator and denominator share a currency.
    """
    raw = {
        "market_cap": quote.market_cap if quote else None,
        "enterprise_value": fundamentals.enterprise_value if fundamentals else None,
        "revenue": fundamentals.revenue if fundamentals else None,
        "ebitda": fundamentals.ebitda if fundamentals else None,
        "pe_ratio": fundamentals.pe_ratio if fundamentals else None,
        "pb_ratio": fundamentals.pb_ratio if fundamentals else None,
        "dividend_yield": fundamentals.dividend_yield if fundamentals else None,
        "debt_to_equity": fundamentals.debt_to_equity if fundamentals else None,
        "profit_margin": fundamentals.profit_margin if fundamentals else None,
    }
    values = {name: normalize_field(name, value, context) for name, value in raw.items()}

    multiple = None
    if fundamentals and context.trading_currency.upper() == context.financial_currency.upper():
        multiple = fundamentals.ev_revenue_multiple
    if multiple is None:
        multiple = ev_revenue_multiple(values["enterprise_value"], values["revenue"])

    return FinancialSnapshot(ev_revenue_multiple=multiple, **values)


def ev_revenue_multiple(
    enterprise_value: Optional[float], revenue: Optional[float]
) -> Optional[float]:
    """EV / revenue for already-normalized inputs; None without usable revenue."""
    if enterprise_value is None or not revenue:
        return None
    return enterprise_value / revenue
