"""
Currency-normalized fundamentals.

Usage:
    from beta_analyzer.fundamentals import resolve_context, build_snapshot

    context = resolve_context(quote, fundamentals, fx_rate_usd_to_base=83.2)
    snapshot = build_snapshot(quote, fundamentals, context)
"""

from beta_analyzer.fundamentals.currency import (
    BASE_CURRENCY,
    FIELD_CLASSES,
    CurrencyContext,
    FieldClass,
    FinancialSnapshot,
    build_snapshot,
    ev_revenue_multiple,
    normalize,
    normalize_field,
    resolve_context,
)

__all__ = [
    "BASE_CURRENCY",
    "FIELD_CLASSES",
    "CurrencyContext",
    "FieldClass",
    "FinancialSnapshot",
    "build_snapshot",
    "ev_revenue_multiple",
    "normalize",
    "normalize_field",
    "resolve_context",
]
