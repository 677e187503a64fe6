"""
Beta and peer analysis for NSE/BSE listed equities.

Regresses a stock's daily returns on its exchange benchmark (NIFTY 50 or
BSE SENSEX) for beta, alpha, correlation, R-squared and annualized
volatility, and ranks currency-normalized industry peers.
"""

__version__ = "0.1.0"
