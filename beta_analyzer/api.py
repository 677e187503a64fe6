"""
Request surface for beta calculation.

``calculate`` takes the JSON-shaped request body
``{ticker, exchange, startDate, endDate, period}`` and returns a
``(status, body)`` pair ready to be written by whatever HTTP layer hosts it.
"""

from typing import Any, Dict, Mapping, Optional, Tuple

import structlog

from beta_analyzer.analysis.history import SearchHistoryStorage
from beta_analyzer.analysis.orchestrator import AnalysisOrchestrator
from beta_analyzer.config import config, validate_environment_variables
from beta_analyzer.data.directory import DirectoryHolder
from beta_analyzer.data.yfinance_fetcher import YFinanceProvider
from beta_analyzer.exceptions import (
    BetaAnalyzerError,
    RequestValidationError,
    to_error_response,
)

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = ("ticker", "exchange", "startDate", "endDate")

_default_orchestrator: Optional[AnalysisOrchestrator] = None


def get_default_orchestrator() -> AnalysisOrchestrator:
    """Build (once) an orchestrator wired to yfinance, the configured directory and history DB."""
    global _default_orchestrator
    if _default_orchestrator is None:
        validate_environment_variables()
        _default_orchestrator = AnalysisOrchestrator(
            YFinanceProvider(fx_cache_ttl_seconds=config.fx_cache_ttl_seconds),
            DirectoryHolder(config.industry_directory_path),
            SearchHistoryStorage(config.history_db_path),
            config,
        )
    return _default_orchestrator


def parse_request(payload: Any) -> Dict[str, Any]:
    """
    Check the request body shape.

    Raises:
        RequestValidationError: If the body is not an object or a required
            field is missing or not a string
    """
    if not isinstance(payload, Mapping):
        raise RequestValidationError(
            "Request body must be a JSON object",
            field="body",
            expected="object",
        )

    for name in REQUIRED_FIELDS:
        value = payload.get(name)
        if not isinstance(value, str) or not value.strip():
            raise RequestValidationError(
                f"Missing or invalid field: {name}",
                field=name,
                value=value if isinstance(value, (str, int, float)) else None,
                expected="non-empty string",
            )

    period = payload.get("period")
    if period is not None and not isinstance(period, str):
        raise RequestValidationError(
            "Invalid field: period",
            field="period",
            value=str(period),
            expected="string",
        )

    return {
        "symbol": payload["ticker"].strip(),
        "exchange": payload["exchange"].strip(),
        "start_date": payload["startDate"].strip(),
        "end_date": payload["endDate"].strip(),
        "period_label": period or None,
    }


async def calculate(
    payload: Any, orchestrator: Optional[AnalysisOrchestrator] = None
) -> Tuple[int, Dict[str, Any]]:
    """
    Serve one beta calculation request.

    Args:
        payload: Decoded request body
        orchestrator: Orchestrator to use (the default yfinance-backed one
            when omitted)

    Returns:
        Tuple of (status_code, body); 200 with the analysis result on success
    """
    try:
        request = parse_request(payload)
        orchestrator = orchestrator or get_default_orchestrator()
        result = await orchestrator.run(**request)
        return 200, result.to_dict()
    except BetaAnalyzerError as e:
        logger.info(
            "calculate_request_rejected",
            error_type=type(e).__name__,
            error=str(e),
        )
        return to_error_response(e)
    except Exception as e:
        logger.exception(
            "calculate_request_failed",
            error_type=type(e).__name__,
            error=str(e),
        )
        return to_error_response(e)
