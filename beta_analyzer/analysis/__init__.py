"""
Analysis Module.

- orchestrator.py: AnalysisOrchestrator composing one beta-and-peers run
- history.py: SQLite search history of completed runs
"""

from beta_analyzer.analysis.history import (
    RECENT_SEARCH_LIMIT,
    SearchHistoryStorage,
    SearchRecord,
)
from beta_analyzer.analysis.orchestrator import (
    FX_SOURCE_FALLBACK,
    FX_SOURCE_LIVE,
    AnalysisOrchestrator,
    AnalysisResult,
    PeerResult,
    parse_date,
    sort_peers,
)

__all__ = [
    "AnalysisOrchestrator",
    "AnalysisResult",
    "PeerResult",
    "parse_date",
    "sort_peers",
    "FX_SOURCE_FALLBACK",
    "FX_SOURCE_LIVE",
    "SearchHistoryStorage",
    "SearchRecord",
    "RECENT_SEARCH_LIMIT",
]
