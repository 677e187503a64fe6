"""
PeerDiscovery - Gather, verify and rank industry peers.

Candidates come from two places: the provider's "similar symbols"
recommendations and the offline industry directory. Each candidate is
verified against the target's industry, enriched with its quote and
fundamentals, and ranked by market cap in base currency.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog

from beta_analyzer.data.base_fetcher import Fundamentals, MarketDataProvider, Quote
from beta_analyzer.data.directory import IndustryDirectory
from beta_analyzer.fundamentals.currency import (
    BASE_CURRENCY,
    FieldClass,
    normalize,
    resolve_context,
)
from beta_analyzer.ticker_utils import to_listed_symbol

logger = structlog.get_logger(__name__)

MAX_CANDIDATES = 20
MAX_PEERS = 10


@dataclass
class PeerCandidate:
    """A verified, enriched peer. Quote and fundamentals are kept for reuse."""

    symbol: str
    industry_label: str
    market_cap_base: Optional[float] = None
    quote: Optional[Quote] = field(default=None, repr=False, compare=False)
    fundamentals: Optional[Fundamentals] = field(default=None, repr=False, compare=False)

    @property
    def rank_value(self) -> float:
        return self.market_cap_base or 0.0


def rank_by_market_cap(
    candidates: List[PeerCandidate], limit: Optional[int] = MAX_PEERS
) -> List[PeerCandidate]:
    """Stable sort by market cap descending (absent ranks as 0), then truncate."""
    ranked = sorted(candidates, key=lambda c: c.rank_value, reverse=True)
    return ranked if limit is None else ranked[:limit]


class PeerDiscovery:
    """
    Find and rank industry peers for an Indian-listed stock.

    Features:
    - Union of provider recommendations and same-industry directory entries
    - Candidate list bounded before any per-candidate network calls
    - Industry verification against provider profile OR directory label
    - Market cap normalized to base currency for ranking
    - Per-candidate failures drop only that candidate

    Example:
        discovery = PeerDiscovery(provider, directory)
        peers = await discovery.discover("TCS.NS", "Information Technology Services", 83.2)
        # Returns: [PeerCandidate(symbol="INFY.NS", ...), ...]
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        directory: Optional[IndustryDirectory] = None,
        max_candidates: int = MAX_CANDIDATES,
        max_peers: int = MAX_PEERS,
        base_currency: str = BASE_CURRENCY,
    ):
        """
        Initialize PeerDiscovery.

        Args:
            provider: Market data provider (throttling is the caller's choice)
            directory: Industry directory snapshot; None behaves as empty
            max_candidates: Candidates verified per run
            max_peers: Peers returned per run
            base_currency: Currency market caps are ranked in
        """
        self._provider = provider
        self._directory = directory or IndustryDirectory()
        self._max_candidates = max_candidates
        self._max_peers = max_peers
        self._base_currency = base_currency
        logger.info(
            "peer_discovery_initialized",
            directory_entries=len(self._directory),
            max_candidates=max_candidates,
            max_peers=max_peers,
        )

    async def discover(
        self,
        target: str,
        target_industry: Optional[str],
        fx_rate: float,
    ) -> List[PeerCandidate]:
        """
        Find peers for ``target``.

        Args:
            target: Canonical target symbol (e.g. "TCS.NS")
            target_industry: Provider industry of the target, if known
            fx_rate: USD->base rate used to normalize market caps

        Returns:
            Up to ``max_peers`` candidates, market cap descending
        """
        target = target.upper().strip()
        directory_industry = self._directory.industry_of(target)

        logger.info(
            "discovering_peers",
            target=target,
            industry=target_industry,
            directory_industry=directory_industry,
        )

        if not target_industry and not directory_industry:
            logger.warning("no_target_industry", target=target)
            return []

        candidates = await self.gather_candidates(target, directory_industry)
        bounded = candidates[:self._max_candidates]

        if not bounded:
            logger.warning("no_peer_candidates_found", target=target)
            return []

        results = await asyncio.gather(
            *(
                self._verify_and_enrich(symbol, target, target_industry, directory_industry, fx_rate)
                for symbol in bounded
            ),
            return_exceptions=True,
        )

        verified = []
        for symbol, result in zip(bounded, results):
            if isinstance(result, Exception):
                logger.warning(
                    "peer_candidate_failed",
                    symbol=symbol,
                    error_type=type(result).__name__,
                    error=str(result),
                )
                continue
            if result is not None:
                verified.append(result)

        peers = rank_by_market_cap(verified, self._max_peers)

        logger.info(
            "peers_found",
            target=target,
            total_candidates=len(candidates),
            checked=len(bounded),
            verified=len(verified),
            peers_returned=len(peers),
        )

        return peers

    async def gather_candidates(
        self, target: str, directory_industry: Optional[str]
    ) -> List[str]:
        """
        Recommended symbols followed by directory industry peers.

        De-duplicated in first-seen order; the target is never included.
        """
        recommended = await self._provider.get_similar(target)

        industry_peers: List[str] = []
        if directory_industry:
            industry_peers = [
                to_listed_symbol(symbol)
                for symbol in self._directory.symbols_in_industry(directory_industry, exclude=target)
            ]

        seen = {target}
        candidates = []
        for symbol in list(recommended) + industry_peers:
            symbol = (symbol or "").upper().strip()
            if not symbol or symbol in seen:
                continue
            seen.add(symbol)
            candidates.append(symbol)

        logger.debug(
            "peer_candidates_gathered",
            target=target,
            recommended=len(recommended),
            directory=len(industry_peers),
            unique=len(candidates),
        )
        return candidates

    def matches_industry(
        self,
        symbol: str,
        provider_industry: Optional[str],
        target_industry: Optional[str],
        directory_industry: Optional[str],
    ) -> bool:
        """A candidate qualifies when either classification source agrees."""
        if target_industry and provider_industry == target_industry:
            return True
        if directory_industry and self._directory.industry_of(symbol) == directory_industry:
            return True
        return False

    async def _verify_and_enrich(
        self,
        symbol: str,
        target: str,
        target_industry: Optional[str],
        directory_industry: Optional[str],
        fx_rate: float,
    ) -> Optional[PeerCandidate]:
        if symbol == target:
            return None

        profile = await self._provider.get_profile(symbol)
        if profile is None:
            logger.debug("peer_rejected_no_profile", symbol=symbol)
            return None

        if not self.matches_industry(symbol, profile.industry, target_industry, directory_industry):
            logger.debug("peer_rejected_industry", symbol=symbol, industry=profile.industry)
            return None

        quote, fundamentals = await asyncio.gather(
            self._provider.get_quote(symbol),
            self._provider.get_fundamentals(symbol),
        )

        context = resolve_context(quote, fundamentals, fx_rate, self._base_currency)
        market_cap = normalize(
            quote.market_cap if quote else None, FieldClass.PRICE_BASED, context
        )

        return PeerCandidate(
            symbol=symbol,
            industry_label=profile.label,
            market_cap_base=market_cap,
            quote=quote,
            fundamentals=fundamentals,
        )

    def get_directory_stats(self) -> Dict[str, int]:
        """Directory size and number of distinct industries."""
        entries = self._directory.entries
        return {
            "directory_entries": len(entries),
            "industries": len({e.industry for e in entries if e.industry}),
        }
