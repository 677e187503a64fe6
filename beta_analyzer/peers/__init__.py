"""
Peer Discovery Module.

This module provides functionality for:
- Gathering peer candidates from recommendations and the industry directory
- Verifying candidates against the target's industry
- Ranking peers by market cap in base currency

Usage:
    from beta_analyzer.peers import PeerDiscovery

    discovery = PeerDiscovery(provider, directory)
    peers = await discovery.discover("TCS.NS", "Information Technology Services", 83.2)
"""

from beta_analyzer.peers.finder import (
    MAX_CANDIDATES,
    MAX_PEERS,
    PeerCandidate,
    PeerDiscovery,
    rank_by_market_cap,
)

__all__ = [
    "MAX_CANDIDATES",
    "MAX_PEERS",
    "PeerCandidate",
    "PeerDiscovery",
    "rank_by_market_cap",
]
