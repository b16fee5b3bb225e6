"""
Feeds module - Venue market-data streams

Each venue implements VenueProtocol; MarketFeed owns the connection.
Use create_feed() to build a feed for a configured venue.
"""

from typing import Any, Callable, Optional

from spreadarb.core.errors import ConfigurationError
from spreadarb.feeds.base import (
    CloseReason,
    FeedConfig,
    FeedState,
    FeedStats,
    MarketFeed,
    MessageKind,
    ParsedMessage,
    SnapshotHandler,
    VenueProtocol,
)
from spreadarb.feeds.binance import BinanceProtocol
from spreadarb.feeds.bitget import BitgetProtocol

PROTOCOLS: dict[str, type[VenueProtocol]] = {
    BinanceProtocol.name: BinanceProtocol,
    BitgetProtocol.name: BitgetProtocol,
}


def create_feed(
    venue: str,
    symbol: str,
    config: Optional[FeedConfig] = None,
    on_snapshot: Optional[SnapshotHandler] = None,
    connector: Optional[Callable[..., Any]] = None,
) -> MarketFeed:
    """
    Build a MarketFeed for a venue name.

    Raises:
        ConfigurationError: unknown venue
    """
    protocol_cls = PROTOCOLS.get(venue)
    if protocol_cls is None:
        raise ConfigurationError(
            f"Unknown venue: {venue}",
            details={"available": sorted(PROTOCOLS)},
        )
    return MarketFeed(
        protocol_cls(symbol),
        config=config,
        on_snapshot=on_snapshot,
        connector=connector,
    )


__all__ = [
    "CloseReason",
    "FeedConfig",
    "FeedState",
    "FeedStats",
    "MarketFeed",
    "MessageKind",
    "ParsedMessage",
    "VenueProtocol",
    "BinanceProtocol",
    "BitgetProtocol",
    "PROTOCOLS",
    "create_feed",
]
