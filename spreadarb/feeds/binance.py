"""
Binance USDⓈ-M futures partial-depth stream.

Stream: wss://fstream.binance.com/ws/<symbol>@depth5
The stream is selected by URL, so no subscription frame is sent. Binance
may probe liveness with a text "ping"; it is answered with "pong".
"""

import json

from spreadarb.domain.models import BookSnapshot
from spreadarb.feeds.base import MessageKind, ParsedMessage, VenueProtocol

BINANCE_FUTURES_WS = "wss://fstream.binance.com/ws"


class BinanceProtocol(VenueProtocol):
    """Binance futures depth5 wire format."""

    name = "binance"

    @property
    def url(self) -> str:
        return f"{BINANCE_FUTURES_WS}/{self.symbol.lower()}@depth5"

    def _parse(self, raw: str) -> ParsedMessage:
        if raw.strip() == "ping":
            return ParsedMessage(kind=MessageKind.PING, reply="pong")

        payload = json.loads(raw)
        if payload.get("e") != "depthUpdate":
            return ParsedMessage(kind=MessageKind.CONTROL)

        snapshot = BookSnapshot.from_levels(
            self.name,
            payload.get("b") or [],
            payload.get("a") or [],
        )
        return ParsedMessage(kind=MessageKind.SNAPSHOT, snapshot=snapshot)
