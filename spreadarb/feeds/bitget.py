"""
Bitget USDT-M futures books5 channel.

Endpoint: wss://ws.bitget.com/v2/ws/public
Requires an explicit subscription and a client "ping" at least every 30s;
the venue answers "pong".
"""

import json

from spreadarb.domain.models import BookSnapshot
from spreadarb.feeds.base import MessageKind, ParsedMessage, VenueProtocol

BITGET_PUBLIC_WS = "wss://ws.bitget.com/v2/ws/public"


class BitgetProtocol(VenueProtocol):
    """Bitget v2 public books5 wire format."""

    name = "bitget"
    ping_message = "ping"

    def __init__(self, symbol: str, inst_type: str = "USDT-FUTURES"):
        super().__init__(symbol)
        self.inst_type = inst_type

    @property
    def url(self) -> str:
        return BITGET_PUBLIC_WS

    def subscribe_message(self) -> str:
        return json.dumps({
            "op": "subscribe",
            "args": [{
                "instType": self.inst_type,
                "channel": "books5",
                "instId": self.symbol,
            }],
        })

    def _parse(self, raw: str) -> ParsedMessage:
        if raw.strip() == "pong":
            return ParsedMessage(kind=MessageKind.PONG)

        payload = json.loads(raw)

        event = payload.get("event")
        if event == "error":
            self.logger.warning(f"bitget error event: {payload}")
            return ParsedMessage(kind=MessageKind.CONTROL)
        if event:
            self.logger.info(f"bitget event: {event} {payload.get('arg')}")
            return ParsedMessage(kind=MessageKind.CONTROL)

        if payload.get("action") not in ("snapshot", "update"):
            return ParsedMessage(kind=MessageKind.CONTROL)

        book = payload["data"][0]
        snapshot = BookSnapshot.from_levels(
            self.name,
            book.get("bids") or [],
            book.get("asks") or [],
        )
        return ParsedMessage(kind=MessageKind.SNAPSHOT, snapshot=snapshot)
