"""Tests for venue protocols and the market feed lifecycle."""

import asyncio
import json

import pytest

from spreadarb.core.errors import ConfigurationError, MalformedMessageError
from spreadarb.domain.models import PriceLevel
from spreadarb.feeds import create_feed
from spreadarb.feeds.base import CloseReason, FeedConfig, FeedState, MarketFeed, MessageKind
from spreadarb.feeds.binance import BinanceProtocol
from spreadarb.feeds.bitget import BitgetProtocol

CLOSE = object()

BINANCE_DEPTH = json.dumps({
    "e": "depthUpdate",
    "s": "ETHUSDT",
    "b": [["2000.10", "1.5"], ["2000.00", "4"]],
    "a": [["2000.20", "2.0"]],
})

BITGET_BOOKS = json.dumps({
    "action": "snapshot",
    "arg": {"instType": "USDT-FUTURES", "channel": "books5", "instId": "ETHUSDT"},
    "data": [{"bids": [["2001.5", "3"]], "asks": [["2001.6", "1"]], "ts": "1700000000000"}],
})


class FakeWebSocket:
    """In-memory websocket: queued inbound frames, recorded outbound frames."""

    def __init__(self, *messages):
        self.incoming: asyncio.Queue = asyncio.Queue()
        for message in messages:
            self.incoming.put_nowait(message)
        self.sent: list = []

    def push(self, message):
        self.incoming.put_nowait(message)

    async def send(self, data):
        self.sent.append(data)

    def __aiter__(self):
        return self

    async def __anext__(self):
        message = await self.incoming.get()
        if message is CLOSE:
            raise StopAsyncIteration
        if isinstance(message, Exception):
            raise message
        return message


class _Connection:
    def __init__(self, item):
        self.item = item

    async def __aenter__(self):
        if isinstance(self.item, Exception):
            raise self.item
        return self.item

    async def __aexit__(self, *exc):
        return False


class FakeConnector:
    """websockets.connect stand-in returning scripted sockets or errors."""

    def __init__(self, *items):
        self.items = list(items)
        self.calls: list = []

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        item = self.items.pop(0) if self.items else FakeWebSocket()
        return _Connection(item)


class RefusingConnector:
    """Connector whose call itself raises, before any context is entered."""

    def __init__(self):
        self.calls = 0

    def __call__(self, url, **kwargs):
        self.calls += 1
        raise OSError("network unreachable")


async def wait_until(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.001)


FAST = FeedConfig(reconnect_delay=0, heartbeat_interval=0.01)


class TestBinanceProtocol:
    """Tests for BinanceProtocol."""

    def test_url(self):
        assert BinanceProtocol("ETH-USDT").url == "wss://fstream.binance.com/ws/ethusdt@depth5"

    def test_no_subscription_or_heartbeat(self):
        protocol = BinanceProtocol("ETHUSDT")
        assert protocol.subscribe_message() is None
        assert not protocol.requires_heartbeat

    def test_parse_depth(self):
        message = BinanceProtocol("ETHUSDT").parse(BINANCE_DEPTH)
        assert message.kind is MessageKind.SNAPSHOT
        assert message.snapshot.venue == "binance"
        assert message.snapshot.best_bid == PriceLevel(2000.10, 1.5)
        assert message.snapshot.best_ask == PriceLevel(2000.20, 2.0)

    def test_ping_is_answered(self):
        message = BinanceProtocol("ETHUSDT").parse("ping")
        assert message.kind is MessageKind.PING
        assert message.reply == "pong"

    def test_other_events_are_control(self):
        message = BinanceProtocol("ETHUSDT").parse(json.dumps({"result": None, "id": 1}))
        assert message.kind is MessageKind.CONTROL

    @pytest.mark.parametrize("raw", [
        "{not json",
        "[1, 2]",
        json.dumps({"e": "depthUpdate", "b": [["x", "1"]], "a": [["1", "1"]]}),
    ])
    def test_malformed(self, raw):
        with pytest.raises(MalformedMessageError) as exc:
            BinanceProtocol("ETHUSDT").parse(raw)
        assert exc.value.venue == "binance"
        assert exc.value.code == "MALFORMED_MESSAGE"


class TestBitgetProtocol:
    """Tests for BitgetProtocol."""

    def test_subscription(self):
        payload = json.loads(BitgetProtocol("ETHUSDT").subscribe_message())
        assert payload == {
            "op": "subscribe",
            "args": [{"instType": "USDT-FUTURES", "channel": "books5", "instId": "ETHUSDT"}],
        }

    def test_heartbeat_frame(self):
        protocol = BitgetProtocol("ETHUSDT")
        assert protocol.requires_heartbeat
        assert protocol.ping_message == "ping"

    def test_parse_snapshot(self):
        message = BitgetProtocol("ETHUSDT").parse(BITGET_BOOKS)
        assert message.kind is MessageKind.SNAPSHOT
        assert message.snapshot.venue == "bitget"
        assert message.snapshot.best_bid == PriceLevel(2001.5, 3.0)
        assert message.snapshot.best_ask == PriceLevel(2001.6, 1.0)

    def test_parse_update_action(self):
        raw = BITGET_BOOKS.replace('"snapshot"', '"update"')
        assert BitgetProtocol("ETHUSDT").parse(raw).kind is MessageKind.SNAPSHOT

    def test_pong_and_events(self):
        protocol = BitgetProtocol("ETHUSDT")
        assert protocol.parse("pong").kind is MessageKind.PONG
        ack = json.dumps({"event": "subscribe", "arg": {"channel": "books5"}})
        assert protocol.parse(ack).kind is MessageKind.CONTROL
        error = json.dumps({"event": "error", "code": 30001, "msg": "instId doesn't exist"})
        assert protocol.parse(error).kind is MessageKind.CONTROL

    def test_missing_data_is_malformed(self):
        with pytest.raises(MalformedMessageError):
            BitgetProtocol("ETHUSDT").parse(json.dumps({"action": "snapshot", "data": []}))


class TestFeedConfig:
    """Tests for FeedConfig."""

    def test_defaults(self):
        config = FeedConfig.from_config({})
        assert config.reconnect_delay == 2.0
        assert config.heartbeat_interval == 18.0

    def test_rejects_bad_values(self):
        with pytest.raises(ConfigurationError):
            FeedConfig.from_config({"heartbeat_interval_seconds": 0})

    def test_create_feed_unknown_venue(self):
        with pytest.raises(ConfigurationError):
            create_feed("okx", "ETHUSDT")

    def test_create_feed(self):
        feed = create_feed("bitget", "ethusdt")
        assert isinstance(feed.protocol, BitgetProtocol)
        assert feed.protocol.symbol == "ETHUSDT"
        assert feed.state is FeedState.CLOSED


class TestMarketFeed:
    """Tests for MarketFeed lifecycle."""

    @pytest.mark.asyncio
    async def test_delivers_snapshots(self):
        ws = FakeWebSocket(BINANCE_DEPTH)
        connector = FakeConnector(ws)
        received = []
        feed = MarketFeed(BinanceProtocol("ETHUSDT"), FAST, received.append, connector)

        feed.connect()
        await wait_until(lambda: received)

        assert feed.is_connected
        assert feed.latest == received[0]
        assert received[0].best_bid.price == 2000.10
        assert connector.calls[0][0] == "wss://fstream.binance.com/ws/ethusdt@depth5"
        assert ws.sent == []
        await feed.close()

    @pytest.mark.asyncio
    async def test_answers_venue_ping(self):
        ws = FakeWebSocket("ping")
        feed = MarketFeed(BinanceProtocol("ETHUSDT"), FAST, None, FakeConnector(ws))

        feed.connect()
        await wait_until(lambda: ws.sent)

        assert ws.sent == ["pong"]
        await feed.close()

    @pytest.mark.asyncio
    async def test_malformed_message_dropped(self):
        ws = FakeWebSocket("{garbage", BINANCE_DEPTH)
        received = []
        feed = MarketFeed(BinanceProtocol("ETHUSDT"), FAST, received.append, FakeConnector(ws))

        feed.connect()
        await wait_until(lambda: received)

        assert feed.stats.dropped == 1
        assert feed.stats.snapshots == 1
        assert feed.is_connected
        await feed.close()

    @pytest.mark.asyncio
    async def test_handler_error_does_not_kill_feed(self):
        ws = FakeWebSocket(BINANCE_DEPTH, BINANCE_DEPTH)
        calls = []

        def handler(snapshot):
            calls.append(snapshot)
            raise RuntimeError("consumer bug")

        feed = MarketFeed(BinanceProtocol("ETHUSDT"), FAST, handler, FakeConnector(ws))
        feed.connect()
        await wait_until(lambda: len(calls) == 2)

        assert feed.is_connected
        assert feed.stats.reconnects == 0
        await feed.close()

    @pytest.mark.asyncio
    async def test_subscribes_and_heartbeats(self):
        ws = FakeWebSocket(BITGET_BOOKS, "pong")
        received = []
        feed = MarketFeed(BitgetProtocol("ETHUSDT"), FAST, received.append, FakeConnector(ws))

        feed.connect()
        await wait_until(lambda: received and "ping" in ws.sent)

        assert json.loads(ws.sent[0])["op"] == "subscribe"
        assert feed.stats.heartbeats >= 1
        await feed.close()

    @pytest.mark.asyncio
    async def test_reconnects_after_handshake_failure(self):
        ws = FakeWebSocket(BINANCE_DEPTH)
        connector = FakeConnector(OSError("connection refused"), ws)
        received = []
        feed = MarketFeed(BinanceProtocol("ETHUSDT"), FAST, received.append, connector)

        feed.connect()
        await wait_until(lambda: received)

        assert len(connector.calls) == 2
        assert feed.stats.reconnects == 1
        assert feed.stats.connections == 1
        await feed.close()

    @pytest.mark.asyncio
    async def test_reconnects_after_venue_close(self):
        first = FakeWebSocket(BITGET_BOOKS, CLOSE)
        second = FakeWebSocket(BITGET_BOOKS)
        connector = FakeConnector(first, second)
        received = []
        feed = MarketFeed(BitgetProtocol("ETHUSDT"), FAST, received.append, connector)

        feed.connect()
        await wait_until(lambda: len(received) == 2)

        assert feed.stats.connections == 2
        assert feed.stats.reconnects == 1
        # Subscription is sent again on the new connection
        assert json.loads(second.sent[0])["op"] == "subscribe"
        await feed.close()

    @pytest.mark.asyncio
    async def test_reconnects_after_read_error(self):
        first = FakeWebSocket(ConnectionResetError("reset"))
        second = FakeWebSocket(BINANCE_DEPTH)
        received = []
        feed = MarketFeed(
            BinanceProtocol("ETHUSDT"), FAST, received.append, FakeConnector(first, second)
        )

        feed.connect()
        await wait_until(lambda: received)

        assert feed.stats.reconnects == 1
        await feed.close()

    @pytest.mark.asyncio
    async def test_waits_reconnect_delay(self):
        config = FeedConfig(reconnect_delay=10, heartbeat_interval=18)
        connector = FakeConnector(OSError("down"))
        feed = MarketFeed(BinanceProtocol("ETHUSDT"), config, None, connector)

        feed.connect()
        await wait_until(lambda: feed.state is FeedState.CLOSED and feed.stats.reconnects == 1)
        await asyncio.sleep(0.05)

        assert len(connector.calls) == 1
        assert feed.close_reason is CloseReason.ERROR
        await feed.close()

    @pytest.mark.asyncio
    async def test_reconnect_delay_when_connector_raises(self):
        """A connector failing before the handshake still waits out the delay."""
        config = FeedConfig(reconnect_delay=10, heartbeat_interval=18)
        connector = RefusingConnector()
        feed = MarketFeed(BinanceProtocol("ETHUSDT"), config, None, connector)

        feed.connect()
        await wait_until(lambda: feed.stats.reconnects == 1)
        await asyncio.sleep(0.05)

        assert connector.calls == 1
        assert feed.state is FeedState.CLOSED
        assert feed.close_reason is CloseReason.ERROR
        await feed.close()

    @pytest.mark.asyncio
    async def test_heartbeat_stops_on_disconnect(self):
        """No keep-alive reaches a socket the venue has closed."""
        config = FeedConfig(reconnect_delay=10, heartbeat_interval=0.01)
        ws = FakeWebSocket(BITGET_BOOKS)
        feed = MarketFeed(BitgetProtocol("ETHUSDT"), config, None, FakeConnector(ws))

        feed.connect()
        await wait_until(lambda: "ping" in ws.sent)
        ws.push(CLOSE)
        await wait_until(lambda: feed.stats.reconnects == 1)

        pings = ws.sent.count("ping")
        await asyncio.sleep(0.05)

        assert feed._heartbeat_task is None
        assert ws.sent.count("ping") == pings
        await feed.close()

    @pytest.mark.asyncio
    async def test_heartbeat_follows_new_connection(self):
        first = FakeWebSocket(BITGET_BOOKS, CLOSE)
        second = FakeWebSocket(BITGET_BOOKS)
        feed = MarketFeed(BitgetProtocol("ETHUSDT"), FAST, None, FakeConnector(first, second))

        feed.connect()
        await wait_until(lambda: "ping" in second.sent)
        pings = first.sent.count("ping")
        await asyncio.sleep(0.05)

        assert first.sent.count("ping") == pings
        assert feed._heartbeat_task is not None
        assert not feed._heartbeat_task.done()
        await feed.close()
        assert feed._heartbeat_task is None

    @pytest.mark.asyncio
    async def test_close_stops_reconnecting(self):
        connector = FakeConnector(FakeWebSocket())
        feed = MarketFeed(BitgetProtocol("ETHUSDT"), FAST, None, connector)

        feed.connect()
        await wait_until(lambda: feed.is_connected)
        await feed.close()
        await asyncio.sleep(0.05)

        assert feed.state is FeedState.CLOSED
        assert feed.close_reason is CloseReason.REQUEST
        assert len(connector.calls) == 1
        assert not feed.is_connected

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self):
        connector = FakeConnector(FakeWebSocket())
        feed = MarketFeed(BinanceProtocol("ETHUSDT"), FAST, None, connector)

        first = feed.connect()
        assert feed.connect() is first
        await wait_until(lambda: feed.is_connected)
        assert len(connector.calls) == 1
        await feed.close()
