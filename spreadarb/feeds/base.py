"""
Base classes for venue market-data feeds.

A feed is split in two:
- VenueProtocol: venue wire format (URL, subscription, heartbeat frame,
  message parsing into a BookSnapshot). Pure, no I/O.
- MarketFeed: connection lifecycle shared by all venues
  (CONNECTING -> OPEN -> CLOSED -> CONNECTING after a fixed delay).

Feeds never raise into their consumer: disconnects, handshake failures and
malformed payloads are logged and the feed reconnects.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Callable, Optional

import websockets

from spreadarb.core.errors import ConfigurationError, MalformedMessageError
from spreadarb.core.logging import LoggerMixin
from spreadarb.domain.models import BookSnapshot


class FeedState(str, Enum):
    """Connection lifecycle state."""
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class CloseReason(str, Enum):
    ERROR = "error"
    REQUEST = "request"


class MessageKind(str, Enum):
    """Classification of one inbound frame."""
    SNAPSHOT = "snapshot"
    PING = "ping"          # venue liveness probe, answered immediately
    PONG = "pong"          # reply to our heartbeat
    CONTROL = "control"    # subscription acks, events


@dataclass(frozen=True)
class ParsedMessage:
    kind: MessageKind
    snapshot: Optional[BookSnapshot] = None
    reply: Optional[str] = None


@dataclass(frozen=True)
class FeedConfig:
    """Connection timing, from config.yaml['arbitrage']['feeds']."""
    reconnect_delay: float = 2.0
    heartbeat_interval: float = 18.0
    open_timeout: float = 10.0

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "FeedConfig":
        feed_config = cls(
            reconnect_delay=float(config.get("reconnect_delay_seconds", cls.reconnect_delay)),
            heartbeat_interval=float(
                config.get("heartbeat_interval_seconds", cls.heartbeat_interval)
            ),
            open_timeout=float(config.get("open_timeout_seconds", cls.open_timeout)),
        )
        if feed_config.reconnect_delay < 0 or feed_config.heartbeat_interval <= 0:
            raise ConfigurationError(
                "reconnect_delay must be >= 0 and heartbeat_interval > 0",
                details={"feeds": asdict(feed_config)},
            )
        return feed_config


@dataclass
class FeedStats:
    connections: int = 0
    reconnects: int = 0
    messages: int = 0
    snapshots: int = 0
    dropped: int = 0
    heartbeats: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class VenueProtocol(ABC, LoggerMixin):
    """
    Wire format of one venue's public depth stream.

    Subclasses must implement:
    - name: Venue identifier
    - url: WebSocket endpoint
    - _parse(raw): classify a text frame
    Optionally:
    - subscribe_message(): handshake sent once per connection
    - ping_message: keep-alive frame sent on every heartbeat tick
    """

    name: str = "base"
    ping_message: Optional[str] = None

    def __init__(self, symbol: str):
        self.symbol = symbol.replace("-", "").replace("/", "").upper()

    @property
    @abstractmethod
    def url(self) -> str:
        """WebSocket endpoint for this symbol."""

    def subscribe_message(self) -> Optional[str]:
        """Subscription frame, or None when the URL selects the stream."""
        return None

    @property
    def requires_heartbeat(self) -> bool:
        return self.ping_message is not None

    def parse(self, raw: str) -> ParsedMessage:
        """
        Classify one inbound frame.

        Raises:
            MalformedMessageError: the frame cannot be interpreted
        """
        try:
            return self._parse(raw)
        except MalformedMessageError:
            raise
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise MalformedMessageError(
                f"Cannot parse {self.name} message: {e}",
                venue=self.name,
                raw=raw,
            ) from e

    @abstractmethod
    def _parse(self, raw: str) -> ParsedMessage:
        pass


SnapshotHandler = Callable[[BookSnapshot], None]


class MarketFeed(LoggerMixin):
    """
    Self-healing streaming feed for one venue.

    connect() starts a background task that keeps the connection alive until
    close(); every valid depth frame becomes a BookSnapshot handed to
    `on_snapshot`. The handler must not block.
    """

    def __init__(
        self,
        protocol: VenueProtocol,
        config: Optional[FeedConfig] = None,
        on_snapshot: Optional[SnapshotHandler] = None,
        connector: Optional[Callable[..., Any]] = None,
    ):
        """
        Initialize feed.

        Args:
            protocol: Venue wire format
            config: Reconnect/heartbeat timing
            on_snapshot: Consumer callback for normalized snapshots
            connector: websockets.connect-compatible factory
        """
        self.protocol = protocol
        self.config = config or FeedConfig()
        self.on_snapshot = on_snapshot
        self._connector = connector or websockets.connect

        self._state = FeedState.CLOSED
        self._close_reason: Optional[CloseReason] = None
        self._ws: Any = None
        self._task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._stop_requested = False

        self.latest: Optional[BookSnapshot] = None
        self.stats = FeedStats()

    @property
    def name(self) -> str:
        return self.protocol.name

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def close_reason(self) -> Optional[CloseReason]:
        return self._close_reason

    @property
    def is_connected(self) -> bool:
        return self._state is FeedState.OPEN

    def connect(self) -> asyncio.Task:
        """Start (or return) the connection task. Needs a running loop."""
        if self._task is not None and not self._task.done():
            return self._task

        self._stop_requested = False
        self._task = asyncio.create_task(self._run(), name=f"feed-{self.name}")
        return self._task

    async def close(self) -> None:
        """Stop the feed; no reconnect follows."""
        self._stop_requested = True
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._stop_heartbeat()
        self._ws = None
        self._mark_closed(CloseReason.REQUEST)
        self.logger.info(f"{self.name} feed closed")

    def _mark_closed(self, reason: CloseReason) -> None:
        self._state = FeedState.CLOSED
        self._close_reason = reason

    async def _run(self) -> None:
        while not self._stop_requested:
            self._state = FeedState.CONNECTING
            self._close_reason = None
            try:
                await self._connect_once()
                self.logger.warning(f"{self.name} connection closed by venue")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.logger.error(f"{self.name} connection error: {e}")
            finally:
                self._stop_heartbeat()
                self._ws = None

            if self._stop_requested:
                break

            self._mark_closed(CloseReason.ERROR)
            self.stats.reconnects += 1
            self.logger.warning(
                f"{self.name} reconnecting in {self.config.reconnect_delay}s"
            )
            await asyncio.sleep(self.config.reconnect_delay)

    async def _connect_once(self) -> None:
        async with self._connector(
            self.protocol.url,
            open_timeout=self.config.open_timeout,
        ) as ws:
            self._ws = ws
            self._state = FeedState.OPEN
            self.stats.connections += 1
            self.logger.info(f"Connected to {self.name}")

            subscribe = self.protocol.subscribe_message()
            if subscribe:
                await ws.send(subscribe)
                self.logger.info(f"{self.name} subscription sent")

            if self.protocol.requires_heartbeat:
                self._start_heartbeat(ws)

            async for raw in ws:
                await self._handle_raw(ws, raw)

    async def _handle_raw(self, ws: Any, raw: Any) -> None:
        self.stats.messages += 1
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")

        try:
            message = self.protocol.parse(raw)
        except MalformedMessageError as e:
            self.stats.dropped += 1
            self.logger.warning(f"{self.name} dropped message: {e.to_dict()}")
            return

        if message.kind is MessageKind.PING:
            await ws.send(message.reply)
            return

        if message.kind is not MessageKind.SNAPSHOT:
            return

        self.latest = message.snapshot
        self.stats.snapshots += 1
        if self.on_snapshot is not None:
            try:
                self.on_snapshot(message.snapshot)
            except Exception as e:
                self.logger.error(f"{self.name} snapshot handler failed: {e}", exc_info=True)

    def _start_heartbeat(self, ws: Any) -> None:
        self._stop_heartbeat()
        self._heartbeat_task = asyncio.create_task(
            self._heartbeat(ws), name=f"heartbeat-{self.name}"
        )

    def _stop_heartbeat(self) -> None:
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

    async def _heartbeat(self, ws: Any) -> None:
        while True:
            await asyncio.sleep(self.config.heartbeat_interval)
            if not self.is_connected or self._ws is not ws:
                return
            try:
                await ws.send(self.protocol.ping_message)
                self.stats.heartbeats += 1
            except Exception as e:
                self.logger.warning(f"{self.name} heartbeat failed: {e}")
                return
