"""
Arbitrage Engine.

Main orchestrator for cross-venue spread arbitrage.

Flow:
1. Feeds: each venue feed hands its snapshot to submit()
2. Store: the latest snapshot per venue replaces the previous one at once
3. Gate: no decision until both venues produced a valid snapshot
4. Detect: SpreadEvaluator turns both books + position into a Signal
5. Act: PositionManager sizes and opens, or closes, through the port

Decisions run one at a time; an open or close completes before the next
decision. Updates arriving meanwhile only refresh the stored books and
coalesce into a single follow-up decision on the newest pair.
"""

import asyncio
from dataclasses import dataclass, asdict
from typing import Any, Callable, Optional

from spreadarb.arb.position import PositionManager
from spreadarb.arb.risk import RiskLimits
from spreadarb.arb.strategy import SpreadEvaluator
from spreadarb.core.config import Settings, get_arbitrage_config, get_settings
from spreadarb.core.errors import ConfigurationError
from spreadarb.core.logging import LoggerMixin
from spreadarb.domain.models import BookSnapshot
from spreadarb.domain.signals import NO_SIGNAL, Signal
from spreadarb.execution import create_execution_port
from spreadarb.feeds import create_feed
from spreadarb.feeds.base import FeedConfig, MarketFeed

_WAKE = object()
_STOP = object()


@dataclass
class EngineStats:
    updates: int = 0
    decisions: int = 0
    opens: int = 0
    closes: int = 0
    skipped_orders: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class ArbEngine(LoggerMixin):
    """
    Cross-venue Arbitrage Engine.

    Wires two market feeds to the evaluator and the position manager.
    """

    def __init__(
        self,
        feed_a: MarketFeed,
        feed_b: MarketFeed,
        evaluator: SpreadEvaluator,
        positions: PositionManager,
        config: Optional[dict[str, Any]] = None,
    ):
        """
        Initialize arbitrage engine.

        Args:
            feed_a: Venue A feed
            feed_b: Venue B feed
            evaluator: Spread evaluator
            positions: Position manager (owns the execution port)
            config: `arbitrage` config section (or load from yaml)
        """
        if config is None:
            config = get_arbitrage_config()
        self.config = config

        strategy_config = config.get("strategy", {}) or {}
        self.close_limited_by_depth = bool(
            strategy_config.get("close_limited_by_depth", False)
        )

        self.feed_a = feed_a
        self.feed_b = feed_b
        self.evaluator = evaluator
        self.positions = positions

        self.venue_a = feed_a.name
        self.venue_b = feed_b.name
        if self.venue_a == self.venue_b:
            raise ConfigurationError(
                f"Both feeds report venue {self.venue_a}",
                details={"venue_a": self.venue_a, "venue_b": self.venue_b},
            )

        feed_a.on_snapshot = self.submit
        feed_b.on_snapshot = self.submit

        self._books: dict[str, Optional[BookSnapshot]] = {
            self.venue_a: None,
            self.venue_b: None,
        }
        self._ready: set[str] = set()
        # Holds at most one pending wake-up plus the stop token
        self._queue: asyncio.Queue = asyncio.Queue()
        self._wake_pending = False
        self._running = False

        self.stats = EngineStats()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_ready(self) -> bool:
        """Both venues produced at least one valid snapshot."""
        return len(self._ready) == 2

    def book(self, venue: str) -> Optional[BookSnapshot]:
        return self._books.get(venue)

    def submit(self, snapshot: BookSnapshot) -> None:
        """
        Store a snapshot and wake the decision loop. Never blocks.

        The book is replaced immediately, even while an order is in flight;
        several updates before the loop wakes lead to one decision.
        """
        if not self._store(snapshot):
            return
        if not self._wake_pending:
            self._wake_pending = True
            self._queue.put_nowait(_WAKE)

    async def on_update(self, snapshot: BookSnapshot) -> Signal:
        """
        Store one market update and decide on it right away.

        Returns:
            The signal acted upon (NO_SIGNAL when nothing happened)
        """
        if not self._store(snapshot):
            return NO_SIGNAL
        return await self.decide()

    async def decide(self) -> Signal:
        """
        Evaluate the latest pair of books and act on the signal.

        Exceptions are logged and swallowed so the decision loop survives.
        """
        try:
            return await self._decide()
        except Exception as e:
            self.stats.errors += 1
            self.logger.error(f"Decision failed: {e}", exc_info=True)
            return NO_SIGNAL

    def _store(self, snapshot: BookSnapshot) -> bool:
        venue = snapshot.venue
        if venue not in self._books:
            self.logger.warning(f"Update from unknown venue {venue}, ignored")
            return False

        self.stats.updates += 1
        self._books[venue] = snapshot
        if snapshot.is_valid:
            self._ready.add(venue)
        return True

    async def _decide(self) -> Signal:
        if not self.is_ready:
            return NO_SIGNAL

        self.stats.decisions += 1
        signal = self.evaluator.evaluate(
            self._books[self.venue_a],
            self._books[self.venue_b],
            self.positions.position,
            connected_a=self.feed_a.is_connected,
            connected_b=self.feed_b.is_connected,
        )

        if signal.is_open:
            await self._open(signal)
        elif signal.is_close:
            await self._close(signal)

        return signal

    async def _open(self, signal: Signal) -> None:
        if not self.positions.can_open():
            return

        size = self.positions.size_order(signal.qty_a, signal.qty_b, signal.ref_price)
        if size <= 0:
            self.stats.skipped_orders += 1
            self.logger.info(
                f"Spread {signal.spread:.6f} found but depth too thin "
                f"(A={signal.qty_a}, B={signal.qty_b})"
            )
            return

        if await self.positions.open(signal.direction, size, signal.price_a, signal.price_b):
            self.stats.opens += 1

    async def _close(self, signal: Signal) -> None:
        available = self.positions.position.size
        if self.close_limited_by_depth:
            available = min(available, signal.qty_a, signal.qty_b)

        profit = await self.positions.close(available, signal.price_a, signal.price_b)
        if profit is not None:
            self.stats.closes += 1
            self.logger.info(
                f"Close ({signal.reason.value if signal.reason else 'profit'}): "
                f"net {profit.total_profit:.4f} USDT, "
                f"realized {self.positions.realized_profit:.4f} USDT"
            )

    async def run(self) -> None:
        """
        Start both feeds and consume updates until stop().

        Feeds and the execution port are closed on exit.
        """
        self._running = True
        self.logger.info(f"Starting engine: {self.venue_a} vs {self.venue_b}")

        try:
            await self.positions.port.prepare()
            self.feed_a.connect()
            self.feed_b.connect()

            while True:
                token = await self._queue.get()
                if token is _STOP:
                    break
                self._wake_pending = False
                await self.decide()
        finally:
            self._running = False
            await self.feed_a.close()
            await self.feed_b.close()
            await self.positions.port.close()
            self.logger.info(f"Engine stopped: {self.get_stats()}")

    def stop(self) -> None:
        """Ask the decision loop to exit after any pending decision."""
        self._queue.put_nowait(_STOP)

    def get_stats(self) -> dict[str, Any]:
        return {
            "engine": self.stats.to_dict(),
            "feeds": {
                self.venue_a: self.feed_a.stats.to_dict(),
                self.venue_b: self.feed_b.stats.to_dict(),
            },
            **self.positions.summary(),
        }


def create_engine(
    config: Optional[dict[str, Any]] = None,
    settings: Optional[Settings] = None,
    connector: Optional[Callable[..., Any]] = None,
) -> ArbEngine:
    """
    Wire feeds, evaluator, position manager and port from config.

    Args:
        config: `arbitrage` config section (or load from yaml)
        settings: Application settings (symbol, trading mode)
        connector: Websocket connector override for the feeds
    """
    if config is None:
        config = get_arbitrage_config()
    settings = settings or get_settings()

    feeds_config = config.get("feeds", {}) or {}
    feed_config = FeedConfig.from_config(feeds_config)
    venue_a = feeds_config.get("venue_a", "binance")
    venue_b = feeds_config.get("venue_b", "bitget")

    evaluator = SpreadEvaluator(config)
    positions = PositionManager(
        create_execution_port(config, settings=settings),
        limits=RiskLimits.from_config(config),
        fees=evaluator.fees,
    )

    return ArbEngine(
        create_feed(venue_a, settings.symbol, feed_config, connector=connector),
        create_feed(venue_b, settings.symbol, feed_config, connector=connector),
        evaluator,
        positions,
        config=config,
    )
