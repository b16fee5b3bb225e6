"""
Cross-venue Spread Strategy.

Detects when the same instrument trades at an exploitable price gap between
venue A and venue B, and when a held pair should be unwound.

Core Logic:
1. Gate: both books present, valid, fresh, and both feeds connected
2. Flat: spread_ab = (bid_B - ask_A) / ask_A, spread_ba = (bid_A - ask_B) / ask_B
   Open the first direction (AB, then BA) whose spread exceeds threshold.open
3. Open: compute the reverse spread that unwinds the held pair
   Close on profit when it reaches threshold.close and the round trip nets positive
4. Open with risk data: stop-loss on venue A's leg, overriding profit-taking
"""

from typing import Any, Optional

from spreadarb.arb.risk import round_trip_profit, stop_loss_triggered
from spreadarb.core.logging import LoggerMixin
from spreadarb.domain.models import (
    BookSnapshot,
    Direction,
    FeeSchedule,
    Position,
    Thresholds,
)
from spreadarb.domain.signals import (
    NO_SIGNAL,
    ExitReason,
    Signal,
    close_signal,
    open_signal,
)


def spread(sell_price: float, buy_price: float) -> float:
    """Normalized gap between where we sell and where we buy."""
    return (sell_price - buy_price) / buy_price


def entry_spreads(book_a: BookSnapshot, book_b: BookSnapshot) -> dict[Direction, float]:
    """Both directional entry spreads, AB first."""
    return {
        Direction.LONG_A_SHORT_B: spread(book_b.best_bid.price, book_a.best_ask.price),
        Direction.SHORT_A_LONG_B: spread(book_a.best_bid.price, book_b.best_ask.price),
    }


def exit_prices(direction: Direction, book_a: BookSnapshot, book_b: BookSnapshot):
    """
    Levels at which a held pair is unwound.

    Long A / short B sells A at its bid and buys B at its ask; the reverse
    pair buys A at its ask and sells B at its bid.

    Returns:
        (level_a, level_b)
    """
    if direction is Direction.LONG_A_SHORT_B:
        return book_a.best_bid, book_b.best_ask
    return book_a.best_ask, book_b.best_bid


class SpreadEvaluator(LoggerMixin):
    """
    Decides entry and exit signals from the two books.

    Stateless apart from configuration: every call looks only at the two
    books and the position passed in.
    """

    def __init__(self, config: dict[str, Any]):
        """
        Initialize evaluator.

        Args:
            config: `arbitrage` section of config.yaml
        """
        fees_config = config.get("fees", {}) or {}
        feeds_config = config.get("feeds", {}) or {}
        strategy_config = config.get("strategy", {}) or {}

        self.thresholds = Thresholds.from_config(config.get("thresholds", {}) or {})
        self.fees = FeeSchedule.from_config(
            fees_config,
            venue_a=feeds_config.get("venue_a", "binance"),
            venue_b=feeds_config.get("venue_b", "bitget"),
        )
        self.require_net_profit = bool(strategy_config.get("require_net_profit", True))
        self.max_book_age_seconds = float(strategy_config.get("max_book_age_seconds", 0))

    def is_tradable(
        self,
        book_a: Optional[BookSnapshot],
        book_b: Optional[BookSnapshot],
        *,
        connected_a: bool = True,
        connected_b: bool = True,
    ) -> bool:
        """Validity gate shared by entry and exit evaluation."""
        if not connected_a or not connected_b:
            self.logger.debug(
                f"Feed disconnected (a={connected_a}, b={connected_b}), skipping"
            )
            return False

        if book_a is None or book_b is None:
            return False

        if not book_a.is_valid or not book_b.is_valid:
            self.logger.warning("Invalid price detected, skipping")
            return False

        if self.max_book_age_seconds > 0:
            age = max(book_a.age(), book_b.age())
            if age > self.max_book_age_seconds:
                self.logger.debug(f"Stale book ({age:.1f}s), skipping")
                return False

        return True

    def evaluate(
        self,
        book_a: Optional[BookSnapshot],
        book_b: Optional[BookSnapshot],
        position: Position,
        *,
        connected_a: bool = True,
        connected_b: bool = True,
    ) -> Signal:
        """
        Decide what to do with the current books.

        Args:
            book_a: Latest snapshot from venue A
            book_b: Latest snapshot from venue B
            position: Current position
            connected_a: Venue A feed is connected
            connected_b: Venue B feed is connected

        Returns:
            Signal (NO_SIGNAL when nothing qualifies)
        """
        if not self.is_tradable(
            book_a, book_b, connected_a=connected_a, connected_b=connected_b
        ):
            return NO_SIGNAL

        if position.is_open:
            return self._evaluate_exit(book_a, book_b, position)
        return self._evaluate_entry(book_a, book_b)

    def _evaluate_entry(self, book_a: BookSnapshot, book_b: BookSnapshot) -> Signal:
        for direction, value in entry_spreads(book_a, book_b).items():
            if value <= self.thresholds.open:
                continue

            if direction is Direction.LONG_A_SHORT_B:
                long_level, short_level = book_a.best_ask, book_b.best_bid
                level_a, level_b = long_level, short_level
            else:
                long_level, short_level = book_b.best_ask, book_a.best_bid
                level_a, level_b = short_level, long_level

            self.logger.info(
                f"Entry spread {value:.6f} > {self.thresholds.open} ({direction.label}): "
                f"A={level_a.price} B={level_b.price}"
            )
            return open_signal(
                direction,
                price_a=level_a.price,
                price_b=level_b.price,
                ref_price=long_level.price,
                qty_a=level_a.qty,
                qty_b=level_b.qty,
                spread=value,
            )

        return NO_SIGNAL

    def _evaluate_exit(
        self,
        book_a: BookSnapshot,
        book_b: BookSnapshot,
        position: Position,
    ) -> Signal:
        direction = position.direction
        level_a, level_b = exit_prices(direction, book_a, book_b)

        # Reverse spread: sell where we are long, buy where we are short
        if direction is Direction.LONG_A_SHORT_B:
            close_spread = spread(level_a.price, level_b.price)
        else:
            close_spread = spread(level_b.price, level_a.price)

        take_profit = close_spread >= self.thresholds.close
        if take_profit and self.require_net_profit:
            estimate = round_trip_profit(
                direction,
                position.size,
                position.entry_price_a,
                position.entry_price_b,
                level_a.price,
                level_b.price,
                self.fees,
            )
            take_profit = estimate.total_profit > 0
            if not take_profit:
                self.logger.debug(
                    f"Close spread {close_spread:.6f} reached but round trip nets "
                    f"{estimate.total_profit:.4f}, holding"
                )

        stop = position.has_risk_data and stop_loss_triggered(
            level_a.price,
            position.stop_loss_price,
            is_long=direction.sign_a > 0,
        )

        if stop:
            self.logger.warning(
                f"Stop-loss hit: mark={level_a.price} stop={position.stop_loss_price} "
                f"liquidation={position.liquidation_price}"
            )
            reason = ExitReason.STOP_LOSS
        elif take_profit:
            self.logger.info(
                f"Close spread {close_spread:.6f} >= {self.thresholds.close}, taking profit"
            )
            reason = ExitReason.PROFIT
        else:
            return NO_SIGNAL

        return close_signal(
            price_a=level_a.price,
            price_b=level_b.price,
            qty_a=level_a.qty,
            qty_b=level_b.qty,
            spread=close_spread,
            reason=reason,
        )
