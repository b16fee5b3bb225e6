"""
Position Manager.

Owns the single arbitrage position and is the only writer of it.

Flow:
1. can_open(): position is FLAT
2. size_order(): depth ratio vs. notional ceiling
3. open(): both legs through the execution port, then liquidation/stop-loss
   from the freshly fetched account balance
4. close(): full or partial; entry prices of the remainder are untouched
"""

from decimal import Decimal
from typing import Any, Optional

from spreadarb.arb.risk import (
    RiskLimits,
    liquidation_price,
    round_trip_profit,
    size_order,
    stop_loss_price,
)
from spreadarb.core.errors import ExecutionError
from spreadarb.core.logging import LoggerMixin
from spreadarb.core.timeutil import now_utc
from spreadarb.domain.models import (
    Direction,
    FeeSchedule,
    Position,
    PositionState,
    ProfitBreakdown,
)
from spreadarb.execution.base import ExecutionPort


class PositionManager(LoggerMixin):
    """
    Single-position state machine: FLAT -> OPEN -> (partial) -> FLAT.

    Failed execution never changes state and is never retried here.
    """

    def __init__(
        self,
        port: ExecutionPort,
        limits: Optional[RiskLimits] = None,
        fees: Optional[FeeSchedule] = None,
    ):
        """
        Initialize position manager.

        Args:
            port: Execution port used for both legs
            limits: Sizing and margin parameters
            fees: Per-venue taker fees for profit accounting
        """
        self.port = port
        self.limits = limits or RiskLimits()
        self.fees = fees or FeeSchedule()

        self._position = Position.flat()
        self.realized_profit = 0.0
        self.trade_count = 0

    @property
    def position(self) -> Position:
        """Current position (immutable value)."""
        return self._position

    def can_open(self) -> bool:
        return self._position.state is PositionState.FLAT

    def size_order(self, qty_a: float, qty_b: float, ref_price: float) -> float:
        return size_order(qty_a, qty_b, ref_price, self.limits)

    def compute_risk_prices(
        self,
        direction: Direction,
        size: float,
        entry_price_a: float,
        balance: float,
    ) -> tuple[float, float]:
        """
        Liquidation and stop-loss prices for venue A's leg.

        Returns:
            (liquidation_price, stop_loss_price)
        """
        is_long = direction.sign_a > 0
        liquidation = liquidation_price(
            entry_price_a,
            size,
            balance,
            is_long=is_long,
            maintenance_margin_rate=self.limits.maintenance_margin_rate,
        )
        stop = stop_loss_price(entry_price_a, liquidation, self.limits.stop_loss_fraction)
        return liquidation, stop

    async def open(
        self,
        direction: Direction,
        size: float,
        price_a: float,
        price_b: float,
    ) -> bool:
        """
        Open a pair.

        Args:
            direction: Which venue is long
            size: Base-asset quantity per leg
            price_a: Venue A entry price
            price_b: Venue B entry price

        Returns:
            True if the position is now OPEN
        """
        if not self.can_open():
            self.logger.warning(
                f"Open refused: position already {self._position.state.value}"
            )
            return False

        if size <= 0:
            self.logger.debug(f"Open refused: size {size} below minimum")
            return False

        try:
            ok = await self.port.open_position(direction, size, price_a, price_b)
        except ExecutionError as e:
            self.logger.error(f"Open failed: {e.to_dict()}")
            return False

        if not ok:
            self.logger.error(
                f"Open failed ({direction.label}, size={size}), staying flat"
            )
            return False

        liquidation, stop = 0.0, 0.0
        try:
            balance = await self.port.get_account_balance()
            liquidation, stop = self.compute_risk_prices(direction, size, price_a, balance)
        except Exception as e:
            # Legs are live on the venues; keep them tracked without a stop-loss
            self.logger.error(f"Opened but risk prices unavailable, stop-loss disabled: {e}")

        self._position = Position(
            state=PositionState.OPEN,
            direction=direction,
            size=size,
            entry_price_a=price_a,
            entry_price_b=price_b,
            liquidation_price=liquidation,
            stop_loss_price=stop,
            opened_at=now_utc(),
        )
        self.logger.info(f"Position opened: {self._position.to_dict()}")
        return True

    async def close(
        self,
        available_size: float,
        price_a: float,
        price_b: float,
    ) -> Optional[ProfitBreakdown]:
        """
        Close up to `available_size` of the open pair.

        Args:
            available_size: Upper bound on the quantity to close
            price_a: Venue A exit price
            price_b: Venue B exit price

        Returns:
            Profit breakdown of the closed quantity, or None if nothing closed
        """
        position = self._position
        if not position.is_open:
            self.logger.warning("Close refused: no open position")
            return None

        close_size = min(position.size, available_size)
        if close_size <= 0:
            self.logger.debug(f"Close skipped: available size {available_size}")
            return None

        try:
            ok = await self.port.close_position(
                position.direction, close_size, price_a, price_b
            )
        except ExecutionError as e:
            self.logger.error(f"Close failed: {e.to_dict()}")
            return None

        if not ok:
            self.logger.error(
                f"Close failed (size={close_size}), keeping size {position.size}"
            )
            return None

        profit = round_trip_profit(
            position.direction,
            close_size,
            position.entry_price_a,
            position.entry_price_b,
            price_a,
            price_b,
            self.fees,
        )

        remaining = float(Decimal(str(position.size)) - Decimal(str(close_size)))
        self._position = position.with_size(remaining)
        self.realized_profit += profit.total_profit
        self.trade_count += 1

        self.logger.info(
            f"Closed {close_size} ({remaining} left): {profit.to_dict()}"
        )
        return profit

    def summary(self) -> dict[str, Any]:
        return {
            "position": self._position.to_dict(),
            "realized_profit": round(self.realized_profit, 4),
            "trade_count": self.trade_count,
        }
