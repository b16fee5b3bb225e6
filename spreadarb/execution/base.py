"""
Execution port: the core's only way to touch an exchange account.

All ports must:
- Inherit from ExecutionPort
- Report order outcomes as True/False, not raise, for open/close
- Be safe to call concurrently for the two legs of one decision
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

from spreadarb.core.logging import LoggerMixin
from spreadarb.domain.models import Direction


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class LegOrder:
    """One venue's order within a paired open or close."""
    venue: str
    side: OrderSide
    size: float
    price: float
    reduce_only: bool = False

    def describe(self) -> str:
        action = "close" if self.reduce_only else "open"
        return f"{self.venue} {action} {self.side.value} {self.size} @ {self.price}"


def leg_orders(
    direction: Direction,
    size: float,
    price_a: float,
    price_b: float,
    *,
    venue_a: str,
    venue_b: str,
    closing: bool = False,
) -> tuple[LegOrder, LegOrder]:
    """
    Translate a paired action into the two venue orders.

    Opening buys the long venue and sells the short venue; closing does the
    reverse with reduce-only orders.
    """
    long_a = direction is Direction.LONG_A_SHORT_B
    if closing:
        long_a = not long_a

    side_a = OrderSide.BUY if long_a else OrderSide.SELL
    side_b = OrderSide.SELL if long_a else OrderSide.BUY
    return (
        LegOrder(venue_a, side_a, size, price_a, reduce_only=closing),
        LegOrder(venue_b, side_b, size, price_b, reduce_only=closing),
    )


class ExecutionPort(ABC):
    """
    Abstract execution capability consumed by the PositionManager.

    Subclasses must implement open_position, close_position and
    get_account_balance.
    """

    @abstractmethod
    async def open_position(
        self,
        direction: Direction,
        size: float,
        price_a: float,
        price_b: float,
    ) -> bool:
        """Open both legs. True only if both legs were accepted."""

    @abstractmethod
    async def close_position(
        self,
        direction: Direction,
        size: float,
        price_a: float,
        price_b: float,
    ) -> bool:
        """Close `size` of both legs. True only if both legs were accepted."""

    @abstractmethod
    async def get_account_balance(self) -> float:
        """
        Account balance used for liquidation estimates.

        Raises:
            BalanceUnavailableError: balance could not be fetched
        """

    async def prepare(self) -> None:
        """Venue setup before trading (leverage, margin mode). Optional."""

    async def close(self) -> None:
        """Release connections. Optional."""


class DualLegExecutionPort(ExecutionPort, LoggerMixin):
    """
    Port that submits the two legs of a paired action concurrently.

    Subclasses implement _submit_leg(); both legs are awaited before the
    call returns. No retries and no automatic unwind of a lone filled leg.
    """

    def __init__(self, venue_a: str, venue_b: str):
        self.venue_a = venue_a
        self.venue_b = venue_b

    @abstractmethod
    async def _submit_leg(self, order: LegOrder) -> Any:
        """
        Place one leg.

        Raises:
            ExecutionError: the venue rejected or failed the order
        """

    async def open_position(
        self,
        direction: Direction,
        size: float,
        price_a: float,
        price_b: float,
    ) -> bool:
        orders = leg_orders(
            direction, size, price_a, price_b,
            venue_a=self.venue_a, venue_b=self.venue_b,
        )
        return await self._execute(orders, action="open")

    async def close_position(
        self,
        direction: Direction,
        size: float,
        price_a: float,
        price_b: float,
    ) -> bool:
        orders = leg_orders(
            direction, size, price_a, price_b,
            venue_a=self.venue_a, venue_b=self.venue_b, closing=True,
        )
        return await self._execute(orders, action="close")

    async def _execute(self, orders: tuple[LegOrder, ...], action: str) -> bool:
        results = await asyncio.gather(
            *(self._submit_leg(order) for order in orders),
            return_exceptions=True,
        )

        failed = []
        for order, result in zip(orders, results):
            if isinstance(result, BaseException):
                failed.append(order)
                self.logger.error(f"Leg failed ({order.describe()}): {result}")
            else:
                self.logger.info(f"Leg done ({order.describe()}): {result}")

        if not failed:
            return True

        if len(failed) < len(orders):
            filled = [o.describe() for o in orders if o not in failed]
            self.logger.error(
                f"Leg risk on {action}: {filled} went through while "
                f"{[o.describe() for o in failed]} failed; manual check required"
            )
        return False
