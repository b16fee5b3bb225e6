"""
Signal definitions for spreadarb.

A Signal is the single output of the spread evaluator for one market update:
do nothing, open a pair in a direction, or close the held pair.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Optional

from spreadarb.domain.models import Direction


class SignalKind(str, Enum):
    """What the engine should do with the update."""
    NONE = "none"
    OPEN = "open"
    CLOSE = "close"


class ExitReason(str, Enum):
    """Why a close signal fired."""
    PROFIT = "profit"
    STOP_LOSS = "stop_loss"


@dataclass(frozen=True)
class Signal:
    """
    Evaluator decision.

    Attributes:
        kind: NONE / OPEN / CLOSE
        direction: Direction to open (OPEN only)
        price_a: Venue A execution price (entry for OPEN, exit for CLOSE)
        price_b: Venue B execution price
        ref_price: Price used for notional sizing (OPEN only)
        qty_a: Top-of-book quantity at price_a
        qty_b: Top-of-book quantity at price_b
        spread: Spread that triggered the signal
        reason: Exit reason (CLOSE only)
    """
    kind: SignalKind = SignalKind.NONE
    direction: Optional[Direction] = None
    price_a: float = 0.0
    price_b: float = 0.0
    ref_price: float = 0.0
    qty_a: float = 0.0
    qty_b: float = 0.0
    spread: float = 0.0
    reason: Optional[ExitReason] = None

    @property
    def is_none(self) -> bool:
        return self.kind is SignalKind.NONE

    @property
    def is_open(self) -> bool:
        return self.kind is SignalKind.OPEN

    @property
    def is_close(self) -> bool:
        return self.kind is SignalKind.CLOSE

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["direction"] = self.direction.value if self.direction else None
        data["reason"] = self.reason.value if self.reason else None
        return data


NO_SIGNAL = Signal()


def open_signal(
    direction: Direction,
    *,
    price_a: float,
    price_b: float,
    ref_price: float,
    qty_a: float,
    qty_b: float,
    spread: float,
) -> Signal:
    """Factory for an OPEN signal."""
    return Signal(
        kind=SignalKind.OPEN,
        direction=direction,
        price_a=price_a,
        price_b=price_b,
        ref_price=ref_price,
        qty_a=qty_a,
        qty_b=qty_b,
        spread=spread,
    )


def close_signal(
    *,
    price_a: float,
    price_b: float,
    qty_a: float,
    qty_b: float,
    spread: float,
    reason: ExitReason = ExitReason.PROFIT,
) -> Signal:
    """Factory for a CLOSE signal."""
    return Signal(
        kind=SignalKind.CLOSE,
        price_a=price_a,
        price_b=price_b,
        qty_a=qty_a,
        qty_b=qty_b,
        spread=spread,
        reason=reason,
    )
