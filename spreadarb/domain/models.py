"""
Core data models for spreadarb.

All models are plain dataclasses with to_dict() for logging and display.
They carry no exchange or transport dependencies.
"""

import math
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Optional

from spreadarb.core.errors import ConfigurationError, PositionStateError
from spreadarb.core.timeutil import age_seconds, format_timestamp, now_utc


class Direction(str, Enum):
    """Which venue holds the long leg of the pair."""
    LONG_A_SHORT_B = "long_a_short_b"
    SHORT_A_LONG_B = "short_a_long_b"

    @property
    def sign_a(self) -> int:
        """+1 when venue A is long, -1 when short."""
        return 1 if self is Direction.LONG_A_SHORT_B else -1

    @property
    def sign_b(self) -> int:
        return -self.sign_a

    @property
    def label(self) -> str:
        return "A long / B short" if self is Direction.LONG_A_SHORT_B else "A short / B long"


class PositionState(str, Enum):
    """Lifecycle state of the single arbitrage position."""
    FLAT = "flat"
    OPEN = "open"


def _is_finite(value: float) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


@dataclass(frozen=True)
class PriceLevel:
    """Single top-of-book level."""
    price: float
    qty: float

    @property
    def is_valid(self) -> bool:
        return (
            _is_finite(self.price)
            and _is_finite(self.qty)
            and self.price > 0
            and self.qty >= 0
        )

    @classmethod
    def empty(cls) -> "PriceLevel":
        return cls(price=0.0, qty=0.0)


@dataclass(frozen=True)
class BookSnapshot:
    """
    Best bid / best ask for one venue.

    A new snapshot replaces the previous one wholesale; nothing is merged.
    """
    venue: str
    best_bid: PriceLevel
    best_ask: PriceLevel
    received_at: datetime = field(default_factory=now_utc)

    @property
    def is_valid(self) -> bool:
        """Both sides have a positive price and non-negative quantity."""
        return self.best_bid.is_valid and self.best_ask.is_valid

    def age(self, now: Optional[datetime] = None) -> float:
        """Seconds since the snapshot was received."""
        return age_seconds(self.received_at, now)

    @classmethod
    def from_levels(
        cls,
        venue: str,
        bids: list,
        asks: list,
        received_at: Optional[datetime] = None,
    ) -> "BookSnapshot":
        """
        Build a snapshot from venue level arrays ([[price, qty], ...]).

        Only the first level of each side is used. An empty side yields an
        empty level, which makes the snapshot invalid.

        Raises:
            ValueError/TypeError/IndexError: level entries are not numeric pairs
        """
        bid = PriceLevel(float(bids[0][0]), float(bids[0][1])) if bids else PriceLevel.empty()
        ask = PriceLevel(float(asks[0][0]), float(asks[0][1])) if asks else PriceLevel.empty()
        return cls(
            venue=venue,
            best_bid=bid,
            best_ask=ask,
            received_at=received_at or now_utc(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "venue": self.venue,
            "best_bid": [self.best_bid.price, self.best_bid.qty],
            "best_ask": [self.best_ask.price, self.best_ask.qty],
            "received_at": format_timestamp(self.received_at, "log"),
        }


@dataclass(frozen=True)
class Position:
    """
    The single arbitrage position.

    Immutable; the PositionManager replaces it on every transition.
    When FLAT every numeric field is zero and direction is None.
    """
    state: PositionState = PositionState.FLAT
    direction: Optional[Direction] = None
    size: float = 0.0
    entry_price_a: float = 0.0
    entry_price_b: float = 0.0
    liquidation_price: float = 0.0
    stop_loss_price: float = 0.0
    opened_at: Optional[datetime] = None

    NUMERIC_FIELDS: ClassVar[tuple[str, ...]] = (
        "size",
        "entry_price_a",
        "entry_price_b",
        "liquidation_price",
        "stop_loss_price",
    )

    def __post_init__(self):
        if self.state is PositionState.OPEN:
            if self.size <= 0 or self.direction is None:
                raise PositionStateError(
                    "An open position needs a direction and size > 0",
                    state=self.state.value,
                )
        elif self.direction is not None or any(
            getattr(self, name) != 0 for name in self.NUMERIC_FIELDS
        ):
            raise PositionStateError(
                "A flat position carries no direction, size or prices",
                state=self.state.value,
            )

    @classmethod
    def flat(cls) -> "Position":
        return cls()

    @property
    def is_open(self) -> bool:
        return self.state is PositionState.OPEN

    @property
    def has_risk_data(self) -> bool:
        """Liquidation/stop-loss prices were computed at open."""
        return self.is_open and self.liquidation_price > 0

    def with_size(self, size: float) -> "Position":
        """Same entry prices with a smaller size, or FLAT at zero."""
        if size <= 0:
            return Position.flat()
        return replace(self, size=size)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        data["direction"] = self.direction.value if self.direction else None
        data["opened_at"] = format_timestamp(self.opened_at) if self.opened_at else None
        return data


@dataclass(frozen=True)
class Thresholds:
    """
    Spread thresholds as dimensionless fractions (price delta / reference price).

    `open` and `close` are independent settings.
    """
    open: float = 0.0006
    close: float = 0.0002

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "Thresholds":
        thresholds = cls(
            open=float(config.get("open", cls.open)),
            close=float(config.get("close", cls.close)),
        )
        if thresholds.open <= 0:
            raise ConfigurationError(
                f"Open threshold must be positive, got {thresholds.open}",
                details={"thresholds": asdict(thresholds)},
            )
        return thresholds


@dataclass(frozen=True)
class FeeSchedule:
    """Taker fee rate per venue, as a fraction of notional."""
    rate_a: float = 0.0005
    rate_b: float = 0.0005

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        venue_a: str = "binance",
        venue_b: str = "bitget",
    ) -> "FeeSchedule":
        schedule = cls(
            rate_a=float(config.get(venue_a, cls.rate_a)),
            rate_b=float(config.get(venue_b, cls.rate_b)),
        )
        if not (0 <= schedule.rate_a < 1 and 0 <= schedule.rate_b < 1):
            raise ConfigurationError(
                "Fee rates must be within [0, 1)",
                details={"fees": asdict(schedule)},
            )
        return schedule


@dataclass(frozen=True)
class LegProfit:
    """Profit of one venue leg, net of entry and exit fees."""
    profit: float
    fees: float


@dataclass(frozen=True)
class ProfitBreakdown:
    """Diagnostic profit report produced when (part of) a position closes."""
    direction: Direction
    size: float
    leg_a: LegProfit
    leg_b: LegProfit

    @property
    def total_fees(self) -> float:
        return self.leg_a.fees + self.leg_b.fees

    @property
    def total_profit(self) -> float:
        return self.leg_a.profit + self.leg_b.profit

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction.value,
            "size": self.size,
            "profit_a": round(self.leg_a.profit, 4),
            "fees_a": round(self.leg_a.fees, 4),
            "profit_b": round(self.leg_b.profit, 4),
            "fees_b": round(self.leg_b.fees, 4),
            "total_fees": round(self.total_fees, 4),
            "total_profit": round(self.total_profit, 4),
        }
