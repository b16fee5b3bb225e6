"""
Sizing and risk math for the arbitrage position.

Covers:
- Order sizing: top-of-book depth ratio vs. notional/leverage ceiling
- Liquidation price: isolated-margin, single-leg approximation
- Stop-loss price: interpolation between liquidation and entry
- Round-trip profit: per-leg, fee-inclusive

The liquidation estimate ignores the offsetting leg's margin and PnL. It is a
guard rail for the stop-loss, not an exchange-exact figure.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_DOWN
from typing import Any

from spreadarb.core.errors import ConfigurationError
from spreadarb.domain.models import Direction, FeeSchedule, LegProfit, ProfitBreakdown

SIZE_QUANTUM = Decimal("0.01")

DEFAULT_MAINTENANCE_MARGIN_RATE = 0.005


def _dec(value: float) -> Decimal:
    # str() first so 0.7 stays 0.7 instead of its binary expansion
    return Decimal(str(value))


@dataclass(frozen=True)
class RiskLimits:
    """Sizing and margin parameters, from config.yaml['arbitrage']['sizing'/'risk']."""
    order_size_ratio: float = 0.7
    max_position_notional: float = 1000.0
    leverage: float = 10.0
    min_order_size: float = 0.01
    stop_loss_fraction: float = 0.5
    maintenance_margin_rate: float = DEFAULT_MAINTENANCE_MARGIN_RATE

    def __post_init__(self):
        problems = []
        if not 0 < self.order_size_ratio <= 1:
            problems.append("order_size_ratio must be in (0, 1]")
        if self.max_position_notional <= 0:
            problems.append("max_position_notional must be positive")
        if self.leverage <= 0:
            problems.append("leverage must be positive")
        if self.min_order_size < 0:
            problems.append("min_order_size must be non-negative")
        if not 0 <= self.stop_loss_fraction <= 1:
            problems.append("stop_loss_fraction must be in [0, 1]")
        if not 0 <= self.maintenance_margin_rate < 1:
            problems.append("maintenance_margin_rate must be in [0, 1)")
        if problems:
            raise ConfigurationError(
                "; ".join(problems),
                details={"risk_limits": asdict(self)},
            )

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "RiskLimits":
        """
        Build limits from the `arbitrage` config section.

        Args:
            config: dict with optional `sizing` and `risk` sub-sections
        """
        sizing = config.get("sizing", {}) or {}
        risk = config.get("risk", {}) or {}
        return cls(
            order_size_ratio=float(sizing.get("order_size_ratio", cls.order_size_ratio)),
            max_position_notional=float(
                sizing.get("max_position_notional", cls.max_position_notional)
            ),
            leverage=float(sizing.get("leverage", cls.leverage)),
            min_order_size=float(sizing.get("min_order_size", cls.min_order_size)),
            stop_loss_fraction=float(risk.get("stop_loss_fraction", cls.stop_loss_fraction)),
            maintenance_margin_rate=float(
                risk.get("maintenance_margin_rate", cls.maintenance_margin_rate)
            ),
        )


def size_order(
    qty_a: float,
    qty_b: float,
    ref_price: float,
    limits: RiskLimits,
) -> float:
    """
    Compute the order size for a new pair.

    size = min(qty_a, qty_b) * ratio, capped at notional * leverage / ref_price.
    Truncated (never rounded up) to 2 decimals. Returns 0.0 when the result is
    below the minimum order size or inputs are unusable.

    Args:
        qty_a: Top-of-book quantity on venue A
        qty_b: Top-of-book quantity on venue B
        ref_price: Price used to convert the notional cap into base units
        limits: Risk limits

    Returns:
        Base-asset quantity (0.0 means reject)
    """
    if ref_price <= 0 or qty_a <= 0 or qty_b <= 0:
        return 0.0

    by_depth = min(_dec(qty_a), _dec(qty_b)) * _dec(limits.order_size_ratio)
    by_notional = (
        _dec(limits.max_position_notional) * _dec(limits.leverage) / _dec(ref_price)
    )

    size = min(by_depth, by_notional).quantize(SIZE_QUANTUM, rounding=ROUND_DOWN)
    if by_depth < _dec(limits.min_order_size) or size < _dec(limits.min_order_size):
        return 0.0
    if size <= 0:
        return 0.0
    return float(size)


def liquidation_price(
    entry_price: float,
    size: float,
    balance: float,
    *,
    is_long: bool,
    maintenance_margin_rate: float = DEFAULT_MAINTENANCE_MARGIN_RATE,
) -> float:
    """
    Approximate liquidation price for one leg.

    contract_value = entry * size
    maintenance_margin = contract_value * rate
    long:  entry * (1 - (balance - mm) / contract_value)
    short: entry * (1 + (balance - mm) / contract_value)

    The margin cushion (balance - mm) is floored at zero: an account below
    maintenance margin is liquidated at entry.
    """
    if entry_price <= 0 or size <= 0:
        raise ValueError("entry_price and size must be positive")

    contract_value = entry_price * size
    maintenance_margin = contract_value * maintenance_margin_rate
    cushion = max(balance - maintenance_margin, 0.0) / contract_value

    if is_long:
        return entry_price * (1 - cushion)
    return entry_price * (1 + cushion)


def stop_loss_price(entry_price: float, liquidation: float, fraction: float) -> float:
    """
    Stop-loss between liquidation and entry.

    fraction=1 stops at entry, fraction=0 at liquidation. Works for both
    sides since the interpolation follows the sign of (entry - liquidation).
    """
    return liquidation + (entry_price - liquidation) * fraction


def stop_loss_triggered(mark_price: float, stop_price: float, *, is_long: bool) -> bool:
    """Long legs stop when the mark falls to the stop, short legs when it rises to it."""
    if stop_price <= 0:
        return False
    if is_long:
        return mark_price <= stop_price
    return mark_price >= stop_price


def leg_profit(
    size: float,
    entry_price: float,
    exit_price: float,
    fee_rate: float,
    sign: int,
) -> LegProfit:
    """Fee-inclusive profit of one leg (sign +1 long, -1 short)."""
    fees = size * entry_price * fee_rate + size * exit_price * fee_rate
    profit = size * (exit_price - entry_price) * sign - fees
    return LegProfit(profit=profit, fees=fees)


def round_trip_profit(
    direction: Direction,
    size: float,
    entry_a: float,
    entry_b: float,
    exit_a: float,
    exit_b: float,
    fees: FeeSchedule,
) -> ProfitBreakdown:
    """
    Profit of closing `size` of a pair, both legs, net of entry and exit fees.

    Used for both live and simulated trading so results are comparable.
    """
    return ProfitBreakdown(
        direction=direction,
        size=size,
        leg_a=leg_profit(size, entry_a, exit_a, fees.rate_a, direction.sign_a),
        leg_b=leg_profit(size, entry_b, exit_b, fees.rate_b, direction.sign_b),
    )
