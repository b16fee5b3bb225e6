"""
Domain module - Business models

Contains pure value objects shared by feeds, evaluator, position manager
and execution ports. No transport or exchange dependencies.
"""

from spreadarb.domain.models import (
    Direction,
    PositionState,
    PriceLevel,
    BookSnapshot,
    Position,
    Thresholds,
    FeeSchedule,
    LegProfit,
    ProfitBreakdown,
)
from spreadarb.domain.signals import (
    SignalKind,
    ExitReason,
    Signal,
    NO_SIGNAL,
    open_signal,
    close_signal,
)

__all__ = [
    # Models
    "Direction",
    "PositionState",
    "PriceLevel",
    "BookSnapshot",
    "Position",
    "Thresholds",
    "FeeSchedule",
    "LegProfit",
    "ProfitBreakdown",
    # Signals
    "SignalKind",
    "ExitReason",
    "Signal",
    "NO_SIGNAL",
    "open_signal",
    "close_signal",
]
