"""
Spreadarb Arbitrage Module.

Cross-venue perpetual-futures spread arbitrage.

Components:
- strategy: Spread evaluation (entry/exit signals)
- risk: Order sizing, liquidation/stop-loss estimates, profit accounting
- position: Single-position state machine
- engine: Main arbitrage engine
"""

from spreadarb.arb.strategy import SpreadEvaluator
from spreadarb.arb.risk import RiskLimits
from spreadarb.arb.position import PositionManager
from spreadarb.arb.engine import ArbEngine, create_engine

__all__ = [
    "SpreadEvaluator",
    "RiskLimits",
    "PositionManager",
    "ArbEngine",
    "create_engine",
]
