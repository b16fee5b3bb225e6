"""
Execution module - Exchange account adapters

Each port implements the ExecutionPort capability (open/close/balance).
Select with create_execution_port() according to the trading mode.
"""

from typing import Any, Optional

from spreadarb.core.config import Settings, get_settings
from spreadarb.execution.base import (
    DualLegExecutionPort,
    ExecutionPort,
    LegOrder,
    OrderSide,
    leg_orders,
)
from spreadarb.execution.simulated import SimulatedExecutionPort


def create_execution_port(
    config: dict[str, Any],
    settings: Optional[Settings] = None,
) -> ExecutionPort:
    """
    Build the port for the configured trading mode.

    Args:
        config: `arbitrage` section of config.yaml
        settings: Application settings (trading_mode, credentials)
    """
    settings = settings or get_settings()
    if settings.is_live:
        # CCXT is only loaded in live mode
        from spreadarb.execution.live import CcxtExecutionPort
        return CcxtExecutionPort.from_config(config, settings=settings)
    return SimulatedExecutionPort.from_config(config)


__all__ = [
    "ExecutionPort",
    "DualLegExecutionPort",
    "LegOrder",
    "OrderSide",
    "leg_orders",
    "SimulatedExecutionPort",
    "create_execution_port",
]
