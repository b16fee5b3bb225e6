"""
Core module - Engineering foundation

Contains configuration, logging, errors, and time utilities.
"""

from spreadarb.core.config import (
    Settings,
    get_settings,
    load_yaml_config,
    get_arbitrage_config,
)
from spreadarb.core.errors import (
    SpreadArbError,
    ConfigurationError,
    FeedError,
    MalformedMessageError,
    ExecutionError,
    OrderRejectedError,
    BalanceUnavailableError,
    PositionStateError,
)
from spreadarb.core.logging import setup_logging, get_logger

__all__ = [
    "Settings",
    "get_settings",
    "load_yaml_config",
    "get_arbitrage_config",
    "SpreadArbError",
    "ConfigurationError",
    "FeedError",
    "MalformedMessageError",
    "ExecutionError",
    "OrderRejectedError",
    "BalanceUnavailableError",
    "PositionStateError",
    "setup_logging",
    "get_logger",
]
