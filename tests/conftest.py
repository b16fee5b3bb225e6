"""Shared fixtures: book factory and an in-memory execution port."""

from typing import Optional

import pytest

from spreadarb.core.errors import BalanceUnavailableError
from spreadarb.domain.models import BookSnapshot, Direction, PriceLevel
from spreadarb.execution.base import ExecutionPort


def _make_book(
    venue: str,
    bid: float,
    ask: float,
    bid_qty: float = 5.0,
    ask_qty: float = 5.0,
    received_at=None,
) -> BookSnapshot:
    kwargs = {"received_at": received_at} if received_at is not None else {}
    return BookSnapshot(
        venue=venue,
        best_bid=PriceLevel(bid, bid_qty),
        best_ask=PriceLevel(ask, ask_qty),
        **kwargs,
    )


class FakePort(ExecutionPort):
    """Records calls; outcomes are set per test."""

    def __init__(self, balance: float = 500.0):
        self.balance = balance
        self.open_result: object = True
        self.close_result: object = True
        self.balance_error: Optional[Exception] = None
        self.calls: list[tuple] = []
        self.prepared = False
        self.closed = False

    async def open_position(self, direction: Direction, size, price_a, price_b):
        self.calls.append(("open", direction, size, price_a, price_b))
        if isinstance(self.open_result, Exception):
            raise self.open_result
        return self.open_result

    async def close_position(self, direction: Direction, size, price_a, price_b):
        self.calls.append(("close", direction, size, price_a, price_b))
        if isinstance(self.close_result, Exception):
            raise self.close_result
        return self.close_result

    async def get_account_balance(self) -> float:
        self.calls.append(("balance",))
        if self.balance_error is not None:
            raise self.balance_error
        return self.balance

    async def prepare(self) -> None:
        self.prepared = True

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_book():
    """Factory for BookSnapshot(venue, bid, ask, bid_qty, ask_qty)."""
    return _make_book


@pytest.fixture
def fake_port():
    return FakePort()


@pytest.fixture
def balance_unavailable():
    return BalanceUnavailableError("timeout", venue="binance")


@pytest.fixture
def arb_config():
    """`arbitrage` config section mirroring config/config.yaml defaults."""
    return {
        "thresholds": {"open": 0.0006, "close": 0.0002},
        "fees": {"binance": 0.0005, "bitget": 0.0005},
        "feeds": {
            "venue_a": "binance",
            "venue_b": "bitget",
            "reconnect_delay_seconds": 0,
            "heartbeat_interval_seconds": 18,
        },
        "strategy": {
            "require_net_profit": True,
            "max_book_age_seconds": 0,
            "close_limited_by_depth": False,
        },
        "sizing": {
            "order_size_ratio": 0.7,
            "max_position_notional": 1000,
            "leverage": 10,
            "min_order_size": 0.01,
        },
        "risk": {
            "stop_loss_fraction": 0.5,
            "maintenance_margin_rate": 0.005,
        },
        "simulation": {"balance": 10000},
    }
