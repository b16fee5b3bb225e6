"""
Simulated execution for paper trading.

Every leg fills at the quoted price. Fills and margin usage are printed to
the terminal; profit is reported by the PositionManager, which uses the same
formula in live mode.
"""

from typing import Any, Optional

from rich.console import Console

from spreadarb.domain.models import Direction
from spreadarb.execution.base import DualLegExecutionPort, LegOrder

DEFAULT_BALANCE = 10000.0


class SimulatedExecutionPort(DualLegExecutionPort):
    """Paper-trading port with a fixed account balance."""

    def __init__(
        self,
        venue_a: str = "binance",
        venue_b: str = "bitget",
        balance: float = DEFAULT_BALANCE,
        leverage: float = 10.0,
        console: Optional[Console] = None,
    ):
        super().__init__(venue_a, venue_b)
        self.balance = balance
        self.leverage = leverage
        self.console = console or Console()
        self.fills: list[LegOrder] = []

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "SimulatedExecutionPort":
        """Build from the `arbitrage` config section."""
        feeds = config.get("feeds", {}) or {}
        sizing = config.get("sizing", {}) or {}
        simulation = config.get("simulation", {}) or {}
        return cls(
            venue_a=feeds.get("venue_a", "binance"),
            venue_b=feeds.get("venue_b", "bitget"),
            balance=float(simulation.get("balance", DEFAULT_BALANCE)),
            leverage=float(sizing.get("leverage", 10.0)),
        )

    async def _submit_leg(self, order: LegOrder) -> str:
        self.fills.append(order)
        return "simulated fill"

    async def open_position(
        self,
        direction: Direction,
        size: float,
        price_a: float,
        price_b: float,
    ) -> bool:
        ok = await super().open_position(direction, size, price_a, price_b)
        if ok:
            margin = size * price_a / self.leverage
            self.console.print(f"[green]OPEN[/green] {direction.label}")
            self.console.print(f"  size: {size}")
            self.console.print(f"  {self.venue_a} price: {price_a}")
            self.console.print(f"  {self.venue_b} price: {price_b}")
            self.console.print(f"  balance: {self.balance:.2f} USDT, margin used: {margin:.2f} USDT")
        return ok

    async def close_position(
        self,
        direction: Direction,
        size: float,
        price_a: float,
        price_b: float,
    ) -> bool:
        ok = await super().close_position(direction, size, price_a, price_b)
        if ok:
            self.console.print(f"[yellow]CLOSE[/yellow] {size}")
            self.console.print(f"  {self.venue_a} price: {price_a}")
            self.console.print(f"  {self.venue_b} price: {price_b}")
        return ok

    async def get_account_balance(self) -> float:
        return self.balance
