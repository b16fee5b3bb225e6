"""
Live execution through CCXT.

Uses the CCXT async API for unified exchange access:
- binance -> binanceusdm (USDⓈ-M perpetuals)
- bitget  -> bitget (USDT-M perpetuals)

Orders are market orders, reduce-only on close. Orders are never retried;
only the read-only balance query retries on network errors.
"""

from typing import Any, Optional

import ccxt.async_support as ccxt
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from spreadarb.core.config import Settings, get_settings
from spreadarb.core.errors import (
    BalanceUnavailableError,
    ConfigurationError,
    ExecutionError,
    OrderRejectedError,
)
from spreadarb.execution.base import DualLegExecutionPort, LegOrder

CCXT_EXCHANGES = {
    "binance": "binanceusdm",
    "bitget": "bitget",
}


def unified_symbol(symbol: str, settle: str = "USDT") -> str:
    """ETHUSDT -> ETH/USDT:USDT (CCXT linear perpetual symbol)."""
    symbol = symbol.replace("-", "").replace("/", "").upper()
    if not symbol.endswith(settle):
        raise ConfigurationError(f"Symbol {symbol} is not {settle}-settled")
    base = symbol[: -len(settle)]
    return f"{base}/{settle}:{settle}"


class CcxtExecutionPort(DualLegExecutionPort):
    """
    Live port placing both legs through CCXT.

    Account balance is read from venue A, whose leg the liquidation estimate
    is computed for.
    """

    def __init__(
        self,
        venue_a: str = "binance",
        venue_b: str = "bitget",
        settings: Optional[Settings] = None,
        leverage: float = 10.0,
        exchanges: Optional[dict[str, Any]] = None,
    ):
        super().__init__(venue_a, venue_b)
        self.settings = settings or get_settings()
        self.leverage = leverage
        self.symbol = unified_symbol(self.settings.symbol)
        self._exchanges: dict[str, Any] = exchanges or {
            venue_a: self._build_exchange(venue_a),
            venue_b: self._build_exchange(venue_b),
        }

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        settings: Optional[Settings] = None,
    ) -> "CcxtExecutionPort":
        """Build from the `arbitrage` config section."""
        feeds = config.get("feeds", {}) or {}
        sizing = config.get("sizing", {}) or {}
        return cls(
            venue_a=feeds.get("venue_a", "binance"),
            venue_b=feeds.get("venue_b", "bitget"),
            settings=settings,
            leverage=float(sizing.get("leverage", 10.0)),
        )

    def _build_exchange(self, venue: str) -> Any:
        """Create the CCXT client for a venue with credentials from settings."""
        exchange_id = CCXT_EXCHANGES.get(venue)
        if exchange_id is None:
            raise ConfigurationError(f"No CCXT mapping for venue: {venue}")

        config: dict[str, Any] = {"enableRateLimit": True}
        if venue == "binance":
            config["apiKey"] = self.settings.binance_api_key
            config["secret"] = self.settings.binance_secret_key
        elif venue == "bitget":
            config["apiKey"] = self.settings.bitget_api_key
            config["secret"] = self.settings.bitget_secret_key
            config["password"] = self.settings.bitget_passphrase
            config["options"] = {"defaultType": "swap"}

        if not config.get("apiKey") or not config.get("secret"):
            raise ConfigurationError(
                f"Live trading requires API credentials for {venue}",
                details={"venue": venue},
            )

        return getattr(ccxt, exchange_id)(config)

    def exchange(self, venue: str) -> Any:
        return self._exchanges[venue]

    async def prepare(self) -> None:
        """Set leverage on both venues; failures are logged, not fatal."""
        for venue in (self.venue_a, self.venue_b):
            try:
                await self.exchange(venue).set_leverage(int(self.leverage), self.symbol)
                self.logger.info(f"Leverage set on {venue}: {self.leverage}x")
            except ccxt.BaseError as e:
                self.logger.error(f"Failed to set leverage on {venue}: {e}")

    async def _submit_leg(self, order: LegOrder) -> Any:
        params = {"reduceOnly": True} if order.reduce_only else {}
        try:
            response = await self.exchange(order.venue).create_order(
                self.symbol,
                "market",
                order.side.value,
                order.size,
                None,
                params,
            )
        except (ccxt.InsufficientFunds, ccxt.InvalidOrder) as e:
            raise OrderRejectedError(str(e), venue=order.venue) from e
        except ccxt.BaseError as e:
            raise ExecutionError(str(e), venue=order.venue) from e
        return response.get("id") if isinstance(response, dict) else response

    @retry(
        retry=retry_if_exception_type(ccxt.NetworkError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        reraise=True,
    )
    async def _fetch_balance(self) -> dict[str, Any]:
        return await self.exchange(self.venue_a).fetch_balance()

    async def get_account_balance(self) -> float:
        try:
            balance = await self._fetch_balance()
        except ccxt.BaseError as e:
            raise BalanceUnavailableError(str(e), venue=self.venue_a) from e

        total = (balance.get("total") or {}).get("USDT")
        if total is None:
            raise BalanceUnavailableError("No USDT balance reported", venue=self.venue_a)
        return float(total)

    async def close(self) -> None:
        for venue, exchange in self._exchanges.items():
            try:
                await exchange.close()
            except ccxt.BaseError as e:
                self.logger.warning(f"Error closing {venue} client: {e}")
