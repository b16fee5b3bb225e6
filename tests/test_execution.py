"""Tests for execution ports."""

import io
from unittest.mock import AsyncMock, Mock

import ccxt.async_support as ccxt
import pytest
from rich.console import Console

from spreadarb.core.errors import (
    BalanceUnavailableError,
    ConfigurationError,
    OrderRejectedError,
)
from spreadarb.domain.models import Direction
from spreadarb.execution import SimulatedExecutionPort, create_execution_port
from spreadarb.execution.base import DualLegExecutionPort, OrderSide, leg_orders
from spreadarb.execution.live import CcxtExecutionPort, unified_symbol


class TestLegOrders:
    """Tests for leg_orders."""

    def test_open_long_a(self):
        a, b = leg_orders(
            Direction.LONG_A_SHORT_B, 1.0, 2000, 2002, venue_a="binance", venue_b="bitget"
        )
        assert (a.venue, a.side, a.reduce_only) == ("binance", OrderSide.BUY, False)
        assert (b.venue, b.side, b.reduce_only) == ("bitget", OrderSide.SELL, False)

    def test_open_short_a(self):
        a, b = leg_orders(
            Direction.SHORT_A_LONG_B, 1.0, 2003, 2000, venue_a="binance", venue_b="bitget"
        )
        assert a.side is OrderSide.SELL
        assert b.side is OrderSide.BUY

    def test_close_reverses_and_reduces(self):
        a, b = leg_orders(
            Direction.LONG_A_SHORT_B, 1.0, 1990, 1985,
            venue_a="binance", venue_b="bitget", closing=True,
        )
        assert a.side is OrderSide.SELL and a.reduce_only
        assert b.side is OrderSide.BUY and b.reduce_only


class TestDualLegExecutionPort:
    """Tests for concurrent leg submission."""

    class ScriptedPort(DualLegExecutionPort):
        def __init__(self, fail_venues=()):
            super().__init__("binance", "bitget")
            self.fail_venues = set(fail_venues)
            self.submitted = []

        async def _submit_leg(self, order):
            self.submitted.append(order)
            if order.venue in self.fail_venues:
                raise OrderRejectedError("rejected", venue=order.venue)
            return "ok"

        async def get_account_balance(self):
            return 0.0

    @pytest.mark.asyncio
    async def test_both_legs_succeed(self):
        port = self.ScriptedPort()
        assert await port.open_position(Direction.LONG_A_SHORT_B, 1.0, 2000, 2002)
        assert {o.venue for o in port.submitted} == {"binance", "bitget"}

    @pytest.mark.asyncio
    async def test_one_leg_failure_reports_false(self):
        """The other leg is still submitted; no retry, no unwind."""
        port = self.ScriptedPort(fail_venues={"bitget"})
        assert not await port.open_position(Direction.LONG_A_SHORT_B, 1.0, 2000, 2002)
        assert len(port.submitted) == 2

    @pytest.mark.asyncio
    async def test_close_failure(self):
        port = self.ScriptedPort(fail_venues={"binance", "bitget"})
        assert not await port.close_position(Direction.LONG_A_SHORT_B, 1.0, 1990, 1985)


class TestSimulatedExecutionPort:
    """Tests for SimulatedExecutionPort."""

    @pytest.fixture
    def output(self):
        return io.StringIO()

    @pytest.fixture
    def port(self, output):
        return SimulatedExecutionPort(
            balance=10000, leverage=10, console=Console(file=output, width=120)
        )

    @pytest.mark.asyncio
    async def test_open_and_close(self, port, output):
        assert await port.open_position(Direction.LONG_A_SHORT_B, 2.1, 2000, 2002)
        assert await port.close_position(Direction.LONG_A_SHORT_B, 2.1, 1990, 1985)

        assert len(port.fills) == 4
        assert port.fills[2].reduce_only
        text = output.getvalue()
        assert "OPEN" in text
        assert "CLOSE" in text
        assert "margin used: 420.00" in text

    @pytest.mark.asyncio
    async def test_balance(self, port):
        assert await port.get_account_balance() == 10000

    def test_from_config(self, arb_config):
        arb_config["simulation"]["balance"] = 2500
        port = SimulatedExecutionPort.from_config(arb_config)
        assert port.balance == 2500
        assert (port.venue_a, port.venue_b) == ("binance", "bitget")

    def test_factory_defaults_to_simulation(self, arb_config):
        settings = Mock(is_live=False)
        assert isinstance(create_execution_port(arb_config, settings=settings), SimulatedExecutionPort)


class TestCcxtExecutionPort:
    """Tests for CcxtExecutionPort with mocked CCXT clients."""

    @pytest.fixture
    def mock_settings(self):
        settings = Mock()
        settings.symbol = "ETHUSDT"
        settings.binance_api_key = None
        settings.binance_secret_key = None
        settings.bitget_api_key = None
        settings.bitget_secret_key = None
        settings.bitget_passphrase = None
        return settings

    @pytest.fixture
    def exchanges(self):
        binance = AsyncMock()
        bitget = AsyncMock()
        binance.create_order.return_value = {"id": "b-1"}
        bitget.create_order.return_value = {"id": "g-1"}
        binance.fetch_balance.return_value = {"total": {"USDT": 1234.5}}
        return {"binance": binance, "bitget": bitget}

    @pytest.fixture
    def port(self, mock_settings, exchanges):
        return CcxtExecutionPort(settings=mock_settings, leverage=10, exchanges=exchanges)

    def test_unified_symbol(self):
        assert unified_symbol("ETHUSDT") == "ETH/USDT:USDT"
        assert unified_symbol("btc-usdt") == "BTC/USDT:USDT"
        with pytest.raises(ConfigurationError):
            unified_symbol("ETHBTC")

    def test_requires_credentials(self, mock_settings):
        with pytest.raises(ConfigurationError):
            CcxtExecutionPort(settings=mock_settings)

    @pytest.mark.asyncio
    async def test_open_places_market_orders(self, port, exchanges):
        assert await port.open_position(Direction.LONG_A_SHORT_B, 2.1, 2000, 2002)

        exchanges["binance"].create_order.assert_awaited_once_with(
            "ETH/USDT:USDT", "market", "buy", 2.1, None, {}
        )
        exchanges["bitget"].create_order.assert_awaited_once_with(
            "ETH/USDT:USDT", "market", "sell", 2.1, None, {}
        )

    @pytest.mark.asyncio
    async def test_close_is_reduce_only(self, port, exchanges):
        assert await port.close_position(Direction.LONG_A_SHORT_B, 2.1, 1990, 1985)

        exchanges["binance"].create_order.assert_awaited_once_with(
            "ETH/USDT:USDT", "market", "sell", 2.1, None, {"reduceOnly": True}
        )

    @pytest.mark.asyncio
    async def test_rejected_leg(self, port, exchanges):
        exchanges["bitget"].create_order.side_effect = ccxt.InsufficientFunds("no margin")
        assert not await port.open_position(Direction.LONG_A_SHORT_B, 2.1, 2000, 2002)

    @pytest.mark.asyncio
    async def test_submit_leg_maps_errors(self, port, exchanges):
        order = leg_orders(
            Direction.LONG_A_SHORT_B, 1.0, 2000, 2002, venue_a="binance", venue_b="bitget"
        )[0]
        exchanges["binance"].create_order.side_effect = ccxt.InvalidOrder("min size")
        with pytest.raises(OrderRejectedError):
            await port._submit_leg(order)

    @pytest.mark.asyncio
    async def test_balance(self, port):
        assert await port.get_account_balance() == 1234.5

    @pytest.mark.asyncio
    async def test_balance_retries_network_errors(self, port, exchanges):
        exchanges["binance"].fetch_balance.side_effect = [
            ccxt.NetworkError("timeout"),
            {"total": {"USDT": 99.0}},
        ]
        assert await port.get_account_balance() == 99.0
        assert exchanges["binance"].fetch_balance.await_count == 2

    @pytest.mark.asyncio
    async def test_balance_unavailable(self, port, exchanges):
        exchanges["binance"].fetch_balance.return_value = {"total": {}}
        with pytest.raises(BalanceUnavailableError):
            await port.get_account_balance()

        exchanges["binance"].fetch_balance.side_effect = ccxt.ExchangeError("denied")
        with pytest.raises(BalanceUnavailableError):
            await port.get_account_balance()

    @pytest.mark.asyncio
    async def test_prepare_sets_leverage(self, port, exchanges):
        exchanges["bitget"].set_leverage.side_effect = ccxt.ExchangeError("not allowed")
        await port.prepare()

        exchanges["binance"].set_leverage.assert_awaited_once_with(10, "ETH/USDT:USDT")
        exchanges["bitget"].set_leverage.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_clients(self, port, exchanges):
        await port.close()
        exchanges["binance"].close.assert_awaited_once()
        exchanges["bitget"].close.assert_awaited_once()
