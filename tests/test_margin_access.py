from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

import pytest

from marginsim.core.backtest_state import BacktestState
from marginsim.core.config import BacktestConfig
from marginsim.core.errors import InvalidArgumentError, InvalidConfigurationError, PositionClosedError, PositionNotFoundError
from marginsim.core.margin_access import (
    check_liquidations,
    close_all_positions,
    execute_close_position,
    execute_open_position,
    get_unrealized_balances,
)
from marginsim.core.value_assessment import get_combined_value
from marginsim.models.assets import AmountType, AssetType, TradeInput, TradeType
from marginsim.models.candle import Candle
from marginsim.models.log import LogLevel

D = Decimal


@dataclass
class StubLogger:
    infos: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def log_info(self, message: str) -> None:
        self.infos.append(message)

    def log_warning(self, message: str) -> None:
        self.warnings.append(message)

    def log_error(self, message: str) -> None:
        self.errors.append(message)


def _state(
    prices: List[str],
    base: str = "0",
    quote: str = "100",
    leverage: str = "2",
    logger: Optional[StubLogger] = None,
) -> BacktestState:
    cfg = BacktestConfig(
        starting_base_balance=D(base),
        starting_quote_balance=D(quote),
        margin_leverage_ratio=D(leverage),
        margin_liquidation_ratio=D("0.1"),
    )
    return BacktestState(config=cfg, candles=[Candle.flat(D(p)) for p in prices], logger=logger)


def _combined(state: BacktestState) -> Decimal:
    price = state.get_current_candle_price()
    return get_combined_value(AssetType.QUOTE, state.base_balance, state.quote_balance, price).quantize(D("0.0001"))


@pytest.mark.parametrize("close_price,expected", [("1100", "120"), ("900", "80")])
def test_long_open_and_close(close_price: str, expected: str) -> None:
    logger = StubLogger()
    state = _state(["1000", close_price], logger=logger)

    position_id = execute_open_position(TradeType.MARGIN_LONG, state)
    assert state.quote_balance == D("100")
    assert state.advance()

    closed = execute_close_position(state, position_id)

    assert _combined(state) == D(expected)
    assert closed.is_closed
    assert closed.candle_open_index == 0
    assert closed.candle_close_index == 1
    assert closed.quote_profit == D(expected) - D("100")
    assert closed.base_profit == 0
    assert state.margin_trades[position_id] is closed
    assert len(logger.infos) == 2
    assert "borrowing 200" in logger.infos[0]
    assert logger.warnings == []


@pytest.mark.parametrize("close_price,expected", [("1100", "90"), ("900", "110")])
def test_short_open_and_close(close_price: str, expected: str) -> None:
    state = _state(["1000", close_price], base="0.1", quote="0")

    position_id = execute_open_position(TradeType.MARGIN_SHORT, state)
    state.advance()
    execute_close_position(state, position_id)

    assert _combined(state) == D(expected)
    assert state.base_balance >= 0
    assert state.quote_balance >= 0


def test_position_ids_are_monotonic_and_per_run() -> None:
    state = _state(["1000"])
    other = _state(["1000"])

    first = execute_open_position(TradeType.MARGIN_LONG, state)
    second = execute_open_position(TradeType.MARGIN_SHORT, state)
    execute_close_position(state, first)
    third = execute_open_position(TradeType.MARGIN_LONG, state)

    assert (first, second, third) == (1, 2, 3)
    assert execute_open_position(TradeType.MARGIN_LONG, other) == 1
    assert state.next_margin_id == 4


def test_open_with_trade_input_override() -> None:
    state = _state(["1000"], quote="500")

    position_id = execute_open_position(
        TradeType.MARGIN_LONG,
        state,
        TradeInput(amount_type=AmountType.ABSOLUTE, amount=D("100"), asset=AssetType.QUOTE),
    )

    pos = state.margin_trades[position_id]
    assert pos.quote_collateral == D("100")
    assert pos.borrowed_amount == D("200")
    assert state.quote_balance == D("500")


def test_open_failure_creates_no_position() -> None:
    logger = StubLogger()
    state = _state(["1000"], leverage="0.5", logger=logger)

    with pytest.raises(InvalidConfigurationError):
        execute_open_position(TradeType.MARGIN_LONG, state)

    assert state.margin_trades == {}
    assert state.next_margin_id == 1
    assert len(logger.errors) == 1


def test_open_rejects_over_allocated_collateral() -> None:
    state = _state(["1000"], quote="50")

    with pytest.raises(InvalidArgumentError):
        execute_open_position(
            TradeType.MARGIN_LONG,
            state,
            TradeInput(amount_type=AmountType.ABSOLUTE, amount=D("100"), asset=AssetType.QUOTE),
        )
    assert state.margin_trades == {}


def test_close_unknown_position_leaves_balances_untouched() -> None:
    logger = StubLogger()
    state = _state(["1000"], base="0.5", quote="100", logger=logger)

    with pytest.raises(PositionNotFoundError):
        execute_close_position(state, 42)

    assert state.base_balance == D("0.5")
    assert state.quote_balance == D("100")
    assert state.log_entries[-1].level == LogLevel.ERROR
    assert "42" in logger.errors[0]


def test_double_close_is_rejected() -> None:
    state = _state(["1000", "1100"])
    position_id = execute_open_position(TradeType.MARGIN_LONG, state)
    state.advance()
    execute_close_position(state, position_id)
    balances = (state.base_balance, state.quote_balance)

    with pytest.raises(PositionClosedError):
        execute_close_position(state, position_id)

    assert (state.base_balance, state.quote_balance) == balances


def test_unrealized_balances_do_not_close_the_position() -> None:
    state = _state(["1000", "1100"])
    position_id = execute_open_position(TradeType.MARGIN_LONG, state)
    state.advance()

    is_liquid, new_base, new_quote = get_unrealized_balances(state, position_id)

    assert is_liquid
    assert new_quote == D("120")
    assert state.quote_balance == D("100")
    assert not state.margin_trades[position_id].is_closed


def test_check_liquidations_force_closes_illiquid_positions() -> None:
    logger = StubLogger()
    state = _state(["1000", "700", "400"], quote="100", logger=logger)
    position_id = execute_open_position(TradeType.MARGIN_LONG, state)

    state.advance()
    assert check_liquidations(state) == []

    state.advance()
    assert check_liquidations(state) == [position_id]

    pos = state.margin_trades[position_id]
    assert pos.is_closed
    assert pos.candle_close_index == 2
    assert state.quote_balance == 0
    assert state.base_balance == 0
    assert len(logger.warnings) == 1
    assert "liquidated" in logger.warnings[0]
    assert state.log_entries[-1].candle_index == 2


def test_close_all_positions() -> None:
    state = _state(["1000", "1000"], base="0.1", quote="100")
    execute_open_position(TradeType.MARGIN_LONG, state)
    execute_open_position(TradeType.MARGIN_SHORT, state)
    state.advance()

    closed = close_all_positions(state)

    assert [p.is_closed for p in closed] == [True, True]
    assert state.get_open_positions() == {}
    assert state.base_balance == D("0.1")
    assert state.quote_balance == D("100")


@pytest.mark.parametrize("action", [execute_close_position, get_unrealized_balances])
def test_valuation_failure_is_logged_and_leaves_balances(action) -> None:
    logger = StubLogger()
    state = _state(["1000", "0"], base="0.5", quote="100", logger=logger)
    position_id = execute_open_position(TradeType.MARGIN_LONG, state)
    state.advance()

    with pytest.raises(InvalidArgumentError):
        action(state, position_id)

    assert state.log_entries[-1].level == LogLevel.ERROR
    assert f"#{position_id}" in logger.errors[0]
    assert state.base_balance == D("0.5")
    assert state.quote_balance == D("100")
    assert not state.margin_trades[position_id].is_closed
