from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Tuple

from marginsim.core.backtest_state import BacktestState
from marginsim.core.errors import (
    InvalidArgumentError,
    InvalidConfigurationError,
    PositionClosedError,
    PositionNotFoundError,
)
from marginsim.core.log_handler import add_log_entry
from marginsim.models.assets import TradeInput, TradeType
from marginsim.models.log import LogLevel
from marginsim.models.margin import MarginPosition


def execute_open_position(
    trade_type: TradeType,
    state: BacktestState,
    trade_input: Optional[TradeInput] = None,
) -> int:
    """Open a long or short at the current candle and return its id.

    Collateral comes from the account balances as selected by `trade_input`
    (the configured default when omitted). Balances are left untouched.
    """

    if trade_input is None:
        trade_input = state.config.default_trade_input

    try:
        candle_price = state.get_current_candle_price()
        pos = MarginPosition.from_trade_input(
            trade_type,
            candle_price,
            trade_input,
            state.base_balance,
            state.quote_balance,
            state.config.margin_leverage_ratio,
            state.config.margin_liquidation_ratio,
            candle_open_index=state.current_candle_index,
        )
    except (InvalidConfigurationError, InvalidArgumentError) as e:
        add_log_entry(state, f"Failed to open margin position: {e}", state.current_candle_index, LogLevel.ERROR)
        raise

    position_id = state.next_margin_id
    state.margin_trades[position_id] = pos
    state.next_margin_id += 1

    direction = "long" if pos.is_long else "short"
    add_log_entry(
        state,
        f"Opened margin {direction} #{position_id} at price {candle_price} "
        f"borrowing {pos.borrowed_amount} {pos.borrowed_asset.value.lower()}",
        state.current_candle_index,
    )
    return position_id


def _get_open_position(state: BacktestState, position_id: int) -> MarginPosition:
    pos = state.margin_trades.get(position_id)
    if pos is None:
        err: Exception = PositionNotFoundError(position_id)
    elif pos.is_closed:
        err = PositionClosedError(position_id)
    else:
        return pos

    add_log_entry(state, f"Cannot use margin position: {err}", state.current_candle_index, LogLevel.ERROR)
    raise err


def _value_position(state: BacktestState, position_id: int, pos: MarginPosition) -> Tuple[bool, Decimal, Decimal]:
    try:
        return pos.calculate_unrealized_balances(
            state.get_current_candle_price(),
            state.base_balance,
            state.quote_balance,
        )
    except InvalidArgumentError as e:
        add_log_entry(
            state,
            f"Failed to value margin position #{position_id}: {e}",
            state.current_candle_index,
            LogLevel.ERROR,
        )
        raise


def get_unrealized_balances(state: BacktestState, position_id: int) -> Tuple[bool, Decimal, Decimal]:
    """Mark an open position to market without closing it."""

    pos = _get_open_position(state, position_id)
    return _value_position(state, position_id, pos)


def execute_close_position(state: BacktestState, position_id: int) -> MarginPosition:
    """Settle a position at the current candle and write the result into the balances."""

    pos = _get_open_position(state, position_id)
    is_liquid, new_base, new_quote = _value_position(state, position_id, pos)

    base_profit = new_base - state.base_balance
    quote_profit = new_quote - state.quote_balance
    liquidness = "liquid" if is_liquid else "liquidated"
    add_log_entry(
        state,
        f"Closed {liquidness} margin position #{position_id} with profit "
        f"{base_profit:.4f} base and {quote_profit:.4f} quote",
        state.current_candle_index,
        LogLevel.INFORMATION if is_liquid else LogLevel.WARNING,
    )

    closed = pos.mark_as_closed(state.current_candle_index, base_profit, quote_profit)
    state.margin_trades[position_id] = closed
    state.base_balance = new_base
    state.quote_balance = new_quote
    return closed


def check_liquidations(state: BacktestState) -> List[int]:
    """Force-close every open position that is illiquid at the current candle."""

    price = state.get_current_candle_price()
    liquidated: List[int] = []
    for position_id, pos in state.get_open_positions().items():
        if pos.is_liquid_at(price):
            continue
        execute_close_position(state, position_id)
        liquidated.append(position_id)
    return liquidated


def close_all_positions(state: BacktestState) -> List[MarginPosition]:
    return [execute_close_position(state, pid) for pid in list(state.get_open_positions())]
