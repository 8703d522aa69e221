from decimal import Decimal

import pytest

from marginsim.core.backtest_state import BacktestState
from marginsim.core.config import BacktestConfig
from marginsim.core.errors import InvalidArgumentError
from marginsim.models.candle import Candle, CandlePriceTime


def _candles() -> list[Candle]:
    return [
        Candle(open=Decimal("10"), high=Decimal("14"), low=Decimal("8"), close=Decimal("12")),
        Candle(open=Decimal("12"), high=Decimal("13"), low=Decimal("11"), close=Decimal("11")),
    ]


def test_state_starts_from_config_balances() -> None:
    cfg = BacktestConfig(starting_base_balance=Decimal("1.5"), starting_quote_balance=Decimal("20"))
    state = BacktestState(config=cfg, candles=_candles())

    assert state.base_balance == Decimal("1.5")
    assert state.quote_balance == Decimal("20")
    assert state.current_candle_index == 0
    assert state.next_margin_id == 1


@pytest.mark.parametrize(
    "price_time,expected",
    [
        (CandlePriceTime.OPEN, "10"),
        (CandlePriceTime.HIGH, "14"),
        (CandlePriceTime.LOW, "8"),
        (CandlePriceTime.CLOSE, "12"),
        (CandlePriceTime.AVERAGE, "11"),
    ],
)
def test_current_candle_price_follows_price_time(price_time: CandlePriceTime, expected: str) -> None:
    state = BacktestState(config=BacktestConfig(candle_price_time=price_time), candles=_candles())
    assert state.get_current_candle_price() == Decimal(expected)


def test_advance_stops_at_last_candle() -> None:
    state = BacktestState(config=BacktestConfig(), candles=_candles())

    assert state.advance()
    assert state.current_candle_index == 1
    assert not state.advance()
    assert state.current_candle_index == 1


def test_non_positive_candle_price_is_rejected() -> None:
    state = BacktestState(config=BacktestConfig(), candles=[Candle.flat(Decimal("0"))])
    with pytest.raises(InvalidArgumentError):
        state.get_current_candle_price()


def test_empty_candles_are_rejected() -> None:
    with pytest.raises(InvalidArgumentError):
        BacktestState(config=BacktestConfig(), candles=[])
