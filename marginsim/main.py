from __future__ import annotations

import csv
import os
import sys
from datetime import datetime
from decimal import Decimal
from typing import List, Protocol

if __package__ is None or __package__ == "":
    # Allow running via: python marginsim/main.py
    sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from marginsim.core.backtest_state import BacktestState, Logger
from marginsim.core.config import BacktestConfig
from marginsim.core.margin_access import check_liquidations, close_all_positions, execute_open_position
from marginsim.core.value_assessment import get_combined_value
from marginsim.logger.console_logger import ConsoleLogger
from marginsim.models.assets import AssetType, TradeType
from marginsim.models.candle import Candle
from marginsim.models.log import LogLevel


class DemoLogger(Logger, Protocol):
    def log_balances(self, candle_index: int, base_balance: Decimal, quote_balance: Decimal, open_positions: int) -> None: ...


def load_candles(path: str) -> List[Candle]:
    """Read candles from a CSV with open/high/low/close columns, or a single price column."""

    candles: List[Candle] = []
    with open(path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            raw_time = (row.get("time") or "").strip()
            time = datetime.fromisoformat(raw_time) if raw_time else None
            if "price" in row and row["price"]:
                candles.append(Candle.flat(Decimal(row["price"]), time=time))
                continue
            candles.append(
                Candle(
                    open=Decimal(row["open"]),
                    high=Decimal(row["high"]),
                    low=Decimal(row["low"]),
                    close=Decimal(row["close"]),
                    volume=Decimal(row.get("volume") or 0),
                    time=time,
                )
            )
    return candles


def run_demo(cfg: BacktestConfig, candles: List[Candle], trade_type: TradeType, logger: DemoLogger) -> BacktestState:
    """Open one position on the first candle, liquidate on the way, settle on the last."""

    state = BacktestState(config=cfg, candles=candles, logger=logger)
    execute_open_position(trade_type, state)

    while True:
        check_liquidations(state)
        logger.log_balances(
            state.current_candle_index,
            state.base_balance,
            state.quote_balance,
            len(state.get_open_positions()),
        )
        if not state.get_open_positions() or not state.advance():
            break

    close_all_positions(state)
    return state


def main() -> None:
    cfg = BacktestConfig.load()
    cfg.validate()

    logger = ConsoleLogger(log_dir=cfg.log_dir, log_level=cfg.log_level)

    candles = load_candles(cfg.candles_path)
    state = run_demo(cfg, candles, cfg.trade_type, logger)

    liquidated = sum(1 for e in state.log_entries if e.level == LogLevel.WARNING)
    price = state.get_current_candle_price()
    logger.log_summary(
        total_positions=len(state.margin_trades),
        liquidated=liquidated,
        base_balance=state.base_balance,
        quote_balance=state.quote_balance,
        combined_quote=get_combined_value(AssetType.QUOTE, state.base_balance, state.quote_balance, price),
    )


if __name__ == "__main__":
    main()
