from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Protocol

from marginsim.core.config import BacktestConfig
from marginsim.core.errors import InvalidArgumentError
from marginsim.models.candle import Candle
from marginsim.models.log import LogEntry
from marginsim.models.margin import MarginPosition


class Logger(Protocol):
    def log_info(self, message: str) -> None: ...

    def log_warning(self, message: str) -> None: ...

    def log_error(self, message: str) -> None: ...


@dataclass
class BacktestState:
    """Everything one simulation run owns: clock, balances and margin positions."""

    config: BacktestConfig
    candles: List[Candle]
    logger: Optional[Logger] = None

    base_balance: Decimal = field(init=False)
    quote_balance: Decimal = field(init=False)
    current_candle_index: int = field(default=0, init=False)
    margin_trades: Dict[int, MarginPosition] = field(default_factory=dict, init=False)
    next_margin_id: int = field(default=1, init=False)
    log_entries: List[LogEntry] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        if not self.candles:
            raise InvalidArgumentError("candles must not be empty")
        self.base_balance = self.config.starting_base_balance
        self.quote_balance = self.config.starting_quote_balance

    def get_current_candle(self) -> Candle:
        return self.candles[self.current_candle_index]

    def get_current_candle_price(self) -> Decimal:
        price = self.get_current_candle().price_at(self.config.candle_price_time)
        if price <= 0:
            raise InvalidArgumentError(f"candle {self.current_candle_index} price must be > 0")
        return price

    def advance(self) -> bool:
        """Step the clock one candle forward; False once the last candle is reached."""

        if self.current_candle_index + 1 >= len(self.candles):
            return False
        self.current_candle_index += 1
        return True

    def get_open_positions(self) -> Dict[int, MarginPosition]:
        return {pid: pos for pid, pos in self.margin_trades.items() if not pos.is_closed}
