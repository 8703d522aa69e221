from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Type, TypeVar

from dotenv import load_dotenv

from marginsim.core.errors import InvalidConfigurationError
from marginsim.models.assets import AmountType, AssetType, TradeInput, TradeType
from marginsim.models.candle import CandlePriceTime

E = TypeVar("E", bound=Enum)


def _getenv_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name)
    if raw is None or raw == "":
        raw = default
    try:
        return Decimal(raw.strip())
    except InvalidOperation as e:
        raise InvalidConfigurationError(f"{name} must be a number, got {raw!r}") from e


def _getenv_enum(name: str, enum_cls: Type[E], default: E) -> E:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return enum_cls(raw.strip().upper())
    except ValueError as e:
        choices = ", ".join(m.value for m in enum_cls)
        raise InvalidConfigurationError(f"{name} must be one of {choices}") from e


@dataclass(frozen=True)
class BacktestConfig:
    starting_base_balance: Decimal = Decimal(0)
    starting_quote_balance: Decimal = Decimal(1000)

    margin_leverage_ratio: Decimal = Decimal(2)
    margin_liquidation_ratio: Decimal = Decimal("0.1")

    default_trade_input: TradeInput = TradeInput()
    candle_price_time: CandlePriceTime = CandlePriceTime.CLOSE
    trade_type: TradeType = TradeType.MARGIN_LONG

    candles_path: str = "data/candles.csv"
    log_dir: str = "logs"
    log_level: str = "info"

    @classmethod
    def load(cls, dotenv_path: Optional[str] = None) -> "BacktestConfig":
        load_dotenv(dotenv_path=dotenv_path)

        return cls(
            starting_base_balance=_getenv_decimal("STARTING_BASE_BALANCE", "0"),
            starting_quote_balance=_getenv_decimal("STARTING_QUOTE_BALANCE", "1000"),
            margin_leverage_ratio=_getenv_decimal("MARGIN_LEVERAGE_RATIO", "2"),
            margin_liquidation_ratio=_getenv_decimal("MARGIN_LIQUIDATION_RATIO", "0.1"),
            default_trade_input=TradeInput(
                amount_type=_getenv_enum("DEFAULT_AMOUNT_TYPE", AmountType, AmountType.MAX),
                amount=_getenv_decimal("DEFAULT_AMOUNT", "100"),
                asset=_getenv_enum("DEFAULT_AMOUNT_ASSET", AssetType, AssetType.QUOTE),
            ),
            candle_price_time=_getenv_enum("CANDLE_PRICE_TIME", CandlePriceTime, CandlePriceTime.CLOSE),
            trade_type=_getenv_enum("TRADE_TYPE", TradeType, TradeType.MARGIN_LONG),
            candles_path=os.getenv("CANDLES_PATH", "data/candles.csv"),
            log_dir=os.getenv("LOG_DIR", "logs"),
            log_level=os.getenv("LOG_LEVEL", "info"),
        )

    def validate(self) -> None:
        if self.starting_base_balance < 0 or self.starting_quote_balance < 0:
            raise InvalidConfigurationError("STARTING_BASE_BALANCE and STARTING_QUOTE_BALANCE must be >= 0")
        if self.starting_base_balance == 0 and self.starting_quote_balance == 0:
            raise InvalidConfigurationError("At least one starting balance must be > 0")
        if self.margin_leverage_ratio < 1:
            raise InvalidConfigurationError("MARGIN_LEVERAGE_RATIO must be >= 1")
        if not (0 < self.margin_liquidation_ratio < 1):
            raise InvalidConfigurationError("MARGIN_LIQUIDATION_RATIO must be in (0, 1)")
        if self.default_trade_input.amount <= 0:
            raise InvalidConfigurationError("DEFAULT_AMOUNT must be > 0")
        if self.log_level.strip().lower() not in {"debug", "info", "warning", "error"}:
            raise InvalidConfigurationError("LOG_LEVEL must be one of debug, info, warning, error")
