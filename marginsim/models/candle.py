from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class CandlePriceTime(str, Enum):
    OPEN = "OPEN"
    CLOSE = "CLOSE"
    HIGH = "HIGH"
    LOW = "LOW"
    AVERAGE = "AVERAGE"


@dataclass(frozen=True)
class Candle:
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Decimal(0)
    time: Optional[datetime] = None

    def price_at(self, price_time: CandlePriceTime) -> Decimal:
        if price_time == CandlePriceTime.OPEN:
            return self.open
        if price_time == CandlePriceTime.HIGH:
            return self.high
        if price_time == CandlePriceTime.LOW:
            return self.low
        if price_time == CandlePriceTime.AVERAGE:
            return (self.open + self.high + self.low + self.close) / Decimal(4)
        return self.close

    @classmethod
    def flat(cls, price: Decimal, time: Optional[datetime] = None) -> "Candle":
        """Candle whose OHLC are all `price`; handy for replaying a plain price series."""

        return cls(open=price, high=price, low=price, close=price, time=time)
