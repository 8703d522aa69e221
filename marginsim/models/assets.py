from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Tuple

from marginsim.core.errors import InvalidArgumentError


class AssetType(str, Enum):
    BASE = "BASE"
    QUOTE = "QUOTE"


class TradeType(str, Enum):
    MARGIN_LONG = "MARGIN_LONG"  # borrows quote
    MARGIN_SHORT = "MARGIN_SHORT"  # borrows base


class AmountType(str, Enum):
    MAX = "MAX"
    PERCENTAGE = "PERCENTAGE"
    ABSOLUTE = "ABSOLUTE"


@dataclass(frozen=True)
class TradeInput:
    """How much of the account's balances is posted as collateral.

    MAX posts both balances in full, PERCENTAGE posts `amount` percent of both
    balances and ABSOLUTE posts exactly `amount` of `asset`.
    """

    amount_type: AmountType = AmountType.MAX
    amount: Decimal = Decimal("100")
    asset: AssetType = AssetType.QUOTE

    def resolve_collateral(self, base_balance: Decimal, quote_balance: Decimal) -> Tuple[Decimal, Decimal]:
        if base_balance < 0 or quote_balance < 0:
            raise InvalidArgumentError("balances must be >= 0")

        if self.amount_type == AmountType.MAX:
            return base_balance, quote_balance

        if self.amount_type == AmountType.PERCENTAGE:
            if not (0 < self.amount <= 100):
                raise InvalidArgumentError("percentage amount must be in (0, 100]")
            fraction = self.amount / Decimal(100)
            return base_balance * fraction, quote_balance * fraction

        if self.amount <= 0:
            raise InvalidArgumentError("amount must be > 0")
        if self.asset == AssetType.BASE:
            if self.amount > base_balance:
                raise InvalidArgumentError(f"Insufficient base balance for collateral {self.amount}")
            return self.amount, Decimal(0)
        if self.amount > quote_balance:
            raise InvalidArgumentError(f"Insufficient quote balance for collateral {self.amount}")
        return Decimal(0), self.amount
