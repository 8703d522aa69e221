from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Optional, Tuple

from marginsim.core.errors import InvalidArgumentError, InvalidConfigurationError, PositionClosedError
from marginsim.core.value_assessment import get_combined_value
from marginsim.models.assets import AssetType, TradeInput, TradeType

ZERO = Decimal(0)


@dataclass(frozen=True)
class MarginPosition:
    """A leveraged long or short position on the base/quote pair.

    Collateral stays in the account; the position only records how much was
    borrowed against it. Long positions borrow quote and hold the extra base
    they bought with it, short positions borrow base and hold the quote they
    sold it for. `borrowed_amount` is denominated in the borrowed asset and
    never changes after the position is generated.
    """

    trade_type: TradeType
    open_price: Decimal
    base_collateral: Decimal
    quote_collateral: Decimal
    leverage_ratio: Decimal
    liquidation_ratio: Decimal
    borrowed_amount: Decimal

    candle_open_index: int = 0
    candle_close_index: Optional[int] = None
    is_closed: bool = False
    base_profit: Decimal = ZERO
    quote_profit: Decimal = ZERO

    @classmethod
    def generate(
        cls,
        trade_type: TradeType,
        open_price: Decimal,
        base_collateral: Decimal,
        quote_collateral: Decimal,
        leverage_ratio: Decimal,
        liquidation_ratio: Decimal,
        candle_open_index: int = 0,
    ) -> "MarginPosition":
        if open_price <= 0:
            raise InvalidConfigurationError("open_price must be > 0")
        if leverage_ratio < 1:
            raise InvalidConfigurationError("leverage_ratio must be >= 1")
        if not (0 < liquidation_ratio < 1):
            raise InvalidConfigurationError("liquidation_ratio must be in (0, 1)")
        if base_collateral < 0 or quote_collateral < 0:
            raise InvalidConfigurationError("collateral must be >= 0")

        collateral_value = get_combined_value(AssetType.QUOTE, base_collateral, quote_collateral, open_price)
        if collateral_value <= 0:
            raise InvalidConfigurationError("collateral value must be > 0")

        if trade_type == TradeType.MARGIN_LONG:
            borrowed = leverage_ratio * collateral_value
        else:
            borrowed = leverage_ratio * collateral_value / open_price

        return cls(
            trade_type=trade_type,
            open_price=open_price,
            base_collateral=base_collateral,
            quote_collateral=quote_collateral,
            leverage_ratio=leverage_ratio,
            liquidation_ratio=liquidation_ratio,
            borrowed_amount=borrowed,
            candle_open_index=candle_open_index,
        )

    @classmethod
    def from_trade_input(
        cls,
        trade_type: TradeType,
        open_price: Decimal,
        trade_input: TradeInput,
        base_balance: Decimal,
        quote_balance: Decimal,
        leverage_ratio: Decimal,
        liquidation_ratio: Decimal,
        candle_open_index: int = 0,
    ) -> "MarginPosition":
        base_collateral, quote_collateral = trade_input.resolve_collateral(base_balance, quote_balance)
        return cls.generate(
            trade_type,
            open_price,
            base_collateral,
            quote_collateral,
            leverage_ratio,
            liquidation_ratio,
            candle_open_index=candle_open_index,
        )

    @property
    def is_long(self) -> bool:
        return self.trade_type == TradeType.MARGIN_LONG

    @property
    def borrowed_asset(self) -> AssetType:
        return AssetType.QUOTE if self.is_long else AssetType.BASE

    @property
    def collateral_value(self) -> Decimal:
        """Collateral worth in quote at the open price."""

        return get_combined_value(AssetType.QUOTE, self.base_collateral, self.quote_collateral, self.open_price)

    @property
    def held_base(self) -> Decimal:
        if self.is_long:
            return self.base_collateral + self.borrowed_amount / self.open_price
        return self.base_collateral

    @property
    def held_quote(self) -> Decimal:
        if self.is_long:
            return self.quote_collateral
        return self.quote_collateral + self.borrowed_amount * self.open_price

    def unrealized_profit(self, price: Decimal) -> Decimal:
        """Quote-denominated gain of the borrowed exposure since open."""

        if price <= 0:
            raise InvalidArgumentError("price must be > 0")
        if self.is_long:
            return self.borrowed_amount / self.open_price * (price - self.open_price)
        return self.borrowed_amount * (self.open_price - price)

    def equity(self, price: Decimal) -> Decimal:
        """Held assets minus debt, in quote.

        Equal to `held_base * price + held_quote - borrowed` for longs and
        `(held_base - borrowed) * price + held_quote` for shorts, written as
        collateral worth plus profit so a flat price yields no residue.
        """

        collateral_now = get_combined_value(AssetType.QUOTE, self.base_collateral, self.quote_collateral, price)
        return collateral_now + self.unrealized_profit(price)

    def is_liquid_at(self, price: Decimal) -> bool:
        return self.equity(price) >= self.liquidation_ratio * self.collateral_value

    def calculate_unrealized_balances(
        self,
        new_price: Decimal,
        current_base: Decimal,
        current_quote: Decimal,
    ) -> Tuple[bool, Decimal, Decimal]:
        """Balances the account would hold after settling this position at `new_price`.

        Returns `(is_liquid, new_base, new_quote)`. Illiquid positions lose at
        most their collateral and the returned balances never go below zero.
        """

        if self.is_closed:
            raise PositionClosedError()
        if new_price <= 0:
            raise InvalidArgumentError("new_price must be > 0")
        if current_base < 0 or current_quote < 0:
            raise InvalidArgumentError("current balances must be >= 0")

        profit = self.unrealized_profit(new_price)
        is_liquid = self.is_liquid_at(new_price)
        if not is_liquid:
            collateral_now = get_combined_value(
                AssetType.QUOTE, self.base_collateral, self.quote_collateral, new_price
            )
            profit = max(profit, -collateral_now)

        new_base, new_quote = _settle(current_base, current_quote, profit, new_price, self.borrowed_asset)
        return is_liquid, new_base, new_quote

    def mark_as_closed(self, candle_close_index: int, base_profit: Decimal, quote_profit: Decimal) -> "MarginPosition":
        if self.is_closed:
            raise PositionClosedError()
        return replace(
            self,
            is_closed=True,
            candle_close_index=candle_close_index,
            base_profit=base_profit,
            quote_profit=quote_profit,
        )


def _settle(
    base: Decimal,
    quote: Decimal,
    profit: Decimal,
    price: Decimal,
    settle_asset: AssetType,
) -> Tuple[Decimal, Decimal]:
    # Profit lands in settle_asset; a loss deeper than that balance spills into the other one.
    if settle_asset == AssetType.QUOTE:
        new_quote = quote + profit
        if new_quote < 0:
            base = base + new_quote / price
            new_quote = ZERO
        return max(base, ZERO), new_quote

    new_base = base + profit / price
    if new_base < 0:
        quote = quote + new_base * price
        new_base = ZERO
    return new_base, max(quote, ZERO)
