from __future__ import annotations

from decimal import Decimal

from marginsim.core.errors import InvalidArgumentError
from marginsim.models.assets import AssetType


def get_combined_value(
    target_asset: AssetType,
    base_amount: Decimal,
    quote_amount: Decimal,
    price: Decimal,
) -> Decimal:
    """Total worth of a base + quote holding expressed in `target_asset` at `price`."""

    if price <= 0:
        raise InvalidArgumentError("price must be > 0")
    if base_amount < 0 or quote_amount < 0:
        raise InvalidArgumentError("amounts must be >= 0")

    if target_asset == AssetType.BASE:
        return base_amount + quote_amount / price
    return base_amount * price + quote_amount
