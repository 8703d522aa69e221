from __future__ import annotations


class InvalidConfigurationError(ValueError):
    """Leverage, liquidation ratio, open price or collateral is unusable."""


class InvalidArgumentError(ValueError):
    """A price or amount handed to a valuation is out of range."""


class PositionNotFoundError(KeyError):
    def __init__(self, position_id: int) -> None:
        super().__init__(position_id)
        self.position_id = position_id

    def __str__(self) -> str:
        return f"Margin position {self.position_id} does not exist"


class PositionClosedError(ValueError):
    def __init__(self, position_id: int | None = None) -> None:
        self.position_id = position_id
        label = "Margin position" if position_id is None else f"Margin position {position_id}"
        super().__init__(f"{label} is already closed")
