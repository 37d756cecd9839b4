"""
Pydantic schema for the grid strategy configuration.
Defines the recognized options and their validation rules.
"""

from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class StrategyConfig(BaseModel):
    """Grid strategy configuration, immutable once created"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    symbol: str = Field(
        default="BTCUSDT",
        min_length=1,
        description="Exchange symbol without separator (e.g., 'BTCUSDT')",
    )
    interval: str = Field(
        default="1m",
        min_length=1,
        description="Kline interval (e.g., '1m', '1h')",
    )
    grid_range: Decimal = Field(
        default=Decimal("0.05"),
        gt=0,
        validation_alias=AliasChoices("grid_range", "gridRange"),
        description="Ladder height as a fraction of the reference price (0.05 = 5%)",
    )
    order_qty: int = Field(
        default=10,
        ge=1,
        validation_alias=AliasChoices("order_qty", "orderQty"),
        description="Number of ladder rungs",
    )
    order_dollar_value: Decimal = Field(
        default=Decimal("20"),
        gt=0,
        validation_alias=AliasChoices("order_dollar_value", "orderDollarValue"),
        description="Quote amount spent per rung",
    )
    initial_amount: Decimal = Field(
        default=Decimal("500"),
        gt=0,
        validation_alias=AliasChoices("initial_amount", "initialAmount"),
        description="Starting quote balance",
    )
    tick_round: int = Field(
        default=2,
        ge=0,
        validation_alias=AliasChoices("tick_round", "tickRound"),
        description="Decimal places for ladder prices",
    )
    qty_round: int = Field(
        default=4,
        ge=0,
        validation_alias=AliasChoices("qty_round", "qtyRound"),
        description="Decimal places for base asset quantities",
    )
    comm: Decimal = Field(
        default=Decimal("0.001"),
        ge=0,
        lt=1,
        description="Commission rate per fill (0.001 = 0.1%)",
    )
    take_profit_percent: Decimal | None = Field(
        default=Decimal("0.03"),
        gt=0,
        validation_alias=AliasChoices("take_profit_percent", "takeProfitPercent"),
        description="Close any position this far above its entry; None disables",
    )

    @property
    def take_profit_enabled(self) -> bool:
        return self.take_profit_percent is not None
