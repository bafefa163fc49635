"""
Domain models for the DeFi Event Generator.

Each generated record is a frozen pydantic model. Protocol events form a tagged
union keyed on `eventType`: every variant shares the required fields of
`ProtocolEventBase` and adds only the optional fields its archetype defines.
Field names are snake_case in Python and camelCase on the wire, matching the
attribute keys the dashboard queries by.
"""
from __future__ import annotations

from typing import Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ProtocolName = Literal["aave-v3", "uniswap-v3"]
AaveEventType = Literal["Supply", "Borrow", "Withdraw", "Repay", "LiquidationCall"]

TX_HASH_PATTERN = r"^0x[0-9a-f]{64}$"
AMOUNT_PATTERN = r"^\d+\.\d{2}$"


class _GeneratedModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="forbid",
    )

    def to_wire(self) -> Dict[str, object]:
        """Serialize with wire (camelCase) keys, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ProtocolEventBase(_GeneratedModel):
    """
    Fields every protocol event carries regardless of archetype.
    """

    entity_type: Literal["protocol_event"] = "protocol_event"
    protocol: ProtocolName
    network: str = "ethereum"
    tx_hash: str = Field(..., pattern=TX_HASH_PATTERN)
    block_number: int = Field(..., gt=0)
    timestamp: str

    @property
    def primary_asset(self) -> str:  # pragma: no cover - overridden
        raise NotImplementedError

    @property
    def primary_actor(self) -> str:  # pragma: no cover - overridden
        raise NotImplementedError

    @property
    def primary_amount(self) -> str:  # pragma: no cover - overridden
        raise NotImplementedError


class AaveEventBase(ProtocolEventBase):
    protocol: Literal["aave-v3"] = "aave-v3"
    reserve: str
    user: str
    amount: str = Field(..., pattern=AMOUNT_PATTERN)
    amount_usd: str = Field(..., alias="amountUSD")

    @property
    def primary_asset(self) -> str:
        return self.reserve

    @property
    def primary_actor(self) -> str:
        return self.user

    @property
    def primary_amount(self) -> str:
        return self.amount


class SupplyEvent(AaveEventBase):
    event_type: Literal["Supply"] = "Supply"
    on_behalf_of: str
    referral_code: int = 0


class BorrowEvent(AaveEventBase):
    event_type: Literal["Borrow"] = "Borrow"
    on_behalf_of: str
    interest_rate_mode: Literal[1, 2]  # 1=Stable, 2=Variable
    borrow_rate: str
    referral_code: int = 0


class WithdrawEvent(AaveEventBase):
    event_type: Literal["Withdraw"] = "Withdraw"
    to: str


class RepayEvent(AaveEventBase):
    event_type: Literal["Repay"] = "Repay"
    repayer: str
    use_a_tokens: bool


class LiquidationCallEvent(AaveEventBase):
    """
    `reserve` mirrors the collateral asset and `amount` mirrors `debtToCover`,
    so liquidations filter alongside the other Aave events.
    """

    event_type: Literal["LiquidationCall"] = "LiquidationCall"
    collateral_asset: str
    debt_asset: str
    liquidator: str
    debt_to_cover: str = Field(..., pattern=AMOUNT_PATTERN)
    debt_to_cover_usd: str = Field(..., alias="debtToCoverUSD")
    liquidated_collateral_amount: str = Field(..., pattern=AMOUNT_PATTERN)
    liquidated_collateral_amount_usd: str = Field(..., alias="liquidatedCollateralAmountUSD")


class SwapEvent(ProtocolEventBase):
    event_type: Literal["Swap"] = "Swap"
    protocol: Literal["uniswap-v3"] = "uniswap-v3"
    sender: str
    recipient: str
    token_in: str
    token_out: str
    amount_in: str = Field(..., pattern=AMOUNT_PATTERN)
    amount_out: str
    amount_in_usd: str = Field(..., alias="amountInUSD")
    amount_out_usd: str = Field(..., alias="amountOutUSD")
    sqrt_price_x96: str
    liquidity: str
    tick: int

    @property
    def primary_asset(self) -> str:
        return self.token_in

    @property
    def primary_actor(self) -> str:
        return self.sender

    @property
    def primary_amount(self) -> str:
        return self.amount_in


ProtocolEvent = Union[
    SupplyEvent,
    BorrowEvent,
    WithdrawEvent,
    RepayEvent,
    LiquidationCallEvent,
    SwapEvent,
]


class AggregatedMetric(_GeneratedModel):
    """Hourly rollup of one protocol's activity."""

    entity_type: Literal["aggregated_metric"] = "aggregated_metric"
    metric_type: Literal["hourly_summary"] = "hourly_summary"
    protocol: ProtocolName
    time_window: str = "1h"
    timestamp: str
    total_volume_usd: str = Field(..., alias="totalVolumeUSD")
    transaction_count: int = Field(..., gt=0)
    unique_users: int = Field(..., ge=0)
    asset_volumes: Dict[str, str]
    event_type_counts: Dict[str, int]
    avg_transaction_size_usd: str = Field(..., alias="avgTransactionSizeUSD")


class PriceSnapshot(_GeneratedModel):
    entity_type: Literal["price_snapshot"] = "price_snapshot"
    snapshot_type: Literal["price_snapshot"] = "price_snapshot"
    asset: str
    price_usd: str = Field(..., alias="priceUSD")
    timestamp: str
    change_24h: str = Field(..., alias="change24h")
    volume_24h_usd: str = Field(..., alias="volume24hUSD")
    market_cap_usd: Optional[str] = Field(None, alias="marketCapUSD")


SampledRecord = Union[ProtocolEvent, AggregatedMetric, PriceSnapshot]


def record_kind(record: SampledRecord) -> str:
    """
    Label used for per-archetype tallies: the event type for protocol events,
    the entity type otherwise.
    """
    if isinstance(record, ProtocolEventBase):
        return record.event_type  # type: ignore[attr-defined]
    return record.entity_type


__all__ = [
    "AaveEventBase",
    "AaveEventType",
    "AggregatedMetric",
    "BorrowEvent",
    "LiquidationCallEvent",
    "PriceSnapshot",
    "ProtocolEvent",
    "ProtocolEventBase",
    "ProtocolName",
    "RepayEvent",
    "SampledRecord",
    "SupplyEvent",
    "SwapEvent",
    "WithdrawEvent",
    "record_kind",
]
