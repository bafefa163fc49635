"""
Domain package for the DeFi Event Generator.

Exports the record models and the weighted catalog types. Keep this package
focused on data definitions and validation concerns.
"""

from defi_event_generator.domain.catalog import EventArchetype, Universe, WeightedCatalog
from defi_event_generator.domain.models import (
    AggregatedMetric,
    BorrowEvent,
    LiquidationCallEvent,
    PriceSnapshot,
    ProtocolEvent,
    ProtocolEventBase,
    RepayEvent,
    SampledRecord,
    SupplyEvent,
    SwapEvent,
    WithdrawEvent,
)

__all__ = [
    "AggregatedMetric",
    "BorrowEvent",
    "EventArchetype",
    "LiquidationCallEvent",
    "PriceSnapshot",
    "ProtocolEvent",
    "ProtocolEventBase",
    "RepayEvent",
    "SampledRecord",
    "SupplyEvent",
    "SwapEvent",
    "Universe",
    "WeightedCatalog",
    "WithdrawEvent",
]
