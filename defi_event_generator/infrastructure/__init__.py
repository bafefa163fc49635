"""
Infrastructure package for the DeFi Event Generator.

Centralizes remote store concerns (the write protocol and the Arkiv SDK
adapter). Keep this layer focused on I/O, decoupled from sampling and
driver logic.
"""

from defi_event_generator.infrastructure.store import (
    ArkivEntityStore,
    Attribute,
    EntityStore,
    QueryableEntityStore,
    StoredEntity,
    WriteReceipt,
    connect_arkiv,
)

__all__ = [
    "ArkivEntityStore",
    "Attribute",
    "EntityStore",
    "QueryableEntityStore",
    "StoredEntity",
    "WriteReceipt",
    "connect_arkiv",
]
