"""
DeFi Event Generator - synthetic Aave/Uniswap events for the Arkiv entity store.

This package samples protocol-shaped events from weighted catalogs and pushes
them one at a time to a ledger-backed key/value store:

- Weighted archetype catalogs (Aave V3 only, or multi-protocol with
  hourly aggregates and price snapshots)
- A reproducible sampler with an owned, monotonic block counter
- A fire-and-forget emitter with per-write timeouts
- A sequential batch driver with end-of-run tallies
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from defi_event_generator.config import ConfigurationError, Settings, get_settings
from defi_event_generator.domain.catalog import EventArchetype, WeightedCatalog
from defi_event_generator.driver import BatchDriver, RunCounters, RunState, RunSummary
from defi_event_generator.emitter import EmitOutcome, RecordEmitter
from defi_event_generator.infrastructure.store import EntityStore, WriteReceipt
from defi_event_generator.sampler import BlockCounter, EventSampler, available_catalogs, get_catalog
from defi_event_generator.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "ConfigurationError",
    "Settings",
    "get_settings",
    # Sampling
    "BlockCounter",
    "EventArchetype",
    "EventSampler",
    "WeightedCatalog",
    "available_catalogs",
    "get_catalog",
    # Emission and driving
    "BatchDriver",
    "EmitOutcome",
    "EntityStore",
    "RecordEmitter",
    "RunCounters",
    "RunState",
    "RunSummary",
    "WriteReceipt",
    # Logging
    "configure_logging",
    "get_logger",
]
