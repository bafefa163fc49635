"""
Weighted archetype catalogs.

A catalog is an ordered, immutable list of (archetype, weight) pairs plus the
asset/address pools its archetypes draw from. Selection probability of an
archetype is its weight over the catalog's total weight.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, Iterable, Tuple

if TYPE_CHECKING:
    from defi_event_generator.domain.models import SampledRecord
    from defi_event_generator.sampler import SamplingContext

ASSETS: Tuple[str, ...] = ("USDC", "WETH", "DAI", "USDT", "WBTC", "LINK", "UNI", "AAVE")

USERS: Tuple[str, ...] = (
    "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb1",
    "0x8E5C23e6c59F9e8B4d1a0b98d85d7d7c5c3f12F9",
    "0x1234567890123456789012345678901234567890",
    "0xABCDEF1234567890ABCDEF1234567890ABCDEF12",
    "0x9876543210987654321098765432109876543210",
    "0x5566778899AABBCCDDEEFF0011223344556677",
    "0xDEADBEEF00000000000000000000000000000000",
    "0xCAFEBABE00000000000000000000000000000000",
)

# Mock USD prices.
TOKEN_PRICES: Dict[str, float] = {
    "USDC": 1.0,
    "WETH": 2450.0,
    "DAI": 1.0,
    "USDT": 1.0,
    "WBTC": 45000.0,
    "LINK": 15.5,
    "UNI": 8.2,
    "AAVE": 95.0,
}


@dataclass(frozen=True)
class Universe:
    """Asset symbols and actor addresses that sampled fields are drawn from."""

    assets: Tuple[str, ...] = ASSETS
    users: Tuple[str, ...] = USERS

    def __post_init__(self) -> None:
        if len(self.assets) < 2:
            raise ValueError("Universe needs at least two assets (swaps pick distinct tokens)")
        if not self.users:
            raise ValueError("Universe needs at least one user address")
        unknown = [a for a in self.assets if a not in TOKEN_PRICES]
        if unknown:
            raise ValueError(f"No mock price for assets: {', '.join(unknown)}")


@dataclass(frozen=True)
class EventArchetype:
    """
    A named category of synthetic event and the rule that materializes it.
    """

    name: str
    build: Callable[["SamplingContext"], "SampledRecord"] = field(compare=False, repr=False)


@dataclass(frozen=True)
class WeightedCatalog:
    name: str
    entries: Tuple[Tuple[EventArchetype, int], ...]
    universe: Universe = field(default_factory=Universe)

    def __post_init__(self) -> None:
        if not self.entries:
            raise ValueError(f"Catalog '{self.name}' has no archetypes")
        for archetype, weight in self.entries:
            if not isinstance(weight, int) or weight <= 0:
                raise ValueError(
                    f"Catalog '{self.name}': weight for '{archetype.name}' must be a "
                    f"positive integer, got {weight!r}"
                )
        names = [archetype.name for archetype, _ in self.entries]
        if len(set(names)) != len(names):
            raise ValueError(f"Catalog '{self.name}' lists an archetype more than once")

    @classmethod
    def of(
        cls,
        name: str,
        entries: Iterable[Tuple[EventArchetype, int]],
        universe: Universe | None = None,
    ) -> "WeightedCatalog":
        return cls(name=name, entries=tuple(entries), universe=universe or Universe())

    @property
    def total_weight(self) -> int:
        return sum(weight for _, weight in self.entries)

    @property
    def archetypes(self) -> Tuple[EventArchetype, ...]:
        return tuple(archetype for archetype, _ in self.entries)

    def probabilities(self) -> Dict[str, float]:
        """Expected selection probability per archetype name."""
        total = self.total_weight
        return {archetype.name: weight / total for archetype, weight in self.entries}


__all__ = [
    "ASSETS",
    "EventArchetype",
    "TOKEN_PRICES",
    "USERS",
    "Universe",
    "WeightedCatalog",
]
