"""
Weighted synthetic event sampler.

`EventSampler.sample()` draws one archetype from a `WeightedCatalog` by linear
scan over the cumulative weights, then asks the archetype's builder to
materialize a fully populated record. Builders share a `SamplingContext`
carrying the RNG, the block counter, the clock, and the asset/address pools,
so a seeded sampler is fully reproducible apart from wall-clock timestamps
(which tests can pin through `clock`).

Usage:
    from defi_event_generator.sampler import EventSampler, get_catalog

    sampler = EventSampler(get_catalog("aave"))
    record = sampler.sample()
"""

from __future__ import annotations

import random
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from defi_event_generator.domain.catalog import (
    ASSETS,
    TOKEN_PRICES,
    USERS,
    EventArchetype,
    Universe,
    WeightedCatalog,
)
from defi_event_generator.domain.models import (
    AggregatedMetric,
    BorrowEvent,
    LiquidationCallEvent,
    PriceSnapshot,
    ProtocolName,
    RepayEvent,
    SampledRecord,
    SupplyEvent,
    SwapEvent,
    WithdrawEvent,
)

T = TypeVar("T")

BLOCK_BASE = 18_000_000
BLOCK_JITTER = 1_000_000
MAX_BLOCK_STEP = 5

LIQUIDATION_BONUS = Decimal("1.10")
MOCK_SQRT_PRICE_X96 = "79228162514264337593543950336"

# Inclusive [min, max] amount range per archetype, in units of the primary asset.
AMOUNT_RANGES: Dict[str, Tuple[int, int]] = {
    "Supply": (100, 100_000),
    "Borrow": (50, 50_000),
    "Withdraw": (100, 50_000),
    "Repay": (50, 30_000),
    "LiquidationCall": (1_000, 50_000),
    "Swap": (100, 50_000),
}

_CENTS = Decimal("0.01")

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_utc(ts: datetime) -> str:
    """Millisecond ISO-8601 in UTC with a `Z` suffix, e.g. 2024-05-17T14:23:45.123Z."""
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class BlockCounter:
    """
    Monotonic synthetic block height shared by every record of a run.

    Starts near mainnet height (randomized so repeated runs don't visually
    collide) and advances by 1..`max_step` per record. Never resets.
    """

    def __init__(
        self,
        start: Optional[int] = None,
        rng: Optional[random.Random] = None,
        max_step: int = MAX_BLOCK_STEP,
    ) -> None:
        if max_step < 1:
            raise ValueError("max_step must be >= 1")
        self._rng = rng or random.Random()
        self._max_step = max_step
        self._current = start if start is not None else BLOCK_BASE + self._rng.randrange(BLOCK_JITTER)

    @property
    def current(self) -> int:
        return self._current

    def advance(self) -> int:
        self._current += self._rng.randint(1, self._max_step)
        return self._current


@dataclass
class SamplingContext:
    rng: random.Random
    block_counter: BlockCounter
    clock: Clock
    universe: Universe

    def choice(self, items: Sequence[T]) -> T:
        return self.rng.choice(items)

    def asset(self) -> str:
        return self.rng.choice(self.universe.assets)

    def address(self) -> str:
        return self.rng.choice(self.universe.users)

    def maybe_other_address(self, default: str, probability: float) -> str:
        """With `probability`, swap in a freshly drawn address; else keep `default`."""
        return self.address() if self.rng.random() < probability else default

    def amount(self, low: float, high: float) -> str:
        return f"{self.rng.uniform(low, high):.2f}"

    def amount_for(self, archetype: str) -> str:
        low, high = AMOUNT_RANGES[archetype]
        return self.amount(low, high)

    def tx_hash(self) -> str:
        return "0x" + "".join(self.rng.choice("0123456789abcdef") for _ in range(64))

    def next_block(self) -> int:
        return self.block_counter.advance()

    def now(self) -> str:
        return isoformat_utc(self.clock())

    def hour(self) -> str:
        return isoformat_utc(self.clock().replace(minute=0, second=0, microsecond=0))


def usd_value(amount: str, asset: str) -> str:
    return f"{float(amount) * TOKEN_PRICES.get(asset, 1.0):.2f}"


# -- Aave V3 ----------------------------------------------------------------


def build_supply(ctx: SamplingContext) -> SupplyEvent:
    user = ctx.address()
    reserve = ctx.asset()
    amount = ctx.amount_for("Supply")
    return SupplyEvent(
        reserve=reserve,
        user=user,
        on_behalf_of=ctx.maybe_other_address(user, 0.2),
        amount=amount,
        amount_usd=usd_value(amount, reserve),
        referral_code=0,
        tx_hash=ctx.tx_hash(),
        block_number=ctx.next_block(),
        timestamp=ctx.now(),
    )


def build_borrow(ctx: SamplingContext) -> BorrowEvent:
    user = ctx.address()
    reserve = ctx.asset()
    amount = ctx.amount_for("Borrow")
    return BorrowEvent(
        reserve=reserve,
        user=user,
        on_behalf_of=ctx.maybe_other_address(user, 0.1),
        amount=amount,
        amount_usd=usd_value(amount, reserve),
        interest_rate_mode=1 if ctx.rng.random() < 0.3 else 2,
        borrow_rate=f"{ctx.rng.uniform(1, 11):.4f}%",
        referral_code=0,
        tx_hash=ctx.tx_hash(),
        block_number=ctx.next_block(),
        timestamp=ctx.now(),
    )


def build_withdraw(ctx: SamplingContext) -> WithdrawEvent:
    user = ctx.address()
    reserve = ctx.asset()
    amount = ctx.amount_for("Withdraw")
    return WithdrawEvent(
        reserve=reserve,
        user=user,
        to=ctx.maybe_other_address(user, 0.2),
        amount=amount,
        amount_usd=usd_value(amount, reserve),
        tx_hash=ctx.tx_hash(),
        block_number=ctx.next_block(),
        timestamp=ctx.now(),
    )


def build_repay(ctx: SamplingContext) -> RepayEvent:
    user = ctx.address()
    reserve = ctx.asset()
    amount = ctx.amount_for("Repay")
    return RepayEvent(
        reserve=reserve,
        user=user,
        repayer=ctx.maybe_other_address(user, 0.1),
        amount=amount,
        amount_usd=usd_value(amount, reserve),
        use_a_tokens=ctx.rng.random() < 0.2,
        tx_hash=ctx.tx_hash(),
        block_number=ctx.next_block(),
        timestamp=ctx.now(),
    )


def build_liquidation(ctx: SamplingContext) -> LiquidationCallEvent:
    collateral_asset = ctx.asset()
    debt_asset = ctx.asset()
    debt_to_cover = ctx.amount_for("LiquidationCall")
    collateral = str((Decimal(debt_to_cover) * LIQUIDATION_BONUS).quantize(_CENTS, ROUND_HALF_UP))
    debt_usd = usd_value(debt_to_cover, debt_asset)
    return LiquidationCallEvent(
        collateral_asset=collateral_asset,
        debt_asset=debt_asset,
        user=ctx.address(),
        liquidator=ctx.address(),
        debt_to_cover=debt_to_cover,
        debt_to_cover_usd=debt_usd,
        liquidated_collateral_amount=collateral,
        liquidated_collateral_amount_usd=usd_value(collateral, collateral_asset),
        reserve=collateral_asset,
        amount=debt_to_cover,
        amount_usd=debt_usd,
        tx_hash=ctx.tx_hash(),
        block_number=ctx.next_block(),
        timestamp=ctx.now(),
    )


# -- Uniswap V3 -------------------------------------------------------------


def build_swap(ctx: SamplingContext) -> SwapEvent:
    token_in = ctx.asset()
    token_out = ctx.choice([asset for asset in ctx.universe.assets if asset != token_in])
    amount_in = ctx.amount_for("Swap")
    price_ratio = TOKEN_PRICES[token_out] / TOKEN_PRICES[token_in]
    amount_out = f"{float(amount_in) / price_ratio:.2f}"
    sender = ctx.address()
    return SwapEvent(
        sender=sender,
        recipient=ctx.maybe_other_address(sender, 0.2),
        token_in=token_in,
        token_out=token_out,
        amount_in=amount_in,
        amount_out=amount_out,
        amount_in_usd=usd_value(amount_in, token_in),
        amount_out_usd=usd_value(amount_out, token_out),
        sqrt_price_x96=MOCK_SQRT_PRICE_X96,
        liquidity=ctx.amount(1_000_000, 10_000_000),
        tick=ctx.rng.randrange(-100_000, 100_000),
        tx_hash=ctx.tx_hash(),
        block_number=ctx.next_block(),
        timestamp=ctx.now(),
    )


# -- Aggregates and prices --------------------------------------------------


def _aave_event_counts(ctx: SamplingContext) -> Dict[str, int]:
    return {
        "Supply": ctx.rng.randrange(200) + 50,
        "Borrow": ctx.rng.randrange(150) + 30,
        "Withdraw": ctx.rng.randrange(100) + 20,
        "Repay": ctx.rng.randrange(80) + 10,
        "LiquidationCall": ctx.rng.randrange(10),
    }


def hourly_summary_builder(protocol: ProtocolName) -> Callable[[SamplingContext], AggregatedMetric]:
    def build(ctx: SamplingContext) -> AggregatedMetric:
        tx_count = ctx.rng.randrange(500) + 50
        unique_users = int(tx_count * (0.3 + ctx.rng.random() * 0.4))
        total_volume = ctx.amount(100_000, 5_000_000)
        asset_volumes = {
            asset: ctx.amount(10_000, 500_000)
            for asset in ctx.universe.assets
            if ctx.rng.random() > 0.3
        }
        if protocol == "aave-v3":
            event_type_counts = _aave_event_counts(ctx)
        else:
            event_type_counts = {"Swap": tx_count}
        return AggregatedMetric(
            protocol=protocol,
            timestamp=ctx.hour(),
            total_volume_usd=total_volume,
            transaction_count=tx_count,
            unique_users=unique_users,
            asset_volumes=asset_volumes,
            event_type_counts=event_type_counts,
            avg_transaction_size_usd=f"{float(total_volume) / tx_count:.2f}",
        )

    return build


def build_price_snapshot(ctx: SamplingContext) -> PriceSnapshot:
    asset = ctx.asset()
    variation = (ctx.rng.random() - 0.5) * 0.1
    price = f"{TOKEN_PRICES[asset] * (1 + variation):.2f}"
    return PriceSnapshot(
        asset=asset,
        price_usd=price,
        timestamp=ctx.now(),
        change_24h=f"{(ctx.rng.random() - 0.5) * 20:.2f}%",
        volume_24h_usd=ctx.amount(1_000_000, 50_000_000),
        market_cap_usd=f"{float(price) * ctx.rng.random() * 1_000_000_000:.2f}",
    )


SUPPLY = EventArchetype("Supply", build_supply)
BORROW = EventArchetype("Borrow", build_borrow)
WITHDRAW = EventArchetype("Withdraw", build_withdraw)
REPAY = EventArchetype("Repay", build_repay)
LIQUIDATION_CALL = EventArchetype("LiquidationCall", build_liquidation)
SWAP = EventArchetype("Swap", build_swap)
AAVE_HOURLY_SUMMARY = EventArchetype("HourlySummary:aave-v3", hourly_summary_builder("aave-v3"))
UNISWAP_HOURLY_SUMMARY = EventArchetype(
    "HourlySummary:uniswap-v3", hourly_summary_builder("uniswap-v3")
)
PRICE_SNAPSHOT = EventArchetype("PriceSnapshot", build_price_snapshot)


def _catalog_factories() -> Dict[str, Callable[[], WeightedCatalog]]:
    """Registry of available catalogs."""
    return {
        "aave": lambda: WeightedCatalog.of(
            "aave",
            [
                (SUPPLY, 35),
                (BORROW, 30),
                (WITHDRAW, 20),
                (REPAY, 12),
                (LIQUIDATION_CALL, 3),
            ],
            Universe(assets=ASSETS[:6], users=USERS[:5]),
        ),
        "multi": lambda: WeightedCatalog.of(
            "multi",
            [
                # Protocol events (70%)
                (SUPPLY, 25),
                (BORROW, 20),
                (WITHDRAW, 15),
                (REPAY, 8),
                (LIQUIDATION_CALL, 2),
                (SWAP, 20),
                # Aggregated metrics (10%)
                (AAVE_HOURLY_SUMMARY, 5),
                (UNISWAP_HOURLY_SUMMARY, 5),
                # Price snapshots (2%)
                (PRICE_SNAPSHOT, 2),
            ],
        ),
    }


def available_catalogs() -> List[str]:
    """List available catalog names."""
    return sorted(_catalog_factories().keys())


def get_catalog(name: str) -> WeightedCatalog:
    factories = _catalog_factories()
    if name not in factories:
        raise ValueError(f"Unknown catalog '{name}'. Available: {', '.join(factories)}")
    return factories[name]()


class EventSampler:
    """
    Draw archetypes from a catalog and materialize records.

    Parameters
    ----------
    catalog : WeightedCatalog
        Archetypes and their relative weights.
    rng : random.Random, optional
        Source of randomness; seed it for reproducible output.
    block_counter : BlockCounter, optional
        Owned block height. Defaults to a fresh counter drawing from `rng`.
    clock : callable, optional
        Returns the current UTC datetime used for timestamps.
    """

    def __init__(
        self,
        catalog: WeightedCatalog,
        rng: Optional[random.Random] = None,
        block_counter: Optional[BlockCounter] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.catalog = catalog
        self._rng = rng or random.Random(secrets.randbits(64))
        self.block_counter = block_counter or BlockCounter(rng=self._rng)
        self._context = SamplingContext(
            rng=self._rng,
            block_counter=self.block_counter,
            clock=clock or _utc_now,
            universe=catalog.universe,
        )
        self._total_weight = catalog.total_weight

    def choose(self) -> EventArchetype:
        """Weighted pick: first archetype whose running subtraction reaches <= 0."""
        draw = self._rng.random() * self._total_weight
        for archetype, weight in self.catalog.entries:
            draw -= weight
            if draw <= 0:
                return archetype
        return self.catalog.entries[-1][0]

    def sample(self) -> SampledRecord:
        return self.choose().build(self._context)


__all__ = [
    "AMOUNT_RANGES",
    "BlockCounter",
    "EventSampler",
    "LIQUIDATION_BONUS",
    "SamplingContext",
    "available_catalogs",
    "get_catalog",
    "isoformat_utc",
    "usd_value",
]
