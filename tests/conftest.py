"""
Pytest configuration for the DeFi Event Generator.

Provides fixtures for:
- An in-memory fake entity store with scripted failures
- Seeded samplers with a pinned clock
- Settings with test-specific overrides
"""

from __future__ import annotations

import random
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pytest

from defi_event_generator.config import Settings
from defi_event_generator.infrastructure.store import Attribute, StoredEntity, WriteReceipt
from defi_event_generator.sampler import BlockCounter, EventSampler, get_catalog

FIXED_NOW = datetime(2024, 5, 17, 14, 23, 45, 123000, tzinfo=timezone.utc)
TEST_PRIVATE_KEY = "0x" + "ab" * 32


class FakeStore:
    """
    Records every `create_entity` call; raises on the scripted 1-based attempts.

    Tracks how many writes overlap (`max_in_flight`) and serves successful
    writes back through `find_entities`.
    """

    def __init__(
        self,
        fail_on: Iterable[int] = (),
        delay_seconds: float = 0.0,
        fail_queries: bool = False,
    ) -> None:
        self.fail_on = set(fail_on)
        self.delay_seconds = delay_seconds
        self.fail_queries = fail_queries
        self.calls: List[Dict[str, Any]] = []
        self.entities: List[StoredEntity] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def create_entity(
        self,
        payload: bytes,
        content_type: str,
        attributes: Sequence[Attribute],
        expires_in: int,
    ) -> WriteReceipt:
        with self._lock:
            self.calls.append(
                {
                    "payload": payload,
                    "content_type": content_type,
                    "attributes": list(attributes),
                    "expires_in": expires_in,
                }
            )
            attempt = len(self.calls)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay_seconds:
                time.sleep(self.delay_seconds)
            if attempt in self.fail_on:
                raise ConnectionError(f"node unavailable (attempt {attempt})")
            receipt = WriteReceipt(entity_key=f"0x{attempt:064x}", tx_hash=f"0x{attempt + 1000:064x}")
            with self._lock:
                self.entities.append(
                    StoredEntity(
                        entity_key=receipt.entity_key,
                        payload=payload,
                        attributes={attr.key: attr.value for attr in attributes},
                    )
                )
            return receipt
        finally:
            with self._lock:
                self.in_flight -= 1

    def find_entities(self, key: str, value: str) -> List[StoredEntity]:
        if self.fail_queries:
            raise ConnectionError("query endpoint unavailable")
        with self._lock:
            return [entity for entity in self.entities if entity.attributes.get(key) == value]


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_sampler(catalog: str = "aave", seed: int = 7, start_block: Optional[int] = 18_000_000) -> EventSampler:
    rng = random.Random(seed)
    return EventSampler(
        get_catalog(catalog),
        rng=rng,
        block_counter=BlockCounter(start=start_block, rng=rng),
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def aave_sampler() -> EventSampler:
    return make_sampler("aave")


@pytest.fixture
def multi_sampler() -> EventSampler:
    return make_sampler("multi")


@pytest.fixture
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides; ignores any local `.env`.
    """
    return Settings(
        _env_file=None,
        private_key=TEST_PRIVATE_KEY,
        rpc_url="http://localhost:8545",
        log_level="DEBUG",
        write_timeout_seconds=5.0,
    )
