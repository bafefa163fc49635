"""
Live write against an Arkiv node.

Opt-in: set RUN_INTEGRATION_TESTS=1 and PRIVATE_KEY (and optionally RPC_URL).
Requires the `arkiv` extra.
"""

import os

import pytest

from defi_event_generator.config import Settings
from defi_event_generator.driver import BatchDriver
from defi_event_generator.emitter import RecordEmitter
from defi_event_generator.infrastructure.store import connect_arkiv
from tests.conftest import make_sampler

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        os.getenv("RUN_INTEGRATION_TESTS") != "1",
        reason="set RUN_INTEGRATION_TESTS=1 to write to a live Arkiv node",
    ),
]


@pytest.fixture(scope="module")
def live_store():
    pytest.importorskip("arkiv")
    settings = Settings()
    if not settings.has_credential:
        pytest.skip("PRIVATE_KEY is not set")
    return connect_arkiv(settings.rpc_url, settings.require_credential())


def test_single_record_round_trip(live_store):
    summary = BatchDriver(
        make_sampler("aave", seed=None, start_block=None),
        RecordEmitter(live_store, ttl_blocks=100, timeout_seconds=60.0),
        count=1,
        delay_ms=0,
    ).run()

    assert summary.emitted == 1
