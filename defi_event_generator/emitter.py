"""
Record emission: serialize one sampled record and write it to the store.

Every field except `timestamp` becomes a string attribute, `timestamp` is
appended last, and the whole record travels as an indented JSON payload.
Write failures (including timeouts) are logged against the record's ordinal
and reported as a failed `EmitOutcome`; they never propagate to the caller.

Writes run on a single worker thread owned by the emitter. A write that
times out is abandoned but keeps the worker busy until the SDK call returns;
until then every new write is refused with `WriteInFlightError` instead of
being started alongside it.
"""

from __future__ import annotations

import asyncio
import json
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, List, Optional

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from defi_event_generator.domain.models import SampledRecord, record_kind
from defi_event_generator.infrastructure.store import Attribute, EntityStore, WriteReceipt
from defi_event_generator.utils.logging import get_logger

log = get_logger(__name__)

CONTENT_TYPE = "application/json"
TIMESTAMP_FIELD = "timestamp"


class WriteInFlightError(RuntimeError):
    """Raised when an abandoned (timed-out) write still occupies the writer."""


def _attribute_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def to_attributes(record: SampledRecord) -> List[Attribute]:
    """
    Flatten a record into string attributes, `timestamp` last.
    """
    fields = record.to_wire()
    attributes = [
        Attribute(key, _attribute_value(value))
        for key, value in fields.items()
        if key != TIMESTAMP_FIELD
    ]
    attributes.append(Attribute(TIMESTAMP_FIELD, str(fields[TIMESTAMP_FIELD])))
    return attributes


def to_payload(record: SampledRecord) -> bytes:
    return record.model_dump_json(by_alias=True, exclude_none=True, indent=2).encode("utf-8")


@dataclass(frozen=True)
class EmitOutcome:
    ordinal: int
    record: SampledRecord
    receipt: Optional[WriteReceipt] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.receipt is not None


class RecordEmitter:
    """
    Write records to an `EntityStore`, one write in flight at a time.

    Parameters
    ----------
    store : EntityStore
        Destination for writes. Its blocking `create_entity` runs on the
        emitter's single worker thread.
    ttl_blocks : int
        Expiration passed with every write, in store blocks.
    timeout_seconds : float | None
        Upper bound for a single write attempt. None disables the bound.
    retries : int
        Extra attempts after a failed write (exponential backoff). Zero keeps
        fire-and-forget behaviour.
    retry_wait : tenacity wait strategy, optional
        Backoff between retries. Defaults to exponential 1s..10s.

    Call `close()` when the run ends; it never waits on an abandoned write.
    """

    def __init__(
        self,
        store: EntityStore,
        ttl_blocks: int = 10_000,
        timeout_seconds: Optional[float] = 30.0,
        retries: int = 0,
        retry_wait: Optional[wait_base] = None,
    ) -> None:
        if ttl_blocks <= 0:
            raise ValueError("ttl_blocks must be positive")
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self.store = store
        self.ttl_blocks = ttl_blocks
        self.timeout_seconds = timeout_seconds
        self.retries = retries
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._in_flight: Optional[Future] = None

    @property
    def busy(self) -> bool:
        """True while a previously submitted write has not returned."""
        return self._in_flight is not None and not self._in_flight.done()

    def _submit(self, payload: bytes, attributes: List[Attribute]) -> Future:
        if self.busy:
            raise WriteInFlightError("previous write has not returned yet")
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="entity-writer")
        future = self._executor.submit(
            self.store.create_entity,
            payload=payload,
            content_type=CONTENT_TYPE,
            attributes=attributes,
            expires_in=self.ttl_blocks,
        )
        self._in_flight = future
        return future

    async def _write_once(
        self, payload: bytes, attributes: List[Attribute]
    ) -> WriteReceipt:
        call = asyncio.wrap_future(self._submit(payload, attributes))
        if self.timeout_seconds is None:
            return await call
        return await asyncio.wait_for(call, timeout=self.timeout_seconds)

    async def _write(self, payload: bytes, attributes: List[Attribute]) -> WriteReceipt:
        if self.retries == 0:
            return await self._write_once(payload, attributes)
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=self._retry_wait,
            reraise=True,
        ):
            with attempt:
                return await self._write_once(payload, attributes)
        raise AssertionError("unreachable")  # pragma: no cover

    async def emit(self, record: SampledRecord, ordinal: int) -> EmitOutcome:
        """
        Write one record and report the outcome.

        Parameters
        ----------
        record : SampledRecord
            The record to transmit.
        ordinal : int
            1-based position of the record in the run, used in log context.
        """
        kind = record_kind(record)
        try:
            receipt = await self._write(to_payload(record), to_attributes(record))
        except asyncio.TimeoutError:
            log.error(
                f"[RECORD FAILED] #{ordinal} {kind}: write timed out after {self.timeout_seconds}s",
                extra={"ordinal": ordinal, "kind": kind, "timeout_seconds": self.timeout_seconds},
            )
            return EmitOutcome(ordinal=ordinal, record=record, error="timeout")
        except WriteInFlightError as exc:
            log.error(
                f"[RECORD FAILED] #{ordinal} {kind}: {exc}",
                extra={"ordinal": ordinal, "kind": kind},
            )
            return EmitOutcome(ordinal=ordinal, record=record, error="busy")
        except Exception as exc:  # noqa: BLE001 - a failed write drops the record, run continues
            log.exception(
                f"[RECORD FAILED] #{ordinal} {kind}",
                extra={"ordinal": ordinal, "kind": kind},
            )
            return EmitOutcome(ordinal=ordinal, record=record, error=str(exc) or type(exc).__name__)

        log.debug(
            f"[RECORD OK] #{ordinal} {kind}",
            extra={"ordinal": ordinal, "entity_key": receipt.entity_key, "tx_hash": receipt.tx_hash},
        )
        return EmitOutcome(ordinal=ordinal, record=record, receipt=receipt)

    def close(self) -> None:
        """
        Release the worker thread without waiting for an abandoned write.
        """
        if self._executor is None:
            return
        if self.busy:
            log.warning("Closing emitter while a timed-out write is still running")
        self._executor.shutdown(wait=False)
        self._executor = None


__all__ = [
    "CONTENT_TYPE",
    "EmitOutcome",
    "RecordEmitter",
    "WriteInFlightError",
    "to_attributes",
    "to_payload",
]
