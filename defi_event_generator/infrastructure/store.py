"""
Entity store access for the DeFi Event Generator.

The generator writes through the `EntityStore` protocol: one `create_entity`
call per record, taking a byte payload, a content type, flat string
attributes, and an expiration expressed in store blocks. `QueryableEntityStore`
adds attribute lookups for the hello-world read-back. `ArkivEntityStore`
adapts the Arkiv Python SDK to that protocol; tests substitute fakes.

Includes retry logic for transient failures while building the client using
tenacity.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, Optional, Protocol, Sequence, runtime_checkable

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from defi_event_generator.utils.logging import get_logger

log = get_logger(__name__)

CLIENT_ACCOUNT_NAME = "defi-event-generator"


class Attribute(NamedTuple):
    key: str
    value: str


@dataclass(frozen=True)
class WriteReceipt:
    """Acknowledgement of a successful write."""

    entity_key: str
    tx_hash: str


@dataclass(frozen=True)
class StoredEntity:
    """An entity read back from the store."""

    entity_key: str
    payload: Optional[bytes]
    attributes: Dict[str, str]


@runtime_checkable
class EntityStore(Protocol):
    """
    Minimal write interface the emitter depends on.

    Implementations raise on any transport or remote failure.
    """

    def create_entity(
        self,
        payload: bytes,
        content_type: str,
        attributes: Sequence[Attribute],
        expires_in: int,
    ) -> WriteReceipt:
        ...


@runtime_checkable
class QueryableEntityStore(EntityStore, Protocol):
    """
    Store that can also look entities up by an attribute value.
    """

    def find_entities(self, key: str, value: str) -> List[StoredEntity]:
        ...


def _tx_hash_of(receipt: Any) -> str:
    tx_hash = getattr(receipt, "tx_hash", receipt)
    if isinstance(tx_hash, (bytes, bytearray)):
        return "0x" + bytes(tx_hash).hex()
    return str(tx_hash)


class ArkivEntityStore:
    """
    `EntityStore` backed by an Arkiv SDK client.

    Parameters
    ----------
    client : arkiv.Arkiv
        A client constructed with a signing account.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    @property
    def address(self) -> str:
        account = getattr(self._client.eth, "default_account", None)
        return str(account) if account else "<unknown>"

    def create_entity(
        self,
        payload: bytes,
        content_type: str,
        attributes: Sequence[Attribute],
        expires_in: int,
    ) -> WriteReceipt:
        entity_key, receipt = self._client.arkiv.create_entity(
            payload=payload,
            content_type=content_type,
            attributes={attr.key: attr.value for attr in attributes},
            expires_in=expires_in,
        )
        return WriteReceipt(entity_key=str(entity_key), tx_hash=_tx_hash_of(receipt))

    def find_entities(self, key: str, value: str) -> List[StoredEntity]:
        """
        Return entities whose attribute `key` equals `value`, with payload and attributes.
        """
        query = f'{key} = "{value}"'
        return [
            StoredEntity(
                entity_key=str(entity.key),
                payload=entity.payload,
                attributes={str(k): str(v) for k, v in (entity.attributes or {}).items()},
            )
            for entity in self._client.arkiv.query_entities(query)
        ]


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((ConnectionError, OSError)),
    reraise=True,
)
def connect_arkiv(rpc_url: str, private_key: str) -> ArkivEntityStore:
    """
    Build an Arkiv-backed store with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Raises
    ------
    ImportError
        If the optional `arkiv-sdk` distribution is not installed.
    ConnectionError
        If the node stays unreachable after all retry attempts.
    """
    from arkiv import Arkiv
    from arkiv.account import NamedAccount
    from arkiv.provider import ProviderBuilder

    provider = ProviderBuilder().custom(rpc_url).build()
    account = NamedAccount.from_private_key(CLIENT_ACCOUNT_NAME, private_key)
    client = Arkiv(provider, account=account)
    store = ArkivEntityStore(client)
    log.info("Connected to Arkiv", extra={"rpc_url": rpc_url, "account": store.address})
    return store


__all__ = [
    "ArkivEntityStore",
    "Attribute",
    "EntityStore",
    "QueryableEntityStore",
    "StoredEntity",
    "WriteReceipt",
    "connect_arkiv",
]
