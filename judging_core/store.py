"""Versioned document storage.

CONTRACT
- Inputs: collection name + document id; JSON-like dict documents
- Outputs:
  - VersionedDocument snapshots (deep copies, never live references)
- Invariants:
  - Every successful write bumps the document version by one
  - compare_and_set() writes only if the stored version still equals
    ``expected_version``; otherwise it returns None and writes nothing
- Failure:
  - Raises StorageUnavailableError when used before initialize() or after close()
  - Raises NotFoundError / ConflictError for missing / duplicate ids

Any backend (document database, relational table, key-value map) that honours
this contract can sit under the transaction engine unchanged.
"""
from __future__ import annotations

import asyncio
import logging
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Dict, List, Protocol, Tuple

from .errors import ConflictError, NotFoundError, StorageUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VersionedDocument:
    id: str
    version: int
    data: Dict[str, Any]


class DocumentStore(Protocol):
    async def initialize(self) -> None: ...

    async def close(self) -> None: ...

    async def get(self, collection: str, doc_id: str) -> VersionedDocument | None: ...

    async def list(self, collection: str) -> List[VersionedDocument]: ...

    async def insert(
        self, collection: str, doc_id: str, data: Dict[str, Any]
    ) -> VersionedDocument: ...

    async def compare_and_set(
        self,
        collection: str,
        doc_id: str,
        data: Dict[str, Any],
        expected_version: int,
    ) -> VersionedDocument | None: ...

    async def delete(self, collection: str, doc_id: str) -> bool: ...


class InMemoryDocumentStore:
    """Process-local DocumentStore.

    ``latency`` (seconds) is awaited before every operation to mimic a network
    round trip; with a non-zero latency concurrent transactions interleave and
    genuinely conflict.
    """

    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency
        self._collections: Dict[str, Dict[str, Tuple[int, Dict[str, Any]]]] = {}
        self._lock = asyncio.Lock()
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def initialize(self) -> None:
        self._open = True

    async def close(self) -> None:
        self._open = False

    async def _round_trip(self) -> None:
        if not self._open:
            raise StorageUnavailableError("Document store is not initialized")
        await asyncio.sleep(self.latency)

    def _bucket(self, collection: str) -> Dict[str, Tuple[int, Dict[str, Any]]]:
        return self._collections.setdefault(collection, {})

    async def get(self, collection: str, doc_id: str) -> VersionedDocument | None:
        await self._round_trip()
        stored = self._bucket(collection).get(doc_id)
        if stored is None:
            return None
        version, data = stored
        return VersionedDocument(id=doc_id, version=version, data=deepcopy(data))

    async def list(self, collection: str) -> List[VersionedDocument]:
        await self._round_trip()
        return [
            VersionedDocument(id=doc_id, version=version, data=deepcopy(data))
            for doc_id, (version, data) in self._bucket(collection).items()
        ]

    async def insert(
        self, collection: str, doc_id: str, data: Dict[str, Any]
    ) -> VersionedDocument:
        await self._round_trip()
        async with self._lock:
            bucket = self._bucket(collection)
            if doc_id in bucket:
                raise ConflictError(f"Document already exists: {collection}/{doc_id}")
            bucket[doc_id] = (1, deepcopy(data))
        return VersionedDocument(id=doc_id, version=1, data=deepcopy(data))

    async def compare_and_set(
        self,
        collection: str,
        doc_id: str,
        data: Dict[str, Any],
        expected_version: int,
    ) -> VersionedDocument | None:
        await self._round_trip()
        async with self._lock:
            bucket = self._bucket(collection)
            stored = bucket.get(doc_id)
            if stored is None:
                raise NotFoundError(f"Document not found: {collection}/{doc_id}")
            if stored[0] != expected_version:
                logger.debug(
                    f"Version conflict on {collection}/{doc_id}: "
                    f"expected {expected_version}, found {stored[0]}"
                )
                return None
            version = expected_version + 1
            bucket[doc_id] = (version, deepcopy(data))
        return VersionedDocument(id=doc_id, version=version, data=deepcopy(data))

    async def delete(self, collection: str, doc_id: str) -> bool:
        await self._round_trip()
        async with self._lock:
            return self._bucket(collection).pop(doc_id, None) is not None
