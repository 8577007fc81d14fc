"""
In-process document store.

Writes are checked against the version that was read exactly like the
durable backends, and every operation yields to the event loop so concurrent
callers interleave the way separate serverless invocations would.
"""

import asyncio
import copy
from typing import Optional

from registration_api.core.exceptions import ConcurrentModification
from registration_api.services.interfaces.store import DocumentStore, VersionedDocument


class MemoryDocumentStore(DocumentStore):
    name = "memory"

    def __init__(self):
        self._documents: dict[str, tuple[dict, int]] = {}

    async def get(self, key: str) -> Optional[VersionedDocument]:
        await asyncio.sleep(0)
        entry = self._documents.get(key)
        if entry is None:
            return None
        data, version = entry
        return VersionedDocument(key=key, data=copy.deepcopy(data), version=str(version))

    async def put(self, key: str, data: dict, expected_version: Optional[str]) -> str:
        await asyncio.sleep(0)
        entry = self._documents.get(key)
        if expected_version is None:
            if entry is not None:
                raise ConcurrentModification(key=key)
            new_version = 1
        else:
            if entry is None or str(entry[1]) != expected_version:
                raise ConcurrentModification(key=key)
            new_version = entry[1] + 1
        self._documents[key] = (copy.deepcopy(data), new_version)
        return str(new_version)

    async def list_keys(self, prefix: str) -> list[str]:
        await asyncio.sleep(0)
        return sorted(key for key in self._documents if key.startswith(prefix))

    async def delete(self, key: str) -> None:
        await asyncio.sleep(0)
        self._documents.pop(key, None)
