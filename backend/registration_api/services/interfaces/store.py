"""
Durable document store interface.
Allows swapping storage backends without changing business logic.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class VersionedDocument:
    key: str
    data: dict
    version: str


class DocumentStore(ABC):
    """
    Interface for conditional-write key/value stores.

    Implementations:
    - MemoryDocumentStore: process-local, for tests and local development
    - S3DocumentStore: S3 objects, ETag conditional puts
    - SqlDocumentStore: SQL table with an optimistic-locking version column
    """

    name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[VersionedDocument]:
        """
        Read a document.

        Returns:
            The document with its current version, or None if absent
        """

    @abstractmethod
    async def put(self, key: str, data: dict, expected_version: Optional[str]) -> str:
        """
        Conditionally write a document.

        Args:
            key: Document key
            data: JSON-serializable body
            expected_version: Version that was read, or None to create only

        Returns:
            The new version

        Raises:
            ConcurrentModification: the stored version differs from
                expected_version, or the key exists on create
        """

    @abstractmethod
    async def list_keys(self, prefix: str) -> list[str]:
        """List keys starting with prefix, sorted."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a document. Missing keys are ignored."""

    async def initialize(self) -> None:
        """Prepare backing resources (tables, clients)."""

    async def close(self) -> None:
        """Release backing resources."""
