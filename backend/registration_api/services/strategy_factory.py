"""
Storage strategy factory.
Configures which durable document store backs registrations and holds.
"""

from registration_api.core.config import Settings
from registration_api.services.interfaces.store import DocumentStore


def get_store_strategy(settings: Settings) -> DocumentStore:
    """
    Get configured document store.

    Strategy selection via STORE_BACKEND:
    - memory: process-local (tests, local development)
    - s3: one JSON object per document, ETag conditional writes
    - sql: versioned rows, UPDATE ... WHERE version = :expected
    """
    backend = settings.STORE_BACKEND.lower()

    if backend == "s3":
        from registration_api.infrastructure.s3_store import S3DocumentStore, get_s3_client

        return S3DocumentStore(
            bucket=settings.S3_REGISTRATIONS_BUCKET,
            client=get_s3_client(settings),
            timeout=settings.STORE_TIMEOUT_SECONDS,
        )
    if backend == "sql":
        from registration_api.db.session import create_engine
        from registration_api.infrastructure.sql_store import SqlDocumentStore

        return SqlDocumentStore(create_engine(settings), timeout=settings.STORE_TIMEOUT_SECONDS)
    if backend == "memory":
        from registration_api.infrastructure.memory_store import MemoryDocumentStore

        return MemoryDocumentStore()

    raise ValueError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND}")
