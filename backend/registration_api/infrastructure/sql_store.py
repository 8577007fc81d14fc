"""
SQL-backed document store with optimistic locking.

  1. Read the document and its `version`
  2. UPDATE registration_documents SET data = :data, version = version + 1
     WHERE key = :key AND version = :expected
  3. If rows_affected == 0, someone else wrote first -> ConcurrentModification

Creation is an INSERT; a primary-key collision means another writer created
the document first, which is the same conflict.
"""

import asyncio
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from registration_api.core.exceptions import ConcurrentModification, StoreUnavailable
from registration_api.core.logging import get_logger
from registration_api.db.base import Base
from registration_api.db.session import create_session_factory
from registration_api.models.document import StoredDocument
from registration_api.services.interfaces.store import DocumentStore, VersionedDocument

logger = get_logger(__name__)


class SqlDocumentStore(DocumentStore):
    name = "sql"

    def __init__(self, engine: AsyncEngine, timeout: float = 5.0):
        self.engine = engine
        self.session_factory = create_session_factory(engine)
        self.timeout = timeout

    async def _bounded(self, operation: str, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("sql_timeout", operation=operation)
            raise StoreUnavailable(f"SQL {operation} timed out") from e

    async def initialize(self) -> None:
        async def _create():
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        await self._bounded("initialize", _create())

    async def close(self) -> None:
        await self.engine.dispose()

    async def get(self, key: str) -> Optional[VersionedDocument]:
        async def _get():
            async with self.session_factory() as session:
                result = await session.execute(
                    select(StoredDocument).where(StoredDocument.key == key)
                )
                return result.scalar_one_or_none()

        try:
            row = await self._bounded("get", _get())
        except SQLAlchemyError as e:
            logger.error("sql_get_failed", key=key, error=str(e))
            raise StoreUnavailable(f"SQL read failed for {key}") from e

        if row is None:
            return None
        return VersionedDocument(key=key, data=row.data, version=str(row.version))

    async def put(self, key: str, data: dict, expected_version: Optional[str]) -> str:
        async def _insert():
            async with self.session_factory() as session:
                session.add(StoredDocument(key=key, data=data, version=1))
                await session.commit()
            return "1"

        async def _update(current_version: int):
            async with self.session_factory() as session:
                result = await session.execute(
                    update(StoredDocument)
                    .where(
                        StoredDocument.key == key,
                        StoredDocument.version == current_version,
                    )
                    .values(data=data, version=StoredDocument.version + 1)
                )
                await session.commit()
                return result.rowcount

        try:
            if expected_version is None:
                return await self._bounded("insert", _insert())

            current_version = int(expected_version)
            rowcount = await self._bounded("update", _update(current_version))
        except IntegrityError as e:
            raise ConcurrentModification(key=key) from e
        except SQLAlchemyError as e:
            logger.error("sql_put_failed", key=key, error=str(e))
            raise StoreUnavailable(f"SQL write failed for {key}") from e

        if rowcount == 0:
            raise ConcurrentModification(key=key)
        return str(current_version + 1)

    async def list_keys(self, prefix: str) -> list[str]:
        async def _list():
            async with self.session_factory() as session:
                result = await session.execute(
                    select(StoredDocument.key)
                    .where(StoredDocument.key.startswith(prefix, autoescape=True))
                    .order_by(StoredDocument.key.asc())
                )
                return list(result.scalars().all())

        try:
            return await self._bounded("list", _list())
        except SQLAlchemyError as e:
            logger.error("sql_list_failed", prefix=prefix, error=str(e))
            raise StoreUnavailable(f"SQL list failed for {prefix}") from e

    async def delete(self, key: str) -> None:
        async def _delete():
            async with self.session_factory() as session:
                await session.execute(delete(StoredDocument).where(StoredDocument.key == key))
                await session.commit()

        try:
            await self._bounded("delete", _delete())
        except SQLAlchemyError as e:
            logger.error("sql_delete_failed", key=key, error=str(e))
            raise StoreUnavailable(f"SQL delete failed for {key}") from e
