"""Key-value blob stores for whole-document state.

The interface is three calls — get, set, delete — so the ledger doesn't care
which backend holds its document. ``SqlBlobStore`` is the default; the
in-memory store is for tests and single-process demos.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from metarboard.models.blob import KvBlob

logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    """The backing store could not complete a read, write, or delete."""


class BlobStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the blob under ``key``, or None if absent."""

    @abstractmethod
    async def set(self, key: str, blob: str) -> None:
        """Replace the blob under ``key``."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``; deleting a missing key is not an error."""


class InMemoryBlobStore(BlobStore):
    def __init__(self) -> None:
        self._blobs: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._blobs.get(key)

    async def set(self, key: str, blob: str) -> None:
        self._blobs[key] = blob

    async def delete(self, key: str) -> None:
        self._blobs.pop(key, None)


class SqlBlobStore(BlobStore):
    """Blobs in the ``kv_blobs`` table, one row per key."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(KvBlob.value).where(KvBlob.key == key))
                return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise BlobStoreError(f"Read of {key!r} failed: {exc}") from exc

    async def set(self, key: str, blob: str) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                row = await session.get(KvBlob, key)
                if row is None:
                    session.add(KvBlob(key=key, value=blob))
                else:
                    row.value = blob
        except SQLAlchemyError as exc:
            raise BlobStoreError(f"Write of {key!r} failed: {exc}") from exc
        logger.debug("Stored %d bytes under %s", len(blob), key)

    async def delete(self, key: str) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(delete(KvBlob).where(KvBlob.key == key))
        except SQLAlchemyError as exc:
            raise BlobStoreError(f"Delete of {key!r} failed: {exc}") from exc
