"""Storage interfaces for references and document chunks backed by SQLite."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Protocol
from uuid import uuid4

import structlog
from sqlmodel import Session, select

from asesor.db import DocumentChunkRecord, DocumentRecord, ReferenceRecord, get_engine
from asesor.models import DocumentChunk, Reference
from asesor.settings import Settings

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = {"in_document", "from_agent", "author", "initials", "title", "source", "doi_link"}


class ReferenceStore(Protocol):
    """High-level contract for persisting a user's bibliography."""

    async def select(self, owner_id: str, in_document: bool | None = None) -> list[Reference]:
        ...

    async def insert(self, owner_id: str, reference: Reference) -> str:
        ...

    async def update(self, reference_id: str, **fields: Any) -> None:
        ...

    async def delete(self, reference_id: str) -> bool:
        ...

    async def delete_where(self, owner_id: str, in_document: bool | None = None) -> int:
        ...


class ChunkStore(Protocol):
    """Contract for the chunked document backend."""

    async def select_ordered(self, owner_id: str) -> list[DocumentChunk]:
        ...

    async def replace_all(
        self, owner_id: str, chunks: list[DocumentChunk], title: str | None = None
    ) -> None:
        ...


class LocalReferenceStore(ReferenceStore):
    """SQLite-backed implementation of the reference store."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._lock = asyncio.Lock()
        self._settings.ensure_directories()
        self._engine = get_engine(str(settings.db_path))

    async def select(self, owner_id: str, in_document: bool | None = None) -> list[Reference]:
        async with self._lock:
            return await asyncio.to_thread(self._select_sync, owner_id, in_document)

    async def get(self, reference_id: str) -> Reference | None:
        async with self._lock:
            return await asyncio.to_thread(self._get_sync, reference_id)

    async def insert(self, owner_id: str, reference: Reference) -> str:
        async with self._lock:
            return await asyncio.to_thread(self._insert_sync, owner_id, reference)

    async def update(self, reference_id: str, **fields: Any) -> None:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        async with self._lock:
            await asyncio.to_thread(self._update_sync, reference_id, fields)

    async def delete(self, reference_id: str) -> bool:
        async with self._lock:
            return await asyncio.to_thread(self._delete_sync, reference_id)

    async def delete_where(self, owner_id: str, in_document: bool | None = None) -> int:
        async with self._lock:
            return await asyncio.to_thread(self._delete_where_sync, owner_id, in_document)

    # Internal helpers -----------------------------------------------------

    def _select_sync(self, owner_id: str, in_document: bool | None) -> list[Reference]:
        statement = select(ReferenceRecord).where(ReferenceRecord.owner_id == owner_id)
        if in_document is not None:
            statement = statement.where(ReferenceRecord.in_document == in_document)
        statement = statement.order_by(ReferenceRecord.created_at)
        with Session(self._engine) as session:
            records = session.exec(statement).all()
        return [self._record_to_reference(record) for record in records]

    def _get_sync(self, reference_id: str) -> Reference | None:
        with Session(self._engine) as session:
            record = session.get(ReferenceRecord, reference_id)
            return self._record_to_reference(record) if record else None

    def _insert_sync(self, owner_id: str, reference: Reference) -> str:
        reference_id = reference.id or uuid4().hex
        record = ReferenceRecord(
            id=reference_id,
            owner_id=owner_id,
            author=reference.author,
            initials=reference.initials,
            year=reference.year,
            title=reference.title,
            source=reference.source,
            doi_link=reference.doi_link,
            in_document=reference.in_document,
            from_agent=reference.from_agent,
            created_at=reference.created_at,
        )
        with Session(self._engine) as session:
            session.add(record)
            session.commit()
        logger.debug("storage.reference_inserted", id=reference_id, owner=owner_id)
        return reference_id

    def _update_sync(self, reference_id: str, fields: dict[str, Any]) -> None:
        with Session(self._engine) as session:
            record = session.get(ReferenceRecord, reference_id)
            if record is None:
                raise KeyError(reference_id)
            for name, value in fields.items():
                setattr(record, name, value)
            session.add(record)
            session.commit()

    def _delete_sync(self, reference_id: str) -> bool:
        with Session(self._engine) as session:
            record = session.get(ReferenceRecord, reference_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
        return True

    def _delete_where_sync(self, owner_id: str, in_document: bool | None) -> int:
        statement = select(ReferenceRecord).where(ReferenceRecord.owner_id == owner_id)
        if in_document is not None:
            statement = statement.where(ReferenceRecord.in_document == in_document)
        with Session(self._engine) as session:
            records = session.exec(statement).all()
            for record in records:
                session.delete(record)
            session.commit()
        logger.info("storage.references_deleted", owner=owner_id, count=len(records))
        return len(records)

    def _record_to_reference(self, record: ReferenceRecord) -> Reference:
        return Reference(
            id=record.id,
            author=record.author,
            initials=record.initials,
            year=record.year,
            title=record.title,
            source=record.source,
            doi_link=record.doi_link,
            in_document=record.in_document,
            from_agent=record.from_agent,
            created_at=record.created_at,
        )


class LocalDocumentStore(ChunkStore):
    """Stores each owner's document as ordered chunk rows."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._lock = asyncio.Lock()
        self._settings.ensure_directories()
        self._engine = get_engine(str(settings.db_path))

    async def select_ordered(self, owner_id: str) -> list[DocumentChunk]:
        async with self._lock:
            return await asyncio.to_thread(self._select_sync, owner_id)

    async def replace_all(
        self, owner_id: str, chunks: list[DocumentChunk], title: str | None = None
    ) -> None:
        async with self._lock:
            await asyncio.to_thread(self._replace_sync, owner_id, chunks, title)

    async def header(self, owner_id: str) -> DocumentRecord | None:
        async with self._lock:
            return await asyncio.to_thread(self._header_sync, owner_id)

    async def clear(self, owner_id: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._clear_sync, owner_id)

    def _select_sync(self, owner_id: str) -> list[DocumentChunk]:
        statement = (
            select(DocumentChunkRecord)
            .where(DocumentChunkRecord.owner_id == owner_id)
            .order_by(DocumentChunkRecord.chunk_index)
        )
        with Session(self._engine) as session:
            records = session.exec(statement).all()
        return [
            DocumentChunk(chunk_index=record.chunk_index, content=record.content)
            for record in records
        ]

    def _replace_sync(
        self, owner_id: str, chunks: list[DocumentChunk], title: str | None
    ) -> None:
        with Session(self._engine, expire_on_commit=False) as session:
            _delete_chunks(session, owner_id)
            for chunk in chunks:
                session.add(
                    DocumentChunkRecord(
                        owner_id=owner_id,
                        chunk_index=chunk.chunk_index,
                        content=chunk.content,
                    )
                )
            header = session.get(DocumentRecord, owner_id)
            if header is None:
                header = DocumentRecord(owner_id=owner_id)
            if title:
                header.title = title
            header.updated_at = datetime.utcnow()
            session.add(header)
            session.commit()
        logger.info("storage.document_saved", owner=owner_id, chunks=len(chunks))

    def _header_sync(self, owner_id: str) -> DocumentRecord | None:
        with Session(self._engine, expire_on_commit=False) as session:
            return session.get(DocumentRecord, owner_id)

    def _clear_sync(self, owner_id: str) -> None:
        with Session(self._engine) as session:
            _delete_chunks(session, owner_id)
            header = session.get(DocumentRecord, owner_id)
            if header is not None:
                session.delete(header)
            session.commit()


def _delete_chunks(session: Session, owner_id: str) -> None:
    statement = select(DocumentChunkRecord).where(DocumentChunkRecord.owner_id == owner_id)
    for record in session.exec(statement).all():
        session.delete(record)
