"""Document upload pipeline: convert, persist, extract and reconcile references."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

import structlog

from asesor.models import LoadedDocument
from asesor.utils import html_to_text
from .documents import DocumentService, load_document
from .reconciler import ReferenceReconciler, SyncResult
from .scanner import scan_document_text

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class IngestOutcome:
    document: LoadedDocument
    chunks: int
    found: int
    inserted: int
    sync: SyncResult


class DocumentIngestPipeline:
    """Coordinates document conversion, chunked saving and reference extraction."""

    def __init__(self, documents: DocumentService, reconciler: ReferenceReconciler) -> None:
        self._documents = documents
        self._reconciler = reconciler

    async def ingest(self, owner_id: str, path: Path) -> IngestOutcome:
        document = await asyncio.to_thread(load_document, path)
        return await self.ingest_html(owner_id, document.html, title=document.title)

    async def ingest_html(self, owner_id: str, html: str, *, title: str | None = None) -> IngestOutcome:
        text = html_to_text(html)
        chunks = await self._documents.save(owner_id, html, title=title)
        found = scan_document_text(text)
        inserted = await self._reconciler.reconcile(owner_id, found.values())
        sync = await self._reconciler.sync(owner_id, text)
        logger.info(
            "pipeline.ingested",
            owner=owner_id,
            chunks=chunks,
            found=len(found),
            inserted=inserted,
        )
        return IngestOutcome(
            document=LoadedDocument(title=title or "Untitled", html=html, text=text),
            chunks=chunks,
            found=len(found),
            inserted=inserted,
            sync=sync,
        )
