"""FastAPI surface for the editor front-end."""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, HTTPException, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from asesor import exporters
from asesor.models import Reference, StoredDocument
from asesor.services import (
    DocumentIngestPipeline,
    DocumentService,
    InvalidReferenceError,
    LocalDocumentStore,
    LocalReferenceStore,
    ReferenceReconciler,
    SyncResult,
    parse_citation,
)
from asesor.settings import Settings, get_settings


class CitationIn(BaseModel):
    raw: str


class DocumentIn(BaseModel):
    html: str
    title: Optional[str] = None
    extract: bool = False


class DocumentSaved(BaseModel):
    chunks: int
    found: int = 0
    inserted: int = 0


class SyncOut(BaseModel):
    checked: int
    marked_used: list[str]
    marked_unused: list[str]

    @classmethod
    def from_result(cls, result: SyncResult) -> "SyncOut":
        return cls(
            checked=result.checked,
            marked_used=result.marked_used,
            marked_unused=result.marked_unused,
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Factory used by uvicorn."""
    settings = settings or get_settings()
    app = FastAPI(title="Asesor API")
    references = LocalReferenceStore(settings)
    documents = DocumentService(LocalDocumentStore(settings), chunk_size=settings.chunk_size)
    reconciler = ReferenceReconciler(references)
    pipeline = DocumentIngestPipeline(documents, reconciler)

    @app.get("/references", response_model=list[Reference])
    async def list_references(
        owner: str = settings.owner_id, in_document: Optional[bool] = None
    ) -> list[Reference]:
        return await references.select(owner, in_document=in_document)

    @app.post("/references", response_model=Reference, status_code=status.HTTP_201_CREATED)
    async def add_reference(payload: CitationIn, owner: str = settings.owner_id) -> Reference:
        try:
            return await reconciler.add_reference(owner, parse_citation(payload.raw))
        except InvalidReferenceError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    @app.delete("/references/{reference_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_reference(reference_id: str) -> None:
        if not await references.delete(reference_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reference not found")

    @app.delete("/references")
    async def clear_references(
        owner: str = settings.owner_id, in_document: Optional[bool] = None
    ) -> dict[str, int]:
        removed = await references.delete_where(owner, in_document=in_document)
        return {"removed": removed}

    @app.post("/references/sync", response_model=SyncOut)
    async def sync_references(owner: str = settings.owner_id) -> SyncOut:
        text = await documents.load_text(owner)
        return SyncOut.from_result(await reconciler.sync(owner, text))

    @app.get("/references/export", response_class=PlainTextResponse)
    async def export_references(owner: str = settings.owner_id) -> str:
        return exporters.export_text(await references.select(owner))

    @app.get("/document", response_model=StoredDocument)
    async def get_document(owner: str = settings.owner_id) -> StoredDocument:
        document = await documents.load(owner)
        if document is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No document stored")
        return document

    @app.put("/document", response_model=DocumentSaved)
    async def save_document(payload: DocumentIn, owner: str = settings.owner_id) -> DocumentSaved:
        if payload.extract:
            outcome = await pipeline.ingest_html(owner, payload.html, title=payload.title)
            return DocumentSaved(
                chunks=outcome.chunks, found=outcome.found, inserted=outcome.inserted
            )
        chunks = await documents.save(owner, payload.html, title=payload.title)
        return DocumentSaved(chunks=chunks)

    return app
