"""Document sources and chunked document persistence."""

from __future__ import annotations

import html
from pathlib import Path

import structlog
from docx import Document as DocxDocument
from pypdf import PdfReader

from asesor.models import LoadedDocument, StoredDocument
from asesor.utils import html_to_text
from .chunker import DEFAULT_CHUNK_SIZE, chunk_document, join_chunks
from .storage import LocalDocumentStore

logger = structlog.get_logger(__name__)

SUPPORTED_SUFFIXES = {".docx", ".pdf", ".html", ".htm", ".txt", ".md"}


class DocumentFormatError(ValueError):
    """Raised for uploads the assistant cannot convert."""


def load_document(path: Path) -> LoadedDocument:
    """Convert an uploaded file to HTML plus its plain-text projection."""
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise DocumentFormatError(
            f"Unsupported document type {suffix or '(none)'}; expected one of "
            f"{', '.join(sorted(SUPPORTED_SUFFIXES))}."
        )
    if not path.is_file():
        raise DocumentFormatError(f"{path} is not a file")

    if suffix == ".docx":
        body = _docx_to_html(path)
    elif suffix == ".pdf":
        body = _pdf_to_html(path)
    elif suffix in {".html", ".htm"}:
        body = path.read_text(encoding="utf-8")
    else:
        body = text_to_html(path.read_text(encoding="utf-8"))
    logger.info("documents.loaded", path=str(path), size=len(body))
    return LoadedDocument(title=path.name, html=body, text=html_to_text(body))


def text_to_html(text: str) -> str:
    """Wrap blank-line separated paragraphs in ``<p>`` tags."""
    paragraphs = [block.strip() for block in text.split("\n\n") if block.strip()]
    return "\n".join(f"<p>{html.escape(block)}</p>" for block in paragraphs)


def _docx_to_html(path: Path) -> str:
    try:
        document = DocxDocument(str(path))
    except Exception as exc:
        raise DocumentFormatError(f"Could not read {path.name} as .docx: {exc}") from exc
    parts: list[str] = []
    for paragraph in document.paragraphs:
        text = paragraph.text.strip()
        if not text:
            continue
        style = paragraph.style.name if paragraph.style is not None else ""
        level = _heading_level(style)
        tag = f"h{level}" if level else "p"
        parts.append(f"<{tag}>{html.escape(text)}</{tag}>")
    return "\n".join(parts)


def _heading_level(style_name: str) -> int | None:
    if style_name == "Title":
        return 1
    if style_name.startswith("Heading"):
        suffix = style_name.removeprefix("Heading").strip()
        if suffix.isdigit():
            return min(int(suffix), 6)
    return None


def _pdf_to_html(path: Path) -> str:
    try:
        reader = PdfReader(str(path))
    except Exception as exc:
        raise DocumentFormatError(f"Could not read {path.name} as PDF: {exc}") from exc
    pages: list[str] = []
    for page in reader.pages:
        try:
            pages.append(page.extract_text() or "")
        except Exception as exc:  # pragma: no cover - backend differences
            logger.warning("documents.pdf_page_failed", path=str(path), error=str(exc))
    return text_to_html("\n\n".join(pages))


class DocumentService:
    """Saves and restores each owner's document through the chunk store."""

    def __init__(self, store: LocalDocumentStore, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._store = store
        self._chunk_size = chunk_size

    async def save(self, owner_id: str, content: str, title: str | None = None) -> int:
        """Replace the stored document; returns the number of chunks written."""
        chunks = chunk_document(content, self._chunk_size)
        await self._store.replace_all(owner_id, chunks, title=title)
        return len(chunks)

    async def load(self, owner_id: str) -> StoredDocument | None:
        header = await self._store.header(owner_id)
        chunks = await self._store.select_ordered(owner_id)
        if header is None and not chunks:
            return None
        return StoredDocument(
            owner_id=owner_id,
            title=header.title if header else "Untitled",
            html=join_chunks(chunks),
            chunk_count=len(chunks),
            updated_at=header.updated_at if header else None,
        )

    async def load_text(self, owner_id: str) -> str:
        """Plain-text projection of the stored document (empty if none)."""
        document = await self.load(owner_id)
        return html_to_text(document.html) if document else ""

    async def clear(self, owner_id: str) -> None:
        await self._store.clear(owner_id)
        logger.info("documents.cleared", owner=owner_id)
