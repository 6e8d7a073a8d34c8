"""Split and rejoin serialized documents for size-limited storage."""

from __future__ import annotations

from typing import Iterable

from asesor.models import DocumentChunk

DEFAULT_CHUNK_SIZE = 4000


def chunk_document(content: str, size: int = DEFAULT_CHUNK_SIZE) -> list[DocumentChunk]:
    """Cut ``content`` into consecutive slices of at most ``size`` characters.

    ``chunk_index`` is ``offset // size``; an empty document yields no chunks.
    """
    if size < 1:
        raise ValueError("chunk size must be at least 1")
    return [
        DocumentChunk(chunk_index=offset // size, content=content[offset : offset + size])
        for offset in range(0, len(content), size)
    ]


def join_chunks(chunks: Iterable[DocumentChunk]) -> str:
    """Rebuild a document from its chunks regardless of their order."""
    ordered = sorted(chunks, key=lambda chunk: chunk.chunk_index)
    return "".join(chunk.content for chunk in ordered)
