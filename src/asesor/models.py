"""Core data models used throughout the Asesor application."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from asesor.utils import first_author_surname

UNKNOWN_AUTHOR = "unknown author"
TEXT_ONLY_TITLE = "citation extracted from text, full reference not found"


class Reference(BaseModel):
    """A bibliographic record as seen by the citation logic."""

    author: str
    year: str
    title: str
    initials: str | None = None
    source: str | None = None
    doi_link: str | None = None
    in_document: bool = False
    from_agent: bool = False
    id: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def surname(self) -> str:
        return first_author_surname(self.author)

    @property
    def key(self) -> str:
        """Identity used for merging: ``Surname-Year``."""
        return f"{self.surname}-{self.year}"


class DocumentChunk(BaseModel):
    """Fixed-size slice of a serialized document."""

    chunk_index: int
    content: str


class StoredDocument(BaseModel):
    """A document rebuilt from its persisted chunks."""

    owner_id: str
    title: str
    html: str
    chunk_count: int = 0
    updated_at: datetime | None = None


class LoadedDocument(BaseModel):
    """An uploaded file converted to HTML and its plain-text projection."""

    title: str
    html: str
    text: str

    @property
    def word_count(self) -> int:
        return len(self.text.split())
