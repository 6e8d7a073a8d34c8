"""SQLite persistence layer for Asesor."""

from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from pathlib import Path

from sqlmodel import Field, SQLModel, create_engine


class ReferenceRecord(SQLModel, table=True):
    """Bibliography row owned by a single user."""

    id: str = Field(primary_key=True)
    owner_id: str = Field(index=True)
    author: str
    initials: str | None = None
    year: str
    title: str
    source: str | None = None
    doi_link: str | None = None
    in_document: bool = Field(default=False, index=True)
    from_agent: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)


class DocumentRecord(SQLModel, table=True):
    """Document header; the content itself lives in chunks."""

    owner_id: str = Field(primary_key=True)
    title: str = Field(default="Untitled")
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class DocumentChunkRecord(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    owner_id: str = Field(index=True)
    chunk_index: int
    content: str


def create_engine_for_path(db_path: Path):
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False},
    )


def init_db(engine) -> None:
    SQLModel.metadata.create_all(engine)


@lru_cache(maxsize=4)
def get_engine(path_str: str):
    engine = create_engine_for_path(Path(path_str))
    init_db(engine)
    return engine
