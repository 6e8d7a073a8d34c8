from pathlib import Path

import pytest
from docx import Document

from asesor.services.documents import (
    DocumentFormatError,
    DocumentService,
    load_document,
    text_to_html,
)
from asesor.services.storage import LocalDocumentStore
from asesor.settings import Settings


def test_load_plain_text_document(tmp_path: Path) -> None:
    source = tmp_path / "tesis.txt"
    source.write_text("Introducción\n\nSegún García (2021), el método es válido.", encoding="utf-8")

    document = load_document(source)

    assert document.title == "tesis.txt"
    assert document.html == "<p>Introducción</p>\n<p>Según García (2021), el método es válido.</p>"
    assert document.text == "Introducción Según García (2021), el método es válido."
    assert document.word_count == 8


def test_load_docx_keeps_headings(tmp_path: Path) -> None:
    source = tmp_path / "tesis.docx"
    docx = Document()
    docx.add_heading("Capítulo 1", level=1)
    docx.add_paragraph("García, R. (2021). Métodos cualitativos. Revista ABC.")
    docx.save(str(source))

    document = load_document(source)

    assert "<h1>Capítulo 1</h1>" in document.html
    assert "<p>García, R. (2021). Métodos cualitativos. Revista ABC.</p>" in document.html
    assert document.text.startswith("Capítulo 1 García, R. (2021)")


def test_unsupported_format_is_rejected(tmp_path: Path) -> None:
    source = tmp_path / "datos.xlsx"
    source.write_bytes(b"PK")

    with pytest.raises(DocumentFormatError):
        load_document(source)


def test_text_to_html_escapes_markup() -> None:
    assert text_to_html("<script>alert(1)</script>") == "<p>&lt;script&gt;alert(1)&lt;/script&gt;</p>"


@pytest.mark.asyncio
async def test_document_service_round_trip(tmp_path: Path) -> None:
    service = DocumentService(LocalDocumentStore(Settings(data_dir=tmp_path)), chunk_size=10)
    content = "<p>" + "Capítulo uno. " * 7 + "</p>"

    assert await service.load("owner") is None

    chunks = await service.save("owner", content, title="Tesis.docx")
    document = await service.load("owner")

    assert chunks == -(-len(content) // 10)
    assert document.html == content
    assert document.title == "Tesis.docx"
    assert document.chunk_count == chunks
    assert (await service.load_text("owner")).startswith("Capítulo uno.")

    await service.clear("owner")
    assert await service.load("owner") is None
