from asesor.models import TEXT_ONLY_TITLE
from asesor.services.scanner import scan_agent_output, scan_document_text


def test_full_reference_wins_over_narrative_citation() -> None:
    text = (
        "Según García (2021), el método es válido. "
        "García, R. (2021). Métodos cualitativos. Revista ABC."
    )
    found = scan_document_text(text)

    assert list(found) == ["García-2021"]
    reference = found["García-2021"]
    assert reference.in_document is True
    assert reference.from_agent is False
    assert reference.title == "Métodos cualitativos"
    assert reference.source == "Revista ABC"


def test_parenthetical_citation_does_not_replace_full_entry() -> None:
    text = (
        "La IA acelera la redacción (Benites, 2024). "
        "Benites, F. (2024). Inteligencia Artificial en Tesis. Editorial UPAO."
    )
    found = scan_document_text(text)

    assert len(found) == 1
    assert found["Benites-2024"].title == "Inteligencia Artificial en Tesis"


def test_in_text_only_citation_gets_placeholder_title() -> None:
    found = scan_document_text("Los resultados (Quispe et al., 2019) muestran una mejora.")

    reference = found["Quispe-2019"]
    assert reference.author == "Quispe"
    assert reference.title == TEXT_ONLY_TITLE
    assert reference.in_document is True


def test_multiple_authors_are_keyed_by_first_surname() -> None:
    text = (
        "Smith, J., & Jones, K. (2020). Deep learning review. Journal of AI. "
        "Rojas, M. y Castillo, P. (2018). Investigación educativa. Editorial Norma."
    )
    found = scan_document_text(text)

    assert set(found) == {"Smith-2020", "Rojas-2018"}
    assert found["Smith-2020"].author == "Smith, J., & Jones, K."
    assert found["Rojas-2018"].title == "Investigación educativa"


def test_no_references_is_an_empty_result() -> None:
    assert scan_document_text("Texto sin citas de ningún tipo.") == {}
    assert scan_document_text("") == {}


AGENT_TABLE = """Estas referencias pueden ayudarte:

| # | Autor (Año) | Título | Fuente | DOI |
|---|---|---|---|---|
| 1 | Hernández Sampieri (2018) | Metodología de la investigación | McGraw-Hill | - |
| 2 | **Creswell, J. (2014)** | Research design | SAGE | 10.1000/rd.2014 |
"""

AGENT_LIST = """También revisa:
1. **Tamayo, M. (2004)**. *El proceso de la investigación científica*. Limusa. https://doi.org/10.1234/tamayo
2. Creswell, J. (2014) Research design. SAGE.
"""


def test_agent_table_rows_are_parsed() -> None:
    candidates = scan_agent_output(AGENT_TABLE)

    assert [(c.author, c.year) for c in candidates] == [
        ("Hernández Sampieri", "2018"),
        ("Creswell, J.", "2014"),
    ]
    first, second = candidates
    assert first.title == "Metodología de la investigación"
    assert first.source == "McGraw-Hill"
    assert first.doi_link is None
    assert second.doi_link == "10.1000/rd.2014"
    assert all(c.from_agent and not c.in_document for c in candidates)


def test_agent_list_entries_are_parsed() -> None:
    candidates = scan_agent_output(AGENT_LIST)

    tamayo = candidates[0]
    assert tamayo.author == "Tamayo, M."
    assert tamayo.year == "2004"
    assert tamayo.title == "El proceso de la investigación científica"
    assert tamayo.source == "Limusa"
    assert tamayo.doi_link == "https://doi.org/10.1234/tamayo"
    assert candidates[1].title == "Research design"


def test_list_entry_already_in_table_is_skipped() -> None:
    candidates = scan_agent_output(AGENT_TABLE + "\n" + AGENT_LIST)

    keys = [c.key for c in candidates]
    assert keys == ["Hernández Sampieri-2018", "Creswell-2014", "Tamayo-2004"]


def test_agent_reply_without_references() -> None:
    assert scan_agent_output("El texto tiene buena estructura.") == []
