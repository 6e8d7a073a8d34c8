"""Pattern passes that discover references in document text and agent replies."""

from __future__ import annotations

import re

import structlog

from asesor.models import TEXT_ONLY_TITLE, Reference
from asesor.utils import first_author_surname

logger = structlog.get_logger(__name__)

UPPER = "A-ZÁÉÍÓÚÜÑ"
LOWER = "a-záéíóúüñàèìòùçäëïöâêîôû'’"

NAME = rf"[{UPPER}][{LOWER}]+(?:-[{UPPER}][{LOWER}]+)?"
AUTHOR_UNIT = rf"{NAME}(?:,\s*(?:[{UPPER}]\.\s?)+)?"
AUTHOR_JOIN = r"(?:\s*,\s*|\s*,?\s+(?:y|&)\s+)"
AUTHORS = rf"{AUTHOR_UNIT}(?:{AUTHOR_JOIN}{AUTHOR_UNIT})*"
DOI = r"(?:https?://(?:dx\.)?doi\.org/)?10\.\d{4,9}/[^\s|]+"

FULL_REFERENCE_PATTERN = re.compile(
    rf"\b(?P<author>{AUTHORS})\s*\((?P<year>\d{{4}})\)\.\s*"
    rf"(?P<title>[^.]+?)\.\s*(?P<source>[^.]+?)\."
)
IN_TEXT_PATTERN = re.compile(
    rf"\((?P<author>{NAME}(?:\s+(?:y|&)\s+{NAME})?)(?:\s+et\s+al\.)?,?\s*(?P<year>\d{{4}})\)"
)

TABLE_ROW_PATTERN = re.compile(
    r"^\s*\|\s*\d+\s*\|(?P<author_year>[^|\n]*)\|(?P<title>[^|\n]*)\|"
    r"(?P<source>[^|\n]*)\|(?P<doi>[^|\n]*)\|",
    flags=re.MULTILINE,
)
AUTHOR_YEAR_CELL = re.compile(r"^(?P<author>.+?)\s*\(\s*(?P<year>\d{4})\s*\)")
LIST_ENTRY_PATTERN = re.compile(
    rf"\b(?P<author>{AUTHORS})\s*\((?P<year>\d{{4}})\)\.?\s*"
    rf"(?P<title>[^.|\n]+?)\.\s*(?P<source>[^.|\n]+?)\."
    rf"(?:\s*(?P<doi>{DOI}))?"
)
EMPTY_CELLS = {"", "-", "—", "n/a", "na", "s/d"}


def scan_document_text(text: str) -> dict[str, Reference]:
    """Find references cited in a document's plain-text projection.

    Full bibliography entries are collected first; bare ``(Surname, Year)``
    markers only fill keys no entry has claimed. The mapping is keyed by
    ``Surname-Year`` and is empty when nothing is found.
    """
    found: dict[str, Reference] = {}
    if not text:
        return found

    for match in FULL_REFERENCE_PATTERN.finditer(text):
        reference = Reference(
            author=_clean_author(match.group("author")),
            year=match.group("year"),
            title=match.group("title").strip(),
            source=match.group("source").strip() or None,
            in_document=True,
        )
        found.setdefault(reference.key, reference)

    for match in IN_TEXT_PATTERN.finditer(text):
        reference = Reference(
            author=match.group("author").strip(),
            year=match.group("year"),
            title=TEXT_ONLY_TITLE,
            in_document=True,
        )
        found.setdefault(reference.key, reference)

    logger.info("scanner.document", references=len(found))
    return found


def scan_agent_output(markdown: str) -> list[Reference]:
    """Collect references suggested in an agent's markdown reply.

    Table rows (``| # | Author (Year) | Title | Source | DOI |``) are read
    first, then free-text list entries. An entry whose author and year were
    already produced earlier in the same reply is skipped.
    """
    candidates: list[Reference] = []
    if not markdown:
        return candidates
    seen: set[tuple[str, str]] = set()

    for row in TABLE_ROW_PATTERN.finditer(markdown):
        cell = AUTHOR_YEAR_CELL.match(_strip_markup(row.group("author_year")))
        if not cell:
            continue
        title = _strip_markup(row.group("title"))
        if not title:
            continue
        reference = Reference(
            author=cell.group("author").strip(" ,"),
            year=cell.group("year"),
            title=title,
            source=_optional_cell(row.group("source")),
            doi_link=_optional_cell(row.group("doi")),
            from_agent=True,
        )
        _collect(reference, candidates, seen)

    for match in LIST_ENTRY_PATTERN.finditer(markdown.replace("*", "")):
        doi = match.group("doi")
        reference = Reference(
            author=_clean_author(match.group("author")),
            year=match.group("year"),
            title=_strip_markup(match.group("title")),
            source=match.group("source").strip() or None,
            doi_link=doi.rstrip(".") if doi else None,
            from_agent=True,
        )
        _collect(reference, candidates, seen)

    logger.info("scanner.agent_output", references=len(candidates))
    return candidates


def _collect(
    reference: Reference, candidates: list[Reference], seen: set[tuple[str, str]]
) -> None:
    identity = (first_author_surname(reference.author), reference.year)
    if identity in seen:
        return
    seen.add(identity)
    candidates.append(reference)


def _clean_author(value: str) -> str:
    return value.strip().rstrip(",").strip()


def _strip_markup(value: str) -> str:
    return value.replace("*", "").strip().strip("\"“”_ ").strip()


def _optional_cell(value: str) -> str | None:
    cleaned = _strip_markup(value)
    if cleaned.lower() in EMPTY_CELLS:
        return None
    return cleaned
