"""Parsing of single free-text APA-style reference lines."""

from __future__ import annotations

import re
from datetime import datetime
from uuid import uuid4

import structlog

from asesor.models import UNKNOWN_AUTHOR, Reference

logger = structlog.get_logger(__name__)

# SURNAME, INITIALS (YEAR). TITLE. PUBLISHER
APA_PATTERN = re.compile(
    r"^(?P<author>[^,]+),\s*(?P<initials>[^(]+?)\s*\((?P<year>\d{4})\)\.\s*"
    r"(?P<title>.+?)\.\s*(?P<source>.+)$"
)
YEAR_IN_PARENS = re.compile(r"\([^)]*?(\d{4})[^)]*\)")


def parse_citation(text: str) -> Reference:
    """Turn one reference line into a :class:`Reference`.

    Never fails: when the strict ``Surname, I. (Year). Title. Publisher``
    grammar does not match, the author falls back to whatever precedes the
    first parenthesis, the year to the first four-digit run inside
    parentheses (or the current year) and the title to the whole input.
    Callers that must reject poor records apply ``validate_reference``.
    """
    raw = text or ""
    match = APA_PATTERN.match(raw.strip())
    if match:
        return Reference(
            id=uuid4().hex,
            author=match.group("author").strip(),
            initials=match.group("initials").strip(),
            year=match.group("year"),
            title=match.group("title").strip(),
            source=match.group("source").strip().rstrip(".").strip() or None,
        )

    logger.debug("parser.fallback", text=raw[:80])
    return Reference(
        id=uuid4().hex,
        author=_fallback_author(raw),
        year=_fallback_year(raw),
        title=raw,
    )


def _fallback_author(text: str) -> str:
    if "(" not in text:
        return UNKNOWN_AUTHOR
    author = text.split("(", 1)[0].strip(" ,.")
    return author or UNKNOWN_AUTHOR


def _fallback_year(text: str) -> str:
    match = YEAR_IN_PARENS.search(text)
    if match:
        return match.group(1)
    return str(datetime.now().year)
