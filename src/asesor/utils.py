"""Utility helpers for author names, HTML projection and filesystem-safe names."""

from __future__ import annotations

import re
import unicodedata

from bs4 import BeautifulSoup

SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
WHITESPACE_PATTERN = re.compile(r"\s+")
AUTHOR_SEPARATOR = re.compile(r",|\s+(?:y|&|and)\s+|\s+et\s+al\.?", flags=re.IGNORECASE)


def first_author_surname(author: str) -> str:
    """Return the first-listed surname of a free-text author string.

    ``"García, R."`` -> ``"García"``, ``"Smith & Jones"`` -> ``"Smith"``,
    ``"Pérez et al."`` -> ``"Pérez"``.
    """
    if not author:
        return ""
    head = AUTHOR_SEPARATOR.split(author.strip(), maxsplit=1)[0]
    return head.strip(" .;:")


def html_to_text(html: str) -> str:
    """Plain-text projection of an HTML fragment, tags replaced by spaces."""
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text(" ")
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def slugify(value: str, max_length: int = 80) -> str:
    """Create a filesystem-safe slug."""
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode()
    value = value.lower()
    value = SLUG_PATTERN.sub("-", value).strip("-")
    if not value:
        value = "item"
    return value[:max_length]
